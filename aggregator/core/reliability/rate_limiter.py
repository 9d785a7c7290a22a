"""
Fixed-window rate limiter, keyed by client address.

Each key gets ``limit`` requests per ``window_seconds``. The window
starts at the key's first request and the counter resets on the first
request after it expires. State is in-memory only and resets on process
restart; expired windows are swept lazily.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Sweep expired windows once the table grows past this many keys.
SWEEP_THRESHOLD = 1024


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after: int = 0

    def headers(self) -> dict[str, str]:
        """``X-RateLimit-*`` response headers (plus ``Retry-After`` when denied)."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(math.ceil(self.reset_at))),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after)
        return headers


@dataclass
class _Window:
    started_at: float
    count: int = 0


class RateLimiter:
    """Fixed-window request counter.

    Args:
        limit: Requests allowed per window.
        window_seconds: Window length.
        clock: Wall-clock time source (injectable for tests). Wall time
            rather than monotonic so ``reset_at`` is a usable epoch.
    """

    def __init__(self, limit: int = 10, window_seconds: float = 60.0, clock: Callable[[], float] = time.time):
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()

    def check(self, key: str) -> RateLimitDecision:
        """Count one request for ``key`` and decide whether to allow it."""
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or now - window.started_at >= self.window_seconds:
                if len(self._windows) >= SWEEP_THRESHOLD:
                    self._sweep(now)
                window = _Window(started_at=now)
                self._windows[key] = window

            window.count += 1
            reset_at = window.started_at + self.window_seconds
            allowed = window.count <= self.limit

        if not allowed:
            logger.info("Rate limit exceeded for %s (%d/%d)", key, window.count, self.limit)
        return RateLimitDecision(
            allowed=allowed,
            limit=self.limit,
            remaining=max(0, self.limit - window.count),
            reset_at=reset_at,
            retry_after=0 if allowed else max(1, int(math.ceil(reset_at - now))),
        )

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)

    def _sweep(self, now: float) -> None:
        expired = [k for k, w in self._windows.items() if now - w.started_at >= self.window_seconds]
        for k in expired:
            del self._windows[k]
        if expired:
            logger.debug("Swept %d expired rate-limit windows", len(expired))

    def __len__(self) -> int:
        return len(self._windows)
