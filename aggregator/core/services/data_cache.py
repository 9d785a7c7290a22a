"""
In-memory TTL cache for catalog and stats results.

Entries expire ``ttl`` seconds after they are stored. Nothing is
persisted; the cache starts empty on every process start.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    value: Any
    expires_at: float


class DataCache:
    """Thread-safe key → value cache with per-entry expiry.

    Args:
        default_ttl: Seconds an entry lives when ``set`` gets no ttl.
        clock: Monotonic time source (injectable for tests).
    """

    def __init__(self, default_ttl: float = 300.0, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None if absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            if entry.expires_at <= self._clock():
                del self._entries[key]
                self.misses += 1
                logger.debug("Cache expired: %s", key)
                return None
            self.hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store a value, dropping any expired entries. A ttl of 0 stores nothing."""
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            return
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.expires_at <= now]
            for k in expired:
                del self._entries[k]
            self._entries[key] = _Entry(value=value, expires_at=now + ttl)

    def get_or_compute(self, key: str, compute: Callable[[], Any], ttl: float | None = None) -> tuple[Any, bool]:
        """Return ``(value, hit)``; computes and stores the value on a miss."""
        value = self.get(key)
        if value is not None:
            return value, True
        value = compute()
        self.set(key, value, ttl)
        return value, False

    def invalidate(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop every entry whose key starts with ``prefix``; returns how many."""
        with self._lock:
            keys = [k for k in self._entries if k.startswith(prefix)]
            for k in keys:
                del self._entries[k]
        return len(keys)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> dict[str, Any]:
        """Hit/miss counters and current size."""
        with self._lock:
            now = self._clock()
            live = sum(1 for e in self._entries.values() if e.expires_at > now)
        total = self.hits + self.misses
        return {
            "size": live,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(self.hits / total * 100, 1) if total else 0.0,
        }
