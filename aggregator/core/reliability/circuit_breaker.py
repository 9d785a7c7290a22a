"""
Circuit breaker — stop calling an upstream API that keeps failing.

Wraps the GitHub client so a scan against a broken or rate-limited API
gives up quickly instead of hammering it page after page.

States:
    CLOSED    → Calls pass. Consecutive failures counted.
    OPEN      → Calls rejected until the recovery timeout elapses.
    HALF_OPEN → One probe call allowed to test recovery.

Transitions:
    CLOSED → OPEN:      failure_count >= failure_threshold
    OPEN → HALF_OPEN:   recovery_timeout elapsed
    HALF_OPEN → CLOSED: probe succeeds
    HALF_OPEN → OPEN:   probe fails
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class CircuitState(StrEnum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreaker:
    """Circuit breaker for one upstream dependency.

    Args:
        name: Identifier used in logs and status output.
        failure_threshold: Consecutive failures before opening.
        recovery_timeout: Seconds to wait before a probe call.
        clock: Monotonic time source (injectable for tests).
    """

    name: str
    failure_threshold: int = 5
    recovery_timeout: float = 30.0
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    last_failure_time: float = 0.0
    total_rejections: int = 0

    def allow_request(self) -> bool:
        if self.state == CircuitState.CLOSED:
            return True

        if self.state == CircuitState.OPEN:
            if self.clock() - self.last_failure_time >= self.recovery_timeout:
                self._transition(CircuitState.HALF_OPEN)
                return True
            self.total_rejections += 1
            return False

        return True

    def record_success(self) -> None:
        if self.state == CircuitState.HALF_OPEN:
            self._transition(CircuitState.CLOSED)
        self.failure_count = 0

    def record_failure(self) -> None:
        self.last_failure_time = self.clock()

        if self.state == CircuitState.HALF_OPEN:
            self._transition(CircuitState.OPEN)
        elif self.state == CircuitState.CLOSED:
            self.failure_count += 1
            if self.failure_count >= self.failure_threshold:
                self._transition(CircuitState.OPEN)

    def reset(self) -> None:
        self._transition(CircuitState.CLOSED)
        self.total_rejections = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "total_rejections": self.total_rejections,
            "failure_threshold": self.failure_threshold,
            "recovery_timeout": self.recovery_timeout,
        }

    def _transition(self, new_state: CircuitState) -> None:
        old = self.state
        self.state = new_state
        if new_state == CircuitState.CLOSED:
            self.failure_count = 0
        if old != new_state:
            logger.info("Circuit breaker '%s': %s → %s", self.name, old.value, new_state.value)
