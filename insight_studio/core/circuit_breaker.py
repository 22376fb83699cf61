"""Circuit breaker shared by the Redis, Claude and S3 clients.

CLOSED lets calls through and counts consecutive failures. Once the count
reaches the threshold the circuit OPENs and rejects calls until
recovery_timeout has elapsed, then a single HALF_OPEN probe decides whether
to close again or re-open.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    """Circuit breaker configuration."""

    failure_threshold: int
    recovery_timeout: float


class CircuitBreaker:
    """Async circuit breaker guarding one remote dependency."""

    def __init__(self, config: CircuitBreakerConfig, name: str = "default") -> None:
        self._config = config
        self._name = name
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: float | None = None
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def is_open(self) -> bool:
        return self._state == CircuitState.OPEN

    def snapshot(self) -> dict[str, Any]:
        """State summary for health endpoints."""
        return {
            "name": self._name,
            "state": self._state.value,
            "failure_count": self._failure_count,
        }

    def _transition(self, new_state: CircuitState) -> None:
        previous = self._state
        if previous == new_state:
            return
        self._state = new_state
        level = logging.WARNING if new_state == CircuitState.OPEN else logging.INFO
        logger.log(
            level,
            f"Circuit breaker {self._name}: {previous.value} -> {new_state.value}",
            extra={
                "circuit_name": self._name,
                "previous_state": previous.value,
                "new_state": new_state.value,
                "failure_count": self._failure_count,
                "recovery_timeout": self._config.recovery_timeout,
            },
        )

    async def can_execute(self) -> bool:
        """Whether a call may proceed right now."""
        async with self._lock:
            if self._state != CircuitState.OPEN:
                return True
            assert self._opened_at is not None
            if time.monotonic() - self._opened_at >= self._config.recovery_timeout:
                self._transition(CircuitState.HALF_OPEN)
                return True
            return False

    async def record_success(self) -> None:
        """Record a successful call."""
        async with self._lock:
            self._failure_count = 0
            self._opened_at = None
            self._transition(CircuitState.CLOSED)

    async def record_failure(self) -> None:
        """Record a failed call."""
        async with self._lock:
            self._failure_count += 1
            if (
                self._state == CircuitState.HALF_OPEN
                or self._failure_count >= self._config.failure_threshold
            ):
                self._opened_at = time.monotonic()
                self._transition(CircuitState.OPEN)

    async def reset(self) -> None:
        """Force the circuit closed."""
        async with self._lock:
            self._failure_count = 0
            self._opened_at = None
            self._transition(CircuitState.CLOSED)
