"""Consecutive-failure circuit breaker for Redis and the generative providers.

closed --(failure_threshold failures in a row)--> open
open   --(recovery_timeout elapsed, next call)--> half_open
half_open --(trial call succeeds)--> closed, --(trial call fails)--> open
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    failure_threshold: int
    recovery_timeout: float


class CircuitBreaker:
    """Rejects calls to a downstream that keeps failing, then lets a trial call through."""

    def __init__(
        self,
        config: CircuitBreakerConfig,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._name = name
        self._clock = clock
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
    def is_closed(self) -> bool:
        return self._state is CircuitState.CLOSED

    @property
    def is_open(self) -> bool:
        return self._state is CircuitState.OPEN

    @property
    def is_half_open(self) -> bool:
        return self._state is CircuitState.HALF_OPEN

    def _move_to(self, state: CircuitState) -> None:
        if state is self._state:
            return
        logger.log(
            logging.WARNING if state is CircuitState.OPEN else logging.INFO,
            f"Circuit '{self._name}' {self._state.value} -> {state.value}",
            extra={
                "circuit_name": self._name,
                "previous_state": self._state.value,
                "new_state": state.value,
                "failure_count": self._failure_count,
            },
        )
        self._state = state
        self._opened_at = self._clock() if state is CircuitState.OPEN else None

    async def can_execute(self) -> bool:
        """Whether a call may go out now; moves open to half-open when due."""
        async with self._lock:
            if self._state is not CircuitState.OPEN:
                return True
            if self._clock() - (self._opened_at or 0.0) < self._config.recovery_timeout:
                return False
            self._move_to(CircuitState.HALF_OPEN)
            return True

    async def record_success(self) -> None:
        async with self._lock:
            self._failure_count = 0
            self._move_to(CircuitState.CLOSED)

    async def record_failure(self) -> None:
        async with self._lock:
            self._failure_count += 1
            if self._state is CircuitState.HALF_OPEN or (
                self._failure_count >= self._config.failure_threshold
            ):
                self._move_to(CircuitState.OPEN)
