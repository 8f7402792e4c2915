"""Consecutive-failure circuit breaker for the moderation provider."""

import logging
import time
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(Exception):
    """Raised when a call is short-circuited by an open breaker."""

    def __init__(self, name: str, retry_after: float):
        self.name = name
        self.retry_after = retry_after
        super().__init__(
            f"Circuit '{name}' is open; retry after {retry_after:.1f}s"
        )


class CircuitBreaker:
    """
    Trips after ``failure_threshold`` consecutive failures and stays open for
    ``reset_timeout`` seconds. After the cooldown one trial call is let through
    (half-open): success closes the circuit, failure opens it again.

    One breaker is shared by every call made through the same evaluator, so
    concurrent turns see the same state.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        reset_timeout: float = 30.0,
        name: str = "moderation",
        clock: Optional[Callable[[], float]] = None,
        on_open: Optional[Callable[[], None]] = None,
    ):
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.name = name
        self._clock = clock or time.monotonic
        self.on_open = on_open
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._opened_at: Optional[float] = None
        self._trial_in_flight = False

    @property
    def state(self) -> CircuitState:
        if self._state == CircuitState.OPEN and self._cooldown_elapsed():
            return CircuitState.HALF_OPEN
        return self._state

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def _cooldown_elapsed(self) -> bool:
        return self._opened_at is not None and self._clock() - self._opened_at >= self.reset_timeout

    def before_call(self) -> None:
        """
        Check whether a call may proceed.

        Raises:
            CircuitOpenError: If the circuit is open, or a half-open trial is
                already in flight
        """
        if self._state == CircuitState.CLOSED:
            return

        if self._state == CircuitState.OPEN:
            if not self._cooldown_elapsed():
                raise CircuitOpenError(self.name, self._retry_after())
            self._state = CircuitState.HALF_OPEN
            self._trial_in_flight = False
            logger.info(f"Circuit '{self.name}' half-open, allowing a trial call")

        if self._trial_in_flight:
            raise CircuitOpenError(self.name, 0.0)
        self._trial_in_flight = True

    def record_success(self) -> None:
        if self._state != CircuitState.CLOSED:
            logger.info(f"Circuit '{self.name}' closed after successful trial call")
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._opened_at = None
        self._trial_in_flight = False

    def record_failure(self) -> None:
        self._consecutive_failures += 1
        self._trial_in_flight = False

        if self._state == CircuitState.HALF_OPEN or self._consecutive_failures >= self.failure_threshold:
            self._open()

    def release(self) -> None:
        """Give back a half-open trial slot without recording an outcome (cancelled call)."""
        self._trial_in_flight = False

    def reset(self) -> None:
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._opened_at = None
        self._trial_in_flight = False

    def _open(self) -> None:
        was_open = self._state == CircuitState.OPEN
        self._state = CircuitState.OPEN
        self._opened_at = self._clock()
        if not was_open:
            logger.warning(
                f"Circuit '{self.name}' opened after {self._consecutive_failures} "
                f"consecutive failures; short-circuiting for {self.reset_timeout}s"
            )
            if self.on_open is not None:
                self.on_open()

    def _retry_after(self) -> float:
        if self._opened_at is None:
            return 0.0
        return max(0.0, self.reset_timeout - (self._clock() - self._opened_at))
