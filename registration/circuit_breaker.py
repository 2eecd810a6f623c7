"""Circuit breaker for the registration backend.

Purpose: stop hammering the RPC endpoint when it is down. Booking and
submission fail fast with a clear message instead of waiting on retries.

States:
- CLOSED: Normal operation, calls pass through
- OPEN: Backend failing, calls fail immediately
- HALF_OPEN: Cooldown elapsed, allow one probe call
"""
import logging
import time
from enum import Enum
from typing import Any, Callable, Optional, Tuple, Type

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(Exception):
    """Raised when the backend circuit is open (fail fast)."""
    pass


class CircuitBreaker:
    """Circuit breaker around backend calls."""

    def __init__(
        self,
        failure_threshold: int = 5,
        timeout: int = 60,
        clock: Optional[Callable[[], float]] = None,
        counted_exceptions: Tuple[Type[BaseException], ...] = (Exception,)
    ):
        """
        Args:
            failure_threshold: Consecutive failures before opening
            timeout: Seconds to stay open before a half-open probe
            clock: Monotonic time source (tests pass a fake)
            counted_exceptions: Failures that count toward opening. Anything
                else (e.g. a backend that answered with a business error)
                passes through without counting as an outage.
        """
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.failure_count = 0
        self.last_failure_time: Optional[float] = None
        self._clock = clock or time.monotonic
        self.counted_exceptions = counted_exceptions
        self._state = CircuitState.CLOSED

    @property
    def state(self) -> str:
        return self._state.value

    def call(self, func: Callable, *args, **kwargs) -> Any:
        """
        Execute func under circuit protection.

        Raises:
            CircuitBreakerOpen: If the circuit is open
        """
        if self._state == CircuitState.OPEN:
            if self._should_attempt_reset():
                self._state = CircuitState.HALF_OPEN
                logger.info("Backend circuit transitioning to HALF_OPEN")
            else:
                raise CircuitBreakerOpen(
                    f"Registration service unavailable. "
                    f"Retry after {self._time_until_retry():.1f}s"
                )

        try:
            result = func(*args, **kwargs)
        except self.counted_exceptions:
            self._on_failure()
            raise
        except Exception:
            # Backend answered; the call failed for a business reason
            self._on_success()
            raise
        self._on_success()
        return result

    def _should_attempt_reset(self) -> bool:
        if self.last_failure_time is None:
            return True
        return self._clock() - self.last_failure_time >= self.timeout

    def _time_until_retry(self) -> float:
        if self.last_failure_time is None:
            return 0
        return max(0, self.timeout - (self._clock() - self.last_failure_time))

    def _on_success(self):
        self.failure_count = 0
        if self._state == CircuitState.HALF_OPEN:
            self._state = CircuitState.CLOSED
            logger.info("Backend circuit closed after successful probe")

    def _on_failure(self):
        self.failure_count += 1
        self.last_failure_time = self._clock()

        if self._state == CircuitState.HALF_OPEN:
            self._state = CircuitState.OPEN
            logger.warning("Backend circuit reopened after failed probe")
        elif self.failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.error(
                f"Backend circuit opened after {self.failure_count} failures. "
                f"Cooldown: {self.timeout}s"
            )
