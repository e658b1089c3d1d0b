"""
Circuit breaker guarding calls to the cache backend
"""

import time
from collections.abc import Callable
from threading import Lock

from tree_app.shared.logging_config import get_project_logger


logger = get_project_logger(__name__)


class CircuitBreakerState:
    """States for circuit breaker state machine"""
    CLOSED = "CLOSED"        # Normal operation
    OPEN = "OPEN"            # Failing, calls rejected
    HALF_OPEN = "HALF_OPEN"  # Testing recovery


class CircuitBreaker:
    """
    Consecutive-failure circuit breaker.

    Trips OPEN after ``threshold`` consecutive failures and rejects calls for
    ``recovery_timeout_sec``. The first call after that runs HALF_OPEN: a
    success closes the breaker, a failure opens it again.
    """

    def __init__(self, name: str, threshold: int = 5, recovery_timeout_sec: float = 30,
                 clock: Callable[[], float] = time.monotonic):
        self.name = name
        self.threshold = threshold
        self.recovery_timeout_sec = recovery_timeout_sec
        self._clock = clock

        self._state = CircuitBreakerState.CLOSED
        self._consecutive_failures = 0
        self._trip_time: float | None = None
        self._lock = Lock()

    def allow_request(self) -> bool:
        """Whether a call may go through right now"""
        with self._lock:
            if self._state != CircuitBreakerState.OPEN:
                return True
            if self._clock() - self._trip_time >= self.recovery_timeout_sec:
                self._state = CircuitBreakerState.HALF_OPEN
                logger.info(f"Circuit breaker '{self.name}' HALF_OPEN (attempting recovery)")
                return True
            return False

    def record_success(self):
        with self._lock:
            if self._state == CircuitBreakerState.HALF_OPEN:
                logger.info(f"Circuit breaker '{self.name}' CLOSED (recovery successful)")
            self._state = CircuitBreakerState.CLOSED
            self._consecutive_failures = 0
            self._trip_time = None

    def record_failure(self) -> bool:
        """Record a failure; returns True when this failure tripped the breaker"""
        with self._lock:
            self._consecutive_failures += 1
            should_trip = (
                self._state == CircuitBreakerState.HALF_OPEN
                or (self._state == CircuitBreakerState.CLOSED and self._consecutive_failures >= self.threshold)
            )
            if not should_trip:
                return False
            self._state = CircuitBreakerState.OPEN
            self._trip_time = self._clock()
            logger.warning(
                f"Circuit breaker '{self.name}' OPEN after {self._consecutive_failures} failures, "
                f"retrying in {self.recovery_timeout_sec}s"
            )
            return True

    @property
    def state(self) -> str:
        with self._lock:
            return self._state

    def reset(self):
        with self._lock:
            self._state = CircuitBreakerState.CLOSED
            self._consecutive_failures = 0
            self._trip_time = None
