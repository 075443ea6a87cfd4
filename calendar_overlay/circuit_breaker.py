"""Circuit breaker for calls to the clinic backend.

Purpose: stop hammering a backend that is down; fail fast until it has had
time to recover.

States:
- CLOSED: calls pass through
- OPEN: calls fail immediately with CircuitBreakerOpen
- HALF_OPEN: one trial call decides whether to close or re-open
"""
import threading
import time
from enum import Enum
from typing import Any, Callable, Optional

from calendar_overlay.logging_config import get_logger

logger = get_logger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(Exception):
    """Raised instead of calling the backend while the circuit is open."""

    def __init__(self, retry_after: float):
        self.retry_after = retry_after
        super().__init__(f"Backend circuit is open. Retry after {retry_after:.1f}s")


class CircuitBreaker:
    """Counts consecutive failures of a named backend and trips at a threshold."""

    def __init__(self, failure_threshold: int = 5, timeout: int = 60, name: str = "backend"):
        """
        Initialize circuit breaker.

        Args:
            failure_threshold: Consecutive failures before opening
            timeout: Seconds the circuit stays open before a trial call
            name: Label used in log events
        """
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.name = name
        self.failure_count = 0
        self.last_failure_time: Optional[float] = None
        self._state = CircuitState.CLOSED
        self._lock = threading.Lock()

    @property
    def state(self) -> str:
        return self._state.value

    def call(self, func: Callable, *args, **kwargs) -> Any:
        """
        Run func under breaker protection.

        Raises:
            CircuitBreakerOpen: If the circuit is open
            Exception: Whatever func raises (counted as a failure)
        """
        with self._lock:
            if self._state == CircuitState.OPEN:
                if self._time_until_retry() > 0:
                    raise CircuitBreakerOpen(self._time_until_retry())
                self._state = CircuitState.HALF_OPEN
                logger.info("circuit_half_open", circuit=self.name)

        try:
            result = func(*args, **kwargs)
        except Exception:
            self._on_failure()
            raise

        self._on_success()
        return result

    def reset(self):
        """Force the circuit closed and forget past failures."""
        with self._lock:
            self._state = CircuitState.CLOSED
            self.failure_count = 0
            self.last_failure_time = None

    def _time_until_retry(self) -> float:
        if self.last_failure_time is None:
            return 0
        return max(0.0, self.timeout - (time.time() - self.last_failure_time))

    def _on_success(self):
        with self._lock:
            self.failure_count = 0
            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.CLOSED
                logger.info("circuit_closed", circuit=self.name)

    def _on_failure(self):
        with self._lock:
            self.failure_count += 1
            self.last_failure_time = time.time()

            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.OPEN
                logger.warning("circuit_reopened", circuit=self.name)
            elif self.failure_count >= self.failure_threshold and self._state != CircuitState.OPEN:
                self._state = CircuitState.OPEN
                logger.error(
                    "circuit_opened",
                    circuit=self.name,
                    failures=self.failure_count,
                    timeout=self.timeout
                )
