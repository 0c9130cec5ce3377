"""Circuit breaker for push provider calls.

The breaker keeps a failing provider from being hammered by every dispatch:

1. CLOSED state: Normal operation, calls pass through
2. OPEN state: Fast-fail calls without contacting the provider
3. HALF_OPEN state: Let a limited number of calls probe for recovery

State transitions:
- CLOSED -> OPEN: After failure_threshold consecutive failures
- OPEN -> HALF_OPEN: After timeout_seconds have elapsed
- HALF_OPEN -> CLOSED: After a successful call
- HALF_OPEN -> OPEN: If the probing call fails

Integration calls in this project return ``OperationResult`` instead of
raising, so ``call_operation`` counts transient results as failures while
``call`` keeps the exception-based behaviour.
"""

import threading
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationResult, OperationStatus

logger = get_module_logger()

FAILURE_STATUSES = (OperationStatus.TRANSIENT_ERROR,)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject calls immediately
    HALF_OPEN = "half_open"  # Testing recovery


class CircuitBreakerOpenError(Exception):
    """Raised when the circuit is open and a call is rejected."""

    def __init__(self, name: str, retry_in_seconds: int = 0):
        self.name = name
        self.retry_in_seconds = retry_in_seconds
        super().__init__(
            f"Circuit breaker '{name}' is OPEN. Retry in {retry_in_seconds} seconds."
        )


class CircuitBreaker:
    """Thread-safe circuit breaker.

    Args:
        name: Name of the circuit (typically the provider name)
        failure_threshold: Consecutive failures before opening
        timeout_seconds: Seconds to stay OPEN before probing (HALF_OPEN)
        half_open_max_calls: Max concurrent calls allowed while HALF_OPEN
        clock: Callable returning an aware UTC datetime (tests inject one)
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        timeout_seconds: int = 60,
        half_open_max_calls: int = 3,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.timeout_seconds = timeout_seconds
        self.half_open_max_calls = half_open_max_calls
        self._clock = clock or _utcnow

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[datetime] = None
        self._half_open_calls = 0

        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        """Get current circuit state."""
        with self._lock:
            return self._state

    def call(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Execute func through the breaker; any exception counts as a failure.

        Raises:
            CircuitBreakerOpenError: If the circuit is open
            Exception: Any exception raised by func
        """
        self._before_call()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            self._on_failure(str(e))
            raise
        finally:
            self._after_call()
        self._on_success()
        return result

    def call_operation(
        self, func: Callable[..., OperationResult], *args: Any, **kwargs: Any
    ) -> OperationResult:
        """Execute a function returning OperationResult through the breaker.

        Transient results count as failures. An open circuit is reported as a
        transient OperationResult with ``CIRCUIT_OPEN`` instead of raising.
        """
        try:
            self._before_call()
        except CircuitBreakerOpenError as e:
            return OperationResult.transient_error(
                str(e), error_code="CIRCUIT_OPEN", retry_after=e.retry_in_seconds
            )
        try:
            result = func(*args, **kwargs)
        finally:
            self._after_call()

        if result.status in FAILURE_STATUSES:
            self._on_failure(result.message)
        else:
            self._on_success()
        return result

    def _before_call(self) -> None:
        with self._lock:
            if self._state == CircuitState.OPEN:
                if self._should_attempt_reset():
                    self._transition_to_half_open()
                else:
                    remaining = int(self._remaining_open_seconds())
                    logger.warning(
                        "circuit_breaker_open",
                        name=self.name,
                        failure_count=self._failure_count,
                        retry_in_seconds=remaining,
                    )
                    raise CircuitBreakerOpenError(self.name, remaining)

            if self._state == CircuitState.HALF_OPEN:
                if self._half_open_calls >= self.half_open_max_calls:
                    logger.debug(
                        "circuit_breaker_half_open_limit",
                        name=self.name,
                        calls=self._half_open_calls,
                    )
                    raise CircuitBreakerOpenError(self.name, 0)
                self._half_open_calls += 1

    def _after_call(self) -> None:
        with self._lock:
            if self._state == CircuitState.HALF_OPEN and self._half_open_calls > 0:
                self._half_open_calls -= 1

    def _on_success(self) -> None:
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                logger.info("circuit_breaker_recovered", name=self.name)
                self._transition_to_closed()
            elif self._failure_count > 0:
                self._failure_count = 0

    def _on_failure(self, error: str) -> None:
        with self._lock:
            self._failure_count += 1
            self._last_failure_time = self._clock()

            if self._state == CircuitState.HALF_OPEN:
                logger.warning(
                    "circuit_breaker_recovery_failed", name=self.name, error=error
                )
                self._transition_to_open()
            elif self._state == CircuitState.CLOSED:
                if self._failure_count >= self.failure_threshold:
                    logger.error(
                        "circuit_breaker_threshold_exceeded",
                        name=self.name,
                        failure_count=self._failure_count,
                        threshold=self.failure_threshold,
                        error=error,
                    )
                    self._transition_to_open()
                else:
                    logger.warning(
                        "circuit_breaker_failure",
                        name=self.name,
                        failure_count=self._failure_count,
                        threshold=self.failure_threshold,
                        error=error,
                    )

    def _remaining_open_seconds(self) -> float:
        if self._last_failure_time is None:
            return 0.0
        elapsed = (self._clock() - self._last_failure_time).total_seconds()
        return max(0.0, self.timeout_seconds - elapsed)

    def _should_attempt_reset(self) -> bool:
        if self._last_failure_time is None:
            return True
        elapsed = self._clock() - self._last_failure_time
        return elapsed >= timedelta(seconds=self.timeout_seconds)

    def _transition_to_closed(self) -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._half_open_calls = 0

    def _transition_to_open(self) -> None:
        logger.error(
            "circuit_breaker_opened",
            name=self.name,
            timeout_seconds=self.timeout_seconds,
        )
        self._state = CircuitState.OPEN
        self._half_open_calls = 0

    def _transition_to_half_open(self) -> None:
        logger.info("circuit_breaker_half_open", name=self.name)
        self._state = CircuitState.HALF_OPEN
        self._failure_count = 0
        self._half_open_calls = 0

    def get_stats(self) -> Dict[str, Any]:
        """Get circuit breaker statistics."""
        with self._lock:
            return {
                "name": self.name,
                "state": self._state.value,
                "failure_count": self._failure_count,
                "last_failure_time": (
                    self._last_failure_time.isoformat()
                    if self._last_failure_time
                    else None
                ),
                "half_open_calls": self._half_open_calls,
            }

    def reset(self) -> None:
        """Manually reset the breaker (tests and admin operations)."""
        with self._lock:
            logger.info("circuit_breaker_manual_reset", name=self.name)
            self._transition_to_closed()


# Global registry for monitoring
_circuit_breaker_registry: Dict[str, CircuitBreaker] = {}


def register_circuit_breaker(cb: CircuitBreaker) -> None:
    """Register a circuit breaker for monitoring."""
    _circuit_breaker_registry[cb.name] = cb


def get_circuit_breaker(name: str) -> Optional[CircuitBreaker]:
    """Get a circuit breaker by name."""
    return _circuit_breaker_registry.get(name)


def get_all_circuit_breaker_stats() -> Dict[str, Dict[str, Any]]:
    """Get statistics for all registered circuit breakers."""
    return {name: cb.get_stats() for name, cb in _circuit_breaker_registry.items()}


def get_open_circuit_breakers() -> List[str]:
    """Names of registered circuit breakers that are currently OPEN."""
    return [
        name
        for name, cb in _circuit_breaker_registry.items()
        if cb.state == CircuitState.OPEN
    ]
