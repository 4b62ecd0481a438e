"""
Circuit breaker guarding calls to the document store.

When the store keeps failing, the breaker opens and further calls fail
immediately instead of each waiting out a server-selection timeout. After
the recovery timeout a single probe call is let through; its outcome
closes or re-opens the circuit.

States:
- CLOSED: calls pass through, consecutive failures are counted
- OPEN: calls are rejected with CircuitOpenException
- HALF_OPEN: one probe call is allowed
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Optional


class CircuitState(Enum):
    """
    Circuit breaker states.

    - CLOSED -> OPEN: after failure_threshold consecutive failures
    - OPEN -> HALF_OPEN: after recovery_timeout has elapsed
    - HALF_OPEN -> CLOSED: on a successful probe
    - HALF_OPEN -> OPEN: on a failed probe
    """
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    """
    Configuration for a circuit breaker.

    Attributes:
        failure_threshold: Consecutive failures before the circuit opens.
        recovery_timeout: Time the circuit stays open before a probe.
        half_open_max_calls: Probe calls allowed while half-open.
    """
    failure_threshold: int = 3
    recovery_timeout: timedelta = field(default_factory=lambda: timedelta(seconds=30))
    half_open_max_calls: int = 1


class CircuitOpenException(Exception):
    """Raised when a call is rejected because the circuit is open."""

    def __init__(self, circuit_name: str, time_until_retry: Optional[timedelta] = None):
        self.circuit_name = circuit_name
        self.time_until_retry = time_until_retry

        message = f"Circuit breaker '{circuit_name}' is open"
        if time_until_retry is not None:
            seconds = int(time_until_retry.total_seconds())
            message += f", retry in {seconds} seconds"

        super().__init__(message)


class CircuitBreaker:
    """
    Async circuit breaker.

    Example:
        breaker = CircuitBreaker("mongodb", CircuitBreakerConfig(failure_threshold=3))
        document = await breaker.execute(collection.find_one, {"_id": oid})

    Only exceptions listed in ``counted_exceptions`` trip the breaker, so a
    caller bug (a TypeError, say) does not make the store look unhealthy.
    """

    def __init__(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
        counted_exceptions: tuple[type[BaseException], ...] = (Exception,),
    ):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self.counted_exceptions = counted_exceptions
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[datetime] = None
        self._half_open_calls = 0
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        """Get the current circuit state."""
        return self._state

    @property
    def failure_count(self) -> int:
        """Get the current consecutive failure count."""
        return self._failure_count

    def _should_attempt_reset(self) -> bool:
        if self._last_failure_time is None:
            return True
        elapsed = datetime.utcnow() - self._last_failure_time
        return elapsed >= self.config.recovery_timeout

    def _get_time_until_retry(self) -> Optional[timedelta]:
        if self._last_failure_time is None:
            return None
        elapsed = datetime.utcnow() - self._last_failure_time
        remaining = self.config.recovery_timeout - elapsed
        if remaining.total_seconds() <= 0:
            return None
        return remaining

    def _on_success(self) -> None:
        if self._state == CircuitState.HALF_OPEN:
            self._state = CircuitState.CLOSED
            self._half_open_calls = 0
        self._failure_count = 0

    def _on_failure(self) -> None:
        self._last_failure_time = datetime.utcnow()

        if self._state == CircuitState.HALF_OPEN:
            self._state = CircuitState.OPEN
            self._half_open_calls = 0
        elif self._state == CircuitState.CLOSED:
            self._failure_count += 1
            if self._failure_count >= self.config.failure_threshold:
                self._state = CircuitState.OPEN

    async def execute(
        self,
        func: Callable[..., Any],
        *args: Any,
        **kwargs: Any
    ) -> Any:
        """
        Await ``func(*args, **kwargs)`` under circuit breaker protection.

        Raises:
            CircuitOpenException: If the circuit is open, or half-open with
                its probe already in flight.
            Exception: Whatever the wrapped call raises.
        """
        async with self._lock:
            if self._state == CircuitState.OPEN:
                if self._should_attempt_reset():
                    self._state = CircuitState.HALF_OPEN
                    self._half_open_calls = 0
                else:
                    raise CircuitOpenException(self.name, self._get_time_until_retry())

            if self._state == CircuitState.HALF_OPEN:
                if self._half_open_calls >= self.config.half_open_max_calls:
                    raise CircuitOpenException(self.name, self._get_time_until_retry())
                self._half_open_calls += 1

        # The call itself runs outside the lock
        try:
            result = await func(*args, **kwargs)
        except self.counted_exceptions:
            async with self._lock:
                self._on_failure()
            raise
        except BaseException:
            # Not a store failure; free the probe slot without judging the store
            async with self._lock:
                if self._state == CircuitState.HALF_OPEN:
                    self._half_open_calls = max(0, self._half_open_calls - 1)
            raise

        async with self._lock:
            self._on_success()
        return result

    def reset(self) -> None:
        """Manually reset the circuit breaker to the closed state."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time = None
        self._half_open_calls = 0

    def __repr__(self) -> str:
        return (
            f"CircuitBreaker(name={self.name!r}, state={self._state.value}, "
            f"failure_count={self._failure_count})"
        )
