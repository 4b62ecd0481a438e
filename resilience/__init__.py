"""
Resilience patterns for the fleet backend.

- Circuit breaker around document store calls
- Exponential backoff for change feed resubscription
"""

from resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitOpenException,
    CircuitState,
)
from resilience.retry import RetryConfig, calculate_delay

__all__ = [
    # Circuit breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitOpenException",
    "CircuitState",
    # Backoff
    "RetryConfig",
    "calculate_delay",
]
