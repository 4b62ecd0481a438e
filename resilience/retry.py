"""
Exponential backoff for reconnecting to failing dependencies.

The change notifier resubscribes to the store's change feed with these
delays. ``max_attempts=None`` means retry forever; the delay itself is
always capped by ``max_delay`` when one is set.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple, Type


@dataclass
class RetryConfig:
    """
    Configuration for retry behavior.

    Attributes:
        max_attempts: Maximum number of attempts, or None for no limit.
        initial_delay: Delay before the first retry in seconds.
        exponential_base: Base for exponential backoff (delays: 1s, 2s, 4s...).
        max_delay: Upper bound for a single delay in seconds, or None.
        retryable_exceptions: Exception types that should trigger a retry.
    """
    max_attempts: Optional[int] = 3
    initial_delay: float = 1.0
    exponential_base: float = 2.0
    max_delay: Optional[float] = None
    retryable_exceptions: Tuple[Type[Exception], ...] = field(
        default_factory=lambda: (Exception,)
    )

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given 0-indexed failed attempt."""
        return calculate_delay(attempt, self.initial_delay, self.exponential_base, self.max_delay)

    def attempts_exhausted(self, attempts: int) -> bool:
        """True once ``attempts`` failures have used up the budget."""
        return self.max_attempts is not None and attempts >= self.max_attempts


def calculate_delay(
    attempt: int,
    initial_delay: float,
    exponential_base: float,
    max_delay: Optional[float] = None
) -> float:
    """
    Calculate the delay for a given retry attempt using exponential backoff.

    The delay is ``initial_delay * (exponential_base ^ attempt)``, capped at
    ``max_delay``. For initial_delay=1.0 and exponential_base=2.0 the
    delays are 1s, 2s, 4s, 8s...

    Args:
        attempt: The current attempt number (0-indexed)
        initial_delay: The initial delay in seconds
        exponential_base: The base for exponential calculation
        max_delay: Optional maximum delay cap

    Returns:
        The calculated delay in seconds
    """
    if max_delay is not None and attempt > 64:
        # Large exponents overflow float; the cap applies anyway
        return max_delay

    delay = initial_delay * (exponential_base ** attempt)

    if max_delay is not None:
        delay = min(delay, max_delay)

    return delay
