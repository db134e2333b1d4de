"""
Retry Policy - Bounded exponential backoff for retryable workspace errors.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RetryPolicy:
    """
    How often and how long to retry.

    The n-th retry waits ``backoff_base * 2 ** (n - 1)`` seconds, capped at
    ``backoff_max``. A server-provided ``Retry-After`` wins when it is longer.
    """

    max_attempts: int = 4
    backoff_base: float = 0.5
    backoff_max: float = 8.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def should_retry(self, attempt: int) -> bool:
        """Whether another attempt follows attempt number ``attempt`` (1-based)."""
        return attempt < self.max_attempts

    def delay_for(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """Seconds to wait after failed attempt number ``attempt``."""
        delay = min(self.backoff_max, self.backoff_base * (2 ** (attempt - 1)))
        if retry_after is not None and retry_after > delay:
            return float(retry_after)
        return delay
