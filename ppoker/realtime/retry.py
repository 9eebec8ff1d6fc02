"""
Planning Poker - Reconnect Policy

Bounded exponential backoff used when (re)connecting to the relay server.
"""

from dataclasses import dataclass
from typing import Iterator


@dataclass(frozen=True)
class RetryPolicy:
    """
    Backoff schedule for connection attempts.

    Attributes:
        max_attempts: Retries after the first failed attempt
        base_delay: Delay before the first retry, in seconds
        max_delay: Upper bound for any single delay
        multiplier: Growth factor between consecutive delays
    """
    max_attempts: int = 5
    base_delay: float = 0.5
    max_delay: float = 10.0
    multiplier: float = 2.0

    def __post_init__(self) -> None:
        """Validate the schedule."""
        if self.max_attempts < 0:
            raise ValueError(f"max_attempts cannot be negative, got {self.max_attempts}.")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("Retry delays cannot be negative.")
        if self.multiplier < 1:
            raise ValueError(f"multiplier must be at least 1, got {self.multiplier}.")

    def delays(self) -> Iterator[float]:
        """Yield the wait before each retry; exhaustion means give up."""
        for attempt in range(self.max_attempts):
            yield min(self.max_delay, self.base_delay * self.multiplier ** attempt)
