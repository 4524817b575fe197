"""Retry policy: exponential backoff with a hard ceiling."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from hookline.config import Settings


def next_delay(
    attempt: int,
    initial_delay: float,
    multiplier: float,
    max_delay: float,
) -> float:
    """Delay in seconds before the attempt after ``attempt``.

    ``min(initial_delay * multiplier ** (attempt - 1), max_delay)``

    Args:
        attempt: 1-based number of the attempt that just failed.
        initial_delay: Delay after the first failure.
        multiplier: Growth factor per attempt.
        max_delay: Ceiling.

    Raises:
        ValueError: If attempt < 1.

    Examples:
        >>> next_delay(1, 60, 2, 3600)
        60
        >>> next_delay(10, 60, 2, 3600)
        3600
    """
    if attempt < 1:
        raise ValueError(f"attempt is 1-based, got {attempt}")
    # Bounded exponent: huge attempt counts must not overflow a float power.
    if multiplier > 1 and initial_delay * multiplier ** min(attempt - 1, 64) >= max_delay:
        return max_delay
    return min(initial_delay * multiplier ** (attempt - 1), max_delay)


def is_exhausted(attempts: int, max_retries: int) -> bool:
    """True once the delivery has used every permitted attempt."""
    return attempts >= max_retries


class RetryPolicy(BaseModel):
    """Backoff configuration bundled for the dispatcher.

    Attributes:
        initial_delay_seconds: Delay after the first failed attempt.
        multiplier: Growth factor per attempt.
        max_delay_seconds: Ceiling on a single delay.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    initial_delay_seconds: float = Field(default=60, gt=0)
    multiplier: float = Field(default=2, ge=1)
    max_delay_seconds: float = Field(default=3600, gt=0)

    @classmethod
    def from_settings(cls, settings: Settings) -> RetryPolicy:
        return cls(
            initial_delay_seconds=settings.retry.initial_delay_seconds,
            multiplier=settings.retry.backoff_multiplier,
            max_delay_seconds=settings.retry.max_delay_seconds,
        )

    def next_delay(self, attempt: int) -> float:
        """Delay in seconds after the given failed attempt."""
        return next_delay(
            attempt,
            self.initial_delay_seconds,
            self.multiplier,
            self.max_delay_seconds,
        )

    def next_delay_ms(self, attempt: int) -> int:
        """Same as :meth:`next_delay`, in whole milliseconds for the queue."""
        return int(round(self.next_delay(attempt) * 1000))

    def is_exhausted(self, attempts: int, max_retries: int) -> bool:
        return is_exhausted(attempts, max_retries)


__all__ = ["RetryPolicy", "is_exhausted", "next_delay"]
