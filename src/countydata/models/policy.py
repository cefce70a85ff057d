"""
Retry and Batch Policies

Value objects that carry retry/backoff and batching/throttling decisions so
the fetch logic that consumes them stays policy-free.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from config.settings import settings


class RetryPolicy(BaseModel):
    """
    Sequential retry schedule for a single request target.

    Attributes:
        max_attempts: Total attempts including the first one
        delay_seconds: Delay after the first failed attempt
        backoff_factor: Multiplier applied per further failure (1.0 = fixed delay)
        max_delay_seconds: Upper bound on any single delay
        timeout_seconds: Per-request timeout
    """

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(3, ge=1)
    delay_seconds: float = Field(2.0, ge=0)
    backoff_factor: float = Field(1.0, ge=1.0)
    max_delay_seconds: float = Field(60.0, ge=0)
    timeout_seconds: float = Field(30.0, gt=0)

    def delay_for(self, attempt: int) -> float:
        """
        Delay to wait after a failed attempt.

        Args:
            attempt: 1-based number of the attempt that just failed

        Returns:
            Seconds to sleep before the next attempt
        """
        delay = self.delay_seconds * (self.backoff_factor ** max(attempt - 1, 0))
        return min(delay, self.max_delay_seconds)

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_attempts=settings.scraper_max_attempts,
            delay_seconds=settings.scraper_retry_delay_seconds,
            backoff_factor=settings.scraper_backoff_factor,
            timeout_seconds=settings.scraper_timeout_seconds,
        )


class BatchPolicy(BaseModel):
    """
    Bounded fan-out with an inter-batch delay.

    Attributes:
        batch_size: Maximum number of concurrent units per batch
        delay_seconds: Pause between consecutive batches
        timeout_seconds: Per-request timeout for units inside a batch
    """

    model_config = ConfigDict(frozen=True)

    batch_size: int = Field(10, ge=1)
    delay_seconds: float = Field(1.0, ge=0)
    timeout_seconds: Optional[float] = Field(None, gt=0)

    def batches(self, items: list) -> list:
        """Split items into consecutive batches of at most batch_size."""
        return [items[i:i + self.batch_size] for i in range(0, len(items), self.batch_size)]

    @classmethod
    def for_discovery(cls) -> "BatchPolicy":
        return cls(
            batch_size=settings.discovery_batch_size,
            delay_seconds=settings.discovery_batch_delay_seconds,
            timeout_seconds=settings.discovery_get_timeout_seconds,
        )

    @classmethod
    def for_geocoding(cls) -> "BatchPolicy":
        return cls(
            batch_size=settings.geocode_batch_size,
            delay_seconds=settings.geocode_batch_delay_seconds,
            timeout_seconds=settings.geocode_timeout_seconds,
        )
