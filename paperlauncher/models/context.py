"""Network tuning models carried by the launch context."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class RetryPolicy(BaseModel):
    """Bounded retry with exponential backoff.

    Delay before attempt ``n`` (1-based, n > 1) is
    ``base_delay * multiplier ** (n - 2)``.
    """

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=2.0, ge=0.0)
    multiplier: float = Field(default=2.0, ge=1.0)

    def delays(self) -> list[float]:
        """Return the waits inserted between consecutive attempts."""
        return [
            self.base_delay * self.multiplier**i
            for i in range(self.max_attempts - 1)
        ]
