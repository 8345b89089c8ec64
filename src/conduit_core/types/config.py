"""Shared configuration types for conduit."""

from dataclasses import dataclass

from .enums import BackoffType


@dataclass
class RetryConfig:
    """Retry configuration for reconnect attempts."""

    max_attempts: int = 3
    backoff: BackoffType = BackoffType.EXPONENTIAL
    delay_seconds: float = 1.0
    max_delay_seconds: float = 60.0

    def delay_for(self, attempt: int) -> float:
        """Delay before the given retry attempt (1-based).

        Args:
            attempt: Retry attempt number, starting at 1

        Returns:
            Delay in seconds
        """
        if self.backoff == BackoffType.FIXED:
            return self.delay_seconds
        return min(self.delay_seconds * (2 ** max(attempt - 1, 0)), self.max_delay_seconds)
