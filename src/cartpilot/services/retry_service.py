"""Retry service for worker retry decisions and backoff delays."""
import random
from typing import Union
from cartpilot.core.enums import RetryPolicy
from cartpilot.services.error_classifier import is_retryable_error


class RetryService:
    """
    Service for retry decisions and backoff calculations.

    Shared by every worker delegation so that blocking and optional
    workers follow the same retry rules.
    """

    def __init__(
        self,
        retry_policy: RetryPolicy = RetryPolicy.IMMEDIATE,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
    ):
        """
        Initialize retry service.

        Args:
            retry_policy: Backoff policy applied between attempts
            base_delay: Base delay in seconds
            max_delay: Maximum delay in seconds (for exponential and jitter)
        """
        self.retry_policy = retry_policy
        self.base_delay = base_delay
        self.max_delay = max_delay

    def calculate_delay(self, attempt: int) -> float:
        """
        Calculate the delay before the next attempt.

        Args:
            attempt: Number of the attempt that just failed (1-based)

        Returns:
            float: Delay in seconds
        """
        if self.retry_policy == RetryPolicy.IMMEDIATE:
            return 0.0

        if self.retry_policy == RetryPolicy.FIXED:
            return self.base_delay

        # Exponential backoff: base_delay * 2^(attempt - 1)
        exponential_delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)

        if self.retry_policy == RetryPolicy.JITTER:
            # Add random jitter (0 to 50% of exponential delay)
            return exponential_delay + random.uniform(0, exponential_delay * 0.5)

        return exponential_delay

    def has_attempts_left(self, attempt: int, max_retries: int) -> bool:
        """
        Check if another attempt fits in the retry budget.

        Args:
            attempt: Number of attempts made so far
            max_retries: Retries allowed after the first attempt

        Returns:
            bool: True if another attempt is allowed
        """
        return attempt <= max_retries

    def should_retry(
        self, error: Union[BaseException, str, None], attempt: int, max_retries: int
    ) -> bool:
        """
        Decide whether a failed attempt should be retried.

        Args:
            error: Failure of the attempt
            attempt: Number of attempts made so far
            max_retries: Retries allowed after the first attempt

        Returns:
            bool: True if the error is transient and attempts remain
        """
        return is_retryable_error(error) and self.has_attempts_left(attempt, max_retries)
