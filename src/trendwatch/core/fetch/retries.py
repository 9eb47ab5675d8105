"""
Retry utilities with tenacity.

The page fetcher never retries; consumers that want automatic recovery
from transport failures wrap their page loads with ``retry_async``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random_exponential,
)
from tenacity.wait import wait_base

if TYPE_CHECKING:
    from trendwatch.core.config.models import RetryPolicyConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Default retry configuration
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_MIN_WAIT = 1  # seconds
DEFAULT_MAX_WAIT = 30  # seconds
DEFAULT_MULTIPLIER = 2


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        min_wait: float = DEFAULT_MIN_WAIT,
        max_wait: float = DEFAULT_MAX_WAIT,
        multiplier: float = DEFAULT_MULTIPLIER,
        jitter: bool = True,
        retry_exceptions: tuple[type[Exception], ...] | None = None,
    ):
        """Initialize retry configuration.

        Args:
            max_attempts: Maximum number of attempts
            min_wait: Minimum wait time in seconds
            max_wait: Maximum wait time in seconds
            multiplier: Exponential backoff multiplier
            jitter: Add random jitter to wait times
            retry_exceptions: Exception types to retry on
        """
        self.max_attempts = max_attempts
        self.min_wait = min_wait
        self.max_wait = max_wait
        self.multiplier = multiplier
        self.jitter = jitter
        self.retry_exceptions = retry_exceptions or (Exception,)

    @classmethod
    def from_policy(
        cls,
        policy: RetryPolicyConfig,
        retry_exceptions: tuple[type[Exception], ...] | None = None,
    ) -> "RetryConfig":
        """Build from the ``retry`` section of the app configuration."""
        return cls(
            max_attempts=policy.max_attempts,
            min_wait=policy.min_wait,
            max_wait=policy.max_wait,
            multiplier=policy.multiplier,
            jitter=policy.jitter,
            retry_exceptions=retry_exceptions,
        )

    def wait_strategy(self) -> wait_base:
        """Build the tenacity wait strategy."""
        if self.jitter:
            return wait_random_exponential(
                multiplier=self.multiplier,
                min=self.min_wait,
                max=self.max_wait,
            )
        return wait_exponential(
            multiplier=self.multiplier,
            min=self.min_wait,
            max=self.max_wait,
        )


async def retry_async(
    coro_func: Callable[[int], Awaitable[T]],
    *,
    config: RetryConfig | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """Execute an async function with retry logic.

    ``coro_func`` receives the 1-based attempt number so the first call
    can differ from the retries (load vs. retry a page).

    Args:
        coro_func: Async function to call
        config: Retry configuration
        sleep: Awaitable sleep used between attempts

    Returns:
        Function result

    Raises:
        Exception: The last error once all attempts fail
    """
    if config is None:
        config = RetryConfig()

    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(config.max_attempts),
        wait=config.wait_strategy(),
        retry=retry_if_exception_type(config.retry_exceptions),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        sleep=sleep,
        reraise=True,
    ):
        with attempt:
            return await coro_func(attempt.retry_state.attempt_number)

