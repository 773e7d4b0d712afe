"""Retry utilities with exponential backoff.

Used for idempotent desk API reads only (rule list, rule detail,
custom fields, agent and agent group lookups). Writes are never retried
automatically: a failed save must be resubmitted by the user so that a
rule is never created twice.

Usage:
    from desk_rules.core.retry import retry_async, READ_RETRY_CONFIG

    rule = await retry_async(client.get_rule, rule_id, config=READ_RETRY_CONFIG)
"""
from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from desk_shared import get_logger

from desk_rules.core.exceptions import DeskConnectionError, DeskTimeoutError

log = get_logger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 2
    base_delay: float = 0.5  # seconds
    max_delay: float = 5.0  # seconds
    exponential_base: float = 2.0
    jitter: float = 0.1  # 10% jitter
    retryable_exceptions: tuple[type[Exception], ...] = (DeskConnectionError, DeskTimeoutError)

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay for given attempt with exponential backoff and jitter.

        Args:
            attempt: Current attempt number (1-based)

        Returns:
            Delay in seconds
        """
        delay = min(
            self.base_delay * (self.exponential_base ** (attempt - 1)),
            self.max_delay,
        )

        jitter_range = delay * self.jitter
        delay += random.uniform(-jitter_range, jitter_range)

        return max(0.0, delay)

    def should_retry(self, exception: Exception, attempt: int) -> bool:
        """Check if exception should trigger retry.

        Args:
            exception: The exception that occurred
            attempt: Current attempt number

        Returns:
            True if should retry
        """
        if attempt >= self.max_attempts:
            return False
        return isinstance(exception, self.retryable_exceptions)


READ_RETRY_CONFIG = RetryConfig()

# Single attempt, for callers that must not retry
NO_RETRY_CONFIG = RetryConfig(max_attempts=1)


async def retry_async(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    config: RetryConfig | None = None,
    on_retry: Callable[[Exception, int, float], None] | None = None,
    **kwargs: Any,
) -> T:
    """Execute async function with retry.

    Args:
        func: Async function to execute
        *args: Positional arguments for func
        config: Retry configuration
        on_retry: Optional callback(exception, attempt, delay) on each retry
        **kwargs: Keyword arguments for func

    Returns:
        Result of func

    Raises:
        The last exception raised by func once no attempts are left, or
        immediately for non-retryable exceptions.
    """
    config = config or READ_RETRY_CONFIG
    attempt = 0

    while True:
        attempt += 1
        try:
            return await func(*args, **kwargs)

        except Exception as e:
            if not config.should_retry(e, attempt):
                raise

            delay = config.calculate_delay(attempt)

            log.warning(
                "Retrying desk API read",
                function=getattr(func, "__name__", repr(func)),
                attempt=attempt,
                max_attempts=config.max_attempts,
                error=str(e),
                delay=round(delay, 2),
            )

            if on_retry:
                on_retry(e, attempt, delay)

            await asyncio.sleep(delay)
