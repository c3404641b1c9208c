"""Retry pattern with exponential backoff.

Used for outbound calls to Companies House. Transient failures (timeouts,
connection errors, 5xx and 429 responses) are retried with exponential
backoff and jitter. Everything else propagates immediately.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from functools import wraps
from typing import (
    Any,
    Awaitable,
    Callable,
    Optional,
    Tuple,
    Type,
    TypeVar,
    Union,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
ExceptionTypes = Union[Type[Exception], Tuple[Type[Exception], ...]]


class RetryExhausted(Exception):
    """Raised when all retry attempts have been exhausted."""

    def __init__(
        self,
        message: str,
        attempts: int,
        last_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.attempts = attempts
        self.last_exception = last_exception


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Maximum number of attempts (including the first).
        base_delay: Initial delay between retries in seconds.
        max_delay: Maximum delay between retries in seconds.
        backoff_multiplier: Multiplier for exponential backoff.
        jitter: Random jitter as a fraction of the delay (0-1).
        retryable_exceptions: Exception types that should trigger retry.
        non_retryable_exceptions: Exception types that should not retry.
    """
    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 8.0
    backoff_multiplier: float = 2.0
    jitter: float = 0.1
    retryable_exceptions: ExceptionTypes = (Exception,)
    non_retryable_exceptions: ExceptionTypes = ()

    @classmethod
    def from_settings(cls, settings: Any, **overrides: Any) -> "RetryConfig":
        """Build from a ResilienceSettings instance."""
        values = dict(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
            backoff_multiplier=settings.retry_backoff_multiplier,
        )
        values.update(overrides)
        return cls(**values)

    def calculate_delay(self, attempt: int) -> float:
        """Delay before the retry following ``attempt`` (1-indexed)."""
        delay = self.base_delay * (self.backoff_multiplier ** (attempt - 1))
        delay = min(delay, self.max_delay)

        if self.jitter > 0:
            jitter_range = delay * self.jitter
            delay = max(0.0, delay + random.uniform(-jitter_range, jitter_range))

        return delay

    def should_retry(self, exception: Exception) -> bool:
        if self.non_retryable_exceptions and isinstance(exception, self.non_retryable_exceptions):
            return False
        return isinstance(exception, self.retryable_exceptions)


async def retry_call(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    config: Optional[RetryConfig] = None,
    **kwargs: Any,
) -> T:
    """Await ``func(*args, **kwargs)`` with retries.

    Raises:
        RetryExhausted: when every attempt failed with a retryable error.
        Exception: the original exception when it is not retryable.
    """
    retry_config = config or RetryConfig()
    name = getattr(func, "__name__", repr(func))

    for attempt in range(1, retry_config.max_attempts + 1):
        try:
            return await func(*args, **kwargs)

        except Exception as e:
            if not retry_config.should_retry(e):
                raise

            if attempt >= retry_config.max_attempts:
                logger.warning(f"Retry exhausted for {name} after {attempt} attempts: {e}")
                raise RetryExhausted(
                    f"Retry exhausted after {attempt} attempts",
                    attempts=attempt,
                    last_exception=e,
                ) from e

            delay = retry_config.calculate_delay(attempt)
            logger.info(f"Retry {attempt}/{retry_config.max_attempts} for {name} in {delay:.2f}s: {e}")
            await asyncio.sleep(delay)

    raise RetryExhausted(
        f"Retry exhausted after {retry_config.max_attempts} attempts",
        attempts=retry_config.max_attempts,
    )


def async_retry(
    config: Optional[RetryConfig] = None,
    **kwargs: Any,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator form of :func:`retry_call`.

    Usage:
        @async_retry(max_attempts=3, base_delay=1.0)
        async def fetch():
            ...
    """
    retry_config = config or RetryConfig(**kwargs)

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: Any, **inner_kwargs: Any) -> T:
            return await retry_call(func, *args, config=retry_config, **inner_kwargs)
        return wrapper

    return decorator
