"""Exponential backoff retry for async storage operations."""

import asyncio
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from functools import wraps
from typing import Any, TypeVar

from timecapsule.logging import get_pipeline_logger

logger = get_pipeline_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry policy for async operations with exponential backoff.

    @public

    Args:
        attempts: Maximum number of attempts (default 3)
        base_delay: Initial delay in seconds (default 1.0)
        max_delay: Maximum delay between retries (default 10.0)
        retry_on: Exception types that trigger a retry; others propagate at once
    """

    attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    retry_on: tuple[type[Exception], ...] = (Exception,)


def retry_async(
    policy: RetryPolicy,
) -> Callable[[Callable[..., Coroutine[Any, Any, T]]], Callable[..., Coroutine[Any, Any, T]]]:
    """Decorator for async functions with exponential backoff retry.

    @public
    """

    def decorator(
        func: Callable[..., Coroutine[Any, Any, T]],
    ) -> Callable[..., Coroutine[Any, Any, T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            last_exception: Exception | None = None

            for attempt in range(policy.attempts):
                try:
                    return await func(*args, **kwargs)
                except policy.retry_on as e:
                    last_exception = e
                    if attempt < policy.attempts - 1:
                        delay = min(policy.base_delay * (2**attempt), policy.max_delay)
                        logger.warning(f"Storage operation failed: {e}. Retrying in {delay:.1f}s (attempt {attempt + 1}/{policy.attempts})")
                        await asyncio.sleep(delay)
                    else:
                        logger.error(f"Storage operation failed after {policy.attempts} attempts: {e}")

            if last_exception:
                raise last_exception
            raise RuntimeError("Retry logic error: no exception but no result")

        return wrapper

    return decorator


__all__ = ["RetryPolicy", "retry_async"]
