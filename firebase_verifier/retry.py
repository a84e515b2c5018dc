"""
Retry mechanism for transient key retrieval failures.
"""

import asyncio
import functools
import random
from typing import Any, Optional, Callable, Awaitable

from .logging import get_logger


class RetryConfig:
    """Bounded exponential backoff: ``base_delay * 2 ** (attempt - 1)``, capped, with 10% jitter."""

    def __init__(self,
                 max_attempts: int = 3,
                 base_delay: float = 0.2,
                 max_delay: float = 5.0):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay


class RetryError(Exception):
    """Exception raised when all retry attempts are exhausted."""
    def __init__(self, message: str, last_exception: Exception, attempts: int):
        super().__init__(message)
        self.last_exception = last_exception
        self.attempts = attempts


def retry_on_exception(exceptions: tuple = (Exception,),
                       config: Optional[RetryConfig] = None,
                       **log_context: Any) -> Callable:
    """Decorator for retrying async functions on exceptions.

    ``log_context`` (e.g. the URL being fetched) is bound to every retry log event.
    """

    if config is None:
        config = RetryConfig()

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            logger = get_logger(f"retry.{func.__name__}").bind(**log_context)

            for attempt in range(1, config.max_attempts + 1):
                try:
                    result = await func(*args, **kwargs)

                    if attempt > 1:
                        logger.info("Retry succeeded", attempt=attempt)

                    return result

                except exceptions as e:
                    if attempt == config.max_attempts:
                        if config.max_attempts > 1:
                            logger.error(
                                "All retry attempts exhausted",
                                attempt=attempt,
                                max_attempts=config.max_attempts,
                                cause=str(e)
                            )
                        raise RetryError(
                            f"{func.__name__} failed after {config.max_attempts} attempts",
                            last_exception=e,
                            attempts=config.max_attempts
                        ) from e

                    delay = backoff_delay(attempt, config)

                    logger.warning(
                        "Transient failure, retrying",
                        attempt=attempt,
                        delay=delay,
                        cause=str(e)
                    )

                    await asyncio.sleep(delay)

            raise RuntimeError("retry loop exited without a result")  # max_attempts < 1

        return wrapper

    return decorator


def backoff_delay(attempt: int, config: RetryConfig) -> float:
    """Delay before the attempt following ``attempt``."""
    delay = min(config.base_delay * 2 ** (attempt - 1), config.max_delay)
    delay += random.uniform(-delay * 0.1, delay * 0.1)
    return max(0.0, delay)
