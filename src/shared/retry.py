"""Retry utilities with exponential backoff."""

import time
import random
from typing import Callable, TypeVar, Optional, Type, Tuple
from functools import wraps

from shared.logging import get_logger

T = TypeVar('T')

logger = get_logger(__name__)


def compute_backoff(
    attempt: int,
    backoff_seconds: float,
    exponential: bool = True,
    jitter: bool = True,
    max_backoff: float = 60.0
) -> float:
    """Wait time before the next attempt (attempt is 1-based)."""
    if exponential:
        wait_time = backoff_seconds * (2 ** (attempt - 1))
    else:
        wait_time = backoff_seconds * attempt

    wait_time = min(wait_time, max_backoff)

    if jitter:
        wait_time = wait_time * (0.5 + random.random())

    return wait_time


def retry_with_backoff(
    max_attempts: int = 3,
    backoff_seconds: float = 1.0,
    exponential: bool = True,
    jitter: bool = True,
    max_backoff: float = 60.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,)
):
    """
    Decorator for retrying a function with exponential backoff.

    Only the listed exception types are retried; anything else propagates on
    the first attempt.

    Args:
        max_attempts: Maximum number of attempts
        backoff_seconds: Initial backoff time in seconds
        exponential: Use exponential backoff (2^attempt * backoff_seconds)
        jitter: Add random jitter to backoff time
        max_backoff: Upper bound for a single wait
        exceptions: Tuple of exception types to catch and retry

    Returns:
        Decorated function
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            last_exception: Optional[Exception] = None

            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e

                    if attempt == max_attempts:
                        raise

                    wait_time = compute_backoff(
                        attempt, backoff_seconds, exponential, jitter, max_backoff
                    )
                    logger.debug(
                        f"{func.__name__} attempt {attempt}/{max_attempts} failed ({e}), "
                        f"retrying in {wait_time:.1f}s"
                    )
                    time.sleep(wait_time)

            if last_exception:
                raise last_exception
            raise RuntimeError("Retry logic failed unexpectedly")

        return wrapper
    return decorator
