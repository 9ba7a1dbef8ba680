"""
Bounded retry logic.

Provides a decorator that re-runs an operation when it raises one of the
given exceptions, up to a fixed number of retries, and raises a RetryError
(or a chosen subclass) once the attempts are used up.
"""

import time
import functools
from typing import Callable, Type, Tuple, Optional

from .errors import RetryError


def exponential_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable] = None,
    exhausted: Type[RetryError] = RetryError,
):
    """
    Decorator for retrying functions with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts (0 = no retries)
        base_delay: Initial delay in seconds (0 retries immediately)
        max_delay: Maximum delay between retries in seconds
        exponential_base: Base for exponential calculation (delay *= base)
        exceptions: Tuple of exceptions to catch and retry
        on_retry: Optional callback function(attempt, exception, delay)
        exhausted: RetryError subclass raised when all attempts fail

    Example:
        @exponential_backoff(max_retries=5, base_delay=0, exceptions=(CollisionDetected,))
        def draw_batch(n):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            delay = base_delay

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    # Don't sleep after the last attempt
                    if attempt < max_retries:
                        current_delay = min(delay, max_delay)

                        if on_retry:
                            on_retry(attempt + 1, e, current_delay)

                        if current_delay > 0:
                            time.sleep(current_delay)
                        delay *= exponential_base
                    else:
                        raise exhausted(
                            f"Failed after {max_retries + 1} attempts: {str(e)}"
                        ) from e

        return wrapper
    return decorator
