"""
Retry logic with exponential backoff for handling transient failures.

Used by the storage layer for operations that may fail temporarily,
such as a SQLite database locked by a concurrent writer.
"""

import functools
import time
from typing import Callable, Optional, Tuple, Type


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""
    pass


def exponential_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable] = None,
):
    """
    Decorator for retrying functions with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts (0 = no retries)
        base_delay: Initial delay in seconds
        max_delay: Maximum delay between retries in seconds
        exponential_base: Base for exponential calculation (delay *= base)
        exceptions: Tuple of exceptions to catch and retry
        on_retry: Optional callback function(attempt, exception, delay)

    Example:
        @exponential_backoff(max_retries=2, base_delay=0.2, exceptions=(OperationalError,))
        def load_rows(session):
            return session.execute(stmt).all()
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            delay = base_delay

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= max_retries:
                        raise RetryError(
                            f"Failed after {max_retries + 1} attempts: {e}"
                        ) from e

                    current_delay = min(delay, max_delay)
                    if on_retry:
                        on_retry(attempt + 1, e, current_delay)
                    time.sleep(current_delay)
                    delay *= exponential_base

        return wrapper
    return decorator


def is_transient_db_error(exception: Exception) -> bool:
    """
    Determine if a database error is likely transient and worth retrying.

    Args:
        exception: Exception to check

    Returns:
        True for lock contention and busy/timeout conditions
    """
    error_str = str(exception).lower()
    transient_keywords = [
        'database is locked',
        'database table is locked',
        'database is busy',
        'timeout',
        'disk i/o error',
    ]
    return any(keyword in error_str for keyword in transient_keywords)
