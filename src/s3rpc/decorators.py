"""Decorator utilities for cross-cutting concerns."""
import functools
import logging
import time
from typing import Any, Callable, TypeVar, cast

logger = logging.getLogger(__name__)

F = TypeVar('F', bound=Callable[..., Any])


def async_log_execution_time(func: F) -> F:
    """Decorator to log async function execution time.

    Args:
        func: The async function to decorate

    Returns:
        Decorated async function that logs execution time, and the
        exception type on failure
    """
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        start_time = time.monotonic()
        try:
            result = await func(*args, **kwargs)
            duration = time.monotonic() - start_time
            logger.debug(f"{func.__qualname__} completed in {duration:.2f}s")
            return result
        except BaseException as e:
            duration = time.monotonic() - start_time
            logger.debug(f"{func.__qualname__} failed after {duration:.2f}s: {type(e).__name__}")
            raise
    return cast(F, wrapper)
