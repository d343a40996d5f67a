"""
Utility functions and decorators for the zkface system.

Timing decorators for the asynchronous proof pipeline, identifier
generation and helpers that keep sensitive values out of the logs.
"""

import functools
import time
import uuid
from typing import Any, Callable, Optional, TypeVar

import structlog

from .constants import HASH_LOG_PREFIX

# Initialize structured logger
logger = structlog.get_logger(__name__)

# Type variable for generic decorators
F = TypeVar("F", bound=Callable[..., Any])


def async_timer(func: F) -> F:
    """
    Decorator to measure and log coroutine execution time.

    Parameters
    ----------
    func : Callable
        Coroutine function to be timed.

    Returns
    -------
    Callable
        Wrapped coroutine function with timing capability.

    Examples
    --------
    >>> @async_timer
    ... async def slow_function():
    ...     await asyncio.sleep(1)
    ...     return "done"
    """

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        start_time = time.perf_counter()

        try:
            result = await func(*args, **kwargs)
            execution_time = (time.perf_counter() - start_time) * 1000

            logger.debug(
                "Coroutine execution completed",
                function_name=func.__name__,
                module=func.__module__,
                execution_time_ms=execution_time,
                success=True,
            )

            return result

        except Exception as e:
            execution_time = (time.perf_counter() - start_time) * 1000

            logger.error(
                "Coroutine execution failed",
                function_name=func.__name__,
                module=func.__module__,
                execution_time_ms=execution_time,
                error=str(e),
                error_type=type(e).__name__,
                success=False,
            )

            raise

    return wrapper


def generate_session_id() -> str:
    """
    Generate a unique session identifier.

    Returns
    -------
    str
        Unique session identifier.

    Examples
    --------
    >>> session_id = generate_session_id()
    >>> print(len(session_id))  # 32 characters
    """
    return str(uuid.uuid4()).replace("-", "")


def short_hash(value: Optional[str], length: int = HASH_LOG_PREFIX) -> Optional[str]:
    """Truncate a commitment hash for logging."""
    if not value:
        return value
    return value[:length] + ("..." if len(value) > length else "")
