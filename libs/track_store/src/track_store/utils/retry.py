"""Retry utility for handling transient store errors with exponential backoff."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import psycopg

T = TypeVar("T")

logger = logging.getLogger(__name__)


def default_is_transient_error(error: Exception) -> bool:
    """Check if an error is transient and worth retrying.

    Connection-level failures (``psycopg.OperationalError``, pool timeouts,
    socket errors) are retried. Query errors such as constraint or syntax
    violations are not.

    Args:
        error: Exception to check

    Returns:
        True if error is transient, False otherwise
    """
    transient_types = (
        asyncio.TimeoutError,
        ConnectionError,
        TimeoutError,
        psycopg.OperationalError,
    )
    if isinstance(error, transient_types):
        return True

    error_str = str(error).lower()
    transient_keywords = [
        "timeout",
        "connection",
        "temporary",
        "unavailable",
    ]
    return any(keyword in error_str for keyword in transient_keywords)


async def retry_with_backoff(
    operation: Callable[..., Awaitable[T]],
    max_retries: int = 3,
    retry_delay: float = 1.0,
    operation_args: tuple[Any, ...] | None = None,
    operation_kwargs: dict[str, Any] | None = None,
    is_transient_error: Callable[[Exception], bool] | None = None,
) -> T:
    """Execute an async operation with retry logic and exponential backoff.

    Args:
        operation: Async function to execute
        max_retries: Maximum number of retry attempts (default: 3)
        retry_delay: Initial delay in seconds between retries, doubles each retry (default: 1.0)
        operation_args: Tuple of positional arguments to pass to operation
        operation_kwargs: Dictionary of keyword arguments to pass to operation
        is_transient_error: Optional custom function to determine if error is transient

    Returns:
        Result of the operation if successful

    Raises:
        ValueError: If max_retries or retry_delay are negative
        Exception: The last exception if all retries are exhausted or if non-transient error
    """
    if max_retries < 0:
        raise ValueError("max_retries must be >= 0")  # noqa: TRY003
    if retry_delay < 0:
        raise ValueError("retry_delay must be >= 0")  # noqa: TRY003

    if operation_args is None:
        operation_args = ()
    if operation_kwargs is None:
        operation_kwargs = {}
    check_transient = is_transient_error or default_is_transient_error

    retry_count = 0

    while True:
        try:
            return await operation(*operation_args, **operation_kwargs)
        except Exception as e:
            retry_count += 1

            if not check_transient(e) or retry_count > max_retries:
                if retry_count > max_retries:
                    logger.warning("Max retries (%s) exceeded: %s", max_retries, e)
                raise

            delay = retry_delay * (2 ** (retry_count - 1))
            logger.warning(
                "Transient error on attempt %s/%s: %s. Retrying in %ss...",
                retry_count,
                max_retries + 1,
                e,
                delay,
            )
            await asyncio.sleep(delay)
