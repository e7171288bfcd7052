"""Retry helper with exponential backoff for scoring service calls.

The pipeline itself never retries; callers that want retries (the CLI)
decorate their oracle call with ``retry_with_backoff``.
"""

import asyncio
import functools
import inspect
import logging
import random
import time
from typing import Any, Callable, Set, Type, TypeVar, cast

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

# HTTP status codes that should trigger retry
RETRYABLE_STATUS_CODES: Set[int] = {
    429,  # Rate limit
    500,  # Server error
    502,  # Bad gateway
    503,  # Service unavailable
    504,  # Gateway timeout
}

# HTTP status codes that should NOT trigger retry
NON_RETRYABLE_STATUS_CODES: Set[int] = {
    400,  # Bad request
    401,  # Unauthorized
    403,  # Forbidden
    404,  # Not found
    422,  # Unprocessable entity
}

NETWORK_ERROR_HINTS = (
    "timeout",
    "timed out",
    "connection",
    "network",
)

MAX_RETRIES = 3
BASE_DELAY = 1.0  # seconds
MAX_JITTER = 1.0  # seconds


def retry_with_backoff(
    max_retries: int = MAX_RETRIES,
    base_delay: float = BASE_DELAY,
    max_jitter: float = MAX_JITTER,
    retryable_exceptions: tuple[Type[Exception], ...] = (Exception,),
    non_retryable_exceptions: tuple[Type[Exception], ...] = (),
) -> Callable[[F], F]:
    """Decorator that retries a function with exponential backoff.

    Retries on 429/5xx status codes and network-looking failures. Never
    retries 400, 401, 403, 404 or 422. ``max_retries=0`` calls the function
    exactly once.

    Args:
        max_retries: Maximum number of retry attempts after the first call
        base_delay: Base delay in seconds for exponential backoff
        max_jitter: Maximum random jitter in seconds
        retryable_exceptions: Exception types retried when no status code decides
        non_retryable_exceptions: Exception types never retried, checked first

    Returns:
        Decorated function with retry logic
    """

    def decorator(func: F) -> F:
        def next_delay(attempt: int, error: Exception) -> float | None:
            """Return the sleep before the next attempt, or None to give up."""
            if isinstance(error, non_retryable_exceptions):
                return None
            if not _should_retry_exception(error, retryable_exceptions):
                return None
            if attempt >= max_retries:
                if max_retries:
                    logger.error(f"{func.__name__} failed after {max_retries} retries: {error}")
                return None

            delay = (base_delay * (2**attempt)) + (random.random() * max_jitter)
            logger.warning(
                f"{func.__name__} attempt {attempt + 1}/{max_retries} failed: {error}. "
                f"Retrying in {delay:.2f}s..."
            )
            return delay

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    delay = next_delay(attempt, e)
                    if delay is None:
                        raise
                await asyncio.sleep(delay)
                attempt += 1

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    delay = next_delay(attempt, e)
                    if delay is None:
                        raise
                time.sleep(delay)
                attempt += 1

        if inspect.iscoroutinefunction(func):
            return cast(F, async_wrapper)
        return cast(F, sync_wrapper)

    return decorator


def _should_retry_exception(
    exception: Exception, retryable_exceptions: tuple[Type[Exception], ...]
) -> bool:
    """Determine if an exception should trigger a retry.

    A known status code decides first, then network-looking messages, then
    the exception type.
    """
    status_code = _extract_status_code(exception)

    if status_code is not None:
        if status_code in NON_RETRYABLE_STATUS_CODES:
            return False
        if status_code in RETRYABLE_STATUS_CODES:
            return True

    message = str(exception).lower()
    if any(hint in message for hint in NETWORK_ERROR_HINTS):
        return True

    return isinstance(exception, retryable_exceptions)


def _extract_status_code(exception: Exception) -> int | None:
    """Extract an HTTP status code from an exception, if it carries one."""
    status_code = getattr(exception, "status_code", None)
    if isinstance(status_code, int):
        return status_code

    response = getattr(exception, "response", None)
    response_status = getattr(response, "status_code", None)
    if isinstance(response_status, int):
        return response_status

    return None
