"""
Retry of idempotent Atlas reads.

Only wraps requests that are safe to send twice (GET). Create, update and
delete are never retried: Atlas may have applied the first attempt even when
the response was lost.
"""
import asyncio
import functools
from typing import Callable, Optional, Tuple, Type, TypeVar

import httpx

from atlas_broker.config.logging import get_logger
from atlas_broker.exceptions import AtlasError

logger = get_logger(__name__)

T = TypeVar('T')

# Statuses Atlas answers for transient conditions
RETRYABLE_STATUS_CODES = frozenset({
    408,  # Request Timeout
    429,  # Too Many Requests (Atlas API rate limit)
    500,
    502,
    503,
    504,
})


def is_retryable_atlas_error(exception: Exception) -> bool:
    """True for network failures and transient Atlas statuses."""
    if isinstance(exception, httpx.TransportError):
        return True
    if isinstance(exception, AtlasError):
        return exception.status_code in RETRYABLE_STATUS_CODES
    return False


def backoff_delay(
    attempt: int,
    exception: Exception,
    initial_delay: float,
    max_delay: float,
    exponential_base: float,
) -> float:
    """
    Seconds to wait before retry number ``attempt + 1``.

    A ``Retry-After`` sent by Atlas wins over the exponential schedule; both
    are capped at ``max_delay``.
    """
    delay = initial_delay * (exponential_base ** attempt)
    retry_after = getattr(exception, "retry_after", None)
    if retry_after is not None:
        delay = retry_after
    return min(delay, max_delay)


def retry_on_atlas_error(
    max_retries: Optional[int] = None,
    initial_delay: float = 0.5,
    max_delay: float = 10.0,
    exponential_base: float = 2.0,
    retry_on: Optional[Tuple[Type[Exception], ...]] = None,
) -> Callable:
    """
    Decorator retrying an async Atlas read with exponential backoff.

    Args:
        max_retries: Retries after the first attempt. None reads the
            ``max_retries`` attribute of the decorated method's instance.
        initial_delay: Delay before the first retry in seconds
        max_delay: Upper bound of any delay in seconds
        exponential_base: Growth factor of the delay per attempt
        retry_on: Extra exception types to retry on

    Example:
        class AtlasClient:
            max_retries = 3

            @retry_on_atlas_error()
            async def list_clusters(self):
                ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            retries = max_retries
            if retries is None:
                retries = getattr(args[0], "max_retries", 0) if args else 0

            attempt = 0
            while True:
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    retryable = is_retryable_atlas_error(e) or bool(retry_on and isinstance(e, retry_on))
                    if not retryable:
                        raise
                    if attempt >= retries:
                        logger.error(
                            "atlas_read_failed_max_retries",
                            function=func.__name__,
                            attempts=attempt + 1,
                            error_type=type(e).__name__,
                            error=str(e),
                        )
                        raise

                    delay = backoff_delay(attempt, e, initial_delay, max_delay, exponential_base)
                    logger.warning(
                        "atlas_read_failed_retrying",
                        function=func.__name__,
                        attempt=attempt + 1,
                        max_retries=retries,
                        delay_seconds=delay,
                        error_type=type(e).__name__,
                        status_code=getattr(e, 'status_code', None),
                    )
                    await asyncio.sleep(delay)
                    attempt += 1
                    continue

                if attempt > 0:
                    logger.info("atlas_read_succeeded_after_retry", function=func.__name__, attempts=attempt + 1)
                return result

        return wrapper
    return decorator
