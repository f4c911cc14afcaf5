"""
Retry helper - fixed-delay retries for external calls.

One place for the retry loop used around blob downloads, transcript fetches,
embedding calls and vector upserts. Errors are classified by a predicate so
validation and configuration failures stop immediately.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from docchat.core.documents.errors import TransientServiceError, is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_RETRIES = 3
RETRY_DELAY_SECONDS = 1.0


async def with_timeout(awaitable: Awaitable[T], seconds: Optional[float], operation_name: str = "operation") -> T:
    """
    Await with a deadline.

    Raises:
        TransientServiceError: If the deadline passes (retryable)
    """
    if not seconds:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as e:
        raise TransientServiceError(f"{operation_name} timed out after {seconds:g}s") from e


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    operation_name: str,
    max_attempts: int = MAX_RETRIES,
    delay: float = RETRY_DELAY_SECONDS,
    should_retry: Callable[[BaseException], bool] = is_retryable,
    timeout: Optional[float] = None,
) -> T:
    """
    Run an async operation, retrying retryable failures with a fixed delay.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt
        operation_name: Name of operation for logging
        max_attempts: Total attempts including the first one
        delay: Seconds to wait between attempts
        should_retry: Predicate deciding whether an error is worth another attempt
        timeout: Optional per-attempt deadline in seconds

    Returns:
        The operation's result

    Raises:
        The last error once attempts are exhausted, or the first
        non-retryable error immediately.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            result = await with_timeout(operation(), timeout, operation_name)
            if attempt > 1:
                logger.info(f"{operation_name} succeeded on attempt {attempt}")
            return result
        except Exception as e:
            if not should_retry(e):
                logger.info(f"{operation_name} failed with non-retryable error: {e}")
                raise
            if attempt >= max_attempts:
                logger.error(f"{operation_name} failed after {attempt} attempts: {e}")
                raise
            logger.warning(
                f"{operation_name} failed on attempt {attempt}/{max_attempts}: {e}. "
                f"Retrying in {delay}s..."
            )
            await asyncio.sleep(delay)
