"""
Retry-with-backoff primitive shared by tag resolution and object-store transfers.
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from avalanche_installer.exceptions import RetriesExhaustedError
from avalanche_installer.log_utils import logger

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float) -> float:
    """
    Delay to wait after a failed attempt.

    Parameters:
        attempt (int): Zero-based index of the attempt that just failed.
        base_delay (float): Delay unit in seconds.

    Returns:
        float: ``(attempt + 1) * base_delay`` seconds.
    """
    return (attempt + 1) * base_delay


def is_retryable_error(error: BaseException) -> bool:
    """Default predicate: honour an ``is_retryable`` attribute when the error carries one."""
    return bool(getattr(error, "is_retryable", False))


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int,
    base_delay: float,
    description: str,
    is_retryable: Callable[[BaseException], bool] = is_retryable_error,
) -> T:
    """
    Run an async operation until it succeeds, a non-retryable error occurs, or attempts run out.

    The wait after failed attempt ``n`` (zero-based) is ``(n + 1) * base_delay``; no wait
    follows the final attempt.

    Parameters:
        operation: Zero-argument coroutine factory; called once per attempt.
        max_attempts (int): Maximum number of attempts (values below 1 are treated as 1).
        base_delay (float): Backoff unit in seconds.
        description (str): Short label used in log messages.
        is_retryable: Predicate deciding whether an exception consumes a retry slot.

    Returns:
        The operation's result from the first successful attempt.

    Raises:
        Exception: The operation's own exception when `is_retryable` rejects it.
        RetriesExhaustedError: When every attempt failed with a retryable error.
    """
    attempts = max(1, max_attempts)
    last_error: Optional[BaseException] = None

    for attempt in range(attempts):
        logger.debug(f"[ROUND {attempt}] {description}")
        try:
            return await operation()
        except Exception as e:
            if not is_retryable(e):
                logger.error(f"{description} failed with non-retryable error: {e}")
                raise
            last_error = e

        if attempt + 1 < attempts:
            delay = backoff_delay(attempt, base_delay)
            logger.warning(
                f"{description} attempt {attempt + 1}/{attempts} failed, "
                f"retrying in {delay:.1f}s: {last_error}"
            )
            await asyncio.sleep(delay)

    raise RetriesExhaustedError(
        f"{description} failed after {attempts} attempts",
        attempts=attempts,
        last_error=last_error,
    )
