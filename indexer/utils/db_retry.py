"""
Store commit retry logic.

Re-runs a transactional operation with exponential backoff when the
database reports a transient failure.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from loguru import logger
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from indexer.utils.exceptions import StoreCommitError

T = TypeVar("T")


def is_transient_db_error(exc: BaseException) -> bool:
    """
    Check if a database error is worth retrying.

    IntegrityError is never transient: it means the row already exists.
    """
    if isinstance(exc, IntegrityError):
        return False
    if isinstance(exc, OperationalError):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


async def run_with_commit_retry(
    operation_factory: Callable[[], Awaitable[T]],
    max_retries: int,
    delay_base: float,
    operation_name: str = "commit",
    on_retry: Callable[[int, BaseException], None] | None = None,
) -> T:
    """
    Execute a transactional operation with retry logic.

    Each attempt must open and commit (or roll back) its own transaction,
    so a failed attempt leaves no partial writes behind.

    Args:
        operation_factory: Factory returning a fresh coroutine per attempt
        max_retries: Maximum number of attempts
        delay_base: Base delay in seconds (delay_base * 2**attempt)
        operation_name: Operation name for logging
        on_retry: Called with (attempt, error) before each backoff sleep

    Returns:
        Result of the operation

    Raises:
        StoreCommitError: If all attempts fail with transient errors
    """
    last_error: BaseException | None = None

    for attempt in range(max_retries):
        try:
            result = await operation_factory()

            if attempt > 0:
                logger.success(
                    f"[Store] {operation_name} succeeded on attempt {attempt + 1}"
                )

            return result

        except Exception as e:
            if not is_transient_db_error(e):
                raise

            last_error = e

            if attempt < max_retries - 1:
                delay = delay_base * (2 ** attempt)
                logger.warning(
                    f"[Store] {operation_name} failed on attempt "
                    f"{attempt + 1}/{max_retries}: {e}. Retrying in {delay}s..."
                )
                if on_retry is not None:
                    on_retry(attempt + 1, e)
                await asyncio.sleep(delay)
            else:
                logger.error(
                    f"[Store] {operation_name} failed after {max_retries} attempts: {e}"
                )

    raise StoreCommitError(
        f"{operation_name} failed after {max_retries} attempts: {last_error}"
    ) from last_error
