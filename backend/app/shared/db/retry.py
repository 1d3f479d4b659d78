"""
Bounded retry for datastore writes.

Transient database failures (dropped connections, pooler hiccups,
serialization failures) are retried with a short linear backoff:
3 attempts, waiting 200ms then 400ms. Integrity violations are never
retried. When all attempts fail the original error is wrapped in
PersistenceError, which callers map to a 500 so the provider redelivers.

Usage:
    contact = await run_with_retry(
        lambda: contact_repo.upsert(tenant_id, phone),
        operation="contact upsert",
        session=db,
    )
"""
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
    before_sleep_log,
)

from app.shared.core.constants import DB_RETRY_ATTEMPTS, DB_RETRY_BASE_WAIT_SECONDS
from app.shared.utils.exceptions import PersistenceError

logger = logging.getLogger("db_retry")

T = TypeVar("T")


def is_transient_db_error(exc: BaseException) -> bool:
    """DBAPI errors are transient unless they are integrity violations."""
    return isinstance(exc, DBAPIError) and not isinstance(exc, IntegrityError)


async def run_with_retry(
    operation_fn: Callable[[], Awaitable[T]],
    operation: str,
    session: Optional[AsyncSession] = None,
    attempts: int = DB_RETRY_ATTEMPTS,
    base_wait: float = DB_RETRY_BASE_WAIT_SECONDS,
) -> T:
    """
    Run an async datastore operation with bounded retry.

    The session (if given) is rolled back after every failed attempt so the
    next attempt starts from a clean transaction.

    Raises:
        PersistenceError: the operation failed on every attempt, or failed
            with a non-transient database error.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait_incrementing(start=base_wait, increment=base_wait),
        retry=retry_if_exception(is_transient_db_error),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=False,
    )

    try:
        async for attempt in retrying:
            with attempt:
                try:
                    return await operation_fn()
                except DBAPIError:
                    if session is not None:
                        await session.rollback()
                    raise
    except RetryError as e:
        cause = e.last_attempt.exception()
        logger.error(f"{operation} failed after {attempts} attempts: {cause}")
        raise PersistenceError(operation, cause) from cause
    except IntegrityError as e:
        logger.error(f"{operation} violated a constraint: {e.orig}")
        raise PersistenceError(operation, e) from e
