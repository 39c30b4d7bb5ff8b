"""
Database retry utilities for handling transient failures.

A conditional booking update that loses to a concurrent writer is not a
transient failure: it surfaces as BookingStatusConflictError and is never
retried here. Only lock errors raised by the database itself are.
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Postgres SQLSTATEs
PG_DEADLOCK_DETECTED = "40P01"
PG_SERIALIZATION_FAILURE = "40001"
PG_LOCK_NOT_AVAILABLE = "55P03"

TRANSIENT_SQLSTATES = frozenset(
    {PG_DEADLOCK_DETECTED, PG_SERIALIZATION_FAILURE, PG_LOCK_NOT_AVAILABLE}
)


def is_deadlock_error(error: Exception) -> bool:
    """
    Check if an exception is a deadlock or serialization failure.

    Returns:
        True if the error is transient and the unit of work should be retried
    """
    if not isinstance(error, (OperationalError, DBAPIError)):
        return False
    sqlstate = getattr(error.orig, "sqlstate", None) or getattr(error.orig, "pgcode", None)
    if sqlstate:
        return sqlstate in TRANSIENT_SQLSTATES
    error_str = str(error)
    return any(code in error_str for code in TRANSIENT_SQLSTATES) or "database is locked" in error_str


async def retry_on_deadlock(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 0.1,
) -> T:
    """
    Retry a function if it fails due to a database deadlock.

    Uses exponential backoff: base_delay * (2 ** attempt)

    Raises:
        The original exception if max attempts exceeded or non-deadlock error
    """
    for attempt in range(max_attempts):
        try:
            return await func()
        except Exception as e:
            if not is_deadlock_error(e):
                raise

            if attempt == max_attempts - 1:
                logger.error(
                    "Database deadlock persists after max retries",
                    extra={"attempts": max_attempts, "error": str(e)},
                )
                raise

            delay = base_delay * (2 ** attempt)
            logger.warning(
                "Database deadlock detected, retrying",
                extra={
                    "attempt": attempt + 1,
                    "max_attempts": max_attempts,
                    "retry_delay": delay,
                    "error": str(e),
                },
            )
            await asyncio.sleep(delay)

    raise RuntimeError("retry_on_deadlock called with max_attempts < 1")
