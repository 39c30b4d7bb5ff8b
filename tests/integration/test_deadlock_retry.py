"""
Deadlock retry for worker endpoints.

- Postgres 40P01 (deadlock) and 40001 (serialization failure) are retried
- Exponential backoff between attempts, a warning logged for each retry
- Anything else, including booking status conflicts, propagates at once
"""

from unittest.mock import Mock, patch

import pytest
from sqlalchemy.exc import OperationalError

from app.domain.errors import BookingStatusConflictError
from app.infrastructure.db.retry import is_deadlock_error, retry_on_deadlock


def _pg_error(sqlstate: str, message: str = "deadlock detected") -> OperationalError:
    orig = Mock()
    orig.sqlstate = sqlstate
    orig.__str__ = Mock(return_value=message)
    return OperationalError("UPDATE bookings ...", {}, orig, connection_invalidated=False)


class TestDeadlockDetection:
    def test_detects_postgres_deadlock(self):
        assert is_deadlock_error(_pg_error("40P01"))

    def test_detects_serialization_failure(self):
        assert is_deadlock_error(_pg_error("40001", "could not serialize access"))

    def test_detects_code_in_message_without_sqlstate(self):
        error = OperationalError(
            "statement", "params", "(asyncpg) 40P01 deadlock detected", connection_invalidated=False
        )
        assert is_deadlock_error(error)

    def test_detects_sqlite_lock(self):
        error = OperationalError(
            "statement", "params", "database is locked", connection_invalidated=False
        )
        assert is_deadlock_error(error)

    def test_ignores_other_errors(self):
        assert not is_deadlock_error(Exception("Generic error"))
        assert not is_deadlock_error(_pg_error("23505", "duplicate key value"))
        assert not is_deadlock_error(
            BookingStatusConflictError("booking_1", "cancelled", "finish")
        )


class TestRetryLogic:
    async def test_success_on_first_attempt(self):
        call_count = 0

        async def succeeds():
            nonlocal call_count
            call_count += 1
            return "ok"

        assert await retry_on_deadlock(succeeds, max_attempts=3) == "ok"
        assert call_count == 1

    async def test_retries_until_success(self):
        call_count = 0

        async def fails_twice():
            nonlocal call_count
            call_count += 1
            if call_count <= 2:
                raise _pg_error("40P01")
            return "done"

        result = await retry_on_deadlock(fails_twice, max_attempts=3, base_delay=0.01)

        assert result == "done"
        assert call_count == 3

    async def test_gives_up_after_max_attempts(self):
        call_count = 0

        async def always_fails():
            nonlocal call_count
            call_count += 1
            raise _pg_error("40001")

        with pytest.raises(OperationalError):
            await retry_on_deadlock(always_fails, max_attempts=3, base_delay=0.01)

        assert call_count == 3

    async def test_status_conflict_is_not_retried(self):
        call_count = 0

        async def conflicts():
            nonlocal call_count
            call_count += 1
            raise BookingStatusConflictError("booking_1", "cancelled", "finish")

        with pytest.raises(BookingStatusConflictError):
            await retry_on_deadlock(conflicts, max_attempts=3, base_delay=0.01)

        assert call_count == 1

    async def test_backoff_doubles(self):
        delays = []

        async def fake_sleep(delay):
            delays.append(delay)

        async def always_fails():
            raise _pg_error("40P01")

        with patch("app.infrastructure.db.retry.asyncio.sleep", fake_sleep):
            with pytest.raises(OperationalError):
                await retry_on_deadlock(always_fails, max_attempts=3, base_delay=0.1)

        assert delays == [0.1, 0.2]

    async def test_each_retry_is_logged(self):
        call_count = 0

        async def fails_once():
            nonlocal call_count
            call_count += 1
            if call_count == 1:
                raise _pg_error("40P01")
            return "ok"

        with patch("app.infrastructure.db.retry.logger") as mock_logger:
            await retry_on_deadlock(fails_once, max_attempts=3, base_delay=0.01)

        assert mock_logger.warning.called
        assert "deadlock" in mock_logger.warning.call_args[0][0].lower()
