import asyncio
import logging
from datetime import timedelta
from unittest.mock import AsyncMock

from app.api.dependencies import build_use_cases
from app.api.schemas.workers import DispatchOutboxResponse
from app.config import Settings
from app.domain.entities.outbox_event import OutboxStatus
from app.infrastructure.messaging.outbox_worker import OutboxWorker
from tests.conftest import NOW, make_create_request


async def _create(use_cases) -> str:
    response = await use_cases["create_booking"].execute(make_create_request())
    return response.booking_id


def _statuses(bundle) -> list[str]:
    return [e.status for e in bundle["outbox_repo"].events.values()]


class TestDispatchOutbox:
    async def test_applies_every_ready_event(self, use_cases, bundle):
        await _create(use_cases)

        result = await use_cases["dispatch_outbox"].execute(worker_id="w1")

        assert result.worker_id == "w1"
        assert (result.processed, result.retried, result.failed) == (3, 0, 0)
        assert set(_statuses(bundle)) == {OutboxStatus.DONE.value}
        assert len(bundle["notification_gateway"].sent) == 2

    async def test_failed_notification_is_retried_with_backoff(self, use_cases, bundle, clock):
        await _create(use_cases)
        bundle["notification_gateway"].fail_with = ConnectionError("smtp down")

        result = await use_cases["dispatch_outbox"].execute()

        assert (result.processed, result.retried) == (1, 2)
        retrying = [
            e for e in bundle["outbox_repo"].events.values() if e.status == OutboxStatus.RETRY.value
        ]
        assert all(e.attempts == 1 for e in retrying)
        assert all(e.next_attempt_at == NOW + timedelta(seconds=30) for e in retrying)
        assert retrying[0].error_code == "ConnectionError"

        # not due yet
        assert (await use_cases["dispatch_outbox"].execute()).retried == 0

        clock.advance(seconds=30)
        await use_cases["dispatch_outbox"].execute()
        assert all(e.attempts == 2 for e in retrying)
        second = bundle["outbox_repo"].events[retrying[0].id]
        assert second.next_attempt_at == NOW + timedelta(seconds=30 + 60)

        bundle["notification_gateway"].fail_with = None
        clock.advance(seconds=60)
        result = await use_cases["dispatch_outbox"].execute()
        assert result.processed == 2
        assert set(_statuses(bundle)) == {OutboxStatus.DONE.value}

    async def test_event_fails_for_good_after_max_attempts(self, bundle, clock):
        settings = Settings(use_in_memory=True, dispatch_effects_inline=False, outbox_max_attempts=2)
        use_cases = build_use_cases(bundle, settings)
        await _create(use_cases)
        bundle["notification_gateway"].fail_with = ConnectionError("smtp down")

        await use_cases["dispatch_outbox"].execute()
        clock.advance(seconds=30)
        result = await use_cases["dispatch_outbox"].execute()

        assert result.failed == 2
        failed = [e for e in bundle["outbox_repo"].events.values() if e.status == OutboxStatus.FAILED.value]
        assert len(failed) == 2
        assert all(e.error_message == "smtp down" for e in failed)

        clock.advance(days=1)
        assert (await use_cases["dispatch_outbox"].execute()).processed == 0

    async def test_unknown_event_type_is_retried(self, use_cases, bundle):
        await bundle["outbox_repo"].enqueue(
            event_type="SOMETHING_ELSE",
            aggregate_type="BOOKING",
            aggregate_code="booking_x",
            payload={},
            now=NOW,
        )

        result = await use_cases["dispatch_outbox"].execute()

        assert result.retried == 1
        assert bundle["outbox_repo"].events[1].error_code == "ValueError"

    async def test_stale_lock_is_reclaimed(self, use_cases, bundle, clock):
        await _create(use_cases)
        claimed = await bundle["outbox_repo"].claim_ready(
            limit=10, locked_by="crashed", now=NOW, lock_ttl_seconds=60
        )
        assert len(claimed) == 3

        assert (await use_cases["dispatch_outbox"].execute()).processed == 0
        clock.advance(seconds=61)
        assert (await use_cases["dispatch_outbox"].execute()).processed == 3


class TestEffectPublisher:
    async def test_enqueue_failure_does_not_undo_the_transition(self, use_cases, bundle, caplog):
        bundle["outbox_repo"].enqueue = AsyncMock(side_effect=RuntimeError("outbox offline"))

        with caplog.at_level(logging.ERROR):
            booking_id = await _create(use_cases)

        assert booking_id in bundle["booking_repo"].bookings
        assert "Failed to enqueue booking effect" in caplog.text


class TestOutboxWorker:
    async def test_run_once_passes_worker_id(self):
        dispatch = AsyncMock(return_value=DispatchOutboxResponse(worker_id="w9", processed=1))
        worker = OutboxWorker(dispatch, worker_id="w9")

        result = await worker.run_once()

        dispatch.assert_awaited_once_with("w9")
        assert result.processed == 1

    async def test_loop_survives_failed_cycle_and_stops(self):
        calls = []

        async def dispatch(worker_id):
            calls.append(worker_id)
            if len(calls) == 1:
                raise RuntimeError("db gone")
            if len(calls) >= 3:
                await worker.stop()
            return DispatchOutboxResponse(worker_id=worker_id)

        worker = OutboxWorker(dispatch, poll_interval_seconds=0)
        await asyncio.wait_for(worker.start(), timeout=1)

        assert len(calls) == 3
        assert worker.is_running is False
        assert worker.worker_id.startswith("worker-")
