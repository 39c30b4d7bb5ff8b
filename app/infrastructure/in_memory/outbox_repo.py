from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any

from app.application.interfaces.outbox_repo import OutboxEvent, OutboxRepo
from app.domain.entities.outbox_event import OutboxStatus

CLAIMABLE = {OutboxStatus.NEW.value, OutboxStatus.RETRY.value}


class InMemoryOutboxRepo(OutboxRepo):
    def __init__(self) -> None:
        self.events: dict[int, OutboxEvent] = {}
        self._next_id = 1

    async def enqueue(
        self,
        event_type: str,
        aggregate_type: str,
        aggregate_code: str,
        payload: dict[str, Any],
        now: datetime,
    ) -> OutboxEvent:
        event = OutboxEvent(
            id=self._next_id,
            event_type=event_type,
            aggregate_type=aggregate_type,
            aggregate_code=aggregate_code,
            payload=payload,
            status=OutboxStatus.NEW.value,
            attempts=0,
            next_attempt_at=now,
            created_at=now,
        )
        self.events[event.id] = event
        self._next_id += 1
        return replace(event)

    async def claim_ready(
        self,
        limit: int,
        locked_by: str,
        now: datetime,
        lock_ttl_seconds: int = 30,
    ) -> list[OutboxEvent]:
        claimed = []
        for event in self.events.values():
            if len(claimed) >= limit:
                break
            stale_lock = (
                event.status == OutboxStatus.IN_PROGRESS.value
                and event.lock_expires_at is not None
                and event.lock_expires_at <= now
            )
            if event.status not in CLAIMABLE and not stale_lock:
                continue
            if event.next_attempt_at and event.next_attempt_at > now:
                continue
            event.status = OutboxStatus.IN_PROGRESS.value
            event.locked_by = locked_by
            event.lock_expires_at = now + timedelta(seconds=lock_ttl_seconds)
            claimed.append(replace(event))
        return claimed

    async def list_for_aggregate(self, aggregate_code: str) -> list[OutboxEvent]:
        return [replace(e) for e in self.events.values() if e.aggregate_code == aggregate_code]

    async def mark_done(self, event_id: int, now: datetime) -> None:
        event = self.events.get(event_id)
        if not event:
            return
        event.status = OutboxStatus.DONE.value
        event.locked_by = None
        event.lock_expires_at = None

    async def mark_retry(
        self,
        event_id: int,
        attempts: int,
        next_attempt_at: datetime,
        error_code: str | None,
        error_message: str | None,
    ) -> None:
        event = self.events.get(event_id)
        if not event:
            return
        event.status = OutboxStatus.RETRY.value
        event.attempts = attempts
        event.next_attempt_at = next_attempt_at
        event.error_code = error_code
        event.error_message = error_message
        event.locked_by = None
        event.lock_expires_at = None

    async def mark_failed(
        self,
        event_id: int,
        attempts: int,
        error_code: str | None,
        error_message: str | None,
    ) -> None:
        event = self.events.get(event_id)
        if not event:
            return
        event.status = OutboxStatus.FAILED.value
        event.attempts = attempts
        event.error_code = error_code
        event.error_message = error_message
        event.locked_by = None
        event.lock_expires_at = None
