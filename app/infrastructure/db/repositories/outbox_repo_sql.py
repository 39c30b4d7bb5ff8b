import logging
from datetime import datetime, timedelta
from typing import Any, Mapping

from sqlalchemy import and_, insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces.outbox_repo import OutboxEvent, OutboxRepo
from app.domain.entities.outbox_event import OutboxStatus
from app.infrastructure.db.tables import outbox_events

logger = logging.getLogger(__name__)

CLAIMABLE = (OutboxStatus.NEW.value, OutboxStatus.RETRY.value)


def _to_event(data: Mapping[str, Any]) -> OutboxEvent:
    return OutboxEvent(
        id=data["id"],
        event_type=data["event_type"],
        aggregate_type=data["aggregate_type"],
        aggregate_code=data["aggregate_code"],
        payload=data["payload"],
        status=data["status"],
        attempts=data.get("attempts", 0),
        next_attempt_at=data.get("next_attempt_at"),
        locked_by=data.get("locked_by"),
        lock_expires_at=data.get("lock_expires_at"),
        error_code=data.get("error_code"),
        error_message=data.get("error_message"),
        created_at=data.get("created_at"),
    )


class OutboxRepoSQL(OutboxRepo):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def enqueue(
        self,
        event_type: str,
        aggregate_type: str,
        aggregate_code: str,
        payload: dict[str, Any],
        now: datetime,
    ) -> OutboxEvent:
        stmt = insert(outbox_events).values(
            event_type=event_type,
            aggregate_type=aggregate_type,
            aggregate_code=aggregate_code,
            payload=payload,
            status=OutboxStatus.NEW.value,
            attempts=0,
            next_attempt_at=now,
            created_at=now,
            updated_at=now,
        )
        result = await self._session.execute(stmt)
        return OutboxEvent(
            id=result.inserted_primary_key[0],
            event_type=event_type,
            aggregate_type=aggregate_type,
            aggregate_code=aggregate_code,
            payload=payload,
            status=OutboxStatus.NEW.value,
            attempts=0,
            next_attempt_at=now,
            created_at=now,
        )

    async def claim_ready(
        self,
        limit: int,
        locked_by: str,
        now: datetime,
        lock_ttl_seconds: int = 30,
    ) -> list[OutboxEvent]:
        ready = or_(
            and_(
                outbox_events.c.status.in_(CLAIMABLE),
                or_(
                    outbox_events.c.next_attempt_at.is_(None),
                    outbox_events.c.next_attempt_at <= now,
                ),
            ),
            # a worker died holding the lock
            and_(
                outbox_events.c.status == OutboxStatus.IN_PROGRESS.value,
                outbox_events.c.lock_expires_at <= now,
            ),
        )
        candidates = (
            select(outbox_events.c.id)
            .where(ready)
            .order_by(outbox_events.c.id)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        ids = (await self._session.execute(candidates)).scalars().all()
        if not ids:
            return []

        stmt = (
            update(outbox_events)
            .where(outbox_events.c.id.in_(ids), ready)
            .values(
                status=OutboxStatus.IN_PROGRESS.value,
                locked_by=locked_by,
                locked_at=now,
                lock_expires_at=now + timedelta(seconds=lock_ttl_seconds),
                updated_at=now,
            )
            .returning(outbox_events)
        )
        result = await self._session.execute(stmt)
        events = sorted((_to_event(row) for row in result.mappings().all()), key=lambda e: e.id)
        logger.debug("Claimed outbox events", extra={"worker_id": locked_by, "count": len(events)})
        return events

    async def list_for_aggregate(self, aggregate_code: str) -> list[OutboxEvent]:
        stmt = (
            select(outbox_events)
            .where(outbox_events.c.aggregate_code == aggregate_code)
            .order_by(outbox_events.c.id)
        )
        result = await self._session.execute(stmt)
        return [_to_event(row) for row in result.mappings().all()]

    async def mark_done(self, event_id: int, now: datetime) -> None:
        stmt = (
            update(outbox_events)
            .where(outbox_events.c.id == event_id)
            .values(
                status=OutboxStatus.DONE.value,
                locked_by=None,
                lock_expires_at=None,
                updated_at=now,
            )
        )
        await self._session.execute(stmt)

    async def mark_retry(
        self,
        event_id: int,
        attempts: int,
        next_attempt_at: datetime,
        error_code: str | None,
        error_message: str | None,
    ) -> None:
        stmt = (
            update(outbox_events)
            .where(outbox_events.c.id == event_id)
            .values(
                status=OutboxStatus.RETRY.value,
                attempts=attempts,
                next_attempt_at=next_attempt_at,
                error_code=error_code,
                error_message=(error_message or "")[:500],
                locked_by=None,
                lock_expires_at=None,
            )
        )
        await self._session.execute(stmt)

    async def mark_failed(
        self,
        event_id: int,
        attempts: int,
        error_code: str | None,
        error_message: str | None,
    ) -> None:
        stmt = (
            update(outbox_events)
            .where(outbox_events.c.id == event_id)
            .values(
                status=OutboxStatus.FAILED.value,
                attempts=attempts,
                error_code=error_code,
                error_message=(error_message or "")[:500],
                locked_by=None,
                lock_expires_at=None,
            )
        )
        await self._session.execute(stmt)
        logger.warning(
            "Outbox event failed permanently - requires manual intervention",
            extra={"event_id": event_id, "attempts": attempts, "error_code": error_code},
        )
