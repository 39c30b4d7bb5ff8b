from dataclasses import fields
from typing import Any, Mapping, Sequence

from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces.booking_repo import BookingRepo
from app.domain.entities.booking import Booking, BookingStatus
from app.domain.errors import BookingStatusConflictError, NotFoundError
from app.domain.value_objects.snapshots import (
    DriverSnapshot,
    PartnerSnapshot,
    ReleasedDocument,
    VehicleSnapshot,
)
from app.infrastructure.db.tables import bookings

_SNAPSHOT_TYPES = {
    "driver_snapshot": DriverSnapshot,
    "partner_snapshot": PartnerSnapshot,
    "vehicle_snapshot": VehicleSnapshot,
}
_BOOKING_FIELDS = [f.name for f in fields(Booking)]


def _encode(values: Mapping[str, Any]) -> dict[str, Any]:
    """Turn entity values into column values (enums to text, snapshots to JSON)."""
    row = {}
    for key, value in values.items():
        if isinstance(value, BookingStatus):
            value = value.value
        elif key in _SNAPSHOT_TYPES and value is not None and not isinstance(value, dict):
            value = value.to_dict()
        elif key == "released_documents":
            value = [d if isinstance(d, dict) else d.to_dict() for d in value or ()]
        row[key] = value
    return row


def _decode(row: Mapping[str, Any]) -> Booking:
    data = {name: row[name] for name in _BOOKING_FIELDS if name in row}
    data["status"] = BookingStatus(row["status"])
    for key, snapshot_type in _SNAPSHOT_TYPES.items():
        data[key] = snapshot_type(**row[key]) if row.get(key) else None
    data["released_documents"] = tuple(
        ReleasedDocument(**d) for d in (row.get("released_documents") or [])
    )
    data["extra"] = row.get("extra") or {}
    return Booking(**data)


class BookingRepoSQL(BookingRepo):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, booking: Booking) -> Booking:
        values = {f: getattr(booking, f) for f in _BOOKING_FIELDS}
        await self._session.execute(insert(bookings).values(**_encode(values)))
        return booking

    async def get(self, booking_id: str) -> Booking | None:
        stmt = select(bookings).where(bookings.c.id == booking_id).limit(1)
        result = await self._session.execute(stmt)
        row = result.mappings().first()
        return _decode(row) if row else None

    async def transition(
        self,
        booking_id: str,
        expected_status: BookingStatus,
        changes: dict[str, Any],
        operation: str,
    ) -> Booking:
        Booking.check_mutable(changes)
        stmt = (
            update(bookings)
            .where(
                bookings.c.id == booking_id,
                bookings.c.status == expected_status.value,
            )
            .values(**_encode(changes))
            .returning(bookings)
        )
        result = await self._session.execute(stmt)
        row = result.mappings().first()
        if row:
            return _decode(row)

        current = await self._session.execute(
            select(bookings.c.status).where(bookings.c.id == booking_id)
        )
        current_status = current.scalar_one_or_none()
        if current_status is None:
            raise NotFoundError("Booking", booking_id)
        raise BookingStatusConflictError(
            booking_id=booking_id,
            current_status=current_status,
            operation=operation,
        )

    async def list_by_status(self, statuses: Sequence[BookingStatus], limit: int = 500) -> list[Booking]:
        stmt = (
            select(bookings)
            .where(bookings.c.status.in_([s.value for s in statuses]))
            .order_by(bookings.c.created_at)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [_decode(row) for row in result.mappings().all()]
