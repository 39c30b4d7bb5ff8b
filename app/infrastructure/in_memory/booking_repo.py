from dataclasses import replace
from typing import Any, Sequence

from app.application.interfaces.booking_repo import BookingRepo
from app.domain.entities.booking import Booking, BookingStatus
from app.domain.errors import BookingStatusConflictError, NotFoundError


class InMemoryBookingRepo(BookingRepo):
    def __init__(self) -> None:
        self.bookings: dict[str, Booking] = {}

    async def add(self, booking: Booking) -> Booking:
        if booking.id in self.bookings:
            raise ValueError("Booking id already exists")
        self.bookings[booking.id] = replace(booking)
        return replace(booking)

    async def get(self, booking_id: str) -> Booking | None:
        booking = self.bookings.get(booking_id)
        return replace(booking) if booking else None

    async def transition(
        self,
        booking_id: str,
        expected_status: BookingStatus,
        changes: dict[str, Any],
        operation: str,
    ) -> Booking:
        Booking.check_mutable(changes)
        current = self.bookings.get(booking_id)
        if current is None:
            raise NotFoundError("Booking", booking_id)
        if current.status != expected_status:
            raise BookingStatusConflictError(
                booking_id=booking_id,
                current_status=current.status.value,
                operation=operation,
            )
        updated = replace(current, **changes)
        self.bookings[booking_id] = updated
        return replace(updated)

    async def list_by_status(self, statuses: Sequence[BookingStatus], limit: int = 500) -> list[Booking]:
        wanted = set(statuses)
        matches = [replace(b) for b in self.bookings.values() if b.status in wanted]
        return matches[:limit]
