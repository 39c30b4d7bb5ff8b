from typing import Any, Sequence

from app.domain.entities.booking import Booking, BookingStatus


class BookingRepo:
    async def add(self, booking: Booking) -> Booking:
        raise NotImplementedError

    async def get(self, booking_id: str) -> Booking | None:
        raise NotImplementedError

    async def transition(
        self,
        booking_id: str,
        expected_status: BookingStatus,
        changes: dict[str, Any],
        operation: str,
    ) -> Booking:
        """
        Conditional update: applies ``changes`` only while the stored status is
        still ``expected_status``.

        Raises:
            NotFoundError: booking does not exist.
            BookingStatusConflictError: zero rows matched; carries the stored status.
        """
        raise NotImplementedError

    async def list_by_status(self, statuses: Sequence[BookingStatus], limit: int = 500) -> list[Booking]:
        raise NotImplementedError
