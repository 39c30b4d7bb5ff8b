from app.domain.entities.booking_history import BookingHistoryEntry


class BookingHistoryRepo:
    async def append(self, entry: BookingHistoryEntry) -> BookingHistoryEntry:
        raise NotImplementedError

    async def list_for_booking(self, booking_id: str) -> list[BookingHistoryEntry]:
        raise NotImplementedError
