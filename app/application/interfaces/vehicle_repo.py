from app.domain.entities.vehicle import Vehicle


class VehicleRepo:
    async def get(self, vehicle_id: str) -> Vehicle | None:
        raise NotImplementedError

    async def reserve(self, vehicle_id: str, booking_id: str) -> bool:
        """Flip available -> booked. Returns False if the vehicle was no longer available."""
        raise NotImplementedError

    async def release(self, vehicle_id: str, mileage: int | None = None) -> None:
        """Back to available, clearing current_booking_id."""
        raise NotImplementedError
