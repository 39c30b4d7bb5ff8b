from app.application.interfaces.vehicle_repo import VehicleRepo
from app.domain.entities.vehicle import Vehicle, VehicleStatus


class InMemoryVehicleRepo(VehicleRepo):
    def __init__(self) -> None:
        self.vehicles: dict[str, Vehicle] = {}

    def add_vehicle(self, vehicle: Vehicle) -> None:
        self.vehicles[vehicle.id] = vehicle

    async def get(self, vehicle_id: str) -> Vehicle | None:
        return self.vehicles.get(vehicle_id)

    async def reserve(self, vehicle_id: str, booking_id: str) -> bool:
        vehicle = self.vehicles.get(vehicle_id)
        if not vehicle or not vehicle.is_available:
            return False
        vehicle.status = VehicleStatus.BOOKED
        vehicle.current_booking_id = booking_id
        return True

    async def release(self, vehicle_id: str, mileage: int | None = None) -> None:
        vehicle = self.vehicles.get(vehicle_id)
        if not vehicle:
            return
        vehicle.status = VehicleStatus.AVAILABLE
        vehicle.current_booking_id = None
        if mileage is not None:
            vehicle.mileage = mileage
