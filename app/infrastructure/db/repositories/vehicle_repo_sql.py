from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces.vehicle_repo import VehicleRepo
from app.domain.entities.vehicle import Vehicle, VehicleStatus
from app.infrastructure.db.tables import vehicles


class VehicleRepoSQL(VehicleRepo):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, vehicle_id: str) -> Vehicle | None:
        stmt = select(vehicles).where(vehicles.c.id == vehicle_id).limit(1)
        result = await self._session.execute(stmt)
        row = result.mappings().first()
        if not row:
            return None
        price = row.get("price_per_week")
        return Vehicle(
            id=row["id"],
            partner_id=row["partner_id"],
            make=row["make"],
            model=row["model"],
            year=row.get("year"),
            registration_number=row.get("registration_number"),
            price_per_week=Decimal(price) if price is not None else None,
            status=VehicleStatus(row["status"]),
            current_booking_id=row.get("current_booking_id"),
            mileage=row.get("mileage"),
            documents=row.get("documents") or {},
        )

    async def reserve(self, vehicle_id: str, booking_id: str) -> bool:
        # Only one booking can win the available -> booked flip.
        stmt = (
            update(vehicles)
            .where(
                vehicles.c.id == vehicle_id,
                vehicles.c.status == VehicleStatus.AVAILABLE.value,
            )
            .values(status=VehicleStatus.BOOKED.value, current_booking_id=booking_id)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def release(self, vehicle_id: str, mileage: int | None = None) -> None:
        values = {"status": VehicleStatus.AVAILABLE.value, "current_booking_id": None}
        if mileage is not None:
            values["mileage"] = mileage
        await self._session.execute(
            update(vehicles).where(vehicles.c.id == vehicle_id).values(**values)
        )
