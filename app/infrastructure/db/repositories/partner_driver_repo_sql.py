from dataclasses import replace

from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces.partner_driver_repo import PartnerDriverRecord, PartnerDriverRepo
from app.infrastructure.db.tables import partner_drivers


class PartnerDriverRepoSQL(PartnerDriverRepo):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, partner_id: str, driver_id: str) -> PartnerDriverRecord | None:
        stmt = select(partner_drivers).where(
            partner_drivers.c.partner_id == partner_id,
            partner_drivers.c.driver_id == driver_id,
        )
        result = await self._session.execute(stmt)
        row = result.mappings().first()
        if not row:
            return None
        return PartnerDriverRecord(
            partner_id=row["partner_id"],
            driver_id=row["driver_id"],
            full_name=row["full_name"],
            email=row["email"],
            phone=row.get("phone"),
            first_booking_at=row["first_booking_at"],
            last_booking_id=row.get("last_booking_id"),
        )

    async def upsert(self, record: PartnerDriverRecord) -> PartnerDriverRecord:
        existing = await self.get(record.partner_id, record.driver_id)
        if existing is None:
            await self._session.execute(
                insert(partner_drivers).values(
                    partner_id=record.partner_id,
                    driver_id=record.driver_id,
                    full_name=record.full_name,
                    email=record.email,
                    phone=record.phone,
                    first_booking_at=record.first_booking_at,
                    last_booking_id=record.last_booking_id,
                )
            )
            return record

        await self._session.execute(
            update(partner_drivers)
            .where(
                partner_drivers.c.partner_id == record.partner_id,
                partner_drivers.c.driver_id == record.driver_id,
            )
            .values(
                full_name=record.full_name,
                email=record.email,
                phone=record.phone,
                last_booking_id=record.last_booking_id,
            )
        )
        return replace(record, first_booking_at=existing.first_booking_at)
