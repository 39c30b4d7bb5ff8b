from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces.user_repo import (
    DriverRecord,
    PartnerRecord,
    PartnerStaffRecord,
    UserRepo,
)
from app.infrastructure.db.tables import drivers, partner_staff, partners


class UserRepoSQL(UserRepo):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_driver(self, driver_id: str) -> DriverRecord | None:
        result = await self._session.execute(select(drivers).where(drivers.c.id == driver_id))
        row = result.mappings().first()
        if not row:
            return None
        return DriverRecord(
            id=row["id"], full_name=row["full_name"], email=row["email"], phone=row.get("phone")
        )

    async def get_partner(self, partner_id: str) -> PartnerRecord | None:
        result = await self._session.execute(select(partners).where(partners.c.id == partner_id))
        row = result.mappings().first()
        if not row:
            return None
        return PartnerRecord(
            id=row["id"],
            company_name=row["company_name"],
            email=row["email"],
            phone=row.get("phone"),
        )

    async def list_finance_staff(self, partner_id: str) -> list[PartnerStaffRecord]:
        # permissions live in a JSON column, so filter canViewFinancials here
        stmt = select(partner_staff).where(
            partner_staff.c.partner_id == partner_id,
            partner_staff.c.is_active.is_(True),
        )
        result = await self._session.execute(stmt)
        staff = [
            PartnerStaffRecord(
                id=row["id"],
                partner_id=row["partner_id"],
                user_id=row["user_id"],
                is_active=row["is_active"],
                permissions=row.get("permissions") or {},
            )
            for row in result.mappings().all()
        ]
        return [s for s in staff if s.can_view_financials]
