import asyncio
import sys
from decimal import Decimal
from pathlib import Path

# Add project root to sys.path
project_root = Path(__file__).resolve().parent.parent
sys.path.append(str(project_root))

from sqlalchemy import insert  # noqa: E402

from app.api.deps import engine  # noqa: E402
from app.infrastructure.db.tables import (  # noqa: E402
    drivers,
    metadata,
    partner_staff,
    partners,
    vehicles,
)


async def seed():
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
        print("Created missing tables.")

        # Demo marketplace: one driver, one partner with a finance user, one car
        await conn.execute(
            insert(drivers).values(
                id="driver_demo", full_name="Demo Driver", email="driver@example.com", phone="+447700900000"
            )
        )
        await conn.execute(
            insert(partners).values(id="partner_demo", company_name="Demo Fleet Ltd", email="ops@example.com")
        )
        await conn.execute(
            insert(partner_staff).values(
                id="staff_demo",
                partner_id="partner_demo",
                user_id="user_finance_demo",
                is_active=True,
                permissions={"canViewFinancials": True, "canManageFinances": True},
            )
        )
        await conn.execute(
            insert(vehicles).values(
                id="vehicle_demo",
                partner_id="partner_demo",
                make="Toyota",
                model="Prius",
                registration_number="LD21 ABC",
                price_per_week=Decimal("250.00"),
                status="available",
                documents={
                    "mot": {"status": "approved", "url": "https://files.example.com/mot.pdf"},
                    "insurance": {"status": "approved", "url": "https://files.example.com/insurance.pdf"},
                },
            )
        )

        print("Seeded demo driver, partner and vehicle.")

if __name__ == "__main__":
    asyncio.run(seed())
