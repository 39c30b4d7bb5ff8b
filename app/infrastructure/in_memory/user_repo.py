from app.application.interfaces.user_repo import (
    DriverRecord,
    PartnerRecord,
    PartnerStaffRecord,
    UserRepo,
)


class InMemoryUserRepo(UserRepo):
    def __init__(self) -> None:
        self.drivers: dict[str, DriverRecord] = {}
        self.partners: dict[str, PartnerRecord] = {}
        self.staff: list[PartnerStaffRecord] = []

    # Seeding helpers

    def add_driver(self, driver: DriverRecord) -> None:
        self.drivers[driver.id] = driver

    def add_partner(self, partner: PartnerRecord) -> None:
        self.partners[partner.id] = partner

    def add_staff(self, staff: PartnerStaffRecord) -> None:
        self.staff.append(staff)

    async def get_driver(self, driver_id: str) -> DriverRecord | None:
        return self.drivers.get(driver_id)

    async def get_partner(self, partner_id: str) -> PartnerRecord | None:
        return self.partners.get(partner_id)

    async def list_finance_staff(self, partner_id: str) -> list[PartnerStaffRecord]:
        return [
            s
            for s in self.staff
            if s.partner_id == partner_id and s.is_active and s.can_view_financials
        ]
