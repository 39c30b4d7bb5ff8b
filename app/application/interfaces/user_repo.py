from dataclasses import dataclass, field
from typing import Any


@dataclass
class DriverRecord:
    id: str
    full_name: str
    email: str
    phone: str | None = None


@dataclass
class PartnerRecord:
    id: str
    company_name: str
    email: str
    phone: str | None = None


@dataclass
class PartnerStaffRecord:
    id: str
    partner_id: str
    user_id: str
    is_active: bool = True
    permissions: dict[str, Any] = field(default_factory=dict)

    @property
    def can_view_financials(self) -> bool:
        return bool(self.permissions.get("canViewFinancials"))


class UserRepo:
    async def get_driver(self, driver_id: str) -> DriverRecord | None:
        raise NotImplementedError

    async def get_partner(self, partner_id: str) -> PartnerRecord | None:
        raise NotImplementedError

    async def list_finance_staff(self, partner_id: str) -> list[PartnerStaffRecord]:
        """Active staff members of the partner allowed to view financials."""
        raise NotImplementedError
