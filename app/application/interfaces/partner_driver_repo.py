from dataclasses import dataclass
from datetime import datetime


@dataclass
class PartnerDriverRecord:
    partner_id: str
    driver_id: str
    full_name: str
    email: str
    phone: str | None
    first_booking_at: datetime
    last_booking_id: str | None = None


class PartnerDriverRepo:
    async def upsert(self, record: PartnerDriverRecord) -> PartnerDriverRecord:
        """Insert keyed by (partner_id, driver_id); an existing row keeps its first_booking_at."""
        raise NotImplementedError

    async def get(self, partner_id: str, driver_id: str) -> PartnerDriverRecord | None:
        raise NotImplementedError
