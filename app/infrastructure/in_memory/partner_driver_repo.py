from dataclasses import replace

from app.application.interfaces.partner_driver_repo import PartnerDriverRecord, PartnerDriverRepo


class InMemoryPartnerDriverRepo(PartnerDriverRepo):
    def __init__(self) -> None:
        self.records: dict[tuple[str, str], PartnerDriverRecord] = {}

    async def upsert(self, record: PartnerDriverRecord) -> PartnerDriverRecord:
        key = (record.partner_id, record.driver_id)
        existing = self.records.get(key)
        if existing:
            record = replace(record, first_booking_at=existing.first_booking_at)
        self.records[key] = record
        return record

    async def get(self, partner_id: str, driver_id: str) -> PartnerDriverRecord | None:
        return self.records.get((partner_id, driver_id))
