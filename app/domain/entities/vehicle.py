"""Vehicle entity as seen by the booking lifecycle."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from app.domain.constants import RELEASABLE_VEHICLE_DOCUMENTS
from app.domain.value_objects.snapshots import ReleasedDocument, VehicleSnapshot


class VehicleStatus(str, Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    MAINTENANCE = "maintenance"
    INACTIVE = "inactive"


@dataclass
class Vehicle:
    id: str
    partner_id: str
    make: str
    model: str
    year: int | None = None
    registration_number: str | None = None
    price_per_week: Decimal | None = None
    status: VehicleStatus = VehicleStatus.AVAILABLE
    current_booking_id: str | None = None
    mileage: int | None = None
    # document type -> {"status", "url", "expiry_date", "uploaded_at"}
    documents: dict[str, dict[str, Any]] = field(default_factory=dict)

    @property
    def is_available(self) -> bool:
        return self.status == VehicleStatus.AVAILABLE

    def snapshot(self) -> VehicleSnapshot:
        return VehicleSnapshot(
            id=self.id,
            make=self.make,
            model=self.model,
            year=self.year,
            registration_number=self.registration_number,
            price_per_week=str(self.price_per_week) if self.price_per_week is not None else None,
        )

    def releasable_documents(self) -> tuple[ReleasedDocument, ...]:
        """Approved documents with an uploaded file, in a fixed order."""
        released = []
        for doc_type in RELEASABLE_VEHICLE_DOCUMENTS:
            doc = self.documents.get(doc_type) or {}
            if doc.get("status") != "approved" or not doc.get("url"):
                continue
            released.append(
                ReleasedDocument(
                    type=doc_type,
                    url=doc["url"],
                    status=doc["status"],
                    expiry_date=doc.get("expiry_date"),
                    uploaded_at=doc.get("uploaded_at"),
                )
            )
        return tuple(released)
