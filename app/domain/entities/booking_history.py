"""BookingHistoryEntry - append-only audit row, one per transition."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class BookingHistoryEntry:
    booking_id: str
    action: str
    performed_by: str
    performed_by_type: str
    description: str
    details: dict[str, Any] = field(default_factory=dict)
    id: int | None = None
    created_at: datetime | None = None
