"""Party and vehicle snapshots copied onto a booking when it is created.

Snapshots are frozen: they keep the details that were true at booking time and
never follow later edits to the user or vehicle records.
"""

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class DriverSnapshot:
    id: str
    full_name: str
    email: str
    phone: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PartnerSnapshot:
    id: str
    company_name: str
    email: str
    phone: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class VehicleSnapshot:
    id: str
    make: str
    model: str
    year: int | None
    registration_number: str | None
    price_per_week: str | None = None

    @property
    def display_name(self) -> str:
        return f"{self.make} {self.model}".strip()

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ReleasedDocument:
    """A vehicle document made visible to the partner once payment is confirmed."""

    type: str
    url: str
    status: str
    expiry_date: str | None = None
    uploaded_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
