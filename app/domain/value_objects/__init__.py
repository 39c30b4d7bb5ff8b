from app.domain.value_objects.money import Money, quantize
from app.domain.value_objects.rental_period import RentalPeriod, ceil_days, ceil_weeks
from app.domain.value_objects.snapshots import (
    DriverSnapshot,
    PartnerSnapshot,
    ReleasedDocument,
    VehicleSnapshot,
)

__all__ = [
    "Money",
    "quantize",
    "RentalPeriod",
    "ceil_days",
    "ceil_weeks",
    "DriverSnapshot",
    "PartnerSnapshot",
    "VehicleSnapshot",
    "ReleasedDocument",
]
