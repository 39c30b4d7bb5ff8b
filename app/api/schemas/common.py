from datetime import datetime, timezone
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, condecimal
from pydantic.alias_generators import to_camel

Amount = condecimal(max_digits=12, decimal_places=2)
PositiveAmount = condecimal(gt=0, max_digits=12, decimal_places=2)


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys; snake_case names also populate."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_encoders={Decimal: lambda v: format(v, ".2f")},
    )


def ensure_utc(value: datetime | None) -> datetime | None:
    """Naive datetimes are read as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
