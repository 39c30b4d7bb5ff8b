from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import Field, constr, field_validator

from app.api.schemas.common import Amount, CamelModel, ensure_utc

Identifier = constr(strip_whitespace=True, min_length=1, max_length=64)


class CreateBookingRequest(CamelModel):
    driver_id: Identifier
    partner_id: Identifier
    vehicle_id: Identifier
    start_date: datetime
    end_date: datetime
    weekly_rate: Amount = Field(gt=0)
    deposit_amount: Amount = Field(default=Decimal("0"), ge=0)
    insurance_required: bool = False
    partner_provides_insurance: bool = False
    requires_document_verification: bool = False
    payment_method: Literal["bank_transfer", "direct_debit"] = "bank_transfer"
    stripe_customer_id: str | None = None
    stripe_subscription_id: str | None = None
    requires_partner_approval_first: bool = False

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class CreateBookingResponse(CamelModel):
    booking_id: str
    status: str
    total_weeks: int
    total_amount: Decimal
    payment_deadline: datetime | None = None
    partner_acceptance_deadline: datetime | None = None


class PartnerResponseRequest(CamelModel):
    booking_id: Identifier
    partner_id: Identifier
    action: str
    rejection_reason: str | None = None
    override_insurance: bool = False


class PartnerResponseResponse(CamelModel):
    booking_id: str
    action: str
    status: str
    response_time_minutes: int
    auto_activated: bool = False
    released_documents: list[dict[str, Any]] = Field(default_factory=list)


class ActivateBookingRequest(CamelModel):
    booking_id: Identifier
    partner_id: Identifier
    bypass_requirements: bool = False


class ActivateBookingResponse(CamelModel):
    booking_id: str
    status: str
    activated_trigger: str


class CancelBookingRequest(CamelModel):
    booking_id: Identifier
    reason: constr(strip_whitespace=True, min_length=1)
    cancel_type: str
    insurance_refund_amount: Amount = Field(default=Decimal("0"), ge=0)
    cancelled_by: str | None = None
    cancelled_by_type: Literal["driver", "partner", "admin"] = "driver"


class CancelBookingResponse(CamelModel):
    booking_id: str
    status: str
    refund_amount: Decimal
    insurance_refund: Decimal
    days_used: int
    remaining_days: int
    stripe_refund_id: str | None = None


class FinishBookingRequest(CamelModel):
    booking_id: Identifier
    finished_by: Identifier
    finished_by_type: str
    final_notes: str | None = None
    final_mileage: int | None = Field(default=None, ge=0)
    final_fuel_level: str | None = None


class FinishBookingResponse(CamelModel):
    booking_id: str
    status: str
    total_days: int
    total_weeks: int
    final_amount: Decimal
    outstanding_amount: Decimal
    payment_status: str


class ReturnRequest(CamelModel):
    booking_id: Identifier
    requested_by: Identifier
    requested_by_type: Literal["driver", "partner", "admin"]
    action: Literal["request", "approve", "reject"] = "request"
    reason: str | None = Field(default=None, max_length=500)


class ReturnResponse(CamelModel):
    booking_id: str
    action: str
    status: str
    return_requested: bool
    return_approved: bool


class BookingResponse(CamelModel):
    id: str
    driver_id: str
    partner_id: str
    vehicle_id: str
    status: str
    payment_status: str
    start_date: datetime
    end_date: datetime
    weekly_rate: Decimal
    deposit_amount: Decimal
    total_weeks: int
    total_amount: Decimal
    total_paid: Decimal
    final_amount: Decimal | None = None
    outstanding_amount: Decimal | None = None
    refund_amount: Decimal | None = None
    deposit_refunded: Decimal = Decimal("0")
    return_requested: bool = False
    return_approved: bool = False
    partner_acceptance_deadline: datetime | None = None
    payment_deadline: datetime | None = None
    insurance_upload_deadline: datetime | None = None
    activated_trigger: str | None = None
    driver_snapshot: dict[str, Any] | None = None
    partner_snapshot: dict[str, Any] | None = None
    vehicle_snapshot: dict[str, Any] | None = None
    released_documents: list[dict[str, Any]] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None
