from datetime import datetime
from decimal import Decimal

from pydantic import constr, model_validator

from app.api.schemas.common import CamelModel, PositiveAmount


class MarkPaymentSentRequest(CamelModel):
    instruction_id: int
    driver_id: str


class MarkPaymentSentResponse(CamelModel):
    instruction_id: int
    booking_id: str
    status: str
    booking_status: str


class ConfirmPaymentReceivedRequest(CamelModel):
    instruction_id: int | None = None
    booking_id: str | None = None
    confirmed_by: str | None = None

    @model_validator(mode="after")
    def require_target(self) -> "ConfirmPaymentReceivedRequest":
        if self.instruction_id is None and not self.booking_id:
            raise ValueError("instructionId or bookingId is required")
        return self


class ConfirmPaymentReceivedResponse(CamelModel):
    instruction_id: int
    booking_id: str
    status: str
    amount: Decimal
    next_due_date: datetime | None = None


class RefundDepositRequest(CamelModel):
    instruction_id: int
    partner_id: str
    refund_amount: PositiveAmount | None = None


class RefundDepositResponse(CamelModel):
    instruction_id: int
    booking_id: str
    status: str
    refunded_amount: Decimal
    deposit_refunded: Decimal


class CompleteRefundRequest(CamelModel):
    instruction_id: int
    partner_id: str
    reference: str | None = None


class CompleteRefundResponse(CamelModel):
    instruction_id: int
    booking_id: str
    status: str
    refunded_amount: Decimal


class RejectRefundRequest(CamelModel):
    instruction_id: int
    partner_id: str
    reason: constr(strip_whitespace=True, min_length=1, max_length=500)


class RejectRefundResponse(CamelModel):
    instruction_id: int
    booking_id: str
    status: str
    reason: str
