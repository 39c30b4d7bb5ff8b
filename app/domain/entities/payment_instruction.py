"""PaymentInstruction entity - a scheduled or settled payment obligation."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum

from app.domain.constants import RECEIVED_INSTRUCTION_STATUSES, WEEKLY_INTERVAL_DAYS


class InstructionType(str, Enum):
    DEPOSIT = "deposit"
    WEEKLY_RENT = "weekly_rent"
    FINAL_PAYMENT = "final_payment"
    REFUND = "refund"


class InstructionMethod(str, Enum):
    BANK_TRANSFER = "bank_transfer"
    DIRECT_DEBIT = "direct_debit"


class InstructionStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    DEPOSIT_RECEIVED = "deposit_received"
    COMPLETED = "completed"
    RECEIVED = "received"
    DEPOSIT_REFUNDED = "deposit_refunded"
    REFUNDED = "refunded"
    REFUND_REJECTED = "refund_rejected"


class InstructionFrequency(str, Enum):
    WEEKLY = "weekly"
    ONE_OFF = "one_off"


@dataclass
class PaymentInstruction:
    booking_id: str
    driver_id: str
    partner_id: str
    amount: Decimal
    type: InstructionType
    method: InstructionMethod = InstructionMethod.BANK_TRANSFER
    status: InstructionStatus = InstructionStatus.PENDING
    frequency: InstructionFrequency = InstructionFrequency.ONE_OFF
    next_due_date: datetime | None = None
    vehicle_reg: str | None = None
    notes: str | None = None
    last_sent_at: datetime | None = None
    last_confirmed_at: datetime | None = None
    # Refund bookkeeping
    source_instruction_id: int | None = None
    ledger_recorded: bool = False
    refunded_amount: Decimal | None = None
    refunded_at: datetime | None = None
    refund_rejection_reason: str | None = None
    refund_rejected_at: datetime | None = None
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_recurring(self) -> bool:
        return (
            self.type != InstructionType.DEPOSIT
            and self.frequency != InstructionFrequency.ONE_OFF
        )

    @property
    def is_received(self) -> bool:
        return self.status.value in RECEIVED_INSTRUCTION_STATUSES

    def advanced_due_date(self, now: datetime) -> datetime:
        """Next due date after confirming this instalment: exactly one week on."""
        anchor = self.next_due_date or now
        return anchor + timedelta(days=WEEKLY_INTERVAL_DAYS)
