from app.domain.entities.booking import (
    TERMINAL_STATUSES,
    ActorType,
    Booking,
    BookingPaymentStatus,
    BookingStatus,
)
from app.domain.entities.booking_history import BookingHistoryEntry
from app.domain.entities.ledger_transaction import LedgerTransaction, TransactionType
from app.domain.entities.notification import Notification, NotificationPriority, RecipientType
from app.domain.entities.outbox_event import AGGREGATE_BOOKING, EffectType, OutboxStatus
from app.domain.entities.payment_instruction import (
    InstructionFrequency,
    InstructionMethod,
    InstructionStatus,
    InstructionType,
    PaymentInstruction,
)
from app.domain.entities.vehicle import Vehicle, VehicleStatus

__all__ = [
    "Booking",
    "BookingStatus",
    "BookingPaymentStatus",
    "ActorType",
    "TERMINAL_STATUSES",
    "BookingHistoryEntry",
    "LedgerTransaction",
    "TransactionType",
    "Notification",
    "NotificationPriority",
    "RecipientType",
    "AGGREGATE_BOOKING",
    "EffectType",
    "OutboxStatus",
    "PaymentInstruction",
    "InstructionType",
    "InstructionMethod",
    "InstructionStatus",
    "InstructionFrequency",
    "Vehicle",
    "VehicleStatus",
]
