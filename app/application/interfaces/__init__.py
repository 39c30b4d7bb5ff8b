"""Ports of the application layer."""

from app.application.interfaces.booking_history_repo import BookingHistoryRepo
from app.application.interfaces.booking_repo import BookingRepo
from app.application.interfaces.clock import Clock, FakeClock, SystemClock
from app.application.interfaces.idempotency_repo import IdempotencyRecord, IdempotencyRepo
from app.application.interfaces.notification_gateway import NotificationGateway
from app.application.interfaces.outbox_repo import OutboxEvent, OutboxRepo
from app.application.interfaces.partner_driver_repo import PartnerDriverRecord, PartnerDriverRepo
from app.application.interfaces.payment_instruction_repo import PaymentInstructionRepo
from app.application.interfaces.refund_gateway import RefundGateway, RefundResult
from app.application.interfaces.transaction_manager import TransactionManager
from app.application.interfaces.transaction_repo import TransactionRepo
from app.application.interfaces.user_repo import (
    DriverRecord,
    PartnerRecord,
    PartnerStaffRecord,
    UserRepo,
)
from app.application.interfaces.uuid_generator import (
    FakeUUIDGenerator,
    RealUUIDGenerator,
    UUIDGenerator,
)
from app.application.interfaces.vehicle_repo import VehicleRepo

__all__ = [
    # Repositories
    "BookingRepo",
    "BookingHistoryRepo",
    "IdempotencyRepo",
    "IdempotencyRecord",
    "OutboxRepo",
    "OutboxEvent",
    "PartnerDriverRepo",
    "PartnerDriverRecord",
    "PaymentInstructionRepo",
    "TransactionRepo",
    "UserRepo",
    "DriverRecord",
    "PartnerRecord",
    "PartnerStaffRecord",
    "VehicleRepo",
    # Gateways
    "NotificationGateway",
    "RefundGateway",
    "RefundResult",
    # Infrastructure
    "TransactionManager",
    # Utilities
    "Clock",
    "SystemClock",
    "FakeClock",
    "UUIDGenerator",
    "RealUUIDGenerator",
    "FakeUUIDGenerator",
]
