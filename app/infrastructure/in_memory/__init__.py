"""In-memory implementations for tests and local runs."""

from app.infrastructure.in_memory.booking_repo import InMemoryBookingRepo
from app.infrastructure.in_memory.gateways import InMemoryNotificationGateway, StubRefundGateway
from app.infrastructure.in_memory.idempotency_repo import InMemoryIdempotencyRepo
from app.infrastructure.in_memory.ledger_repos import (
    InMemoryBookingHistoryRepo,
    InMemoryTransactionRepo,
)
from app.infrastructure.in_memory.outbox_repo import InMemoryOutboxRepo
from app.infrastructure.in_memory.partner_driver_repo import InMemoryPartnerDriverRepo
from app.infrastructure.in_memory.payment_instruction_repo import InMemoryPaymentInstructionRepo
from app.infrastructure.in_memory.transaction_manager import NoopTransactionManager
from app.infrastructure.in_memory.user_repo import InMemoryUserRepo
from app.infrastructure.in_memory.vehicle_repo import InMemoryVehicleRepo

__all__ = [
    # Repositories
    "InMemoryBookingRepo",
    "InMemoryBookingHistoryRepo",
    "InMemoryIdempotencyRepo",
    "InMemoryOutboxRepo",
    "InMemoryPartnerDriverRepo",
    "InMemoryPaymentInstructionRepo",
    "InMemoryTransactionRepo",
    "InMemoryUserRepo",
    "InMemoryVehicleRepo",
    # Gateways
    "InMemoryNotificationGateway",
    "StubRefundGateway",
    # Infrastructure
    "NoopTransactionManager",
]
