"""
Infrastructure layer for the booking lifecycle.

Concrete implementations of the application ports.

Structure:
- db/: SQLAlchemy Core tables, SQL repositories, engine and deadlock retry
- gateways/: Stripe refund adapter
- in_memory/: in-memory implementations for tests and local runs
- messaging/: outbox worker
"""

# Database
from app.infrastructure.db.repositories.booking_repo_sql import BookingRepoSQL
from app.infrastructure.db.repositories.idempotency_repo_sql import IdempotencyRepoSQL
from app.infrastructure.db.repositories.ledger_repos_sql import BookingHistoryRepoSQL, TransactionRepoSQL
from app.infrastructure.db.repositories.notification_repo_sql import NotificationGatewaySQL
from app.infrastructure.db.repositories.outbox_repo_sql import OutboxRepoSQL
from app.infrastructure.db.repositories.partner_driver_repo_sql import PartnerDriverRepoSQL
from app.infrastructure.db.repositories.payment_instruction_repo_sql import PaymentInstructionRepoSQL
from app.infrastructure.db.repositories.user_repo_sql import UserRepoSQL
from app.infrastructure.db.repositories.vehicle_repo_sql import VehicleRepoSQL
from app.infrastructure.db.transaction_manager import SQLAlchemyTransactionManager

# Gateways
from app.infrastructure.gateways.stripe_refund_gateway import StripeRefundGateway

# In-Memory (for testing)
from app.infrastructure.in_memory import (
    InMemoryBookingHistoryRepo,
    InMemoryBookingRepo,
    InMemoryIdempotencyRepo,
    InMemoryNotificationGateway,
    InMemoryOutboxRepo,
    InMemoryPartnerDriverRepo,
    InMemoryPaymentInstructionRepo,
    InMemoryTransactionRepo,
    InMemoryUserRepo,
    InMemoryVehicleRepo,
    NoopTransactionManager,
    StubRefundGateway,
)

# Messaging
from app.infrastructure.messaging.outbox_worker import OutboxWorker

__all__ = [
    # Database - Repositories SQL
    "BookingRepoSQL",
    "BookingHistoryRepoSQL",
    "IdempotencyRepoSQL",
    "NotificationGatewaySQL",
    "OutboxRepoSQL",
    "PartnerDriverRepoSQL",
    "PaymentInstructionRepoSQL",
    "TransactionRepoSQL",
    "UserRepoSQL",
    "VehicleRepoSQL",
    "SQLAlchemyTransactionManager",
    # Gateways
    "StripeRefundGateway",
    # In-Memory Implementations
    "InMemoryBookingRepo",
    "InMemoryBookingHistoryRepo",
    "InMemoryIdempotencyRepo",
    "InMemoryNotificationGateway",
    "InMemoryOutboxRepo",
    "InMemoryPartnerDriverRepo",
    "InMemoryPaymentInstructionRepo",
    "InMemoryTransactionRepo",
    "InMemoryUserRepo",
    "InMemoryVehicleRepo",
    "NoopTransactionManager",
    "StubRefundGateway",
    # Messaging
    "OutboxWorker",
]
