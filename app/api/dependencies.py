from functools import lru_cache
from typing import Any, Awaitable, Callable

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import AsyncSessionLocal
from app.api.schemas.workers import DispatchOutboxResponse
from app.application.effects import EffectPublisher
from app.application.interfaces.clock import SystemClock
from app.application.interfaces.uuid_generator import RealUUIDGenerator
from app.application.use_cases.activate_booking import ActivateBookingUseCase
from app.application.use_cases.cancel_booking import CancelBookingUseCase
from app.application.use_cases.check_booking_deadlines import CheckBookingDeadlinesUseCase
from app.application.use_cases.complete_refund import CompleteRefundUseCase
from app.application.use_cases.confirm_payment_received import ConfirmPaymentReceivedUseCase
from app.application.use_cases.create_booking import CreateBookingUseCase
from app.application.use_cases.dispatch_outbox import DispatchOutboxUseCase
from app.application.use_cases.finish_booking import FinishBookingUseCase
from app.application.use_cases.get_booking import GetBookingUseCase
from app.application.use_cases.mark_payment_sent import MarkPaymentSentUseCase
from app.application.use_cases.refund_deposit import RefundDepositUseCase
from app.application.use_cases.reject_refund import RejectRefundUseCase
from app.application.use_cases.request_return import RequestReturnUseCase
from app.application.use_cases.respond_to_booking import RespondToBookingUseCase
from app.config import Settings, get_settings
from app.infrastructure.db.repositories.booking_repo_sql import BookingRepoSQL
from app.infrastructure.db.repositories.idempotency_repo_sql import IdempotencyRepoSQL
from app.infrastructure.db.repositories.ledger_repos_sql import (
    BookingHistoryRepoSQL,
    TransactionRepoSQL,
)
from app.infrastructure.db.repositories.notification_repo_sql import NotificationGatewaySQL
from app.infrastructure.db.repositories.outbox_repo_sql import OutboxRepoSQL
from app.infrastructure.db.repositories.partner_driver_repo_sql import PartnerDriverRepoSQL
from app.infrastructure.db.repositories.payment_instruction_repo_sql import PaymentInstructionRepoSQL
from app.infrastructure.db.repositories.user_repo_sql import UserRepoSQL
from app.infrastructure.db.repositories.vehicle_repo_sql import VehicleRepoSQL
from app.infrastructure.db.transaction_manager import SQLAlchemyTransactionManager
from app.infrastructure.gateways.stripe_refund_gateway import StripeRefundGateway
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

EffectDispatcher = Callable[[], Awaitable[DispatchOutboxResponse]]


async def get_session(settings: Settings = Depends(get_settings)) -> AsyncSession | None:
    if settings.use_in_memory:
        yield None
        return
    async with AsyncSessionLocal() as session:
        yield session


def build_in_memory_bundle() -> dict[str, Any]:
    return {
        "booking_repo": InMemoryBookingRepo(),
        "vehicle_repo": InMemoryVehicleRepo(),
        "user_repo": InMemoryUserRepo(),
        "partner_driver_repo": InMemoryPartnerDriverRepo(),
        "instruction_repo": InMemoryPaymentInstructionRepo(),
        "transaction_repo": InMemoryTransactionRepo(),
        "history_repo": InMemoryBookingHistoryRepo(),
        "outbox_repo": InMemoryOutboxRepo(),
        "idempotency_repo": InMemoryIdempotencyRepo(),
        "notification_gateway": InMemoryNotificationGateway(),
        "refund_gateway": StubRefundGateway(),
        "tx_manager": NoopTransactionManager(),
        "clock": SystemClock(),
        "id_generator": RealUUIDGenerator(),
    }


@lru_cache(maxsize=1)
def _in_memory_bundle() -> dict[str, Any]:
    return build_in_memory_bundle()


def build_sql_bundle(session: AsyncSession, settings: Settings) -> dict[str, Any]:
    clock = SystemClock()
    return {
        "booking_repo": BookingRepoSQL(session),
        "vehicle_repo": VehicleRepoSQL(session),
        "user_repo": UserRepoSQL(session),
        "partner_driver_repo": PartnerDriverRepoSQL(session),
        "instruction_repo": PaymentInstructionRepoSQL(session),
        "transaction_repo": TransactionRepoSQL(session, clock),
        "history_repo": BookingHistoryRepoSQL(session, clock),
        "outbox_repo": OutboxRepoSQL(session),
        "idempotency_repo": IdempotencyRepoSQL(session),
        "notification_gateway": NotificationGatewaySQL(session, clock),
        "refund_gateway": StripeRefundGateway(api_key=settings.stripe_api_key),
        "tx_manager": SQLAlchemyTransactionManager(session),
        "clock": clock,
        "id_generator": RealUUIDGenerator(),
    }


def build_use_cases(bundle: dict[str, Any], settings: Settings) -> dict[str, Any]:
    """Wires every use case from one set of adapters."""
    publisher = EffectPublisher(
        outbox_repo=bundle["outbox_repo"],
        transaction_manager=bundle["tx_manager"],
        clock=bundle["clock"],
    )
    common = {
        "transaction_manager": bundle["tx_manager"],
        "publisher": publisher,
        "clock": bundle["clock"],
    }
    return {
        "create_booking": CreateBookingUseCase(
            booking_repo=bundle["booking_repo"],
            vehicle_repo=bundle["vehicle_repo"],
            user_repo=bundle["user_repo"],
            instruction_repo=bundle["instruction_repo"],
            idempotency_repo=bundle["idempotency_repo"],
            id_generator=bundle["id_generator"],
            payment_deadline_hours=settings.payment_deadline_hours,
            partner_acceptance_deadline_hours=settings.partner_acceptance_deadline_hours,
            currency=settings.currency,
            **common,
        ),
        "respond_to_booking": RespondToBookingUseCase(
            booking_repo=bundle["booking_repo"],
            vehicle_repo=bundle["vehicle_repo"],
            instruction_repo=bundle["instruction_repo"],
            partner_driver_repo=bundle["partner_driver_repo"],
            insurance_upload_deadline_hours=settings.insurance_upload_deadline_hours,
            **common,
        ),
        "activate_booking": ActivateBookingUseCase(
            booking_repo=bundle["booking_repo"],
            **common,
        ),
        "mark_payment_sent": MarkPaymentSentUseCase(
            booking_repo=bundle["booking_repo"],
            instruction_repo=bundle["instruction_repo"],
            user_repo=bundle["user_repo"],
            partner_acceptance_deadline_hours=settings.partner_acceptance_deadline_hours,
            currency=settings.currency,
            **common,
        ),
        "confirm_payment_received": ConfirmPaymentReceivedUseCase(
            booking_repo=bundle["booking_repo"],
            instruction_repo=bundle["instruction_repo"],
            user_repo=bundle["user_repo"],
            platform_fee_rate=settings.platform_fee_rate,
            currency=settings.currency,
            **common,
        ),
        "cancel_booking": CancelBookingUseCase(
            booking_repo=bundle["booking_repo"],
            vehicle_repo=bundle["vehicle_repo"],
            instruction_repo=bundle["instruction_repo"],
            refund_gateway=bundle["refund_gateway"],
            currency=settings.currency,
            **common,
        ),
        "finish_booking": FinishBookingUseCase(
            booking_repo=bundle["booking_repo"],
            vehicle_repo=bundle["vehicle_repo"],
            instruction_repo=bundle["instruction_repo"],
            currency=settings.currency,
            **common,
        ),
        "request_return": RequestReturnUseCase(
            booking_repo=bundle["booking_repo"],
            vehicle_repo=bundle["vehicle_repo"],
            **common,
        ),
        "refund_deposit": RefundDepositUseCase(
            booking_repo=bundle["booking_repo"],
            instruction_repo=bundle["instruction_repo"],
            currency=settings.currency,
            **common,
        ),
        "complete_refund": CompleteRefundUseCase(
            booking_repo=bundle["booking_repo"],
            instruction_repo=bundle["instruction_repo"],
            currency=settings.currency,
            **common,
        ),
        "reject_refund": RejectRefundUseCase(
            booking_repo=bundle["booking_repo"],
            instruction_repo=bundle["instruction_repo"],
            currency=settings.currency,
            **common,
        ),
        "check_deadlines": CheckBookingDeadlinesUseCase(
            booking_repo=bundle["booking_repo"],
            vehicle_repo=bundle["vehicle_repo"],
            partner_reminder_window_hours=settings.partner_reminder_window_hours,
            **common,
        ),
        "dispatch_outbox": DispatchOutboxUseCase(
            outbox_repo=bundle["outbox_repo"],
            history_repo=bundle["history_repo"],
            transaction_repo=bundle["transaction_repo"],
            notification_gateway=bundle["notification_gateway"],
            refund_gateway=bundle["refund_gateway"],
            transaction_manager=bundle["tx_manager"],
            clock=bundle["clock"],
            batch_size=settings.outbox_batch_size,
            max_attempts=settings.outbox_max_attempts,
        ),
        "get_booking": GetBookingUseCase(
            booking_repo=bundle["booking_repo"],
            transaction_manager=bundle["tx_manager"],
        ),
    }


def get_use_cases(
    settings: Settings = Depends(get_settings),
    session: AsyncSession | None = Depends(get_session),
) -> dict[str, Any]:
    if settings.use_in_memory:
        return build_use_cases(_in_memory_bundle(), settings)
    if not session:
        raise RuntimeError("DB session not available")
    return build_use_cases(build_sql_bundle(session, settings), settings)


async def dispatch_pending_effects(worker_id: str | None = None) -> DispatchOutboxResponse:
    """Drains one outbox batch on its own session, outside any request."""
    settings = get_settings()
    if settings.use_in_memory:
        use_cases = build_use_cases(_in_memory_bundle(), settings)
        return await use_cases["dispatch_outbox"].execute(worker_id=worker_id)
    async with AsyncSessionLocal() as session:
        use_cases = build_use_cases(build_sql_bundle(session, settings), settings)
        return await use_cases["dispatch_outbox"].execute(worker_id=worker_id)


def get_effect_dispatcher(settings: Settings = Depends(get_settings)) -> EffectDispatcher | None:
    """Dispatcher run after the response when effects are applied inline; None otherwise."""
    if not settings.dispatch_effects_inline:
        return None
    return dispatch_pending_effects
