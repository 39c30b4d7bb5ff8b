import logging

from app.api.schemas.payments import RejectRefundRequest, RejectRefundResponse
from app.application import effects
from app.application.effects import EffectPublisher
from app.application.interfaces.booking_repo import BookingRepo
from app.application.interfaces.clock import Clock
from app.application.interfaces.payment_instruction_repo import PaymentInstructionRepo
from app.application.interfaces.transaction_manager import TransactionManager
from app.domain.constants import CATEGORY_VEHICLE_RENTAL, SOURCE_PARTNER
from app.domain.entities.booking import ActorType, Booking
from app.domain.entities.ledger_transaction import LedgerTransaction
from app.domain.entities.notification import NotificationPriority, RecipientType
from app.domain.entities.payment_instruction import (
    InstructionStatus,
    InstructionType,
    PaymentInstruction,
)
from app.domain.errors import AuthorizationError, NotFoundError, PaymentInstructionStateError
from app.domain.value_objects.money import Money


class RejectRefundUseCase:
    """Partner declines a pending refund; the driver and admins are told why."""

    def __init__(
        self,
        booking_repo: BookingRepo,
        instruction_repo: PaymentInstructionRepo,
        transaction_manager: TransactionManager,
        publisher: EffectPublisher,
        clock: Clock,
        currency: str = "GBP",
    ) -> None:
        self._booking_repo = booking_repo
        self._instruction_repo = instruction_repo
        self._transaction_manager = transaction_manager
        self._publisher = publisher
        self._clock = clock
        self._currency = currency
        self._logger = logging.getLogger(__name__)

    async def execute(self, request: RejectRefundRequest) -> RejectRefundResponse:
        now = self._clock.now()
        async with self._transaction_manager.start():
            refund = await self._instruction_repo.get(request.instruction_id)
            if not refund:
                raise NotFoundError("Payment instruction", request.instruction_id)
            if refund.partner_id != request.partner_id:
                raise AuthorizationError("Not your payment")
            if refund.type != InstructionType.REFUND:
                raise PaymentInstructionStateError(refund.id, "Not a refund instruction")
            if refund.status != InstructionStatus.PENDING:
                raise PaymentInstructionStateError(
                    refund.id, f"Refund cannot be rejected from '{refund.status.value}'"
                )
            booking = await self._booking_repo.get(refund.booking_id)
            if not booking:
                raise NotFoundError("Booking", refund.booking_id)

            updated = await self._instruction_repo.update_if_status(
                refund.id,
                InstructionStatus.PENDING,
                {
                    "status": InstructionStatus.REFUND_REJECTED,
                    "refund_rejection_reason": request.reason,
                    "refund_rejected_at": now,
                    "updated_at": now,
                },
            )
            if updated is None:
                raise PaymentInstructionStateError(refund.id, "Refund changed concurrently")

        self._logger.warning(
            "Refund rejected",
            extra={
                "instruction_id": updated.id,
                "booking_id": booking.id,
                "amount": str(updated.amount),
                "reason": request.reason,
            },
        )
        await self._publisher.publish(booking.id, self._effects(booking, updated, request))
        return RejectRefundResponse(
            instruction_id=updated.id,
            booking_id=booking.id,
            status=updated.status.value,
            reason=updated.refund_rejection_reason,
        )

    def _effects(
        self, booking: Booking, refund: PaymentInstruction, request: RejectRefundRequest
    ) -> list[effects.Effect]:
        amount = Money(refund.amount, self._currency)
        data = {
            "booking_id": booking.id,
            "instruction_id": refund.id,
            "amount": refund.amount,
            "reason": request.reason,
        }
        result = []
        # Cancellation refunds are booked when the cancel happens; reverse that entry.
        if refund.ledger_recorded:
            income, expense = LedgerTransaction.matched_pair(
                booking_id=booking.id,
                partner_id=booking.partner_id,
                driver_id=booking.driver_id,
                amount=refund.amount,
                income_category=CATEGORY_VEHICLE_RENTAL,
                expense_category=CATEGORY_VEHICLE_RENTAL,
                income_source=SOURCE_PARTNER,
                expense_source=SOURCE_PARTNER,
                description=f"Refund rejected for booking {booking.id}",
                reference=str(refund.id),
            )
            result.append(effects.ledger("ledger:refund_reversal", income, expense))
        result.extend(
            [
                effects.history(
                    booking.id,
                    action="refund_rejected",
                    performed_by=request.partner_id,
                    performed_by_type=ActorType.PARTNER.value,
                    description=f"Refund of {amount} rejected: {request.reason}",
                    details=data,
                ),
                effects.notify(
                    "driver_notification",
                    RecipientType.DRIVER,
                    booking.driver_id,
                    type="refund_rejected",
                    title="Refund rejected",
                    message=f"Your refund of {amount} was rejected. Reason: {request.reason}",
                    priority=NotificationPriority.HIGH,
                    data=data,
                ),
                effects.notify(
                    "admin_notification",
                    RecipientType.ADMIN,
                    None,
                    type="refund_rejected_admin",
                    title="Refund rejected",
                    message=f"Partner rejected a refund of {amount} on booking {booking.id}.",
                    priority=NotificationPriority.MEDIUM,
                    data=data,
                ),
            ]
        )
        return result
