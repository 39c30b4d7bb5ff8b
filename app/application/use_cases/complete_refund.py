import logging

from app.api.schemas.payments import CompleteRefundRequest, CompleteRefundResponse
from app.application import effects
from app.application.effects import EffectPublisher
from app.application.interfaces.booking_repo import BookingRepo
from app.application.interfaces.clock import Clock
from app.application.interfaces.payment_instruction_repo import PaymentInstructionRepo
from app.application.interfaces.transaction_manager import TransactionManager
from app.domain.constants import CATEGORY_DEPOSIT_REFUND, CATEGORY_VEHICLE_RENTAL, SOURCE_PARTNER
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


class CompleteRefundUseCase:
    """
    Partner reports a pending refund instruction as paid out.

    Refunds raised on rejection are settled here. A deposit refund also
    closes the deposit it was raised for. Refunds raised on cancellation
    were written to the ledger at cancel time and are not written again.
    """

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

    async def execute(self, request: CompleteRefundRequest) -> CompleteRefundResponse:
        now = self._clock.now()
        async with self._transaction_manager.start():
            refund = await self._instruction_repo.get(request.instruction_id)
            if not refund:
                raise NotFoundError("Payment instruction", request.instruction_id)
            if refund.partner_id != request.partner_id:
                raise AuthorizationError("Not your payment")
            if refund.type != InstructionType.REFUND:
                raise PaymentInstructionStateError(refund.id, "Not a refund instruction")
            if refund.status == InstructionStatus.REFUNDED:
                raise PaymentInstructionStateError(refund.id, "Refund already completed")
            if refund.status != InstructionStatus.PENDING:
                raise PaymentInstructionStateError(
                    refund.id, f"Refund cannot be completed from '{refund.status.value}'"
                )
            booking = await self._booking_repo.get(refund.booking_id)
            if not booking:
                raise NotFoundError("Booking", refund.booking_id)

            settled = {
                "status": InstructionStatus.REFUNDED,
                "refunded_amount": refund.amount,
                "refunded_at": now,
                "updated_at": now,
            }
            updated = await self._instruction_repo.update_if_status(
                refund.id, InstructionStatus.PENDING, settled
            )
            if updated is None:
                raise PaymentInstructionStateError(refund.id, "Refund changed concurrently")

            if refund.source_instruction_id is not None:
                deposit = await self._instruction_repo.update_if_status(
                    refund.source_instruction_id,
                    InstructionStatus.DEPOSIT_RECEIVED,
                    {**settled, "status": InstructionStatus.DEPOSIT_REFUNDED},
                )
                if deposit is None:
                    raise PaymentInstructionStateError(
                        refund.source_instruction_id, "Deposit is no longer held"
                    )
                booking = await self._booking_repo.transition(
                    booking.id,
                    booking.status,
                    {"deposit_refunded": booking.deposit_refunded + refund.amount, "updated_at": now},
                    operation="refund deposit for",
                )

        self._logger.info(
            "Refund completed",
            extra={
                "instruction_id": updated.id,
                "booking_id": booking.id,
                "amount": str(updated.amount),
                "source_instruction_id": updated.source_instruction_id,
            },
        )
        await self._publisher.publish(booking.id, self._effects(booking, updated, request))
        return CompleteRefundResponse(
            instruction_id=updated.id,
            booking_id=booking.id,
            status=updated.status.value,
            refunded_amount=updated.refunded_amount,
        )

    def _effects(
        self, booking: Booking, refund: PaymentInstruction, request: CompleteRefundRequest
    ) -> list[effects.Effect]:
        amount = Money(refund.amount, self._currency)
        is_deposit = refund.source_instruction_id is not None
        data = {
            "booking_id": booking.id,
            "instruction_id": refund.id,
            "amount": refund.amount,
            "reference": request.reference,
        }
        result = []
        if not refund.ledger_recorded:
            category = CATEGORY_DEPOSIT_REFUND if is_deposit else CATEGORY_VEHICLE_RENTAL
            income, expense = LedgerTransaction.matched_pair(
                booking_id=booking.id,
                partner_id=booking.partner_id,
                driver_id=booking.driver_id,
                amount=-refund.amount,
                income_category=category,
                expense_category=category,
                income_source=SOURCE_PARTNER,
                expense_source=SOURCE_PARTNER,
                description=f"Refund paid for booking {booking.id}",
                reference=request.reference or str(refund.id),
            )
            result.append(effects.ledger("ledger:refund", income, expense))
        result.extend(
            [
                effects.history(
                    booking.id,
                    action="deposit_refunded" if is_deposit else "refund_completed",
                    performed_by=request.partner_id,
                    performed_by_type=ActorType.PARTNER.value,
                    description=f"Refund of {amount} paid out",
                    details=data,
                ),
                effects.notify(
                    "driver_notification",
                    RecipientType.DRIVER,
                    booking.driver_id,
                    type="deposit_refunded" if is_deposit else "refund_sent",
                    title="Refund sent",
                    message=f"Your refund of {amount} for booking {booking.id} has been sent.",
                    priority=NotificationPriority.MEDIUM,
                    data=data,
                ),
            ]
        )
        return result
