import logging

from app.api.schemas.payments import RefundDepositRequest, RefundDepositResponse
from app.application import effects
from app.application.effects import EffectPublisher
from app.application.interfaces.booking_repo import BookingRepo
from app.application.interfaces.clock import Clock
from app.application.interfaces.payment_instruction_repo import PaymentInstructionRepo
from app.application.interfaces.transaction_manager import TransactionManager
from app.domain.constants import CATEGORY_DEPOSIT_REFUND, SOURCE_PARTNER
from app.domain.entities.booking import ActorType, Booking
from app.domain.entities.ledger_transaction import LedgerTransaction
from app.domain.entities.notification import NotificationPriority, RecipientType
from app.domain.entities.payment_instruction import (
    InstructionStatus,
    InstructionType,
    PaymentInstruction,
)
from app.domain.errors import (
    AuthorizationError,
    InvalidMoneyError,
    NotFoundError,
    PaymentInstructionStateError,
)
from app.domain.value_objects.money import Money

# A deposit is held once confirmed by hand or collected by the card rail.
HELD_DEPOSIT_STATUSES = frozenset(
    {InstructionStatus.DEPOSIT_RECEIVED, InstructionStatus.COMPLETED, InstructionStatus.RECEIVED}
)


class RefundDepositUseCase:
    """
    Partner returns a held deposit to the driver.

    The refund may be partial; whatever is not refunded stays with the
    partner. A deposit that already has an open refund instruction (raised
    when the booking was rejected) must be settled through that instruction.
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

    async def execute(self, request: RefundDepositRequest) -> RefundDepositResponse:
        now = self._clock.now()
        async with self._transaction_manager.start():
            deposit = await self._instruction_repo.get(request.instruction_id)
            if not deposit:
                raise NotFoundError("Payment instruction", request.instruction_id)
            if deposit.partner_id != request.partner_id:
                raise AuthorizationError("Not your payment")
            if deposit.type != InstructionType.DEPOSIT:
                raise PaymentInstructionStateError(deposit.id, "Not a deposit payment")
            if deposit.status == InstructionStatus.DEPOSIT_REFUNDED:
                raise PaymentInstructionStateError(deposit.id, "Deposit already refunded")
            if deposit.status not in HELD_DEPOSIT_STATUSES:
                raise PaymentInstructionStateError(deposit.id, "Deposit has not been received")

            amount = deposit.amount if request.refund_amount is None else request.refund_amount
            if amount > deposit.amount:
                raise InvalidMoneyError(
                    f"Refund of {Money(amount, self._currency)} exceeds the deposit of "
                    f"{Money(deposit.amount, self._currency)}"
                )

            booking = await self._booking_repo.get(deposit.booking_id)
            if not booking:
                raise NotFoundError("Booking", deposit.booking_id)
            instructions = await self._instruction_repo.list_for_booking(booking.id)
            open_refund = next(
                (
                    i
                    for i in instructions
                    if i.type == InstructionType.REFUND
                    and i.source_instruction_id == deposit.id
                    and i.status == InstructionStatus.PENDING
                ),
                None,
            )
            if open_refund:
                raise PaymentInstructionStateError(
                    deposit.id, f"Deposit refund already pending as instruction {open_refund.id}"
                )

            updated = await self._instruction_repo.update_if_status(
                deposit.id,
                deposit.status,
                {
                    "status": InstructionStatus.DEPOSIT_REFUNDED,
                    "refunded_amount": amount,
                    "refunded_at": now,
                    "updated_at": now,
                },
            )
            if updated is None:
                raise PaymentInstructionStateError(deposit.id, "Deposit changed concurrently")

            # Refund bookkeeping does not change the lifecycle status.
            booking = await self._booking_repo.transition(
                booking.id,
                booking.status,
                {"deposit_refunded": booking.deposit_refunded + amount, "updated_at": now},
                operation="refund deposit for",
            )

        self._logger.info(
            "Deposit refunded",
            extra={
                "instruction_id": updated.id,
                "booking_id": booking.id,
                "refunded_amount": str(amount),
                "deposit_amount": str(updated.amount),
            },
        )
        await self._publisher.publish(booking.id, self._effects(booking, updated, request))
        return RefundDepositResponse(
            instruction_id=updated.id,
            booking_id=booking.id,
            status=updated.status.value,
            refunded_amount=updated.refunded_amount,
            deposit_refunded=booking.deposit_refunded,
        )

    def _effects(
        self, booking: Booking, deposit: PaymentInstruction, request: RefundDepositRequest
    ) -> list[effects.Effect]:
        refund = Money(deposit.refunded_amount, self._currency)
        income, expense = LedgerTransaction.matched_pair(
            booking_id=booking.id,
            partner_id=booking.partner_id,
            driver_id=booking.driver_id,
            amount=-deposit.refunded_amount,
            income_category=CATEGORY_DEPOSIT_REFUND,
            expense_category=CATEGORY_DEPOSIT_REFUND,
            income_source=SOURCE_PARTNER,
            expense_source=SOURCE_PARTNER,
            description=f"Deposit refund for booking {booking.id}",
            reference=str(deposit.id),
        )
        data = {
            "booking_id": booking.id,
            "instruction_id": deposit.id,
            "refund_amount": deposit.refunded_amount,
            "deposit_amount": deposit.amount,
        }
        return [
            effects.ledger("ledger:deposit_refund", income, expense),
            effects.history(
                booking.id,
                action="deposit_refunded",
                performed_by=request.partner_id,
                performed_by_type=ActorType.PARTNER.value,
                description=f"Deposit refund of {refund} issued",
                details=data,
            ),
            effects.notify(
                "driver_notification",
                RecipientType.DRIVER,
                booking.driver_id,
                type="deposit_refunded",
                title="Deposit refunded",
                message=f"Your deposit refund of {refund} has been issued.",
                priority=NotificationPriority.MEDIUM,
                data=data,
            ),
        ]
