import logging
from decimal import Decimal

from app.api.schemas.payments import ConfirmPaymentReceivedRequest, ConfirmPaymentReceivedResponse
from app.application import effects
from app.application.effects import EffectPublisher
from app.application.interfaces.booking_repo import BookingRepo
from app.application.interfaces.clock import Clock
from app.application.interfaces.payment_instruction_repo import PaymentInstructionRepo
from app.application.interfaces.transaction_manager import TransactionManager
from app.application.interfaces.user_repo import UserRepo
from app.domain.constants import (
    CATEGORY_BOOKING_REVENUE,
    CATEGORY_PLATFORM_COMMISSION,
    CATEGORY_VEHICLE_RENTAL,
    SOURCE_DRIVER,
    SOURCE_PARTNER,
    SOURCE_PLATFORM,
    ZERO,
)
from app.domain.entities.booking import ActorType, Booking, BookingPaymentStatus
from app.domain.entities.ledger_transaction import LedgerTransaction, TransactionType
from app.domain.entities.notification import NotificationPriority, RecipientType
from app.domain.entities.payment_instruction import (
    InstructionMethod,
    InstructionStatus,
    InstructionType,
    PaymentInstruction,
)
from app.domain.errors import NotFoundError, PaymentInstructionStateError
from app.domain.pricing import platform_fee
from app.domain.value_objects.money import Money


class ConfirmPaymentReceivedUseCase:
    """
    Partner/admin confirms that a manual bank transfer arrived.

    Deposits and one-off payments settle for good; weekly rent goes back to
    pending with its due date moved one week on.
    """

    def __init__(
        self,
        booking_repo: BookingRepo,
        instruction_repo: PaymentInstructionRepo,
        user_repo: UserRepo,
        transaction_manager: TransactionManager,
        publisher: EffectPublisher,
        clock: Clock,
        platform_fee_rate: Decimal = ZERO,
        currency: str = "GBP",
    ) -> None:
        self._booking_repo = booking_repo
        self._instruction_repo = instruction_repo
        self._user_repo = user_repo
        self._transaction_manager = transaction_manager
        self._publisher = publisher
        self._clock = clock
        self._platform_fee_rate = platform_fee_rate
        self._currency = currency
        self._logger = logging.getLogger(__name__)

    async def execute(
        self, request: ConfirmPaymentReceivedRequest
    ) -> ConfirmPaymentReceivedResponse:
        now = self._clock.now()
        async with self._transaction_manager.start():
            instruction = await self._resolve(request)
            if instruction.method != InstructionMethod.BANK_TRANSFER:
                raise PaymentInstructionStateError(
                    instruction.id, "Only manual transfers require confirmation"
                )
            if instruction.type == InstructionType.REFUND:
                raise PaymentInstructionStateError(
                    instruction.id, "Refunds are settled through the refund endpoints"
                )
            if instruction.status != InstructionStatus.SENT:
                raise PaymentInstructionStateError(instruction.id, "Payment not marked sent yet")
            booking = await self._booking_repo.get(instruction.booking_id)
            if not booking:
                raise NotFoundError("Booking", instruction.booking_id)

            if instruction.is_recurring:
                changes = {
                    "status": InstructionStatus.PENDING,
                    "next_due_date": instruction.advanced_due_date(now),
                }
            else:
                changes = {"status": InstructionStatus.DEPOSIT_RECEIVED}
            changes.update(last_confirmed_at=now, updated_at=now)

            updated = await self._instruction_repo.update_if_status(
                instruction.id, InstructionStatus.SENT, changes
            )
            if updated is None:
                raise PaymentInstructionStateError(instruction.id, "Payment not marked sent yet")

            # Payment bookkeeping does not change the lifecycle status.
            booking = await self._booking_repo.transition(
                booking.id,
                booking.status,
                {
                    "payment_status": BookingPaymentStatus.PAID.value,
                    "last_payment_date": now,
                    "total_paid": booking.total_paid + instruction.amount,
                    "updated_at": now,
                },
                operation="confirm payment for",
            )
            staff = await self._user_repo.list_finance_staff(booking.partner_id)

        self._logger.info(
            "Payment confirmed",
            extra={
                "instruction_id": updated.id,
                "booking_id": booking.id,
                "amount": str(updated.amount),
                "next_due_date": updated.next_due_date.isoformat() if updated.is_recurring else None,
            },
        )
        await self._publisher.publish(
            booking.id,
            self._effects(booking, updated, request.confirmed_by, [s.user_id for s in staff]),
        )
        return ConfirmPaymentReceivedResponse(
            instruction_id=updated.id,
            booking_id=booking.id,
            status=updated.status.value,
            amount=updated.amount,
            next_due_date=updated.next_due_date if updated.is_recurring else None,
        )

    async def _resolve(self, request: ConfirmPaymentReceivedRequest) -> PaymentInstruction:
        if request.instruction_id is not None:
            instruction = await self._instruction_repo.get(request.instruction_id)
            if not instruction:
                raise NotFoundError("Payment instruction", request.instruction_id)
            return instruction
        instruction = await self._instruction_repo.find_for_booking(
            request.booking_id, InstructionType.DEPOSIT, InstructionStatus.SENT
        )
        if not instruction:
            raise NotFoundError("Payment instruction", f"sent deposit for {request.booking_id}")
        return instruction

    def _effects(
        self,
        booking: Booking,
        instruction: PaymentInstruction,
        confirmed_by: str | None,
        staff_ids: list[str],
    ) -> list[effects.Effect]:
        amount = Money(instruction.amount, self._currency)
        label = "Deposit" if instruction.type == InstructionType.DEPOSIT else "Weekly payment"
        income, expense = LedgerTransaction.matched_pair(
            booking_id=booking.id,
            partner_id=booking.partner_id,
            driver_id=booking.driver_id,
            amount=instruction.amount,
            income_category=CATEGORY_BOOKING_REVENUE,
            expense_category=CATEGORY_VEHICLE_RENTAL,
            income_source=SOURCE_DRIVER,
            expense_source=SOURCE_PARTNER,
            description=f"{label} received for booking {booking.id}",
            reference=str(instruction.id),
        )
        result = [effects.ledger("ledger:payment", income, expense)]

        fee = platform_fee(instruction.amount, self._platform_fee_rate)
        if fee > 0:
            commission = LedgerTransaction(
                booking_id=booking.id,
                partner_id=booking.partner_id,
                driver_id=None,
                type=TransactionType.EXPENSE,
                category=CATEGORY_PLATFORM_COMMISSION,
                amount=fee,
                net_amount=fee,
                fees={"platform_fee_rate": str(self._platform_fee_rate)},
                source=SOURCE_PLATFORM,
                description=f"Platform commission on {label.lower()}",
                reference=str(instruction.id),
            )
            result.append(effects.ledger("ledger:commission", commission))

        data = {
            "booking_id": booking.id,
            "instruction_id": instruction.id,
            "amount": instruction.amount,
            "next_due_date": instruction.next_due_date if instruction.is_recurring else None,
        }
        result.append(
            effects.history(
                booking.id,
                action="weekly_payment_received",
                performed_by=confirmed_by or booking.partner_id,
                performed_by_type=ActorType.PARTNER.value,
                description=f"{label} of {amount} confirmed",
                details={**data, "instruction_type": instruction.type.value},
            )
        )
        result.append(
            effects.notify(
                "driver_notification",
                RecipientType.DRIVER,
                booking.driver_id,
                type="payment_confirmed",
                title="Payment received",
                message=f"Your {label.lower()} of {amount} was received.",
                priority=NotificationPriority.MEDIUM,
                data=data,
            )
        )
        for recipient_type, recipient_id in [(RecipientType.PARTNER, booking.partner_id)] + [
            (RecipientType.PARTNER_STAFF, staff_id) for staff_id in staff_ids
        ]:
            result.append(
                effects.notify(
                    f"{recipient_type.value}_notification",
                    recipient_type,
                    recipient_id,
                    type="payment_received",
                    title="Payment received",
                    message=f"{label} of {amount} confirmed for booking {booking.id}.",
                    priority=NotificationPriority.MEDIUM,
                    data=data,
                )
            )
        return result
