import logging
from datetime import timedelta

from app.api.schemas.payments import MarkPaymentSentRequest, MarkPaymentSentResponse
from app.application import effects
from app.application.effects import EffectPublisher
from app.application.interfaces.booking_repo import BookingRepo
from app.application.interfaces.clock import Clock
from app.application.interfaces.payment_instruction_repo import PaymentInstructionRepo
from app.application.interfaces.transaction_manager import TransactionManager
from app.application.interfaces.user_repo import UserRepo
from app.domain.entities.booking import ActorType, Booking, BookingStatus
from app.domain.entities.notification import NotificationPriority, RecipientType
from app.domain.entities.payment_instruction import (
    InstructionMethod,
    InstructionStatus,
    InstructionType,
    PaymentInstruction,
)
from app.domain.errors import AuthorizationError, NotFoundError, PaymentInstructionStateError
from app.domain.lifecycle import BookingAction, next_status
from app.domain.value_objects.money import Money


class MarkPaymentSentUseCase:
    """
    Driver reports a manual bank transfer as sent.

    The first transfer on a booking still awaiting payment moves it on to
    partner approval and starts the acceptance clock.
    """

    def __init__(
        self,
        booking_repo: BookingRepo,
        instruction_repo: PaymentInstructionRepo,
        user_repo: UserRepo,
        transaction_manager: TransactionManager,
        publisher: EffectPublisher,
        clock: Clock,
        partner_acceptance_deadline_hours: int = 2,
        currency: str = "GBP",
    ) -> None:
        self._booking_repo = booking_repo
        self._instruction_repo = instruction_repo
        self._user_repo = user_repo
        self._transaction_manager = transaction_manager
        self._publisher = publisher
        self._clock = clock
        self._acceptance_deadline = timedelta(hours=partner_acceptance_deadline_hours)
        self._currency = currency
        self._logger = logging.getLogger(__name__)

    async def execute(self, request: MarkPaymentSentRequest) -> MarkPaymentSentResponse:
        now = self._clock.now()
        async with self._transaction_manager.start():
            instruction = await self._instruction_repo.get(request.instruction_id)
            if not instruction:
                raise NotFoundError("Payment instruction", request.instruction_id)
            if instruction.driver_id != request.driver_id:
                raise AuthorizationError("Not your payment")
            if instruction.method != InstructionMethod.BANK_TRANSFER:
                raise PaymentInstructionStateError(
                    instruction.id, "Only manual transfers can be marked as sent"
                )
            if instruction.type == InstructionType.REFUND:
                raise PaymentInstructionStateError(
                    instruction.id, "Refunds are paid out by the partner"
                )
            if instruction.status == InstructionStatus.SENT:
                raise PaymentInstructionStateError(instruction.id, "Payment already marked as sent")
            if instruction.status != InstructionStatus.PENDING:
                raise PaymentInstructionStateError(instruction.id, "Payment is not awaiting transfer")

            booking = await self._booking_repo.get(instruction.booking_id)
            if not booking:
                raise NotFoundError("Booking", instruction.booking_id)

            updated = await self._instruction_repo.update_if_status(
                instruction.id,
                InstructionStatus.PENDING,
                {"status": InstructionStatus.SENT, "last_sent_at": now, "updated_at": now},
            )
            if updated is None:
                raise PaymentInstructionStateError(instruction.id, "Payment changed concurrently")

            promoted = booking.status == BookingStatus.PENDING_PAYMENT
            if promoted:
                booking = await self._booking_repo.transition(
                    booking.id,
                    BookingStatus.PENDING_PAYMENT,
                    {
                        "status": next_status(
                            booking.status,
                            BookingAction.PAYMENT_SENT,
                            BookingStatus.PENDING_PARTNER_APPROVAL,
                        ),
                        "partner_acceptance_deadline": now + self._acceptance_deadline,
                        "updated_at": now,
                    },
                    operation="mark payment sent",
                )
            staff = await self._user_repo.list_finance_staff(booking.partner_id)

        self._logger.info(
            "Payment marked as sent",
            extra={
                "instruction_id": updated.id,
                "booking_id": booking.id,
                "promoted": promoted,
            },
        )
        await self._publisher.publish(
            booking.id, self._effects(booking, updated, promoted, [s.user_id for s in staff])
        )
        return MarkPaymentSentResponse(
            instruction_id=updated.id,
            booking_id=booking.id,
            status=updated.status.value,
            booking_status=booking.status.value,
        )

    def _effects(
        self,
        booking: Booking,
        instruction: PaymentInstruction,
        promoted: bool,
        staff_ids: list[str],
    ) -> list[effects.Effect]:
        amount = Money(instruction.amount, self._currency)
        data = {"booking_id": booking.id, "instruction_id": instruction.id}
        if promoted:
            notice_type, title = "new_booking", "New booking awaiting approval"
            message = f"First payment of {amount} sent for booking {booking.id}. Please respond."
        else:
            notice_type, title = "payment_sent", "Payment sent"
            message = f"Driver reports a transfer of {amount} for booking {booking.id}."

        result = []
        if promoted:
            result.append(
                effects.history(
                    booking.id,
                    action="first_payment_sent",
                    performed_by=booking.driver_id,
                    performed_by_type=ActorType.DRIVER.value,
                    description=f"First payment of {amount} marked as sent",
                    details={
                        "instruction_id": instruction.id,
                        "partner_acceptance_deadline": booking.partner_acceptance_deadline,
                    },
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
                    type=notice_type,
                    title=title,
                    message=message,
                    priority=NotificationPriority.HIGH,
                    data=data,
                )
            )
        return result
