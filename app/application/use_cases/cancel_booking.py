import logging
from decimal import Decimal

from app.api.schemas.bookings import CancelBookingRequest, CancelBookingResponse
from app.application import effects
from app.application.effects import EffectPublisher
from app.application.interfaces.booking_repo import BookingRepo
from app.application.interfaces.clock import Clock
from app.application.interfaces.payment_instruction_repo import PaymentInstructionRepo
from app.application.interfaces.refund_gateway import RefundGateway
from app.application.interfaces.transaction_manager import TransactionManager
from app.application.interfaces.vehicle_repo import VehicleRepo
from app.domain.constants import (
    CATEGORY_INSURANCE,
    CATEGORY_VEHICLE_RENTAL,
    SOURCE_PARTNER,
    SOURCE_STRIPE,
)
from app.domain.entities.booking import Booking, BookingPaymentStatus, BookingStatus
from app.domain.entities.ledger_transaction import LedgerTransaction
from app.domain.entities.notification import NotificationPriority, RecipientType
from app.domain.entities.payment_instruction import (
    InstructionFrequency,
    InstructionMethod,
    InstructionStatus,
    InstructionType,
    PaymentInstruction,
)
from app.domain.errors import BookingStatusConflictError, ExternalPaymentError, NotFoundError
from app.domain.lifecycle import BookingAction, can_apply, next_status
from app.domain.pricing import RefundQuote, actual_paid, calculate_refund, parse_cancel_type
from app.domain.value_objects.money import Money


class CancelBookingUseCase:
    def __init__(
        self,
        booking_repo: BookingRepo,
        vehicle_repo: VehicleRepo,
        instruction_repo: PaymentInstructionRepo,
        refund_gateway: RefundGateway,
        transaction_manager: TransactionManager,
        publisher: EffectPublisher,
        clock: Clock,
        currency: str = "GBP",
    ) -> None:
        self._booking_repo = booking_repo
        self._vehicle_repo = vehicle_repo
        self._instruction_repo = instruction_repo
        self._refund_gateway = refund_gateway
        self._transaction_manager = transaction_manager
        self._publisher = publisher
        self._clock = clock
        self._currency = currency
        self._logger = logging.getLogger(__name__)

    async def execute(self, request: CancelBookingRequest) -> CancelBookingResponse:
        cancel_type = parse_cancel_type(request.cancel_type)
        now = self._clock.now()

        async with self._transaction_manager.start():
            booking = await self._booking_repo.get(request.booking_id)
            if not booking:
                raise NotFoundError("Booking", request.booking_id)
            if not can_apply(booking.status, BookingAction.CANCEL):
                raise BookingStatusConflictError(
                    booking_id=booking.id,
                    current_status=booking.status.value,
                    operation="cancel",
                )
            instructions = await self._instruction_repo.list_for_booking(booking.id)

        period = booking.period
        quote = calculate_refund(
            cancel_type,
            paid=actual_paid(instructions),
            weekly_rate=booking.weekly_rate,
            days_used=period.days_used(now),
            total_days=period.total_days,
        )
        insurance_refund = request.insurance_refund_amount or Decimal("0")
        refund_due = booking.payment_status == BookingPaymentStatus.PAID.value and quote.refund_amount > 0
        # Only direct-debit bookings have a card on file; manual transfers are refunded by the partner.
        charge_rail = (
            refund_due
            and booking.payment_method == InstructionMethod.DIRECT_DEBIT.value
            and booking.stripe_customer_id is not None
        )

        # The refund goes out before any state changes; a provider failure aborts the cancel.
        refund_id = None
        if charge_rail:
            try:
                result = await self._refund_gateway.refund(
                    booking_id=booking.id,
                    amount=quote.refund_amount + insurance_refund,
                    currency=self._currency,
                    customer_id=booking.stripe_customer_id,
                    idempotency_key=f"cancel:{booking.id}",
                )
            except Exception as exc:
                self._logger.error(
                    "Refund failed, booking left unchanged",
                    exc_info=True,
                    extra={"booking_id": booking.id, "refund_amount": str(quote.refund_amount)},
                )
                raise ExternalPaymentError(booking.id, str(exc)) from exc
            refund_id = result.refund_id

        changes = {
            "status": next_status(booking.status, BookingAction.CANCEL, BookingStatus.CANCELLED),
            "cancelled_at": now,
            "cancelled_by": request.cancelled_by or booking.driver_id,
            "cancelled_by_type": request.cancelled_by_type,
            "cancellation_reason": request.reason,
            "cancellation_type": cancel_type.value,
            "refund_amount": quote.refund_amount,
            "updated_at": now,
        }
        if quote.refund_amount > 0:
            changes["payment_status"] = BookingPaymentStatus.REFUNDED.value

        async with self._transaction_manager.start():
            try:
                updated = await self._booking_repo.transition(
                    booking.id, booking.status, changes, operation="cancel"
                )
            except BookingStatusConflictError:
                if refund_id:
                    self._logger.error(
                        "Booking changed after refund was issued",
                        extra={"booking_id": booking.id, "refund_id": refund_id},
                    )
                raise
            await self._vehicle_repo.release(booking.vehicle_id)
            if refund_due and not charge_rail:
                await self._instruction_repo.add(
                    PaymentInstruction(
                        booking_id=booking.id,
                        driver_id=booking.driver_id,
                        partner_id=booking.partner_id,
                        amount=quote.refund_amount + insurance_refund,
                        type=InstructionType.REFUND,
                        method=InstructionMethod(booking.payment_method),
                        status=InstructionStatus.PENDING,
                        frequency=InstructionFrequency.ONE_OFF,
                        vehicle_reg=booking.vehicle_registration,
                        notes=f"Refund on cancellation: {request.reason}",
                        ledger_recorded=True,
                        created_at=now,
                        updated_at=now,
                    )
                )

        self._logger.info(
            "Booking cancelled",
            extra={
                "booking_id": updated.id,
                "cancel_type": cancel_type.value,
                "refund_amount": str(quote.refund_amount),
                "refund_id": refund_id,
            },
        )
        await self._publisher.publish(
            updated.id,
            self._effects(updated, request, quote, insurance_refund, refund_id, refund_due, charge_rail),
        )
        return CancelBookingResponse(
            booking_id=updated.id,
            status=updated.status.value,
            refund_amount=quote.refund_amount,
            insurance_refund=insurance_refund,
            days_used=quote.days_used,
            remaining_days=quote.remaining_days,
            stripe_refund_id=refund_id,
        )

    def _effects(
        self,
        booking: Booking,
        request: CancelBookingRequest,
        quote: RefundQuote,
        insurance_refund: Decimal,
        refund_id: str | None,
        refund_due: bool,
        refunded_on_rail: bool,
    ) -> list[effects.Effect]:
        refund = Money(quote.refund_amount, self._currency)
        source = SOURCE_STRIPE if refunded_on_rail else SOURCE_PARTNER
        result = []
        if refund_due:
            income, expense = LedgerTransaction.matched_pair(
                booking_id=booking.id,
                partner_id=booking.partner_id,
                driver_id=booking.driver_id,
                amount=-quote.refund_amount,
                income_category=CATEGORY_VEHICLE_RENTAL,
                expense_category=CATEGORY_VEHICLE_RENTAL,
                income_source=source,
                expense_source=source,
                description=f"Refund for cancelled booking {booking.id}",
                reference=refund_id,
            )
            result.append(effects.ledger("ledger:refund", income, expense))
            if insurance_refund > 0:
                income, expense = LedgerTransaction.matched_pair(
                    booking_id=booking.id,
                    partner_id=booking.partner_id,
                    driver_id=booking.driver_id,
                    amount=-insurance_refund,
                    income_category=CATEGORY_INSURANCE,
                    expense_category=CATEGORY_INSURANCE,
                    income_source=source,
                    expense_source=source,
                    description=f"Insurance refund for cancelled booking {booking.id}",
                    reference=refund_id,
                )
                result.append(effects.ledger("ledger:insurance_refund", income, expense))
        if booking.stripe_subscription_id:
            result.append(effects.cancel_subscription(booking.stripe_subscription_id))

        data = {
            "booking_id": booking.id,
            "refund_amount": quote.refund_amount,
            "cancel_type": quote.cancel_type.value,
        }
        result.extend(
            [
                effects.history(
                    booking.id,
                    action="booking_cancelled",
                    performed_by=booking.cancelled_by or booking.driver_id,
                    performed_by_type=request.cancelled_by_type,
                    description=f"Booking cancelled: {request.reason}",
                    details={
                        "reason": request.reason,
                        "cancel_type": quote.cancel_type.value,
                        "refund_amount": quote.refund_amount,
                        "insurance_refund": insurance_refund,
                        "actual_paid": quote.actual_paid,
                        "days_used": quote.days_used,
                        "remaining_days": quote.remaining_days,
                        "stripe_refund_id": refund_id,
                    },
                ),
                effects.notify(
                    "partner_notification",
                    RecipientType.PARTNER,
                    booking.partner_id,
                    type="booking_cancelled",
                    title="Booking cancelled",
                    message=f"Booking {booking.id} was cancelled: {request.reason}. Refund {refund}.",
                    priority=NotificationPriority.HIGH,
                    data=data,
                ),
                effects.notify(
                    "admin_notification",
                    RecipientType.ADMIN,
                    None,
                    type="booking_cancelled_admin",
                    title="Booking cancelled",
                    message=f"Booking {booking.id} cancelled ({quote.cancel_type.value}), refund {refund}.",
                    priority=NotificationPriority.MEDIUM,
                    data=data,
                ),
            ]
        )
        return result
