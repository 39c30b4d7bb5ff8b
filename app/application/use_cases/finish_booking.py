import logging

from app.api.schemas.bookings import FinishBookingRequest, FinishBookingResponse
from app.application import effects
from app.application.effects import EffectPublisher
from app.application.interfaces.booking_repo import BookingRepo
from app.application.interfaces.clock import Clock
from app.application.interfaces.payment_instruction_repo import PaymentInstructionRepo
from app.application.interfaces.transaction_manager import TransactionManager
from app.application.interfaces.vehicle_repo import VehicleRepo
from app.domain.constants import CATEGORY_VEHICLE_RENTAL, SOURCE_BOOKING_COMPLETION
from app.domain.entities.booking import ActorType, Booking, BookingPaymentStatus, BookingStatus
from app.domain.entities.ledger_transaction import LedgerTransaction, TransactionType
from app.domain.entities.notification import NotificationPriority, RecipientType
from app.domain.entities.payment_instruction import (
    InstructionFrequency,
    InstructionMethod,
    InstructionType,
    PaymentInstruction,
)
from app.domain.errors import (
    AuthorizationError,
    BookingStatusConflictError,
    NotFoundError,
    ValidationError,
)
from app.domain.lifecycle import BookingAction, allowed_sources, next_status
from app.domain.pricing import Settlement, actual_paid, settle
from app.domain.value_objects.money import Money
from app.domain.value_objects.rental_period import ceil_days

FINISHER_TYPES = {t.value for t in (ActorType.DRIVER, ActorType.PARTNER, ActorType.ADMIN)}


class FinishBookingUseCase:
    def __init__(
        self,
        booking_repo: BookingRepo,
        vehicle_repo: VehicleRepo,
        instruction_repo: PaymentInstructionRepo,
        transaction_manager: TransactionManager,
        publisher: EffectPublisher,
        clock: Clock,
        currency: str = "GBP",
    ) -> None:
        self._booking_repo = booking_repo
        self._vehicle_repo = vehicle_repo
        self._instruction_repo = instruction_repo
        self._transaction_manager = transaction_manager
        self._publisher = publisher
        self._clock = clock
        self._currency = currency
        self._logger = logging.getLogger(__name__)

    async def execute(self, request: FinishBookingRequest) -> FinishBookingResponse:
        if request.finished_by_type not in FINISHER_TYPES:
            raise ValidationError(
                field="finishedByType", message="must be one of driver, partner, admin"
            )
        now = self._clock.now()

        async with self._transaction_manager.start():
            booking = await self._booking_repo.get(request.booking_id)
            if not booking:
                raise NotFoundError("Booking", request.booking_id)
            self._check_actor(booking, request)
            if booking.status not in allowed_sources(BookingAction.FINISH):
                raise BookingStatusConflictError(
                    booking_id=booking.id,
                    current_status=booking.status.value,
                    operation="finish",
                )

            instructions = await self._instruction_repo.list_for_booking(booking.id)
            settlement = settle(
                total_days=ceil_days(now - booking.start_date),
                weekly_rate=booking.weekly_rate,
                paid=actual_paid(instructions),
            )
            outstanding = settlement.outstanding_amount > 0
            payment_status = (
                BookingPaymentStatus.OUTSTANDING if outstanding else BookingPaymentStatus.COMPLETED
            )

            updated = await self._booking_repo.transition(
                booking.id,
                booking.status,
                {
                    "status": next_status(booking.status, BookingAction.FINISH, BookingStatus.COMPLETED),
                    "finished_at": now,
                    "finished_by": request.finished_by,
                    "finished_by_type": request.finished_by_type,
                    "final_notes": request.final_notes,
                    "final_mileage": request.final_mileage,
                    "final_fuel_level": request.final_fuel_level,
                    "final_amount": settlement.final_amount,
                    "outstanding_amount": settlement.outstanding_amount,
                    "payment_status": payment_status.value,
                    "updated_at": now,
                },
                operation="finish",
            )
            await self._vehicle_repo.release(booking.vehicle_id, mileage=request.final_mileage)

            if outstanding:
                await self._instruction_repo.add(
                    PaymentInstruction(
                        booking_id=booking.id,
                        driver_id=booking.driver_id,
                        partner_id=booking.partner_id,
                        amount=settlement.outstanding_amount,
                        type=InstructionType.FINAL_PAYMENT,
                        method=InstructionMethod(booking.payment_method),
                        frequency=InstructionFrequency.ONE_OFF,
                        next_due_date=now,
                        vehicle_reg=booking.vehicle_registration,
                        notes="Final balance on completion",
                        created_at=now,
                        updated_at=now,
                    )
                )

        self._logger.info(
            "Booking finished",
            extra={
                "booking_id": updated.id,
                "final_amount": str(settlement.final_amount),
                "outstanding_amount": str(settlement.outstanding_amount),
            },
        )
        await self._publisher.publish(updated.id, self._effects(updated, request, settlement))
        return FinishBookingResponse(
            booking_id=updated.id,
            status=updated.status.value,
            total_days=settlement.total_days,
            total_weeks=settlement.total_weeks,
            final_amount=settlement.final_amount,
            outstanding_amount=settlement.outstanding_amount,
            payment_status=updated.payment_status,
        )

    @staticmethod
    def _check_actor(booking: Booking, request: FinishBookingRequest) -> None:
        if request.finished_by_type == ActorType.DRIVER.value and request.finished_by != booking.driver_id:
            raise AuthorizationError("Not your booking")
        if request.finished_by_type == ActorType.PARTNER.value and request.finished_by != booking.partner_id:
            raise AuthorizationError("Not your booking")

    def _effects(
        self, booking: Booking, request: FinishBookingRequest, settlement: Settlement
    ) -> list[effects.Effect]:
        final = Money(settlement.final_amount, self._currency)
        outstanding = Money(settlement.outstanding_amount, self._currency)
        data = {
            "booking_id": booking.id,
            "final_amount": settlement.final_amount,
            "outstanding_amount": settlement.outstanding_amount,
        }
        income = LedgerTransaction(
            booking_id=booking.id,
            partner_id=booking.partner_id,
            driver_id=booking.driver_id,
            type=TransactionType.INCOME,
            category=CATEGORY_VEHICLE_RENTAL,
            amount=settlement.final_amount,
            net_amount=settlement.final_amount,
            source=SOURCE_BOOKING_COMPLETION,
            description=f"Rental completed: {settlement.total_weeks} week(s)",
        )
        return [
            effects.ledger("ledger:completion", income),
            effects.history(
                booking.id,
                action="booking_finished",
                performed_by=request.finished_by,
                performed_by_type=request.finished_by_type,
                description=f"Rental finished after {settlement.total_days} day(s)",
                details={
                    "total_days": settlement.total_days,
                    "total_weeks": settlement.total_weeks,
                    "final_amount": settlement.final_amount,
                    "actual_paid": settlement.actual_paid,
                    "outstanding_amount": settlement.outstanding_amount,
                    "final_mileage": request.final_mileage,
                    "final_fuel_level": request.final_fuel_level,
                    "final_notes": request.final_notes,
                },
            ),
            effects.notify(
                "driver_notification",
                RecipientType.DRIVER,
                booking.driver_id,
                type="booking_completed",
                title="Rental completed",
                message=f"Your rental is complete. Final amount {final}, outstanding {outstanding}.",
                priority=NotificationPriority.HIGH,
                data=data,
            ),
            effects.notify(
                "partner_notification",
                RecipientType.PARTNER,
                booking.partner_id,
                type="booking_completed",
                title="Rental completed",
                message=f"Booking {booking.id} is complete. The vehicle is available again.",
                priority=NotificationPriority.MEDIUM,
                data=data,
            ),
            effects.notify(
                "admin_notification",
                RecipientType.ADMIN,
                None,
                type="booking_completed_admin",
                title="Rental completed",
                message=f"Booking {booking.id} finished by {request.finished_by_type}.",
                priority=NotificationPriority.LOW,
                data=data,
            ),
        ]
