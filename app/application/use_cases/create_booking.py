import hashlib
import json
import logging
from datetime import datetime, timedelta
from typing import Any

from app.api.schemas.bookings import CreateBookingRequest, CreateBookingResponse
from app.application import effects
from app.application.effects import EffectPublisher
from app.application.interfaces.booking_repo import BookingRepo
from app.application.interfaces.clock import Clock
from app.application.interfaces.idempotency_repo import IdempotencyRecord, IdempotencyRepo
from app.application.interfaces.payment_instruction_repo import PaymentInstructionRepo
from app.application.interfaces.transaction_manager import TransactionManager
from app.application.interfaces.user_repo import UserRepo
from app.application.interfaces.uuid_generator import UUIDGenerator
from app.application.interfaces.vehicle_repo import VehicleRepo
from app.domain.entities.booking import ActorType, Booking, BookingStatus
from app.domain.entities.notification import NotificationPriority, RecipientType
from app.domain.entities.payment_instruction import (
    InstructionFrequency,
    InstructionMethod,
    InstructionType,
    PaymentInstruction,
)
from app.domain.errors import (
    IdempotencyConflictError,
    InvalidDateRangeError,
    NotFoundError,
    VehicleUnavailableError,
)
from app.domain.lifecycle import BookingAction, next_status
from app.domain.pricing import quote_booking
from app.domain.value_objects.money import Money
from app.domain.value_objects.rental_period import RentalPeriod
from app.domain.value_objects.snapshots import DriverSnapshot, PartnerSnapshot

SCOPE = "BOOKING_CREATE"


def _hash_request(payload: dict[str, Any]) -> str:
    normalized = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(normalized.encode()).hexdigest()


class CreateBookingUseCase:
    def __init__(
        self,
        booking_repo: BookingRepo,
        vehicle_repo: VehicleRepo,
        user_repo: UserRepo,
        instruction_repo: PaymentInstructionRepo,
        idempotency_repo: IdempotencyRepo,
        transaction_manager: TransactionManager,
        publisher: EffectPublisher,
        clock: Clock,
        id_generator: UUIDGenerator,
        payment_deadline_hours: int = 24,
        partner_acceptance_deadline_hours: int = 2,
        currency: str = "GBP",
    ) -> None:
        self._booking_repo = booking_repo
        self._vehicle_repo = vehicle_repo
        self._user_repo = user_repo
        self._instruction_repo = instruction_repo
        self._idempotency_repo = idempotency_repo
        self._transaction_manager = transaction_manager
        self._publisher = publisher
        self._clock = clock
        self._id_generator = id_generator
        self._payment_deadline = timedelta(hours=payment_deadline_hours)
        self._acceptance_deadline = timedelta(hours=partner_acceptance_deadline_hours)
        self._currency = currency
        self._logger = logging.getLogger(__name__)

    async def execute(
        self,
        request: CreateBookingRequest,
        idem_key: str | None = None,
    ) -> CreateBookingResponse:
        now = self._clock.now()
        request_hash = _hash_request(request.model_dump(mode="json"))

        async with self._transaction_manager.start():
            if idem_key:
                existing = await self._idempotency_repo.get(SCOPE, idem_key)
                if existing:
                    if existing.request_hash != request_hash:
                        raise IdempotencyConflictError(idem_key=idem_key, scope=SCOPE)
                    self._logger.info(
                        "Replaying idempotent booking creation",
                        extra={"idem_key": idem_key, "booking_id": existing.reference_booking_id},
                    )
                    return CreateBookingResponse.model_validate(existing.response_json)

            period = self._validate_period(request.start_date, request.end_date, now)

            vehicle = await self._vehicle_repo.get(request.vehicle_id)
            if not vehicle:
                raise NotFoundError("Vehicle", request.vehicle_id)
            if not vehicle.is_available:
                raise VehicleUnavailableError(vehicle.id, vehicle.status.value)
            driver = await self._user_repo.get_driver(request.driver_id)
            if not driver:
                raise NotFoundError("Driver", request.driver_id)
            partner = await self._user_repo.get_partner(request.partner_id)
            if not partner:
                raise NotFoundError("Partner", request.partner_id)

            quote = quote_booking(period.total_weeks, request.weekly_rate, request.deposit_amount)

            if request.requires_partner_approval_first:
                status = BookingStatus.PENDING_PARTNER_APPROVAL
            else:
                status = BookingStatus.PENDING_PAYMENT
            next_status(None, BookingAction.CREATE, status)

            booking_id = self._id_generator.generate_booking_id()
            booking = Booking(
                id=booking_id,
                driver_id=request.driver_id,
                partner_id=request.partner_id,
                vehicle_id=request.vehicle_id,
                start_date=period.start,
                end_date=period.end,
                weekly_rate=request.weekly_rate,
                deposit_amount=request.deposit_amount,
                total_weeks=quote.total_weeks,
                total_amount=quote.total_amount,
                status=status,
                payment_method=request.payment_method,
                stripe_customer_id=request.stripe_customer_id,
                stripe_subscription_id=request.stripe_subscription_id,
                insurance_required=request.insurance_required,
                partner_provides_insurance=request.partner_provides_insurance,
                requires_document_verification=request.requires_document_verification,
                driver_snapshot=DriverSnapshot(
                    id=driver.id, full_name=driver.full_name, email=driver.email, phone=driver.phone
                ),
                partner_snapshot=PartnerSnapshot(
                    id=partner.id,
                    company_name=partner.company_name,
                    email=partner.email,
                    phone=partner.phone,
                ),
                vehicle_snapshot=vehicle.snapshot(),
                payment_deadline=now + self._payment_deadline
                if status == BookingStatus.PENDING_PAYMENT
                else None,
                partner_acceptance_deadline=now + self._acceptance_deadline
                if status == BookingStatus.PENDING_PARTNER_APPROVAL
                else None,
                created_at=now,
                updated_at=now,
            )

            if not await self._vehicle_repo.reserve(vehicle.id, booking_id):
                raise VehicleUnavailableError(vehicle.id, "booked")
            await self._booking_repo.add(booking)
            await self._create_instructions(booking, InstructionMethod(request.payment_method), now)

            response = CreateBookingResponse(
                booking_id=booking.id,
                status=booking.status.value,
                total_weeks=booking.total_weeks,
                total_amount=booking.total_amount,
                payment_deadline=booking.payment_deadline,
                partner_acceptance_deadline=booking.partner_acceptance_deadline,
            )

            if idem_key:
                await self._idempotency_repo.save(
                    IdempotencyRecord(
                        scope=SCOPE,
                        idem_key=idem_key,
                        request_hash=request_hash,
                        response_json=response.model_dump(mode="json", by_alias=True),
                        http_status=201,
                        reference_booking_id=booking.id,
                    )
                )

        self._logger.info(
            "Booking created",
            extra={
                "booking_id": booking.id,
                "status": booking.status.value,
                "vehicle_id": booking.vehicle_id,
                "total_amount": str(booking.total_amount),
            },
        )
        await self._publisher.publish(booking.id, self._effects(booking))
        return response

    def _validate_period(self, start: datetime, end: datetime, now: datetime) -> RentalPeriod:
        if start < now:
            raise InvalidDateRangeError("startDate cannot be in the past")
        if end <= start:
            raise InvalidDateRangeError("endDate must be after startDate")
        return RentalPeriod(start=start, end=end)

    async def _create_instructions(
        self, booking: Booking, method: InstructionMethod, now: datetime
    ) -> None:
        if booking.deposit_amount > 0:
            await self._instruction_repo.add(
                PaymentInstruction(
                    booking_id=booking.id,
                    driver_id=booking.driver_id,
                    partner_id=booking.partner_id,
                    amount=booking.deposit_amount,
                    type=InstructionType.DEPOSIT,
                    method=method,
                    frequency=InstructionFrequency.ONE_OFF,
                    next_due_date=now,
                    vehicle_reg=booking.vehicle_registration,
                    notes="Security deposit",
                    created_at=now,
                    updated_at=now,
                )
            )
        await self._instruction_repo.add(
            PaymentInstruction(
                booking_id=booking.id,
                driver_id=booking.driver_id,
                partner_id=booking.partner_id,
                amount=booking.weekly_rate,
                type=InstructionType.WEEKLY_RENT,
                method=method,
                frequency=InstructionFrequency.WEEKLY,
                next_due_date=booking.start_date,
                vehicle_reg=booking.vehicle_registration,
                notes="Weekly rent",
                created_at=now,
                updated_at=now,
            )
        )

    def _effects(self, booking: Booking) -> list[effects.Effect]:
        vehicle_name = booking.vehicle_snapshot.display_name if booking.vehicle_snapshot else "vehicle"
        driver_name = booking.driver_snapshot.full_name if booking.driver_snapshot else "A driver"
        total = Money(booking.total_amount, self._currency)
        data = {"booking_id": booking.id, "vehicle_id": booking.vehicle_id}
        return [
            effects.history(
                booking.id,
                action="booking_created",
                performed_by=booking.driver_id,
                performed_by_type=ActorType.DRIVER.value,
                description=f"Booking created for {vehicle_name}",
                details={
                    "status": booking.status.value,
                    "total_weeks": booking.total_weeks,
                    "total_amount": booking.total_amount,
                    "weekly_rate": booking.weekly_rate,
                    "deposit_amount": booking.deposit_amount,
                },
            ),
            effects.notify(
                "partner_notification",
                RecipientType.PARTNER,
                booking.partner_id,
                type="new_booking",
                title="New booking request",
                message=f"{driver_name} booked your {vehicle_name} ({total} total).",
                priority=NotificationPriority.HIGH,
                data=data,
            ),
            effects.notify(
                "driver_notification",
                RecipientType.DRIVER,
                booking.driver_id,
                type="booking_created",
                title="Booking created",
                message=f"Your booking for {vehicle_name} was created. Total {total}.",
                priority=NotificationPriority.MEDIUM,
                data=data,
            ),
        ]
