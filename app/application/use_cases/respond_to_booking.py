import logging
from dataclasses import replace
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from app.api.schemas.bookings import PartnerResponseRequest, PartnerResponseResponse
from app.application import effects
from app.application.effects import EffectPublisher
from app.application.interfaces.booking_repo import BookingRepo
from app.application.interfaces.clock import Clock
from app.application.interfaces.partner_driver_repo import PartnerDriverRecord, PartnerDriverRepo
from app.application.interfaces.payment_instruction_repo import PaymentInstructionRepo
from app.application.interfaces.transaction_manager import TransactionManager
from app.application.interfaces.vehicle_repo import VehicleRepo
from app.domain.constants import DEFAULT_REJECTION_REASON
from app.domain.entities.booking import ActorType, Booking, BookingStatus
from app.domain.entities.notification import NotificationPriority, RecipientType
from app.domain.entities.payment_instruction import (
    InstructionFrequency,
    InstructionStatus,
    InstructionType,
    PaymentInstruction,
)
from app.domain.errors import (
    AuthorizationError,
    BookingStatusConflictError,
    NotFoundError,
    ValidationError,
)
from app.domain.lifecycle import BookingAction, next_status
from app.domain.pricing import actual_paid

ACTIONS = {"accept": BookingAction.ACCEPT, "reject": BookingAction.REJECT}


class RespondToBookingUseCase:
    """Partner accepts or rejects a booking awaiting approval."""

    def __init__(
        self,
        booking_repo: BookingRepo,
        vehicle_repo: VehicleRepo,
        instruction_repo: PaymentInstructionRepo,
        partner_driver_repo: PartnerDriverRepo,
        transaction_manager: TransactionManager,
        publisher: EffectPublisher,
        clock: Clock,
        insurance_upload_deadline_hours: int = 48,
    ) -> None:
        self._booking_repo = booking_repo
        self._vehicle_repo = vehicle_repo
        self._instruction_repo = instruction_repo
        self._partner_driver_repo = partner_driver_repo
        self._transaction_manager = transaction_manager
        self._publisher = publisher
        self._clock = clock
        self._insurance_deadline = timedelta(hours=insurance_upload_deadline_hours)
        self._logger = logging.getLogger(__name__)

    async def execute(self, request: PartnerResponseRequest) -> PartnerResponseResponse:
        action = ACTIONS.get(request.action)
        if action is None:
            raise ValidationError(field="action", message="must be 'accept' or 'reject'")

        now = self._clock.now()
        async with self._transaction_manager.start():
            booking = await self._booking_repo.get(request.booking_id)
            if not booking:
                raise NotFoundError("Booking", request.booking_id)
            if booking.partner_id != request.partner_id:
                raise AuthorizationError("Not your booking")
            if booking.status != BookingStatus.PENDING_PARTNER_APPROVAL:
                raise BookingStatusConflictError(
                    booking_id=booking.id,
                    current_status=booking.status.value,
                    operation=request.action,
                )

            response_minutes = self._response_minutes(booking, now)
            refunds: list[PaymentInstruction] = []
            if action == BookingAction.ACCEPT:
                updated = await self._accept(booking, request, now, response_minutes)
            else:
                updated, refunds = await self._reject(booking, request, now, response_minutes)

        auto_activated = updated.status == BookingStatus.ACTIVE
        self._logger.info(
            "Partner responded to booking",
            extra={
                "booking_id": updated.id,
                "action": request.action,
                "status": updated.status.value,
                "auto_activated": auto_activated,
                "response_time_minutes": response_minutes,
            },
        )
        await self._publisher.publish(
            updated.id, self._effects(updated, request, response_minutes, refunds)
        )
        return PartnerResponseResponse(
            booking_id=updated.id,
            action=request.action,
            status=updated.status.value,
            response_time_minutes=response_minutes,
            auto_activated=auto_activated,
            released_documents=[d.to_dict() for d in updated.released_documents],
        )

    @staticmethod
    def _response_minutes(booking: Booking, now: datetime) -> int:
        if not booking.created_at:
            return 0
        return round((now - booking.created_at).total_seconds() / 60)

    async def _accept(
        self,
        booking: Booking,
        request: PartnerResponseRequest,
        now: datetime,
        response_minutes: int,
    ) -> Booking:
        changes: dict[str, Any] = {
            "partner_accepted_at": now,
            "partner_response_time_minutes": response_minutes,
            "updated_at": now,
        }
        if request.override_insurance:
            changes["driver_insurance_valid"] = True
            changes["driver_insurance_status"] = "approved"

        # readiness is judged on the booking as it will be after the override
        candidate = replace(booking, **changes)
        if not candidate.insurance_satisfied:
            target = BookingStatus.PENDING_INSURANCE_UPLOAD
            changes["insurance_upload_deadline"] = now + self._insurance_deadline
        elif candidate.can_activate:
            target = BookingStatus.ACTIVE
            changes.update(
                activated_at=now,
                activated_by=request.partner_id,
                activated_by_type=ActorType.PARTNER.value,
                activated_trigger="auto_on_acceptance",
            )
        else:
            target = BookingStatus.PARTNER_ACCEPTED
        changes["status"] = next_status(booking.status, BookingAction.ACCEPT, target)

        if booking.payment_confirmed:
            vehicle = await self._vehicle_repo.get(booking.vehicle_id)
            if vehicle:
                changes["released_documents"] = vehicle.releasable_documents()
                changes["vehicle_documents_released_at"] = now

        updated = await self._booking_repo.transition(
            booking.id, BookingStatus.PENDING_PARTNER_APPROVAL, changes, operation="accept"
        )

        snapshot = booking.driver_snapshot
        await self._partner_driver_repo.upsert(
            PartnerDriverRecord(
                partner_id=booking.partner_id,
                driver_id=booking.driver_id,
                full_name=snapshot.full_name if snapshot else "",
                email=snapshot.email if snapshot else "",
                phone=snapshot.phone if snapshot else None,
                first_booking_at=now,
                last_booking_id=booking.id,
            )
        )
        return updated

    async def _reject(
        self,
        booking: Booking,
        request: PartnerResponseRequest,
        now: datetime,
        response_minutes: int,
    ) -> tuple[Booking, list[PaymentInstruction]]:
        reason = request.rejection_reason or DEFAULT_REJECTION_REASON
        changes = {
            "status": next_status(booking.status, BookingAction.REJECT, BookingStatus.PARTNER_REJECTED),
            "rejection_reason": reason,
            "rejected_at": now,
            "partner_response_time_minutes": response_minutes,
            "updated_at": now,
        }
        updated = await self._booking_repo.transition(
            booking.id, BookingStatus.PENDING_PARTNER_APPROVAL, changes, operation="reject"
        )
        await self._vehicle_repo.release(booking.vehicle_id)

        instructions = await self._instruction_repo.list_for_booking(booking.id)
        refunds = [
            self._refund(
                booking, deposit.amount, "Deposit refund - booking rejected", now, source=deposit.id
            )
            for deposit in instructions
            if deposit.type == InstructionType.DEPOSIT
            and deposit.status == InstructionStatus.DEPOSIT_RECEIVED
            and deposit.amount > 0
        ]
        received = actual_paid(instructions)
        if received > 0:
            refunds.append(self._refund(booking, received, "Payment refund - booking rejected", now))
        for refund in refunds:
            await self._instruction_repo.add(refund)
        return updated, refunds

    @staticmethod
    def _refund(
        booking: Booking,
        amount: Decimal,
        notes: str,
        now: datetime,
        source: int | None = None,
    ) -> PaymentInstruction:
        return PaymentInstruction(
            booking_id=booking.id,
            driver_id=booking.driver_id,
            partner_id=booking.partner_id,
            amount=amount,
            type=InstructionType.REFUND,
            status=InstructionStatus.PENDING,
            frequency=InstructionFrequency.ONE_OFF,
            vehicle_reg=booking.vehicle_registration,
            notes=notes,
            source_instruction_id=source,
            created_at=now,
            updated_at=now,
        )

    def _effects(
        self,
        booking: Booking,
        request: PartnerResponseRequest,
        response_minutes: int,
        refunds: list[PaymentInstruction],
    ) -> list[effects.Effect]:
        vehicle_name = booking.vehicle_snapshot.display_name if booking.vehicle_snapshot else "vehicle"
        accepted = request.action == "accept"
        data = {"booking_id": booking.id, "status": booking.status.value}

        if accepted:
            description = f"Booking accepted by partner ({booking.status.value})"
            driver_notice = effects.notify(
                "driver_notification",
                RecipientType.DRIVER,
                booking.driver_id,
                type="booking_accepted",
                title="Booking accepted",
                message=f"Your booking for {vehicle_name} was accepted.",
                priority=NotificationPriority.HIGH,
                data=data,
            )
        else:
            description = f"Booking rejected by partner: {booking.rejection_reason}"
            driver_notice = effects.notify(
                "driver_notification",
                RecipientType.DRIVER,
                booking.driver_id,
                type="booking_rejected",
                title="Booking rejected",
                message=f"Your booking for {vehicle_name} was declined: {booking.rejection_reason}",
                priority=NotificationPriority.MEDIUM,
                data={**data, "refunds": [str(r.amount) for r in refunds]},
            )

        return [
            effects.history(
                booking.id,
                action=f"partner_{request.action}ed",
                performed_by=request.partner_id,
                performed_by_type=ActorType.PARTNER.value,
                description=description,
                details={
                    "response_time_minutes": response_minutes,
                    "new_status": booking.status.value,
                    "rejection_reason": booking.rejection_reason,
                    "override_insurance": request.override_insurance,
                    "activated_trigger": booking.activated_trigger,
                    "refund_amounts": [str(r.amount) for r in refunds],
                },
            ),
            driver_notice,
            effects.notify(
                "admin_notification",
                RecipientType.ADMIN,
                None,
                type=f"booking_{request.action}ed_admin",
                title=f"Booking {request.action}ed",
                message=f"Partner {booking.partner_id} {request.action}ed booking {booking.id}.",
                priority=NotificationPriority.LOW,
                data={**data, "partner_id": booking.partner_id},
            ),
        ]
