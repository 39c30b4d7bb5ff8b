import logging

from app.api.schemas.bookings import ActivateBookingRequest, ActivateBookingResponse
from app.application import effects
from app.application.effects import EffectPublisher
from app.application.interfaces.booking_repo import BookingRepo
from app.application.interfaces.clock import Clock
from app.application.interfaces.transaction_manager import TransactionManager
from app.domain.entities.booking import ActorType, BookingStatus
from app.domain.entities.notification import NotificationPriority, RecipientType
from app.domain.errors import (
    AuthorizationError,
    BookingStatusConflictError,
    NotFoundError,
    ValidationError,
)
from app.domain.lifecycle import BookingAction, allowed_sources, next_status


class ActivateBookingUseCase:
    """Partner starts an accepted booking once its requirements are met."""

    def __init__(
        self,
        booking_repo: BookingRepo,
        transaction_manager: TransactionManager,
        publisher: EffectPublisher,
        clock: Clock,
    ) -> None:
        self._booking_repo = booking_repo
        self._transaction_manager = transaction_manager
        self._publisher = publisher
        self._clock = clock
        self._logger = logging.getLogger(__name__)

    async def execute(self, request: ActivateBookingRequest) -> ActivateBookingResponse:
        now = self._clock.now()
        async with self._transaction_manager.start():
            booking = await self._booking_repo.get(request.booking_id)
            if not booking:
                raise NotFoundError("Booking", request.booking_id)
            if booking.partner_id != request.partner_id:
                raise AuthorizationError("Not your booking")
            if booking.status not in allowed_sources(BookingAction.ACTIVATE):
                raise BookingStatusConflictError(
                    booking_id=booking.id,
                    current_status=booking.status.value,
                    operation="activate",
                )

            blockers = booking.activation_blockers()
            if blockers and not request.bypass_requirements:
                raise ValidationError(
                    field="requirements",
                    message=f"booking is not ready to start, missing: {', '.join(blockers)}",
                )
            trigger = "manual_bypass" if blockers else "manual"

            updated = await self._booking_repo.transition(
                booking.id,
                booking.status,
                {
                    "status": next_status(booking.status, BookingAction.ACTIVATE, BookingStatus.ACTIVE),
                    "activated_at": now,
                    "activated_by": request.partner_id,
                    "activated_by_type": ActorType.PARTNER.value,
                    "activated_trigger": trigger,
                    "updated_at": now,
                },
                operation="activate",
            )

        self._logger.info(
            "Booking activated",
            extra={"booking_id": updated.id, "trigger": trigger, "bypassed": blockers},
        )
        await self._publisher.publish(
            updated.id,
            [
                effects.history(
                    updated.id,
                    action="booking_activated",
                    performed_by=request.partner_id,
                    performed_by_type=ActorType.PARTNER.value,
                    description="Rental started by partner",
                    details={"trigger": trigger, "bypassed_requirements": blockers},
                ),
                effects.notify(
                    "driver_notification",
                    RecipientType.DRIVER,
                    updated.driver_id,
                    type="booking_activated",
                    title="Your rental has started",
                    message=f"Booking {updated.id} is now active.",
                    priority=NotificationPriority.HIGH,
                    data={"booking_id": updated.id},
                ),
            ],
        )
        return ActivateBookingResponse(
            booking_id=updated.id,
            status=updated.status.value,
            activated_trigger=trigger,
        )
