import logging
from datetime import datetime
from typing import Any

from app.api.schemas.bookings import ReturnRequest, ReturnResponse
from app.application import effects
from app.application.effects import EffectPublisher
from app.application.interfaces.booking_repo import BookingRepo
from app.application.interfaces.clock import Clock
from app.application.interfaces.transaction_manager import TransactionManager
from app.application.interfaces.vehicle_repo import VehicleRepo
from app.domain.constants import DEFAULT_RETURN_REASON
from app.domain.entities.booking import ActorType, Booking, BookingStatus
from app.domain.entities.notification import NotificationPriority, RecipientType
from app.domain.errors import (
    AuthorizationError,
    BookingStatusConflictError,
    NotFoundError,
    ReturnRequestConflictError,
)
from app.domain.lifecycle import BookingAction, allowed_sources, next_status

RETURNABLE_STATUSES = allowed_sources(BookingAction.APPROVE_RETURN)


class RequestReturnUseCase:
    """
    Early vehicle return.

    Either party may ask to hand the vehicle back before the end date; the
    partner or an admin then approves or rejects. Approval completes the
    booking and frees the vehicle. Rejection clears the request so it can be
    raised again.
    """

    def __init__(
        self,
        booking_repo: BookingRepo,
        vehicle_repo: VehicleRepo,
        transaction_manager: TransactionManager,
        publisher: EffectPublisher,
        clock: Clock,
    ) -> None:
        self._booking_repo = booking_repo
        self._vehicle_repo = vehicle_repo
        self._transaction_manager = transaction_manager
        self._publisher = publisher
        self._clock = clock
        self._logger = logging.getLogger(__name__)

    async def execute(self, request: ReturnRequest) -> ReturnResponse:
        now = self._clock.now()
        async with self._transaction_manager.start():
            booking = await self._booking_repo.get(request.booking_id)
            if not booking:
                raise NotFoundError("Booking", request.booking_id)
            self._check_actor(booking, request)

            if request.action == "request":
                changes = self._request(booking, request, now)
            elif request.action == "approve":
                changes = self._approve(booking, request, now)
            else:
                changes = self._reject(booking, request, now)
            changes["updated_at"] = now

            updated = await self._booking_repo.transition(
                booking.id, booking.status, changes, operation=f"{request.action} return for"
            )
            if request.action == "approve":
                await self._vehicle_repo.release(booking.vehicle_id)

        self._logger.info(
            "Return request updated",
            extra={
                "booking_id": updated.id,
                "action": request.action,
                "actor_type": request.requested_by_type,
                "status": updated.status.value,
            },
        )
        await self._publisher.publish(updated.id, self._effects(booking, updated, request))
        return ReturnResponse(
            booking_id=updated.id,
            action=request.action,
            status=updated.status.value,
            return_requested=updated.return_requested,
            return_approved=updated.return_approved,
        )

    @staticmethod
    def _check_actor(booking: Booking, request: ReturnRequest) -> None:
        if request.requested_by_type == ActorType.DRIVER.value:
            if request.requested_by != booking.driver_id:
                raise AuthorizationError("Not your booking")
            if request.action != "request":
                raise AuthorizationError("Only the partner or an admin can decide a return")
        if request.requested_by_type == ActorType.PARTNER.value and request.requested_by != booking.partner_id:
            raise AuthorizationError("Not your booking")

    @staticmethod
    def _request(booking: Booking, request: ReturnRequest, now: datetime) -> dict[str, Any]:
        if booking.status not in RETURNABLE_STATUSES:
            raise BookingStatusConflictError(
                booking_id=booking.id,
                current_status=booking.status.value,
                operation="request return for",
            )
        if booking.return_requested:
            raise ReturnRequestConflictError(booking.id, "Return already requested")
        return {
            "return_requested": True,
            "return_requested_at": now,
            "return_requested_by": request.requested_by,
            "return_requested_by_type": request.requested_by_type,
            "return_reason": request.reason or DEFAULT_RETURN_REASON,
        }

    @staticmethod
    def _approve(booking: Booking, request: ReturnRequest, now: datetime) -> dict[str, Any]:
        if not booking.return_requested:
            raise ReturnRequestConflictError(booking.id, "No return has been requested")
        if booking.return_approved:
            raise ReturnRequestConflictError(booking.id, "Return already approved")
        return {
            "status": next_status(booking.status, BookingAction.APPROVE_RETURN, BookingStatus.COMPLETED),
            "return_approved": True,
            "return_approved_at": now,
            "return_approved_by": request.requested_by,
            "return_approved_by_type": request.requested_by_type,
            "finished_at": now,
            "finished_by": request.requested_by,
            "finished_by_type": request.requested_by_type,
        }

    @staticmethod
    def _reject(booking: Booking, request: ReturnRequest, now: datetime) -> dict[str, Any]:
        if not booking.return_requested:
            raise ReturnRequestConflictError(booking.id, "No return has been requested")
        if booking.return_approved:
            raise ReturnRequestConflictError(booking.id, "Return already approved")
        return {
            "return_requested": False,
            "return_rejected_at": now,
            "return_rejected_by": request.requested_by,
            "return_rejected_by_type": request.requested_by_type,
            "return_rejection_reason": request.reason or DEFAULT_RETURN_REASON,
        }

    def _effects(
        self, before: Booking, booking: Booking, request: ReturnRequest
    ) -> list[effects.Effect]:
        actor = request.requested_by_type
        data = {"booking_id": booking.id, "action": request.action, "actor_type": actor}
        registration = booking.vehicle_registration or booking.vehicle_id

        if request.action == "request":
            data["reason"] = booking.return_reason
            if actor == ActorType.DRIVER.value:
                counterparty = (RecipientType.PARTNER, booking.partner_id, "partner_notification")
            else:
                counterparty = (RecipientType.DRIVER, booking.driver_id, "driver_notification")
            recipient_type, recipient_id, label = counterparty
            return [
                effects.history(
                    booking.id,
                    action="return_requested",
                    performed_by=request.requested_by,
                    performed_by_type=actor,
                    description=f"Early return requested: {booking.return_reason}",
                    details=data,
                ),
                effects.notify(
                    label,
                    recipient_type,
                    recipient_id,
                    type="return_requested",
                    title="Early return requested",
                    message=f"An early return of {registration} was requested: {booking.return_reason}",
                    priority=NotificationPriority.HIGH,
                    data=data,
                ),
                effects.notify(
                    "admin_notification",
                    RecipientType.ADMIN,
                    None,
                    type="return_requested_admin",
                    title="Early return requested",
                    message=f"Early return requested by {actor} on booking {booking.id}.",
                    priority=NotificationPriority.MEDIUM,
                    data=data,
                ),
            ]

        if request.action == "approve":
            result = [
                effects.history(
                    booking.id,
                    action="return_approved",
                    performed_by=request.requested_by,
                    performed_by_type=actor,
                    description="Early return approved; booking completed",
                    details=data,
                ),
                effects.notify(
                    "driver_notification",
                    RecipientType.DRIVER,
                    booking.driver_id,
                    type="return_approved",
                    title="Return approved",
                    message=f"Your early return of {registration} was approved.",
                    priority=NotificationPriority.HIGH,
                    data=data,
                ),
            ]
            if actor == ActorType.ADMIN.value:
                result.append(
                    effects.notify(
                        "partner_notification",
                        RecipientType.PARTNER,
                        booking.partner_id,
                        type="return_approved_partner",
                        title="Return approved",
                        message=f"An admin approved the early return of booking {booking.id}.",
                        priority=NotificationPriority.MEDIUM,
                        data=data,
                    )
                )
            else:
                result.append(
                    effects.notify(
                        "admin_notification",
                        RecipientType.ADMIN,
                        None,
                        type="return_approved_admin",
                        title="Return approved",
                        message=f"Partner approved the early return of booking {booking.id}.",
                        priority=NotificationPriority.LOW,
                        data=data,
                    )
                )
            return result

        data["reason"] = booking.return_rejection_reason
        result = [
            effects.history(
                booking.id,
                action="return_rejected",
                performed_by=request.requested_by,
                performed_by_type=actor,
                description=f"Early return rejected: {booking.return_rejection_reason}",
                details=data,
            ),
            effects.notify(
                "admin_notification",
                RecipientType.ADMIN,
                None,
                type="return_rejected_admin",
                title="Return rejected",
                message=f"Early return on booking {booking.id} rejected by {actor}.",
                priority=NotificationPriority.LOW,
                data=data,
            ),
        ]
        requester = {
            ActorType.DRIVER.value: (RecipientType.DRIVER, "driver_notification"),
            ActorType.PARTNER.value: (RecipientType.PARTNER, "partner_notification"),
        }.get(before.return_requested_by_type)
        if requester:
            recipient_type, label = requester
            result.append(
                effects.notify(
                    label,
                    recipient_type,
                    before.return_requested_by,
                    type="return_rejected",
                    title="Return rejected",
                    message=f"Your early return request was rejected: {booking.return_rejection_reason}",
                    priority=NotificationPriority.HIGH,
                    data=data,
                )
            )
        return result
