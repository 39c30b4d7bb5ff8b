import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from app.api.schemas.workers import DeadlineCheckReport
from app.application import effects
from app.application.effects import EffectPublisher
from app.application.interfaces.booking_repo import BookingRepo
from app.application.interfaces.clock import Clock
from app.application.interfaces.transaction_manager import TransactionManager
from app.application.interfaces.vehicle_repo import VehicleRepo
from app.domain.constants import SYSTEM_ACTOR
from app.domain.entities.booking import ActorType, Booking, BookingStatus
from app.domain.entities.notification import NotificationPriority, RecipientType
from app.domain.errors import BookingStatusConflictError, NotFoundError
from app.domain.lifecycle import BookingAction, next_status

SWEEPABLE_STATUSES = (
    BookingStatus.PENDING_PARTNER_APPROVAL,
    BookingStatus.PENDING_PAYMENT,
    BookingStatus.PENDING_INSURANCE_UPLOAD,
    BookingStatus.ACTIVE,
)


@dataclass
class _Sweep:
    booking: Booking
    checks: list[str] = field(default_factory=list)
    actions: list[str] = field(default_factory=list)
    pending_effects: list[effects.Effect] = field(default_factory=list)


class CheckBookingDeadlinesUseCase:
    """
    Advances a booking whose actor missed a deadline.

    Only the branch for the booking's current status runs, so one call takes at
    most one action.
    """

    def __init__(
        self,
        booking_repo: BookingRepo,
        vehicle_repo: VehicleRepo,
        transaction_manager: TransactionManager,
        publisher: EffectPublisher,
        clock: Clock,
        partner_reminder_window_hours: int = 2,
    ) -> None:
        self._booking_repo = booking_repo
        self._vehicle_repo = vehicle_repo
        self._transaction_manager = transaction_manager
        self._publisher = publisher
        self._clock = clock
        self._reminder_window = timedelta(hours=partner_reminder_window_hours)
        self._logger = logging.getLogger(__name__)
        self._branches = {
            BookingStatus.PENDING_PARTNER_APPROVAL: self._check_partner_acceptance,
            BookingStatus.PENDING_PAYMENT: self._check_payment,
            BookingStatus.PENDING_INSURANCE_UPLOAD: self._check_insurance,
            BookingStatus.ACTIVE: self._check_rental_end,
        }

    async def execute(self, booking_id: str) -> DeadlineCheckReport:
        now = self._clock.now()
        async with self._transaction_manager.start():
            booking = await self._booking_repo.get(booking_id)
            if not booking:
                raise NotFoundError("Booking", booking_id)

            sweep = _Sweep(booking=booking)
            branch = self._branches.get(booking.status)
            if branch is not None:
                try:
                    await branch(sweep, now)
                except BookingStatusConflictError as exc:
                    # someone else moved the booking since we read it
                    self._logger.info(
                        "Deadline sweep lost race, skipping",
                        extra={"booking_id": booking_id, "current_status": exc.current_status},
                    )
                    sweep.actions.clear()
                    sweep.pending_effects.clear()
            else:
                self._logger.debug(
                    "No deadline applies to booking status",
                    extra={"booking_id": booking_id, "status": booking.status.value},
                )

        notifications_sent = []
        if sweep.pending_effects:
            published = await self._publisher.publish(booking_id, sweep.pending_effects)
            notifications_sent = [label for label in published if not label.startswith("history:")]
        if sweep.actions:
            self._logger.info(
                "Deadline sweep applied",
                extra={"booking_id": booking_id, "actions": sweep.actions},
            )
        return DeadlineCheckReport(
            booking_id=booking_id,
            status=sweep.booking.status.value,
            checks_performed=sweep.checks,
            actions_taken=sweep.actions,
            notifications_sent=notifications_sent,
        )

    async def execute_all(self, limit: int = 500) -> list[DeadlineCheckReport]:
        """Batch mode: one evaluation per booking in a status with a deadline."""
        async with self._transaction_manager.start():
            bookings = await self._booking_repo.list_by_status(SWEEPABLE_STATUSES, limit=limit)
        reports = []
        for booking in bookings:
            try:
                reports.append(await self.execute(booking.id))
            except NotFoundError:
                continue
        return reports

    # === Branches ===

    async def _check_partner_acceptance(self, sweep: _Sweep, now: datetime) -> None:
        booking = sweep.booking
        deadline = booking.partner_acceptance_deadline
        sweep.checks.append("partner_acceptance_deadline")
        if deadline is None:
            return

        if now > deadline:
            sweep.booking = await self._apply(
                booking,
                BookingAction.AUTO_REJECT,
                BookingStatus.AUTO_REJECTED,
                {"auto_rejected_at": now, "rejection_reason": "Partner did not respond in time"},
                now,
            )
            await self._vehicle_repo.release(booking.vehicle_id)
            sweep.actions.append("booking_auto_rejected")
            sweep.pending_effects += [
                self._history(booking, "booking_auto_rejected", "Partner acceptance deadline passed",
                              {"deadline": deadline}),
                self._driver_notice(
                    booking,
                    type="booking_auto_rejected",
                    title="Booking expired",
                    message="The partner did not respond in time, so your booking was cancelled.",
                    priority=NotificationPriority.HIGH,
                ),
                effects.notify(
                    "admin_notification",
                    RecipientType.ADMIN,
                    None,
                    type="booking_auto_rejected_admin",
                    title="Booking auto-rejected",
                    message=f"Partner {booking.partner_id} missed the acceptance deadline for {booking.id}.",
                    priority=NotificationPriority.MEDIUM,
                    data={"booking_id": booking.id, "partner_id": booking.partner_id},
                ),
            ]
            return

        remaining = deadline - now
        if remaining <= self._reminder_window:
            hours_remaining = round(remaining.total_seconds() / 3600, 1)
            sweep.actions.append("partner_reminder")
            sweep.pending_effects.append(
                effects.notify(
                    "partner_reminder",
                    RecipientType.PARTNER,
                    booking.partner_id,
                    type="booking_response_reminder",
                    title="Booking awaiting your response",
                    message=f"Booking {booking.id} will be auto-rejected in {hours_remaining} hour(s).",
                    priority=NotificationPriority.URGENT,
                    data={"booking_id": booking.id, "hours_remaining": hours_remaining},
                )
            )

    async def _check_payment(self, sweep: _Sweep, now: datetime) -> None:
        booking = sweep.booking
        sweep.checks.append("payment_deadline")
        if booking.payment_deadline is None or now <= booking.payment_deadline:
            return
        sweep.booking = await self._apply(
            booking, BookingAction.EXPIRE_PAYMENT, BookingStatus.PAYMENT_EXPIRED, {"expired_at": now}, now
        )
        await self._vehicle_repo.release(booking.vehicle_id)
        sweep.actions.append("payment_expired")
        sweep.pending_effects += [
            self._history(booking, "payment_expired", "Payment deadline passed",
                          {"deadline": booking.payment_deadline}),
            self._driver_notice(
                booking,
                type="payment_expired",
                title="Booking expired",
                message="Payment was not received in time, so your booking has expired.",
                priority=NotificationPriority.HIGH,
            ),
        ]

    async def _check_insurance(self, sweep: _Sweep, now: datetime) -> None:
        booking = sweep.booking
        sweep.checks.append("insurance_upload_deadline")
        if booking.insurance_upload_deadline is None or now <= booking.insurance_upload_deadline:
            return
        sweep.booking = await self._apply(
            booking,
            BookingAction.EXPIRE_INSURANCE,
            BookingStatus.INSURANCE_EXPIRED,
            {"expired_at": now},
            now,
        )
        await self._vehicle_repo.release(booking.vehicle_id)
        sweep.actions.append("insurance_expired")
        sweep.pending_effects += [
            self._history(booking, "insurance_expired", "Insurance upload deadline passed",
                          {"deadline": booking.insurance_upload_deadline}),
            self._driver_notice(
                booking,
                type="insurance_expired",
                title="Booking expired",
                message="Insurance documents were not uploaded in time, so your booking has expired.",
                priority=NotificationPriority.HIGH,
            ),
        ]

    async def _check_rental_end(self, sweep: _Sweep, now: datetime) -> None:
        booking = sweep.booking
        sweep.checks.append("rental_end_date")
        if not booking.period.has_ended(now):
            return
        sweep.booking = await self._apply(
            booking, BookingAction.MARK_OVERDUE, BookingStatus.OVERDUE, {"overdue_at": now}, now
        )
        sweep.actions.append("booking_overdue")
        data = {"booking_id": booking.id, "end_date": booking.end_date}
        sweep.pending_effects += [
            self._history(booking, "booking_overdue", "Rental end date passed without return",
                          {"end_date": booking.end_date}),
            self._driver_notice(
                booking,
                type="booking_overdue",
                title="Rental overdue",
                message="Your rental period has ended. Please return the vehicle or contact the partner.",
                priority=NotificationPriority.URGENT,
            ),
            effects.notify(
                "partner_notification",
                RecipientType.PARTNER,
                booking.partner_id,
                type="booking_overdue",
                title="Rental overdue",
                message=f"Booking {booking.id} passed its end date and the vehicle has not been returned.",
                priority=NotificationPriority.HIGH,
                data=data,
            ),
        ]

    # === Helpers ===

    async def _apply(
        self,
        booking: Booking,
        action: BookingAction,
        target: BookingStatus,
        changes: dict[str, Any],
        now: datetime,
    ) -> Booking:
        return await self._booking_repo.transition(
            booking.id,
            booking.status,
            {"status": next_status(booking.status, action, target), "updated_at": now, **changes},
            operation=action.value,
        )

    @staticmethod
    def _history(booking: Booking, action: str, description: str, details: dict) -> effects.Effect:
        return effects.history(
            booking.id,
            action=action,
            performed_by=SYSTEM_ACTOR,
            performed_by_type=ActorType.SYSTEM.value,
            description=description,
            details={"previous_status": booking.status.value, **details},
        )

    @staticmethod
    def _driver_notice(
        booking: Booking, type: str, title: str, message: str, priority: NotificationPriority
    ) -> effects.Effect:
        return effects.notify(
            "driver_notification",
            RecipientType.DRIVER,
            booking.driver_id,
            type=type,
            title=title,
            message=message,
            priority=priority,
            data={"booking_id": booking.id},
        )
