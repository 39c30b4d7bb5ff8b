from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from app.api.schemas.bookings import PartnerResponseRequest
from app.domain.entities.booking import BookingStatus
from app.domain.entities.vehicle import VehicleStatus
from app.domain.errors import BookingStatusConflictError, NotFoundError
from tests.conftest import NOW, PARTNER_ID, VEHICLE_ID, make_create_request


async def _create(use_cases, **overrides) -> str:
    response = await use_cases["create_booking"].execute(make_create_request(**overrides))
    return response.booking_id


class TestPartnerAcceptanceDeadline:
    async def test_reminder_inside_window(self, use_cases, bundle, clock):
        booking_id = await _create(use_cases, requires_partner_approval_first=True)
        clock.advance(hours=1)

        report = await use_cases["check_deadlines"].execute(booking_id)

        assert report.status == "pending_partner_approval"
        assert report.actions_taken == ["partner_reminder"]
        assert report.notifications_sent == ["partner_reminder"]

    async def test_missed_deadline_auto_rejects(self, use_cases, bundle, clock):
        booking_id = await _create(use_cases, requires_partner_approval_first=True)
        clock.advance(hours=3)

        report = await use_cases["check_deadlines"].execute(booking_id)

        assert report.status == "auto_rejected"
        assert report.actions_taken == ["booking_auto_rejected"]
        booking = bundle["booking_repo"].bookings[booking_id]
        assert booking.auto_rejected_at == NOW + timedelta(hours=3)
        assert bundle["vehicle_repo"].vehicles[VEHICLE_ID].status == VehicleStatus.AVAILABLE

        await use_cases["dispatch_outbox"].execute()
        admin = [n for n in bundle["notification_gateway"].sent if n.recipient_type.value == "admin"]
        assert [n.type for n in admin] == ["booking_auto_rejected_admin"]


class TestPaymentAndInsuranceDeadlines:
    async def test_unpaid_booking_expires(self, use_cases, bundle, clock):
        booking_id = await _create(use_cases)
        clock.advance(hours=25)

        report = await use_cases["check_deadlines"].execute(booking_id)

        assert report.status == "payment_expired"
        assert report.checks_performed == ["payment_deadline"]
        assert bundle["vehicle_repo"].vehicles[VEHICLE_ID].status == VehicleStatus.AVAILABLE

    async def test_nothing_happens_before_deadline(self, use_cases, clock):
        booking_id = await _create(use_cases)
        clock.advance(hours=23)

        report = await use_cases["check_deadlines"].execute(booking_id)

        assert report.status == "pending_payment"
        assert report.actions_taken == []

    async def test_missing_insurance_upload_expires(self, use_cases, bundle, clock):
        booking_id = await _create(
            use_cases, requires_partner_approval_first=True, insurance_required=True
        )
        await use_cases["respond_to_booking"].execute(
            PartnerResponseRequest(booking_id=booking_id, partner_id=PARTNER_ID, action="accept")
        )
        clock.advance(hours=49)

        report = await use_cases["check_deadlines"].execute(booking_id)

        assert report.status == "insurance_expired"
        assert bundle["booking_repo"].bookings[booking_id].expired_at == NOW + timedelta(hours=49)


class TestRentalEnd:
    async def test_active_booking_past_end_only_goes_overdue(self, use_cases, bundle, clock):
        booking_id = await _create(use_cases)
        booking = bundle["booking_repo"].bookings[booking_id]
        booking.status = BookingStatus.ACTIVE
        payment_deadline = booking.payment_deadline
        clock.advance(days=15)

        report = await use_cases["check_deadlines"].execute(booking_id)

        assert report.status == "overdue"
        assert report.checks_performed == ["rental_end_date"]
        assert report.actions_taken == ["booking_overdue"]
        stored = bundle["booking_repo"].bookings[booking_id]
        assert stored.overdue_at == NOW + timedelta(days=15)
        assert stored.payment_deadline == payment_deadline
        assert stored.expired_at is None

    async def test_terminal_booking_is_left_alone(self, use_cases, bundle, clock):
        booking_id = await _create(use_cases)
        bundle["booking_repo"].bookings[booking_id].status = BookingStatus.CANCELLED
        clock.advance(days=30)

        report = await use_cases["check_deadlines"].execute(booking_id)

        assert report.checks_performed == []
        assert report.actions_taken == []


class TestSweepEdgeCases:
    async def test_lost_race_is_a_no_op(self, use_cases, bundle, clock):
        booking_id = await _create(use_cases)
        before = len(bundle["outbox_repo"].events)
        bundle["booking_repo"].transition = AsyncMock(
            side_effect=BookingStatusConflictError(booking_id, "pending_partner_approval", "expire")
        )
        clock.advance(hours=25)

        report = await use_cases["check_deadlines"].execute(booking_id)

        assert report.actions_taken == []
        assert report.status == "pending_payment"
        assert len(bundle["outbox_repo"].events) == before

    async def test_unknown_booking(self, use_cases):
        with pytest.raises(NotFoundError):
            await use_cases["check_deadlines"].execute("booking_missing")

    async def test_batch_sweep_visits_bookings_with_deadlines(self, use_cases, bundle, clock):
        booking_id = await _create(use_cases)
        clock.advance(hours=25)

        reports = await use_cases["check_deadlines"].execute_all(limit=10)

        assert [r.booking_id for r in reports] == [booking_id]
        assert reports[0].status == "payment_expired"
