import pytest

from app.api.schemas.bookings import ReturnRequest
from app.domain.entities.booking import BookingStatus
from app.domain.entities.vehicle import VehicleStatus
from app.domain.errors import (
    AuthorizationError,
    BookingStatusConflictError,
    NotFoundError,
    ReturnRequestConflictError,
)
from tests.conftest import DRIVER_ID, NOW, PARTNER_ID, VEHICLE_ID, make_create_request


@pytest.fixture
async def booking_id(use_cases, bundle):
    response = await use_cases["create_booking"].execute(make_create_request())
    bundle["booking_repo"].bookings[response.booking_id].status = BookingStatus.ACTIVE
    return response.booking_id


def _return(
    booking_id: str, action: str = "request", by: str = DRIVER_ID, by_type: str = "driver", **kwargs
) -> ReturnRequest:
    return ReturnRequest(
        booking_id=booking_id,
        requested_by=by,
        requested_by_type=by_type,
        action=action,
        **kwargs,
    )


async def _requested(use_cases, booking_id, **kwargs):
    await use_cases["request_return"].execute(
        _return(booking_id, reason="Leaving the country", **kwargs)
    )


class TestRequestReturn:
    async def test_driver_requests_an_early_return(self, use_cases, bundle, booking_id):
        response = await use_cases["request_return"].execute(
            _return(booking_id, reason="Leaving the country")
        )
        await use_cases["dispatch_outbox"].execute()

        assert response.return_requested
        assert not response.return_approved
        assert response.status == "active"
        booking = bundle["booking_repo"].bookings[booking_id]
        assert booking.return_requested_at == NOW
        assert booking.return_requested_by == DRIVER_ID
        assert booking.return_requested_by_type == "driver"
        assert booking.return_reason == "Leaving the country"

        gateway = bundle["notification_gateway"]
        assert "return_requested" in [n.type for n in gateway.for_recipient(PARTNER_ID)]
        assert "return_requested_admin" in [n.type for n in gateway.for_recipient(None)]
        history = await bundle["history_repo"].list_for_booking(booking_id)
        assert "return_requested" in [h.action for h in history]

    async def test_partner_request_notifies_the_driver(self, use_cases, bundle, booking_id):
        await _requested(use_cases, booking_id, by=PARTNER_ID, by_type="partner")
        await use_cases["dispatch_outbox"].execute()

        notices = bundle["notification_gateway"].for_recipient(DRIVER_ID)
        assert "return_requested" in [n.type for n in notices]

    async def test_default_reason(self, use_cases, bundle, booking_id):
        await use_cases["request_return"].execute(_return(booking_id))
        assert bundle["booking_repo"].bookings[booking_id].return_reason == "No reason provided"

    async def test_second_request_conflicts(self, use_cases, booking_id):
        await _requested(use_cases, booking_id)

        with pytest.raises(ReturnRequestConflictError) as exc_info:
            await _requested(use_cases, booking_id)
        assert exc_info.value.http_status == 409

    async def test_booking_must_be_under_way(self, use_cases, bundle, booking_id):
        bundle["booking_repo"].bookings[booking_id].status = BookingStatus.PENDING_PAYMENT

        with pytest.raises(BookingStatusConflictError):
            await _requested(use_cases, booking_id)

    async def test_other_driver_is_forbidden(self, use_cases, booking_id):
        with pytest.raises(AuthorizationError):
            await _requested(use_cases, booking_id, by="driver_2")

    async def test_unknown_booking(self, use_cases):
        with pytest.raises(NotFoundError):
            await _requested(use_cases, "booking_missing")


class TestApproveReturn:
    async def test_partner_approval_completes_the_booking(self, use_cases, bundle, booking_id):
        await _requested(use_cases, booking_id)

        response = await use_cases["request_return"].execute(
            _return(booking_id, "approve", by=PARTNER_ID, by_type="partner")
        )
        await use_cases["dispatch_outbox"].execute()

        assert response.status == "completed"
        assert response.return_approved
        booking = bundle["booking_repo"].bookings[booking_id]
        assert booking.return_approved_by == PARTNER_ID
        assert booking.finished_at == NOW
        assert booking.finished_by_type == "partner"
        assert bundle["vehicle_repo"].vehicles[VEHICLE_ID].status == VehicleStatus.AVAILABLE

        gateway = bundle["notification_gateway"]
        assert "return_approved" in [n.type for n in gateway.for_recipient(DRIVER_ID)]
        assert "return_approved_admin" in [n.type for n in gateway.for_recipient(None)]

    async def test_admin_approval_notifies_the_partner(self, use_cases, bundle, booking_id):
        await _requested(use_cases, booking_id)

        await use_cases["request_return"].execute(
            _return(booking_id, "approve", by="admin_1", by_type="admin")
        )
        await use_cases["dispatch_outbox"].execute()

        notices = bundle["notification_gateway"].for_recipient(PARTNER_ID)
        assert "return_approved_partner" in [n.type for n in notices]

    async def test_nothing_to_approve(self, use_cases, bundle, booking_id):
        with pytest.raises(ReturnRequestConflictError):
            await use_cases["request_return"].execute(
                _return(booking_id, "approve", by=PARTNER_ID, by_type="partner")
            )
        assert bundle["booking_repo"].bookings[booking_id].status == BookingStatus.ACTIVE

    async def test_driver_cannot_approve(self, use_cases, booking_id):
        await _requested(use_cases, booking_id)

        with pytest.raises(AuthorizationError):
            await use_cases["request_return"].execute(_return(booking_id, "approve"))

    async def test_approved_booking_cannot_be_approved_again(self, use_cases, booking_id):
        await _requested(use_cases, booking_id)
        approve = _return(booking_id, "approve", by=PARTNER_ID, by_type="partner")
        await use_cases["request_return"].execute(approve)

        with pytest.raises(ReturnRequestConflictError):
            await use_cases["request_return"].execute(approve)


class TestRejectReturn:
    async def test_rejection_clears_the_request(self, use_cases, bundle, booking_id):
        await _requested(use_cases, booking_id)

        response = await use_cases["request_return"].execute(
            _return(booking_id, "reject", by=PARTNER_ID, by_type="partner", reason="Contract term")
        )
        await use_cases["dispatch_outbox"].execute()

        assert response.status == "active"
        assert not response.return_requested
        booking = bundle["booking_repo"].bookings[booking_id]
        assert booking.return_rejected_by == PARTNER_ID
        assert booking.return_rejection_reason == "Contract term"

        gateway = bundle["notification_gateway"]
        assert "return_rejected" in [n.type for n in gateway.for_recipient(DRIVER_ID)]
        assert "return_rejected_admin" in [n.type for n in gateway.for_recipient(None)]
        history = await bundle["history_repo"].list_for_booking(booking_id)
        assert "return_rejected" in [h.action for h in history]

    async def test_request_can_be_raised_again_after_rejection(self, use_cases, bundle, booking_id):
        await _requested(use_cases, booking_id)
        await use_cases["request_return"].execute(
            _return(booking_id, "reject", by=PARTNER_ID, by_type="partner")
        )

        await _requested(use_cases, booking_id)
        assert bundle["booking_repo"].bookings[booking_id].return_requested

    async def test_nothing_to_reject(self, use_cases, booking_id):
        with pytest.raises(ReturnRequestConflictError):
            await use_cases["request_return"].execute(
                _return(booking_id, "reject", by=PARTNER_ID, by_type="partner")
            )

    def test_unknown_action_is_rejected(self):
        with pytest.raises(ValueError):
            _return("booking_1", "cancel")
