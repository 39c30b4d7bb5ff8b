from datetime import timedelta
from decimal import Decimal

import pytest

from app.api.schemas.bookings import CancelBookingRequest
from app.domain.entities.booking import BookingStatus
from app.domain.entities.ledger_transaction import TransactionType
from app.domain.entities.payment_instruction import (
    InstructionFrequency,
    InstructionStatus,
    InstructionType,
    PaymentInstruction,
)
from app.domain.entities.vehicle import VehicleStatus
from app.domain.errors import BookingStatusConflictError, ExternalPaymentError, ValidationError
from tests.conftest import DRIVER_ID, NOW, PARTNER_ID, VEHICLE_ID, make_create_request


async def _paid_booking(use_cases, bundle, weekly_rate="140.00", weeks_paid=2, **overrides):
    """
    Active booking with ``weeks_paid`` weekly instalments already received.

    Defaults to a direct-debit booking with a Stripe customer so refunds use the card rail.
    """
    overrides.setdefault("payment_method", "direct_debit")
    overrides.setdefault("stripe_customer_id", "cus_123")
    created = await use_cases["create_booking"].execute(
        make_create_request(
            weekly_rate=Decimal(weekly_rate), deposit_amount=Decimal("0"), **overrides
        )
    )
    for _ in range(weeks_paid):
        await bundle["instruction_repo"].add(
            PaymentInstruction(
                booking_id=created.booking_id,
                driver_id=DRIVER_ID,
                partner_id=PARTNER_ID,
                amount=Decimal(weekly_rate),
                type=InstructionType.WEEKLY_RENT,
                status=InstructionStatus.COMPLETED,
                frequency=InstructionFrequency.WEEKLY,
            )
        )
    booking = bundle["booking_repo"].bookings[created.booking_id]
    booking.status = BookingStatus.ACTIVE
    booking.payment_status = "paid"
    return created.booking_id


def _cancel(booking_id: str, cancel_type: str = "prorated", **kwargs) -> CancelBookingRequest:
    return CancelBookingRequest(
        booking_id=booking_id, reason="Change of plans", cancel_type=cancel_type, **kwargs
    )


class TestCancelRefunds:
    async def test_prorated_refund_for_unused_paid_days(self, use_cases, bundle, clock):
        booking_id = await _paid_booking(use_cases, bundle)
        clock.advance(days=10)

        response = await use_cases["cancel_booking"].execute(_cancel(booking_id))

        assert response.status == "cancelled"
        assert response.refund_amount == Decimal("80.00")
        assert response.days_used == 10
        assert response.remaining_days == 4
        assert response.stripe_refund_id.startswith("re_")

        refund = bundle["refund_gateway"].refunds[f"cancel:{booking_id}"]
        assert refund.amount == Decimal("80.00")

        booking = bundle["booking_repo"].bookings[booking_id]
        assert booking.payment_status == "refunded"
        assert booking.refund_amount == Decimal("80.00")
        assert booking.cancelled_at == NOW + timedelta(days=10)
        assert booking.cancelled_by == DRIVER_ID
        assert bundle["vehicle_repo"].vehicles[VEHICLE_ID].status == VehicleStatus.AVAILABLE

    async def test_full_refund_includes_insurance(self, use_cases, bundle):
        booking_id = await _paid_booking(use_cases, bundle)

        response = await use_cases["cancel_booking"].execute(
            _cancel(booking_id, "full", insurance_refund_amount=Decimal("20.00"))
        )

        assert response.refund_amount == Decimal("280.00")
        assert response.insurance_refund == Decimal("20.00")
        assert bundle["refund_gateway"].refunds[f"cancel:{booking_id}"].amount == Decimal("300.00")

    async def test_no_refund_skips_payment_rail(self, use_cases, bundle):
        booking_id = await _paid_booking(use_cases, bundle)

        response = await use_cases["cancel_booking"].execute(_cancel(booking_id, "none"))

        assert response.refund_amount == Decimal("0.00")
        assert response.stripe_refund_id is None
        assert bundle["refund_gateway"].refunds == {}
        assert bundle["booking_repo"].bookings[booking_id].payment_status == "paid"

    async def test_unpaid_booking_cancels_without_refund(self, use_cases, bundle):
        created = await use_cases["create_booking"].execute(make_create_request())

        response = await use_cases["cancel_booking"].execute(_cancel(created.booking_id, "full"))

        assert response.status == "cancelled"
        assert response.refund_amount == Decimal("0.00")
        assert bundle["refund_gateway"].refunds == {}

    async def test_refund_is_recorded_as_negative_ledger_pair(self, use_cases, bundle, clock):
        booking_id = await _paid_booking(use_cases, bundle)
        clock.advance(days=10)
        await use_cases["cancel_booking"].execute(_cancel(booking_id))
        await use_cases["dispatch_outbox"].execute()

        transactions = await bundle["transaction_repo"].list_for_booking(booking_id)
        refunds = [t for t in transactions if t.source == "stripe"]
        assert sorted(t.type for t in refunds) == [TransactionType.EXPENSE, TransactionType.INCOME]
        assert all(t.amount == Decimal("-80.00") for t in refunds)
        history = await bundle["history_repo"].list_for_booking(booking_id)
        assert "booking_cancelled" in [h.action for h in history]

    async def test_bank_transfer_refund_is_left_to_the_partner(self, use_cases, bundle, clock):
        booking_id = await _paid_booking(
            use_cases, bundle, payment_method="bank_transfer", stripe_customer_id=None
        )
        clock.advance(days=10)

        response = await use_cases["cancel_booking"].execute(
            _cancel(booking_id, insurance_refund_amount=Decimal("20.00"))
        )
        await use_cases["dispatch_outbox"].execute()

        assert response.status == "cancelled"
        assert response.refund_amount == Decimal("80.00")
        assert response.stripe_refund_id is None
        assert bundle["refund_gateway"].refunds == {}

        instructions = await bundle["instruction_repo"].list_for_booking(booking_id)
        refunds = [i for i in instructions if i.type == InstructionType.REFUND]
        assert len(refunds) == 1
        assert refunds[0].amount == Decimal("100.00")
        assert refunds[0].status == InstructionStatus.PENDING
        assert refunds[0].ledger_recorded

        transactions = await bundle["transaction_repo"].list_for_booking(booking_id)
        assert sorted(t.amount for t in transactions) == [
            Decimal("-80.00"), Decimal("-80.00"), Decimal("-20.00"), Decimal("-20.00")
        ]
        assert all(t.source == "partner" and t.reference is None for t in transactions)

    async def test_direct_debit_without_customer_skips_the_card_rail(self, use_cases, bundle):
        booking_id = await _paid_booking(use_cases, bundle, stripe_customer_id=None)

        response = await use_cases["cancel_booking"].execute(_cancel(booking_id, "full"))

        assert response.stripe_refund_id is None
        assert bundle["refund_gateway"].refunds == {}
        instructions = await bundle["instruction_repo"].list_for_booking(booking_id)
        assert [i.amount for i in instructions if i.type == InstructionType.REFUND] == [
            Decimal("280.00")
        ]

    async def test_subscription_is_cancelled_after_commit(self, use_cases, bundle):
        booking_id = await _paid_booking(use_cases, bundle, stripe_subscription_id="sub_123")

        await use_cases["cancel_booking"].execute(_cancel(booking_id, "none"))
        assert bundle["refund_gateway"].cancelled_subscriptions == []

        await use_cases["dispatch_outbox"].execute()
        assert bundle["refund_gateway"].cancelled_subscriptions == ["sub_123"]


class TestCancelFailures:
    async def test_provider_failure_leaves_booking_untouched(self, use_cases, bundle):
        booking_id = await _paid_booking(use_cases, bundle)
        bundle["refund_gateway"].fail_with = RuntimeError("card_declined")

        with pytest.raises(ExternalPaymentError) as exc_info:
            await use_cases["cancel_booking"].execute(_cancel(booking_id, "full"))

        assert exc_info.value.http_status == 502
        assert "card_declined" in exc_info.value.message
        assert bundle["booking_repo"].bookings[booking_id].status == BookingStatus.ACTIVE
        assert bundle["vehicle_repo"].vehicles[VEHICLE_ID].status == VehicleStatus.BOOKED
        # only the creation effects were queued
        events = await bundle["outbox_repo"].list_for_aggregate(booking_id)
        assert len(events) == 3

    async def test_cancelled_booking_cannot_be_cancelled_again(self, use_cases, bundle):
        booking_id = await _paid_booking(use_cases, bundle)
        await use_cases["cancel_booking"].execute(_cancel(booking_id, "full"))

        with pytest.raises(BookingStatusConflictError) as exc_info:
            await use_cases["cancel_booking"].execute(_cancel(booking_id, "full"))

        assert exc_info.value.current_status == "cancelled"
        assert len(bundle["refund_gateway"].refunds) == 1

    async def test_unknown_cancel_type(self, use_cases, bundle):
        booking_id = await _paid_booking(use_cases, bundle)
        with pytest.raises(ValidationError):
            await use_cases["cancel_booking"].execute(_cancel(booking_id, "partial"))
