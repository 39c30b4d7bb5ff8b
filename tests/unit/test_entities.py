from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.domain.entities.booking import Booking
from app.domain.entities.ledger_transaction import LedgerTransaction, TransactionType
from app.domain.entities.payment_instruction import (
    InstructionFrequency,
    InstructionType,
    PaymentInstruction,
)
from app.domain.value_objects.money import Money
from app.domain.value_objects.rental_period import RentalPeriod

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _booking(**overrides) -> Booking:
    data = dict(
        id="booking_1",
        driver_id="driver_1",
        partner_id="partner_1",
        vehicle_id="vehicle_1",
        start_date=START,
        end_date=START + timedelta(days=14),
    )
    data.update(overrides)
    return Booking(**data)


class TestRentalPeriod:
    def test_total_weeks_rounds_up(self):
        period = RentalPeriod(START, START + timedelta(days=15))
        assert period.total_weeks == 3
        assert period.total_days == 15

    def test_days_used_counts_started_days(self):
        period = RentalPeriod(START, START + timedelta(days=14))
        assert period.days_used(START + timedelta(days=2, hours=1)) == 3

    def test_days_used_is_zero_before_start(self):
        period = RentalPeriod(START, START + timedelta(days=14))
        assert period.days_used(START - timedelta(days=3)) == 0

    def test_end_must_follow_start(self):
        with pytest.raises(ValueError):
            RentalPeriod(START, START)


class TestActivationReadiness:
    def test_ready_when_paid_and_nothing_else_required(self):
        assert _booking(payment_status="completed").can_activate

    def test_unpaid_booking_is_blocked_on_payment(self):
        assert _booking().activation_blockers() == ["payment"]

    def test_partner_insurance_satisfies_requirement(self):
        booking = _booking(
            payment_status="paid", insurance_required=True, partner_provides_insurance=True
        )
        assert booking.insurance_satisfied
        assert booking.can_activate

    def test_missing_documents_block(self):
        booking = _booking(payment_status="paid", requires_document_verification=True)
        assert booking.activation_blockers() == ["documents"]


def test_snapshot_fields_are_immutable():
    with pytest.raises(ValueError):
        Booking.check_mutable({"driver_snapshot": None, "status": "active"})
    Booking.check_mutable({"status": "active"})


def test_matched_pair_mirrors_amount():
    income, expense = LedgerTransaction.matched_pair(
        booking_id="booking_1",
        partner_id="partner_1",
        driver_id="driver_1",
        amount=Decimal("100.00"),
        income_category="Booking Revenue",
        expense_category="Vehicle Rental",
        income_source="driver",
        expense_source="partner",
        description="Weekly payment",
    )
    assert income.type == TransactionType.INCOME
    assert income.partner_id == "partner_1" and income.driver_id is None
    assert expense.type == TransactionType.EXPENSE
    assert expense.driver_id == "driver_1" and expense.partner_id is None
    assert income.amount == expense.amount
    assert income.booking_id == expense.booking_id


def test_weekly_instruction_advances_exactly_seven_days():
    due = datetime(2024, 1, 1, tzinfo=timezone.utc)
    instruction = PaymentInstruction(
        booking_id="booking_1",
        driver_id="driver_1",
        partner_id="partner_1",
        amount=Decimal("100"),
        type=InstructionType.WEEKLY_RENT,
        frequency=InstructionFrequency.WEEKLY,
        next_due_date=due,
    )
    assert instruction.is_recurring
    assert instruction.advanced_due_date(due + timedelta(days=3)) == datetime(
        2024, 1, 8, tzinfo=timezone.utc
    )


def test_money_formats_pounds():
    assert str(Money(Decimal("80"))) == "£80.00"
    assert Money(Decimal("12.345")).to_cents() == 1235
    with pytest.raises(ValueError):
        Money(Decimal("-1"))
