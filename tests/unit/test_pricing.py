from decimal import Decimal

import pytest

from app.domain.entities.payment_instruction import (
    InstructionStatus,
    InstructionType,
    PaymentInstruction,
)
from app.domain.errors import ValidationError
from app.domain.pricing import (
    CancelType,
    actual_paid,
    calculate_refund,
    parse_cancel_type,
    quote_booking,
    settle,
)


def _instruction(amount: str, status: InstructionStatus) -> PaymentInstruction:
    return PaymentInstruction(
        booking_id="booking_1",
        driver_id="driver_1",
        partner_id="partner_1",
        amount=Decimal(amount),
        type=InstructionType.WEEKLY_RENT,
        status=status,
    )


def test_quote_is_weeks_times_rate_plus_deposit():
    quote = quote_booking(2, Decimal("100.00"), Decimal("50.00"))
    assert quote.total_weeks == 2
    assert quote.total_amount == Decimal("250.00")


def test_prorated_refund_counts_unused_paid_days():
    """weekly 140, paid 280, 10 days used -> 4 paid days left at 20/day."""
    quote = calculate_refund(
        CancelType.PRORATED,
        paid=Decimal("280"),
        weekly_rate=Decimal("140"),
        days_used=10,
        total_days=14,
    )
    assert quote.daily_rate == Decimal("20.00")
    assert quote.refund_amount == Decimal("80.00")
    assert quote.remaining_days == 4


def test_prorated_refund_rounds_half_up_to_pence():
    quote = calculate_refund(
        CancelType.PRORATED, paid=Decimal("100"), weekly_rate=Decimal("100"), days_used=3
    )
    # 4 remaining days at 100/7
    assert quote.refund_amount == Decimal("57.14")


def test_prorated_refund_is_zero_once_paid_days_are_used_up():
    quote = calculate_refund(
        CancelType.PRORATED, paid=Decimal("140"), weekly_rate=Decimal("140"), days_used=9
    )
    assert quote.refund_amount == Decimal("0.00")


def test_full_refund_returns_everything_paid():
    quote = calculate_refund(
        CancelType.FULL, paid=Decimal("280"), weekly_rate=Decimal("140"), days_used=10
    )
    assert quote.refund_amount == Decimal("280.00")


def test_no_refund():
    quote = calculate_refund(
        CancelType.NONE, paid=Decimal("280"), weekly_rate=Decimal("140"), days_used=1
    )
    assert quote.refund_amount == Decimal("0.00")


def test_refund_never_exceeds_paid():
    # paid days round up, so a part-week payment could otherwise overshoot
    quote = calculate_refund(
        CancelType.PRORATED, paid=Decimal("10"), weekly_rate=Decimal("140"), days_used=0
    )
    assert quote.refund_amount <= Decimal("10.00")


def test_negative_days_used_is_clamped():
    quote = calculate_refund(
        CancelType.PRORATED, paid=Decimal("140"), weekly_rate=Decimal("140"), days_used=-3
    )
    assert quote.days_used == 0
    assert quote.refund_amount == Decimal("140.00")


def test_parse_cancel_type_rejects_unknown_value():
    with pytest.raises(ValidationError) as exc_info:
        parse_cancel_type("partial")
    assert exc_info.value.code == "VALIDATION_ERROR"


@pytest.mark.parametrize(
    "total_days, weeks, final",
    [(14, 2, "200.00"), (15, 3, "300.00"), (1, 1, "100.00"), (0, 0, "0.00")],
)
def test_settle_charges_per_started_week(total_days, weeks, final):
    settlement = settle(total_days, Decimal("100.00"), paid=Decimal("0"))
    assert settlement.total_weeks == weeks
    assert settlement.final_amount == Decimal(final)


def test_settle_outstanding_never_negative():
    settlement = settle(7, Decimal("100.00"), paid=Decimal("250.00"))
    assert settlement.outstanding_amount == Decimal("0.00")


def test_actual_paid_only_counts_received_money():
    instructions = [
        _instruction("100", InstructionStatus.COMPLETED),
        _instruction("100", InstructionStatus.RECEIVED),
        _instruction("100", InstructionStatus.SENT),
        _instruction("100", InstructionStatus.PENDING),
    ]
    assert actual_paid(instructions) == Decimal("200.00")


def test_actual_paid_ignores_refunds_and_refunded_deposits():
    refund = _instruction("100", InstructionStatus.REFUNDED)
    refund.type = InstructionType.REFUND
    deposit = _instruction("50", InstructionStatus.DEPOSIT_REFUNDED)
    deposit.type = InstructionType.DEPOSIT
    instructions = [_instruction("100", InstructionStatus.COMPLETED), refund, deposit]
    assert actual_paid(instructions) == Decimal("100.00")
