"""Money rules for bookings: totals, refunds and final settlement.

All arithmetic is Decimal; results are rounded half-up to pence.
"""

import math
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Iterable

from app.domain.constants import ZERO
from app.domain.entities.payment_instruction import InstructionType, PaymentInstruction
from app.domain.errors import ValidationError
from app.domain.value_objects.money import quantize
from app.domain.value_objects.rental_period import ceil_weeks


class CancelType(str, Enum):
    FULL = "full"
    PRORATED = "prorated"
    NONE = "none"


@dataclass(frozen=True)
class BookingQuote:
    total_weeks: int
    total_amount: Decimal


@dataclass(frozen=True)
class RefundQuote:
    cancel_type: CancelType
    actual_paid: Decimal
    daily_rate: Decimal
    days_used: int
    remaining_days: int
    refund_amount: Decimal


@dataclass(frozen=True)
class Settlement:
    total_days: int
    total_weeks: int
    final_amount: Decimal
    actual_paid: Decimal
    outstanding_amount: Decimal


def quote_booking(total_weeks: int, weekly_rate: Decimal, deposit_amount: Decimal) -> BookingQuote:
    """total = weeks x weekly rate + deposit."""
    return BookingQuote(
        total_weeks=total_weeks,
        total_amount=quantize(Decimal(total_weeks) * weekly_rate + deposit_amount),
    )


def actual_paid(instructions: Iterable[PaymentInstruction]) -> Decimal:
    """
    Sum of instructions whose money has actually been received.

    This is the figure refunds and settlements are computed from, not
    ``Booking.total_paid``. Confirming a weekly transfer puts the instruction
    back to ``pending`` for the next week, so manual rent never stays in a
    received state; only ``completed``/``received`` instructions (direct-debit
    collections and imported settlements) count here. ``total_paid`` is the
    running total of confirmed transfers shown to users. Refund instructions
    never count.
    """
    return quantize(
        sum(
            (i.amount for i in instructions if i.is_received and i.type != InstructionType.REFUND),
            ZERO,
        )
    )


def parse_cancel_type(value: str) -> CancelType:
    try:
        return CancelType(value)
    except ValueError:
        raise ValidationError(
            field="cancelType", message=f"must be one of full, prorated, none (got '{value}')"
        ) from None


def calculate_refund(
    cancel_type: CancelType,
    paid: Decimal,
    weekly_rate: Decimal,
    days_used: int,
    total_days: int = 0,
) -> RefundQuote:
    """
    Refund owed on cancellation.

    full: everything received. prorated: unused paid days at the daily rate,
    where paid days are ceil(paid / daily rate). none: nothing.
    The result never exceeds what was paid.
    """
    days_used = max(0, days_used)
    daily_rate = weekly_rate / Decimal(7)

    if cancel_type == CancelType.FULL:
        refund = paid
    elif cancel_type == CancelType.PRORATED:
        if daily_rate <= 0:
            refund = ZERO
        else:
            paid_days = math.ceil(paid * 7 / weekly_rate)
            remaining_paid_days = max(0, paid_days - days_used)
            refund = Decimal(remaining_paid_days) * daily_rate
    else:
        refund = ZERO

    return RefundQuote(
        cancel_type=cancel_type,
        actual_paid=quantize(paid),
        daily_rate=quantize(daily_rate),
        days_used=days_used,
        remaining_days=max(0, total_days - days_used),
        refund_amount=min(quantize(refund), quantize(paid)),
    )


def settle(total_days: int, weekly_rate: Decimal, paid: Decimal) -> Settlement:
    """Final amount is charged per started week; outstanding never goes negative."""
    total_days = max(0, total_days)
    weeks = ceil_weeks(total_days)
    final_amount = quantize(Decimal(weeks) * weekly_rate)
    return Settlement(
        total_days=total_days,
        total_weeks=weeks,
        final_amount=final_amount,
        actual_paid=quantize(paid),
        outstanding_amount=max(ZERO, quantize(final_amount - paid)),
    )


def platform_fee(amount: Decimal, rate: Decimal) -> Decimal:
    return quantize(amount * rate)
