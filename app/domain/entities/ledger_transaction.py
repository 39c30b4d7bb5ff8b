"""LedgerTransaction entity - immutable record of a completed money movement."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


@dataclass(frozen=True)
class LedgerTransaction:
    """
    Append-only ledger row. Refunds carry a negative amount.

    Rows are never updated; corrections are new rows.
    """

    booking_id: str
    partner_id: str | None
    driver_id: str | None
    type: TransactionType
    category: str
    amount: Decimal
    source: str
    description: str = ""
    status: str = "completed"
    net_amount: Decimal | None = None
    fees: dict[str, Any] = field(default_factory=dict)
    reference: str | None = None
    id: int | None = None
    created_at: datetime | None = None

    @classmethod
    def matched_pair(
        cls,
        booking_id: str,
        partner_id: str,
        driver_id: str,
        amount: Decimal,
        income_category: str,
        expense_category: str,
        income_source: str,
        expense_source: str,
        description: str,
        reference: str | None = None,
    ) -> tuple["LedgerTransaction", "LedgerTransaction"]:
        """Partner income and driver expense for the same movement."""
        income = cls(
            booking_id=booking_id,
            partner_id=partner_id,
            driver_id=None,
            type=TransactionType.INCOME,
            category=income_category,
            amount=amount,
            net_amount=amount,
            source=income_source,
            description=description,
            reference=reference,
        )
        expense = cls(
            booking_id=booking_id,
            partner_id=None,
            driver_id=driver_id,
            type=TransactionType.EXPENSE,
            category=expense_category,
            amount=amount,
            net_amount=amount,
            source=expense_source,
            description=description,
            reference=reference,
        )
        return income, expense
