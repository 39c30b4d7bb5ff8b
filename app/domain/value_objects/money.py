"""Money value object."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def quantize(amount: Decimal | int | float | str) -> Decimal:
    """Round to two decimals, half up."""
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Money:
    """
    Immutable non-negative amount in a given currency.

    Attributes:
        amount: Decimal amount, stored with two decimals.
        currency_code: ISO 4217 code (GBP by default for bookings).
    """

    amount: Decimal
    currency_code: str = "GBP"

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", quantize(self.amount))

        if len(self.currency_code) != 3:
            raise ValueError(f"currency_code must have 3 characters: {self.currency_code}")

        if self.amount < 0:
            raise ValueError(f"amount cannot be negative: {self.amount}")

    def __str__(self) -> str:
        symbol = "£" if self.currency_code == "GBP" else f"{self.currency_code} "
        return f"{symbol}{self.amount:.2f}"

    def to_cents(self) -> int:
        """Minor units, as Stripe expects them."""
        return int(self.amount * 100)
