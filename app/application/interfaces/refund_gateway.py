from dataclasses import dataclass
from decimal import Decimal


@dataclass
class RefundResult:
    refund_id: str
    status: str
    amount: Decimal


class RefundGateway:
    async def refund(
        self,
        booking_id: str,
        amount: Decimal,
        currency: str,
        customer_id: str | None,
        idempotency_key: str,
    ) -> RefundResult:
        """
        Return money to the driver on the payment rail.

        Raises:
            Exception: any provider failure; the caller maps it to ExternalPaymentError.
        """
        raise NotImplementedError

    async def cancel_subscription(self, subscription_id: str) -> None:
        raise NotImplementedError
