import asyncio
import logging
from decimal import Decimal

import stripe

from app.application.interfaces.refund_gateway import RefundGateway, RefundResult
from app.config import get_settings
from app.domain.value_objects.money import Money
from app.infrastructure.circuit_breaker import CircuitBreakerError, stripe_breaker

logger = logging.getLogger(__name__)


class StripeRefundGateway(RefundGateway):
    def __init__(self, api_key: str | None = None) -> None:
        settings = get_settings()
        stripe.api_key = api_key or settings.stripe_api_key
        stripe.max_network_retries = 2

    async def refund(
        self,
        booking_id: str,
        amount: Decimal,
        currency: str,
        customer_id: str | None,
        idempotency_key: str,
    ) -> RefundResult:
        """
        Refund against the customer's most recent PaymentIntent.

        Raises:
            CircuitBreakerError: When circuit is open (too many recent failures)
            stripe.StripeError: When Stripe API call fails
            ValueError: booking has no Stripe customer or no captured payment
        """
        if not customer_id:
            raise ValueError(f"Booking {booking_id} has no Stripe customer")
        try:
            # the stripe SDK is blocking; keep it off the event loop
            return await asyncio.to_thread(
                stripe_breaker.call,
                self._create_refund,
                booking_id,
                amount,
                currency,
                customer_id,
                idempotency_key,
            )
        except CircuitBreakerError as e:
            logger.error(
                "Stripe circuit breaker is open - service unavailable",
                extra={"circuit_state": str(e), "booking_id": booking_id},
            )
            raise
        except stripe.StripeError as e:
            logger.error(
                "Stripe refund failed",
                exc_info=e,
                extra={"booking_id": booking_id, "customer_id": customer_id},
            )
            raise

    @staticmethod
    def _create_refund(
        booking_id: str,
        amount: Decimal,
        currency: str,
        customer_id: str,
        idempotency_key: str,
    ) -> RefundResult:
        intents = stripe.PaymentIntent.list(customer=customer_id, limit=1)
        if not intents.data:
            raise ValueError(f"No Stripe payment found for customer {customer_id}")
        refund = stripe.Refund.create(
            payment_intent=intents.data[0].id,
            amount=Money(amount, currency).to_cents(),
            metadata={"booking_id": booking_id},
            idempotency_key=idempotency_key,
        )
        return RefundResult(
            refund_id=refund.id,
            status=refund.status,
            amount=Decimal(refund.amount) / 100,
        )

    async def cancel_subscription(self, subscription_id: str) -> None:
        await asyncio.to_thread(stripe_breaker.call, stripe.Subscription.cancel, subscription_id)
        logger.info("Stripe subscription cancelled", extra={"subscription_id": subscription_id})
