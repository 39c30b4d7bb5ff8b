from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import patch

import pytest
import stripe

from app.infrastructure.circuit_breaker import stripe_breaker
from app.infrastructure.gateways.stripe_refund_gateway import StripeRefundGateway


@pytest.fixture
def gateway():
    return StripeRefundGateway(api_key="sk_test_dummy")


class TestStripeRefundGateway:
    async def test_refunds_latest_payment_intent_in_pence(self, gateway):
        intents = SimpleNamespace(data=[SimpleNamespace(id="pi_123")])
        refund = SimpleNamespace(id="re_456", status="succeeded", amount=8000)

        with patch.object(stripe.PaymentIntent, "list", return_value=intents) as list_mock, \
                patch.object(stripe.Refund, "create", return_value=refund) as create_mock:
            result = await gateway.refund(
                booking_id="booking_1",
                amount=Decimal("80.00"),
                currency="GBP",
                customer_id="cus_1",
                idempotency_key="cancel:booking_1",
            )

        list_mock.assert_called_once_with(customer="cus_1", limit=1)
        create_mock.assert_called_once_with(
            payment_intent="pi_123",
            amount=8000,
            metadata={"booking_id": "booking_1"},
            idempotency_key="cancel:booking_1",
        )
        assert result.refund_id == "re_456"
        assert result.amount == Decimal("80")

    async def test_customer_is_required(self, gateway):
        with pytest.raises(ValueError):
            await gateway.refund(
                booking_id="booking_1",
                amount=Decimal("10"),
                currency="GBP",
                customer_id=None,
                idempotency_key="cancel:booking_1",
            )

    async def test_no_payment_to_refund(self, gateway):
        with patch.object(stripe.PaymentIntent, "list", return_value=SimpleNamespace(data=[])):
            with pytest.raises(ValueError):
                await gateway.refund(
                    booking_id="booking_1",
                    amount=Decimal("10"),
                    currency="GBP",
                    customer_id="cus_1",
                    idempotency_key="cancel:booking_1",
                )

    async def test_stripe_errors_propagate(self, gateway):
        error = stripe.InvalidRequestError("No such customer", param="customer")
        with patch.object(stripe.PaymentIntent, "list", side_effect=error):
            with pytest.raises(stripe.StripeError):
                await gateway.refund(
                    booking_id="booking_1",
                    amount=Decimal("10"),
                    currency="GBP",
                    customer_id="cus_1",
                    idempotency_key="cancel:booking_1",
                )
        assert stripe_breaker.fail_counter == 1

    async def test_cancel_subscription(self, gateway):
        with patch.object(stripe.Subscription, "cancel") as cancel_mock:
            await gateway.cancel_subscription("sub_123")
        cancel_mock.assert_called_once_with("sub_123")
