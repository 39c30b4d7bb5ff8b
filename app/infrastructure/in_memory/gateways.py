"""Stub gateways for local runs and tests."""

from dataclasses import replace
from decimal import Decimal
from uuid import uuid4

from app.application.interfaces.notification_gateway import NotificationGateway
from app.application.interfaces.refund_gateway import RefundGateway, RefundResult
from app.domain.entities.notification import Notification


class InMemoryNotificationGateway(NotificationGateway):
    def __init__(self) -> None:
        self.sent: list[Notification] = []
        self.fail_with: Exception | None = None

    async def send(self, notification: Notification) -> Notification:
        if self.fail_with is not None:
            raise self.fail_with
        stored = replace(notification, id=len(self.sent) + 1)
        self.sent.append(stored)
        return stored

    def for_recipient(self, recipient_id: str | None) -> list[Notification]:
        return [n for n in self.sent if n.recipient_id == recipient_id]


class StubRefundGateway(RefundGateway):
    def __init__(self) -> None:
        self.refunds: dict[str, RefundResult] = {}
        self.cancelled_subscriptions: list[str] = []
        self.fail_with: Exception | None = None

    async def refund(
        self,
        booking_id: str,
        amount: Decimal,
        currency: str,
        customer_id: str | None,
        idempotency_key: str,
    ) -> RefundResult:
        if self.fail_with is not None:
            raise self.fail_with
        # Same key returns the first result, as the provider does
        if idempotency_key in self.refunds:
            return self.refunds[idempotency_key]
        result = RefundResult(refund_id=f"re_{uuid4().hex[:14]}", status="succeeded", amount=amount)
        self.refunds[idempotency_key] = result
        return result

    async def cancel_subscription(self, subscription_id: str) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.cancelled_subscriptions.append(subscription_id)
