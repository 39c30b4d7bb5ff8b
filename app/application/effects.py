"""Post-commit booking effects.

A use case commits its primary transition first and then hands the resulting
history rows, notifications and ledger entries to ``EffectPublisher``, which
writes them to the outbox. ``DispatchOutboxUseCase`` applies them later.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from app.application.interfaces.clock import Clock
from app.application.interfaces.outbox_repo import OutboxRepo
from app.application.interfaces.transaction_manager import TransactionManager
from app.domain.entities.booking_history import BookingHistoryEntry
from app.domain.entities.ledger_transaction import LedgerTransaction, TransactionType
from app.domain.entities.notification import Notification, NotificationPriority, RecipientType
from app.domain.entities.outbox_event import AGGREGATE_BOOKING, EffectType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Effect:
    event_type: EffectType
    payload: dict[str, Any]
    label: str


# === Builders ===


def history(
    booking_id: str,
    action: str,
    performed_by: str,
    performed_by_type: str,
    description: str,
    details: dict[str, Any] | None = None,
) -> Effect:
    entry = BookingHistoryEntry(
        booking_id=booking_id,
        action=action,
        performed_by=performed_by,
        performed_by_type=performed_by_type,
        description=description,
        details=details or {},
    )
    return Effect(EffectType.HISTORY_APPEND, history_to_payload(entry), label=f"history:{action}")


def notify(
    label: str,
    recipient_type: RecipientType,
    recipient_id: str | None,
    type: str,
    title: str,
    message: str,
    priority: NotificationPriority = NotificationPriority.MEDIUM,
    data: dict[str, Any] | None = None,
) -> Effect:
    notification = Notification(
        type=type,
        recipient_type=recipient_type,
        recipient_id=recipient_id,
        title=title,
        message=message,
        priority=priority,
        data=data or {},
    )
    return Effect(EffectType.NOTIFICATION_SEND, notification_to_payload(notification), label=label)


def ledger(label: str, *transactions: LedgerTransaction) -> Effect:
    """One outbox event per money movement so a matched pair is applied together."""
    return Effect(
        EffectType.LEDGER_RECORD,
        {"transactions": [transaction_to_payload(t) for t in transactions]},
        label=label,
    )


def cancel_subscription(subscription_id: str) -> Effect:
    return Effect(
        EffectType.SUBSCRIPTION_CANCEL,
        {"subscription_id": subscription_id},
        label="subscription_cancel",
    )


# === Payload codecs ===


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if hasattr(value, "value"):
        return value.value
    return value


def history_to_payload(entry: BookingHistoryEntry) -> dict[str, Any]:
    return {
        "booking_id": entry.booking_id,
        "action": entry.action,
        "performed_by": entry.performed_by,
        "performed_by_type": entry.performed_by_type,
        "description": entry.description,
        "details": _jsonable(entry.details),
    }


def history_from_payload(payload: dict[str, Any]) -> BookingHistoryEntry:
    return BookingHistoryEntry(
        booking_id=payload["booking_id"],
        action=payload["action"],
        performed_by=payload["performed_by"],
        performed_by_type=payload["performed_by_type"],
        description=payload["description"],
        details=payload.get("details") or {},
    )


def notification_to_payload(notification: Notification) -> dict[str, Any]:
    return {
        "type": notification.type,
        "recipient_type": notification.recipient_type.value,
        "recipient_id": notification.recipient_id,
        "title": notification.title,
        "message": notification.message,
        "priority": notification.priority.value,
        "data": _jsonable(notification.data),
    }


def notification_from_payload(payload: dict[str, Any]) -> Notification:
    return Notification(
        type=payload["type"],
        recipient_type=RecipientType(payload["recipient_type"]),
        recipient_id=payload.get("recipient_id"),
        title=payload["title"],
        message=payload["message"],
        priority=NotificationPriority(payload.get("priority", "medium")),
        data=payload.get("data") or {},
    )


def transaction_to_payload(transaction: LedgerTransaction) -> dict[str, Any]:
    return {
        "booking_id": transaction.booking_id,
        "partner_id": transaction.partner_id,
        "driver_id": transaction.driver_id,
        "type": transaction.type.value,
        "category": transaction.category,
        "amount": str(transaction.amount),
        "net_amount": str(transaction.net_amount) if transaction.net_amount is not None else None,
        "fees": _jsonable(transaction.fees),
        "status": transaction.status,
        "source": transaction.source,
        "description": transaction.description,
        "reference": transaction.reference,
    }


def transaction_from_payload(payload: dict[str, Any]) -> LedgerTransaction:
    net = payload.get("net_amount")
    return LedgerTransaction(
        booking_id=payload["booking_id"],
        partner_id=payload.get("partner_id"),
        driver_id=payload.get("driver_id"),
        type=TransactionType(payload["type"]),
        category=payload["category"],
        amount=Decimal(payload["amount"]),
        net_amount=Decimal(net) if net is not None else None,
        fees=payload.get("fees") or {},
        status=payload.get("status", "completed"),
        source=payload["source"],
        description=payload.get("description", ""),
        reference=payload.get("reference"),
    )


# === Publisher ===


class EffectPublisher:
    """
    Writes effects to the outbox after the primary transition committed.

    Each effect is enqueued in its own unit of work. A failure is logged and
    skipped: the booking transition that produced it stands.
    """

    def __init__(
        self,
        outbox_repo: OutboxRepo,
        transaction_manager: TransactionManager,
        clock: Clock,
    ) -> None:
        self._outbox_repo = outbox_repo
        self._transaction_manager = transaction_manager
        self._clock = clock

    async def publish(self, booking_id: str, effects: list[Effect]) -> list[str]:
        """
        Returns:
            Labels of the effects that were enqueued.
        """
        published: list[str] = []
        for effect in effects:
            try:
                async with self._transaction_manager.start():
                    await self._outbox_repo.enqueue(
                        event_type=effect.event_type.value,
                        aggregate_type=AGGREGATE_BOOKING,
                        aggregate_code=booking_id,
                        payload=effect.payload,
                        now=self._clock.now(),
                    )
            except Exception:
                logger.error(
                    "Failed to enqueue booking effect",
                    exc_info=True,
                    extra={
                        "booking_id": booking_id,
                        "event_type": effect.event_type.value,
                        "label": effect.label,
                    },
                )
                continue
            published.append(effect.label)
        return published
