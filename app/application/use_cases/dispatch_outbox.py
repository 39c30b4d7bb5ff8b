import logging
from datetime import timedelta
from typing import Any, Awaitable, Callable
from uuid import uuid4

from app.api.schemas.workers import DispatchOutboxResponse
from app.application.effects import (
    history_from_payload,
    notification_from_payload,
    transaction_from_payload,
)
from app.application.interfaces.booking_history_repo import BookingHistoryRepo
from app.application.interfaces.clock import Clock
from app.application.interfaces.notification_gateway import NotificationGateway
from app.application.interfaces.outbox_repo import OutboxEvent, OutboxRepo
from app.application.interfaces.refund_gateway import RefundGateway
from app.application.interfaces.transaction_manager import TransactionManager
from app.application.interfaces.transaction_repo import TransactionRepo
from app.domain.entities.outbox_event import EffectType

Handler = Callable[[dict[str, Any]], Awaitable[None]]


class DispatchOutboxUseCase:
    """
    Applies queued booking effects.

    Each event is applied in its own unit of work. Failures are retried with
    exponential backoff (30s, 60s, 120s, ...) and marked FAILED after
    ``max_attempts``.
    """

    def __init__(
        self,
        outbox_repo: OutboxRepo,
        history_repo: BookingHistoryRepo,
        transaction_repo: TransactionRepo,
        notification_gateway: NotificationGateway,
        refund_gateway: RefundGateway,
        transaction_manager: TransactionManager,
        clock: Clock,
        batch_size: int = 50,
        max_attempts: int = 5,
        base_backoff_seconds: int = 30,
        lock_ttl_seconds: int = 60,
    ) -> None:
        self._outbox_repo = outbox_repo
        self._history_repo = history_repo
        self._transaction_repo = transaction_repo
        self._notification_gateway = notification_gateway
        self._refund_gateway = refund_gateway
        self._transaction_manager = transaction_manager
        self._clock = clock
        self._batch_size = batch_size
        self._max_attempts = max_attempts
        self._base_backoff = base_backoff_seconds
        self._lock_ttl = lock_ttl_seconds
        self._logger = logging.getLogger(__name__)
        self._handlers: dict[str, Handler] = {
            EffectType.HISTORY_APPEND.value: self._append_history,
            EffectType.NOTIFICATION_SEND.value: self._send_notification,
            EffectType.LEDGER_RECORD.value: self._record_ledger,
            EffectType.SUBSCRIPTION_CANCEL.value: self._cancel_subscription,
        }

    async def execute(self, worker_id: str | None = None) -> DispatchOutboxResponse:
        worker_id = worker_id or f"worker-{uuid4().hex[:8]}"
        async with self._transaction_manager.start():
            events = await self._outbox_repo.claim_ready(
                limit=self._batch_size,
                locked_by=worker_id,
                now=self._clock.now(),
                lock_ttl_seconds=self._lock_ttl,
            )

        result = DispatchOutboxResponse(worker_id=worker_id)
        for event in events:
            try:
                async with self._transaction_manager.start():
                    await self._apply(event)
                    await self._outbox_repo.mark_done(event.id, self._clock.now())
                result.processed += 1
            except Exception as exc:
                if await self._handle_failure(event, exc):
                    result.failed += 1
                else:
                    result.retried += 1

        if events:
            self._logger.info(
                "Outbox batch dispatched",
                extra={
                    "worker_id": worker_id,
                    "processed": result.processed,
                    "retried": result.retried,
                    "failed": result.failed,
                },
            )
        return result

    async def _apply(self, event: OutboxEvent) -> None:
        handler = self._handlers.get(event.event_type)
        if handler is None:
            raise ValueError(f"No handler for outbox event type {event.event_type}")
        await handler(event.payload)

    async def _handle_failure(self, event: OutboxEvent, exc: Exception) -> bool:
        """Returns True when the event is given up on."""
        attempts = event.attempts + 1
        error_code = type(exc).__name__
        self._logger.error(
            "Outbox event failed",
            exc_info=exc,
            extra={
                "event_id": event.id,
                "event_type": event.event_type,
                "booking_id": event.aggregate_code,
                "attempts": attempts,
            },
        )
        async with self._transaction_manager.start():
            if attempts >= self._max_attempts:
                await self._outbox_repo.mark_failed(
                    event.id, attempts=attempts, error_code=error_code, error_message=str(exc)
                )
                return True
            next_attempt = self._clock.now() + timedelta(
                seconds=self._base_backoff * (2 ** (attempts - 1))
            )
            await self._outbox_repo.mark_retry(
                event.id,
                attempts=attempts,
                next_attempt_at=next_attempt,
                error_code=error_code,
                error_message=str(exc),
            )
        return False

    # === Handlers ===

    async def _append_history(self, payload: dict[str, Any]) -> None:
        await self._history_repo.append(history_from_payload(payload))

    async def _send_notification(self, payload: dict[str, Any]) -> None:
        await self._notification_gateway.send(notification_from_payload(payload))

    async def _record_ledger(self, payload: dict[str, Any]) -> None:
        for item in payload["transactions"]:
            await self._transaction_repo.append(transaction_from_payload(item))

    async def _cancel_subscription(self, payload: dict[str, Any]) -> None:
        await self._refund_gateway.cancel_subscription(payload["subscription_id"])
