"""Long-running poller that drains the booking effects outbox."""

import asyncio
import logging
from typing import Awaitable, Callable
from uuid import uuid4

from app.api.schemas.workers import DispatchOutboxResponse

logger = logging.getLogger(__name__)

Dispatch = Callable[[str], Awaitable[DispatchOutboxResponse]]


class OutboxWorker:
    """
    Polls the outbox and dispatches ready effects until stopped.

    ``dispatch`` runs one batch for the given worker id and owns its DB session,
    so a failed cycle never poisons the next one.
    """

    def __init__(
        self,
        dispatch: Dispatch,
        worker_id: str | None = None,
        poll_interval_seconds: float = 5.0,
    ) -> None:
        self._dispatch = dispatch
        self._worker_id = worker_id or f"worker-{uuid4().hex[:8]}"
        self._poll_interval = poll_interval_seconds
        self._running = False

    @property
    def worker_id(self) -> str:
        return self._worker_id

    @property
    def is_running(self) -> bool:
        return self._running

    async def run_once(self) -> DispatchOutboxResponse:
        return await self._dispatch(self._worker_id)

    async def start(self) -> None:
        self._running = True
        logger.info("Outbox worker started", extra={"worker_id": self._worker_id})

        while self._running:
            try:
                result = await self.run_once()
                if result.processed + result.retried + result.failed == 0:
                    await asyncio.sleep(self._poll_interval)
            except Exception:
                logger.exception("Outbox worker cycle failed", extra={"worker_id": self._worker_id})
                await asyncio.sleep(self._poll_interval)

    async def stop(self) -> None:
        self._running = False
        logger.info("Outbox worker stopped", extra={"worker_id": self._worker_id})
