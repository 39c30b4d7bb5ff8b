"""Runs the outbox worker until interrupted (SIGINT/SIGTERM)."""

import asyncio
import logging
import signal
import sys
from pathlib import Path

# Add project root to sys.path
project_root = Path(__file__).resolve().parent.parent
sys.path.append(str(project_root))

from app.api.dependencies import dispatch_pending_effects  # noqa: E402
from app.config import get_settings  # noqa: E402
from app.infrastructure.messaging.outbox_worker import OutboxWorker  # noqa: E402


async def main():
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    worker = OutboxWorker(dispatch_pending_effects)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda: asyncio.ensure_future(worker.stop()))

    await worker.start()

if __name__ == "__main__":
    asyncio.run(main())
