"""
Standalone notification worker.

Runs only the notification consumer, for deployments that keep it out of the
API process (set RUN_NOTIFICATION_CONSUMER=false on the API then).

    python -m eventbook.worker
"""

import asyncio
import signal

from eventbook.core.config import get_settings
from eventbook.core.context import open_context
from eventbook.core.logging import setup_logging, get_logger


async def run() -> None:
    settings = get_settings()
    logger = get_logger(__name__)
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Signal handlers are unavailable on some platforms (Windows)
            pass

    async with open_context(settings, run_consumer=True) as ctx:
        logger.info("worker_started", group=settings.EVENT_BUS_CONSUMER_GROUP, consumer=settings.EVENT_BUS_CONSUMER_NAME)
        await stop.wait()
        logger.info("worker_stopping")

    logger.info("worker_stopped", notification_consumer=ctx.notifications.running)


def main() -> None:
    setup_logging(role="worker")
    asyncio.run(run())


if __name__ == "__main__":
    main()
