"""Worker process entry point for notification delivery."""

import asyncio
import signal

from hrnotify.core.config import get_settings
from hrnotify.core.logging import get_logger, setup_logging
from hrnotify.notification.dispatcher import NotificationDispatcher, create_dispatcher
from hrnotify.storage.redis_client import (
    close_redis_pool,
    get_redis,
    init_redis_pool,
)

logger = get_logger(__name__)


class WorkerManager:
    """Runs the notification dispatcher until a shutdown signal arrives."""

    def __init__(self):
        """Initialize worker manager."""
        self._settings = get_settings()
        self._dispatcher: NotificationDispatcher | None = None
        self._shutdown_event = asyncio.Event()

    async def start(self) -> None:
        """Start the dispatcher and block until ``stop`` is called."""
        setup_logging()
        logger.info("Starting worker manager")

        await init_redis_pool()
        self._dispatcher = create_dispatcher(get_redis(), self._settings)

        try:
            await self._dispatcher.start(self._settings.notification_workers)
            await self._shutdown_event.wait()
        finally:
            await self._cleanup()

    async def stop(self) -> None:
        """Signal the manager to shut down."""
        logger.info("Stopping workers")
        self._shutdown_event.set()

    async def _cleanup(self) -> None:
        """Drain the dispatcher and release resources."""
        logger.info("Cleaning up resources")
        if self._dispatcher and self._dispatcher.is_running():
            await self._dispatcher.stop()
        await close_redis_pool()
        logger.info("Cleanup complete")


async def main() -> None:
    """Main entry point for worker process."""
    manager = WorkerManager()

    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        asyncio.create_task(manager.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    await manager.start()


if __name__ == "__main__":
    asyncio.run(main())
