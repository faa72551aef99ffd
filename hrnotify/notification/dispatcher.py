"""Notification dispatcher: queue, worker pool and retry scheduler lifecycle."""

import asyncio
from datetime import datetime
from typing import Callable

from redis.asyncio import Redis

from hrnotify.core.config import Settings, get_settings
from hrnotify.core.exceptions import (
    AlreadyQueuedError,
    AlreadyRunningError,
    NotRunningError,
    QueueFullError,
)
from hrnotify.core.logging import get_logger
from hrnotify.models.dispatch import QueueStats, SweepResult
from hrnotify.models.notification import Notification, utcnow
from hrnotify.notification.queue import DispatchQueue
from hrnotify.notification.scheduler import RetryScheduler
from hrnotify.notification.senders.base import NotificationSender
from hrnotify.notification.senders.smtp import SmtpSender
from hrnotify.notification.worker import NotificationWorker
from hrnotify.observability.metrics import (
    NOTIFICATION_QUEUE_LENGTH,
    NOTIFICATIONS_ENQUEUED,
    NOTIFICATIONS_REJECTED,
    event_type_label,
)
from hrnotify.storage.base import NotificationStore
from hrnotify.storage.notification_store import RedisNotificationStore

logger = get_logger(__name__)


class NotificationDispatcher:
    """Asynchronous delivery of persisted notifications.

    States are STOPPED and RUNNING. ``start`` spawns the worker tasks and
    the retry scheduler; ``stop`` rejects new submissions, waits until every
    notification already queued has a persisted outcome, then shuts the
    workers down. The store stays the source of truth: anything not queued
    at ``stop`` is found again by the scheduler after the next ``start``.
    """

    def __init__(
        self,
        store: NotificationStore,
        sender: NotificationSender,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize dispatcher.

        Args:
            store: Notification store shared by workers and scheduler
            sender: Delivery transport
            settings: Queue capacity, worker count and retry settings
            clock: Returns the current UTC time
        """
        self._store = store
        self._sender = sender
        self._settings = settings or get_settings()
        self._clock = clock

        self._running = False
        self._lock = asyncio.Lock()
        self._queue = DispatchQueue(self._settings.notification_queue_capacity)
        self._queue.close()
        self._workers: list[asyncio.Task[None]] = []
        self._scheduler_task: asyncio.Task[None] | None = None
        self._scheduler = RetryScheduler(
            store,
            self.enqueue,
            interval_seconds=self._settings.notification_retry_interval_seconds,
            batch_size=self._settings.notification_retry_batch_size,
            clock=clock,
            queue=lambda: self._queue,
        )

    @property
    def store(self) -> NotificationStore:
        return self._store

    async def start(self, num_workers: int | None = None) -> None:
        """Start the worker pool and retry scheduler.

        Args:
            num_workers: Worker count (defaults to ``notification_workers``)

        Raises:
            AlreadyRunningError: Dispatcher is already running
            ValueError: ``num_workers`` is less than 1
        """
        if num_workers is None:
            num_workers = self._settings.notification_workers
        if num_workers < 1:
            raise ValueError("num_workers must be at least 1")

        async with self._lock:
            if self._running:
                raise AlreadyRunningError()

            self._queue = DispatchQueue(self._settings.notification_queue_capacity)
            self._workers = [
                asyncio.create_task(
                    NotificationWorker(i, self._store, self._sender, self._clock).run(self._queue),
                    name=f"notification-worker-{i}",
                )
                for i in range(num_workers)
            ]
            self._scheduler_task = asyncio.create_task(
                self._scheduler.run(),
                name="notification-retry-scheduler",
            )
            self._running = True

        logger.info(
            "Notification dispatcher started",
            workers=num_workers,
            capacity=self._queue.capacity,
        )

    async def stop(self) -> None:
        """Stop accepting notifications and drain the queue.

        Returns once every notification queued before the call has been
        attempted and its outcome persisted.

        Raises:
            NotRunningError: Dispatcher is already stopped
        """
        async with self._lock:
            if not self._running:
                raise NotRunningError()

            self._running = False
            self._queue.close()
            logger.info("Stopping notification dispatcher", queued=self._queue.qsize())

            if self._scheduler_task is not None:
                self._scheduler_task.cancel()
                await asyncio.gather(self._scheduler_task, return_exceptions=True)
                self._scheduler_task = None

            await self._queue.join()

            for task in self._workers:
                task.cancel()
            await asyncio.gather(*self._workers, return_exceptions=True)
            self._workers = []
            NOTIFICATION_QUEUE_LENGTH.set(0)

        logger.info("Notification dispatcher stopped")

    def is_running(self) -> bool:
        return self._running

    def enqueue(self, notification: Notification) -> None:
        """Hand a persisted notification to the worker pool without waiting.

        Args:
            notification: Notification already created in the store

        Raises:
            NotRunningError: Dispatcher is stopped
            AlreadyQueuedError: Notification is already queued or being processed
            QueueFullError: Queue is at capacity
        """
        if not self._running:
            NOTIFICATIONS_REJECTED.labels(reason="not_running").inc()
            raise NotRunningError()

        try:
            self._queue.put(notification)
        except QueueFullError:
            NOTIFICATIONS_REJECTED.labels(reason="queue_full").inc()
            logger.warning(
                "Dispatch queue full",
                notification_id=notification.id,
                capacity=self._queue.capacity,
            )
            raise
        except AlreadyQueuedError:
            NOTIFICATIONS_REJECTED.labels(reason="already_queued").inc()
            raise

        NOTIFICATIONS_ENQUEUED.labels(event_type=event_type_label(notification.event_type)).inc()
        NOTIFICATION_QUEUE_LENGTH.set(self._queue.qsize())
        logger.debug(
            "Notification queued",
            notification_id=notification.id,
            event_type=notification.event_type,
            depth=self._queue.qsize(),
        )

    async def join(self) -> None:
        """Wait until every queued notification has been processed."""
        await self._queue.join()

    async def sweep(self, now: datetime | None = None) -> SweepResult:
        """Run one retry scheduler pass immediately."""
        return await self._scheduler.sweep(now)

    def get_queue_stats(self) -> QueueStats:
        return QueueStats(
            running=self._running,
            queued=self._queue.qsize(),
            capacity=self._queue.capacity,
            in_flight=self._queue.in_flight(),
            workers=len(self._workers),
        )


def create_dispatcher(
    redis: Redis,
    settings: Settings | None = None,
) -> NotificationDispatcher:
    """Build a dispatcher backed by Redis and SMTP.

    Args:
        redis: Redis client for the notification store
        settings: Application settings

    Returns:
        Dispatcher instance (not yet started)
    """
    settings = settings or get_settings()
    return NotificationDispatcher(
        store=RedisNotificationStore(redis),
        sender=SmtpSender(settings),
        settings=settings,
    )
