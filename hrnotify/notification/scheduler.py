"""Retry scheduler that resubmits due notifications."""

import asyncio
from datetime import datetime
from typing import Callable

from hrnotify.core.exceptions import AlreadyQueuedError, DispatchError, NotRunningError
from hrnotify.core.logging import get_logger
from hrnotify.models.dispatch import SweepResult
from hrnotify.models.notification import Notification, utcnow
from hrnotify.notification.queue import DispatchQueue
from hrnotify.observability.metrics import RETRIES_RESUBMITTED, RETRY_SWEEPS
from hrnotify.storage.base import NotificationStore

logger = get_logger(__name__)


class RetryScheduler:
    """Periodic task that moves due PENDING notifications back onto the queue.

    The store is the only input: a notification whose ``next_retry_at`` has
    passed is found again on every sweep until a worker records a new
    outcome, so a failed or skipped resubmission is simply picked up later.
    """

    def __init__(
        self,
        store: NotificationStore,
        submit: Callable[[Notification], None],
        interval_seconds: float = 120.0,
        batch_size: int = 100,
        clock: Callable[[], datetime] = utcnow,
        queue: Callable[[], DispatchQueue] | None = None,
    ):
        """Initialize scheduler.

        Args:
            store: Notification store to query
            submit: Non-blocking enqueue function
            interval_seconds: Delay between sweeps
            batch_size: Maximum notifications resubmitted per sweep
            clock: Returns the current UTC time
            queue: Returns the live dispatch queue, used to pass over
                notifications it already holds
        """
        self._store = store
        self._submit = submit
        self._interval = interval_seconds
        self._batch_size = batch_size
        self._clock = clock
        self._queue = queue

    async def run(self) -> None:
        """Sweep every interval until cancelled."""
        logger.info("Retry scheduler started", interval_seconds=self._interval)
        try:
            while True:
                await asyncio.sleep(self._interval)
                await self.sweep()
        except asyncio.CancelledError:
            logger.info("Retry scheduler stopped")
            raise

    async def sweep(self, now: datetime | None = None) -> SweepResult:
        """Resubmit every notification due at ``now``.

        The store query is widened by the number of notifications the queue
        already holds, so those cannot use up the batch and hide older due
        retries behind them.

        Args:
            now: Reference time (defaults to the clock)

        Returns:
            Counts of due, resubmitted and skipped notifications
        """
        now = now or self._clock()
        queue = self._queue() if self._queue else None
        limit = self._batch_size + (queue.in_flight() if queue else 0)
        try:
            due = await self._store.query_due_retries(now, limit=limit)
        except Exception as e:
            RETRY_SWEEPS.labels(status="error").inc()
            logger.error("Failed to query due notifications", error=str(e))
            return SweepResult()

        result = SweepResult()
        candidates: list[Notification] = []
        for notification in due:
            if queue is not None and queue.owns(str(notification.id)):
                result.found += 1
                result.skipped += 1
            elif len(candidates) < self._batch_size:
                result.found += 1
                candidates.append(notification)

        if not candidates:
            RETRY_SWEEPS.labels(status="empty").inc()
            logger.debug("No notifications due for retry", already_queued=result.skipped)
            return result

        logger.info("Resubmitting due notifications", count=len(candidates))
        for index, notification in enumerate(candidates):
            try:
                self._submit(notification)
            except AlreadyQueuedError:
                result.skipped += 1
                logger.debug("Notification already queued", notification_id=notification.id)
            except NotRunningError:
                result.skipped += len(candidates) - index
                logger.info("Dispatcher stopped during sweep, remaining notifications left for later")
                break
            except DispatchError as e:
                result.skipped += 1
                logger.warning(
                    "Failed to resubmit notification",
                    notification_id=notification.id,
                    error=str(e),
                )
            else:
                result.enqueued += 1
                RETRIES_RESUBMITTED.inc()

        RETRY_SWEEPS.labels(status="ok").inc()
        logger.info(
            "Retry sweep complete",
            found=result.found,
            enqueued=result.enqueued,
            skipped=result.skipped,
        )
        return result
