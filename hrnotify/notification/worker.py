"""Delivery worker for processing the dispatch queue."""

import asyncio
import time
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable

from hrnotify.core.exceptions import PersistenceError, SendError
from hrnotify.core.logging import get_logger
from hrnotify.models.notification import Notification, retry_delay, utcnow
from hrnotify.notification.queue import DispatchQueue
from hrnotify.notification.senders.base import NotificationSender
from hrnotify.observability.metrics import (
    DELIVERY_ATTEMPTS,
    DELIVERY_LATENCY,
    NOTIFICATION_QUEUE_LENGTH,
    PERSISTENCE_FAILURES,
)
from hrnotify.observability.tracing import DeliveryTrace
from hrnotify.storage.base import NotificationStore

logger = get_logger(__name__)


class DeliveryOutcome(str, Enum):
    """Result of processing one dequeued notification."""

    SENT = "sent"
    RETRY_SCHEDULED = "retry_scheduled"
    FAILED = "failed"
    SKIPPED = "skipped"


class NotificationWorker:
    """Worker that attempts delivery of queued notifications.

    Each attempt re-reads the record from the store, calls the sender once
    and persists the outcome:

    - success: SENT (terminal)
    - failure with attempts left: PENDING with ``next_retry_at`` from the backoff table
    - failure on the last attempt: FAILED (terminal)
    """

    def __init__(
        self,
        worker_id: int,
        store: NotificationStore,
        sender: NotificationSender,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize worker.

        Args:
            worker_id: Index used in log lines
            store: Notification store
            sender: Delivery transport
            clock: Returns the current UTC time
        """
        self._worker_id = worker_id
        self._store = store
        self._sender = sender
        self._clock = clock

    async def run(self, queue: DispatchQueue) -> None:
        """Process notifications until cancelled.

        The dispatcher cancels workers only after the queue has been drained,
        so cancellation always lands while waiting on ``queue.get``.
        """
        logger.info("Notification worker started", worker_id=self._worker_id)
        try:
            while True:
                notification = await queue.get()
                NOTIFICATION_QUEUE_LENGTH.set(queue.qsize())
                try:
                    await self.process(notification)
                except Exception as e:
                    logger.error(
                        "Worker error",
                        worker_id=self._worker_id,
                        notification_id=notification.id,
                        error=str(e),
                        exc_info=True,
                    )
                finally:
                    queue.task_done(notification)
        except asyncio.CancelledError:
            logger.info("Notification worker stopped", worker_id=self._worker_id)
            raise

    async def process(self, notification: Notification) -> DeliveryOutcome:
        """Attempt delivery of a single notification and persist the outcome.

        Args:
            notification: Dequeued notification (only its id is trusted)

        Returns:
            What happened to the notification

        Raises:
            PersistenceError: The store could not be read
        """
        with DeliveryTrace(notification.id):
            current = await self._store.get(str(notification.id))
            now = self._clock()
            if current is None:
                logger.warning("Notification no longer exists, skipping")
                return self._record(DeliveryOutcome.SKIPPED)
            if not current.is_due(now):
                logger.info(
                    "Notification not due, skipping",
                    status=current.status.value,
                    next_retry_at=current.next_retry_at,
                )
                return self._record(DeliveryOutcome.SKIPPED)

            logger.debug(
                "Processing notification",
                worker_id=self._worker_id,
                event_type=current.event_type,
                attempt=current.retry_count + 1,
                max_retries=current.max_retries,
            )

            error: SendError | None = None
            started = time.perf_counter()
            try:
                await self._sender.send(current.recipient, current.subject, current.body)
            except Exception as e:
                error = SendError.wrap(e)
            DELIVERY_LATENCY.observe(time.perf_counter() - started)

            if error is not None:
                return await self._handle_failure(current, error)
            return await self._handle_success(current)

    async def _handle_success(self, notification: Notification) -> DeliveryOutcome:
        sent_at = self._clock()
        await self._persist(
            "mark_sent",
            self._store.mark_sent(
                str(notification.id),
                sent_at,
                expected_version=notification.version,
            ),
        )
        logger.info("Notification sent", recipient=notification.recipient.email)
        return self._record(DeliveryOutcome.SENT)

    async def _handle_failure(self, notification: Notification, error: SendError) -> DeliveryOutcome:
        retry_count = notification.retry_count + 1

        if retry_count >= notification.max_retries:
            error_message = f"Failed after {retry_count} retries: {error}"
            await self._persist(
                "mark_failed",
                self._store.mark_failed(
                    str(notification.id),
                    retry_count,
                    error_message,
                    expected_version=notification.version,
                ),
            )
            logger.error(
                "Notification failed permanently",
                retry_count=retry_count,
                error=str(error),
            )
            return self._record(DeliveryOutcome.FAILED)

        next_retry_at = self._clock() + retry_delay(retry_count)
        error_message = f"Retry {retry_count} of {notification.max_retries}: {error}"
        await self._persist(
            "schedule_retry",
            self._store.schedule_retry(
                str(notification.id),
                retry_count,
                next_retry_at,
                error_message,
                expected_version=notification.version,
            ),
        )
        logger.warning(
            "Notification delivery failed, retry scheduled",
            retry_count=retry_count,
            max_retries=notification.max_retries,
            next_retry_at=next_retry_at.isoformat(),
            error=str(error),
        )
        return self._record(DeliveryOutcome.RETRY_SCHEDULED)

    async def _persist(self, operation: str, update: Awaitable[Notification]) -> None:
        """Await a store update, logging instead of raising on failure.

        A lost update leaves the record PENDING, so the retry scheduler may
        attempt it again later.
        """
        try:
            await update
        except PersistenceError as e:
            PERSISTENCE_FAILURES.labels(operation=operation).inc()
            logger.error(
                "Failed to persist delivery outcome",
                operation=operation,
                error=str(e),
            )

    @staticmethod
    def _record(outcome: DeliveryOutcome) -> DeliveryOutcome:
        DELIVERY_ATTEMPTS.labels(outcome=outcome.value).inc()
        return outcome
