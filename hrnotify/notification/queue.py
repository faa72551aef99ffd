"""Bounded in-memory dispatch queue."""

import asyncio

from hrnotify.core.exceptions import AlreadyQueuedError, NotRunningError, QueueFullError
from hrnotify.models.notification import Notification


class DispatchQueue:
    """Bounded buffer between producers and delivery workers.

    ``put`` never waits: a full buffer is reported with ``QueueFullError``.
    The queue remembers which notification ids it owns, from ``put`` until
    the worker calls ``task_done``, and refuses a second ``put`` for an id it
    already owns so two workers never handle the same record.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._queue: asyncio.Queue[Notification] = asyncio.Queue(maxsize=capacity)
        self._owned: set[str] = set()
        self._closed = False

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        """Notifications waiting for a worker."""
        return self._queue.qsize()

    def in_flight(self) -> int:
        """Notifications waiting or being processed."""
        return len(self._owned)

    def owns(self, notification_id: str) -> bool:
        return notification_id in self._owned

    def put(self, notification: Notification) -> None:
        """Add a persisted notification without waiting.

        Raises:
            ValueError: Notification has no id yet
            NotRunningError: Queue has been closed
            AlreadyQueuedError: Notification is already owned by the queue
            QueueFullError: Queue is at capacity
        """
        if notification.id is None:
            raise ValueError("Notification must be persisted before it is queued")
        if self._closed:
            raise NotRunningError("Dispatch queue is closed")
        if notification.id in self._owned:
            raise AlreadyQueuedError(notification.id)
        try:
            self._queue.put_nowait(notification)
        except asyncio.QueueFull:
            raise QueueFullError(self._capacity) from None
        self._owned.add(notification.id)

    async def get(self) -> Notification:
        """Wait for the next notification."""
        return await self._queue.get()

    def task_done(self, notification: Notification) -> None:
        """Release ownership of a notification returned by ``get``."""
        self._owned.discard(str(notification.id))
        self._queue.task_done()

    def close(self) -> None:
        """Refuse further ``put`` calls. Items already queued stay queued."""
        self._closed = True

    async def join(self) -> None:
        """Wait until every queued notification has been marked done."""
        await self._queue.join()
