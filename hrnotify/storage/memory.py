"""In-process notification store."""

import itertools
from datetime import datetime
from typing import Callable

from hrnotify.core.exceptions import NotificationNotFoundError
from hrnotify.models.notification import Notification, NotificationStatus, utcnow
from hrnotify.storage.base import NotificationStore


class InMemoryNotificationStore(NotificationStore):
    """Notification store backed by a dict.

    Every method runs without awaiting, so each call is atomic on the event
    loop. Records are copied in and out so callers never share state with
    the store.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._records: dict[str, Notification] = {}
        self._ids = itertools.count(1)
        self._clock = clock

    async def create(self, notification: Notification) -> Notification:
        now = self._clock()
        record = notification.model_copy(
            update={
                "id": str(next(self._ids)),
                "status": NotificationStatus.PENDING,
                "retry_count": 0,
                "next_retry_at": None,
                "error_message": None,
                "sent_at": None,
                "created_at": now,
                "updated_at": now,
                "version": 0,
            },
            deep=True,
        )
        self._records[record.id] = record
        return record.model_copy(deep=True)

    async def get(self, notification_id: str) -> Notification | None:
        record = self._records.get(notification_id)
        return record.model_copy(deep=True) if record else None

    async def mark_sent(
        self,
        notification_id: str,
        sent_at: datetime,
        expected_version: int | None = None,
    ) -> Notification:
        return self._update(
            notification_id,
            expected_version,
            lambda record: record.with_sent(sent_at),
        )

    async def mark_failed(
        self,
        notification_id: str,
        retry_count: int,
        error_message: str,
        expected_version: int | None = None,
    ) -> Notification:
        return self._update(
            notification_id,
            expected_version,
            lambda record: record.with_failure(retry_count, error_message, self._clock()),
        )

    async def schedule_retry(
        self,
        notification_id: str,
        retry_count: int,
        next_retry_at: datetime,
        error_message: str,
        expected_version: int | None = None,
    ) -> Notification:
        return self._update(
            notification_id,
            expected_version,
            lambda record: record.with_retry(retry_count, next_retry_at, error_message, self._clock()),
        )

    async def query_due_retries(self, now: datetime, limit: int = 100) -> list[Notification]:
        due = [
            record
            for record in self._records.values()
            if record.is_due(now) and record.due_at <= now
        ]
        due.sort(key=lambda record: (record.due_at, int(record.id)))
        return [record.model_copy(deep=True) for record in due[:limit]]

    async def list_by_status(
        self,
        status: NotificationStatus,
        limit: int = 100,
    ) -> list[Notification]:
        matching = [record for record in self._records.values() if record.status == status]
        matching.sort(key=lambda record: (record.created_at, int(record.id)), reverse=True)
        return [record.model_copy(deep=True) for record in matching[:limit]]

    def _update(
        self,
        notification_id: str,
        expected_version: int | None,
        transition: Callable[[Notification], Notification],
    ) -> Notification:
        record = self._records.get(notification_id)
        if record is None:
            raise NotificationNotFoundError(notification_id)
        record.check_writable(expected_version)
        updated = transition(record)
        self._records[notification_id] = updated
        return updated.model_copy(deep=True)
