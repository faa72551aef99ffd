"""Notification store interface."""

from abc import ABC, abstractmethod
from datetime import datetime

from hrnotify.models.notification import Notification, NotificationStatus


class NotificationStore(ABC):
    """Durable source of truth for notification records.

    Ownership contract: a record is handled by at most one dispatch worker
    at a time. The dispatch queue guarantees this; stores back it up by
    rejecting updates whose ``expected_version`` does not match and any
    update to a SENT or FAILED record.

    Update methods raise ``PersistenceError`` subclasses on failure.
    """

    @abstractmethod
    async def create(self, notification: Notification) -> Notification:
        """Persist a new PENDING notification.

        Args:
            notification: Notification to store (its id is ignored)

        Returns:
            Stored notification with its assigned id
        """

    @abstractmethod
    async def get(self, notification_id: str) -> Notification | None:
        """Get a notification by id, or None if it does not exist."""

    @abstractmethod
    async def mark_sent(
        self,
        notification_id: str,
        sent_at: datetime,
        expected_version: int | None = None,
    ) -> Notification:
        """Record a successful delivery. Terminal."""

    @abstractmethod
    async def mark_failed(
        self,
        notification_id: str,
        retry_count: int,
        error_message: str,
        expected_version: int | None = None,
    ) -> Notification:
        """Record the final failed attempt. Terminal."""

    @abstractmethod
    async def schedule_retry(
        self,
        notification_id: str,
        retry_count: int,
        next_retry_at: datetime,
        error_message: str,
        expected_version: int | None = None,
    ) -> Notification:
        """Record a failed attempt and when to try again. Status stays PENDING."""

    @abstractmethod
    async def query_due_retries(self, now: datetime, limit: int = 100) -> list[Notification]:
        """List PENDING notifications that may be attempted at ``now``.

        A record is due when it still has attempts left and its
        ``next_retry_at`` is unset or not after ``now``. Oldest due first.
        """

    @abstractmethod
    async def list_by_status(
        self,
        status: NotificationStatus,
        limit: int = 100,
    ) -> list[Notification]:
        """List notifications with ``status``, newest first."""
