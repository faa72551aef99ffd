"""Notification domain models."""

from datetime import datetime, timedelta, timezone
from enum import Enum

from pydantic import BaseModel, Field

from hrnotify.core.exceptions import (
    InvalidTransitionError,
    StaleRecordError,
    TerminalStateError,
)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class NotificationStatus(str, Enum):
    """Notification delivery status."""

    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


TERMINAL_STATUSES = frozenset({NotificationStatus.SENT, NotificationStatus.FAILED})


class EventType(str, Enum):
    """Business events that produce notifications."""

    LEAVE_APPLIED = "LEAVE_APPLIED"
    LEAVE_APPROVED = "LEAVE_APPROVED"
    LEAVE_REJECTED = "LEAVE_REJECTED"
    LEAVE_CANCELLED = "LEAVE_CANCELLED"
    LOW_BALANCE = "LOW_BALANCE"
    APPROVAL_REMINDER = "APPROVAL_REMINDER"


# Wait before the next attempt, indexed by retry_count after the failure.
# Counts past the end of the table reuse the last entry.
BACKOFF_SCHEDULE: tuple[timedelta, ...] = (
    timedelta(minutes=5),
    timedelta(minutes=15),
    timedelta(hours=1),
    timedelta(hours=24),
)


def retry_delay(retry_count: int) -> timedelta:
    """Backoff to wait after the ``retry_count``-th failed attempt."""
    if retry_count < 1:
        raise ValueError("retry_count must be at least 1")
    index = min(retry_count, len(BACKOFF_SCHEDULE)) - 1
    return BACKOFF_SCHEDULE[index]


class Recipient(BaseModel):
    """Message recipient."""

    email: str = Field(..., min_length=3, description="Recipient email address")
    name: str = Field(default="", description="Recipient display name")


class Notification(BaseModel):
    """A transactional message and its delivery state.

    Records are created PENDING by producers and only ever changed through
    the ``with_*`` transitions, which refuse to touch a terminal record and
    bump ``version`` on every change.
    """

    id: str | None = Field(default=None, description="Store-assigned identifier")
    recipient: Recipient
    event_type: str = Field(..., min_length=1, description="Producer-defined event tag")
    subject: str = Field(default="", description="Rendered subject line")
    body: str = Field(default="", description="Rendered message body")
    template_name: str = Field(default="", description="Template used to render the message")
    leave_request_id: int | None = Field(default=None, description="Related leave request")
    status: NotificationStatus = NotificationStatus.PENDING
    retry_count: int = Field(default=0, ge=0)
    max_retries: int = Field(default=3, ge=1)
    next_retry_at: datetime | None = None
    error_message: str | None = None
    sent_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    version: int = Field(default=0, ge=0, description="Optimistic concurrency counter")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def due_at(self) -> datetime:
        """When the next attempt may run: ``next_retry_at``, else creation time."""
        return self.next_retry_at or self.created_at

    def is_due(self, now: datetime) -> bool:
        """Whether a PENDING record may be attempted at ``now``."""
        if self.status != NotificationStatus.PENDING:
            return False
        if self.retry_count >= self.max_retries:
            return False
        return self.next_retry_at is None or self.next_retry_at <= now

    def check_writable(self, expected_version: int | None = None) -> None:
        """Raise unless the record may still be updated.

        Args:
            expected_version: Version the caller read, or None to skip the check

        Raises:
            TerminalStateError: Record is SENT or FAILED
            StaleRecordError: Record version differs from ``expected_version``
        """
        if self.is_terminal:
            raise TerminalStateError(str(self.id), self.status.value)
        if expected_version is not None and expected_version != self.version:
            raise StaleRecordError(str(self.id), expected_version, self.version)

    def with_sent(self, sent_at: datetime) -> "Notification":
        return self.model_copy(
            update={
                "status": NotificationStatus.SENT,
                "sent_at": sent_at,
                "next_retry_at": None,
                "updated_at": sent_at,
                "version": self.version + 1,
            }
        )

    def with_retry(
        self,
        retry_count: int,
        next_retry_at: datetime,
        error_message: str,
        updated_at: datetime,
    ) -> "Notification":
        self._check_retry_count(retry_count)
        if retry_count >= self.max_retries:
            raise InvalidTransitionError(
                f"Notification {self.id} exhausted {self.max_retries} retries; mark it FAILED"
            )
        return self.model_copy(
            update={
                "retry_count": retry_count,
                "next_retry_at": next_retry_at,
                "error_message": error_message,
                "updated_at": updated_at,
                "version": self.version + 1,
            }
        )

    def with_failure(
        self,
        retry_count: int,
        error_message: str,
        updated_at: datetime,
    ) -> "Notification":
        self._check_retry_count(retry_count)
        if retry_count != self.max_retries:
            raise InvalidTransitionError(
                f"Notification {self.id} can only fail after {self.max_retries} attempts, "
                f"got {retry_count}"
            )
        return self.model_copy(
            update={
                "status": NotificationStatus.FAILED,
                "retry_count": retry_count,
                "next_retry_at": None,
                "error_message": error_message,
                "updated_at": updated_at,
                "version": self.version + 1,
            }
        )

    def _check_retry_count(self, retry_count: int) -> None:
        if retry_count < self.retry_count:
            raise InvalidTransitionError(
                f"retry_count for notification {self.id} cannot decrease "
                f"({self.retry_count} -> {retry_count})"
            )
        if retry_count > self.max_retries:
            raise InvalidTransitionError(
                f"retry_count {retry_count} exceeds max_retries {self.max_retries}"
            )
