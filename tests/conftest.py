"""Pytest configuration and fixtures."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator

import fakeredis
import pytest
import pytest_asyncio

from hrnotify.core.config import Settings
from hrnotify.models.notification import Notification, Recipient
from hrnotify.notification.dispatcher import NotificationDispatcher
from hrnotify.notification.senders.base import NotificationSender
from hrnotify.storage.memory import InMemoryNotificationStore


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


class FakeSender(NotificationSender):
    """Sender that records deliveries and fails on demand."""

    def __init__(self):
        self.sent: list[tuple[str, str, str]] = []
        self.attempts = 0
        self.failures_remaining = 0
        self.always_fail = False
        self.fail_for: set[str] = set()
        self.delay = 0.0
        self.gate: asyncio.Event | None = None
        self.active = 0
        self.max_active = 0

    @property
    def channel_type(self) -> str:
        return "fake"

    async def send(self, recipient: Recipient, subject: str, body: str) -> None:
        self.attempts += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.always_fail or recipient.email in self.fail_for:
                raise ConnectionError("connection refused")
            if self.failures_remaining > 0:
                self.failures_remaining -= 1
                raise ConnectionError("connection refused")
            self.sent.append((recipient.email, subject, body))
        finally:
            self.active -= 1


@pytest.fixture
def clock() -> FakeClock:
    """Clock fixed at a Monday morning."""
    return FakeClock(datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def sender() -> FakeSender:
    return FakeSender()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryNotificationStore:
    return InMemoryNotificationStore(clock)


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        notification_queue_capacity=1000,
        notification_workers=2,
        notification_retry_interval_seconds=120,
        notification_retry_batch_size=100,
        notification_max_retries=3,
    )


@pytest_asyncio.fixture
async def dispatcher(
    store: InMemoryNotificationStore,
    sender: FakeSender,
    settings: Settings,
    clock: FakeClock,
) -> AsyncIterator[NotificationDispatcher]:
    dispatcher = NotificationDispatcher(store, sender, settings=settings, clock=clock)
    yield dispatcher
    if dispatcher.is_running():
        await dispatcher.stop()


@pytest_asyncio.fixture
async def redis_client() -> AsyncIterator[fakeredis.FakeAsyncRedis]:
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def sample_notification() -> Notification:
    """Leave-applied notification as a producer would build it."""
    return Notification(
        recipient=Recipient(email="priya.sharma@example.com", name="Priya Sharma"),
        event_type="LEAVE_APPLIED",
        subject="Leave Request Submitted - Pending Approval",
        body="Hello Priya Sharma,\n\nYour leave request has been submitted.",
        template_name="leave_applied_employee",
        leave_request_id=42,
        max_retries=3,
    )
