"""Tests for delivery outcome handling in the notification worker."""

from datetime import timedelta

import pytest

from hrnotify.core.exceptions import PersistenceError, SendError
from hrnotify.models.notification import Notification, NotificationStatus, Recipient
from hrnotify.notification.worker import DeliveryOutcome, NotificationWorker
from hrnotify.storage.memory import InMemoryNotificationStore


class BrokenWriteStore(InMemoryNotificationStore):
    """Store whose outcome writes always fail."""

    async def mark_sent(self, notification_id, sent_at, expected_version=None):
        raise PersistenceError("connection reset")

    async def schedule_retry(self, notification_id, retry_count, next_retry_at, error_message, expected_version=None):
        raise PersistenceError("connection reset")


@pytest.fixture
def worker(store, sender, clock) -> NotificationWorker:
    return NotificationWorker(0, store, sender, clock)


@pytest.mark.asyncio
async def test_success_marks_sent(worker, store, sender, clock, sample_notification) -> None:
    created = await store.create(sample_notification)

    outcome = await worker.process(created)

    stored = await store.get(created.id)
    assert outcome == DeliveryOutcome.SENT
    assert stored.status == NotificationStatus.SENT
    assert stored.sent_at == clock.now
    assert stored.retry_count == 0
    assert sender.sent == [(created.recipient.email, created.subject, created.body)]


@pytest.mark.asyncio
async def test_timestamps_follow_injected_clock(worker, store, sender, clock, sample_notification) -> None:
    created = await store.create(sample_notification)
    assert created.created_at == clock.now

    sender.always_fail = True
    clock.advance(timedelta(seconds=30))
    await worker.process(created)

    retried = await store.get(created.id)
    assert retried.created_at == created.created_at
    assert retried.updated_at == clock.now
    assert retried.next_retry_at == clock.now + timedelta(minutes=5)


@pytest.mark.asyncio
async def test_first_failure_schedules_retry_in_five_minutes(worker, store, sender, clock, sample_notification) -> None:
    sender.always_fail = True
    created = await store.create(sample_notification)

    outcome = await worker.process(created)

    stored = await store.get(created.id)
    assert outcome == DeliveryOutcome.RETRY_SCHEDULED
    assert stored.status == NotificationStatus.PENDING
    assert stored.retry_count == 1
    assert stored.next_retry_at == clock.now + timedelta(minutes=5)
    assert stored.error_message == "Retry 1 of 3: connection refused"
    assert stored.sent_at is None


@pytest.mark.asyncio
async def test_last_failure_marks_failed(worker, store, sender, clock, sample_notification) -> None:
    sender.always_fail = True
    created = await store.create(sample_notification)
    await store.schedule_retry(created.id, 1, clock.now, "Retry 1 of 3: x")
    await store.schedule_retry(created.id, 2, clock.now, "Retry 2 of 3: x")

    outcome = await worker.process(created)

    stored = await store.get(created.id)
    assert outcome == DeliveryOutcome.FAILED
    assert stored.status == NotificationStatus.FAILED
    assert stored.retry_count == 3
    assert stored.next_retry_at is None
    assert stored.error_message == "Failed after 3 retries: connection refused"


@pytest.mark.asyncio
async def test_single_attempt_budget_fails_immediately(worker, store, sender, sample_notification) -> None:
    sender.always_fail = True
    created = await store.create(sample_notification.model_copy(update={"max_retries": 1}))

    assert await worker.process(created) == DeliveryOutcome.FAILED
    assert (await store.get(created.id)).retry_count == 1


@pytest.mark.asyncio
async def test_send_error_message_is_kept(worker, store, sender, sample_notification) -> None:
    async def reject(recipient, subject, body):
        raise SendError("550 mailbox unavailable")

    sender.send = reject
    created = await store.create(sample_notification)

    await worker.process(created)

    stored = await store.get(created.id)
    assert stored.error_message == "Retry 1 of 3: 550 mailbox unavailable"


@pytest.mark.asyncio
async def test_terminal_record_is_skipped(worker, store, sender, clock, sample_notification) -> None:
    created = await store.create(sample_notification)
    await store.mark_sent(created.id, clock.now)

    outcome = await worker.process(created)

    assert outcome == DeliveryOutcome.SKIPPED
    assert sender.attempts == 0


@pytest.mark.asyncio
async def test_record_not_yet_due_is_skipped(worker, store, sender, clock, sample_notification) -> None:
    created = await store.create(sample_notification)
    await store.schedule_retry(created.id, 1, clock.now + timedelta(minutes=5), "Retry 1 of 3: x")

    outcome = await worker.process(created)

    assert outcome == DeliveryOutcome.SKIPPED
    assert sender.attempts == 0
    assert (await store.get(created.id)).retry_count == 1


@pytest.mark.asyncio
async def test_missing_record_is_skipped(worker, sender) -> None:
    ghost = Notification(id="404", recipient=Recipient(email="ghost@example.com"), event_type="LOW_BALANCE")

    assert await worker.process(ghost) == DeliveryOutcome.SKIPPED
    assert sender.attempts == 0


@pytest.mark.asyncio
async def test_persistence_failure_is_logged_not_raised(sender, clock, sample_notification) -> None:
    store = BrokenWriteStore(clock)
    worker = NotificationWorker(0, store, sender, clock)
    created = await store.create(sample_notification)

    assert await worker.process(created) == DeliveryOutcome.SENT

    stored = await store.get(created.id)
    assert stored.status == NotificationStatus.PENDING
    assert sender.attempts == 1
