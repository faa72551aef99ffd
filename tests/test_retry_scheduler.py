"""Tests for the retry scheduler and end-to-end retry flows."""

import asyncio
from datetime import timedelta

import pytest

from hrnotify.core.exceptions import PersistenceError
from hrnotify.models.notification import NotificationStatus
from hrnotify.notification.dispatcher import NotificationDispatcher
from hrnotify.notification.scheduler import RetryScheduler
from hrnotify.storage.memory import InMemoryNotificationStore
from hrnotify.storage.notification_store import RedisNotificationStore


class UnavailableStore(InMemoryNotificationStore):
    async def query_due_retries(self, now, limit=100):
        raise PersistenceError("connection refused")


@pytest.mark.asyncio
async def test_permanent_failure_after_three_attempts(dispatcher, store, sender, clock, sample_notification) -> None:
    sender.always_fail = True
    created = await store.create(sample_notification)
    await dispatcher.start(2)

    dispatcher.enqueue(created)
    await dispatcher.join()

    stored = await store.get(created.id)
    assert stored.status == NotificationStatus.PENDING
    assert stored.retry_count == 1
    assert stored.next_retry_at == clock.now + timedelta(minutes=5)

    clock.advance(timedelta(minutes=5))
    result = await dispatcher.sweep()
    await dispatcher.join()

    assert result.enqueued == 1
    stored = await store.get(created.id)
    assert stored.retry_count == 2
    assert stored.next_retry_at == clock.now + timedelta(minutes=15)

    clock.advance(timedelta(minutes=15))
    await dispatcher.sweep()
    await dispatcher.join()

    stored = await store.get(created.id)
    assert stored.status == NotificationStatus.FAILED
    assert stored.retry_count == 3
    assert stored.next_retry_at is None
    assert stored.error_message.startswith("Failed after 3 retries")
    assert sender.attempts == 3

    clock.advance(timedelta(hours=24))
    assert (await dispatcher.sweep()).found == 0


@pytest.mark.asyncio
async def test_recovers_after_transient_failure(dispatcher, store, sender, clock, sample_notification) -> None:
    sender.failures_remaining = 1
    created = await store.create(sample_notification)
    await dispatcher.start(2)

    dispatcher.enqueue(created)
    await dispatcher.join()

    clock.advance(timedelta(minutes=5))
    await dispatcher.sweep()
    await dispatcher.join()

    stored = await store.get(created.id)
    assert stored.status == NotificationStatus.SENT
    assert stored.retry_count == 1
    assert stored.sent_at == clock.now
    assert len(sender.sent) == 1


@pytest.mark.asyncio
async def test_sweep_before_backoff_elapses_changes_nothing(dispatcher, store, sender, clock, sample_notification) -> None:
    sender.always_fail = True
    created = await store.create(sample_notification)
    await dispatcher.start(1)
    dispatcher.enqueue(created)
    await dispatcher.join()
    before = await store.get(created.id)

    clock.advance(timedelta(minutes=4))
    result = await dispatcher.sweep()
    await dispatcher.join()

    assert result.found == 0
    assert result.enqueued == 0
    assert await store.get(created.id) == before
    assert sender.attempts == 1


@pytest.mark.asyncio
async def test_sweep_picks_up_never_queued_records(dispatcher, store, sender, sample_notification) -> None:
    created = await store.create(sample_notification)
    await dispatcher.start(1)

    result = await dispatcher.sweep()
    await dispatcher.join()

    assert result.enqueued == 1
    assert (await store.get(created.id)).status == NotificationStatus.SENT


@pytest.mark.asyncio
async def test_sweep_skips_records_already_queued(dispatcher, store, sample_notification) -> None:
    created = await store.create(sample_notification)
    await dispatcher.start(1)
    dispatcher.enqueue(created)

    result = await dispatcher.sweep()

    assert result.found == 1
    assert result.enqueued == 0
    assert result.skipped == 1
    await dispatcher.join()


@pytest.mark.asyncio
async def test_sweep_on_stopped_dispatcher_leaves_records(dispatcher, store, sample_notification) -> None:
    first = await store.create(sample_notification)
    second = await store.create(sample_notification)

    result = await dispatcher.sweep()

    assert result.found == 2
    assert result.skipped == 2
    assert result.enqueued == 0
    for record in (first, second):
        assert (await store.get(record.id)).status == NotificationStatus.PENDING


@pytest.mark.asyncio
async def test_sweep_respects_batch_size(store, clock, sample_notification) -> None:
    submitted = []
    scheduler = RetryScheduler(store, submitted.append, batch_size=2, clock=clock)
    for _ in range(5):
        await store.create(sample_notification)

    result = await scheduler.sweep()

    assert result.found == 2
    assert result.enqueued == 2
    assert len(submitted) == 2


@pytest.mark.asyncio
async def test_sweep_survives_store_outage(clock) -> None:
    submitted = []
    scheduler = RetryScheduler(UnavailableStore(), submitted.append, clock=clock)

    result = await scheduler.sweep()

    assert result.found == 0
    assert result.enqueued == 0
    assert submitted == []


@pytest.mark.asyncio
@pytest.mark.parametrize("backend", ["memory", "redis"])
async def test_queued_notifications_do_not_crowd_out_due_retries(
    backend, redis_client, sender, settings, clock, sample_notification
) -> None:
    if backend == "memory":
        store = InMemoryNotificationStore(clock)
    else:
        store = RedisNotificationStore(redis_client, clock=clock)
    dispatcher = NotificationDispatcher(
        store,
        sender,
        settings=settings.model_copy(update={"notification_retry_batch_size": 2}),
        clock=clock,
    )
    sender.gate = asyncio.Event()

    retried = await store.create(sample_notification)
    waiting = [await store.create(sample_notification) for _ in range(3)]
    clock.advance(timedelta(minutes=1))
    await store.schedule_retry(retried.id, 1, clock.now, "Retry 1 of 3: connection refused")
    clock.advance(timedelta(minutes=1))

    await dispatcher.start(1)
    try:
        for notification in waiting:
            dispatcher.enqueue(notification)

        result = await dispatcher.sweep()

        assert result.enqueued == 1
        assert result.skipped == 3
        assert result.found == 4
        assert dispatcher.get_queue_stats().in_flight == 4
    finally:
        sender.gate.set()
        await dispatcher.stop()

    stored = await store.get(retried.id)
    assert stored.status == NotificationStatus.SENT
    assert stored.retry_count == 1
