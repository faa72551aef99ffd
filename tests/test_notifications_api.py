"""Tests for the notification operator API."""

import asyncio

import pytest
from fastapi.testclient import TestClient

import hrnotify.api.app as app_module
from hrnotify.api.app import create_app
from hrnotify.models.notification import NotificationStatus
from hrnotify.notification.dispatcher import NotificationDispatcher


@pytest.fixture
def client(monkeypatch, store, sender, settings, clock) -> TestClient:
    """Client for an app whose dispatcher is stopped and backed by memory."""

    async def _noop() -> None:
        return None

    monkeypatch.setattr(app_module, "init_redis_pool", _noop)
    monkeypatch.setattr(app_module, "close_redis_pool", _noop)

    app = create_app()
    app.state.dispatcher = NotificationDispatcher(store, sender, settings=settings, clock=clock)
    return TestClient(app)


def test_health_reports_dispatcher_state(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["dispatcher_running"] is False


def test_queue_stats(client) -> None:
    response = client.get("/api/v1/notifications/queue/stats")

    assert response.status_code == 200
    payload = response.json()
    assert payload["code"] == 0
    assert payload["data"] == {
        "running": False,
        "queued": 0,
        "capacity": 1000,
        "in_flight": 0,
        "workers": 0,
    }


def test_get_notification(client, store, sample_notification) -> None:
    created = asyncio.run(store.create(sample_notification))

    response = client.get(f"/api/v1/notifications/{created.id}")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["id"] == created.id
    assert data["status"] == "PENDING"
    assert data["recipient"]["email"] == "priya.sharma@example.com"
    assert data["leave_request_id"] == 42


def test_list_defaults_to_failed(client, store, sample_notification) -> None:
    single_attempt = sample_notification.model_copy(update={"max_retries": 1})
    failed = asyncio.run(store.create(single_attempt))
    asyncio.run(store.create(sample_notification))
    asyncio.run(store.mark_failed(failed.id, 1, "Failed after 1 retries: connection refused"))

    response = client.get("/api/v1/notifications")

    assert response.status_code == 200
    payload = response.json()
    assert payload["total"] == 1
    assert payload["data"][0]["id"] == failed.id
    assert payload["data"][0]["error_message"] == "Failed after 1 retries: connection refused"


def test_list_by_status_and_limit(client, store, sample_notification) -> None:
    for _ in range(3):
        asyncio.run(store.create(sample_notification))

    response = client.get("/api/v1/notifications", params={"status": "PENDING", "limit": 2})

    payload = response.json()
    assert payload["total"] == 2
    assert all(item["status"] == NotificationStatus.PENDING.value for item in payload["data"])


def test_list_rejects_limit_out_of_range(client) -> None:
    assert client.get("/api/v1/notifications", params={"limit": 0}).status_code == 422
    assert client.get("/api/v1/notifications", params={"limit": 501}).status_code == 422


def test_retry_sweep_on_stopped_dispatcher(client, store, sample_notification) -> None:
    asyncio.run(store.create(sample_notification))

    response = client.post("/api/v1/notifications/retry-sweep")

    assert response.status_code == 200
    assert response.json()["data"] == {"found": 1, "enqueued": 0, "skipped": 1}
