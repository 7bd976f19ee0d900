"""HTTP tests for the notifications API, health and metrics endpoints."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from dispatch_service.core.dependencies import get_db_session
from dispatch_service.features.notifications.dependencies import get_service
from dispatch_service.features.notifications.service import NotificationService
from dispatch_service.infra.ratelimit import UserRateLimiter
from tests.utils import RecordingQueue

API = "/api/v1/notifications"

pytestmark = pytest.mark.integration


@pytest.fixture
def rate_limiter() -> UserRateLimiter:
    return UserRateLimiter(max_requests=5, window_seconds=60)


@pytest.fixture
async def app(
    db_session: AsyncSession,
    make_service: Callable[..., NotificationService],
    rate_limiter: UserRateLimiter,
):
    """Application with the session and service dependencies pointed at test doubles."""
    from dispatch_service.app.main import create_app

    application = create_app()

    async def _session() -> AsyncGenerator[AsyncSession]:
        yield db_session

    application.dependency_overrides[get_db_session] = _session
    application.dependency_overrides[get_service] = lambda: make_service(rate_limiter=rate_limiter)
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def _payload(**overrides) -> dict:
    body = {"user_id": "user-1", "type": "in_app", "title": "Hello", "body": "World"}
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_send_returns_accepted(client: AsyncClient, queue: RecordingQueue) -> None:
    response = await client.post(f"{API}/", json=_payload(priority="high", category="billing"))

    assert response.status_code == 202
    data = response.json()
    assert data["sent"] is True
    assert data["notification"]["status"] == "queued"
    assert data["notification"]["category"] == "billing"
    assert [str(i) for i in queue.ids] == [data["notification"]["id"]]


@pytest.mark.asyncio
async def test_send_over_rate_limit_is_silent(client: AsyncClient) -> None:
    for _ in range(5):
        assert (await client.post(f"{API}/", json=_payload())).json()["sent"] is True

    response = await client.post(f"{API}/", json=_payload())

    assert response.status_code == 202
    assert response.json() == {"sent": False, "notification": None}


@pytest.mark.asyncio
async def test_send_rejects_unknown_type(client: AsyncClient) -> None:
    response = await client.post(f"{API}/", json=_payload(type="fax"))

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_bulk_send(client: AsyncClient) -> None:
    response = await client.post(
        f"{API}/bulk",
        json={"user_ids": ["a", "b", "c"], "type": "push", "title": "Release", "body": "v2 is out"},
    )

    assert response.status_code == 202
    assert response.json() == {"queued": 3}


@pytest.mark.asyncio
async def test_inbox_flow(client: AsyncClient) -> None:
    ids = []
    for i in range(3):
        created = await client.post(f"{API}/", json=_payload(title=f"Message {i}", workspace_id="ws-a"))
        ids.append(created.json()["notification"]["id"])

    page = await client.get(f"{API}/users/user-1", params={"page": 0, "limit": 2})
    assert page.status_code == 200
    assert page.json()["total"] == 3
    assert page.json()["pages"] == 2
    assert len(page.json()["items"]) == 2

    unread = await client.get(f"{API}/users/user-1/unread-count")
    assert unread.json() == {"unread": 3}

    marked = await client.post(f"{API}/users/user-1/read", json={"notification_ids": ids[:1]})
    assert marked.json() == {"updated": 1}

    rest = await client.post(f"{API}/users/user-1/read-all", json={"workspace_id": "ws-a"})
    assert rest.json() == {"updated": 2}

    unread = await client.get(f"{API}/users/user-1/unread-count", params={"workspace_id": "ws-a"})
    assert unread.json() == {"unread": 0}


@pytest.mark.asyncio
async def test_mark_read_requires_ids(client: AsyncClient) -> None:
    response = await client.post(f"{API}/users/user-1/read", json={"notification_ids": []})

    assert response.status_code == 422
    assert response.headers["content-type"].startswith("application/problem+json")
    assert response.json()["type"] == "empty-notification-ids"


@pytest.mark.asyncio
async def test_read_all_without_body(client: AsyncClient) -> None:
    await client.post(f"{API}/", json=_payload())

    response = await client.post(f"{API}/users/user-1/read-all")

    assert response.status_code == 200
    assert response.json() == {"updated": 1}


@pytest.mark.asyncio
async def test_retry_flow(
    client: AsyncClient,
    make_service: Callable[..., NotificationService],
    queue: RecordingQueue,
) -> None:
    created = await client.post(f"{API}/", json=_payload(type="sms"))
    notification_id = created.json()["notification"]["id"]

    conflict = await client.post(f"{API}/{notification_id}/retry")
    assert conflict.status_code == 409
    assert conflict.json()["notification_id"] == notification_id

    # No phone number: delivery fails
    await make_service().process(queue.ids[0])

    failed = await client.get(f"{API}/failed")
    assert [n["id"] for n in failed.json()] == [notification_id]
    assert failed.json()[0]["error_message"] == "No phone number provided"

    stats = await client.get(f"{API}/stats")
    assert stats.json()["failed"] == 1

    retried = await client.post(f"{API}/{notification_id}/retry")
    assert retried.status_code == 200
    assert retried.json() == {"retried": True, "notification_id": notification_id}
    assert len(queue.submitted) == 2


@pytest.mark.asyncio
async def test_retry_unknown_notification(client: AsyncClient) -> None:
    response = await client.post(f"{API}/{uuid4()}/retry")

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_get_notification(client: AsyncClient) -> None:
    created = await client.post(f"{API}/", json=_payload(category="deploys"))
    notification_id = created.json()["notification"]["id"]

    response = await client.get(f"{API}/{notification_id}")

    assert response.status_code == 200
    assert response.json()["id"] == notification_id
    assert response.json()["category"] == "deploys"


@pytest.mark.asyncio
async def test_get_unknown_notification_is_not_found(client: AsyncClient) -> None:
    missing = uuid4()

    response = await client.get(f"{API}/{missing}")

    assert response.status_code == 404
    assert response.headers["content-type"].startswith("application/problem+json")
    assert response.json()["type"] == "notification-not-found"
    assert response.json()["notification_id"] == str(missing)


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "database": "ok"}


@pytest.mark.asyncio
async def test_metrics_exposes_notification_counters(client: AsyncClient) -> None:
    await client.post(f"{API}/", json=_payload())

    response = await client.get("/metrics")

    assert response.status_code == 200
    assert "notification_created_total" in response.text
    assert "rate_limit_tracked_users" in response.text
