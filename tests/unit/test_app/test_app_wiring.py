"""Tests for the application lifespan and the problem+json exception handlers."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock

from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
import pytest

from dispatch_service.app import lifespan as lifespan_module
from dispatch_service.app.exception_handlers import configure_exception_handlers
from dispatch_service.core.exceptions import ConflictException
from dispatch_service.infra.tasks import broker as broker_module
from dispatch_service.infra.tasks import scheduler as scheduler_module


@pytest.fixture
def calls(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    """Replace every startup/shutdown step with a recorder."""
    recorded: list[str] = []

    def sync(name: str):
        return lambda *args, **kwargs: recorded.append(name)

    def coro(name: str):
        return AsyncMock(side_effect=lambda *args, **kwargs: recorded.append(name))

    monkeypatch.setattr(lifespan_module, "setup_logging", sync("setup_logging"))
    monkeypatch.setattr(lifespan_module, "shutdown", sync("shutdown_logging"))
    monkeypatch.setattr(lifespan_module, "init_database", coro("init_database"))
    monkeypatch.setattr(lifespan_module, "close_database", coro("close_database"))
    monkeypatch.setattr(broker_module, "start_taskiq", coro("start_taskiq"))
    monkeypatch.setattr(broker_module, "stop_taskiq", coro("stop_taskiq"))
    monkeypatch.setattr(scheduler_module, "start_scheduler", sync("start_scheduler"))
    monkeypatch.setattr(scheduler_module, "stop_scheduler", sync("stop_scheduler"))
    return recorded


def _settings(**overrides) -> SimpleNamespace:
    values = {
        "service_name": "dispatch-service",
        "environment": "test",
        "broker_enabled": True,
        "scheduler_enabled": True,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.mark.asyncio
async def test_lifespan_starts_and_stops_in_reverse_order(calls, monkeypatch):
    monkeypatch.setattr(lifespan_module, "get_app_settings", _settings)

    async with lifespan_module.lifespan(FastAPI()):
        assert calls == ["setup_logging", "init_database", "start_taskiq", "start_scheduler"]

    assert calls[4:] == ["stop_scheduler", "stop_taskiq", "close_database", "shutdown_logging"]


@pytest.mark.asyncio
async def test_lifespan_skips_disabled_runtimes(calls, monkeypatch):
    monkeypatch.setattr(
        lifespan_module,
        "get_app_settings",
        lambda: _settings(broker_enabled=False, scheduler_enabled=False),
    )

    async with lifespan_module.lifespan(FastAPI()):
        pass

    assert calls == ["setup_logging", "init_database", "close_database", "shutdown_logging"]


@pytest.fixture
async def error_client():
    app = FastAPI()
    configure_exception_handlers(app)

    @app.get("/conflict")
    async def conflict():
        raise ConflictException(detail="Already queued", type="already-queued", extra={"id": "n-1"})

    @app.get("/boom")
    async def boom():
        raise RuntimeError("secret internals")

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.mark.asyncio
async def test_app_exception_renders_problem_json(error_client):
    response = await error_client.get("/conflict")

    assert response.status_code == 409
    assert response.headers["content-type"].startswith("application/problem+json")
    assert response.json() == {
        "type": "already-queued",
        "title": "Conflict",
        "status": 409,
        "detail": "Already queued",
        "id": "n-1",
        "instance": "/conflict",
    }


@pytest.mark.asyncio
async def test_unhandled_exception_hides_details(error_client):
    response = await error_client.get("/boom")

    assert response.status_code == 500
    assert response.json()["detail"] == "An unexpected error occurred"
    assert "secret" not in response.text
