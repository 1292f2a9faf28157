"""Unit tests for ProofAge app lifecycle wiring in proofage.main."""

from __future__ import annotations

from contextlib import asynccontextmanager
from types import SimpleNamespace

import httpx
import pytest
from structlog.testing import capture_logs

from proofage import main as main_module
from proofage.config import Settings
from proofage.services.api_key import ApiKeyService


@pytest.fixture
def recorded_lifespan(monkeypatch: pytest.MonkeyPatch):
    """Replace every startup/shutdown step with an event recorder."""
    events: list[str] = []

    async def init_db() -> None:
        events.append("init_db")

    async def close_db() -> None:
        events.append("close_db")

    async def init_gc_scheduler(settings) -> None:  # noqa: ANN001
        events.append("init_gc_scheduler")

    async def shutdown_gc_scheduler() -> None:
        events.append("shutdown_gc_scheduler")

    @asynccontextmanager
    async def fake_get_async_session():
        yield object()

    async def fake_bootstrap(db, settings):  # noqa: ANN001, ANN202
        events.append("bootstrap")
        return None

    monkeypatch.setattr(main_module, "init_db", init_db)
    monkeypatch.setattr(main_module, "close_db", close_db)
    monkeypatch.setattr(main_module, "init_gc_scheduler", init_gc_scheduler)
    monkeypatch.setattr(main_module, "shutdown_gc_scheduler", shutdown_gc_scheduler)
    monkeypatch.setattr(main_module, "get_async_session", fake_get_async_session)
    monkeypatch.setattr(ApiKeyService, "bootstrap", staticmethod(fake_bootstrap))
    return events


@pytest.mark.asyncio
async def test_lifespan_wires_startup_and_shutdown_in_order(
    recorded_lifespan: list[str], settings: Settings, monkeypatch: pytest.MonkeyPatch
):
    monkeypatch.setattr(main_module, "get_settings", lambda: settings)

    app = SimpleNamespace(state=SimpleNamespace())
    async with main_module.lifespan(app):
        recorded_lifespan.append("inside")

    assert recorded_lifespan == [
        "init_db",
        "bootstrap",
        "init_gc_scheduler",
        "inside",
        "shutdown_gc_scheduler",
        "close_db",
    ]


@pytest.mark.asyncio
async def test_lifespan_warns_about_weak_secrets(
    recorded_lifespan: list[str], monkeypatch: pytest.MonkeyPatch
):
    monkeypatch.setattr(main_module, "get_settings", lambda: Settings())

    app = SimpleNamespace(state=SimpleNamespace())
    with capture_logs() as logs:
        async with main_module.lifespan(app):
            pass

    weak = [entry["setting"] for entry in logs if entry["event"] == "config.weak_secret"]
    assert weak == ["security.jwt_signing_key", "security.verifier_callback_secret"]


@pytest.mark.asyncio
async def test_request_id_middleware_sets_response_header():
    app = main_module.create_app()
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        explicit = await client.get("/health", headers={"X-Request-Id": "req-fixed"})
        assert explicit.status_code == 200
        assert explicit.headers["X-Request-Id"] == "req-fixed"
        assert explicit.json() == {"status": "ok", "service": "proof-api"}

        generated = await client.get("/health")
        assert generated.status_code == 200
        assert generated.headers.get("X-Request-Id")
