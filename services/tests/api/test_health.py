"""Tests for liveness and readiness endpoints."""

from unittest.mock import AsyncMock, patch

from httpx import ASGITransport, AsyncClient

from riverwatch.api import health
from riverwatch.api.app import create_application as create_app
from riverwatch.sessions.memory import MemorySessionStore


async def get(path: str):
    app = create_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        return await client.get(path)


def checks(database: bool, sessions: bool) -> dict:
    return {
        "database": AsyncMock(return_value=database),
        "sessions": AsyncMock(return_value=sessions),
    }


class TestHealth:
    async def test_health(self):
        resp = await get("/health")

        assert resp.status_code == 200
        assert resp.json() == {"status": "healthy"}


class TestReady:
    async def test_ready(self):
        with patch.dict(health.READINESS_CHECKS, checks(database=True, sessions=True)):
            resp = await get("/ready")

        assert resp.status_code == 200
        assert resp.json() == {
            "status": "ready",
            "checks": {"database": "healthy", "sessions": "healthy"},
        }

    async def test_session_store_down(self):
        with patch.dict(health.READINESS_CHECKS, checks(database=True, sessions=False)):
            resp = await get("/ready")

        assert resp.status_code == 503
        assert resp.json()["checks"] == {"database": "healthy", "sessions": "unhealthy"}

    async def test_database_down(self):
        with patch.dict(health.READINESS_CHECKS, checks(database=False, sessions=True)):
            resp = await get("/ready")

        assert resp.status_code == 503
        assert resp.json()["status"] == "not ready"


class TestPingSessionStore:
    @patch("riverwatch.api.health.get_session_store", side_effect=RuntimeError("not initialized"))
    async def test_uninitialized_is_unhealthy(self, mock_get_store):
        assert await health.ping_session_store() is False

    @patch("riverwatch.api.health.get_session_store")
    async def test_memory_store_is_healthy(self, mock_get_store):
        mock_get_store.return_value = MemorySessionStore(ttl_seconds=60)
        assert await health.ping_session_store() is True
