"""
Tests for GET /health and the store probe.
"""

import httpx
import pytest

from database.helpers import probe_store
from database.session import build_engine, build_session_factory


class TestHealth:
    @pytest.mark.asyncio
    async def test_reports_configuration_and_store(self, client):
        resp = await client.get("/health")

        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["timestamp"]
        assert body["store"] == "connected"
        assert body["environment"] == {
            "has_database_url": True,
            "has_jwt_secret": True,
            "has_spotify_client_id": True,
            "has_spotify_client_secret": True,
            "has_spotify_redirect_uri": True,
            "has_token_encryption_key": False,
            "app_env": "development",
            "deploy_env": "",
        }

    @pytest.mark.asyncio
    async def test_never_exposes_secret_values(self, client):
        resp = await client.get("/health")

        assert "test-client-secret" not in resp.text
        assert "test-jwt-secret" not in resp.text

    @pytest.mark.asyncio
    async def test_unconfigured_store(self, make_app):
        app = make_app(database_url="", spotify_client_secret="")
        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        ) as client:
            resp = await client.get("/health")

        assert resp.status_code == 200
        body = resp.json()
        assert body["store"] == "not_configured"
        assert body["environment"]["has_database_url"] is False
        assert body["environment"]["has_spotify_client_secret"] is False


class TestProbeStore:
    @pytest.mark.asyncio
    async def test_not_configured(self):
        assert await probe_store(None) == "not_configured"

    @pytest.mark.asyncio
    async def test_connected(self, session_factory):
        assert await probe_store(session_factory) == "connected"

    @pytest.mark.asyncio
    async def test_unreachable_store(self, tmp_path):
        engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'store.db'}")
        try:
            result = await probe_store(build_session_factory(engine))
        finally:
            await engine.dispose()

        assert result.startswith("error: ")
