"""
Shared fixtures: a throwaway SQLite store, a fake Spotify token endpoint and
an app factory wired to both.
"""

from __future__ import annotations

from typing import Any, Dict, List

import httpx
import pytest
import pytest_asyncio

from auth.jwt import create_token
from config.settings import Settings
from connectors.spotify import SpotifyConnector
from database.session import build_engine, build_session_factory, create_tables
from main import create_app

JWT_SECRET = "test-jwt-secret"

_BASE_SETTINGS: Dict[str, Any] = {
    "spotify_client_id": "test-client-id",
    "spotify_client_secret": "test-client-secret",
    "spotify_redirect_uri": "http://test/auth/callback",
    "database_url": "sqlite+aiosqlite://",
    "jwt_secret": JWT_SECRET,
}


def make_settings(**overrides: Any) -> Settings:
    return Settings(_env_file=None, **{**_BASE_SETTINGS, **overrides})


class FakeTokenEndpoint:
    """Stands in for https://accounts.spotify.com/api/token."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.status_code = 200
        self.body: Any = {
            "access_token": "spotify-access-token",
            "token_type": "Bearer",
            "refresh_token": "spotify-refresh-token",
            "expires_in": 3600,
            "scope": "streaming user-read-email",
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.body, (dict, list)):
            return httpx.Response(self.status_code, json=self.body)
        return httpx.Response(self.status_code, text=str(self.body))


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
    await create_tables(engine)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def token_endpoint() -> FakeTokenEndpoint:
    return FakeTokenEndpoint()


@pytest.fixture
def make_app(session_factory, token_endpoint):
    """Build an app; keyword overrides replace individual settings."""

    def _make(**overrides: Any):
        settings = make_settings(**overrides)
        spotify = SpotifyConnector(settings, transport=httpx.MockTransport(token_endpoint))
        factory = session_factory if settings.database_url else None
        return create_app(settings, session_factory=factory, spotify=spotify)

    return _make


@pytest_asyncio.fixture
async def client(make_app):
    app = make_app()
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as c:
        yield c


@pytest.fixture
def auth_headers():
    def _headers(user_id: str = "user-1") -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_token(user_id, JWT_SECRET)}"}

    return _headers
