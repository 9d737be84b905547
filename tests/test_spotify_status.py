"""
Tests for the connection-status check — fail-closed in every branch.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from cryptography.fernet import Fernet
from sqlalchemy.exc import OperationalError

from connectors.encryption import TokenCipher
from connectors.token_manager import check_connection_status
from database.models import SpotifyToken

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def _record(access_token="tok", expires_at=NOW + timedelta(minutes=5)) -> SpotifyToken:
    return SpotifyToken(user_id="user-1", access_token=access_token, expires_at=expires_at, scope="")


async def _seed(session_factory, user_id: str, expires_at: datetime, access_token: str = "tok"):
    async with session_factory() as session:
        session.add(
            SpotifyToken(user_id=user_id, access_token=access_token, expires_at=expires_at, scope="streaming")
        )
        await session.commit()


class TestCheckConnectionStatus:
    def test_valid_token(self):
        assert check_connection_status(_record(), now=NOW) is True

    def test_missing_record(self):
        assert check_connection_status(None, now=NOW) is False

    def test_expired_token(self):
        assert check_connection_status(_record(expires_at=NOW - timedelta(seconds=1)), now=NOW) is False

    def test_expiry_equal_to_now_is_not_connected(self):
        assert check_connection_status(_record(expires_at=NOW), now=NOW) is False

    def test_empty_access_token(self):
        assert check_connection_status(_record(access_token=""), now=NOW) is False

    def test_naive_expiry_is_read_as_utc(self):
        naive = (NOW + timedelta(minutes=1)).replace(tzinfo=None)
        assert check_connection_status(_record(expires_at=naive), now=NOW) is True

    def test_encrypted_empty_access_token(self):
        cipher = TokenCipher(Fernet.generate_key().decode())
        record = _record(access_token=cipher.encrypt(""))

        assert record.access_token
        assert check_connection_status(record, now=NOW, cipher=cipher) is False

    def test_encrypted_access_token(self):
        cipher = TokenCipher(Fernet.generate_key().decode())
        record = _record(access_token=cipher.encrypt("tok"))

        assert check_connection_status(record, now=NOW, cipher=cipher) is True


class TestStatusEndpoint:
    @pytest.mark.asyncio
    async def test_connected(self, client, auth_headers, session_factory):
        await _seed(session_factory, "user-1", datetime.now(timezone.utc) + timedelta(hours=1))

        resp = await client.get("/spotify/status", headers=auth_headers("user-1"))

        assert resp.status_code == 200
        assert resp.json() == {"connected": True}

    @pytest.mark.asyncio
    async def test_expired(self, client, auth_headers, session_factory):
        await _seed(session_factory, "user-1", datetime.now(timezone.utc) - timedelta(minutes=1))

        resp = await client.get("/spotify/status", headers=auth_headers("user-1"))

        assert resp.json() == {"connected": False}

    @pytest.mark.asyncio
    async def test_other_users_token_does_not_count(self, client, auth_headers, session_factory):
        await _seed(session_factory, "someone-else", datetime.now(timezone.utc) + timedelta(hours=1))

        resp = await client.get("/spotify/status", headers=auth_headers("user-1"))

        assert resp.json() == {"connected": False}

    @pytest.mark.asyncio
    async def test_signed_out(self, client):
        resp = await client.get("/spotify/status")

        assert resp.status_code == 200
        assert resp.json() == {"connected": False}

    @pytest.mark.asyncio
    async def test_invalid_session(self, client):
        resp = await client.get("/spotify/status", headers={"Authorization": "Bearer nope"})

        assert resp.status_code == 200
        assert resp.json() == {"connected": False, "error": "Authentication failed"}

    @pytest.mark.asyncio
    async def test_lookup_error_reads_as_disconnected(self, client, auth_headers):
        failing = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("db down")))
        with patch("connectors.routes.get_token_record", failing):
            resp = await client.get("/spotify/status", headers=auth_headers())

        assert resp.status_code == 200
        assert resp.json() == {"connected": False}
        failing.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_store_not_configured(self, make_app, auth_headers):
        app = make_app(database_url="")
        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        ) as client:
            resp = await client.get("/spotify/status", headers=auth_headers())

        assert resp.status_code == 200
        assert resp.json() == {"connected": False, "error": "Service configuration error"}

    @pytest.mark.asyncio
    async def test_non_ascii_session_token(self, client):
        resp = await client.get("/spotify/status", headers={"Authorization": b"Bearer e30=.\xe9"})

        assert resp.status_code == 200
        assert resp.json() == {"connected": False, "error": "Authentication failed"}

    @pytest.mark.asyncio
    async def test_encrypted_empty_token_is_not_connected(self, make_app, auth_headers, session_factory):
        app = make_app(token_encryption_key=Fernet.generate_key().decode())
        await _seed(
            session_factory,
            "user-1",
            datetime.now(timezone.utc) + timedelta(hours=1),
            access_token=app.state.token_cipher.encrypt(""),
        )
        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        ) as client:
            resp = await client.get("/spotify/status", headers=auth_headers("user-1"))

        assert resp.json() == {"connected": False}
