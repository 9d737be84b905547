"""
Token manager — store / look up per-user Spotify tokens.

This is the single interface the routes use to persist a completed
authorization and to decide whether a user is currently connected.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from connectors.encryption import TokenCipher
from database.models import SpotifyToken
from utils.errors import PersistenceFailed

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything we write is UTC.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


async def store_tokens(
    session: AsyncSession,
    user_id: str,
    token_data: dict,
    cipher: TokenCipher,
    *,
    now: Optional[datetime] = None,
) -> SpotifyToken:
    """
    Insert or overwrite the user's token record.

    Parameters
    ----------
    token_data : dict
        Output from ``SpotifyConnector.exchange_code()``: access_token,
        refresh_token, expires_in, scope

    The caller owns the transaction; this only flushes.
    """
    if not token_data.get("access_token"):
        raise PersistenceFailed("Refusing to store an empty access token")

    now = now or datetime.now(timezone.utc)
    expires_at = now + timedelta(seconds=token_data.get("expires_in", 3600))
    refresh_token = token_data.get("refresh_token")

    try:
        existing = await session.get(SpotifyToken, user_id)
        if existing:
            existing.access_token = cipher.encrypt(token_data["access_token"])
            existing.refresh_token = cipher.encrypt(refresh_token) if refresh_token else None
            existing.expires_at = expires_at
            existing.scope = token_data.get("scope") or ""
            existing.updated_at = now
            record = existing
            logger.info("Updated Spotify tokens for user %s", user_id)
        else:
            record = SpotifyToken(
                user_id=user_id,
                access_token=cipher.encrypt(token_data["access_token"]),
                refresh_token=cipher.encrypt(refresh_token) if refresh_token else None,
                expires_at=expires_at,
                scope=token_data.get("scope") or "",
                created_at=now,
                updated_at=now,
            )
            session.add(record)
            logger.info("Stored Spotify tokens for user %s", user_id)
        await session.flush()
    except SQLAlchemyError as exc:
        logger.error("store_tokens error for user %s: %s", user_id, exc)
        raise PersistenceFailed("Failed to save tokens", details=str(exc)) from exc

    return record


async def get_token_record(session: AsyncSession, user_id: str) -> Optional[SpotifyToken]:
    result = await session.execute(
        select(SpotifyToken).where(SpotifyToken.user_id == user_id)
    )
    return result.scalar_one_or_none()


def check_connection_status(
    record: Optional[SpotifyToken],
    now: Optional[datetime] = None,
    cipher: Optional[TokenCipher] = None,
) -> bool:
    """
    True only for a record with a non-empty access token that has not yet expired.

    Pass ``cipher`` when tokens are encrypted at rest; the emptiness check is
    made on the decrypted value.
    """
    if record is None or not record.access_token or record.expires_at is None:
        return False
    access_token = cipher.decrypt(record.access_token) if cipher else record.access_token
    if not access_token:
        return False
    now = now or datetime.now(timezone.utc)
    return _as_utc(record.expires_at) > now
