"""
FastAPI dependencies for settings, database sessions and authentication.

``resolve_user_id`` is the lenient form used by endpoints with their own
failure policy; ``get_current_user_id`` is the strict form that rejects the
request with 401.
"""

from __future__ import annotations

import logging
from typing import AsyncGenerator, Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from auth.jwt import InvalidSessionToken, decode_token
from config.settings import Settings
from database.session import get_db_session
from utils.errors import Unauthenticated

logger = logging.getLogger(__name__)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def db_session(
    session: AsyncSession = Depends(get_db_session),
) -> AsyncGenerator[AsyncSession, None]:
    """Yield a DB session for route handlers."""
    yield session


def _session_token(request: Request, settings: Settings) -> Optional[str]:
    scheme, _, value = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return request.cookies.get(settings.session_cookie_name) or None


def resolve_user_id(request: Request, settings: Settings) -> Optional[str]:
    """
    Return the signed-in user's id, or ``None`` when the request carries no
    session token at all.

    Raises ``Unauthenticated("Authentication failed")`` when a token is
    present but does not verify.
    """
    token = _session_token(request, settings)
    if token is None:
        return None
    try:
        return decode_token(token, settings.jwt_secret)
    except InvalidSessionToken as exc:
        logger.info("Rejected session token: %s", exc)
        raise Unauthenticated("Authentication failed") from exc


async def get_current_user_id(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> str:
    """Return the authenticated ``user_id`` or reject with 401."""
    user_id = resolve_user_id(request, settings)
    if user_id is None:
        raise Unauthenticated()
    return user_id
