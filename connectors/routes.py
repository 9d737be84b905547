"""
Spotify connector routes — auth URL, OAuth callback, connection status.

Routes: GET /auth/start, GET /auth/callback, GET /spotify/status
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import HTMLResponse, JSONResponse

from auth.dependencies import get_settings, resolve_user_id
from config.settings import STORE_KEYS, Settings
from connectors.encryption import TokenCipher
from connectors.spotify import SpotifyConnector
from connectors.state import generate_state
from connectors.token_manager import check_connection_status, get_token_record, store_tokens
from database.session import get_session_factory
from utils.errors import (
    ConfigurationMissing,
    PersistenceFailed,
    Unauthenticated,
    UpstreamExchangeFailed,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["spotify"])

AUTH_SUCCESS = "AUTH_SUCCESS"
AUTH_ERROR = "AUTH_ERROR"


def get_spotify_connector(request: Request) -> SpotifyConnector:
    return request.app.state.spotify


def get_token_cipher(request: Request) -> TokenCipher:
    return request.app.state.token_cipher


# ── Routes ─────────────────────────────────────────────────────────────


@router.get("/auth/start")
async def start_auth(
    connector: SpotifyConnector = Depends(get_spotify_connector),
) -> Any:
    """
    Build the Spotify authorization URL.

    Frontend should open ``auth_url`` in a popup window.  The callback does
    not verify ``state``.
    """
    try:
        state = generate_state()
        auth_url = connector.get_auth_url(state)
    except ConfigurationMissing as exc:
        logger.error("Spotify auth unavailable — missing %s", ", ".join(exc.missing))
        return JSONResponse(
            {"error": "Spotify configuration missing", "missing": exc.missing},
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    except Exception:
        logger.exception("Failed to generate Spotify auth URL")
        return JSONResponse(
            {"error": "Failed to generate auth URL"},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    return {"auth_url": auth_url, "state": state}


@router.get("/auth/callback", response_class=HTMLResponse)
async def oauth_callback(
    request: Request,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    settings: Settings = Depends(get_settings),
    connector: SpotifyConnector = Depends(get_spotify_connector),
    cipher: TokenCipher = Depends(get_token_cipher),
) -> HTMLResponse:
    """
    OAuth callback — Spotify redirects here after consent.

    Exchanges the code, stores the tokens for the signed-in user and returns
    a small HTML page that notifies the opener window and closes itself.
    Every branch, success or failure, ends in that page.
    """
    # ``state`` is never checked against the value /auth/start issued, so
    # this handler gives no CSRF protection and a callback URL can be replayed.
    try:
        if error:
            logger.error("Spotify auth error: %s", error)
            return _callback_response(error=error)

        if not code:
            return _callback_response(error="No authorization code received")

        if not connector.can_exchange():
            logger.error("Spotify callback unavailable — client credentials or redirect URI missing")
            return _callback_response(error="Server configuration error")

        try:
            token_data = await connector.exchange_code(code)
        except UpstreamExchangeFailed as exc:
            return _callback_response(error=exc.message)

        try:
            user_id = resolve_user_id(request, settings)
        except Unauthenticated:
            user_id = None
        if user_id is None:
            logger.error("Spotify callback without an authenticated user")
            return _callback_response(error="User not authenticated")

        try:
            await _save_tokens(request, user_id, token_data, cipher)
        except (PersistenceFailed, ConfigurationMissing) as exc:
            logger.error("Failed to save Spotify tokens for user %s: %s", user_id, exc)
            return _callback_response(error="Failed to save tokens")

        logger.info("Spotify connected: user=%s scope=%s", user_id, token_data.get("scope"))
        return _callback_response()

    except Exception as exc:
        logger.exception("Spotify callback error")
        return _callback_response(error=f"Authentication failed: {exc}")


@router.get("/spotify/status")
async def spotify_status(
    request: Request,
    settings: Settings = Depends(get_settings),
    cipher: TokenCipher = Depends(get_token_cipher),
) -> Dict[str, Any]:
    """
    Report whether the signed-in user holds an unexpired Spotify token.

    Never fails: anything that goes wrong reads as ``connected: false``.
    """
    factory = get_session_factory(request)
    if factory is None or not settings.is_configured(STORE_KEYS):
        logger.error("Spotify status unavailable — store not configured")
        return {"connected": False, "error": "Service configuration error"}

    try:
        user_id = resolve_user_id(request, settings)
    except Unauthenticated:
        return {"connected": False, "error": "Authentication failed"}
    if user_id is None:
        return {"connected": False}

    try:
        async with factory() as session:
            record = await get_token_record(session, user_id)
    except Exception as exc:
        logger.warning("Spotify status lookup failed for user %s: %s", user_id, exc)
        return {"connected": False}

    return {"connected": check_connection_status(record, cipher=cipher)}


# ── Helpers ────────────────────────────────────────────────────────────


async def _save_tokens(
    request: Request,
    user_id: str,
    token_data: Dict[str, Any],
    cipher: TokenCipher,
) -> None:
    factory = get_session_factory(request)
    if factory is None:
        raise ConfigurationMissing(list(STORE_KEYS))
    async with factory() as session:
        try:
            await store_tokens(session, user_id, token_data, cipher)
            await session.commit()
        except PersistenceFailed:
            await session.rollback()
            raise
        except Exception as exc:
            await session.rollback()
            raise PersistenceFailed("Failed to save tokens", details=str(exc)) from exc


def _callback_response(error: Optional[str] = None) -> HTMLResponse:
    if error is None:
        message: Dict[str, Any] = {"type": AUTH_SUCCESS}
    else:
        message = {"type": AUTH_ERROR, "error": error}
    return HTMLResponse(content=_callback_html(message), status_code=200)


def _callback_html(message: Dict[str, Any]) -> str:
    """
    Small HTML page shown in the OAuth popup after redirect.
    Sends a postMessage to the opener and closes.
    """
    success = message["type"] == AUTH_SUCCESS
    status_text = "Connected!" if success else "Failed"
    color = "#1db954" if success else "#ef4444"
    # Escape "</" so a value echoed from the query string cannot end the script.
    payload = json.dumps(message).replace("</", "<\\/")

    return f"""<!DOCTYPE html>
<html>
<head>
    <title>Spotify {status_text}</title>
    <style>
        body {{
            font-family: system-ui, sans-serif;
            background: #121212; color: #e4e7ee;
            display: flex; align-items: center; justify-content: center;
            height: 100vh; margin: 0;
        }}
        h2 {{ color: {color}; }}
    </style>
</head>
<body>
    <h2>{status_text}</h2>
    <script>
        if (window.opener) {{
            window.opener.postMessage({payload}, window.location.origin);
        }}
        window.close();
    </script>
</body>
</html>"""
