"""
SpotifyConnector — OAuth2 authorization-code flow for the Spotify Web API.

Builds the consent URL and exchanges the returned code for tokens.  Token
refresh is not implemented: an expired token simply reports as disconnected
until the user authorizes again.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from config.settings import SPOTIFY_AUTH_KEYS, SPOTIFY_CALLBACK_KEYS, Settings
from utils.errors import UpstreamExchangeFailed

logger = logging.getLogger(__name__)

# Spotify OAuth2 endpoints
_SPOTIFY_AUTH_URL = "https://accounts.spotify.com/authorize"
_SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"

_DEFAULT_EXPIRES_IN = 3600


class SpotifyConnector:
    """OAuth2 connector for Spotify."""

    def __init__(
        self,
        settings: Settings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    @property
    def scopes(self) -> List[str]:
        return [
            "streaming",
            "user-read-email",
            "user-read-private",
            "user-read-playback-state",
            "user-modify-playback-state",
            "user-read-currently-playing",
            "playlist-read-private",
            "playlist-read-collaborative",
        ]

    def can_exchange(self) -> bool:
        return self._settings.is_configured(SPOTIFY_CALLBACK_KEYS)

    def get_auth_url(self, state: str) -> str:
        self._settings.require(SPOTIFY_AUTH_KEYS)
        params = {
            "response_type": "code",
            "client_id": self._settings.spotify_client_id,
            "scope": " ".join(self.scopes),
            "redirect_uri": self._settings.spotify_redirect_uri,
            "state": state,
        }
        return f"{_SPOTIFY_AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> Dict[str, Any]:
        """
        Exchange the authorization code for tokens.

        Returns
        -------
        dict with keys: access_token, refresh_token, expires_in, scope

        Raises
        ------
        ConfigurationMissing
            client id, secret or redirect URI unset; no request is made.
        UpstreamExchangeFailed
            Spotify answered with a non-2xx status, or with no access token.
        """
        self._settings.require(SPOTIFY_CALLBACK_KEYS)

        async with httpx.AsyncClient(transport=self._transport) as client:
            resp = await client.post(
                _SPOTIFY_TOKEN_URL,
                data={
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": self._settings.spotify_redirect_uri,
                },
                auth=(self._settings.spotify_client_id, self._settings.spotify_client_secret),
            )

        if not resp.is_success:
            error = _provider_error(resp)
            logger.error("Spotify token exchange failed (%s): %s", resp.status_code, error)
            raise UpstreamExchangeFailed(error, status=resp.status_code)

        token_data = resp.json()
        if not isinstance(token_data, dict) or not token_data.get("access_token"):
            logger.error("Spotify token response carried no access_token")
            raise UpstreamExchangeFailed("missing access_token", status=resp.status_code)
        return {
            "access_token": token_data["access_token"],
            "refresh_token": token_data.get("refresh_token"),
            "expires_in": int(token_data.get("expires_in") or _DEFAULT_EXPIRES_IN),
            "scope": token_data.get("scope", ""),
        }


def _provider_error(resp: httpx.Response) -> str:
    """Pull Spotify's ``error`` field out of a failed response, if it has one."""
    try:
        body = resp.json()
    except ValueError:
        return "Unknown error"
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return "Unknown error"
