"""
JWT-style session token creation and verification.

Tokens are base64-encoded JSON payloads signed with HMAC-SHA256.  They are
issued by the application's sign-in flow and only verified here; the secret
is ``Settings.jwt_secret`` (env var: ``JWT_SECRET``).
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from base64 import b64decode, b64encode
from typing import Optional


class InvalidSessionToken(ValueError):
    """Raised when a session token is malformed, forged or expired."""


def _sign(secret: str, raw: bytes) -> str:
    return hmac.new(secret.encode(), raw, hashlib.sha256).hexdigest()


def create_token(user_id: str, secret: str, expiry_seconds: int = 604800) -> str:
    """Create a signed token containing ``user_id`` and expiry."""
    payload = {
        "user_id": user_id,
        "exp": int(time.time()) + expiry_seconds,
    }
    raw = json.dumps(payload).encode()
    return b64encode(raw).decode() + "." + _sign(secret, raw)


def decode_token(token: str, secret: str, now: Optional[float] = None) -> str:
    """
    Verify token and return ``user_id``.

    Raises ``InvalidSessionToken`` on invalid or expired tokens, and when no
    secret is configured to check them against.
    """
    if not secret:
        raise InvalidSessionToken("no signing secret configured")
    parts = token.split(".", 1)
    if len(parts) != 2:
        raise InvalidSessionToken("bad format")
    try:
        raw = b64decode(parts[0], validate=True)
        payload = json.loads(raw)
    except ValueError as exc:
        raise InvalidSessionToken("bad payload") from exc
    if not hmac.compare_digest(parts[1].encode(), _sign(secret, raw).encode()):
        raise InvalidSessionToken("bad signature")
    if not isinstance(payload, dict) or not payload.get("user_id"):
        raise InvalidSessionToken("missing user_id")
    if payload.get("exp", 0) < (time.time() if now is None else now):
        raise InvalidSessionToken("token expired")
    return str(payload["user_id"])
