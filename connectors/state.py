"""
OAuth ``state`` token generation.
"""

from __future__ import annotations

import secrets
import string

STATE_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits
DEFAULT_STATE_LENGTH = 16


def generate_state(length: int = DEFAULT_STATE_LENGTH) -> str:
    """Return *length* characters drawn uniformly from ``STATE_ALPHABET``."""
    if length < 1:
        raise ValueError(f"state length must be at least 1, got {length}")
    return "".join(secrets.choice(STATE_ALPHABET) for _ in range(length))
