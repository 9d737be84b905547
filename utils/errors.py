"""
Exception taxonomy shared by the connectors, the task store and the routes.

Each exception maps onto one response shape in ``api.middleware``.
"""

from __future__ import annotations

from typing import Any, List, Optional


class ServiceError(Exception):
    """Base class for every error this service reports to a caller."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationMissing(ServiceError):
    """One or more required settings are unset."""

    status_code = 503

    def __init__(self, missing: List[str]) -> None:
        super().__init__(f"Missing configuration: {', '.join(missing)}")
        self.missing = list(missing)


class Unauthenticated(ServiceError):
    """No valid application session accompanies the request."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class UpstreamExchangeFailed(ServiceError):
    """Spotify rejected the authorization-code exchange."""

    status_code = 502

    def __init__(self, error: str, status: Optional[int] = None) -> None:
        super().__init__(f"Token exchange failed: {error}")
        self.error = error
        self.status = status


class PersistenceFailed(ServiceError):
    """A read or write against the backing store failed."""

    status_code = 400

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.details = details
