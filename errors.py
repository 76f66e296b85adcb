"""
Error taxonomy for the connections service.

Every failure the core can raise derives from ``ConnectionsError`` so the
HTTP adapters can tell typed failures apart from unexpected exceptions.
Handshake errors are terminal for the attempt: the caller restarts at
``initiate``.
"""

from typing import Optional

from fastapi import HTTPException


class ConnectionsError(Exception):
    """Base class for all connection service errors."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self):
        return {"error": self.message, "type": type(self).__name__}


class ConfigurationError(ConnectionsError):
    """Required provider or encryption configuration is missing."""


class UnsupportedService(ConnectionsError):
    status_code = 400


class ProviderError(ConnectionsError):
    """The external provider failed, timed out or returned malformed data."""

    status_code = 502

    def __init__(self, message: str, detail: Optional[str] = None, provider_status: Optional[int] = None):
        super().__init__(message)
        self.detail = detail
        self.provider_status = provider_status

    def to_dict(self):
        data = super().to_dict()
        if self.detail:
            data["details"] = self.detail
        return data


class ProviderAuthError(ProviderError):
    """The provider rejected the presented credentials or verifier."""

    status_code = 401


class InvalidRequest(ConnectionsError):
    """A request is missing a required field."""

    status_code = 400


class HandshakeError(ConnectionsError):
    status_code = 400


class MalformedCallback(HandshakeError):
    pass


class InvalidOrExpiredSession(HandshakeError):
    pass


class MissingTempCredentials(HandshakeError):
    pass


class DecryptionError(ConnectionsError):
    """Stored ciphertext could not be decrypted with the configured key."""


class StoreUnavailable(ConnectionsError):
    """The credential database could not be reached."""

    status_code = 503


def to_http_exception(error: ConnectionsError):
    """Map a typed failure onto the HTTPException the route layer raises."""
    return HTTPException(status_code=error.status_code, detail=error.to_dict())
