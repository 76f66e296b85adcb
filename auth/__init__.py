"""
Core services of the connections service.

This package provides:
- Credential encryption
- The encrypted credential store
- The in-memory handshake session cache
- The OAuth 1.0a handshake engine
- Connection status resolution and the connection facade
"""

from .encryption_service import EncryptionService

from .credential_service import (
    CredentialService,
    parse_service_name
)

from .session_cache import SessionCache

from .oauth_service import (
    OAuthService,
    OAuthSession,
    CallbackResult,
    ConnectionInitiation,
    generate_oauth_state
)

from .status_service import (
    ConnectionStatus,
    ConnectionStatusResolver
)

from .connection_service import ConnectionService

__all__ = [
    # Encryption
    "EncryptionService",

    # Credential store
    "CredentialService",
    "parse_service_name",

    # Handshake
    "SessionCache",
    "OAuthService",
    "OAuthSession",
    "CallbackResult",
    "ConnectionInitiation",
    "generate_oauth_state",

    # Status
    "ConnectionStatus",
    "ConnectionStatusResolver",
    "ConnectionService"
]
