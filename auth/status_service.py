"""
Connection Status Resolver
==========================

Derives what the dashboard shows for a service connection from the
credential store. The resolver is fail-safe: it never reports a connection
it cannot prove, and it never raises to its caller. A store outage or an
unreadable payload both read as "not connected"; an unreadable payload is
additionally flagged in the ``error`` field so operators can tell key
problems apart from users who never connected.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from auth.credential_service import CredentialService
from errors import DecryptionError, StoreUnavailable, UnsupportedService
from models import utcnow

logger = logging.getLogger(__name__)


@dataclass
class ConnectionStatus:
    service_name: str
    is_connected: bool
    last_checked: datetime
    username: Optional[str] = None
    user_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "serviceName": self.service_name,
            "isConnected": self.is_connected,
            "lastChecked": self.last_checked.isoformat(),
        }
        if self.username is not None:
            data["username"] = self.username
        if self.user_id is not None:
            data["userId"] = self.user_id
        if self.error is not None:
            data["error"] = self.error
        return data


class ConnectionStatusResolver:
    """
    Args:
        credential_service (CredentialService): Store to look credentials up in
        services (Iterable[str]): Services reported by ``get_all_connection_statuses``
        clock: Source of the ``lastChecked`` timestamp
    """

    def __init__(
        self,
        credential_service: CredentialService,
        services: Iterable[str],
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.credential_service = credential_service
        self.services = list(services)
        self.clock = clock or utcnow

    def get_connection_status(self, agent_id: str, service: str) -> ConnectionStatus:
        status = ConnectionStatus(service_name=service, is_connected=False, last_checked=self.clock())

        try:
            credentials = self.credential_service.get_credentials(agent_id, service)
        except StoreUnavailable as e:
            logger.warning(f"Credential store unavailable while checking {service} status: {str(e)}")
            return status
        except DecryptionError as e:
            logger.error(f"Stored {service} credentials for agent {agent_id} cannot be decrypted: {str(e)}")
            status.error = "Stored credentials could not be decrypted"
            return status
        except UnsupportedService as e:
            status.error = e.message
            return status
        except Exception as e:
            logger.error(f"Unexpected error checking {service} status: {type(e).__name__}: {str(e)}")
            status.error = "Status check failed"
            return status

        if credentials is None:
            return status

        status.is_connected = True
        status.username = credentials.get("username")
        user_id = credentials.get("userId")
        status.user_id = str(user_id) if user_id is not None else None
        return status

    def get_all_connection_statuses(self, agent_id: str) -> List[ConnectionStatus]:
        """Resolve every known service independently; one failure never hides the others."""
        return [self.get_connection_status(agent_id, service) for service in self.services]
