"""
Connection Service
==================

The surface the HTTP routes and the agent runtime use. It ties the handshake
engine, the credential store and the status resolver together behind the
five connection operations (initiate, callback, status, disconnect, test)
plus the listings the dashboard needs.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from auth.credential_service import CredentialService, parse_service_name
from auth.oauth_service import CallbackResult, OAuthService
from auth.status_service import ConnectionStatusResolver
from errors import ProviderError, UnsupportedService
from plugins import ServiceConnector

logger = logging.getLogger(__name__)


class ConnectionService:
    def __init__(
        self,
        oauth_service: OAuthService,
        credential_service: CredentialService,
        status_resolver: ConnectionStatusResolver,
        connectors: Mapping[str, ServiceConnector],
    ):
        self.oauth_service = oauth_service
        self.credential_service = credential_service
        self.status_resolver = status_resolver
        self.connectors = dict(connectors)

    def get_connector(self, service: str) -> ServiceConnector:
        connector = self.connectors.get(service)
        if connector is None:
            raise UnsupportedService(f"Unsupported service: {service}")
        return connector

    async def initiate_connection(
        self,
        agent_id: str,
        service: str,
        return_url: Optional[str] = None,
        callback_url: Optional[str] = None,
    ) -> Dict[str, str]:
        """Start a handshake and return ``{authUrl, state, requestToken}``."""
        initiation = await self.oauth_service.initiate(agent_id, service, return_url, callback_url)
        return initiation.to_dict()

    async def handle_callback(self, params: Mapping[str, Optional[str]], service: str = "twitter") -> CallbackResult:
        """
        Complete a handshake from the provider's callback parameters.

        ``params`` accepts either the provider's names (``oauth_token``,
        ``oauth_verifier``) or ``requestToken``/``verifier``, plus ``state``
        and ``agentId``.
        """
        return await self.oauth_service.handle_callback(
            request_token=params.get("requestToken") or params.get("oauth_token"),
            verifier=params.get("verifier") or params.get("oauth_verifier"),
            state=params.get("state"),
            agent_id=params.get("agentId"),
            service=service,
        )

    def get_return_url(self, state: Optional[str], agent_id: Optional[str], service: str) -> Optional[str]:
        """Return URL of a pending handshake, so failures can be redirected too."""
        if not state or not agent_id:
            return None
        session = self.oauth_service.validate_session(state, agent_id, service)
        return session.return_url if session else None

    def get_status(self, agent_id: str, service: str) -> Dict[str, Any]:
        return self.status_resolver.get_connection_status(agent_id, service).to_dict()

    def get_all_statuses(self, agent_id: str) -> List[Dict[str, Any]]:
        return [status.to_dict() for status in self.status_resolver.get_all_connection_statuses(agent_id)]

    def disconnect(self, agent_id: str, service: str) -> None:
        """
        Revoke the agent's credentials for a service.

        Disconnecting a service that is not connected is not an error.

        Raises:
            UnsupportedService: If the service name is unknown
            StoreUnavailable: If the database cannot be reached
        """
        parse_service_name(service)
        self.credential_service.revoke_credentials(agent_id, service)
        logger.info(f"Disconnected {service} for agent {agent_id}")

    async def test_connection(self, agent_id: str, service: str) -> Dict[str, Any]:
        """
        Check the stored credentials against the live service.

        Returns ``{"success": True, "identity": ...}`` or
        ``{"success": False, "error": ...}``. A store outage or an unreadable
        payload is raised, not reported as a failed test.
        """
        connector = self.get_connector(service)

        credentials = self.credential_service.get_credentials(agent_id, service)
        if credentials is None:
            return {"success": False, "error": f"No {service} credentials found"}

        try:
            identity = await connector.test_connection(credentials)
        except ProviderError as e:
            logger.warning(f"{service} connection test failed for agent {agent_id}: {e.message}")
            return {"success": False, "error": e.message}
        except ValueError as e:
            logger.warning(f"{service} connection test failed for agent {agent_id}: {str(e)}")
            return {"success": False, "error": str(e)}

        logger.info(f"{service} connection test succeeded for agent {agent_id}")
        return {"success": True, "identity": identity}

    def list_connections(self, agent_id: str) -> List[Dict[str, Any]]:
        """Status of every registered connector joined with its display metadata."""
        connections = []
        for service, connector in self.connectors.items():
            status = self.status_resolver.get_connection_status(agent_id, service).to_dict()
            status.update({
                "displayName": connector.display_name,
                "icon": connector.icon,
                "color": connector.color,
                "description": connector.description,
                "configured": connector.is_configured(),
            })
            connections.append(status)
        return connections
