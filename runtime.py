"""
Agent runtime
=============

The host side of the connections service: a per-agent settings accessor and
a lookup-by-name service locator. ``build_runtime`` wires the core services
together and registers the connection facade under ``"auth"``.
"""

import logging
import uuid
from datetime import timedelta
from typing import Any, Callable, Dict, Mapping, Optional

from fastapi import Request
from sqlalchemy.orm import Session

from auth.connection_service import ConnectionService
from auth.credential_service import CredentialService
from auth.encryption_service import EncryptionService
from auth.oauth_service import OAuthService
from auth.session_cache import SessionCache
from auth.status_service import ConnectionStatusResolver
from config import Settings, get_settings
from errors import ConnectionsError
from plugins import ServiceConnector

logger = logging.getLogger(__name__)

AUTH_SERVICE = "auth"


class AgentRuntime:
    """
    Runtime context for one agent.

    Settings registered with ``set_setting`` shadow the process configuration,
    which in turn is read from the environment through ``Settings``.
    """

    def __init__(self, agent_id: Optional[str] = None, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.agent_id = agent_id or self.settings.AGENT_ID or str(uuid.uuid4())
        self._overrides: Dict[str, Any] = {}
        self._services: Dict[str, Any] = {}

    def get_setting(self, name: str, default: Any = None) -> Any:
        if name in self._overrides:
            return self._overrides[name]
        return getattr(self.settings, name, default)

    def set_setting(self, name: str, value: Any) -> None:
        self._overrides[name] = value

    def register_service(self, name: str, service: Any) -> None:
        logger.info(f"Registering runtime service: {name}")
        self._services[name] = service

    def get_service(self, name: str) -> Optional[Any]:
        return self._services.get(name)


def build_runtime(
    settings: Optional[Settings] = None,
    session_factory: Optional[Callable[[], Session]] = None,
    connectors: Optional[Mapping[str, ServiceConnector]] = None,
    agent_id: Optional[str] = None,
) -> AgentRuntime:
    """
    Create a runtime with the connection services registered.

    Args:
        settings (Optional[Settings]): Process configuration; defaults to ``get_settings()``
        session_factory: SQLAlchemy session factory; defaults to ``database.SessionLocal``
        connectors (Optional[Mapping[str, ServiceConnector]]): Connector per service;
            defaults to every connector the plugin manager discovers
        agent_id (Optional[str]): Overrides ``Settings.AGENT_ID``
    """
    settings = settings or get_settings()

    if session_factory is None:
        from database import SessionLocal
        session_factory = SessionLocal

    if connectors is None:
        from plugin_manager import plugin_manager
        plugin_manager.discover_plugins()
        connectors = plugin_manager.get_connectors()

    runtime = AgentRuntime(agent_id=agent_id, settings=settings)

    encryption_service = EncryptionService(settings.AUTH_ENCRYPTION_KEY)
    credential_service = CredentialService(session_factory, encryption_service)
    cache = SessionCache(
        max_entries=settings.OAUTH_CACHE_MAX_ENTRIES,
        ttl=timedelta(minutes=settings.OAUTH_SESSION_TTL_MINUTES),
    )
    oauth_service = OAuthService(
        cache,
        credential_service,
        connectors,
        session_ttl=timedelta(minutes=settings.OAUTH_SESSION_TTL_MINUTES),
    )
    status_resolver = ConnectionStatusResolver(credential_service, services=list(connectors))

    runtime.register_service(
        AUTH_SERVICE,
        ConnectionService(oauth_service, credential_service, status_resolver, connectors),
    )
    logger.info(f"Runtime ready for agent {runtime.agent_id} with services: {', '.join(connectors) or 'none'}")
    return runtime


def load_saved_credentials(runtime: AgentRuntime) -> bool:
    """
    Publish the agent's stored Twitter access token into the runtime settings.

    Only runs when Twitter API keys are configured. Failures are logged and
    never stop startup.

    Returns:
        bool: True if stored credentials were loaded
    """
    connection_service: Optional[ConnectionService] = runtime.get_service(AUTH_SERVICE)
    if connection_service is None:
        logger.warning("Auth service not available during initialization")
        return False

    connector = connection_service.connectors.get("twitter")
    if connector is None or not connector.is_configured():
        logger.info("Twitter API keys not configured, skipping saved credentials")
        return False

    api_key = connector.settings.API_KEY
    api_secret_key = connector.settings.API_SECRET_KEY

    try:
        saved = connection_service.credential_service.get_credentials(runtime.agent_id, "twitter")
    except ConnectionsError as e:
        logger.error(f"Failed to load saved Twitter credentials: {type(e).__name__}: {e.message}")
        return False

    if not saved or not saved.get("accessToken") or not saved.get("accessTokenSecret"):
        logger.info("No saved Twitter credentials found for this agent")
        return False

    if saved.get("apiKey") != api_key:
        logger.warning("Twitter API key changed since these credentials were stored")
    if saved.get("apiSecretKey") != api_secret_key:
        logger.warning("Twitter API secret changed since these credentials were stored")

    runtime.set_setting("TWITTER_API_KEY", api_key)
    runtime.set_setting("TWITTER_API_SECRET_KEY", api_secret_key)
    runtime.set_setting("TWITTER_ACCESS_TOKEN", saved["accessToken"])
    runtime.set_setting("TWITTER_ACCESS_TOKEN_SECRET", saved["accessTokenSecret"])

    logger.info(f"Twitter credentials loaded from database (user: @{saved.get('username')})")
    return True


def get_runtime(request: Request) -> AgentRuntime:
    """FastAPI dependency returning the runtime the app was started with."""
    return request.app.state.runtime


def get_connection_service(request: Request) -> ConnectionService:
    """FastAPI dependency returning the connection facade."""
    return get_runtime(request).get_service(AUTH_SERVICE)
