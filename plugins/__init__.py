# plugins/__init__.py
"""
Plugin System for the Connections Service
==========================================

This module provides the foundation for the plugin architecture of the
connections service. It defines the base interfaces that service integrations
implement and the registry the rest of the application dispatches through.

The plugin system supports two types of plugins:
1. Service Connectors: Run the authorization handshake with an external
   service and describe the shape of the credentials it produces
2. Route Plugins: Provide HTTP endpoints specific to one service

The core never branches on a service name. It looks the connector up in the
registry, so adding a provider means adding a package under ``plugins/`` that
registers its connector; the handshake engine stays untouched.

Adding a New Plugin:
------------------
1. Create a new directory under 'plugins/'
2. Implement a ServiceConnector (and optionally a RoutePlugin)
3. Register them in the __init__.py of your plugin package
"""

from dataclasses import dataclass
from typing import Dict, Type, TypeVar, Optional, Any, Tuple
import logging
from enum import Enum

from pydantic import BaseModel

logger = logging.getLogger(__name__)

# Type definitions
T = TypeVar('T', bound='PluginBase')

class PluginType(str, Enum):
    """
    Types of plugins supported by the system.

    Types:
        CONNECTOR: Plugins that authorize against an external service
        ROUTE: Plugins that provide HTTP endpoints
    """
    CONNECTOR = "connector"
    ROUTE = "route"

class PluginBase:
    """
    Base class for all plugins.

    Class Attributes:
        plugin_type (PluginType): The type of plugin
        service_name (str): Unique identifier for the service this plugin supports
                           (e.g., "twitter")
    """

    plugin_type: PluginType
    service_name: str

    @classmethod
    def get_metadata(cls) -> Dict[str, Any]:
        """
        Return metadata about the plugin for discovery and introspection.

        Returns:
            Dict[str, Any]: Dictionary containing plugin_type, service_name and class_name
        """
        return {
            "plugin_type": cls.plugin_type,
            "service_name": cls.service_name,
            "class_name": cls.__name__
        }


@dataclass
class AuthorizationRequest:
    """
    Result of the first leg of an OAuth 1.0a handshake.

    ``request_token_secret`` must stay server-side; only ``auth_url`` and
    ``request_token`` are ever returned to a client.
    """
    auth_url: str
    request_token: str
    request_token_secret: str


class ServiceConnector(PluginBase):
    """
    Base class for service connectors.

    A connector knows how to talk to one external service: how to start and
    finish its authorization handshake, how to look up the identity behind a
    set of credentials, and what those credentials look like.

    Class Attributes:
        plugin_type (PluginType): Set to CONNECTOR for all connectors
        display_name (str): Human readable name shown in connection listings
        icon (str): Icon identifier for the dashboard
        color (str): Brand color for the dashboard
        description (str): One-line description of what connecting enables
        credential_model (Type[BaseModel]): Shape of the stored credential payload
    """

    plugin_type = PluginType.CONNECTOR
    display_name: str = ""
    icon: str = ""
    color: str = "#6B7280"
    description: str = ""
    credential_model: Optional[Type[BaseModel]] = None

    def is_configured(self) -> bool:
        """Return True when the connector has the API keys it needs."""
        return True

    def ensure_configured(self) -> None:
        """
        Raise ConfigurationError if the connector cannot run a handshake.

        Raises:
            ConfigurationError: If required provider settings are missing
        """

    def get_callback_url(self) -> Optional[str]:
        """Return the configured callback endpoint for the handshake, if any."""
        return None

    async def get_authorization_url(self, callback_url: Optional[str] = None) -> AuthorizationRequest:
        """
        Obtain a request token and the URL the user must visit to authorize it.

        Args:
            callback_url (Optional[str]): Where the provider should send the user back

        Returns:
            AuthorizationRequest: The authorization URL and request token pair

        Raises:
            NotImplementedError: If the subclass doesn't implement this method
        """
        raise NotImplementedError("Subclasses must implement get_authorization_url")

    async def exchange_token(self, request_token: str, request_token_secret: str, verifier: str) -> Tuple[str, str]:
        """
        Exchange an authorized request token for a permanent access token.

        Returns:
            Tuple[str, str]: The access token and access token secret

        Raises:
            NotImplementedError: If the subclass doesn't implement this method
        """
        raise NotImplementedError("Subclasses must implement exchange_token")

    async def fetch_identity(self, access_token: str, access_token_secret: str) -> Dict[str, Any]:
        """
        Look up the account the access token belongs to.

        Returns:
            Dict[str, Any]: At least ``id`` and ``username``

        Raises:
            NotImplementedError: If the subclass doesn't implement this method
        """
        raise NotImplementedError("Subclasses must implement fetch_identity")

    def build_credentials(self, access_token: str, access_token_secret: str, identity: Dict[str, Any]) -> Dict[str, Any]:
        """
        Combine the access token pair and identity into the payload to store.

        Raises:
            NotImplementedError: If the subclass doesn't implement this method
        """
        raise NotImplementedError("Subclasses must implement build_credentials")

    async def test_connection(self, credentials: Dict[str, Any]) -> Dict[str, Any]:
        """
        Check stored credentials against the live service.

        Returns:
            Dict[str, Any]: The identity the credentials resolve to

        Raises:
            NotImplementedError: If the subclass doesn't implement this method
        """
        raise NotImplementedError("Subclasses must implement test_connection")


class RoutePlugin(PluginBase):
    """
    Base class for plugins that provide their own routes.

    Class Attributes:
        plugin_type (PluginType): Set to ROUTE for all route plugins
    """

    plugin_type = PluginType.ROUTE

    def get_router(self):
        """
        Get the router for this plugin's routes.

        Returns:
            fastapi.APIRouter: The router with all plugin-specific routes

        Raises:
            NotImplementedError: If the subclass doesn't implement this method
        """
        raise NotImplementedError("Subclasses must implement get_router")


# Plugin registry
_connectors: Dict[str, Type[ServiceConnector]] = {}
_route_plugins: Dict[str, Type[RoutePlugin]] = {}

def register_connector(plugin_class: Type[ServiceConnector]) -> None:
    """
    Register a service connector class under its service name.

    Args:
        plugin_class (Type[ServiceConnector]): The connector class to register

    Raises:
        TypeError: If plugin_class is not a ServiceConnector subclass
    """
    if not issubclass(plugin_class, ServiceConnector):
        raise TypeError(f"{plugin_class.__name__} is not a ServiceConnector")

    logger.info(f"Registering connector: {plugin_class.service_name}")
    _connectors[plugin_class.service_name] = plugin_class

def register_route_plugin(plugin_class: Type[RoutePlugin]) -> None:
    """
    Register a route plugin class under its service name.

    Args:
        plugin_class (Type[RoutePlugin]): The route plugin class to register
    """
    if not issubclass(plugin_class, RoutePlugin):
        raise TypeError(f"{plugin_class.__name__} is not a RoutePlugin")

    logger.info(f"Registering route plugin: {plugin_class.service_name}")
    _route_plugins[plugin_class.service_name] = plugin_class

def get_connector(service_name: str) -> Optional[Type[ServiceConnector]]:
    """Return the connector class registered for a service, or None."""
    return _connectors.get(service_name)

def get_all_connectors() -> Dict[str, Type[ServiceConnector]]:
    """Return a copy of the connector registry."""
    return _connectors.copy()

def get_all_route_plugins() -> Dict[str, Type[RoutePlugin]]:
    """Return a copy of the route plugin registry."""
    return _route_plugins.copy()

def get_credential_model(service_name: str) -> Optional[Type[BaseModel]]:
    """
    Return the payload model registered for a service.

    Services without a connector, or whose connector declares no model,
    accept any JSON object as their credential payload.
    """
    connector = _connectors.get(service_name)
    if connector is None:
        return None
    return connector.credential_model
