# plugin_manager.py
"""
Plugin Manager for the Connections Service
==========================================

This module provides utilities for discovering, loading, and managing plugins in the
connections service. It is the central coordination point for plugin operations:
discovery, instantiation, and access to the routers plugins contribute.

The PluginManager class provides a facade over the lower-level plugin registry in
``plugins``. Plugin packages register themselves when imported, so discovery is
nothing more than importing every package under ``plugins/``.

Usage:
------
The plugin_manager is instantiated as a singleton at the module level and should be
imported and used directly by application code:

    from plugin_manager import plugin_manager

    # Discover available plugins
    plugin_manager.discover_plugins()

    # Get a connector instance by service name
    twitter = plugin_manager.create_connector("twitter")
"""

import importlib
import logging
import os
from typing import Dict, Type, Optional

from fastapi import APIRouter

from plugins import (
    RoutePlugin,
    ServiceConnector,
    get_all_connectors,
    get_all_route_plugins,
    get_connector,
)

logger = logging.getLogger(__name__)

class PluginManager:
    """
    Manager for connections service plugins.

    Plugins are not loaded during initialization; ``discover_plugins`` must be
    called to import the plugin packages, which register their classes.
    """

    def __init__(self, plugin_dir: Optional[str] = None):
        self._plugin_dir = plugin_dir or os.path.join(os.path.dirname(__file__), "plugins")
        self._loaded_plugins = set()

    def discover_plugins(self):
        """
        Import every plugin package in the plugins directory.

        Each package is expected to register its plugins with the registry on
        import. A package that fails to import is logged and skipped so one
        broken provider does not take the others down.
        """
        for item in sorted(os.listdir(self._plugin_dir)):
            if os.path.isdir(os.path.join(self._plugin_dir, item)) and not item.startswith('__'):
                module_name = f"plugins.{item}"
                if module_name not in self._loaded_plugins:
                    try:
                        importlib.import_module(module_name)
                        self._loaded_plugins.add(module_name)
                        logger.info(f"Discovered plugin: {module_name}")
                    except ImportError as e:
                        logger.error(f"Error loading plugin {module_name}: {e}")

    def get_connector_class(self, service_name: str) -> Optional[Type[ServiceConnector]]:
        return get_connector(service_name)

    def create_connector(self, service_name: str, **kwargs) -> Optional[ServiceConnector]:
        """
        Create an instance of a service connector.

        Args:
            service_name (str): The service the connector handles, e.g. "twitter"
            **kwargs: Passed to the connector constructor

        Returns:
            Optional[ServiceConnector]: A connector instance, or None if none is registered
        """
        plugin_class = self.get_connector_class(service_name)
        if plugin_class:
            return plugin_class(**kwargs)
        return None

    def get_connectors(self) -> Dict[str, ServiceConnector]:
        """Instantiate every registered connector, keyed by service name."""
        return {
            service_name: plugin_class()
            for service_name, plugin_class in get_all_connectors().items()
        }

    def get_service_routers(self) -> Dict[str, APIRouter]:
        """
        Get the routers of all registered route plugins, keyed by service name.

        Example:
            >>> routers = plugin_manager.get_service_routers()
            >>> for service_name, router in routers.items():
            ...     app.include_router(router)
        """
        routers = {}
        for service_name, plugin_class in get_all_route_plugins().items():
            plugin: RoutePlugin = plugin_class()
            routers[service_name] = plugin.get_router()
            logger.info(f"Found route plugin: {service_name}")
        return routers

# Create a singleton instance
plugin_manager = PluginManager()
