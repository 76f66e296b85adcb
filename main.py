# Standard library imports
import logging
from typing import Optional

# Third-party imports
from fastapi import FastAPI, Request

# Local imports
from config import get_settings
from database import init_db
from errors import StoreUnavailable, to_http_exception
from runtime import AUTH_SERVICE, AgentRuntime, build_runtime, load_saved_credentials

# Plugin system
from plugin_manager import plugin_manager

# Get settings
settings = get_settings()

# Set up logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Import routers
from ui_routes import router as connections_router


def create_app(runtime: Optional[AgentRuntime] = None) -> FastAPI:
    """
    Build the application around a runtime.

    Without a runtime, the database tables are created, plugins are
    discovered and a runtime is built from the process settings.
    """
    app = FastAPI(title="Agent Connections Service")

    # Initialize plugins first; they register the connectors and routes
    plugin_manager.discover_plugins()

    if runtime is None:
        init_db()
        runtime = build_runtime(settings)
        load_saved_credentials(runtime)

    app.state.runtime = runtime

    # Register routers
    app.include_router(connections_router)

    # Include service-specific routers from plugins
    service_routers = plugin_manager.get_service_routers()
    for service_name, router in service_routers.items():
        app.include_router(router)
        logger.info(f"Mounted routes for service: {service_name}")

    @app.get("/health")
    async def health(request: Request):
        """Report whether the credential store is reachable."""
        connections = request.app.state.runtime.get_service(AUTH_SERVICE)
        try:
            connections.credential_service.validate_connection()
        except StoreUnavailable as e:
            raise to_http_exception(e)

        encryption = connections.credential_service.encryption_service
        return {
            "status": "ok",
            "agentId": request.app.state.runtime.agent_id,
            "encryptionEnabled": encryption.is_enabled(),
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        log_level=settings.LOG_LEVEL.lower(),
        use_colors=True
    )
