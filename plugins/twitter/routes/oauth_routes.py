# plugins/twitter/routes/oauth_routes.py
"""
Twitter OAuth Routes
====================

HTTP endpoints for connecting an agent's Twitter account with OAuth 1.0a.
The routes are thin: they parse the request, call the connection service
and translate typed failures into HTTP responses.

Routes (mounted under ``/api/auth/twitter``):
- POST /connect: Start the handshake and return the authorization URL
- GET /callback: Twitter redirects here after the user authorizes the app
- GET /status: Connection status for an agent
- POST /disconnect: Revoke the agent's stored credentials
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from auth.connection_service import ConnectionService
from auth.oauth_service import add_query_params
from errors import ConnectionsError, InvalidRequest, to_http_exception
from plugins import RoutePlugin
from runtime import get_connection_service

logger = logging.getLogger(__name__)

SERVICE = "twitter"


class ConnectRequest(BaseModel):
    """Request model for starting a Twitter connection."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    agent_id: str
    return_url: Optional[str] = None


class DisconnectRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    agent_id: str


def _require_agent_id(agent_id: Optional[str]) -> str:
    if not agent_id:
        raise to_http_exception(InvalidRequest("Agent ID is required"))
    return agent_id


def _failure_redirect(return_url: str, error_type: str) -> RedirectResponse:
    return RedirectResponse(
        add_query_params(return_url, {"success": "false", "service": SERVICE, "error": error_type}),
        status_code=303
    )


class TwitterOAuthRoutes(RoutePlugin):
    """
    Plugin for Twitter OAuth routes.

    Class Attributes:
        service_name (str): The unique identifier for this plugin
    """

    service_name = SERVICE

    def get_router(self) -> APIRouter:
        """
        Get the router for Twitter OAuth routes.

        Returns:
            APIRouter: FastAPI router with Twitter OAuth routes
        """
        router = APIRouter(prefix="/api/auth/twitter", tags=["twitter", "oauth"])

        @router.post("/connect")
        async def twitter_connect(
            body: ConnectRequest,
            connections: ConnectionService = Depends(get_connection_service)
        ):
            """
            Initiate the Twitter OAuth flow for an agent.

            Returns:
                dict: ``authUrl`` to send the user to, plus ``state`` and ``requestToken``
            """
            _require_agent_id(body.agent_id)
            try:
                return await connections.initiate_connection(body.agent_id, SERVICE, body.return_url)
            except ConnectionsError as e:
                logger.error(f"Error initiating Twitter OAuth: {type(e).__name__}: {e.message}")
                raise to_http_exception(e)

        @router.get("/callback")
        async def twitter_oauth_callback(
            oauth_token: Optional[str] = Query(None),
            oauth_verifier: Optional[str] = Query(None),
            state: Optional[str] = Query(None),
            agent_id: Optional[str] = Query(None, alias="agentId"),
            connections: ConnectionService = Depends(get_connection_service)
        ):
            """
            Handle the redirect back from Twitter.

            Redirects to the return URL given at connect time, with the outcome
            in ``success`` (and ``error`` on failure). Without a return URL the
            identity JSON is returned, or the error as a JSON response.
            """
            return_url = connections.get_return_url(state, agent_id, SERVICE)

            try:
                result = await connections.handle_callback({
                    "oauth_token": oauth_token,
                    "oauth_verifier": oauth_verifier,
                    "state": state,
                    "agentId": agent_id,
                }, service=SERVICE)
            except ConnectionsError as e:
                if return_url:
                    return _failure_redirect(return_url, type(e).__name__)
                raise to_http_exception(e)
            except Exception as e:
                logger.error(f"Unexpected error in Twitter OAuth callback: {type(e).__name__}: {str(e)}")
                if return_url:
                    return _failure_redirect(return_url, "InternalError")
                raise HTTPException(
                    status_code=500,
                    detail={"error": "Twitter OAuth callback failed", "type": "InternalError"}
                )

            redirect_url = result.redirect_url()
            if redirect_url:
                return RedirectResponse(redirect_url, status_code=303)
            return result.to_dict()

        @router.get("/status")
        async def twitter_status(
            agent_id: Optional[str] = Query(None, alias="agentId"),
            connections: ConnectionService = Depends(get_connection_service)
        ):
            """Connection status for the agent's Twitter account."""
            return connections.get_status(_require_agent_id(agent_id), SERVICE)

        @router.post("/disconnect")
        async def twitter_disconnect(
            body: DisconnectRequest,
            connections: ConnectionService = Depends(get_connection_service)
        ):
            _require_agent_id(body.agent_id)
            try:
                connections.disconnect(body.agent_id, SERVICE)
            except ConnectionsError as e:
                raise to_http_exception(e)
            return {"success": True, "message": "Twitter account disconnected"}

        return router
