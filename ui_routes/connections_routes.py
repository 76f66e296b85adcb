"""
Connection Routes
=================

Service-agnostic endpoints the dashboard uses to list an agent's
connections, check and test them, and disconnect them.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from auth.connection_service import ConnectionService
from auth.credential_service import parse_service_name
from errors import ConnectionsError, InvalidRequest, to_http_exception
from models import utcnow
from runtime import get_connection_service

# Set up logging
logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/api/connections", tags=["Connections"])


class AgentRequest(BaseModel):
    """Request body identifying the agent a connection belongs to."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    agent_id: str


def require_agent_id(agent_id: Optional[str]) -> str:
    if not agent_id:
        raise to_http_exception(InvalidRequest("Agent ID is required"))
    return agent_id


@router.get("")
async def list_connections(
    agent_id: Optional[str] = Query(None, alias="agentId"),
    connections: ConnectionService = Depends(get_connection_service)
):
    """List every available connection with its status for the agent."""
    require_agent_id(agent_id)
    return {
        "agentId": agent_id,
        "connections": connections.list_connections(agent_id),
        "lastUpdated": utcnow().isoformat(),
    }


@router.get("/{service}/status")
async def connection_status(
    service: str,
    agent_id: Optional[str] = Query(None, alias="agentId"),
    connections: ConnectionService = Depends(get_connection_service)
):
    require_agent_id(agent_id)
    try:
        parse_service_name(service)
    except ConnectionsError as e:
        raise to_http_exception(e)
    return connections.get_status(agent_id, service)


@router.post("/{service}/disconnect")
async def disconnect_service(
    service: str,
    body: AgentRequest,
    connections: ConnectionService = Depends(get_connection_service)
):
    require_agent_id(body.agent_id)
    try:
        connections.disconnect(body.agent_id, service)
    except ConnectionsError as e:
        logger.error(f"Error disconnecting {service}: {type(e).__name__}: {e.message}")
        raise to_http_exception(e)
    return {"success": True, "message": f"{service} disconnected successfully"}


@router.post("/{service}/test")
async def test_service_connection(
    service: str,
    body: AgentRequest,
    connections: ConnectionService = Depends(get_connection_service)
):
    """
    Test the stored credentials against the live service.

    A rejected or missing credential is reported in the body with
    ``success: false``; only store and decryption failures are HTTP errors.
    """
    require_agent_id(body.agent_id)
    try:
        return await connections.test_connection(body.agent_id, service)
    except ConnectionsError as e:
        logger.error(f"Error testing {service} connection: {type(e).__name__}: {e.message}")
        raise to_http_exception(e)
