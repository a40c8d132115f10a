"""Network routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from api.dependencies import get_engine, require_operation
from api.errors import engine_errors, ok
from api.models import (
    ConnectNetworkRequest,
    CreateNetworkRequest,
    DisconnectNetworkRequest,
    PruneRequest,
    parse_filters,
)
from engine.interface import EngineClient
from guard.operational_guard import Operation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/networks", tags=["networks"])


@router.get("")
async def list_networks(
    filters: Optional[str] = Query(None, description="JSON-encoded engine filters"),
    engine: EngineClient = Depends(get_engine)
):
    parsed = parse_filters(filters)
    with engine_errors("list networks"):
        networks = await engine.list_networks(filters=parsed)
    return ok(networks)


@router.post("", dependencies=[Depends(require_operation(Operation.NETWORK_CREATE))])
async def create_network(request: CreateNetworkRequest, engine: EngineClient = Depends(get_engine)):
    with engine_errors(f"create network {request.Name}"):
        result = await engine.create_network(
            request.Name,
            driver=request.Driver,
            options=request.Options,
            ipam=request.IPAM,
            labels=request.Labels,
            internal=request.Internal,
            attachable=request.Attachable
        )
    logger.info(f"Created network {request.Name} ({(result.get('Id') or '')[:12]})")
    return ok(result, f"Network {request.Name} created successfully")


@router.post("/prune", dependencies=[Depends(require_operation(Operation.NETWORK_PRUNE))])
async def prune_networks(
    body: Optional[PruneRequest] = Body(None),
    engine: EngineClient = Depends(get_engine)
):
    """Remove networks not used by any container."""
    filters = body.filters if body else None
    with engine_errors("prune networks"):
        result = await engine.prune_networks(filters=filters)
    deleted = result.get('NetworksDeleted') or []
    logger.info(f"Pruned {len(deleted)} networks")
    return ok(result)


@router.get("/{network_id}")
async def inspect_network(network_id: str, engine: EngineClient = Depends(get_engine)):
    with engine_errors(f"inspect network {network_id}"):
        data = await engine.inspect_network(network_id)
    return ok(data)


@router.delete("/{network_id}", dependencies=[Depends(require_operation(Operation.NETWORK_REMOVE))])
async def remove_network(network_id: str, engine: EngineClient = Depends(get_engine)):
    with engine_errors(f"remove network {network_id}"):
        await engine.remove_network(network_id)
    logger.info(f"Removed network {network_id}")
    return ok(message=f"Network {network_id} removed successfully")


@router.post("/{network_id}/connect", dependencies=[Depends(require_operation(Operation.NETWORK_CONNECT))])
async def connect_container(
    network_id: str,
    request: ConnectNetworkRequest,
    engine: EngineClient = Depends(get_engine)
):
    with engine_errors(f"connect {request.Container} to network {network_id}"):
        await engine.connect_network(network_id, request.Container, endpoint_config=request.EndpointConfig)
    logger.info(f"Connected container {request.Container} to network {network_id}")
    return ok(message=f"Container {request.Container} connected to network {network_id}")


@router.post("/{network_id}/disconnect", dependencies=[Depends(require_operation(Operation.NETWORK_DISCONNECT))])
async def disconnect_container(
    network_id: str,
    request: DisconnectNetworkRequest,
    engine: EngineClient = Depends(get_engine)
):
    with engine_errors(f"disconnect {request.Container} from network {network_id}"):
        await engine.disconnect_network(network_id, request.Container, force=request.Force)
    logger.info(f"Disconnected container {request.Container} from network {network_id}")
    return ok(message=f"Container {request.Container} disconnected from network {network_id}")
