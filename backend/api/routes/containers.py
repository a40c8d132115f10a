"""
Container routes.

All destructive actions (create, start, stop, restart, kill, remove, prune)
are gated by the operational guard before the engine is called.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from api.dependencies import get_engine, require_operation
from api.errors import engine_errors, ok
from api.models import (
    CreateContainerRequest,
    KillContainerRequest,
    PruneRequest,
    StopContainerRequest,
    parse_filters,
)
from engine.interface import EngineClient
from guard.operational_guard import Operation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/containers", tags=["containers"])


@router.get("")
async def list_containers(
    all: bool = Query(False, description="Include stopped containers"),
    limit: Optional[int] = Query(None, ge=1, description="Return only the most recent N containers"),
    size: bool = Query(False, description="Include size information"),
    filters: Optional[str] = Query(None, description="JSON-encoded engine filters"),
    engine: EngineClient = Depends(get_engine)
):
    """List containers (running only unless all=true)."""
    parsed = parse_filters(filters)
    with engine_errors("list containers"):
        containers = await engine.list_containers(all=all, limit=limit, size=size, filters=parsed)
    return ok(containers)


@router.post("", dependencies=[Depends(require_operation(Operation.CONTAINER_CREATE))])
async def create_container(
    config: CreateContainerRequest,
    name: Optional[str] = Query(None, description="Container name"),
    engine: EngineClient = Depends(get_engine)
):
    """
    Create a container from an engine container config.

    Returns:
        {"success": True, "data": {"Id": ..., "Warnings": [...]}}
    """
    with engine_errors("create container"):
        result = await engine.create_container(config.model_dump(exclude_none=True), name=name)
    logger.info(f"Created container {(result.get('Id') or '')[:12]} from {config.Image}")
    return ok(result, "Container created successfully")


@router.post("/prune", dependencies=[Depends(require_operation(Operation.CONTAINER_PRUNE))])
async def prune_containers(
    body: Optional[PruneRequest] = Body(None),
    engine: EngineClient = Depends(get_engine)
):
    """Remove all stopped containers."""
    filters = body.filters if body else None
    with engine_errors("prune containers"):
        result = await engine.prune_containers(filters=filters)
    deleted = result.get('ContainersDeleted') or []
    logger.info(f"Pruned {len(deleted)} containers, reclaimed {result.get('SpaceReclaimed', 0)} bytes")
    return ok(result)


@router.get("/{container_id}")
async def inspect_container(container_id: str, engine: EngineClient = Depends(get_engine)):
    with engine_errors(f"inspect container {container_id}"):
        data = await engine.inspect_container(container_id)
    return ok(data)


@router.post("/{container_id}/start", dependencies=[Depends(require_operation(Operation.CONTAINER_START))])
async def start_container(container_id: str, engine: EngineClient = Depends(get_engine)):
    with engine_errors(f"start container {container_id}"):
        await engine.start_container(container_id)
    logger.info(f"Started container {container_id}")
    return ok(message=f"Container {container_id} started successfully")


@router.post("/{container_id}/stop", dependencies=[Depends(require_operation(Operation.CONTAINER_STOP))])
async def stop_container(
    container_id: str,
    body: Optional[StopContainerRequest] = Body(None),
    engine: EngineClient = Depends(get_engine)
):
    timeout = body.t if body else None
    with engine_errors(f"stop container {container_id}"):
        await engine.stop_container(container_id, timeout=timeout)
    logger.info(f"Stopped container {container_id}")
    return ok(message=f"Container {container_id} stopped successfully")


@router.post("/{container_id}/restart", dependencies=[Depends(require_operation(Operation.CONTAINER_RESTART))])
async def restart_container(
    container_id: str,
    body: Optional[StopContainerRequest] = Body(None),
    engine: EngineClient = Depends(get_engine)
):
    timeout = body.t if body else None
    with engine_errors(f"restart container {container_id}"):
        await engine.restart_container(container_id, timeout=timeout)
    logger.info(f"Restarted container {container_id}")
    return ok(message=f"Container {container_id} restarted successfully")


@router.post("/{container_id}/kill", dependencies=[Depends(require_operation(Operation.CONTAINER_KILL))])
async def kill_container(
    container_id: str,
    body: Optional[KillContainerRequest] = Body(None),
    engine: EngineClient = Depends(get_engine)
):
    signal = body.signal if body else "SIGKILL"
    with engine_errors(f"kill container {container_id}"):
        await engine.kill_container(container_id, signal=signal)
    logger.info(f"Sent {signal} to container {container_id}")
    return ok(message=f"Container {container_id} killed successfully")


@router.delete("/{container_id}", dependencies=[Depends(require_operation(Operation.CONTAINER_REMOVE))])
async def remove_container(
    container_id: str,
    force: bool = Query(False, description="Kill the container first if it is running"),
    v: bool = Query(False, description="Remove anonymous volumes"),
    link: bool = Query(False, description="Remove the specified link only"),
    engine: EngineClient = Depends(get_engine)
):
    with engine_errors(f"remove container {container_id}"):
        await engine.remove_container(container_id, force=force, volumes=v, link=link)
    logger.info(f"Removed container {container_id}")
    return ok(message=f"Container {container_id} removed successfully")
