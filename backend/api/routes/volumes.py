"""Volume routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from api.dependencies import get_engine, require_operation
from api.errors import engine_errors, ok
from api.models import CreateVolumeRequest, PruneRequest, parse_filters
from engine.interface import EngineClient
from guard.operational_guard import Operation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/volumes", tags=["volumes"])


@router.get("")
async def list_volumes(
    filters: Optional[str] = Query(None, description="JSON-encoded engine filters"),
    engine: EngineClient = Depends(get_engine)
):
    """List volumes. data is the engine document: {"Volumes": [...], "Warnings": [...]}."""
    parsed = parse_filters(filters)
    with engine_errors("list volumes"):
        volumes = await engine.list_volumes(filters=parsed)
    return ok(volumes)


@router.post("", dependencies=[Depends(require_operation(Operation.VOLUME_CREATE))])
async def create_volume(request: CreateVolumeRequest, engine: EngineClient = Depends(get_engine)):
    with engine_errors("create volume"):
        volume = await engine.create_volume(
            name=request.Name,
            driver=request.Driver,
            driver_opts=request.DriverOpts,
            labels=request.Labels
        )
    logger.info(f"Created volume {volume.get('Name')}")
    return ok(volume, "Volume created successfully")


@router.post("/prune", dependencies=[Depends(require_operation(Operation.VOLUME_PRUNE))])
async def prune_volumes(
    body: Optional[PruneRequest] = Body(None),
    engine: EngineClient = Depends(get_engine)
):
    filters = body.filters if body else None
    with engine_errors("prune volumes"):
        result = await engine.prune_volumes(filters=filters)
    deleted = result.get('VolumesDeleted') or []
    logger.info(f"Pruned {len(deleted)} volumes, reclaimed {result.get('SpaceReclaimed', 0)} bytes")
    return ok(result)


@router.get("/{name}")
async def inspect_volume(name: str, engine: EngineClient = Depends(get_engine)):
    with engine_errors(f"inspect volume {name}"):
        data = await engine.inspect_volume(name)
    return ok(data)


@router.delete("/{name}", dependencies=[Depends(require_operation(Operation.VOLUME_REMOVE))])
async def remove_volume(
    name: str,
    force: bool = Query(False),
    engine: EngineClient = Depends(get_engine)
):
    with engine_errors(f"remove volume {name}"):
        await engine.remove_volume(name, force=force)
    logger.info(f"Removed volume {name}")
    return ok(message=f"Volume {name} removed successfully")
