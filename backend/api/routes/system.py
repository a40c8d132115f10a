"""System-wide routes: engine info, disk usage, version and aggregate prune."""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends

from api.dependencies import get_engine, require_operation
from api.errors import engine_errors, ok
from api.models import PruneRequest
from engine.interface import EngineClient
from guard.operational_guard import Operation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/system", tags=["system"])


@router.get("/info")
async def system_info(engine: EngineClient = Depends(get_engine)):
    with engine_errors("get system info"):
        data = await engine.info()
    return ok(data)


@router.get("/df")
async def disk_usage(engine: EngineClient = Depends(get_engine)):
    with engine_errors("get disk usage"):
        data = await engine.disk_usage()
    return ok(data)


@router.get("/version")
async def engine_version(engine: EngineClient = Depends(get_engine)):
    with engine_errors("get engine version"):
        data = await engine.version()
    return ok(data)


@router.post("/prune", dependencies=[Depends(require_operation(Operation.SYSTEM_PRUNE))])
async def system_prune(
    body: Optional[PruneRequest] = Body(None),
    engine: EngineClient = Depends(get_engine)
):
    """
    Prune stopped containers, unused images, volumes and networks.

    Containers go first so the images, volumes and networks they held become
    unused. Optional body filters ({"filters": {"until": ["24h"]}}) apply to
    all four kinds.

    Returns:
        data keyed by kind: {"containers": ..., "images": ..., "volumes": ..., "networks": ...}
    """
    filters = body.filters if body else None
    results = {}
    with engine_errors("prune containers"):
        results['containers'] = await engine.prune_containers(filters=filters)
    with engine_errors("prune images"):
        results['images'] = await engine.prune_images(filters=filters)
    with engine_errors("prune volumes"):
        results['volumes'] = await engine.prune_volumes(filters=filters)
    with engine_errors("prune networks"):
        results['networks'] = await engine.prune_networks(filters=filters)

    reclaimed = sum((r or {}).get('SpaceReclaimed') or 0 for r in results.values())
    logger.info(f"System prune reclaimed {reclaimed} bytes")
    return ok(results, "System pruned successfully")
