"""
Image routes.

Pulling is additive and stays available in safe mode; remove and prune are
gated.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from api.dependencies import get_engine, require_operation
from api.errors import engine_errors, ok
from api.models import PruneRequest, PullImageRequest, parse_filters
from engine.interface import EngineClient
from guard.operational_guard import Operation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/images", tags=["images"])


@router.get("")
async def list_images(
    all: bool = Query(False, description="Include intermediate images"),
    filters: Optional[str] = Query(None, description="JSON-encoded engine filters"),
    engine: EngineClient = Depends(get_engine)
):
    parsed = parse_filters(filters)
    with engine_errors("list images"):
        images = await engine.list_images(all=all, filters=parsed)
    return ok(images)


@router.post("/pull", dependencies=[Depends(require_operation(Operation.IMAGE_PULL))])
async def pull_image(request: PullImageRequest, engine: EngineClient = Depends(get_engine)):
    """
    Pull an image and wait for the pull to finish.

    Returns:
        The engine's final status record, e.g. {"status": "Downloaded newer image for nginx:latest"}
    """
    reference = f"{request.repoTag}:{request.tag}" if request.tag else request.repoTag
    with engine_errors(f"pull image {reference}"):
        result = await engine.pull_image(request.repoTag, tag=request.tag, auth_config=request.authconfig)
    return ok(result, f"Image {reference} pulled successfully")


@router.post("/prune", dependencies=[Depends(require_operation(Operation.IMAGE_PRUNE))])
async def prune_images(
    body: Optional[PruneRequest] = Body(None),
    engine: EngineClient = Depends(get_engine)
):
    """Remove unused images (dangling only unless filters say otherwise)."""
    filters = body.filters if body else None
    with engine_errors("prune images"):
        result = await engine.prune_images(filters=filters)

    # Count only actual image deletions (not layer deletions)
    images_deleted = result.get('ImagesDeleted') or []
    removed_count = len([i for i in images_deleted if i.get('Deleted')])
    logger.info(f"Pruned {removed_count} images, reclaimed {result.get('SpaceReclaimed', 0)} bytes")
    return ok(result)


@router.get("/{image_id:path}")
async def inspect_image(image_id: str, engine: EngineClient = Depends(get_engine)):
    with engine_errors(f"inspect image {image_id}"):
        data = await engine.inspect_image(image_id)
    return ok(data)


@router.delete("/{image_id:path}", dependencies=[Depends(require_operation(Operation.IMAGE_REMOVE))])
async def remove_image(
    image_id: str,
    force: bool = Query(False),
    noprune: bool = Query(False, description="Keep untagged parent images"),
    engine: EngineClient = Depends(get_engine)
):
    with engine_errors(f"remove image {image_id}"):
        result = await engine.remove_image(image_id, force=force, noprune=noprune)
    logger.info(f"Removed image {image_id}")
    return ok(result, f"Image {image_id} removed successfully")
