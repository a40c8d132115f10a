"""Prometheus scrape endpoint."""

from fastapi import APIRouter, Request, Response

router = APIRouter(tags=["metrics"])


@router.get("/metrics")
async def metrics(request: Request):
    """Process metrics and request counters in the Prometheus text format."""
    request_metrics = request.app.state.metrics
    return Response(content=request_metrics.render(), media_type=request_metrics.content_type)
