"""Liveness endpoint."""

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from api.dependencies import get_engine
from engine.interface import EngineClient

router = APIRouter(prefix="/api", tags=["health"])

_started_at = time.monotonic()


@router.get("/health")
async def health_check(engine: EngineClient = Depends(get_engine)):
    """
    Report service liveness and engine reachability.

    Always 200; `docker` is false when the engine does not answer a ping.
    """
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - _started_at, 3),
        "docker": await engine.ping(),
    }
