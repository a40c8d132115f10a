"""
WebSocket streaming endpoints: container logs, container stats, engine events.

Each connection is accepted first; invalid query parameters and engine
failures are then reported as a single "Error: ..." text frame before the
socket is closed.
"""

import logging

from fastapi import APIRouter, Depends, WebSocket
from pydantic import ValidationError

from api.dependencies import get_config, get_engine
from api.models import EventStreamQuery, LogStreamQuery, StatsStreamQuery, describe_validation_error
from config.settings import AppConfig
from engine.interface import EngineClient
from relay.downstream import WebSocketDownstream
from relay.events import open_events_relay
from relay.logs import open_log_relay
from relay.session import CLOSE_POLICY_VIOLATION
from relay.stats import open_stats_relay

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["streams"])


async def _open_downstream(websocket: WebSocket) -> WebSocketDownstream:
    await websocket.accept()
    downstream = WebSocketDownstream(websocket)
    downstream.start()
    return downstream


async def _reject(downstream: WebSocketDownstream, error: ValidationError) -> None:
    message = describe_validation_error(error)
    logger.warning(f"Rejected stream request: {message}")
    downstream.send_text(f"Error: invalid parameters: {message}")
    await downstream.close(CLOSE_POLICY_VIOLATION, "Invalid parameters")


@router.websocket("/containers/{container_id}/logs")
async def container_logs(
    websocket: WebSocket,
    container_id: str,
    engine: EngineClient = Depends(get_engine),
    config: AppConfig = Depends(get_config)
):
    """Stream container logs; frames are prefixed "OUT " or "ERR "."""
    downstream = await _open_downstream(websocket)
    try:
        query = LogStreamQuery.model_validate(dict(websocket.query_params))
    except ValidationError as e:
        await _reject(downstream, e)
        return

    await open_log_relay(engine, downstream, container_id, query.to_options(), config.backpressure_bytes)


@router.websocket("/containers/{container_id}/stats")
async def container_stats(
    websocket: WebSocket,
    container_id: str,
    engine: EngineClient = Depends(get_engine),
    config: AppConfig = Depends(get_config)
):
    """Send container stats as raw JSON text; one record unless stream=true."""
    downstream = await _open_downstream(websocket)
    try:
        query = StatsStreamQuery.model_validate(dict(websocket.query_params))
    except ValidationError as e:
        await _reject(downstream, e)
        return

    await open_stats_relay(engine, downstream, container_id, query.stream, config.backpressure_bytes)


@router.websocket("/system/events")
async def system_events(
    websocket: WebSocket,
    engine: EngineClient = Depends(get_engine),
    config: AppConfig = Depends(get_config)
):
    """Stream engine events as raw JSON text, optionally filtered."""
    downstream = await _open_downstream(websocket)
    try:
        query = EventStreamQuery.model_validate(dict(websocket.query_params))
    except ValidationError as e:
        await _reject(downstream, e)
        return

    await open_events_relay(engine, downstream, query.to_options(), config.backpressure_bytes)
