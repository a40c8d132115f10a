"""Container resource-usage relay."""

import json
import logging

from config.settings import DEFAULT_BACKPRESSURE_BYTES
from engine.interface import EngineClient
from engine.streams import UpstreamStream
from relay.downstream import DownstreamConnection
from relay.framing import iter_records
from relay.session import RelaySession

logger = logging.getLogger(__name__)


async def open_stats_relay(
    engine: EngineClient,
    downstream: DownstreamConnection,
    container_id: str,
    streaming: bool = True,
    backpressure_bytes: int = DEFAULT_BACKPRESSURE_BYTES
) -> RelaySession:
    """
    Relay a container's stats records as raw JSON text.

    With streaming=False the session ends after the first valid record. A
    record that is not valid JSON is reported to the client and skipped.
    """
    session = RelaySession(downstream, f"stats relay {container_id[:12]}", backpressure_bytes)

    async def pump(upstream: UpstreamStream) -> None:
        async for record in iter_records(upstream):
            try:
                json.loads(record)
            except ValueError as e:
                logger.warning(f"{session.name}: malformed stats record: {e}")
                session.send_diagnostic(f"malformed stats record: {e}")
                continue

            session.forward(record)
            if not streaming:
                break

    await session.run(lambda: engine.open_stats_stream(container_id, streaming), pump)
    return session
