"""Container log relay."""

from config.settings import DEFAULT_BACKPRESSURE_BYTES
from engine.interface import EngineClient, LogStreamOptions
from engine.streams import UpstreamStream
from relay.demux import FrameDemuxer, PassthroughDecoder
from relay.downstream import DownstreamConnection
from relay.session import RelaySession


async def open_log_relay(
    engine: EngineClient,
    downstream: DownstreamConnection,
    container_id: str,
    options: LogStreamOptions,
    backpressure_bytes: int = DEFAULT_BACKPRESSURE_BYTES
) -> RelaySession:
    """
    Relay a container's logs to the client until either side closes.

    Every message is prefixed with "OUT " or "ERR " according to the channel
    the bytes were written to.

    Returns:
        The finished session (for its counters)
    """
    session = RelaySession(downstream, f"log relay {container_id[:12]}", backpressure_bytes)

    async def pump(upstream: UpstreamStream) -> None:
        decoder = FrameDemuxer() if upstream.multiplexed else PassthroughDecoder()
        while True:
            chunk = await upstream.read_chunk()
            if chunk is None:
                break
            for channel, text in decoder.feed(chunk):
                session.forward(channel.prefix + text)
        for channel, text in decoder.flush():
            session.forward(channel.prefix + text)

    await session.run(lambda: engine.open_log_stream(container_id, options), pump)
    return session
