"""
Demultiplexing of container log streams.

A non-TTY container's log stream combines stdout and stderr on one connection.
Each frame has an 8-byte header:
  - byte 0: stream type (0 = stdin, 1 = stdout, 2 = stderr, 3 = system error)
  - bytes 1-3: padding (zero)
  - bytes 4-7: payload length (big-endian uint32)

Frames are not aligned with the chunks the HTTP layer hands us: one chunk may
hold several frames, and a header or payload may be split across chunks.
"""

import codecs
import logging
import struct
from enum import Enum
from typing import Dict, List, Tuple

logger = logging.getLogger(__name__)

HEADER_SIZE = 8
_HEADER_FORMAT = ">BxxxI"  # 1 byte type, 3 padding, 4 byte length


class Channel(str, Enum):
    """Logical output channel of a container."""

    STDOUT = "stdout"
    STDERR = "stderr"

    @property
    def prefix(self) -> str:
        """Tag put in front of every message relayed from this channel."""
        return "OUT " if self is Channel.STDOUT else "ERR "


# stdin echo is written on stdout; daemon-side errors on stderr
_STREAM_TYPES = {
    0: Channel.STDOUT,
    1: Channel.STDOUT,
    2: Channel.STDERR,
    3: Channel.STDERR,
}

DecodedMessage = Tuple[Channel, str]


def _utf8_decoder():
    return codecs.getincrementaldecoder("utf-8")(errors="replace")


class FrameDemuxer:
    """
    Incremental parser for the multiplexed log protocol.

    feed() accepts arbitrary chunks and returns one (channel, text) pair per
    complete non-empty frame, in arrival order. Each channel keeps its own
    UTF-8 decoder so a character split across two frames of the same channel
    is reassembled.
    """

    def __init__(self):
        self._buffer = bytearray()
        self._decoders: Dict[Channel, codecs.IncrementalDecoder] = {
            channel: _utf8_decoder() for channel in Channel
        }

    @property
    def pending_bytes(self) -> int:
        """Bytes received but not yet part of a complete frame."""
        return len(self._buffer)

    def feed(self, chunk: bytes) -> List[DecodedMessage]:
        self._buffer.extend(chunk)
        messages: List[DecodedMessage] = []

        while len(self._buffer) >= HEADER_SIZE:
            stream_type, length = struct.unpack_from(_HEADER_FORMAT, self._buffer)
            frame_end = HEADER_SIZE + length
            if len(self._buffer) < frame_end:
                break

            payload = bytes(self._buffer[HEADER_SIZE:frame_end])
            del self._buffer[:frame_end]

            channel = _STREAM_TYPES.get(stream_type)
            if channel is None:
                logger.debug(f"Skipping frame with unknown stream type {stream_type} ({length} bytes)")
                continue

            text = self._decoders[channel].decode(payload)
            if text:
                messages.append((channel, text))

        return messages

    def flush(self) -> List[DecodedMessage]:
        """Emit whatever the decoders still hold at end of stream."""
        if self._buffer:
            logger.debug(f"Discarding {len(self._buffer)} bytes of truncated frame at end of stream")
            self._buffer.clear()

        messages: List[DecodedMessage] = []
        for channel, decoder in self._decoders.items():
            text = decoder.decode(b"", final=True)
            if text:
                messages.append((channel, text))
        return messages


class PassthroughDecoder:
    """
    Decoder for TTY log streams, which carry no frame headers.

    Everything is reported on stdout, one message per chunk.
    """

    def __init__(self):
        self._decoder = _utf8_decoder()

    def feed(self, chunk: bytes) -> List[DecodedMessage]:
        text = self._decoder.decode(chunk)
        return [(Channel.STDOUT, text)] if text else []

    def flush(self) -> List[DecodedMessage]:
        text = self._decoder.decode(b"", final=True)
        return [(Channel.STDOUT, text)] if text else []
