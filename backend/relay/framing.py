"""Newline-delimited record framing for stats and event streams."""

from typing import AsyncIterator, List

from engine.streams import UpstreamStream


class LineBuffer:
    """
    Splits a byte stream into text records on newlines.

    Blank lines are skipped and a trailing carriage return is removed. A
    record with no trailing newline is returned by flush().
    """

    def __init__(self):
        self._buffer = bytearray()

    def feed(self, chunk: bytes) -> List[str]:
        self._buffer.extend(chunk)
        records: List[str] = []

        while True:
            index = self._buffer.find(b"\n")
            if index < 0:
                break
            line = bytes(self._buffer[:index])
            del self._buffer[:index + 1]
            record = self._decode(line)
            if record:
                records.append(record)

        return records

    def flush(self) -> List[str]:
        line = bytes(self._buffer)
        self._buffer.clear()
        record = self._decode(line)
        return [record] if record else []

    @staticmethod
    def _decode(line: bytes) -> str:
        return line.decode("utf-8", errors="replace").rstrip("\r").strip()


async def iter_records(upstream: UpstreamStream) -> AsyncIterator[str]:
    """Yield newline-delimited records from an upstream until it ends."""
    lines = LineBuffer()
    while True:
        chunk = await upstream.read_chunk()
        if chunk is None:
            break
        for record in lines.feed(chunk):
            yield record
    for record in lines.flush():
        yield record
