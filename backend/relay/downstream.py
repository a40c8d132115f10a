"""
Client-facing side of a relay session.

WebSocketDownstream wraps a Starlette WebSocket. Sends are enqueued and
written by a background writer task, so the relay never waits on the client;
the bytes still sitting in that queue are the connection's pending-bytes
gauge used for backpressure. A second task watches for the client's
disconnect message.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

_CLOSE = object()

# Seconds close() waits for queued frames to reach a client before giving up
CLOSE_DRAIN_TIMEOUT = 5.0


class DownstreamConnection(ABC):
    """Duplex message connection to exactly one client."""

    @property
    @abstractmethod
    def closed(self) -> bool:
        """True once either peer has closed (or a send has failed)."""

    @property
    @abstractmethod
    def buffered_amount(self) -> int:
        """Bytes accepted by send_text() but not yet written to the client."""

    @abstractmethod
    def send_text(self, text: str) -> None:
        """Queue a text frame. Never blocks; ignored after close."""

    @abstractmethod
    async def wait_closed(self) -> None:
        """Resolve when either peer closes the connection."""

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None:
        """Flush queued frames, then close. Idempotent."""


class WebSocketDownstream(DownstreamConnection):
    """DownstreamConnection over an accepted FastAPI WebSocket."""

    def __init__(self, websocket: WebSocket, drain_timeout: float = CLOSE_DRAIN_TIMEOUT):
        self.websocket = websocket
        self.drain_timeout = drain_timeout
        self._queue: "asyncio.Queue" = asyncio.Queue()
        self._buffered = 0
        self._closed = False
        self._close_started = False
        self._closed_event = asyncio.Event()
        self._writer_task: Optional[asyncio.Task] = None
        self._reader_task: Optional[asyncio.Task] = None

    def start(self) -> None:
        """Start the writer and disconnect-watcher tasks."""
        if self._writer_task is None:
            self._writer_task = asyncio.create_task(self._write_loop())
            self._reader_task = asyncio.create_task(self._read_loop())

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def buffered_amount(self) -> int:
        return self._buffered

    def send_text(self, text: str) -> None:
        if self._closed or self._close_started:
            return
        size = len(text.encode("utf-8"))
        self._buffered += size
        self._queue.put_nowait((text, size))

    async def wait_closed(self) -> None:
        await self._closed_event.wait()

    def _mark_closed(self) -> None:
        self._closed = True
        self._closed_event.set()

    async def _write_loop(self) -> None:
        while True:
            item = await self._queue.get()
            if item is _CLOSE:
                break
            text, size = item
            try:
                await self.websocket.send_text(text)
            except Exception as e:
                logger.debug(f"WebSocket send failed: {e}")
                self._mark_closed()
                break
            finally:
                self._buffered -= size

    async def _read_loop(self) -> None:
        try:
            while True:
                # Clients do not send anything on relay connections; only watch for disconnect
                message = await self.websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
        except WebSocketDisconnect:
            logger.debug("WebSocket disconnected")
        except Exception as e:
            logger.debug(f"WebSocket read ended: {e}")
        finally:
            self._mark_closed()

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self._close_started:
            return
        self._close_started = True

        writer = self._writer_task
        if writer is not None:
            if self._closed:
                writer.cancel()
            else:
                # Let queued frames reach the client before the close frame
                self._queue.put_nowait(_CLOSE)
                done, _ = await asyncio.wait({writer}, timeout=self.drain_timeout)
                if not done:
                    logger.debug(
                        f"Client not reading, dropping {self._buffered} queued bytes at close"
                    )
                    writer.cancel()
            await _await_quietly(writer)

        if not self._closed:
            try:
                await asyncio.wait_for(self.websocket.close(code=code, reason=reason), self.drain_timeout)
            except Exception as e:
                logger.debug(f"WebSocket close failed: {e}")

        self._mark_closed()

        if self._reader_task is not None:
            self._reader_task.cancel()
            await _await_quietly(self._reader_task)

        self._drop_queue()

    def _drop_queue(self) -> None:
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is not _CLOSE:
                self._buffered -= item[1]


async def _await_quietly(task: asyncio.Task) -> None:
    try:
        await task
    except asyncio.CancelledError:
        pass
