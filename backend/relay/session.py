"""
Relay session lifecycle.

A RelaySession binds one UpstreamStream to one DownstreamConnection:

    OPENING -> RELAYING -> CLOSING -> CLOSED
       |                     ^
       +---------------------+   (open failure)

While RELAYING two tasks run side by side: the pump, which reads the upstream
and forwards records, and a watcher waiting for the downstream to close.
Whichever finishes first ends the session; the other is cancelled and
cleanup() tears down both sides.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from config.settings import DEFAULT_BACKPRESSURE_BYTES
from engine.errors import EngineError
from engine.streams import UpstreamStream
from relay.downstream import DownstreamConnection

logger = logging.getLogger(__name__)

# WebSocket close codes
CLOSE_NORMAL = 1000
CLOSE_POLICY_VIOLATION = 1008
CLOSE_INTERNAL_ERROR = 1011

Opener = Callable[[], Awaitable[UpstreamStream]]
Pump = Callable[[UpstreamStream], Awaitable[None]]


class RelayState(Enum):
    OPENING = "opening"
    RELAYING = "relaying"
    CLOSING = "closing"
    CLOSED = "closed"


class RelaySession:
    """
    One streaming connection between the engine and a client.

    Attributes:
        downstream: Client connection (owned by this session)
        upstream: Engine stream, set once opened (owned by this session)
        backpressure_bytes: Records are dropped while the downstream has more
                            than this many bytes queued
        forwarded: Number of records sent downstream
        dropped: Number of records dropped under backpressure
    """

    def __init__(
        self,
        downstream: DownstreamConnection,
        name: str = "relay",
        backpressure_bytes: int = DEFAULT_BACKPRESSURE_BYTES
    ):
        self.downstream = downstream
        self.name = name
        self.backpressure_bytes = backpressure_bytes
        self.state = RelayState.OPENING
        self.upstream: Optional[UpstreamStream] = None
        self.forwarded = 0
        self.dropped = 0
        self._tasks: List[asyncio.Task] = []

    def forward(self, text: str) -> bool:
        """
        Send one record downstream unless the client is gone or saturated.

        Returns:
            True if the record was queued for sending
        """
        if self.downstream.closed:
            return False
        if self.downstream.buffered_amount > self.backpressure_bytes:
            self.dropped += 1
            logger.debug(
                f"{self.name}: dropping record ({len(text)} chars), "
                f"{self.downstream.buffered_amount} bytes pending"
            )
            return False
        self.downstream.send_text(text)
        self.forwarded += 1
        return True

    def send_diagnostic(self, message: str) -> None:
        """Send a plain-text error frame to the client."""
        if not self.downstream.closed:
            self.downstream.send_text(f"Error: {message}")

    async def run(self, opener: Opener, pump: Pump) -> None:
        """
        Open the upstream, relay until either side ends, then clean up.

        Never raises for upstream or downstream failures; they are reported to
        the client as a diagnostic frame and end the session.
        """
        close_code = CLOSE_NORMAL
        reason = ""
        try:
            try:
                self.upstream = await opener()
            except EngineError as e:
                logger.warning(f"{self.name}: failed to open stream: {e.message}")
                self.send_diagnostic(e.message)
                close_code, reason = CLOSE_INTERNAL_ERROR, "Failed to open stream"
                return
            except Exception as e:
                logger.error(f"{self.name}: failed to open stream: {e}", exc_info=True)
                self.send_diagnostic(str(e) or e.__class__.__name__)
                close_code, reason = CLOSE_INTERNAL_ERROR, "Failed to open stream"
                return

            if self.state is not RelayState.OPENING:
                # cleanup() ran while we were opening and could not see this stream
                self.upstream.close()
                return
            self.state = RelayState.RELAYING
            logger.info(f"{self.name}: relaying")

            pump_task = asyncio.create_task(pump(self.upstream))
            watch_task = asyncio.create_task(self.downstream.wait_closed())
            self._tasks = [pump_task, watch_task]

            done, pending = await asyncio.wait(self._tasks, return_when=asyncio.FIRST_COMPLETED)
            await self._cancel(pending)

            if pump_task in done and not pump_task.cancelled():
                error = pump_task.exception()
                if error is not None:
                    logger.warning(f"{self.name}: upstream failed: {error}")
                    self.send_diagnostic(f"stream failed: {error}")
                    close_code, reason = CLOSE_INTERNAL_ERROR, "Upstream error"
        finally:
            await self._cancel([task for task in self._tasks if not task.done()])
            await self.cleanup(close_code, reason)

    async def _cancel(self, tasks) -> None:
        for task in tasks:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug(f"{self.name}: task ended with {e}")

    async def cleanup(self, code: int = CLOSE_NORMAL, reason: str = "") -> None:
        """
        Tear down the session. Safe to call any number of times.

        The upstream is closed exactly once, before anything is awaited.
        """
        if self.state in (RelayState.CLOSING, RelayState.CLOSED):
            return
        self.state = RelayState.CLOSING

        if self.upstream is not None:
            try:
                self.upstream.close()
            except Exception as e:
                logger.debug(f"{self.name}: error closing upstream: {e}")

        try:
            await self.downstream.close(code, reason)
        except Exception as e:
            logger.debug(f"{self.name}: error closing downstream: {e}")

        self.state = RelayState.CLOSED
        logger.info(f"{self.name}: closed (forwarded={self.forwarded}, dropped={self.dropped})")
