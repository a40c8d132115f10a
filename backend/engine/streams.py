"""
Upstream streams opened against the container engine.

An UpstreamStream is owned by exactly one relay session. The session pulls
byte chunks with read_chunk() and destroys the stream with close() when any
side of the session terminates.
"""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterator, Optional

from utils.async_docker import async_next_chunk

logger = logging.getLogger(__name__)


class UpstreamStream(ABC):
    """
    Live engine-sourced source of byte chunks.

    Attributes:
        multiplexed: True when chunks carry the engine's 8-byte frame headers
                     (stdout and stderr combined on one stream)
    """

    multiplexed: bool = False

    @abstractmethod
    async def read_chunk(self) -> Optional[bytes]:
        """
        Wait for the next chunk.

        Returns:
            Raw bytes, or None at end of stream

        Raises:
            Exception: Any upstream failure (connection reset, protocol error)
        """

    @abstractmethod
    def close(self) -> None:
        """Destroy the stream and release its connection. Must be idempotent."""


class BlockingUpstreamStream(UpstreamStream):
    """
    Adapts a blocking chunk iterator from the Docker SDK.

    Each read runs next() on a single worker thread owned by this stream, so
    an idle follow stream holds its own thread and never a slot in the
    default pool used by one-shot engine calls. close() is synchronous and
    unblocks a read that is in flight by shutting the underlying socket.
    """

    def __init__(
        self,
        chunks: Iterator[bytes],
        closer: Callable[[], None],
        multiplexed: bool = False,
        description: str = "upstream"
    ):
        """
        Args:
            chunks: Blocking iterator of raw byte chunks
            closer: Callable that releases the HTTP response / socket
            multiplexed: Whether chunks carry 8-byte frame headers
            description: Used in log messages
        """
        self._chunks = chunks
        self._closer = closer
        self.multiplexed = multiplexed
        self.description = description
        self._closed = False
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="upstream-read")

    @property
    def closed(self) -> bool:
        return self._closed

    async def read_chunk(self) -> Optional[bytes]:
        if self._closed:
            return None
        try:
            chunk = await async_next_chunk(self._chunks, self._executor)
        except RuntimeError:
            # Executor shut down by close() between the check above and the read
            if self._closed:
                return None
            raise
        if chunk is None or self._closed:
            return None
        return chunk

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._closer()
        except Exception as e:
            # Socket may already be gone if the daemon ended the stream
            logger.debug(f"Error closing {self.description}: {e}")
        # The worker exits once the read it may be blocked in returns
        self._executor.shutdown(wait=False, cancel_futures=True)
        logger.debug(f"Closed {self.description}")
