"""
Async wrappers for Docker SDK to prevent event loop blocking.

The official Docker SDK (docker-py) is synchronous. These wrappers use asyncio.to_thread()
to run blocking calls in a thread pool, keeping the asyncio event loop responsive.

Streaming reads are different: a read from a follow-mode log, stats or event
stream blocks until the daemon sends data, which can be minutes. Those reads
run on an executor owned by the stream (see engine.streams), never on the
default pool that one-shot calls share.

Usage:
    from utils.async_docker import async_docker_call, async_next_chunk

    # Generic wrapper
    info = await async_docker_call(client.api.info)

    # Pull one chunk from a blocking stream iterator (None at end of stream)
    chunk = await async_next_chunk(stream, executor)
"""

import asyncio
from concurrent.futures import Executor
from typing import Callable, Iterator, Optional, TypeVar

# Type variable for generic return types
T = TypeVar('T')

_END_OF_STREAM = object()


async def async_docker_call(sync_fn: Callable[..., T], *args, **kwargs) -> T:
    """
    Execute a synchronous Docker SDK call in a thread pool.

    Uses asyncio.to_thread() which delegates to the default ThreadPoolExecutor.
    No new thread pool and no new connections are created; the call uses the
    existing client and completes when the thread pool task completes.

    Args:
        sync_fn: Synchronous function to call (e.g., client.api.info)
        *args: Positional arguments to pass to sync_fn
        **kwargs: Keyword arguments to pass to sync_fn

    Returns:
        Result from the synchronous function

    Example:
        containers = await async_docker_call(client.api.containers, all=True)
        await async_docker_call(client.api.stop, 'c1', timeout=10)
    """
    return await asyncio.to_thread(sync_fn, *args, **kwargs)


async def async_next_chunk(stream: Iterator[T], executor: Optional[Executor] = None) -> Optional[T]:
    """
    Read the next item from a blocking iterator without blocking the loop.

    Args:
        stream: Blocking iterator (e.g. a docker CancellableStream)
        executor: Where to run the blocking next() call. Long-lived streams
                  pass their own; None uses the default pool.

    Returns:
        The next item, or None once the iterator is exhausted
    """
    if executor is None:
        item = await asyncio.to_thread(next, stream, _END_OF_STREAM)
    else:
        loop = asyncio.get_running_loop()
        item = await loop.run_in_executor(executor, next, stream, _END_OF_STREAM)
    if item is _END_OF_STREAM:
        return None
    return item
