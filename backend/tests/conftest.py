"""
Shared pytest fixtures for Dockpanel tests.

Fixtures provided:
- fake_engine: FakeEngineClient, an in-memory EngineClient that records calls
- fake_downstream: FakeDownstream, a DownstreamConnection with a settable
  pending-bytes gauge
- mock_docker_client: Mock Docker SDK client (for the Docker adapter)
- make_client: Factory for a FastAPI TestClient around a given engine

Helpers:
- ScriptedUpstream: UpstreamStream fed from the test (push/finish/fail)
- frame(): Build one multiplexed log frame
- wait_for(): Poll an async condition with a timeout
"""

import asyncio
import os
import struct
import sys
from typing import Any, Callable, Dict, List, Optional, Tuple
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from config.settings import AppConfig
from engine.interface import EngineClient, EventStreamOptions, LogStreamOptions
from engine.streams import UpstreamStream
from relay.downstream import DownstreamConnection


def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (may require Docker, network, etc.)")


# =============================================================================
# Upstream / downstream doubles
# =============================================================================

def frame(stream_type: int, payload: bytes) -> bytes:
    """One multiplexed log frame: 8-byte header + payload."""
    return struct.pack(">BxxxI", stream_type, len(payload)) + payload


class ScriptedUpstream(UpstreamStream):
    """
    Upstream whose chunks are supplied by the test.

    Chunks given to the constructor are available immediately. finish() ends
    the stream, fail() makes the next read raise.
    """

    def __init__(self, chunks: Optional[List[bytes]] = None, multiplexed: bool = False, finished: bool = False):
        self.multiplexed = multiplexed
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False
        self.close_calls = 0
        for chunk in chunks or []:
            self.push(chunk)
        if finished:
            self.finish()

    def push(self, chunk: bytes) -> None:
        self._queue.put_nowait(chunk)

    def finish(self) -> None:
        self._queue.put_nowait(None)

    def fail(self, error: Exception) -> None:
        self._queue.put_nowait(error)

    async def read_chunk(self) -> Optional[bytes]:
        if self.closed:
            return None
        item = await self._queue.get()
        if isinstance(item, Exception):
            raise item
        return item

    def close(self) -> None:
        self.close_calls += 1
        self.closed = True


class FakeDownstream(DownstreamConnection):
    """In-memory client connection. Set `buffered` to simulate a slow client."""

    def __init__(self):
        self.sent: List[str] = []
        self.buffered = 0
        self.close_calls = 0
        self.close_code: Optional[int] = None
        self.close_reason: Optional[str] = None
        self._closed = False
        self._closed_event = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def buffered_amount(self) -> int:
        return self.buffered

    def send_text(self, text: str) -> None:
        if not self._closed:
            self.sent.append(text)

    async def wait_closed(self) -> None:
        await self._closed_event.wait()

    def disconnect(self) -> None:
        """Simulate the client going away."""
        self._closed = True
        self._closed_event.set()

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.close_calls += 1
        if not self._closed:
            self.close_code = code
            self.close_reason = reason
        self._closed = True
        self._closed_event.set()


async def wait_for(condition: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll until condition() is true or fail after timeout seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("Timed out waiting for condition")
        await asyncio.sleep(0.01)


# =============================================================================
# Engine double
# =============================================================================

class FakeEngineClient(EngineClient):
    """
    EngineClient with canned responses.

    Attributes:
        calls: (method, args, kwargs) for every call, in order
        responses: method name -> return value
        errors: method name -> exception to raise
        streams: 'logs' / 'stats' / 'events' -> UpstreamStream to hand out
    """

    def __init__(self):
        self.calls: List[Tuple[str, tuple, dict]] = []
        self.responses: Dict[str, Any] = {}
        self.errors: Dict[str, Exception] = {}
        self.streams: Dict[str, UpstreamStream] = {}
        self.ping_result = True
        self.closed = False

    def calls_to(self, name: str) -> List[Tuple[tuple, dict]]:
        return [(args, kwargs) for method, args, kwargs in self.calls if method == name]

    def called(self, name: str) -> bool:
        return bool(self.calls_to(name))

    async def _handle(self, name: str, args: tuple = (), kwargs: Optional[dict] = None, default: Any = None) -> Any:
        self.calls.append((name, args, kwargs or {}))
        if name in self.errors:
            raise self.errors[name]
        return self.responses.get(name, default)

    # Streams

    async def open_log_stream(self, container_id: str, options: LogStreamOptions) -> UpstreamStream:
        await self._handle('open_log_stream', (container_id, options))
        return self.streams['logs']

    async def open_stats_stream(self, container_id: str, streaming: bool) -> UpstreamStream:
        await self._handle('open_stats_stream', (container_id, streaming))
        return self.streams['stats']

    async def open_event_stream(self, options: EventStreamOptions) -> UpstreamStream:
        await self._handle('open_event_stream', (options,))
        return self.streams['events']

    # Containers

    async def list_containers(self, all=False, limit=None, size=False, filters=None):
        return await self._handle('list_containers', (), dict(all=all, limit=limit, size=size, filters=filters), [])

    async def inspect_container(self, container_id):
        return await self._handle('inspect_container', (container_id,), default={'Id': container_id})

    async def create_container(self, config, name=None):
        return await self._handle('create_container', (config,), dict(name=name), {'Id': 'new123', 'Warnings': []})

    async def start_container(self, container_id):
        await self._handle('start_container', (container_id,))

    async def stop_container(self, container_id, timeout=None):
        await self._handle('stop_container', (container_id,), dict(timeout=timeout))

    async def restart_container(self, container_id, timeout=None):
        await self._handle('restart_container', (container_id,), dict(timeout=timeout))

    async def kill_container(self, container_id, signal="SIGKILL"):
        await self._handle('kill_container', (container_id,), dict(signal=signal))

    async def remove_container(self, container_id, force=False, volumes=False, link=False):
        await self._handle('remove_container', (container_id,), dict(force=force, volumes=volumes, link=link))

    async def prune_containers(self, filters=None):
        return await self._handle('prune_containers', (), dict(filters=filters),
                                  {'ContainersDeleted': [], 'SpaceReclaimed': 0})

    # Images

    async def list_images(self, all=False, filters=None):
        return await self._handle('list_images', (), dict(all=all, filters=filters), [])

    async def inspect_image(self, image_id):
        return await self._handle('inspect_image', (image_id,), default={'Id': image_id})

    async def pull_image(self, repository, tag=None, auth_config=None):
        return await self._handle('pull_image', (repository,), dict(tag=tag, auth_config=auth_config),
                                  {'status': f'Downloaded newer image for {repository}'})

    async def remove_image(self, image_id, force=False, noprune=False):
        return await self._handle('remove_image', (image_id,), dict(force=force, noprune=noprune),
                                  [{'Untagged': image_id}])

    async def prune_images(self, filters=None):
        return await self._handle('prune_images', (), dict(filters=filters),
                                  {'ImagesDeleted': [], 'SpaceReclaimed': 0})

    # Volumes

    async def list_volumes(self, filters=None):
        return await self._handle('list_volumes', (), dict(filters=filters), {'Volumes': [], 'Warnings': None})

    async def inspect_volume(self, name):
        return await self._handle('inspect_volume', (name,), default={'Name': name})

    async def create_volume(self, name=None, driver="local", driver_opts=None, labels=None):
        return await self._handle('create_volume', (), dict(name=name, driver=driver, driver_opts=driver_opts,
                                                            labels=labels), {'Name': name or 'anon', 'Driver': driver})

    async def remove_volume(self, name, force=False):
        await self._handle('remove_volume', (name,), dict(force=force))

    async def prune_volumes(self, filters=None):
        return await self._handle('prune_volumes', (), dict(filters=filters),
                                  {'VolumesDeleted': [], 'SpaceReclaimed': 0})

    # Networks

    async def list_networks(self, filters=None):
        return await self._handle('list_networks', (), dict(filters=filters), [])

    async def inspect_network(self, network_id):
        return await self._handle('inspect_network', (network_id,), default={'Id': network_id})

    async def create_network(self, name, driver="bridge", options=None, ipam=None, labels=None,
                             internal=False, attachable=False):
        return await self._handle('create_network', (name,), dict(driver=driver, options=options, ipam=ipam,
                                                                  labels=labels, internal=internal,
                                                                  attachable=attachable),
                                  {'Id': 'net123', 'Warning': ''})

    async def remove_network(self, network_id):
        await self._handle('remove_network', (network_id,))

    async def connect_network(self, network_id, container, endpoint_config=None):
        await self._handle('connect_network', (network_id, container), dict(endpoint_config=endpoint_config))

    async def disconnect_network(self, network_id, container, force=False):
        await self._handle('disconnect_network', (network_id, container), dict(force=force))

    async def prune_networks(self, filters=None):
        return await self._handle('prune_networks', (), dict(filters=filters), {'NetworksDeleted': []})

    # System

    async def info(self):
        return await self._handle('info', default={'Containers': 0, 'Images': 0})

    async def disk_usage(self):
        return await self._handle('disk_usage', default={'LayersSize': 0})

    async def version(self):
        return await self._handle('version', default={'Version': '27.0.0', 'ApiVersion': '1.46'})

    async def ping(self):
        self.calls.append(('ping', (), {}))
        return self.ping_result

    async def close(self):
        self.closed = True


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def fake_engine():
    return FakeEngineClient()


@pytest.fixture
def fake_downstream():
    return FakeDownstream()


@pytest.fixture
def mock_docker_client():
    """
    Mock Docker SDK client for testing without real Docker daemon.

    Only the low-level APIClient (client.api) is used by the adapter.
    """
    client = MagicMock()
    client.api.ping = MagicMock(return_value=True)
    client.api.inspect_container = MagicMock(return_value={
        'Id': 'abc123def456789012345678901234567890123456789012345678901234',
        'Config': {'Image': 'nginx:latest', 'Tty': False, 'Labels': {}},
        'State': {'Status': 'running'},
    })
    return client


@pytest.fixture
def make_client():
    """
    Build a TestClient around an engine double.

    Usage:
        client = make_client(fake_engine, safe_mode=True)
        client = make_client(fake_engine, rate_limit_max=2, rate_limit_window=60)
    """
    from fastapi.testclient import TestClient
    from main import create_app

    def _make(engine: EngineClient, safe_mode: bool = False, backpressure_bytes: int = 1_000_000, **overrides):
        config = AppConfig(safe_mode=safe_mode, backpressure_bytes=backpressure_bytes, **overrides)
        return TestClient(create_app(engine=engine, config=config))

    return _make
