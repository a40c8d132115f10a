"""
Docker implementation of the EngineClient interface.

Uses the Docker SDK for Python's low-level APIClient so responses are the
daemon's own JSON documents. Every blocking call is wrapped with
async_docker_call() to keep the event loop responsive.

Streams (logs, stats, events) are opened as raw streaming HTTP responses with
no read timeout, wrapped in docker's CancellableStream so close() can unblock
a read that is waiting on the daemon.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, TypeVar

import docker
from docker import DockerClient
from docker.errors import APIError, DockerException, NotFound
from docker.types import CancellableStream
from docker.utils import convert_filters
from requests.exceptions import RequestException

from engine.errors import EngineError, EngineUnavailable, ResourceNotFound
from engine.interface import EngineClient, EventStreamOptions, Filters, LogStreamOptions
from engine.streams import BlockingUpstreamStream, UpstreamStream
from utils.async_docker import async_docker_call

logger = logging.getLogger(__name__)

T = TypeVar('T')


def _explain(error: APIError) -> str:
    """Prefer the daemon's explanation over the HTTP status line."""
    explanation = getattr(error, 'explanation', None)
    if isinstance(explanation, bytes):
        explanation = explanation.decode('utf-8', errors='replace')
    return explanation or str(error)


def _flag(value: bool) -> int:
    return 1 if value else 0


class DockerEngineClient(EngineClient):
    """
    Direct connection to the Docker daemon (local socket or TCP URL).

    Wraps all calls with async_docker_call() to prevent event loop blocking
    and translates docker exceptions into engine errors.
    """

    def __init__(self, client: DockerClient):
        """
        Args:
            client: Docker SDK client (its low-level APIClient is used)
        """
        self.client = client
        self.api = client.api

    @classmethod
    def from_socket(cls, socket_path: str, timeout: int = 60) -> 'DockerEngineClient':
        """
        Build a client for a socket path or engine URL.

        Plain paths are treated as unix sockets; values containing a scheme
        (unix://, tcp://, ssh://) are passed through. No connection is made
        until the first call.
        """
        base_url = socket_path if '://' in socket_path else f"unix://{socket_path}"
        logger.info(f"Using Docker engine at {base_url}")
        return cls(docker.DockerClient(base_url=base_url, timeout=timeout))

    async def _call(self, sync_fn: Callable[..., T], *args, **kwargs) -> T:
        """Run a blocking SDK call and translate its exceptions."""
        try:
            return await async_docker_call(sync_fn, *args, **kwargs)
        except NotFound as e:
            raise ResourceNotFound(_explain(e), status_code=404) from e
        except APIError as e:
            raise EngineError(_explain(e), status_code=e.status_code) from e
        except (DockerException, RequestException, OSError) as e:
            raise EngineUnavailable(f"Docker engine unavailable: {e}") from e

    def _open_raw_stream(self, path: str, resource: Optional[str], params: Dict[str, Any]):
        """
        Issue a streaming GET and return its body as a CancellableStream.

        Runs in a worker thread. Raises docker APIError/NotFound for non-2xx
        responses, before any chunk is read.
        """
        url = self.api._url(path, resource) if resource is not None else self.api._url(path)
        response = self.api._get(url, params=params, stream=True, timeout=None)
        try:
            self.api._raise_for_status(response)
        except Exception:
            response.close()
            raise
        stream = CancellableStream(response.iter_content(chunk_size=None), response)
        return stream

    # ==================== Streams ====================

    async def open_log_stream(self, container_id: str, options: LogStreamOptions) -> UpstreamStream:
        params = {
            'follow': _flag(options.follow),
            'stdout': _flag(options.stdout),
            'stderr': _flag(options.stderr),
            'timestamps': _flag(options.timestamps),
            'tail': options.tail,
        }
        if options.since:
            params['since'] = options.since
        if options.until:
            params['until'] = options.until

        def _open():
            # TTY containers write a single raw stream with no frame headers
            attrs = self.api.inspect_container(container_id)
            tty = bool((attrs.get('Config') or {}).get('Tty'))
            return tty, self._open_raw_stream('/containers/{0}/logs', container_id, params)

        tty, stream = await self._call(_open)
        return BlockingUpstreamStream(
            stream,
            stream.close,
            multiplexed=not tty,
            description=f"log stream for {container_id[:12]}"
        )

    async def open_stats_stream(self, container_id: str, streaming: bool) -> UpstreamStream:
        stream = await self._call(
            self._open_raw_stream,
            '/containers/{0}/stats',
            container_id,
            {'stream': _flag(streaming)}
        )
        return BlockingUpstreamStream(
            stream,
            stream.close,
            description=f"stats stream for {container_id[:12]}"
        )

    async def open_event_stream(self, options: EventStreamOptions) -> UpstreamStream:
        params: Dict[str, Any] = {}
        if options.since:
            params['since'] = options.since
        if options.until:
            params['until'] = options.until
        if options.filters:
            params['filters'] = convert_filters(options.filters)

        stream = await self._call(self._open_raw_stream, '/events', None, params)
        return BlockingUpstreamStream(stream, stream.close, description="event stream")

    # ==================== Containers ====================

    async def list_containers(
        self,
        all: bool = False,
        limit: Optional[int] = None,
        size: bool = False,
        filters: Optional[Filters] = None
    ) -> List[Dict[str, Any]]:
        return await self._call(
            self.api.containers,
            all=all,
            limit=limit if limit is not None else -1,
            size=size,
            filters=filters
        )

    async def inspect_container(self, container_id: str) -> Dict[str, Any]:
        return await self._call(self.api.inspect_container, container_id)

    async def create_container(self, config: Dict[str, Any], name: Optional[str] = None) -> Dict[str, Any]:
        return await self._call(self.api.create_container_from_config, config, name=name)

    async def start_container(self, container_id: str) -> None:
        await self._call(self.api.start, container_id)

    async def stop_container(self, container_id: str, timeout: Optional[int] = None) -> None:
        await self._call(self.api.stop, container_id, timeout=timeout)

    async def restart_container(self, container_id: str, timeout: Optional[int] = None) -> None:
        # APIClient.restart defaults to 10 seconds when no timeout is given
        if timeout is None:
            await self._call(self.api.restart, container_id)
        else:
            await self._call(self.api.restart, container_id, timeout=timeout)

    async def kill_container(self, container_id: str, signal: str = "SIGKILL") -> None:
        await self._call(self.api.kill, container_id, signal=signal)

    async def remove_container(
        self,
        container_id: str,
        force: bool = False,
        volumes: bool = False,
        link: bool = False
    ) -> None:
        await self._call(self.api.remove_container, container_id, v=volumes, link=link, force=force)

    async def prune_containers(self, filters: Optional[Filters] = None) -> Dict[str, Any]:
        return await self._call(self.api.prune_containers, filters=filters)

    # ==================== Images ====================

    async def list_images(self, all: bool = False, filters: Optional[Filters] = None) -> List[Dict[str, Any]]:
        return await self._call(self.api.images, all=all, filters=filters)

    async def inspect_image(self, image_id: str) -> Dict[str, Any]:
        return await self._call(self.api.inspect_image, image_id)

    async def pull_image(
        self,
        repository: str,
        tag: Optional[str] = None,
        auth_config: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        def _pull() -> Dict[str, Any]:
            last: Dict[str, Any] = {}
            for record in self.api.pull(
                repository,
                tag=tag,
                stream=True,
                decode=True,
                auth_config=auth_config
            ):
                # Registry failures arrive as progress records, not HTTP errors
                if 'error' in record:
                    raise EngineError(f"Failed to pull {repository}: {record['error']}")
                last = record
            return last

        result = await self._call(_pull)
        logger.info(f"Pulled image {repository}{':' + tag if tag else ''}")
        return result

    async def remove_image(self, image_id: str, force: bool = False, noprune: bool = False) -> List[Dict[str, Any]]:
        return await self._call(self.api.remove_image, image_id, force=force, noprune=noprune)

    async def prune_images(self, filters: Optional[Filters] = None) -> Dict[str, Any]:
        return await self._call(self.api.prune_images, filters=filters)

    # ==================== Volumes ====================

    async def list_volumes(self, filters: Optional[Filters] = None) -> Dict[str, Any]:
        return await self._call(self.api.volumes, filters=filters)

    async def inspect_volume(self, name: str) -> Dict[str, Any]:
        return await self._call(self.api.inspect_volume, name)

    async def create_volume(
        self,
        name: Optional[str] = None,
        driver: str = "local",
        driver_opts: Optional[Dict[str, str]] = None,
        labels: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        return await self._call(
            self.api.create_volume,
            name=name,
            driver=driver,
            driver_opts=driver_opts,
            labels=labels
        )

    async def remove_volume(self, name: str, force: bool = False) -> None:
        await self._call(self.api.remove_volume, name, force=force)

    async def prune_volumes(self, filters: Optional[Filters] = None) -> Dict[str, Any]:
        return await self._call(self.api.prune_volumes, filters=filters)

    # ==================== Networks ====================

    async def list_networks(self, filters: Optional[Filters] = None) -> List[Dict[str, Any]]:
        return await self._call(self.api.networks, filters=filters)

    async def inspect_network(self, network_id: str) -> Dict[str, Any]:
        return await self._call(self.api.inspect_network, network_id)

    async def create_network(
        self,
        name: str,
        driver: str = "bridge",
        options: Optional[Dict[str, str]] = None,
        ipam: Optional[Dict[str, Any]] = None,
        labels: Optional[Dict[str, str]] = None,
        internal: bool = False,
        attachable: bool = False
    ) -> Dict[str, Any]:
        return await self._call(
            self.api.create_network,
            name,
            driver=driver,
            options=options,
            ipam=ipam,
            labels=labels,
            internal=internal,
            attachable=attachable
        )

    async def remove_network(self, network_id: str) -> None:
        await self._call(self.api.remove_network, network_id)

    async def connect_network(
        self,
        network_id: str,
        container: str,
        endpoint_config: Optional[Dict[str, Any]] = None
    ) -> None:
        # Map the engine's EndpointConfig document onto the SDK's keyword arguments
        endpoint_config = endpoint_config or {}
        ipam_config = endpoint_config.get('IPAMConfig') or {}
        await self._call(
            self.api.connect_container_to_network,
            container,
            network_id,
            ipv4_address=ipam_config.get('IPv4Address'),
            ipv6_address=ipam_config.get('IPv6Address'),
            link_local_ips=ipam_config.get('LinkLocalIPs'),
            aliases=endpoint_config.get('Aliases'),
            links=endpoint_config.get('Links'),
            driver_opt=endpoint_config.get('DriverOpts'),
        )

    async def disconnect_network(self, network_id: str, container: str, force: bool = False) -> None:
        await self._call(self.api.disconnect_container_from_network, container, network_id, force=force)

    async def prune_networks(self, filters: Optional[Filters] = None) -> Dict[str, Any]:
        return await self._call(self.api.prune_networks, filters=filters)

    # ==================== System ====================

    async def info(self) -> Dict[str, Any]:
        return await self._call(self.api.info)

    async def disk_usage(self) -> Dict[str, Any]:
        return await self._call(self.api.df)

    async def version(self) -> Dict[str, Any]:
        return await self._call(self.api.version)

    async def ping(self) -> bool:
        """Test Docker daemon connectivity"""
        try:
            result = await self._call(self.api.ping)
            return result is True
        except EngineError as e:
            logger.warning(f"Docker ping failed: {e}")
            return False

    async def close(self) -> None:
        await async_docker_call(self.client.close)
