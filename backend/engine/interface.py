"""
EngineClient abstraction layer.

Provides the single interface through which routes and streaming relays talk
to the container engine:
- DockerEngineClient: Docker daemon via the Docker SDK (local socket or URL)
- Test doubles: ordinary subclasses with canned responses

Return values are the engine's own JSON documents (plain dicts/lists) so the
API can pass them through unchanged.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from engine.streams import UpstreamStream

# Engine-style filters: {"type": ["container"], "label": ["env=prod"]}
Filters = Dict[str, Any]


@dataclass(frozen=True)
class LogStreamOptions:
    """Options for opening a container log stream."""

    follow: bool = False
    stdout: bool = True
    stderr: bool = True
    since: Optional[str] = None
    until: Optional[str] = None
    timestamps: bool = False
    tail: Union[int, str] = "all"


@dataclass(frozen=True)
class EventStreamOptions:
    """Options for subscribing to the engine-wide event feed."""

    since: Optional[str] = None
    until: Optional[str] = None
    filters: Dict[str, List[str]] = field(default_factory=dict)


class EngineClient(ABC):
    """
    Abstract interface for communicating with the container engine.

    All methods are coroutines. Implementations raise engine.errors types:
    ResourceNotFound for unknown ids, EngineUnavailable when the engine
    cannot be reached, EngineError for any other rejection.
    """

    # ==================== Streams ====================

    @abstractmethod
    async def open_log_stream(self, container_id: str, options: LogStreamOptions) -> UpstreamStream:
        """
        Open a container's log stream.

        The returned stream is multiplexed (stdout and stderr combined with
        frame headers) unless the container runs with a TTY.
        """

    @abstractmethod
    async def open_stats_stream(self, container_id: str, streaming: bool) -> UpstreamStream:
        """
        Open a container's resource usage stream.

        Yields newline-delimited JSON records; a single record when
        streaming is False.
        """

    @abstractmethod
    async def open_event_stream(self, options: EventStreamOptions) -> UpstreamStream:
        """Subscribe to the engine-wide event feed (JSON records)."""

    # ==================== Containers ====================

    @abstractmethod
    async def list_containers(
        self,
        all: bool = False,
        limit: Optional[int] = None,
        size: bool = False,
        filters: Optional[Filters] = None
    ) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def inspect_container(self, container_id: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def create_container(self, config: Dict[str, Any], name: Optional[str] = None) -> Dict[str, Any]:
        """
        Create a container from a raw engine config (Image, Cmd, Env, ...).

        Returns:
            Engine response with the new container's Id and Warnings
        """

    @abstractmethod
    async def start_container(self, container_id: str) -> None:
        pass

    @abstractmethod
    async def stop_container(self, container_id: str, timeout: Optional[int] = None) -> None:
        pass

    @abstractmethod
    async def restart_container(self, container_id: str, timeout: Optional[int] = None) -> None:
        pass

    @abstractmethod
    async def kill_container(self, container_id: str, signal: str = "SIGKILL") -> None:
        pass

    @abstractmethod
    async def remove_container(
        self,
        container_id: str,
        force: bool = False,
        volumes: bool = False,
        link: bool = False
    ) -> None:
        pass

    @abstractmethod
    async def prune_containers(self, filters: Optional[Filters] = None) -> Dict[str, Any]:
        pass

    # ==================== Images ====================

    @abstractmethod
    async def list_images(self, all: bool = False, filters: Optional[Filters] = None) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def inspect_image(self, image_id: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def pull_image(
        self,
        repository: str,
        tag: Optional[str] = None,
        auth_config: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Pull an image from its registry.

        Returns:
            The last progress record reported by the engine
        """

    @abstractmethod
    async def remove_image(self, image_id: str, force: bool = False, noprune: bool = False) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def prune_images(self, filters: Optional[Filters] = None) -> Dict[str, Any]:
        pass

    # ==================== Volumes ====================

    @abstractmethod
    async def list_volumes(self, filters: Optional[Filters] = None) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def inspect_volume(self, name: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def create_volume(
        self,
        name: Optional[str] = None,
        driver: str = "local",
        driver_opts: Optional[Dict[str, str]] = None,
        labels: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def remove_volume(self, name: str, force: bool = False) -> None:
        pass

    @abstractmethod
    async def prune_volumes(self, filters: Optional[Filters] = None) -> Dict[str, Any]:
        pass

    # ==================== Networks ====================

    @abstractmethod
    async def list_networks(self, filters: Optional[Filters] = None) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def inspect_network(self, network_id: str) -> Dict[str, Any]:
        pass

    @abstractmethod
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
        pass

    @abstractmethod
    async def remove_network(self, network_id: str) -> None:
        pass

    @abstractmethod
    async def connect_network(
        self,
        network_id: str,
        container: str,
        endpoint_config: Optional[Dict[str, Any]] = None
    ) -> None:
        pass

    @abstractmethod
    async def disconnect_network(self, network_id: str, container: str, force: bool = False) -> None:
        pass

    @abstractmethod
    async def prune_networks(self, filters: Optional[Filters] = None) -> Dict[str, Any]:
        pass

    # ==================== System ====================

    @abstractmethod
    async def info(self) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def disk_usage(self) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def version(self) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def ping(self) -> bool:
        """
        Test engine connectivity.

        Returns:
            True if the engine answered, False otherwise (never raises)
        """

    async def close(self) -> None:
        """Release client resources. Default: nothing to release."""
