"""
Operational guard (safe mode).

A process-wide kill switch for destructive operations. The set of destructive
operations is a fixed table; the guard never looks at request bodies or at
which resource is targeted. Pulling images is additive and always allowed.
"""

import logging
from enum import Enum

logger = logging.getLogger(__name__)

FORBIDDEN_MESSAGE = "Operation not permitted: safe mode is enabled"


class Operation(str, Enum):
    """Every one-shot operation exposed by the API."""

    CONTAINER_LIST = "container.list"
    CONTAINER_INSPECT = "container.inspect"
    CONTAINER_CREATE = "container.create"
    CONTAINER_START = "container.start"
    CONTAINER_STOP = "container.stop"
    CONTAINER_RESTART = "container.restart"
    CONTAINER_KILL = "container.kill"
    CONTAINER_REMOVE = "container.remove"
    CONTAINER_PRUNE = "container.prune"

    IMAGE_LIST = "image.list"
    IMAGE_INSPECT = "image.inspect"
    IMAGE_PULL = "image.pull"
    IMAGE_REMOVE = "image.remove"
    IMAGE_PRUNE = "image.prune"

    VOLUME_LIST = "volume.list"
    VOLUME_INSPECT = "volume.inspect"
    VOLUME_CREATE = "volume.create"
    VOLUME_REMOVE = "volume.remove"
    VOLUME_PRUNE = "volume.prune"

    NETWORK_LIST = "network.list"
    NETWORK_INSPECT = "network.inspect"
    NETWORK_CREATE = "network.create"
    NETWORK_REMOVE = "network.remove"
    NETWORK_CONNECT = "network.connect"
    NETWORK_DISCONNECT = "network.disconnect"
    NETWORK_PRUNE = "network.prune"

    SYSTEM_INFO = "system.info"
    SYSTEM_DF = "system.df"
    SYSTEM_VERSION = "system.version"
    SYSTEM_PRUNE = "system.prune"


DESTRUCTIVE_OPERATIONS = frozenset({
    Operation.CONTAINER_CREATE,
    Operation.CONTAINER_START,
    Operation.CONTAINER_STOP,
    Operation.CONTAINER_RESTART,
    Operation.CONTAINER_KILL,
    Operation.CONTAINER_REMOVE,
    Operation.CONTAINER_PRUNE,
    Operation.IMAGE_REMOVE,
    Operation.IMAGE_PRUNE,
    Operation.VOLUME_CREATE,
    Operation.VOLUME_REMOVE,
    Operation.VOLUME_PRUNE,
    Operation.NETWORK_CREATE,
    Operation.NETWORK_REMOVE,
    Operation.NETWORK_CONNECT,
    Operation.NETWORK_DISCONNECT,
    Operation.NETWORK_PRUNE,
    Operation.SYSTEM_PRUNE,
})


def is_destructive(operation: Operation) -> bool:
    return operation in DESTRUCTIVE_OPERATIONS


class OperationForbidden(Exception):
    """Raised when safe mode blocks a destructive operation."""

    def __init__(self, operation: Operation):
        super().__init__(FORBIDDEN_MESSAGE)
        self.operation = operation
        self.message = FORBIDDEN_MESSAGE


class OperationalGuard:
    """
    Immutable safe-mode switch, created once at startup.

    Args:
        safe_mode: When True, every destructive operation is denied
    """

    def __init__(self, safe_mode: bool = False):
        self._safe_mode = bool(safe_mode)

    @property
    def safe_mode(self) -> bool:
        return self._safe_mode

    def check_allowed(self, operation: Operation) -> bool:
        return not (self._safe_mode and is_destructive(operation))

    def ensure_allowed(self, operation: Operation) -> None:
        """Raise OperationForbidden if the operation is blocked."""
        if not self.check_allowed(operation):
            logger.warning(f"Blocked {operation.value}: safe mode is enabled")
            raise OperationForbidden(operation)

    def __repr__(self) -> str:
        return f"OperationalGuard(safe_mode={self._safe_mode})"
