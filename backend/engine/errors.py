"""
Errors raised by engine client adapters.

Adapters translate their library's exceptions into these so that routes and
relay sessions never depend on a particular SDK's exception types.
"""

from typing import Optional


class EngineError(Exception):
    """The engine rejected or failed a request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ResourceNotFound(EngineError):
    """The requested container, image, volume or network does not exist."""


class EngineUnavailable(EngineError):
    """The engine could not be reached (socket missing, connection refused, ...)."""
