"""Container engine access: the EngineClient interface and its Docker implementation."""

from engine.errors import EngineError, EngineUnavailable, ResourceNotFound
from engine.interface import EngineClient, EventStreamOptions, LogStreamOptions
from engine.streams import BlockingUpstreamStream, UpstreamStream

__all__ = [
    'EngineClient',
    'EngineError',
    'EngineUnavailable',
    'EventStreamOptions',
    'LogStreamOptions',
    'ResourceNotFound',
    'BlockingUpstreamStream',
    'UpstreamStream',
]
