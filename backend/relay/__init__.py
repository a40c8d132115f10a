"""Streaming relays from the container engine to WebSocket clients."""

from relay.downstream import DownstreamConnection, WebSocketDownstream
from relay.events import EventFilter, open_events_relay
from relay.logs import open_log_relay
from relay.session import RelaySession, RelayState
from relay.stats import open_stats_relay

__all__ = [
    'DownstreamConnection',
    'EventFilter',
    'RelaySession',
    'RelayState',
    'WebSocketDownstream',
    'open_events_relay',
    'open_log_relay',
    'open_stats_relay',
]
