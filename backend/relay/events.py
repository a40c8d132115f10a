"""
Engine event feed relay.

Filters are passed to the engine when subscribing and also re-checked here
for the keys the dashboard uses (type, event, container, label), so a record
reaching the client always satisfies them whatever the engine version.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from config.settings import DEFAULT_BACKPRESSURE_BYTES
from engine.interface import EngineClient, EventStreamOptions
from engine.streams import UpstreamStream
from relay.downstream import DownstreamConnection
from relay.framing import iter_records
from relay.session import RelaySession

logger = logging.getLogger(__name__)


def normalize_filters(filters: Optional[Dict[str, Any]]) -> Dict[str, List[str]]:
    """
    Accept the shapes clients send for engine filters.

    {"type": "container"}, {"type": ["container"]} and the engine's own
    {"type": {"container": true}} all become {"type": ["container"]}.
    Keys with no values are removed.
    """
    normalized: Dict[str, List[str]] = {}
    for key, value in (filters or {}).items():
        if isinstance(value, dict):
            values = [str(k) for k, enabled in value.items() if enabled]
        elif isinstance(value, (list, tuple, set)):
            values = [str(v) for v in value]
        elif value is None:
            values = []
        else:
            values = [str(value)]
        if values:
            normalized[str(key)] = values
    return normalized


def _mapping(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ''


class EventFilter:
    """Local predicate over engine event records. Unknown keys always match."""

    def __init__(self, filters: Optional[Dict[str, Any]] = None):
        self.filters = normalize_filters(filters)

    def matches(self, event: Dict[str, Any]) -> bool:
        actor = _mapping(event.get('Actor'))
        attributes = _mapping(actor.get('Attributes'))

        for key, values in self.filters.items():
            if key == 'type':
                if event.get('Type') not in values:
                    return False
            elif key == 'event':
                action = _text(event.get('Action')) or _text(event.get('status'))
                # exec events carry the command after a colon ("exec_start: sh")
                if not any(action == v or action.startswith(f"{v}:") for v in values):
                    return False
            elif key == 'container':
                actor_id = _text(actor.get('ID')) or _text(event.get('id'))
                name = attributes.get('name')
                if not any((actor_id and actor_id.startswith(v)) or name == v for v in values):
                    return False
            elif key == 'label':
                if not any(self._label_matches(attributes, v) for v in values):
                    return False
        return True

    @staticmethod
    def _label_matches(attributes: Dict[str, Any], expression: str) -> bool:
        if '=' in expression:
            label, value = expression.split('=', 1)
            return attributes.get(label) == value
        return expression in attributes


async def open_events_relay(
    engine: EngineClient,
    downstream: DownstreamConnection,
    options: EventStreamOptions,
    backpressure_bytes: int = DEFAULT_BACKPRESSURE_BYTES
) -> RelaySession:
    """
    Relay matching engine events, verbatim, for the life of the connection.
    """
    session = RelaySession(downstream, "events relay", backpressure_bytes)
    event_filter = EventFilter(options.filters)

    async def pump(upstream: UpstreamStream) -> None:
        async for record in iter_records(upstream):
            try:
                event = json.loads(record)
            except ValueError as e:
                logger.warning(f"{session.name}: malformed event record: {e}")
                session.send_diagnostic(f"malformed event record: {e}")
                continue

            if not isinstance(event, dict):
                logger.warning(f"{session.name}: event record is not a JSON object")
                session.send_diagnostic("malformed event record: expected a JSON object")
                continue
            if not event_filter.matches(event):
                continue
            session.forward(record)

    await session.run(lambda: engine.open_event_stream(options), pump)
    return session
