"""
Request models for the REST and WebSocket endpoints.

Body models use the engine's own field names (Name, Driver, ...) so clients
can send the same documents they would send to the engine API.
"""

import json
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from api.errors import MalformedInputError
from engine.interface import EventStreamOptions, LogStreamOptions
from relay.events import normalize_filters


def parse_filters(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Parse a JSON-encoded filters query parameter.

    Raises:
        MalformedInputError: Not valid JSON or not an object
    """
    if raw is None or raw.strip() == "":
        return None
    try:
        filters = json.loads(raw)
    except ValueError as e:
        raise MalformedInputError(f"Invalid filters: {e}") from e
    if not isinstance(filters, dict):
        raise MalformedInputError("Invalid filters: expected a JSON object")
    return filters


def describe_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        field = ".".join(str(x) for x in item['loc']) or "query"
        parts.append(f"{field}: {item['msg']}")
    return "; ".join(parts)


# ==================== Containers ====================

class CreateContainerRequest(BaseModel):
    """Engine container config. Fields other than Image are passed through."""

    model_config = ConfigDict(extra='allow')

    Image: str = Field(..., min_length=1)


class StopContainerRequest(BaseModel):
    t: Optional[int] = Field(None, ge=0, description="Seconds to wait before killing the container")


class KillContainerRequest(BaseModel):
    signal: str = Field("SIGKILL", min_length=1)


class PruneRequest(BaseModel):
    filters: Optional[Dict[str, Any]] = None


# ==================== Images ====================

class PullImageRequest(BaseModel):
    repoTag: str = Field(..., min_length=1, description="Repository, optionally with :tag")
    tag: Optional[str] = None
    authconfig: Optional[Dict[str, Any]] = None


# ==================== Volumes ====================

class CreateVolumeRequest(BaseModel):
    Name: Optional[str] = None
    Driver: str = "local"
    DriverOpts: Optional[Dict[str, str]] = None
    Labels: Optional[Dict[str, str]] = None


# ==================== Networks ====================

class CreateNetworkRequest(BaseModel):
    Name: str = Field(..., min_length=1)
    Driver: str = "bridge"
    IPAM: Optional[Dict[str, Any]] = None
    Options: Optional[Dict[str, str]] = None
    Labels: Optional[Dict[str, str]] = None
    Internal: bool = False
    Attachable: bool = False


class ConnectNetworkRequest(BaseModel):
    Container: str = Field(..., min_length=1)
    EndpointConfig: Optional[Dict[str, Any]] = None


class DisconnectNetworkRequest(BaseModel):
    Container: str = Field(..., min_length=1)
    Force: bool = False


# ==================== Stream queries ====================
# Booleans arrive as strings; pydantic accepts true/false, 1/0, yes/no, on/off.

class LogStreamQuery(BaseModel):
    follow: bool = False
    stdout: bool = True
    stderr: bool = True
    since: Optional[str] = None
    until: Optional[str] = None
    timestamps: bool = False
    tail: Union[int, str] = "all"

    @field_validator('tail', mode='before')
    @classmethod
    def validate_tail(cls, value: Any) -> Union[int, str]:
        if isinstance(value, str):
            value = value.strip()
            if value == "all":
                return value
            if not value.isdigit():
                raise ValueError("tail must be a non-negative integer or 'all'")
            return int(value)
        if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
            return value
        raise ValueError("tail must be a non-negative integer or 'all'")

    def to_options(self) -> LogStreamOptions:
        return LogStreamOptions(
            follow=self.follow,
            stdout=self.stdout,
            stderr=self.stderr,
            since=self.since,
            until=self.until,
            timestamps=self.timestamps,
            tail=self.tail,
        )


class StatsStreamQuery(BaseModel):
    # Clients ask for a live feed with stream=true; otherwise one snapshot
    stream: bool = False


class EventStreamQuery(BaseModel):
    since: Optional[str] = None
    until: Optional[str] = None
    filters: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('filters', mode='before')
    @classmethod
    def parse_filters_json(cls, value: Any) -> Dict[str, Any]:
        if value is None or value == "":
            return {}
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except ValueError as e:
                raise ValueError(f"filters is not valid JSON: {e}")
        if not isinstance(value, dict):
            raise ValueError("filters must be a JSON object")
        return value

    def to_options(self) -> EventStreamOptions:
        return EventStreamOptions(
            since=self.since,
            until=self.until,
            filters=normalize_filters(self.filters),
        )
