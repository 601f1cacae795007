"""Pydantic models for the Socket.IO wire protocol.

Every message travels on the ``message`` event as a JSON object with a
``type`` discriminator. Field names are camelCase on the wire
(``targetTime``, ``clientId``) and snake_case in Python.
"""

import json
import typing as t
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from lockstep.exceptions import ProtocolError

MESSAGE_EVENT = "message"
DEFAULT_VIDEO = "video-vertical"
DEFAULT_DELAY_MS = 5000


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def dump(self) -> dict[str, t.Any]:
        """Serialize with wire (camelCase) field names."""
        return self.model_dump(by_alias=True, mode="json")


# =============================================================================
# Request Models (client -> server)
# =============================================================================


class Identify(WireModel):
    """Declare the role of this connection."""

    type: Literal["identify"] = "identify"
    role: str


class GetClients(WireModel):
    """Ask for the current client list."""

    type: Literal["getClients"] = "getClients"


class PlayRequest(WireModel):
    """Start playback everywhere at a shared-clock instant."""

    type: Literal["play"] = "play"
    video: str | None = None
    target_time: float | None = None
    delay: int | None = None


class PauseRequest(WireModel):
    type: Literal["pause"] = "pause"


class StopRequest(WireModel):
    type: Literal["stop"] = "stop"


class ReloadRequest(WireModel):
    type: Literal["reload"] = "reload"


class SetSource(WireModel):
    """Change the globally selected content."""

    type: Literal["setSource"] = "setSource"
    source: str


ClientMessage = Annotated[
    Identify
    | GetClients
    | PlayRequest
    | PauseRequest
    | StopRequest
    | ReloadRequest
    | SetSource,
    Field(discriminator="type"),
]

# =============================================================================
# Broadcast / Reply Models (server -> client)
# =============================================================================


class Welcome(WireModel):
    type: Literal["welcome"] = "welcome"
    message: str = "Connected to server"
    client_id: int


class SourceUpdate(WireModel):
    """Current content selection."""

    type: Literal["source"] = "source"
    source: str


class PlayBroadcast(WireModel):
    """Play command stamped with the target instant (epoch ms)."""

    type: Literal["play"] = "play"
    video: str = DEFAULT_VIDEO
    target_time: float
    delay: int = DEFAULT_DELAY_MS


class PauseBroadcast(WireModel):
    type: Literal["pause"] = "pause"


class StopBroadcast(WireModel):
    type: Literal["stop"] = "stop"


class ReloadBroadcast(WireModel):
    type: Literal["reload"] = "reload"


class ClientInfo(WireModel):
    id: int
    connected_at: str
    is_commander: bool


class ClientsUpdate(WireModel):
    """Full client list, pushed to commanders."""

    type: Literal["clientsUpdate"] = "clientsUpdate"
    clients: list[ClientInfo]
    total: int


class Echo(WireModel):
    """Unrecognized message reflected back to its sender."""

    type: Literal["echo"] = "echo"
    data: t.Any


class ErrorMessage(WireModel):
    type: Literal["error"] = "error"
    message: str


ServerMessage = Annotated[
    Welcome
    | SourceUpdate
    | PlayBroadcast
    | PauseBroadcast
    | StopBroadcast
    | ReloadBroadcast
    | ClientsUpdate
    | Echo
    | ErrorMessage,
    Field(discriminator="type"),
]

_client_adapter: TypeAdapter[ClientMessage] = TypeAdapter(ClientMessage)
_server_adapter: TypeAdapter[ServerMessage] = TypeAdapter(ServerMessage)

CLIENT_MESSAGE_TYPES = frozenset(
    model.model_fields["type"].default
    for model in t.get_args(t.get_args(ClientMessage)[0])
)
SERVER_MESSAGE_TYPES = frozenset(
    model.model_fields["type"].default
    for model in t.get_args(t.get_args(ServerMessage)[0])
)


class MalformedMessage(ProtocolError):
    """Payload is not JSON or fails validation for its declared type."""
    pass


class UnknownMessageType(ProtocolError):
    """Payload decoded but carries no recognized ``type``."""

    def __init__(self, data: t.Any) -> None:
        super().__init__(f"Unknown message type: {data!r}")
        self.data = data


def _decode(raw: t.Any, known_types: frozenset[str]) -> dict[str, t.Any]:
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise MalformedMessage("Invalid JSON") from e
    else:
        data = raw
    if not isinstance(data, dict) or data.get("type") not in known_types:
        raise UnknownMessageType(data)
    return data


def _summarize(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(x) for x in e['loc'])}: {e['msg']}" for e in exc.errors()
    )


def parse_client_message(raw: t.Any) -> ClientMessage:
    """Decode an inbound payload into one of the client message models.

    Raises
    ------
    MalformedMessage
        Invalid JSON, or a known type with invalid fields.
    UnknownMessageType
        Anything else that decodes but has no recognized ``type``.
    """
    data = _decode(raw, CLIENT_MESSAGE_TYPES)
    try:
        return _client_adapter.validate_python(data)
    except ValidationError as e:
        raise MalformedMessage(f"Invalid '{data['type']}' message: {_summarize(e)}") from e


def parse_server_message(raw: t.Any) -> ServerMessage:
    """Decode a payload received from the server."""
    data = _decode(raw, SERVER_MESSAGE_TYPES)
    try:
        return _server_adapter.validate_python(data)
    except ValidationError as e:
        raise MalformedMessage(f"Invalid '{data['type']}' message: {_summarize(e)}") from e
