"""Real-time wire events.

Every frame is ``{"type": ..., "data": {...}}``. Server and client events are
closed unions discriminated on ``type``; anything else is rejected at the
parse boundary.
"""

from __future__ import annotations

from typing import Annotated, Literal, TypeAlias, cast

from pydantic import Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from teamchat.core.errors import ValidationError
from teamchat.domain.models import CamelModel, MessageWithAuthor, User


JSONScalar: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]


class MessageCreatedData(CamelModel):
    message: MessageWithAuthor


class MessageUpdatedData(CamelModel):
    id: str
    content: str
    is_complete: bool


class PresenceChangedData(CamelModel):
    user_id: str
    is_online: bool


class TypingChangedData(CamelModel):
    user_id: str
    is_typing: bool
    user: User | None = None


class MessageCreated(CamelModel):
    type: Literal["message_created"] = "message_created"
    data: MessageCreatedData


class MessageUpdated(CamelModel):
    type: Literal["message_updated"] = "message_updated"
    data: MessageUpdatedData


class PresenceChanged(CamelModel):
    type: Literal["presence_changed"] = "presence_changed"
    data: PresenceChangedData


class TypingChanged(CamelModel):
    type: Literal["typing_changed"] = "typing_changed"
    data: TypingChangedData


ServerEvent: TypeAlias = Annotated[
    MessageCreated | MessageUpdated | PresenceChanged | TypingChanged,
    Field(discriminator="type"),
]

_server_event_adapter: TypeAdapter[ServerEvent] = TypeAdapter(ServerEvent)


def message_created(message: MessageWithAuthor) -> MessageCreated:
    return MessageCreated(data=MessageCreatedData(message=message))


def message_updated(*, message_id: str, content: str, is_complete: bool) -> MessageUpdated:
    return MessageUpdated(
        data=MessageUpdatedData(id=message_id, content=content, is_complete=is_complete)
    )


def presence_changed(*, user_id: str, is_online: bool) -> PresenceChanged:
    return PresenceChanged(data=PresenceChangedData(user_id=user_id, is_online=is_online))


def typing_changed(*, user_id: str, is_typing: bool, user: User | None) -> TypingChanged:
    return TypingChanged(data=TypingChangedData(user_id=user_id, is_typing=is_typing, user=user))


def serialize_event(event: ServerEvent) -> dict[str, JSONValue]:
    return cast(dict[str, JSONValue], event.to_wire())


def parse_server_event(raw: object) -> ServerEvent:
    try:
        return _server_event_adapter.validate_python(raw)
    except PydanticValidationError as e:
        raise ValidationError("malformed server event", error_code="BAD_EVENT") from e


class AuthData(CamelModel):
    user_id: str = Field(min_length=1, max_length=64)


class TypingData(CamelModel):
    is_typing: bool


class AuthEvent(CamelModel):
    type: Literal["auth"] = "auth"
    data: AuthData


class TypingEvent(CamelModel):
    type: Literal["typing"] = "typing"
    data: TypingData


ClientEvent: TypeAlias = Annotated[AuthEvent | TypingEvent, Field(discriminator="type")]

_client_event_adapter: TypeAdapter[ClientEvent] = TypeAdapter(ClientEvent)


def parse_client_event(raw: object) -> ClientEvent:
    """Parse a client frame.

    Accepts ``{"type": "auth", "data": {"userId": ...}}`` and the flat legacy
    shape ``{"type": "auth", "userId": ...}`` used by older clients.
    """
    if not isinstance(raw, dict):
        raise ValidationError("event must be a JSON object", error_code="BAD_EVENT")

    frame = cast(dict[str, object], raw)
    if "data" not in frame:
        frame = {
            "type": frame.get("type"),
            "data": {k: v for k, v in frame.items() if k != "type"},
        }

    try:
        return _client_event_adapter.validate_python(frame)
    except PydanticValidationError as e:
        raise ValidationError("malformed client event", error_code="BAD_EVENT") from e
