from __future__ import annotations

import pytest

from teamchat.core.errors import ValidationError
from teamchat.domain.models import MessageWithAuthor, User, utcnow_naive
from teamchat.ws.events import (
    AuthEvent,
    MessageUpdated,
    TypingEvent,
    message_created,
    message_updated,
    parse_client_event,
    parse_server_event,
    presence_changed,
    serialize_event,
    typing_changed,
)


def _message() -> MessageWithAuthor:
    return MessageWithAuthor(
        id="m1",
        content="@ai hello",
        author_user_id="u1",
        timestamp=utcnow_naive(),
        author=User(id="u1", username="alice", display_name="Alice", role="dev"),
    )


def test_server_events_use_type_data_framing() -> None:
    frame = serialize_event(message_created(_message()))
    assert frame["type"] == "message_created"
    data = frame["data"]
    assert isinstance(data, dict)
    msg = data["message"]
    assert isinstance(msg, dict)
    assert msg["id"] == "m1"
    assert msg["authorUserId"] == "u1"
    assert msg["isAI"] is False
    assert msg["chatScope"] == "general"
    assert msg["attachments"] == []


def test_message_updated_wire_shape() -> None:
    frame = serialize_event(message_updated(message_id="m1", content="Hi", is_complete=False))
    assert frame == {
        "type": "message_updated",
        "data": {"id": "m1", "content": "Hi", "isComplete": False},
    }


def test_presence_and_typing_wire_shape() -> None:
    assert serialize_event(presence_changed(user_id="u1", is_online=True)) == {
        "type": "presence_changed",
        "data": {"userId": "u1", "isOnline": True},
    }
    frame = serialize_event(typing_changed(user_id="u1", is_typing=True, user=None))
    assert frame == {
        "type": "typing_changed",
        "data": {"userId": "u1", "isTyping": True, "user": None},
    }


def test_parse_server_event_round_trips_to_the_same_kind() -> None:
    raw = serialize_event(message_updated(message_id="m1", content="Hi", is_complete=True))
    event = parse_server_event(raw)
    assert isinstance(event, MessageUpdated)
    assert event.data.is_complete is True


def test_parse_server_event_rejects_unknown_type() -> None:
    with pytest.raises(ValidationError):
        _ = parse_server_event({"type": "message_deleted", "data": {"id": "m1"}})


def test_parse_client_auth_both_shapes() -> None:
    framed = parse_client_event({"type": "auth", "data": {"userId": "u1"}})
    flat = parse_client_event({"type": "auth", "userId": "u1"})
    assert isinstance(framed, AuthEvent)
    assert isinstance(flat, AuthEvent)
    assert framed.data.user_id == flat.data.user_id == "u1"


def test_parse_client_typing() -> None:
    event = parse_client_event({"type": "typing", "isTyping": True})
    assert isinstance(event, TypingEvent)
    assert event.data.is_typing is True


@pytest.mark.parametrize(
    "raw",
    [
        [],
        "auth",
        {"type": "shout", "data": {}},
        {"type": "auth", "data": {}},
        {"type": "typing", "data": {"isTyping": "maybe"}},
    ],
)
def test_parse_client_event_rejects_malformed(raw: object) -> None:
    with pytest.raises(ValidationError) as excinfo:
        _ = parse_client_event(raw)
    assert excinfo.value.error_code == "BAD_EVENT"
