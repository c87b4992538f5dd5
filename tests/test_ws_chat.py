from __future__ import annotations

from typing import cast

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.testclient import WebSocketTestSession
from starlette.websockets import WebSocketDisconnect

from teamchat.services.runtime import ChatRuntime


def _create_user(client: TestClient, username: str) -> str:
    resp = client.post(
        "/api/v1/users",
        json={"username": username, "displayName": username.title(), "role": "Engineer"},
    )
    assert resp.status_code == 201, resp.text
    user_id = cast(dict[str, object], resp.json()).get("id")
    assert isinstance(user_id, str) and user_id
    return user_id


def _recv_json_dict(ws: WebSocketTestSession) -> dict[str, object]:
    raw = cast(object, ws.receive_json())
    assert isinstance(raw, dict), f"expected dict json frame, got: {type(raw)!r}"
    return cast(dict[str, object], raw)


def _recv_until_type(
    ws: WebSocketTestSession,
    expected_type: str,
    *,
    max_frames: int = 500,
) -> dict[str, object]:
    for _ in range(max_frames):
        msg = _recv_json_dict(ws)
        if msg.get("type") == expected_type:
            return msg
    raise AssertionError(f"did not receive type={expected_type!r} within {max_frames} frames")


def _data(frame: dict[str, object]) -> dict[str, object]:
    data = frame.get("data")
    assert isinstance(data, dict)
    return cast(dict[str, object], data)


def _auth(ws: WebSocketTestSession, user_id: str) -> None:
    ws.send_json({"type": "auth", "data": {"userId": user_id}})
    presence = _data(_recv_until_type(ws, "presence_changed"))
    assert presence == {"userId": user_id, "isOnline": True}


def test_ai_mention_end_to_end(client: TestClient) -> None:
    u1 = _create_user(client, "alice")

    with client.websocket_connect("/ws") as ws:
        _auth(ws, u1)

        resp = client.post(
            "/api/v1/messages",
            json={"content": "@ai hello", "authorUserId": u1, "chatScope": "general", "aiActive": True},
        )
        assert resp.status_code == 200, resp.text

        first = _recv_json_dict(ws)
        assert first["type"] == "message_created"
        user_msg = cast(dict[str, object], _data(first)["message"])
        assert user_msg["content"] == "@ai hello"
        assert user_msg["authorUserId"] == u1
        assert user_msg["isAI"] is False

        second = _recv_json_dict(ws)
        assert second["type"] == "message_created"
        placeholder = cast(dict[str, object], _data(second)["message"])
        assert placeholder["isAI"] is True
        assert placeholder["content"] == ""
        ai_id = placeholder["id"]

        partials: list[str] = []
        final: dict[str, object] | None = None
        for _ in range(500):
            frame = _recv_json_dict(ws)
            assert frame["type"] == "message_updated"
            data = _data(frame)
            assert data["id"] == ai_id
            if data["isComplete"] is True:
                final = data
                break
            partials.append(cast(str, data["content"]))

    assert partials, "expected at least one incomplete update"
    prev = ""
    for content in partials:
        assert content.startswith(prev)
        prev = content
    assert final is not None
    assert cast(str, final["content"]).startswith(prev)
    assert final["content"] == "AI: hello"

    history = cast(list[dict[str, object]], client.get("/api/v1/messages").json())
    assert [(m["content"], m["isAI"]) for m in history] == [("@ai hello", False), ("AI: hello", True)]


def test_general_message_reaches_other_users(client: TestClient) -> None:
    u1 = _create_user(client, "alice")
    u2 = _create_user(client, "bob")

    with client.websocket_connect("/ws") as ws1, client.websocket_connect("/ws") as ws2:
        _auth(ws1, u1)
        _auth(ws2, u2)

        resp = client.post(
            "/api/v1/messages",
            json={"content": "standup in 5", "authorUserId": u1, "aiActive": False},
        )
        assert resp.status_code == 200

        got = cast(dict[str, object], _data(_recv_until_type(ws2, "message_created"))["message"])
        assert got["content"] == "standup in 5"
        assert got["authorUserId"] == u1


def test_typing_is_idempotent_and_not_echoed(chat_app: FastAPI, client: TestClient) -> None:
    u1 = _create_user(client, "alice")
    u2 = _create_user(client, "bob")
    runtime = cast(ChatRuntime, chat_app.state.chat)

    with client.websocket_connect("/ws") as ws1, client.websocket_connect("/ws") as ws2:
        _auth(ws1, u1)
        _auth(ws2, u2)

        ws1.send_json({"type": "typing", "data": {"isTyping": True}})
        ws1.send_json({"type": "typing", "isTyping": True})

        for _ in range(2):
            typing = _data(_recv_until_type(ws2, "typing_changed"))
            assert typing["userId"] == u1
            assert typing["isTyping"] is True
            user = cast(dict[str, object], typing["user"])
            assert user["username"] == "alice"

        assert runtime.storage.delete_typing_messages() == 1

        # The typer's own socket sees the next broadcast, not its typing echo.
        resp = client.post("/api/v1/messages", json={"content": "done", "aiActive": False})
        assert resp.status_code == 200
        assert _recv_json_dict(ws1)["type"] == "message_created"


def test_disconnect_marks_user_offline(client: TestClient) -> None:
    u1 = _create_user(client, "alice")
    u2 = _create_user(client, "bob")

    with client.websocket_connect("/ws") as watcher:
        _auth(watcher, u2)

        with client.websocket_connect("/ws") as ws:
            _auth(ws, u1)
            online = _data(_recv_until_type(watcher, "presence_changed"))
            assert online == {"userId": u1, "isOnline": True}
            assert cast(dict[str, object], client.get(f"/api/v1/users/{u1}").json())["isOnline"] is True

        offline = _data(_recv_until_type(watcher, "presence_changed"))
        assert offline == {"userId": u1, "isOnline": False}

    assert cast(dict[str, object], client.get(f"/api/v1/users/{u1}").json())["isOnline"] is False


def test_typing_before_auth_is_ignored(client: TestClient) -> None:
    u1 = _create_user(client, "alice")

    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "typing", "data": {"isTyping": True}})
        _auth(ws, u1)


def test_unknown_user_auth_closes_with_policy_violation(client: TestClient) -> None:
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "auth", "data": {"userId": "ghost"}})
        with pytest.raises(WebSocketDisconnect) as excinfo:
            _ = ws.receive_json()
    assert excinfo.value.code == 1008


@pytest.mark.parametrize(
    "frame",
    [
        ["not", "an", "object"],
        {"type": "shout", "data": {}},
        {"type": "auth"},
    ],
)
def test_malformed_frames_close_with_unsupported_data(client: TestClient, frame: object) -> None:
    with client.websocket_connect("/ws") as ws:
        ws.send_json(frame)
        with pytest.raises(WebSocketDisconnect) as excinfo:
            _ = ws.receive_json()
    assert excinfo.value.code == 1003


def test_non_json_text_closes_with_unsupported_data(client: TestClient) -> None:
    with client.websocket_connect("/ws") as ws:
        ws.send_text("{not json")
        with pytest.raises(WebSocketDisconnect) as excinfo:
            _ = ws.receive_json()
    assert excinfo.value.code == 1003


def test_binary_frame_closes_with_unsupported_data(client: TestClient) -> None:
    with client.websocket_connect("/ws") as ws:
        ws.send_bytes(b'{"type": "auth", "data": {"userId": "x"}}')
        with pytest.raises(WebSocketDisconnect) as excinfo:
            _ = ws.receive_json()
    assert excinfo.value.code == 1003
