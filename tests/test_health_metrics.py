from __future__ import annotations

from typing import cast

from fastapi.testclient import TestClient

from teamchat.core.version import get_app_version


def test_health_reports_storage_and_ai_mode(client: TestClient) -> None:
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200, resp.text
    body = cast(dict[str, object], resp.json())
    assert body["status"] == "ok"
    deps = cast(dict[str, dict[str, object]], body["dependencies"])
    assert deps["storage"]["status"] == "ok"
    assert deps["storage"]["mode"] == "memory"
    assert deps["ai"]["mode"] == "fake"
    assert body["connections"] == 0


def test_responses_carry_version_and_request_id_headers(client: TestClient) -> None:
    resp = client.get("/api/v1/health", headers={"X-Request-Id": "rid-123"})
    assert resp.headers.get("X-Teamchat-Version") == get_app_version()
    assert resp.headers.get("X-Request-Id") == "rid-123"
    assert resp.headers.get("X-Content-Type-Options") == "nosniff"

    generated = client.get("/api/v1/users").headers.get("X-Request-Id")
    assert generated and generated != "rid-123"


def test_metrics_exposes_chat_series(client: TestClient) -> None:
    with client.websocket_connect("/ws"):
        pass

    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/plain")
    text = resp.text
    assert "teamchat_ws_live_connections" in text
    assert "teamchat_ai_turns_total" in text


def test_metrics_count_ai_turns(client: TestClient) -> None:
    before = client.get("/metrics").text

    with client.websocket_connect("/ws") as ws:
        r = client.post("/api/v1/messages", json={"content": "@ai count me", "aiActive": True})
        assert r.status_code == 200
        for _ in range(100):
            frame = cast(dict[str, object], ws.receive_json())
            data = cast(dict[str, object], frame["data"])
            if frame["type"] == "message_updated" and data["isComplete"] is True:
                break

    after = client.get("/metrics").text
    line = 'teamchat_ai_turns_total{provider="fake",api="fake",model="fake"}'
    assert line in after

    def count(text: str) -> float:
        for ln in text.splitlines():
            if ln.startswith(line):
                return float(ln.rsplit(" ", 1)[1])
        return 0.0

    assert count(after) == count(before) + 1
