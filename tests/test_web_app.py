"""Tests for the FastAPI adapter — JSON turns, SSE, structured errors, admin."""

from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from sports_proxy.adapters.web_fastapi.app import create_app
from sports_proxy.engine.llm import MockModelClient
from sports_proxy.engine.models import ModelResult, ModelToolCall
from sports_proxy.errors import UpstreamModelError


def _sse_events(body: str) -> list[tuple[str, dict]]:
    events = []
    for block in body.strip().split("\n\n"):
        lines = dict(line.split(": ", 1) for line in block.splitlines())
        events.append((lines["event"], json.loads(lines["data"])))
    return events


@pytest.fixture
def client_for(build_orchestrator):
    def _client(responses):
        app = create_app(build_orchestrator(MockModelClient(responses)))
        return TestClient(app)

    return _client


class TestTurnsEndpoint:
    def test_json_turn(self, client_for):
        with client_for([ModelResult(id="resp_1", text="Hi there")]) as client:
            resp = client.post("/v1/turns", json={"input": "hello", "domain": "mlb"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["object"] == "turn"
        assert body["output_text"] == "Hi there"
        assert body["domain"] == "baseball"

    def test_sse_turn(self, client_for):
        responses = [
            ModelResult(id="resp_1", tool_calls=[
                ModelToolCall(call_id="c1", name="resolve_team", arguments={"name": "Penguins"}),
            ]),
            ModelResult(id="resp_2", text="Pittsburgh Penguins found"),
        ]
        with client_for(responses) as client:
            resp = client.post("/v1/turns", json={"input": "Pens?", "domain": "nhl", "stream": True})

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        names = [name for name, _ in _sse_events(resp.text)]
        assert names[0] == "response.created"
        assert "response.tool_call.completed" in names
        assert names[-1] == "response.completed"

    def test_validation_error(self, client_for):
        with client_for([]) as client:
            resp = client.post("/v1/turns", json={"input": "   "})
        assert resp.status_code == 400
        assert resp.json()["error"]["kind"] == "validation_error"

    def test_unknown_field_rejected(self, client_for):
        with client_for([]) as client:
            resp = client.post("/v1/turns", json={"input": "hi", "history": []})
        assert resp.status_code == 400

    def test_non_object_body(self, client_for):
        with client_for([]) as client:
            resp = client.post("/v1/turns", content=b"[1, 2]", headers={"content-type": "application/json"})
        assert resp.status_code == 400

    def test_path_like_request_id_rejected(self, client_for):
        with client_for([ModelResult(id="resp_1", text="hi")]) as client:
            resp = client.post("/v1/turns", json={"input": "hi", "request_id": "../escaped"})

        assert resp.status_code == 400
        error = resp.json()["error"]
        assert "request_id" in error["message"]
        assert error["request_id"].startswith("req_")

    def test_body_errors_carry_generated_request_id(self, client_for):
        with client_for([]) as client:
            resp = client.post("/v1/turns", content=b"not json", headers={"content-type": "application/json"})

        assert resp.status_code == 400
        assert resp.json()["error"]["request_id"].startswith("req_")

    def test_fatal_error_payload(self, client_for):
        with client_for([UpstreamModelError("provider down")]) as client:
            resp = client.post("/v1/turns", json={"input": "hi", "request_id": "req_fixed"})

        assert resp.status_code == 502
        assert resp.json() == {
            "error": {"kind": "upstream_model_error", "message": "provider down", "request_id": "req_fixed"},
        }


class TestAdminEndpoints:
    def test_health(self, client_for):
        with client_for([]) as client:
            body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["domains"]["baseball"] == ["resolve_team", "baseball_stats", "baseball_fantasy"]
        assert body["domains"]["general"] == []
        assert "hits" in body["cache"]

    def test_reset(self, client_for):
        responses = [ModelResult(id="resp_1", text="a")]
        with client_for(responses) as client:
            client.post("/v1/turns", json={"input": "hi", "user_id": "fan-1"})
            first = client.post("/v1/conversations/fan-1/reset").json()
            second = client.post("/v1/conversations/fan-1/reset").json()
        assert first == {"conversation_key": "fan-1", "reset": True}
        assert second["reset"] is False
