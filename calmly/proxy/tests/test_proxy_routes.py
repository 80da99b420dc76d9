import json

import httpx
import pytest
from fastapi.testclient import TestClient

from calmly.proxy.forwarder import UpstreamForwarder
from calmly.proxy.server import create_app


class FakeBackend:
    """Records forwarded calls and answers with a fresh canned response."""

    def __init__(self, status=200, error=None, **response_kwargs):
        self.calls = []
        self.error = error
        self.respond(status, **(response_kwargs or {"json": {"ok": True}}))

    def respond(self, status, **response_kwargs):
        self._status = status
        self._kwargs = response_kwargs

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self._status, **self._kwargs)


def _client(backend: FakeBackend) -> TestClient:
    forwarder = UpstreamForwarder("http://backend", timeout=5, transport=httpx.MockTransport(backend))
    return TestClient(create_app(forwarder), raise_server_exceptions=False)


BEARER = {"Authorization": "Bearer tok-123"}


@pytest.mark.parametrize(
    "method,path",
    [
        ("POST", "/api/chat"),
        ("GET", "/api/chat/sessions"),
        ("GET", "/api/chat/sessions/s1"),
        ("GET", "/api/chat/sessions/s1/history"),
        ("GET", "/api/activity/today"),
        ("GET", "/api/activities"),
    ],
)
def test_missing_credential_rejected_before_forwarding(method, path):
    backend = FakeBackend()
    resp = _client(backend).request(method, path)
    assert resp.status_code == 401
    assert resp.json() == {"error": "Authorization header is required"}
    assert backend.calls == []


def test_success_relayed_verbatim():
    payload = {"sessionId": "abc", "extra": [1, 2, 3]}
    backend = FakeBackend(201, json=payload)
    resp = _client(backend).post("/api/chat", headers=BEARER)

    assert resp.status_code == 201
    assert resp.json() == payload
    forwarded = backend.calls[0]
    assert forwarded.method == "POST"
    assert str(forwarded.url) == "http://backend/chat/sessions"
    assert forwarded.headers["authorization"] == "Bearer tok-123"


def test_header_credential_wins_over_cookie():
    backend = FakeBackend()
    _client(backend).get(
        "/api/chat/sessions",
        headers={"Authorization": "Bearer from-header", "Cookie": "token=from-cookie"},
    )
    assert backend.calls[0].headers["authorization"] == "Bearer from-header"


def test_cookie_credential_is_used_when_header_absent():
    backend = FakeBackend()
    resp = _client(backend).get("/api/chat/sessions", headers={"Cookie": "token=from-cookie"})
    assert resp.status_code == 200
    assert backend.calls[0].headers["authorization"] == "Bearer from-cookie"


def test_scheme_only_header_falls_back_to_cookie():
    backend = FakeBackend()
    resp = _client(backend).get(
        "/api/chat/sessions",
        headers={"Authorization": "Bearer ", "Cookie": "token=good"},
    )
    assert resp.status_code == 200
    assert len(backend.calls) == 1
    assert backend.calls[0].headers["authorization"] == "Bearer good"


def test_scheme_only_header_without_cookie_is_rejected():
    backend = FakeBackend()
    resp = _client(backend).get("/api/chat/sessions", headers={"Authorization": "Bearer"})
    assert resp.status_code == 401
    assert backend.calls == []


def test_send_message_forwards_to_messages_route():
    backend = FakeBackend(200, json={"response": "hi", "message": "hi"})
    resp = _client(backend).post("/api/chat/sessions/s1", json={"message": "I feel anxious"}, headers=BEARER)

    assert resp.status_code == 200
    forwarded = backend.calls[0]
    assert str(forwarded.url) == "http://backend/chat/sessions/s1/messages"
    assert json.loads(forwarded.content) == {"message": "I feel anxious"}


def test_send_message_accepts_bare_string_body():
    backend = FakeBackend()
    _client(backend).post("/api/chat/sessions/s1", json="just text", headers=BEARER)
    assert json.loads(backend.calls[0].content) == {"message": "just text"}


@pytest.mark.parametrize("body", [{}, {"message": ""}, {"message": "   "}, {"message": 5}])
def test_send_message_requires_message(body):
    backend = FakeBackend()
    resp = _client(backend).post("/api/chat/sessions/s1", json=body, headers=BEARER)
    assert resp.status_code == 400
    assert resp.json() == {"error": "Message is required"}
    assert backend.calls == []


def test_json_error_prefers_error_then_message():
    backend = FakeBackend(404, json={"error": "Session not found", "message": "ignored"})
    resp = _client(backend).get("/api/chat/sessions/s1/history", headers=BEARER)
    assert resp.status_code == 404
    assert resp.json() == {"error": "Session not found"}

    backend.respond(409, json={"message": "Conflict detail"})
    resp = _client(backend).get("/api/chat/sessions/s1/history", headers=BEARER)
    assert resp.status_code == 409
    assert resp.json() == {"error": "Conflict detail"}


def test_json_error_without_message_uses_fallback():
    backend = FakeBackend(500, json={"code": 17})
    resp = _client(backend).get("/api/chat/sessions/s1/history", headers=BEARER)
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to fetch chat history"}


def test_non_json_error_uses_status_line():
    backend = FakeBackend(502, text="<html>Bad Gateway</html>", headers={"content-type": "text/html"})
    resp = _client(backend).get("/api/chat/sessions", headers=BEARER)
    assert resp.status_code == 502
    message = resp.json()["error"]
    assert message.startswith("Failed to fetch chat sessions")
    assert "502" in message


def test_malformed_json_error_body_uses_status_line():
    backend = FakeBackend(503, content=b"{not json", headers={"content-type": "application/json"})
    resp = _client(backend).get("/api/chat/sessions", headers=BEARER)
    assert resp.status_code == 503
    assert "503" in resp.json()["error"]


def test_timeout_is_502():
    backend = FakeBackend(error=httpx.ReadTimeout("stalled"))
    resp = _client(backend).get("/api/chat/sessions", headers=BEARER)
    assert resp.status_code == 502
    assert resp.json() == {"error": "Upstream service unavailable"}


def test_unreachable_backend_is_502():
    backend = FakeBackend(error=httpx.ConnectError("refused"))
    resp = _client(backend).post("/api/chat", headers=BEARER)
    assert resp.status_code == 502


def test_unexpected_failure_is_generic_500():
    backend = FakeBackend(error=RuntimeError("secret internal detail"))
    resp = _client(backend).post("/api/chat", headers=BEARER)
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to create chat session"}
    assert "secret" not in resp.text


def test_activity_body_forwarded_and_limit_passed_through():
    backend = FakeBackend(201, json={"success": True, "data": {"id": "a1"}})
    client = _client(backend)

    resp = client.post("/api/activity", json={"type": "Yoga", "duration": 20}, headers=BEARER)
    assert resp.status_code == 201
    assert resp.json()["success"] is True
    assert str(backend.calls[0].url) == "http://backend/api/activity"
    assert json.loads(backend.calls[0].content) == {"type": "Yoga", "duration": 20}

    backend.respond(200, json=[])
    client.get("/api/activities", params={"limit": 5}, headers=BEARER)
    assert str(backend.calls[1].url) == "http://backend/api/activity?limit=5"

    client.get("/api/activity/today", headers=BEARER)
    assert str(backend.calls[2].url) == "http://backend/api/activity/today"


def test_activity_requires_object_body():
    backend = FakeBackend()
    resp = _client(backend).post("/api/activity", json=["not", "an", "object"], headers=BEARER)
    assert resp.status_code == 400
    assert backend.calls == []


def test_health():
    resp = _client(FakeBackend()).get("/health")
    assert resp.status_code == 200
    assert resp.json()["backend"] == "http://backend"


def test_default_forwarder_built_from_config_on_first_use(monkeypatch):
    monkeypatch.setenv("BACKEND_API_URL", "http://configured-backend/")
    app = create_app()
    assert app.state.forwarder is None

    resp = TestClient(app).get("/health")

    assert resp.json()["backend"] == "http://configured-backend"
    assert app.state.forwarder.base_url == "http://configured-backend"
