import json

import httpx
import pytest
from fastapi.testclient import TestClient

from calmly.activity.contracts import ActivityCompletedEvent
from calmly.activity.notifier import HttpEventNotifier, NotificationDispatcher
from calmly.activity.service import set_dispatcher
from calmly.backend.server import create_app


class RecordingNotifier:
    def __init__(self):
        self.events = []

    async def send(self, event):
        self.events.append(event)


@pytest.fixture
def notifier():
    recorder = RecordingNotifier()
    set_dispatcher(NotificationDispatcher(recorder, max_attempts=1, backoff_seconds=0))
    return recorder


@pytest.fixture
def client(notifier):
    with TestClient(create_app()) as test_client:
        yield test_client


def test_log_activity_returns_created_envelope(client, auth_headers, notifier):
    resp = client.post(
        "/api/activity",
        json={"type": "RUNNING", "name": "Evening run", "duration": 25, "difficulty": 3},
        headers=auth_headers("u_act"),
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["type"] == "running"
    assert body["data"]["userId"] == "u_act"
    assert body["data"]["id"]
    assert body["data"]["timestamp"]


def test_invalid_type_is_400(client, auth_headers):
    resp = client.post("/api/activity", json={"type": "skydiving"}, headers=auth_headers())
    assert resp.status_code == 400
    assert resp.json()["error"].startswith("type:")


def test_negative_duration_is_400(client, auth_headers):
    resp = client.post("/api/activity", json={"type": "yoga", "duration": -5}, headers=auth_headers())
    assert resp.status_code == 400
    assert "duration" in resp.json()["error"]


def test_today_and_list_are_per_user(client, auth_headers):
    mine = auth_headers("u_mine")
    for kind in ("meditation", "walking", "reading"):
        assert client.post("/api/activity", json={"type": kind}, headers=mine).status_code == 201
    client.post("/api/activity", json={"type": "social"}, headers=auth_headers("u_other"))

    today = client.get("/api/activity/today", headers=mine)
    assert today.status_code == 200
    assert sorted(a["type"] for a in today.json()) == ["meditation", "reading", "walking"]

    limited = client.get("/api/activity", params={"limit": 2}, headers=mine)
    assert limited.status_code == 200
    assert len(limited.json()) == 2


def test_limit_out_of_range_is_400(client, auth_headers):
    resp = client.get("/api/activity", params={"limit": 0}, headers=auth_headers())
    assert resp.status_code == 400
    assert "limit" in resp.json()["error"]


def test_activity_requires_auth(client):
    assert client.post("/api/activity", json={"type": "yoga"}).status_code == 401
    assert client.get("/api/activity/today").status_code == 401


def test_completion_event_delivered(auth_headers, notifier):
    with TestClient(create_app()) as client:
        resp = client.post("/api/activity", json={"type": "breathing"}, headers=auth_headers())
        activity_id = resp.json()["data"]["id"]
    # lifespan shutdown drains the dispatcher
    assert [e.data["id"] for e in notifier.events] == [activity_id]
    assert notifier.events[0].name == "activity/completed"


@pytest.mark.anyio
async def test_http_notifier_posts_to_event_key_url():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"ok": True})

    notifier = HttpEventNotifier("http://events/", event_key="k123", transport=httpx.MockTransport(handler))
    await notifier.send(ActivityCompletedEvent(data={"id": "a1", "type": "yoga"}))

    assert seen["url"] == "http://events/e/k123"
    assert seen["body"] == {"name": "activity/completed", "data": {"id": "a1", "type": "yoga"}}


@pytest.mark.anyio
async def test_http_notifier_raises_on_error_status():
    notifier = HttpEventNotifier(
        "http://events",
        event_key="k123",
        transport=httpx.MockTransport(lambda request: httpx.Response(503)),
    )
    with pytest.raises(httpx.HTTPStatusError):
        await notifier.send(ActivityCompletedEvent(data={"id": "a1"}))
