"""
Tests for blocker API endpoints.

Uses FastAPI TestClient against the memory-only settings store from
conftest. Auth bypassed via dependency_overrides.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from sitelock.api import main as api_main
from sitelock.api.main import app
from sitelock.api.security import (
    get_session_token,
    initialize_session_token,
    reset_session_token,
    token_matches,
    verify_session_token,
)
from sitelock.blocker.coordinator import get_coordinator
from sitelock.blocker.exceptions import StorageError
from sitelock.blocker.secret import digest_secret


@pytest.fixture
def client():
    """TestClient with auth bypass."""
    app.dependency_overrides[verify_session_token] = lambda: "test-token"
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def unauth_client():
    """TestClient without auth."""
    app.dependency_overrides.pop(verify_session_token, None)
    return TestClient(app)


def _configure(store, rules=("facebook.com",), password="hunter2"):
    asyncio.run(store.set_rule_set(list(rules)))
    if password:
        asyncio.run(store.set_secret_digest(digest_secret(password)))


class TestAuth:

    def test_navigation_requires_auth(self, unauth_client):
        reset_session_token()
        resp = unauth_client.post(
            "/api/blocker/navigation", json={"context_id": "1", "url": "https://x.com"}
        )
        assert resp.status_code in (401, 403, 503)

    def test_token_matches(self):
        reset_session_token()
        assert token_matches("anything") is False
        token = initialize_session_token()
        assert token_matches(token) is True
        assert token_matches(token + "x") is False
        assert token_matches(None) is False
        assert token_matches("") is False

    def test_missing_header(self, unauth_client):
        initialize_session_token()
        resp = unauth_client.post(
            "/api/blocker/navigation", json={"context_id": "1", "url": "https://x.com"}
        )
        assert resp.status_code == 401
        assert "X-Session-Token" in resp.json()["detail"]

    def test_wrong_token_rejected(self, unauth_client):
        with TestClient(app) as live:
            resp = live.post(
                "/api/blocker/navigation",
                json={"context_id": "1", "url": "https://x.com"},
                headers={"X-Session-Token": "wrong"},
            )
        assert resp.status_code == 401

    def test_real_token_accepted(self, unauth_client):
        with TestClient(app) as live:
            resp = live.post(
                "/api/blocker/navigation",
                json={"context_id": "1", "url": "https://x.com"},
                headers={"X-Session-Token": get_session_token()},
            )
        assert resp.status_code == 200


class TestNavigationRoute:

    def test_challenge_required(self, client, store):
        _configure(store)
        resp = client.post(
            "/api/blocker/navigation",
            json={"context_id": "tab-1", "url": "https://www.facebook.com/feed"},
        )
        assert resp.status_code == 200
        assert resp.json() == {"decision": "challenge_required", "destination": "www.facebook.com"}

    def test_no_action(self, client, store):
        _configure(store)
        resp = client.post(
            "/api/blocker/navigation",
            json={"context_id": "tab-1", "url": "https://example.org/"},
        )
        assert resp.json()["decision"] == "no_action"

    def test_malformed_url(self, client, store):
        _configure(store)
        resp = client.post(
            "/api/blocker/navigation", json={"context_id": "tab-1", "url": "::::"}
        )
        assert resp.status_code == 200
        assert resp.json() == {"decision": "no_action", "destination": ""}

    def test_missing_context_id(self, client):
        resp = client.post("/api/blocker/navigation", json={"url": "https://x.com"})
        assert resp.status_code == 422

    def test_storage_failure_is_503(self, client, monkeypatch):
        async def broken(*args, **kwargs):
            raise StorageError("disk gone")

        monkeypatch.setattr(get_coordinator().store, "get_rule_set", broken)
        resp = client.post(
            "/api/blocker/navigation",
            json={"context_id": "tab-1", "url": "https://facebook.com/"},
        )
        assert resp.status_code == 503


class TestChallengeRoute:

    def test_accepted_then_no_action(self, client, store):
        _configure(store)
        resp = client.post(
            "/api/blocker/challenge",
            json={"context_id": "tab-1", "destination": "facebook.com", "secret": "hunter2"},
        )
        assert resp.json()["result"] == "accepted"

        resp = client.post(
            "/api/blocker/navigation",
            json={"context_id": "tab-1", "url": "https://facebook.com/messages"},
        )
        assert resp.json()["decision"] == "no_action"

    def test_rejected(self, client, store):
        _configure(store)
        resp = client.post(
            "/api/blocker/challenge",
            json={"context_id": "tab-1", "destination": "facebook.com", "secret": "bad"},
        )
        data = resp.json()
        assert data["result"] == "rejected"
        assert "Incorrect password" in data["message"]

    def test_not_configured(self, client, store):
        _configure(store, password=None)
        resp = client.post(
            "/api/blocker/challenge",
            json={"context_id": "tab-1", "destination": "facebook.com", "secret": "x"},
        )
        data = resp.json()
        assert data["result"] == "not_configured"
        assert "No master password set" in data["message"]


class TestContextRoute:

    def test_close_relocks(self, client, store):
        _configure(store)
        client.post(
            "/api/blocker/challenge",
            json={"context_id": "tab-9", "destination": "facebook.com", "secret": "hunter2"},
        )
        resp = client.delete("/api/blocker/contexts/tab-9")
        assert resp.status_code == 200

        resp = client.post(
            "/api/blocker/navigation",
            json={"context_id": "tab-9", "url": "https://facebook.com/"},
        )
        assert resp.json()["decision"] == "challenge_required"


class TestEvaluateRoute:

    @pytest.mark.parametrize("old,new,has_secret,expected", [
        (["a", "b"], ["a", "b"], True, "allow"),
        (["a", "b"], ["a"], False, "reject"),
        (["a", "b"], ["a"], True, "require_reauth"),
        (["a"], ["a", "b"], True, "allow"),
    ])
    def test_decisions(self, client, old, new, has_secret, expected):
        resp = client.post(
            "/api/blocker/evaluate",
            json={"old_rules": old, "new_rules": new, "has_secret": has_secret},
        )
        assert resp.status_code == 200
        assert resp.json()["decision"] == expected

    def test_lists_removed(self, client):
        resp = client.post(
            "/api/blocker/evaluate",
            json={"old_rules": ["a", "b"], "new_rules": [], "has_secret": True},
        )
        assert resp.json()["removed"] == ["a", "b"]


class TestUnlockWebSocket:

    def test_unlock_pushed(self, store):
        _configure(store)
        with TestClient(app) as live:
            token = get_session_token()
            with live.websocket_connect(f"/ws/unlocks?token={token}") as ws:
                resp = live.post(
                    "/api/blocker/challenge",
                    json={"context_id": "tab-3", "destination": "facebook.com", "secret": "hunter2"},
                    headers={"X-Session-Token": token},
                )
                assert resp.json()["result"] == "accepted"
                message = ws.receive_json()

        assert message == {"type": "unlocked", "context_id": "tab-3", "destination": "facebook.com"}

    def test_bad_token_refused(self):
        with TestClient(app) as live:
            with pytest.raises(WebSocketDisconnect):
                with live.websocket_connect("/ws/unlocks?token=nope") as ws:
                    ws.receive_json()


class TestUnlockBroadcastTasks:

    @pytest.mark.asyncio
    async def test_task_held_until_done(self, monkeypatch):
        sent = []

        async def fake_broadcast(message):
            sent.append(message)

        monkeypatch.setattr(api_main.manager, "broadcast", fake_broadcast)
        api_main._on_unlocked("tab-1", "a.com")
        assert len(api_main._broadcast_tasks) == 1

        await asyncio.gather(*list(api_main._broadcast_tasks))
        await asyncio.sleep(0)

        assert api_main._broadcast_tasks == set()
        assert sent == [{"type": "unlocked", "context_id": "tab-1", "destination": "a.com"}]

    @pytest.mark.asyncio
    async def test_failed_broadcast_released(self, monkeypatch):
        async def broken(message):
            raise RuntimeError("socket gone")

        monkeypatch.setattr(api_main.manager, "broadcast", broken)
        api_main._on_unlocked("tab-1", "a.com")
        await asyncio.gather(*list(api_main._broadcast_tasks), return_exceptions=True)
        await asyncio.sleep(0)

        assert api_main._broadcast_tasks == set()


class TestHealth:

    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"
