"""
Tests for the MindSage web API.
"""

import pytest
from fastapi.testclient import TestClient

from web.app import create_app


@pytest.fixture
def manager(make_manager):
    return make_manager()


@pytest.fixture
def client(manager):
    """FastAPI test client; entering it runs the app lifespan (initialize)."""
    with TestClient(create_app(session_manager=manager)) as test_client:
        yield test_client


@pytest.fixture
def logged_in(client):
    response = client.post("/api/login", json={"principal_id": "2vxsx-fae", "token": "delegation"})
    assert response.json()["logged_in"] is True
    return client


class TestSessionEndpoints:
    """Test session lifecycle endpoints."""

    def test_get_session_before_login(self, client):
        response = client.get("/api/session")
        assert response.status_code == 200
        data = response.json()
        assert data["is_authenticated"] is False
        assert data["lifecycle"] == "unauthenticated"
        assert data["loading"] is False

    def test_login_with_delegation(self, client):
        response = client.post(
            "/api/login",
            json={"principal_id": "2vxsx-fae", "token": "delegation"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["logged_in"] is True
        assert data["session"]["principal_id"] == "2vxsx-fae"
        assert data["session"]["lifecycle"] == "authenticated_no_profile"
        assert data["session"]["actor_available"] is True

    def test_login_without_credential_fails_cleanly(self, client):
        response = client.post("/api/login")
        assert response.status_code == 200
        assert response.json()["logged_in"] is False

    def test_login_requires_principal_and_token_together(self, client):
        response = client.post("/api/login", json={"principal_id": "2vxsx-fae"})
        assert response.status_code == 400

    def test_logout(self, logged_in):
        response = logged_in.post("/api/logout")
        assert response.status_code == 200
        assert response.json()["session"]["is_authenticated"] is False


class TestDomainEndpoints:
    """Test profile, therapy-session and insight endpoints."""

    def test_operations_require_login(self, client, service):
        response = client.post("/api/therapy-sessions", json={"session_type": "CBT", "stress_before": 5})
        assert response.status_code == 200
        assert response.json() == {
            "success": False,
            "error": "Not authenticated",
            "kind": "not_authenticated",
        }
        assert service.calls == []

    def test_register_and_session_flow(self, logged_in):
        profile = logged_in.post("/api/profile", json={"username": "alice"}).json()
        assert profile["success"] is True
        assert profile["profile"]["username"] == "alice"
        assert profile["profile"]["principal_id"] == "2vxsx-fae"

        started = logged_in.post(
            "/api/therapy-sessions",
            json={"session_type": "CBT", "stress_before": 7},
        ).json()
        session_id = started["session_id"]

        ended = logged_in.post(
            f"/api/therapy-sessions/{session_id}/end",
            json={"duration": 25, "stress_after": 4, "pitch": 190.0, "tempo": 120.0},
        ).json()
        assert ended["success"] is True
        assert ended["session"]["voice_metrics"]["emotion"] == "Neutral"

        sessions = logged_in.get("/api/therapy-sessions").json()
        assert [s["id"] for s in sessions["sessions"]] == [session_id]

        state = logged_in.get("/api/session").json()
        assert state["user_profile"]["total_sessions"] == 1

    def test_blank_username(self, logged_in):
        response = logged_in.post("/api/profile", json={"username": "  "})
        assert response.json()["kind"] == "invalid_input"

    def test_missing_body_field_is_422(self, logged_in):
        response = logged_in.post("/api/therapy-sessions", json={"session_type": "CBT"})
        assert response.status_code == 422

    def test_remote_rejection_is_reported(self, logged_in):
        response = logged_in.get("/api/report")
        assert response.json() == {
            "success": False,
            "error": "User not found",
            "kind": "remote_rejected",
        }

    def test_reflection(self, logged_in):
        response = logged_in.post("/api/reflection", json={"thought": "No one cares about me"})
        assert response.json()["reflection"].startswith("Challenge that thought")

    def test_last_active_and_stats(self, logged_in):
        logged_in.post("/api/profile", json={"username": "alice"})

        assert logged_in.post("/api/profile/last-active").json() == {"success": True}
        stats = logged_in.get("/api/stats").json()
        assert stats["stats"] == {"total_users": 1, "total_sessions": 0}
