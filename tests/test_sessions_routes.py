"""Tests for session API routes."""

import json

import pytest
from flask import Flask

from termsense.routes.sessions import sessions_bp


@pytest.fixture
def app(detector):
    app = Flask(__name__)
    app.config["TESTING"] = True
    app.extensions["state_detector"] = detector
    app.register_blueprint(sessions_bp, url_prefix="/api")
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def post_json(client, url, payload):
    return client.post(url, data=json.dumps(payload), content_type="application/json")


class TestSessionCrud:
    """Tests for registering and removing panes."""

    def test_create_session(self, client, detector):
        response = post_json(client, "/api/sessions", {"id": "pane-9", "cwd": "/work/app"})

        assert response.status_code == 201
        data = response.get_json()
        assert data["id"] == "pane-9"
        assert data["cwd"] == "/work/app"
        assert data["state"] == "idle"
        assert data["agent_active"] is False
        assert data["detection_source"] == "initial"
        assert data["pending_timeout"] is None
        assert "pane-9" in detector.registry

    def test_create_requires_id(self, client):
        assert post_json(client, "/api/sessions", {"cwd": "/work/app"}).status_code == 400
        assert post_json(client, "/api/sessions", {"id": ""}).status_code == 400

    def test_create_rejects_bad_cwd(self, client):
        assert post_json(client, "/api/sessions", {"id": "pane-9", "cwd": 5}).status_code == 400

    def test_list_sessions(self, client, changes):
        data = client.get("/api/sessions").get_json()

        assert data["count"] == 1
        assert data["sessions"][0]["id"] == "pane-1"

    def test_get_session(self, client, changes):
        assert client.get("/api/sessions/pane-1").get_json()["cwd"] == "/work/app"

    def test_get_unknown_session(self, client):
        assert client.get("/api/sessions/missing").status_code == 404

    def test_delete_session(self, client, detector, changes):
        data = client.delete("/api/sessions/pane-1").get_json()

        assert data["removed"] is True
        assert "pane-1" not in detector.registry

    def test_delete_unknown_session(self, client):
        response = client.delete("/api/sessions/missing")

        assert response.status_code == 200
        assert response.get_json()["removed"] is False


class TestSessionState:
    """Tests for the state query."""

    def test_unknown_session_defaults(self, client):
        data = client.get("/api/sessions/missing/state").get_json()

        assert data == {
            "session_id": "missing",
            "state": "idle",
            "agent_active": False,
            "detection_source": "initial",
        }


class TestOutputAndInput:
    """Tests for feeding the pane's streams."""

    def test_output_updates_state(self, client, changes):
        response = post_json(client, "/api/sessions/pane-1/output", {"data": "Welcome to Claude Code"})

        data = response.get_json()
        assert data["directive"] == "activate"
        assert data["state"] == "processing"
        assert data["agent_active"] is True
        assert data["detection_source"] == "pattern"
        assert len(changes) == 1

    def test_output_requires_string(self, client, changes):
        assert post_json(client, "/api/sessions/pane-1/output", {"data": 5}).status_code == 400
        assert post_json(client, "/api/sessions/pane-1/output", {}).status_code == 400

    def test_output_for_unknown_session(self, client):
        data = post_json(client, "/api/sessions/missing/output", {"data": "Claude Code"}).get_json()
        assert data["directive"] == "none"

    def test_interrupt_arms_forced_exit(self, client, detector, changes):
        post_json(client, "/api/sessions/pane-1/output", {"data": "Welcome to Claude Code"})

        response = post_json(client, "/api/sessions/pane-1/input", {"data": "\x03"})

        assert response.get_json()["success"] is True
        assert client.get("/api/sessions/pane-1").get_json()["pending_timeout"] == "forced_exit"

    def test_input_requires_data(self, client, changes):
        assert post_json(client, "/api/sessions/pane-1/input", {"keys": "x"}).status_code == 400


class TestWorkingDirectory:
    """Tests for cwd updates."""

    def test_update_cwd(self, client, detector, changes):
        response = post_json(client, "/api/sessions/pane-1/cwd", {"cwd": "/work/other"})

        assert response.status_code == 200
        assert detector.registry.get("pane-1").working_directory == "/work/other"

    def test_update_cwd_unknown_session(self, client):
        assert post_json(client, "/api/sessions/missing/cwd", {"cwd": "/x"}).status_code == 404

    def test_update_cwd_requires_value(self, client, changes):
        assert post_json(client, "/api/sessions/pane-1/cwd", {}).status_code == 400
