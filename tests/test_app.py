"""Tests for Flask application factory."""

import json
import tempfile
from pathlib import Path

import pytest

from termsense.app import create_app


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config_file(temp_dir):
    """Create a test config file."""
    config_path = temp_dir / "config.yaml"
    config_path.write_text(
        f"""
detection:
  idle_timeout_ms: 800
hooks:
  script_path: {temp_dir}/hooks/termsense-hook.sh
  agent_settings_path: {temp_dir}/claude/settings.json
port: 52429
"""
    )
    return str(config_path)


@pytest.fixture
def app(config_file):
    app = create_app(config_file)
    yield app
    app.extensions["timeout_scheduler"].cancel_all()


@pytest.fixture
def client(app):
    return app.test_client()


class TestCreateApp:
    """Tests for create_app factory."""

    def test_create_app_returns_flask_app(self, app):
        assert app.name == "termsense.app"

    def test_app_has_extensions(self, app):
        for name in (
            "config",
            "config_service",
            "event_bus",
            "session_registry",
            "timeout_scheduler",
            "state_detector",
            "hook_receiver",
            "hooks_setup",
        ):
            assert name in app.extensions

    def test_config_applied(self, app, temp_dir):
        assert app.extensions["hooks_setup"].settings_path == temp_dir / "claude" / "settings.json"
        assert app.extensions["state_detector"].registry is app.extensions["session_registry"]

    def test_health(self, client):
        data = client.get("/health").get_json()
        assert data == {"status": "ok", "sessions": 0}


class TestWiring:
    """Requests flow through all layers."""

    def test_register_then_hook(self, client, app):
        client.post(
            "/api/sessions",
            data=json.dumps({"id": "pane-1", "cwd": "/work/app"}),
            content_type="application/json",
        )

        response = client.post(
            "/hook",
            data=json.dumps({"hook_event_name": "PermissionRequest", "cwd": "/work/app", "tool_name": "Bash"}),
            content_type="application/json",
        )
        assert response.get_json()["session_id"] == "pane-1"

        state = client.get("/api/sessions/pane-1/state").get_json()
        assert state["state"] == "waiting-input"
        assert state["detection_source"] == "hooks"

        events = app.extensions["event_bus"].get_buffered_events("session_state_changed")
        assert events[-1].data["state"] == "waiting-input"

    def test_hooks_setup_endpoints(self, client, app):
        status = client.get("/api/hooks/setup").get_json()
        assert status["is_configured"] is False

        installed = client.post("/api/hooks/setup").get_json()
        assert installed["success"] is True
        assert installed["is_configured"] is True

        removed = client.delete("/api/hooks/setup").get_json()
        assert removed["removed"] is True
        assert client.get("/api/hooks/setup").get_json()["is_configured"] is False

    def test_events_stream_registered(self, app):
        assert any(rule.rule == "/api/events" for rule in app.url_map.iter_rules())
