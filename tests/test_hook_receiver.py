"""Tests for HookReceiver."""

from unittest.mock import MagicMock

import pytest

from termsense.models.activity import AgentState
from termsense.services.hook_correlator import HookEvent
from termsense.services.hook_receiver import HookReceiver


@pytest.fixture
def receiver(detector, event_bus):
    return HookReceiver(detector=detector, event_bus=event_bus)


class TestProcessPayload:
    """Tests for payload handling."""

    def test_applies_event(self, receiver, detector, changes):
        result = receiver.process_payload({"hook_event_name": "UserPromptSubmit", "cwd": "/work/app"})

        assert result.success is True
        assert result.session_id == "pane-1"
        assert result.new_state == AgentState.PROCESSING
        assert result.message == "Applied UserPromptSubmit"
        assert detector.get_state("pane-1").state == AgentState.PROCESSING

    def test_malformed_payload(self, receiver, changes):
        result = receiver.process_payload({"cwd": "/work/app"})

        assert result.success is False
        assert "hook_event_name" in result.message
        assert changes == []

    def test_non_object_payload(self, receiver):
        result = receiver.process_payload("Stop")
        assert result.success is False

    def test_ignored_event(self, receiver, changes):
        result = receiver.process_payload({"hook_event_name": "SessionStart", "cwd": "/work/app"})

        assert result.success is True
        assert result.session_id is None
        assert result.message == "Ignored event: SessionStart"

    def test_no_matching_session(self, receiver):
        result = receiver.process_payload({"hook_event_name": "Stop", "cwd": "/work/app"})

        assert result.success is True
        assert result.session_id is None
        assert result.message == "No matching session"


class TestProcessEvent:
    """Tests for decoded events."""

    def test_broadcasts_hook_received(self, receiver, event_bus, changes):
        receiver.process_event(HookEvent(hook_event_name="PermissionRequest", cwd="/work/app", tool_name="Bash"))

        event = event_bus.get_buffered_events("hook_received")[-1]
        assert event.data == {
            "session_id": "pane-1",
            "hook_event_name": "PermissionRequest",
            "tool_name": "Bash",
            "state": "waiting-input",
            "cwd": "/work/app",
        }

    def test_event_passed_to_detector(self):
        detector = MagicMock()
        detector.update_from_hook.return_value = None
        receiver = HookReceiver(detector=detector)

        result = receiver.process_payload({"hook_event_name": "Stop", "cwd": "/work/app"})

        event = detector.update_from_hook.call_args[0][0]
        assert event.hook_event_name == "Stop"
        assert event.cwd == "/work/app"
        assert result.message == "No matching session"

    def test_stateless_event_skips_detector(self):
        detector = MagicMock()
        receiver = HookReceiver(detector=detector)

        receiver.process_payload({"hook_event_name": "SessionStart", "cwd": "/work/app"})

        detector.update_from_hook.assert_not_called()

    def test_no_broadcast_without_bus(self, detector, changes):
        receiver = HookReceiver(detector=detector)
        result = receiver.process_event(HookEvent(hook_event_name="Stop", cwd="/work/app"))
        assert result.success is True


class TestStatus:
    """Tests for receiver metrics."""

    def test_initial_status(self, receiver):
        status = receiver.get_status()

        assert status["active"] is False
        assert status["seconds_since_last_event"] is None
        assert status["event_count"] == 0

    def test_counters(self, receiver, detector, changes):
        receiver.process_payload({"hook_event_name": "Stop", "cwd": "/work/app"})
        receiver.process_payload({"cwd": "/work/app"})
        detector.destroy_session("pane-1")
        receiver.process_payload({"hook_event_name": "Stop", "cwd": "/work/app"})

        status = receiver.get_status()
        assert status["active"] is True
        assert status["event_count"] == 3
        assert status["resolved_count"] == 1
        assert status["unresolved_count"] == 1
        assert status["malformed_count"] == 1
        assert status["seconds_since_last_event"] >= 0
