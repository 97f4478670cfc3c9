"""Session routes for the terminal owner and the presentation layer.

The process that owns the ptys registers panes, streams their output and
input here, and reports directory changes. The UI polls state or follows
the SSE stream.

Endpoints:
- GET    /api/sessions                 - All sessions with state
- POST   /api/sessions                 - Register a pane
- GET    /api/sessions/<id>            - One session
- DELETE /api/sessions/<id>            - Stop monitoring a pane
- GET    /api/sessions/<id>/state      - State (defaults for unknown ids)
- POST   /api/sessions/<id>/output     - Raw output chunk
- POST   /api/sessions/<id>/input      - Input written to the pane
- POST   /api/sessions/<id>/cwd        - Working directory changed
"""

import logging

from flask import Blueprint, current_app, jsonify, request

sessions_bp = Blueprint("sessions", __name__)

logger = logging.getLogger(__name__)


def _get_detector():
    """Get the ActivityStateDetector from app extensions."""
    return current_app.extensions["state_detector"]


def _session_to_dict(session, detector) -> dict:
    info = detector.get_state(session.id)
    pending = detector.pending_timeout(session.id)
    return {
        "id": session.id,
        "cwd": session.working_directory,
        "state": info.state.value,
        "agent_active": info.agent_active,
        "detection_source": info.detection_source.value,
        "pending_forced_exit": session.pending_forced_exit,
        "pending_timeout": pending.value if pending else None,
    }


def _get_data_field() -> str | None:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return None
    value = data.get("data")
    return value if isinstance(value, str) else None


@sessions_bp.route("/sessions", methods=["GET"])
def list_sessions():
    """List all monitored sessions."""
    detector = _get_detector()
    sessions = [_session_to_dict(s, detector) for s in detector.registry.list_sessions()]
    return jsonify({"sessions": sessions, "count": len(sessions)})


@sessions_bp.route("/sessions", methods=["POST"])
def create_session():
    """Register a pane.

    Request body:
        {"id": "string", "cwd": "string"}

    Returns:
        201 with the session, 400 when id is missing.
    """
    data = request.get_json(silent=True) or {}
    session_id = data.get("id") if isinstance(data, dict) else None
    cwd = data.get("cwd", "") if isinstance(data, dict) else ""

    if not isinstance(session_id, str) or not session_id:
        return jsonify({"error": "Missing session id"}), 400
    if not isinstance(cwd, str):
        return jsonify({"error": "cwd must be a string"}), 400

    detector = _get_detector()
    session = detector.register_session(session_id, cwd)
    return jsonify(_session_to_dict(session, detector)), 201


@sessions_bp.route("/sessions/<session_id>", methods=["GET"])
def get_session(session_id: str):
    detector = _get_detector()
    session = detector.registry.get(session_id)
    if session is None:
        return jsonify({"error": "Session not found"}), 404
    return jsonify(_session_to_dict(session, detector))


@sessions_bp.route("/sessions/<session_id>", methods=["DELETE"])
def delete_session(session_id: str):
    """Stop monitoring a pane. Unknown ids are not an error."""
    removed = _get_detector().destroy_session(session_id)
    return jsonify({"success": True, "removed": removed})


@sessions_bp.route("/sessions/<session_id>/state", methods=["GET"])
def get_session_state(session_id: str):
    """Current state; unknown sessions report (idle, inactive, initial)."""
    info = _get_detector().get_state(session_id)
    return jsonify({"session_id": session_id, **info.model_dump(mode="json")})


@sessions_bp.route("/sessions/<session_id>/output", methods=["POST"])
def post_output(session_id: str):
    """Feed a raw output chunk.

    Request body:
        {"data": "raw terminal text"}
    """
    chunk = _get_data_field()
    if chunk is None:
        return jsonify({"error": "Missing data"}), 400

    detector = _get_detector()
    directive = detector.process_output(session_id, chunk)
    info = detector.get_state(session_id)
    return jsonify({"directive": directive.value, **info.model_dump(mode="json")})


@sessions_bp.route("/sessions/<session_id>/input", methods=["POST"])
def post_input(session_id: str):
    """Observe input written to the pane (Ctrl+C arms forced exit).

    Request body:
        {"data": "keys"}
    """
    keys = _get_data_field()
    if keys is None:
        return jsonify({"error": "Missing data"}), 400

    _get_detector().process_input(session_id, keys)
    return jsonify({"success": True})


@sessions_bp.route("/sessions/<session_id>/cwd", methods=["POST"])
def post_cwd(session_id: str):
    """Report a working directory change.

    Request body:
        {"cwd": "/path"}
    """
    data = request.get_json(silent=True)
    cwd = data.get("cwd") if isinstance(data, dict) else None
    if not isinstance(cwd, str) or not cwd:
        return jsonify({"error": "Missing cwd"}), 400

    updated = _get_detector().update_working_directory(session_id, cwd)
    if not updated:
        return jsonify({"error": "Session not found"}), 404
    return jsonify({"success": True, "cwd": cwd})
