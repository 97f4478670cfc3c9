"""Hook routes for agent lifecycle events.

The forwarding script installed by HooksSetupService POSTs every hook
payload here, enabling event-driven state detection.

Endpoints:
- POST /hook         - Any hook event (hook_event_name in the body)
- GET  /hook/status  - Hook receiver status
"""

import json
import logging

from flask import Blueprint, current_app, jsonify, request

hooks_bp = Blueprint("hooks", __name__)

logger = logging.getLogger(__name__)


def _log_hook_request(data: dict) -> None:
    """Log hook request with full data for debugging."""
    name = data.get("hook_event_name", "unknown")
    cwd = data.get("cwd") or ""
    cwd_short = cwd.rstrip("/").split("/")[-1] if cwd else "no-cwd"
    tool = data.get("tool_name")
    logger.info(f"[HOOK] {name} | cwd={cwd_short}" + (f" | tool={tool}" if tool else ""))
    logger.debug(f"[HOOK] {name} full data: {json.dumps(data, default=str)}")


def _get_hook_receiver():
    """Get the HookReceiver from app extensions."""
    return current_app.extensions.get("hook_receiver")


def _get_config():
    """Get the app config from extensions."""
    return current_app.extensions.get("config")


@hooks_bp.route("", methods=["POST"])
def receive_hook():
    """Handle a hook event from the agent.

    Request body:
        {
            "hook_event_name": "Stop",
            "session_id": "string",
            "cwd": "string",
            "tool_name": "string"
        }

    Returns:
        JSON with processing result. 400 for bodies that are not a JSON
        object with a hook_event_name.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        logger.warning("[HOOK] Rejected request: invalid JSON")
        return jsonify({"status": "error", "message": "Invalid JSON"}), 400

    _log_hook_request(data)

    config = _get_config()
    if config and not config.hooks.enabled:
        logger.info("[HOOK] REJECTED: hooks disabled")
        return jsonify({"status": "disabled", "message": "Hooks are disabled"}), 200

    hook_receiver = _get_hook_receiver()
    if not hook_receiver:
        logger.error("[HOOK] FAILED: hook receiver not available")
        return jsonify({"status": "error", "message": "Hook receiver not available"}), 200

    result = hook_receiver.process_payload(data)
    if not result.success:
        return jsonify({"status": "error", "message": result.message}), 400

    logger.info(
        f"[HOOK] RESULT: session={result.session_id[:8] if result.session_id else 'none'}, "
        f"state={result.new_state.value if result.new_state else 'none'}, msg={result.message}"
    )

    return jsonify(
        {
            "status": "ok" if result.session_id else "ignored",
            "session_id": result.session_id,
            "state": result.new_state.value if result.new_state else None,
            "message": result.message,
        }
    )


@hooks_bp.route("/status", methods=["GET"])
def hook_status():
    """Get hook receiver status.

    Returns:
        JSON with enabled flag, activity timestamps and event counters.
    """
    config = _get_config()
    hooks_enabled = config.hooks.enabled if config else True

    hook_receiver = _get_hook_receiver()
    if not hook_receiver:
        return jsonify(
            {
                "enabled": hooks_enabled,
                "active": False,
                "message": "Hook receiver not initialized",
            }
        )

    status = hook_receiver.get_status()
    status["enabled"] = hooks_enabled
    return jsonify(status)
