"""Event routes for termsense.

Provides the Server-Sent Events stream the state indicator follows.
"""

from flask import Blueprint, Response, current_app

from termsense.services.event_bus import get_event_bus

events_bp = Blueprint("events", __name__)


@events_bp.route("/events")
def sse_events():
    """Server-Sent Events endpoint.

    Events:
    - session_state_changed: {session_id, state, agent_active, detection_source}
    - session_registered / session_destroyed: {session_id}
    - hook_received: {session_id, hook_event_name, tool_name, state, cwd}
    """
    event_bus = current_app.extensions.get("event_bus") or get_event_bus()

    def generate():
        yield from event_bus.get_sse_stream()

    return Response(
        generate(),
        mimetype="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
