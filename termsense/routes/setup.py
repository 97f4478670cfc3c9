"""Hook setup routes.

Endpoints:
- GET    /api/hooks/setup  - Installation status
- POST   /api/hooks/setup  - Install script and register hooks
- DELETE /api/hooks/setup  - Remove our hooks from the agent settings
"""

import logging

from flask import Blueprint, current_app, jsonify

setup_bp = Blueprint("setup", __name__)

logger = logging.getLogger(__name__)


def _get_setup_service():
    return current_app.extensions["hooks_setup"]


@setup_bp.route("/hooks/setup", methods=["GET"])
def hooks_setup_status():
    service = _get_setup_service()
    status = service.check_status()
    return jsonify(
        {
            **status.to_dict(),
            "script_path": str(service.script_path),
            "settings_path": str(service.settings_path),
        }
    )


@setup_bp.route("/hooks/setup", methods=["POST"])
def hooks_setup_install():
    service = _get_setup_service()
    success, error = service.setup_all()
    if not success:
        return jsonify({"success": False, "error": error}), 500
    return jsonify({"success": True, **service.check_status().to_dict()})


@setup_bp.route("/hooks/setup", methods=["DELETE"])
def hooks_setup_remove():
    removed = _get_setup_service().remove_hooks_from_settings()
    return jsonify({"success": True, "removed": removed})
