"""Flask routes for termsense."""

from termsense.routes.events import events_bp
from termsense.routes.hooks import hooks_bp
from termsense.routes.sessions import sessions_bp
from termsense.routes.setup import setup_bp

__all__ = [
    "events_bp",
    "hooks_bp",
    "sessions_bp",
    "setup_bp",
]


def register_blueprints(app):
    """Register all blueprints with the Flask app.

    Args:
        app: The Flask application instance.
    """
    app.register_blueprint(events_bp, url_prefix="/api")
    app.register_blueprint(hooks_bp, url_prefix="/hook")
    app.register_blueprint(sessions_bp, url_prefix="/api")
    app.register_blueprint(setup_bp, url_prefix="/api")
