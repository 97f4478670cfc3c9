"""Flask application factory for termsense.

This module creates and configures the Flask application, wiring together
the detection services:

- SessionRegistry: Per-pane detection records
- TimeoutScheduler: Idle reversion and forced-exit timers
- PatternMatcher / HookCorrelator: Output and hook classification
- ActivityStateDetector: Arbitration and the only writer of state
- HookReceiver: Agent hook ingestion
- EventBus: Real-time SSE event broadcasting

Usage:
    from termsense.app import create_app
    app = create_app()
    app.run(port=52429)
"""

import logging

from flask import Flask, jsonify

from termsense.models import AppConfig
from termsense.routes import register_blueprints
from termsense.services import (
    ActivityStateDetector,
    HookCorrelator,
    HookReceiver,
    HooksSetupService,
    PatternMatcher,
    SessionRegistry,
    TimeoutScheduler,
    get_config_service,
    get_event_bus,
)

logger = logging.getLogger(__name__)


def create_app(config_path: str = "config.yaml") -> Flask:
    """Create and configure the Flask application.

    Args:
        config_path: Path to the configuration file.

    Returns:
        Configured Flask application.
    """
    config_service = get_config_service(config_path)
    config = config_service.get_config()

    app = Flask(__name__)
    app.config["TESTING"] = False

    # Store services on app for access in routes
    app.extensions["config"] = config
    app.extensions["config_service"] = config_service

    _init_services(app, config)

    register_blueprints(app)

    @app.route("/health")
    def health():
        detector = app.extensions["state_detector"]
        return jsonify({"status": "ok", "sessions": len(detector.registry)})

    return app


def _init_services(app: Flask, config: AppConfig) -> None:
    """Initialize all services and wire them together.

    Args:
        app: Flask application.
        config: Application configuration.
    """
    event_bus = get_event_bus()
    app.extensions["event_bus"] = event_bus

    registry = SessionRegistry()
    app.extensions["session_registry"] = registry

    scheduler = TimeoutScheduler()
    app.extensions["timeout_scheduler"] = scheduler

    correlator = HookCorrelator(
        registry,
        recent_activity_window_ms=config.detection.recent_activity_window_ms,
    )

    detector = ActivityStateDetector(
        registry=registry,
        scheduler=scheduler,
        matcher=PatternMatcher(),
        correlator=correlator,
        config=config.detection,
        event_bus=event_bus,
    )
    app.extensions["state_detector"] = detector

    hook_receiver = HookReceiver(detector=detector, event_bus=event_bus)
    app.extensions["hook_receiver"] = hook_receiver

    hooks_setup = HooksSetupService(
        script_path=config.hooks.script_path,
        settings_path=config.hooks.agent_settings_path,
        port=config.port,
    )
    app.extensions["hooks_setup"] = hooks_setup

    logger.info("Services initialized")


def main():
    """Run the Flask application."""
    config = get_config_service().get_config()

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = create_app()

    logger.info(f"Starting termsense on {config.host}:{config.port}")
    try:
        app.run(host=config.host, port=config.port, debug=config.debug, threaded=True)
    finally:
        app.extensions["timeout_scheduler"].cancel_all()


if __name__ == "__main__":
    main()
