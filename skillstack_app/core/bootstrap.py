"""Bootstrap helpers for configuring the Flask application."""

from __future__ import annotations

from flask import Flask

from ..extensions import db
from .error_handlers import register_error_handlers
from .logging_config import setup_logging
from .module_registry import register_default_modules


def configure_logging(app: Flask) -> None:
    """Configure the application logger from LOG_LEVEL, LOG_DIR and LOG_JSON."""

    setup_logging(
        app,
        log_level=app.config.get("LOG_LEVEL", "INFO"),
        log_dir=app.config.get("LOG_DIR"),
        json_format=bool(app.config.get("LOG_JSON", False)),
        logger_name=app.logger.name,
    )
    app.logger.info("Flask app logger configured successfully.")


def register_extensions(app: Flask) -> None:
    """Initialize shared extensions with the Flask app instance."""

    from ..modules.experience.services.settings_provider import init_settings_provider

    db.init_app(app)
    init_settings_provider(app, ttl_seconds=app.config.get("REWARD_SETTINGS_TTL_SECONDS", 300))
    register_error_handlers(app)


def register_blueprints(app: Flask) -> None:
    """Register all default blueprints with the app."""

    register_default_modules(app)


def initialize_database(app: Flask) -> None:
    """Create database tables and make sure every default reward setting has a row."""

    from .. import models  # noqa: F401  (registers the tables on db.metadata)

    db.create_all()
    app.extensions["reward_settings"].ensure_defaults()
