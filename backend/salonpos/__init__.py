# backend/salonpos/__init__.py
import logging

from flask import Flask

from .config import Config
from .extensions import db, migrate


def _configure_logging(app: Flask) -> None:
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger("salonpos").setLevel(level)


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    _configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Connect queue reactions to ticket events
    from .services import queue_service  # noqa: F401

    # Register blueprints
    from .routes.tickets import tickets_bp
    from .routes.queue import queue_bp
    from .routes.attendance import attendance_bp

    app.register_blueprint(tickets_bp)
    app.register_blueprint(queue_bp)
    app.register_blueprint(attendance_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
