"""
Advisory Request Hub
Flask application factory.

    from advisory_hub import create_app
    app = create_app()           # APP_ENV, else "development"
    app = create_app("testing")
"""

import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import event
from sqlalchemy.engine import Engine

from advisory_hub.config import config
from advisory_hub.middleware.logging_config import configure_logging
from advisory_hub.middleware.rate_limiter import init_rate_limits
from advisory_hub.middleware.timing import init_request_timing
from advisory_hub.models import db

logger = logging.getLogger(__name__)

migrate = Migrate()
# Limits are attached per blueprint in init_rate_limits
limiter = Limiter(key_func=get_remote_address, default_limits=[])


@event.listens_for(Engine, "connect")
def _sqlite_foreign_keys(dbapi_conn, _record):
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def _cors_origins(raw):
    if not raw or raw == "*":
        return "*"
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def create_app(config_name=None):
    """
    Build the application for ``config_name`` ("development", "testing" or
    "production").  Production settings are validated here and raise
    RuntimeError when DATABASE_URL or SECRET_KEY is missing.
    """
    config_name = config_name or os.getenv("APP_ENV", "development")
    settings = config[config_name]

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(settings() if config_name == "production" else settings)
    app.config.setdefault("RATELIMIT_STORAGE_URI", app.config["REDIS_URL"])

    configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    CORS(app, origins=_cors_origins(app.config.get("CORS_ORIGINS")))
    init_request_timing(app)

    # Every model module must be imported for create_all() and Alembic autogenerate
    from advisory_hub.models import catalog, notification, request as request_models, team  # noqa: F401

    from advisory_hub.blueprints.health_bp import health_bp
    from advisory_hub.blueprints.request_bp import request_bp
    from advisory_hub.blueprints.team_bp import team_bp

    for blueprint in (health_bp, request_bp, team_bp):
        app.register_blueprint(blueprint)

    @app.route("/api/v1/health")
    def health():
        return {"status": "ok", "app": "Advisory Request Hub"}

    _register_error_handlers(app)
    _register_commands(app)
    init_rate_limits(app, limiter)
    return app


def _register_error_handlers(app):
    @app.errorhandler(404)
    def not_found(_exc):
        return {"error": "Not found", "code": "ERR_NOT_FOUND", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(_exc):
        return {"error": f"{request.method} is not allowed here", "code": "ERR_METHOD_NOT_ALLOWED"}, 405

    @app.errorhandler(429)
    def rate_limited(exc):
        return {"error": "Too many requests", "code": "ERR_RATE_LIMITED", "retry_after": exc.description}, 429

    @app.errorhandler(500)
    def server_error(exc):
        logger.error("Unhandled error on %s %s: %s", request.method, request.path, exc, exc_info=True)
        return {"error": "Internal server error", "code": "ERR_INTERNAL"}, 500


def _register_commands(app):
    @app.cli.command("seed-status-transitions")
    def seed_status_transitions_cmd():
        """Insert the default request workflow rules that are missing."""
        from advisory_hub.models.request import seed_default_status_transitions

        added = seed_default_status_transitions()
        db.session.commit()
        click.echo(f"Seeded {added} new status transitions.")

    @app.cli.command("list-status-transitions")
    def list_status_transitions_cmd():
        """Print the workflow rules in effect."""
        from advisory_hub.services.request_service import get_status_transition_rules

        for rule in get_status_transition_rules():
            click.echo(f"{rule.from_status:>20} -> {rule.to_status:<20} {rule.role_required}")
