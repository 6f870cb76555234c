"""
GradTrack milestone engine.

    from gradtrack import create_app
    app = create_app()           # APP_ENV, else "development"
    app = create_app("testing")
"""

import logging
import os

from flask import Flask, abort, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as sa_engine
from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError

from gradtrack.auth import init_auth
from gradtrack.config import config
from gradtrack.middleware.jwt_auth import init_jwt_middleware
from gradtrack.middleware.logging_config import configure_logging
from gradtrack.middleware.rate_limiter import init_rate_limits
from gradtrack.middleware.security_headers import init_security_headers
from gradtrack.middleware.timing import init_request_timing
from gradtrack.models import db

logger = logging.getLogger(__name__)

migrate = Migrate()


@event.listens_for(sa_engine.Engine, "connect")
def _sqlite_foreign_keys(dbapi_conn, connection_record):
    """SQLite ignores FK constraints unless asked per connection."""
    if "sqlite" not in type(dbapi_conn).__module__:
        return
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_app(config_name=None):
    """Build the Flask app for ``config_name`` (development, testing, production)."""
    config_name = config_name or os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())

    configure_logging(app)
    limiter = _init_extensions(app)

    # Hook order matters: timing wraps auth, JWT runs before API keys.
    init_request_timing(app)
    init_jwt_middleware(app)
    init_auth(app)
    init_security_headers(app)

    @app.before_request
    def _reject_oversized_body():
        limit = app.config.get("MAX_CONTENT_LENGTH")
        if limit and (request.content_length or 0) > limit:
            abort(413)

    from gradtrack.models import document, milestone, people  # noqa: F401

    if config_name != "production":
        _create_tables(app)

    from gradtrack.blueprints.health_bp import health_bp
    from gradtrack.blueprints.milestone_bp import milestone_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(milestone_bp)

    @app.route("/api/v1/health")
    def health():
        return {"status": "ok", "app": "GradTrack Milestone Engine"}

    @app.cli.command("seed-milestone-templates")
    def seed_milestone_templates_cmd():
        """Insert the standard postgraduate milestone catalogue."""
        from gradtrack.services.template_service import seed_default_templates
        created = seed_default_templates()
        logger.info("Seeded %s milestone templates", created)
        print(f"Seeded {created} new milestone templates.")

    _register_error_handlers(app)
    init_rate_limits(app, limiter)
    return app


def _init_extensions(app):
    """Bind the extensions; returns this app's Limiter.

    The Limiter is built per app because init_app keeps the enabled flag and
    storage on the instance. Limits are attached per blueprint later.
    """
    db.init_app(app)
    migrate.init_app(app, db)
    limiter = Limiter(key_func=get_remote_address, default_limits=[])
    limiter.init_app(app)

    origins = app.config.get("CORS_ORIGINS", "*")
    if origins == "*":
        CORS(app)
    else:
        CORS(app, origins=[o.strip() for o in origins.split(",") if o.strip()])
    return limiter


def _create_tables(app):
    # Production schema is owned by Alembic migrations.
    with app.app_context():
        try:
            db.create_all()
        except SQLAlchemyError as exc:
            app.logger.warning("db.create_all() failed: %s", exc)


def _register_error_handlers(app):
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "code": "ERR_NOT_FOUND", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed", "code": "ERR_METHOD_NOT_ALLOWED"}, 405

    @app.errorhandler(413)
    def payload_too_large(e):
        return {"error": "Request body too large", "code": "ERR_PAYLOAD_TOO_LARGE"}, 413

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "code": "ERR_RATE_LIMITED", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def internal_error(e):
        logger.error("Unhandled server error: %s", e, exc_info=True)
        return {"error": "Internal server error", "code": "ERR_INTERNAL"}, 500
