"""
ReportTracker
Flask Application Factory.

Usage:
    from reporttracker import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, send_from_directory
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from reporttracker.config import config
from reporttracker.models import db
from reporttracker.middleware.logging_config import configure_logging
from reporttracker.middleware.timing import init_request_timing
from reporttracker.middleware.jwt_auth import init_jwt_middleware

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit, login is limited per-route
    storage_uri=os.getenv("REDIS_URL", "memory://"),
)


def create_app(config_name=None, **overrides):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.
        overrides:   Extra config values applied last (tests use UPLOAD_FOLDER).

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())
    app.config.update(overrides)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── JWT auth middleware (sets g.principal) ───────────────────────────
    init_jwt_middleware(app)

    # ── Collaborators: evidence storage + notification sink ──────────────
    from reporttracker.services.evidence_store import init_evidence_store
    from reporttracker.services.notification import init_notifications
    init_evidence_store(app)
    init_notifications(app)

    # ── Request guards (Content-Type) ────────────────────────────────────
    @app.before_request
    def _guard_request():
        from flask import request as _req, abort
        if _req.method in ("POST", "PUT", "PATCH") and _req.path.startswith("/api/"):
            ct = _req.content_type or ""
            if _req.content_length and "json" not in ct and "multipart/form-data" not in ct:
                abort(415, description="Content-Type must be application/json or multipart/form-data")

    # ── Import all models so Alembic can detect them ─────────────────────
    from reporttracker.models import user as _user_models                 # noqa: F401
    from reporttracker.models import daily_data as _daily_data_models     # noqa: F401
    from reporttracker.models import flag as _flag_models                 # noqa: F401
    from reporttracker.models import notification as _notification_models  # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except Exception as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from reporttracker.blueprints.auth_bp import auth_bp
    from reporttracker.blueprints.daily_data_bp import daily_data_bp
    from reporttracker.blueprints.flag_bp import flag_bp
    from reporttracker.blueprints.notification_bp import notification_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(daily_data_bp)
    app.register_blueprint(flag_bp)
    app.register_blueprint(notification_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("create-admin")
    @click.option("--code", required=True, help="Login / division code")
    @click.option("--name", required=True)
    @click.option("--password", required=True)
    @click.option("--email", default=None)
    def create_admin_cmd(code, name, password, email):
        """Create an admin account."""
        _create_user_from_cli(name=name, code=code, password=password, email=email, role="admin")

    @app.cli.command("create-user")
    @click.option("--code", required=True, help="Login / division code")
    @click.option("--name", required=True)
    @click.option("--password", required=True)
    @click.option("--email", default=None)
    @click.option("--phone", default=None)
    @click.option("--role", default="user", show_default=True)
    def create_user_cmd(code, name, password, email, phone, role):
        """Create a user account."""
        _create_user_from_cli(name=name, code=code, password=password,
                              email=email, phone=phone, role=role)

    # ── Evidence files ───────────────────────────────────────────────────
    @app.route("/uploads/<path:name>")
    def uploaded_slip(name):
        return send_from_directory(app.config["UPLOAD_FOLDER"], name)

    # ── Health check ─────────────────────────────────────────────────────
    @app.route("/api/v1/health")
    def health():
        return {"status": "ok", "app": "ReportTracker"}

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        from flask import request
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(413)
    def too_large(e):
        return {"error": "Request body too large"}, 413

    @app.errorhandler(415)
    def unsupported_media_type(e):
        return {"error": e.description}, 415

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error"}, 500

    return app


def _create_user_from_cli(**fields):
    from reporttracker.core.exceptions import ValidationError
    from reporttracker.services.user_service import create_user

    try:
        user = create_user(**fields)
    except ValidationError as exc:
        raise click.ClickException(f"{exc} {exc.details or ''}".strip()) from exc
    click.echo(f"Created {user.role} '{user.code}' (id={user.id})")
