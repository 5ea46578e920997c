"""
Gemba Issue Tracker
Flask Application Factory.

Usage:
    from gemba import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, abort, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_migrate import Migrate

from gemba.config import config
from gemba.middleware.jwt_auth import init_jwt_middleware
from gemba.middleware.logging_config import configure_logging
from gemba.middleware.rate_limiter import init_rate_limits, rate_limit_key
from gemba.middleware.timing import init_request_timing
from gemba.models import db
from gemba.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine  # noqa: E402


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=rate_limit_key,
    default_limits=[],                     # no global limit, applied per-blueprint/route
    storage_uri=os.getenv("REDIS_URL", "memory://"),
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    # Instantiate so ProductionConfig can refuse to start without its secrets
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request timing + JWT (before the limiter so it can key on the user) ──
    init_request_timing(app)
    init_jwt_middleware(app)
    limiter.init_app(app)

    # ── Request guards (input length + Content-Type) ─────────────────────
    app.config.setdefault("MAX_CONTENT_LENGTH", 1024 * 1024)  # 1 MB

    @app.before_request
    def _guard_request():
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if request.data and "json" not in ct:
                abort(415, description="Content-Type must be application/json")

    # ── Error handlers ───────────────────────────────────────────────────
    register_error_handlers(app)

    # ── Import all models so create_all / Alembic see them ───────────────
    from gemba.models import issue as _issue_models          # noqa: F401
    from gemba.models import reference as _reference_models  # noqa: F401

    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite:///") and ":memory:" not in app.config["SQLALCHEMY_DATABASE_URI"]:
        os.makedirs(app.instance_path, exist_ok=True)

    with app.app_context():
        db.create_all()

    # ── Blueprints ───────────────────────────────────────────────────────
    from gemba.blueprints.analytics_bp import analytics_bp
    from gemba.blueprints.export_bp import export_bp
    from gemba.blueprints.health_bp import health_bp
    from gemba.blueprints.issue_bp import issue_bp

    app.register_blueprint(issue_bp)
    app.register_blueprint(analytics_bp)
    app.register_blueprint(export_bp)
    app.register_blueprint(health_bp)

    init_rate_limits(app, limiter)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-reference-data")
    def seed_reference_data_cmd():
        """Seed default issue categories and shopfloor areas."""
        from gemba.services.reference_data import seed_reference_data
        created = seed_reference_data()
        click.echo(f"Created {created['categories']} categories and {created['areas']} areas.")

    @app.cli.command("issue-token")
    @click.option("--user-id", default="dev-user", show_default=True)
    @click.option("--username", default="dev", show_default=True)
    @click.option("--role", default="team_lead", show_default=True,
                  type=click.Choice(["operator", "team_lead", "manager", "admin"]))
    @click.option("--expires-in", default=3600, show_default=True, help="Seconds")
    def issue_token_cmd(user_id, username, role, expires_in):
        """Mint a development access token for calling the API."""
        from gemba.models.reference import ROLE_LEVELS
        from gemba.services.jwt_service import generate_access_token
        token = generate_access_token(
            user_id, ROLE_LEVELS[role], username=username, role=role, expires_in=expires_in,
        )
        click.echo(token)

    logger.info("App created (config=%s)", config_name)
    return app
