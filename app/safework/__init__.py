import logging
import os
from datetime import timedelta

from flask import Flask, g, request, session
from dotenv import load_dotenv
from sqlalchemy import inspect as sa_inspect

from app.safework.config import load_config
from app.safework.db import init_db, teardown_db_session
from app.safework.errors import ApiError, register_error_handlers
from app.safework.routes import bp as routes_bp
from app.safework.auth import bp as auth_bp, load_current_user
from app.safework.modules.organizations.admin import bp as organizations_bp
from app.safework.modules.employees.admin import bp as employees_bp
from app.safework.modules.incidents.admin import bp as incidents_bp
from app.safework.modules.plans.admin import bp as plans_bp
from app.safework.modules.training.admin import bp as training_bp
from app.safework.modules.anonymous.admin import bp as anonymous_bp
from app.safework.modules.documents.admin import bp as documents_bp
from app.safework.modules.billing.admin import bp as billing_bp
from app.safework.modules.dashboard.admin import bp as dashboard_bp
from app.safework.modules.reminders.admin import bp as reminders_bp

# Endpoints reachable without a session cookie (token/signature/secret authenticated instead).
CSRF_EXEMPT_ENDPOINTS = frozenset(
    {
        "anonymous.submit_report",
        "anonymous.report_status",
        "anonymous.reporter_respond",
        "billing.stripe_webhook",
        "reminders.cron_reminders",
    }
)


def _configure_logging(app: Flask) -> None:
    level = getattr(logging, str(app.config.get("LOG_LEVEL") or "INFO"), logging.INFO)
    if not logging.getLogger().handlers:
        logging.basicConfig(level=level, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    logging.getLogger("app.safework").setLevel(level)
    app.logger.setLevel(level)


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True
    _configure_logging(app)

    from app.safework.security import validate_csrf

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(("/health", "/healthz")):
            return None
        session.permanent = True
        if not app.config.get("CSRF_ENABLED"):
            return None
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            endpoint = request.endpoint or ""
            if endpoint.startswith("auth.") or endpoint in CSRF_EXEMPT_ENDPOINTS:
                return None
            # Only cookie-authenticated requests carry ambient credentials.
            if not session.get("user_id"):
                return None
            if not validate_csrf(request):
                raise ApiError("CSRF token missing or invalid.", 400)
        return None

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
        if not app.config.get("STRIPE_WEBHOOK_SECRET"):
            app.logger.warning("STRIPE_WEBHOOK_SECRET not set; billing webhooks will be rejected.")
        if not app.config.get("CRON_SECRET"):
            app.logger.warning("CRON_SECRET not set; reminder cron endpoint will reject all calls.")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    if app.config.get("STORAGE_BACKEND") == "s3":
        missing_s3 = [
            key
            for key in ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY")
            if not app.config.get(key)
        ]
        if missing_s3:
            app.logger.error("STORAGE CONFIG ERROR: Missing required S3 env vars: %s", ", ".join(missing_s3))

    register_error_handlers(app)

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(organizations_bp, url_prefix="/api")
    app.register_blueprint(employees_bp, url_prefix="/api")
    app.register_blueprint(incidents_bp, url_prefix="/api")
    app.register_blueprint(plans_bp, url_prefix="/api")
    app.register_blueprint(training_bp, url_prefix="/api")
    app.register_blueprint(anonymous_bp, url_prefix="/api")
    app.register_blueprint(documents_bp, url_prefix="/api")
    app.register_blueprint(billing_bp, url_prefix="/api")
    app.register_blueprint(dashboard_bp, url_prefix="/api")
    app.register_blueprint(reminders_bp, url_prefix="/api")

    def _load_user_wrapper():
        if request.path.startswith(("/health", "/healthz")):
            g.current_user = None
            return None
        return load_current_user()

    app.before_request(_load_user_wrapper)
    app.teardown_appcontext(teardown_db_session)

    # Schema drift check: log loudly if migrations are behind the models.
    def _run_schema_health_check() -> None:
        from app.safework.models import Base

        engine = app.extensions["sqlalchemy_engine"]
        insp = sa_inspect(engine)
        existing = set(insp.get_table_names())
        if not existing:
            app.logger.info("Empty database; run `alembic upgrade head && python scripts/init_db.py`.")
            return
        missing = sorted(set(Base.metadata.tables) - existing)
        if missing:
            app.logger.error("DB schema out of date; run `alembic upgrade head`. Missing tables: %s", ", ".join(missing))

    _run_schema_health_check()

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
