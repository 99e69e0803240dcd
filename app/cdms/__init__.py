import logging
from datetime import timedelta

from flask import Flask, g, request, session
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

from app.cdms.config import load_config
from app.cdms.db import init_db, teardown_db_session
from app.cdms.errors import CdmsError
from app.cdms.routes import bp as routes_bp
from app.cdms.auth import bp as auth_bp, load_current_user
from app.cdms.admin import bp as admin_bp
from app.cdms.modules.document_control.admin import bp as doc_control_bp
from app.cdms.modules.workflows.admin import bp as workflows_bp


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    from app.cdms.security import ensure_csrf_token, validate_csrf

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(("/health", "/healthz")):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # Allow safe auth endpoints to pass through (login/logout)
            if (request.endpoint or "").startswith("auth."):
                return None
            if not validate_csrf(request):
                return {"ok": False, "error": "csrf_failed", "message": "CSRF token missing or invalid."}, 400

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        import os
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(admin_bp, url_prefix="/api")
    app.register_blueprint(doc_control_bp, url_prefix="/api")
    app.register_blueprint(workflows_bp, url_prefix="/api")

    # CSRF guard runs first so the session token exists before user load.
    app.before_request(load_current_user)
    app.teardown_appcontext(teardown_db_session)

    @app.errorhandler(CdmsError)
    def _err_domain(e: CdmsError):  # type: ignore[no-redef]
        app.logger.info(
            "Request failed: %s (%s) path=%s request_id=%s",
            e.code,
            e.message,
            request.path,
            getattr(g, "request_id", None),
        )
        return e.to_dict(), e.http_status

    @app.errorhandler(HTTPException)
    def _err_http(e: HTTPException):  # type: ignore[no-redef]
        return {"ok": False, "error": (e.name or "error").lower().replace(" ", "_"), "message": e.description}, e.code

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return {"ok": False, "error": "internal_error", "message": "Internal server error."}, 500

    # Startup logging
    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
