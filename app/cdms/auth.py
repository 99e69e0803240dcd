from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, g, request, session
from werkzeug.security import check_password_hash

from app.cdms.audit import record_event
from app.cdms.db import db_session
from app.cdms.models import User
from app.cdms.rbac import current_user, require_login
from app.cdms.security import ensure_csrf_token
from app.cdms.utils import str_field

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds


def _check_rate_limit(ip: str) -> bool:
    now = datetime.utcnow()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(datetime.utcnow())


def user_to_dict(u: User) -> dict:
    return {"id": u.id, "name": u.name, "email": u.email, "role": u.role, "is_active": u.is_active}


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    if request.path.startswith(("/health", "/healthz")):
        g.current_user = None
        return

    user_id = session.get("user_id")
    if not user_id:
        g.current_user = None
        return

    s = db_session()
    user = s.get(User, str(user_id))
    if not user or not user.is_active:
        session.pop("user_id", None)
        g.current_user = None
        return
    g.current_user = user


@bp.post("/login")
def login_post():
    data = request.get_json(silent=True) if request.is_json else request.form
    if not isinstance(data, dict):
        data = {}
    email = str_field(data, "email", []).lower()
    password = data.get("password") if isinstance(data.get("password"), str) else ""
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        return {"ok": False, "error": "rate_limited", "message": "Too many login attempts. Please wait 5 minutes."}, 429

    _record_attempt(ip)

    try:
        s = db_session()
        user = s.query(User).filter(User.email == email).one_or_none()
        if not user or not user.is_active or not check_password_hash(user.password_hash, password):
            record_event(
                s,
                actor=None,
                event_type="auth.login_failed",
                action="Login failed",
                entity="user",
                entity_id=email,
                context={"email": email},
            )
            s.commit()
            return {"ok": False, "error": "invalid_credentials", "message": "Invalid credentials."}, 401

        session["user_id"] = user.id
        _login_attempts[ip].clear()
        record_event(s, actor=user, event_type="auth.login", action="Logged in", entity="user", entity_id=user.id)
        s.commit()
        return {"ok": True, "user": user_to_dict(user), "csrf_token": ensure_csrf_token()}
    except Exception:
        current_app.logger.exception("Login POST crashed (email=%s request_id=%s)", email, getattr(g, "request_id", None))
        raise


@bp.post("/logout")
def logout():
    s = db_session()
    user = getattr(g, "current_user", None)
    if user:
        record_event(s, actor=user, event_type="auth.logout", action="Logged out", entity="user", entity_id=user.id)
        s.commit()
    session.pop("user_id", None)
    return {"ok": True}


@bp.get("/me")
@require_login
def me():
    return {"ok": True, "user": user_to_dict(current_user()), "csrf_token": ensure_csrf_token()}
