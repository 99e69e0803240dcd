from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import g

from app.cdms.errors import CdmsError, NotAuthorized
from app.cdms.models import User


class LoginRequired(CdmsError):
    code = "login_required"
    http_status = 401

    def default_message(self) -> str:
        return "Login required"


def current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        # require_login should prevent this
        raise LoginRequired()
    return u


def user_has_role(user: User | None, *roles: str) -> bool:
    if not user or not user.is_active:
        return False
    return user.role in roles


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        user: User | None = getattr(g, "current_user", None)
        if not user or not user.is_active:
            raise LoginRequired()
        return fn(*args, **kwargs)

    return wrapped


def require_role(*roles: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            if not user or not user.is_active:
                raise LoginRequired()
            if not user_has_role(user, *roles):
                raise NotAuthorized(f"Requires role: {', '.join(roles)}")
            return fn(*args, **kwargs)

        return wrapped

    return decorator
