from datetime import date

from flask import Blueprint, request

from app.cdms.audit import event_to_dict, list_events
from app.cdms.auth import user_to_dict
from app.cdms.db import db_session
from app.cdms.errors import ValidationError
from app.cdms.rbac import require_login
from app.cdms.repository import get_users

bp = Blueprint("admin", __name__)


def _parse_date_arg(name: str) -> date | None:
    raw = (request.args.get(name) or "").strip()
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise ValidationError(f"{name} must be YYYY-MM-DD")


@bp.get("/users")
@require_login
def users_list():
    s = db_session()
    return {"ok": True, "users": [user_to_dict(u) for u in get_users(s)]}


@bp.get("/audit")
@require_login
def audit_list():
    """
    Audit trail (last 200 events, newest first) with simple filters:
    - entity_id (exact)
    - event_type (contains)
    - actor (name contains, or exact id)
    - date range (YYYY-MM-DD, inclusive)
    """
    s = db_session()
    events = list_events(
        s,
        entity_id=(request.args.get("entity_id") or "").strip() or None,
        event_type=(request.args.get("event_type") or "").strip() or None,
        actor=(request.args.get("actor") or "").strip() or None,
        date_from=_parse_date_arg("date_from"),
        date_to=_parse_date_arg("date_to"),
    )
    return {"ok": True, "events": [event_to_dict(e) for e in events]}
