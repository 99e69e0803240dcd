from __future__ import annotations

from flask import Blueprint, request

from app.cdms.db import db_session
from app.cdms.errors import ValidationError
from app.cdms.rbac import current_user, require_login, require_role
from app.cdms.repository import get_workflows

from .service import register_workflow, workflow_to_dict

bp = Blueprint("workflows", __name__)


@bp.get("/workflows")
@require_login
def workflows_list():
    s = db_session()
    return {"ok": True, "workflows": [workflow_to_dict(wf) for wf in get_workflows(s)]}


@bp.post("/workflows")
@require_role("Admin")
def workflows_create():
    """Register a workflow template (Admin only). Existing templates are never edited."""
    s = db_session()
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Expected a JSON object.")
    wf = register_workflow(s, payload, actor=current_user())
    s.commit()
    return {"ok": True, "workflow": workflow_to_dict(wf)}, 201
