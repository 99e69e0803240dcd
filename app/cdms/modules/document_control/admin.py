"""
Document control JSON routes.

The acting user is always the logged-in user; client-supplied performer or
signer identities are never trusted.
"""
from __future__ import annotations

from flask import Blueprint, current_app, request

from app.cdms.db import db_session
from app.cdms.errors import DocumentNotFound
from app.cdms.rbac import current_user, require_login
from app.cdms.repository import get_document, get_document_types, get_documents, get_workflow

from .service import (
    create_document,
    document_to_dict,
    progress_workflow,
    revision_to_dict,
    set_lifecycle_status,
    start_revision,
)

bp = Blueprint("doc_control", __name__)


def _payload() -> dict:
    if request.is_json:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}
    return request.form.to_dict()


@bp.get("/document-types")
@require_login
def document_types_list():
    s = db_session()
    return {
        "ok": True,
        "document_types": [{"id": t.id, "name": t.name, "description": t.description} for t in get_document_types(s)],
    }


@bp.get("/documents")
@require_login
def list_documents():
    s = db_session()
    docs = get_documents(
        s,
        lifecycle_status=(request.args.get("status") or "").strip() or None,
        category=(request.args.get("category") or "").strip() or None,
    )
    return {"ok": True, "documents": [document_to_dict(d, include_revisions=False) for d in docs]}


@bp.post("/documents")
@require_login
def create_document_post():
    s = db_session()
    u = current_user()
    doc = create_document(s, _payload(), u, review_interval_days=current_app.config["REVIEW_INTERVAL_DAYS"])
    s.commit()
    return {"ok": True, "document": document_to_dict(doc, workflow=get_workflow(s, doc.workflow_id), viewer=u)}, 201


@bp.get("/documents/<doc_id>")
@require_login
def document_detail(doc_id: str):
    s = db_session()
    doc = get_document(s, doc_id)
    if not doc:
        raise DocumentNotFound()
    return {
        "ok": True,
        "document": document_to_dict(doc, workflow=get_workflow(s, doc.workflow_id), viewer=current_user()),
    }


@bp.post("/documents/<doc_id>/workflow")
@require_login
def progress_workflow_post(doc_id: str):
    s = db_session()
    u = current_user()
    data = _payload()
    doc, revision = progress_workflow(
        s,
        document_id=doc_id,
        step_id=data.get("step_id"),
        performer_id=u.id,
        decision=data.get("decision") or "",
        comments=data.get("comments") or "",
        signature=data.get("signature"),
        require_password=current_app.config["SIGNATURE_REQUIRE_PASSWORD"],
    )
    s.commit()
    return {
        "ok": True,
        "document": document_to_dict(doc, workflow=get_workflow(s, doc.workflow_id), viewer=u),
        "revision": revision_to_dict(revision),
    }


@bp.post("/documents/<doc_id>/lifecycle")
@require_login
def lifecycle_post(doc_id: str):
    s = db_session()
    u = current_user()
    data = _payload()
    doc = set_lifecycle_status(s, document_id=doc_id, status=data.get("status") or "", actor_id=u.id)
    s.commit()
    return {"ok": True, "document": document_to_dict(doc, include_revisions=False)}


@bp.post("/documents/<doc_id>/revisions")
@require_login
def revision_post(doc_id: str):
    s = db_session()
    u = current_user()
    data = _payload()
    rev = start_revision(
        s,
        document_id=doc_id,
        actor_id=u.id,
        change_summary=data.get("change_summary") or "",
        version_label=data.get("version_label"),
        effective_from=data.get("effective_from"),
        next_review_date=data.get("next_review_date"),
    )
    s.commit()
    return {"ok": True, "revision": revision_to_dict(rev)}, 201
