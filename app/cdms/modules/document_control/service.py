"""
Document control service layer.

Creates controlled documents, records workflow decisions against the current
revision, sets lifecycle status, and starts new revisions. Every state change
is paired with exactly one audit event in the caller's transaction; the caller
commits.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import IntegrityError

from app.cdms.audit import record_event
from app.cdms.constants import (
    DECISION_REJECTED,
    DECISIONS,
    DEFAULT_CHANGE_SUMMARY,
    DEFAULT_VERSION_LABEL,
    DOCUMENT_CATEGORIES,
    LIFECYCLE_STATUSES,
    REVISION_APPROVED,
    REVISION_DRAFT,
    REVISION_IN_REVIEW,
    SECURITY_LEVELS,
)
from app.cdms.errors import (
    DocumentNotFound,
    NotAuthorized,
    PerformerNotRecognised,
    StepNotFound,
    StepNotPending,
    UserNotFound,
    ValidationError,
    WorkflowNotConfigured,
)
from app.cdms.models import new_id
from app.cdms.modules.workflows.service import authorize, find_step, is_complete, pending_step, step_to_dict
from app.cdms.repository import (
    get_default_workflow,
    get_document,
    get_document_by_number,
    get_document_type,
    get_user,
    get_workflow,
)
from app.cdms.utils import parse_iso_date, split_list, str_field

from .models import Approval, ControlledDocument, DocumentRevision
from .signatures import signature_to_dict, validate_signature

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from app.cdms.models import User
    from app.cdms.modules.workflows.models import WorkflowDefinition

logger = logging.getLogger(__name__)


def next_version_label(current: str) -> str:
    """
    Increment version labels.

    Supports:
    - dotted numbers: "1.0" -> "1.1", "2.9" -> "2.10"
    - integers: "0" -> "1"
    - letters: "A" -> "B", "Z" -> "AA"
    """
    cur = (current or "").strip().upper()
    if not cur:
        return DEFAULT_VERSION_LABEL

    if re.fullmatch(r"\d+(\.\d+)+", cur):
        parts = cur.split(".")
        parts[-1] = str(int(parts[-1]) + 1)
        return ".".join(parts)

    if re.fullmatch(r"\d+", cur):
        return str(int(cur) + 1)

    if not re.fullmatch(r"[A-Z]+", cur):
        raise ValidationError(f"Unsupported version label format: {current!r}")

    # Base-26 increment, A=1 ... Z=26 (Excel-style)
    n = 0
    for ch in cur:
        n = n * 26 + (ord(ch) - ord("A") + 1)
    n += 1
    out = []
    while n > 0:
        n -= 1
        out.append(chr(ord("A") + (n % 26)))
        n //= 26
    return "".join(reversed(out))


def derive_revision_status(workflow: "WorkflowDefinition", revision: DocumentRevision) -> str:
    if any(a.decision == DECISION_REJECTED for a in revision.approvals):
        return REVISION_DRAFT
    if is_complete(workflow, revision):
        return REVISION_APPROVED
    if revision.approvals:
        return REVISION_IN_REVIEW
    return REVISION_DRAFT


def _parse_date_field(payload: dict, key: str, errors: list[str]):
    try:
        return parse_iso_date(payload.get(key))
    except ValueError:
        errors.append(f"{key} must be YYYY-MM-DD.")
        return None


def validate_document_payload(s: "Session", payload: dict) -> list[str]:
    """Validate document creation payload. Returns list of errors."""
    errors: list[str] = []
    if not str_field(payload, "title", errors):
        errors.append("Title is required.")
    number = str_field(payload, "number", errors)
    if not number:
        errors.append("Document number is required.")
    elif get_document_by_number(s, number):
        errors.append("Document number already exists.")
    category = str_field(payload, "category", errors)
    if category not in DOCUMENT_CATEGORIES:
        errors.append(f"Invalid category. Must be one of: {', '.join(DOCUMENT_CATEGORIES)}")
    security = str_field(payload, "security", errors)
    if security not in SECURITY_LEVELS:
        errors.append(f"Invalid security level. Must be one of: {', '.join(SECURITY_LEVELS)}")
    doc_type_id = str_field(payload, "document_type_id", errors)
    if doc_type_id and not get_document_type(s, doc_type_id):
        errors.append("Unknown document type.")
    for key in ("issued_by", "workflow_id", "version_label", "change_summary"):
        str_field(payload, key, errors)
    for key in ("tags", "linked_documents"):
        value = payload.get(key)
        if value is not None and not isinstance(value, (str, list, tuple)):
            errors.append(f"{key} must be a list or a comma-separated string.")
        elif isinstance(value, (list, tuple)) and not all(isinstance(v, str) for v in value):
            errors.append(f"{key} entries must be strings.")
    if not any(e.startswith("linked_documents") for e in errors):
        for linked_id in split_list(payload.get("linked_documents")):
            if not get_document(s, linked_id):
                errors.append(f"Linked document {linked_id} does not exist.")
    return errors


def create_document(
    s: "Session",
    payload: dict,
    actor: "User",
    *,
    review_interval_days: int = 365,
) -> ControlledDocument:
    """Create a Draft document with one Draft revision and no approvals."""
    errors = validate_document_payload(s, payload)
    effective_from = _parse_date_field(payload, "effective_from", errors)
    next_review_date = _parse_date_field(payload, "next_review_date", errors)
    if errors:
        raise ValidationError(errors)

    issuer = get_user(s, (payload.get("issued_by") or "").strip() or actor.id)
    if not issuer:
        raise UserNotFound("Issuer not found")

    workflow_id = (payload.get("workflow_id") or "").strip()
    workflow = get_workflow(s, workflow_id) if workflow_id else get_default_workflow(s)
    if not workflow:
        raise WorkflowNotConfigured()

    doc_type = get_document_type(s, (payload.get("document_type_id") or "").strip())

    now = datetime.utcnow()
    effective_from = effective_from or now.date()
    if next_review_date is None:
        next_review_date = effective_from + timedelta(days=review_interval_days)

    doc = ControlledDocument(
        id=new_id(),
        number=payload["number"].strip(),
        title=payload["title"].strip(),
        category=payload["category"].strip(),
        security=payload["security"].strip(),
        issued_by_id=issuer.id,
        issued_by_name=issuer.name,
        issuer_role=issuer.role,
        issued_at=now,
        created_by_id=actor.id,
        created_by_name=actor.name,
        created_at=now,
        document_type_id=doc_type.id if doc_type else None,
        document_type_name=doc_type.name if doc_type else None,
        workflow_id=workflow.id,
        workflow_name=workflow.name,
        lifecycle_status="Draft",
        effective_from=effective_from,
        next_review_date=next_review_date,
        tags=split_list(payload.get("tags")),
        linked_documents=split_list(payload.get("linked_documents")),
        updated_at=now,
    )
    rev = DocumentRevision(
        id=new_id(),
        sequence=1,
        version_label=(payload.get("version_label") or "").strip() or DEFAULT_VERSION_LABEL,
        change_summary=(payload.get("change_summary") or "").strip() or DEFAULT_CHANGE_SUMMARY,
        effective_from=effective_from,
        next_review_date=next_review_date,
        status=REVISION_DRAFT,
        created_at=now,
        created_by_id=actor.id,
    )
    doc.revisions.append(rev)
    s.add(doc)

    record_event(
        s,
        actor=actor,
        event_type="doc.create",
        action=f"Document {doc.number} created",
        entity="document",
        entity_id=doc.id,
        context={
            "number": doc.number,
            "title": doc.title,
            "workflow_id": workflow.id,
            "revision_id": rev.id,
            "version_label": rev.version_label,
        },
    )
    s.flush()
    logger.info("Document created id=%s number=%s workflow=%s", doc.id, doc.number, workflow.id)
    return doc


def progress_workflow(
    s: "Session",
    *,
    document_id: str,
    step_id: str,
    performer_id: str,
    decision: str,
    comments: str = "",
    signature: Any = None,
    require_password: bool = False,
) -> tuple[ControlledDocument, DocumentRevision]:
    """
    Record one decision for the pending step of the document's current revision.

    Checks run in a fixed order and each failure raises before anything is
    written. On success one Approval (with its signature, if the step needs one)
    and one audit event are flushed together. Lifecycle status is left alone.
    """
    errors: list[str] = []
    fields = {"step_id": step_id, "decision": decision, "comments": comments}
    step_id = str_field(fields, "step_id", errors)
    decision = str_field(fields, "decision", errors).lower()
    comments = str_field(fields, "comments", errors)
    if errors:
        raise ValidationError(errors)
    if decision not in DECISIONS:
        raise ValidationError(f"Invalid decision. Must be one of: {', '.join(DECISIONS)}")

    doc = get_document(s, document_id, for_update=True)
    if not doc:
        raise DocumentNotFound()

    workflow = get_workflow(s, doc.workflow_id)
    if not workflow:
        raise WorkflowNotConfigured()

    step = find_step(workflow, step_id)
    if not step:
        raise StepNotFound()

    performer = get_user(s, performer_id)
    if not performer or not performer.is_active:
        raise PerformerNotRecognised()

    revision = doc.current_revision
    if revision is None:
        raise ValidationError("Document has no revision.")

    current = pending_step(workflow, revision)
    if current is None or current.id != step.id:
        logger.info(
            "Stale workflow request doc=%s step=%s pending=%s performer=%s",
            doc.id,
            step.id,
            current.id if current else None,
            performer.id,
        )
        if current is None:
            raise StepNotPending(f"Workflow for revision {revision.version_label} is already complete")
        raise StepNotPending(f"Step '{step.name}' is not pending; awaiting '{current.name}'")

    if not authorize(current, performer):
        logger.warning(
            "Unauthorized workflow decision doc=%s step=%s performer=%s role=%s required=%s",
            doc.id,
            step.id,
            performer.id,
            performer.role,
            step.role,
        )
        raise NotAuthorized(f"Step '{step.name}' requires role {step.role}")

    sig = validate_signature(step, signature, performer, require_password=require_password)

    now = datetime.utcnow()
    approval = Approval(
        id=new_id(),
        step_id=step.id,
        step_name=step.name,
        performed_by_id=performer.id,
        performed_by_name=performer.name,
        role=performer.role,
        decision=decision,
        comments=comments,
        performed_at=now,
        signature=sig,
    )
    revision.approvals.append(approval)
    revision.status = derive_revision_status(workflow, revision)
    doc.updated_at = now
    complete = is_complete(workflow, revision)

    record_event(
        s,
        actor=performer,
        event_type="workflow.decision",
        action=f"{step.name} {decision}",
        entity="document",
        entity_id=doc.id,
        context={
            "step_id": step.id,
            "step_name": step.name,
            "decision": decision,
            "comments": approval.comments,
            "revision_id": revision.id,
            "version_label": revision.version_label,
            "approval_id": approval.id,
            "signature_id": sig.id if sig else None,
            "revision_status": revision.status,
            "workflow_complete": complete,
        },
    )
    try:
        s.flush()
    except IntegrityError:
        # Another submission recorded this step first.
        s.rollback()
        logger.warning("Concurrent decision rejected doc=%s step=%s performer=%s", document_id, step_id, performer_id)
        raise StepNotPending(f"Step '{step_id}' was already decided")

    logger.info(
        "Workflow decision recorded doc=%s revision=%s step=%s decision=%s performer=%s complete=%s",
        doc.id,
        revision.id,
        step.id,
        decision,
        performer.id,
        complete,
    )
    return doc, revision


def set_lifecycle_status(s: "Session", *, document_id: str, status: str, actor_id: str) -> ControlledDocument:
    """
    Set the document's lifecycle status.

    No workflow-completion precondition: any recognised actor may set any of
    the six statuses. Repeating the current status is not an error and is
    still audited.
    """
    errors: list[str] = []
    status = str_field({"status": status}, "status", errors)
    if errors:
        raise ValidationError(errors)
    if status not in LIFECYCLE_STATUSES:
        raise ValidationError(f"Invalid lifecycle status. Must be one of: {', '.join(LIFECYCLE_STATUSES)}")

    doc = get_document(s, document_id, for_update=True)
    if not doc:
        raise DocumentNotFound()
    actor = get_user(s, actor_id)
    if not actor or not actor.is_active:
        raise UserNotFound()

    previous = doc.lifecycle_status
    doc.lifecycle_status = status
    doc.updated_at = datetime.utcnow()

    record_event(
        s,
        actor=actor,
        event_type="doc.lifecycle",
        action=f"Lifecycle status updated to {status}",
        entity="document",
        entity_id=doc.id,
        context={"lifecycle_status": status, "previous_status": previous},
    )
    s.flush()
    logger.info("Lifecycle status doc=%s %s -> %s actor=%s", doc.id, previous, status, actor.id)
    return doc


def start_revision(
    s: "Session",
    *,
    document_id: str,
    actor_id: str,
    change_summary: str = "",
    version_label: str | None = None,
    effective_from: str | None = None,
    next_review_date: str | None = None,
) -> DocumentRevision:
    """
    Open a new Draft revision (no approvals) once the current one is either
    fully decided or was rejected. Lifecycle status is not touched.
    """
    errors: list[str] = []
    fields = {"change_summary": change_summary, "version_label": version_label}
    summary = str_field(fields, "change_summary", errors)
    label = str_field(fields, "version_label", errors)
    if errors:
        raise ValidationError(errors)

    doc = get_document(s, document_id, for_update=True)
    if not doc:
        raise DocumentNotFound()
    actor = get_user(s, actor_id)
    if not actor or not actor.is_active:
        raise UserNotFound()
    workflow = get_workflow(s, doc.workflow_id)
    if not workflow:
        raise WorkflowNotConfigured()

    current = doc.current_revision
    rejected = any(a.decision == DECISION_REJECTED for a in current.approvals)
    if not rejected and not is_complete(workflow, current):
        raise ValidationError(
            f"Revision {current.version_label} is still in workflow; it must be completed or rejected first."
        )

    errors = []
    eff = _parse_date_field({"effective_from": effective_from}, "effective_from", errors)
    nrd = _parse_date_field({"next_review_date": next_review_date}, "next_review_date", errors)
    label = label or next_version_label(current.version_label)
    if any(r.version_label == label for r in doc.revisions):
        errors.append(f"Version {label} already exists.")
    if errors:
        raise ValidationError(errors)

    now = datetime.utcnow()
    rev = DocumentRevision(
        id=new_id(),
        sequence=max(r.sequence for r in doc.revisions) + 1,
        version_label=label,
        change_summary=summary,
        effective_from=eff,
        next_review_date=nrd or doc.next_review_date,
        status=REVISION_DRAFT,
        created_at=now,
        created_by_id=actor.id,
    )
    doc.revisions.insert(0, rev)
    doc.updated_at = now

    record_event(
        s,
        actor=actor,
        event_type="doc.revise",
        action=f"Revision {label} started",
        entity="document",
        entity_id=doc.id,
        context={"from": current.version_label, "to": label, "revision_id": rev.id},
    )
    s.flush()
    logger.info("Revision started doc=%s %s -> %s actor=%s", doc.id, current.version_label, label, actor.id)
    return rev


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------


def approval_to_dict(a: Approval) -> dict[str, Any]:
    return {
        "id": a.id,
        "step_id": a.step_id,
        "step_name": a.step_name,
        "performed_by_id": a.performed_by_id,
        "performed_by_name": a.performed_by_name,
        "role": a.role,
        "decision": a.decision,
        "comments": a.comments,
        "performed_at": a.performed_at.isoformat(),
        "signature": signature_to_dict(a.signature) if a.signature else None,
    }


def revision_to_dict(r: DocumentRevision) -> dict[str, Any]:
    return {
        "id": r.id,
        "version_label": r.version_label,
        "change_summary": r.change_summary,
        "effective_from": r.effective_from.isoformat() if r.effective_from else None,
        "next_review_date": r.next_review_date.isoformat() if r.next_review_date else None,
        "status": r.status,
        "created_at": r.created_at.isoformat(),
        "approvals": [approval_to_dict(a) for a in r.approvals],
    }


def document_to_dict(
    doc: ControlledDocument,
    *,
    workflow: "WorkflowDefinition | None" = None,
    viewer: "User | None" = None,
    include_revisions: bool = True,
) -> dict[str, Any]:
    d: dict[str, Any] = {
        "id": doc.id,
        "number": doc.number,
        "title": doc.title,
        "category": doc.category,
        "security": doc.security,
        "issued_by_id": doc.issued_by_id,
        "issued_by_name": doc.issued_by_name,
        "issuer_role": doc.issuer_role,
        "issued_at": doc.issued_at.isoformat(),
        "created_by_id": doc.created_by_id,
        "created_by_name": doc.created_by_name,
        "created_at": doc.created_at.isoformat(),
        "document_type_id": doc.document_type_id,
        "document_type_name": doc.document_type_name,
        "workflow_id": doc.workflow_id,
        "workflow_name": doc.workflow_name,
        "lifecycle_status": doc.lifecycle_status,
        "effective_from": doc.effective_from.isoformat() if doc.effective_from else None,
        "next_review_date": doc.next_review_date.isoformat() if doc.next_review_date else None,
        "tags": list(doc.tags or []),
        "linked_documents": list(doc.linked_documents or []),
    }
    revisions = sorted(doc.revisions, key=lambda r: r.sequence, reverse=True)
    if include_revisions:
        d["revisions"] = [revision_to_dict(r) for r in revisions]
    if workflow is not None and revisions:
        step = pending_step(workflow, revisions[0])
        d["pending_step"] = step_to_dict(step) if step else None
        d["workflow_complete"] = step is None
        if viewer is not None:
            d["can_act"] = bool(step and authorize(step, viewer))
    return d
