from datetime import date, datetime, time, timedelta
from typing import Any

from flask import g, has_request_context, request
from sqlalchemy.orm import Session

from app.cdms.models import AuditEvent, User


def record_event(
    s: Session,
    *,
    actor: User | None,
    event_type: str,
    action: str,
    entity: str | None = None,
    entity_id: str | None = None,
    context: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> AuditEvent:
    """
    Append-only audit event helper.

    The event joins the caller's transaction: it commits or rolls back together
    with the change it describes. Actor name/role are copied, not referenced.
    """
    in_request = has_request_context()
    rid = request_id or (getattr(g, "request_id", None) if in_request else None)
    ev = AuditEvent(
        created_at=datetime.utcnow(),
        request_id=rid,
        event_type=event_type,
        action=action,
        actor_id=actor.id if actor else None,
        actor_name=actor.name if actor else None,
        actor_role=actor.role if actor else None,
        entity=entity,
        entity_id=entity_id,
        context=dict(context) if context else None,
        client_ip=request.remote_addr if in_request else None,
    )
    s.add(ev)
    return ev


def list_events(
    s: Session,
    *,
    entity_id: str | None = None,
    event_type: str | None = None,
    actor: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    limit: int = 200,
) -> list[AuditEvent]:
    """Newest-first slice of the ledger with simple filters."""
    q = s.query(AuditEvent)
    if entity_id:
        q = q.filter(AuditEvent.entity_id == entity_id)
    if event_type:
        q = q.filter(AuditEvent.event_type.like(f"%{event_type}%"))
    if actor:
        like = f"%{actor}%"
        q = q.filter((AuditEvent.actor_name.like(like)) | (AuditEvent.actor_id == actor))
    if date_from:
        q = q.filter(AuditEvent.created_at >= datetime.combine(date_from, time.min))
    if date_to:
        # inclusive end-date (treat as whole day)
        q = q.filter(AuditEvent.created_at < datetime.combine(date_to + timedelta(days=1), time.min))
    return q.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(limit).all()


def event_to_dict(ev: AuditEvent) -> dict[str, Any]:
    return {
        "id": ev.id,
        "timestamp": ev.created_at.isoformat(),
        "event_type": ev.event_type,
        "action": ev.action,
        "actor_id": ev.actor_id,
        "actor_name": ev.actor_name,
        "actor_role": ev.actor_role,
        "entity": ev.entity,
        "entity_id": ev.entity_id,
        "context": ev.context or {},
        "request_id": ev.request_id,
    }
