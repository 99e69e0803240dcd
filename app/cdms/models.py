from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, event
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def new_id() -> str:
    return uuid.uuid4().hex


class Base(DeclarativeBase):
    pass


class ImmutableRecordError(RuntimeError):
    """Raised when code tries to update or delete an append-only record."""


class User(Base):
    """
    Organizational user profile. Approvals, signatures and audit events copy
    name/role at the time they are written, so edits here never rewrite history.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(64), nullable=False)  # e.g. "QA", see constants.USER_ROLES
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)


class AuditEvent(Base):
    """
    Append-only audit trail event.
    Ordered by (created_at, id); rows are never updated or deleted.
    """

    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow, index=True)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    event_type: Mapped[str] = mapped_column(String(128), nullable=False, index=True)  # e.g. "workflow.decision"
    action: Mapped[str] = mapped_column(String(512), nullable=False)  # human-readable description

    actor_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    actor_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    actor_role: Mapped[str | None] = mapped_column(String(64), nullable=True)

    entity: Mapped[str | None] = mapped_column(String(128), nullable=True)  # e.g. "document"
    entity_id: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)

    context: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    client_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)


@event.listens_for(AuditEvent, "before_update")
def _prevent_audit_update(mapper, connection, target):
    raise ImmutableRecordError(f"Audit event {target.id} is append-only and cannot be modified")


@event.listens_for(AuditEvent, "before_delete")
def _prevent_audit_delete(mapper, connection, target):
    raise ImmutableRecordError(f"Audit event {target.id} is append-only and cannot be deleted")


# Ensure module models are imported so Base.metadata includes their tables.
# (Kept at bottom to avoid circular imports.)
from app.cdms.modules.workflows.models import WorkflowDefinition, WorkflowStep  # noqa: E402,F401
from app.cdms.modules.document_control.models import (  # noqa: E402,F401
    Approval,
    ControlledDocument,
    DocumentRevision,
    DocumentType,
    ElectronicSignature,
)
