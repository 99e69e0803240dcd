"""
Lookups the workflow engine consumes.

Every function takes the Session explicitly; there is no module-level catalog.
Binding a different session (or engine) gives an isolated document space.
"""
from __future__ import annotations

from sqlalchemy.orm import Session

from app.cdms.models import User
from app.cdms.modules.document_control.models import ControlledDocument, DocumentType
from app.cdms.modules.workflows.models import WorkflowDefinition


def get_document(s: Session, document_id: str | None, *, for_update: bool = False) -> ControlledDocument | None:
    if not document_id:
        return None
    q = s.query(ControlledDocument).filter(ControlledDocument.id == document_id)
    if for_update:
        # Serializes concurrent decisions on one document (no-op on SQLite).
        q = q.with_for_update().populate_existing()
    return q.one_or_none()


def get_documents(s: Session, *, lifecycle_status: str | None = None, category: str | None = None) -> list[ControlledDocument]:
    q = s.query(ControlledDocument)
    if lifecycle_status:
        q = q.filter(ControlledDocument.lifecycle_status == lifecycle_status)
    if category:
        q = q.filter(ControlledDocument.category == category)
    return q.order_by(ControlledDocument.number.asc()).all()


def get_document_by_number(s: Session, number: str) -> ControlledDocument | None:
    return s.query(ControlledDocument).filter(ControlledDocument.number == number).one_or_none()


def get_workflow(s: Session, workflow_id: str | None) -> WorkflowDefinition | None:
    if not workflow_id:
        return None
    return s.get(WorkflowDefinition, workflow_id)


def get_workflows(s: Session) -> list[WorkflowDefinition]:
    return s.query(WorkflowDefinition).order_by(WorkflowDefinition.is_default.desc(), WorkflowDefinition.name.asc()).all()


def get_default_workflow(s: Session) -> WorkflowDefinition | None:
    wf = s.query(WorkflowDefinition).filter(WorkflowDefinition.is_default.is_(True)).first()
    if wf:
        return wf
    return s.query(WorkflowDefinition).order_by(WorkflowDefinition.created_at.asc(), WorkflowDefinition.name.asc()).first()


def get_document_type(s: Session, document_type_id: str | None) -> DocumentType | None:
    if not document_type_id:
        return None
    return s.get(DocumentType, document_type_id)


def get_document_types(s: Session) -> list[DocumentType]:
    return s.query(DocumentType).order_by(DocumentType.name.asc()).all()


def get_user(s: Session, user_id: str | None) -> User | None:
    if not user_id:
        return None
    return s.get(User, user_id)


def get_users(s: Session, *, active_only: bool = True) -> list[User]:
    q = s.query(User)
    if active_only:
        q = q.filter(User.is_active.is_(True))
    return q.order_by(User.name.asc()).all()
