from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, event
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.cdms.models import Base, ImmutableRecordError, new_id


class DocumentType(Base):
    __tablename__ = "document_types"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)  # e.g. "SOP"
    description: Mapped[str] = mapped_column(String(512), nullable=False, default="")


class ControlledDocument(Base):
    __tablename__ = "controlled_documents"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)

    number: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(64), nullable=False)
    security: Mapped[str] = mapped_column(String(32), nullable=False)

    # Identity snapshots (copied strings, not live joins)
    issued_by_id: Mapped[str] = mapped_column(String(64), nullable=False)
    issued_by_name: Mapped[str] = mapped_column(String(255), nullable=False)
    issuer_role: Mapped[str] = mapped_column(String(64), nullable=False)
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_id: Mapped[str] = mapped_column(String(64), nullable=False)
    created_by_name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    document_type_id: Mapped[str | None] = mapped_column(ForeignKey("document_types.id", ondelete="RESTRICT"), nullable=True)
    document_type_name: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # Bound for the document's lifetime
    workflow_id: Mapped[str | None] = mapped_column(ForeignKey("workflow_definitions.id", ondelete="RESTRICT"), nullable=True)
    workflow_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Draft -> In Review -> In Approval -> Effective -> Superseded/Obsolete
    lifecycle_status: Mapped[str] = mapped_column(String(32), nullable=False, default="Draft")

    effective_from: Mapped[date | None] = mapped_column(Date, nullable=True)
    next_review_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    linked_documents: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    # Most recent first
    revisions: Mapped[list["DocumentRevision"]] = relationship(
        "DocumentRevision",
        back_populates="document",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="DocumentRevision.sequence.desc()",
    )

    @property
    def current_revision(self) -> "DocumentRevision | None":
        if not self.revisions:
            return None
        return max(self.revisions, key=lambda r: r.sequence)


class DocumentRevision(Base):
    __tablename__ = "document_revisions"
    __table_args__ = (
        UniqueConstraint("document_id", "version_label", name="uq_document_revision_label"),
        UniqueConstraint("document_id", "sequence", name="uq_document_revision_sequence"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    document_id: Mapped[str] = mapped_column(ForeignKey("controlled_documents.id", ondelete="CASCADE"), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)  # 1, 2, 3 ... per document

    version_label: Mapped[str] = mapped_column(String(32), nullable=False)  # e.g. "1.0"
    change_summary: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    effective_from: Mapped[date | None] = mapped_column(Date, nullable=True)
    next_review_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Draft -> In Review -> Approved (Draft again on rejection)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="Draft")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_id: Mapped[str] = mapped_column(String(64), nullable=False)

    document: Mapped[ControlledDocument] = relationship("ControlledDocument", back_populates="revisions", lazy="selectin")

    # Append-only decision history, oldest first
    approvals: Mapped[list["Approval"]] = relationship(
        "Approval",
        back_populates="revision",
        lazy="selectin",
        order_by=lambda: [Approval.performed_at, Approval.id],
    )


class Approval(Base):
    __tablename__ = "approvals"
    __table_args__ = (
        # One decision per workflow step per revision.
        UniqueConstraint("revision_id", "step_id", name="uq_approval_revision_step"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    revision_id: Mapped[str] = mapped_column(ForeignKey("document_revisions.id", ondelete="RESTRICT"), nullable=False)

    step_id: Mapped[str] = mapped_column(String(64), nullable=False)
    step_name: Mapped[str] = mapped_column(String(255), nullable=False)
    performed_by_id: Mapped[str] = mapped_column(String(64), nullable=False)
    performed_by_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(64), nullable=False)

    decision: Mapped[str] = mapped_column(String(16), nullable=False)  # approved | rejected | comment
    comments: Mapped[str] = mapped_column(Text, nullable=False, default="")
    performed_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    revision: Mapped[DocumentRevision] = relationship("DocumentRevision", back_populates="approvals", lazy="selectin")
    signature: Mapped["ElectronicSignature | None"] = relationship(
        "ElectronicSignature",
        back_populates="approval",
        uselist=False,
        lazy="selectin",
    )


class ElectronicSignature(Base):
    __tablename__ = "electronic_signatures"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    approval_id: Mapped[str] = mapped_column(
        ForeignKey("approvals.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )

    signer_id: Mapped[str] = mapped_column(String(64), nullable=False)
    signer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(64), nullable=False)
    signed_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    challenge_question: Mapped[str] = mapped_column(String(512), nullable=False)
    signature_statement: Mapped[str] = mapped_column(String(1024), nullable=False)

    approval: Mapped[Approval] = relationship("Approval", back_populates="signature", lazy="selectin")


@event.listens_for(Approval, "before_update")
def _prevent_approval_update(mapper, connection, target):
    raise ImmutableRecordError(f"Approval {target.id} is append-only and cannot be modified")


@event.listens_for(Approval, "before_delete")
def _prevent_approval_delete(mapper, connection, target):
    raise ImmutableRecordError(f"Approval {target.id} is append-only and cannot be deleted")


@event.listens_for(ElectronicSignature, "before_update")
def _prevent_signature_update(mapper, connection, target):
    raise ImmutableRecordError(f"Electronic signature {target.id} cannot be modified")


@event.listens_for(ElectronicSignature, "before_delete")
def _prevent_signature_delete(mapper, connection, target):
    raise ImmutableRecordError(f"Electronic signature {target.id} cannot be deleted")
