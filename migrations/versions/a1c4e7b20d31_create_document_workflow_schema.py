"""create document workflow schema

Revision ID: a1c4e7b20d31
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a1c4e7b20d31"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "users",
        sa.Column("id", sa.String(64), primary_key=True, nullable=False),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(64), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
    )

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
        sa.Column("request_id", sa.String(64), nullable=True),
        sa.Column("event_type", sa.String(128), nullable=False),
        sa.Column("action", sa.String(512), nullable=False),
        sa.Column("actor_id", sa.String(64), nullable=True),
        sa.Column("actor_name", sa.String(255), nullable=True),
        sa.Column("actor_role", sa.String(64), nullable=True),
        sa.Column("entity", sa.String(128), nullable=True),
        sa.Column("entity_id", sa.String(128), nullable=True),
        sa.Column("context", sa.JSON(), nullable=True),
        sa.Column("client_ip", sa.String(64), nullable=True),
    )
    op.create_index("ix_audit_events_created_at", "audit_events", ["created_at"])
    op.create_index("ix_audit_events_event_type", "audit_events", ["event_type"])
    op.create_index("ix_audit_events_entity_id", "audit_events", ["entity_id"])

    op.create_table(
        "workflow_definitions",
        sa.Column("id", sa.String(64), primary_key=True, nullable=False),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("description", sa.String(1024), nullable=False, server_default=""),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
    )

    op.create_table(
        "workflow_steps",
        sa.Column("id", sa.String(64), primary_key=True, nullable=False),
        sa.Column("workflow_id", sa.String(64), sa.ForeignKey("workflow_definitions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(64), nullable=False),
        sa.Column("requires_signature", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("due_in_days", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("workflow_id", "position", name="uq_workflow_step_position"),
        sa.CheckConstraint("due_in_days >= 0", name="ck_workflow_step_due_in_days"),
    )

    op.create_table(
        "document_types",
        sa.Column("id", sa.String(64), primary_key=True, nullable=False),
        sa.Column("name", sa.String(128), nullable=False, unique=True),
        sa.Column("description", sa.String(512), nullable=False, server_default=""),
    )

    op.create_table(
        "controlled_documents",
        sa.Column("id", sa.String(64), primary_key=True, nullable=False),
        sa.Column("number", sa.String(64), nullable=False, unique=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("category", sa.String(64), nullable=False),
        sa.Column("security", sa.String(32), nullable=False),
        sa.Column("issued_by_id", sa.String(64), nullable=False),
        sa.Column("issued_by_name", sa.String(255), nullable=False),
        sa.Column("issuer_role", sa.String(64), nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=False), nullable=False),
        sa.Column("created_by_id", sa.String(64), nullable=False),
        sa.Column("created_by_name", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
        sa.Column("document_type_id", sa.String(64), sa.ForeignKey("document_types.id", ondelete="RESTRICT"), nullable=True),
        sa.Column("document_type_name", sa.String(128), nullable=True),
        sa.Column("workflow_id", sa.String(64), sa.ForeignKey("workflow_definitions.id", ondelete="RESTRICT"), nullable=True),
        sa.Column("workflow_name", sa.String(255), nullable=True),
        sa.Column("lifecycle_status", sa.String(32), nullable=False, server_default="Draft"),
        sa.Column("effective_from", sa.Date(), nullable=True),
        sa.Column("next_review_date", sa.Date(), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("linked_documents", sa.JSON(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=False), nullable=False),
    )

    op.create_table(
        "document_revisions",
        sa.Column("id", sa.String(64), primary_key=True, nullable=False),
        sa.Column("document_id", sa.String(64), sa.ForeignKey("controlled_documents.id", ondelete="CASCADE"), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("version_label", sa.String(32), nullable=False),
        sa.Column("change_summary", sa.String(1024), nullable=False, server_default=""),
        sa.Column("effective_from", sa.Date(), nullable=True),
        sa.Column("next_review_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="Draft"),
        sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
        sa.Column("created_by_id", sa.String(64), nullable=False),
        sa.UniqueConstraint("document_id", "version_label", name="uq_document_revision_label"),
        sa.UniqueConstraint("document_id", "sequence", name="uq_document_revision_sequence"),
    )

    op.create_table(
        "approvals",
        sa.Column("id", sa.String(64), primary_key=True, nullable=False),
        sa.Column("revision_id", sa.String(64), sa.ForeignKey("document_revisions.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("step_id", sa.String(64), nullable=False),
        sa.Column("step_name", sa.String(255), nullable=False),
        sa.Column("performed_by_id", sa.String(64), nullable=False),
        sa.Column("performed_by_name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(64), nullable=False),
        sa.Column("decision", sa.String(16), nullable=False),
        sa.Column("comments", sa.Text(), nullable=False, server_default=""),
        sa.Column("performed_at", sa.DateTime(timezone=False), nullable=False),
        sa.UniqueConstraint("revision_id", "step_id", name="uq_approval_revision_step"),
    )

    op.create_table(
        "electronic_signatures",
        sa.Column("id", sa.String(64), primary_key=True, nullable=False),
        sa.Column("approval_id", sa.String(64), sa.ForeignKey("approvals.id", ondelete="RESTRICT"), nullable=False, unique=True),
        sa.Column("signer_id", sa.String(64), nullable=False),
        sa.Column("signer_name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(64), nullable=False),
        sa.Column("signed_at", sa.DateTime(timezone=False), nullable=False),
        sa.Column("challenge_question", sa.String(512), nullable=False),
        sa.Column("signature_statement", sa.String(1024), nullable=False),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("electronic_signatures")
    op.drop_table("approvals")
    op.drop_table("document_revisions")
    op.drop_table("controlled_documents")
    op.drop_table("document_types")
    op.drop_table("workflow_steps")
    op.drop_table("workflow_definitions")
    op.drop_index("ix_audit_events_entity_id", table_name="audit_events")
    op.drop_index("ix_audit_events_event_type", table_name="audit_events")
    op.drop_index("ix_audit_events_created_at", table_name="audit_events")
    op.drop_table("audit_events")
    op.drop_table("users")
