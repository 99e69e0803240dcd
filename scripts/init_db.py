import sys
from pathlib import Path
import os

from werkzeug.security import generate_password_hash
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from contextlib import contextmanager

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.cdms.models import User
from app.cdms.modules.document_control.models import DocumentType
from app.cdms.modules.workflows.models import WorkflowDefinition
from app.cdms.modules.workflows.service import register_workflow


DOCUMENT_TYPES = [
    ("SOP", "Standard Operating Procedure"),
    ("WI", "Work Instruction"),
    ("FORM", "Controlled form / template"),
    ("POL", "Policy"),
    ("SPEC", "Specification"),
    ("VAL", "Validation protocol / report"),
]

WORKFLOWS = [
    {
        "name": "GMP Standard Approval",
        "description": "QA review, manufacturing sign-off, regulatory release.",
        "is_default": True,
        "steps": [
            {"name": "QA Review", "role": "QA", "requires_signature": True, "due_in_days": 5},
            {"name": "Manufacturing Sign-off", "role": "Manufacturing", "requires_signature": False, "due_in_days": 3},
            {"name": "Regulatory Release", "role": "Regulatory", "requires_signature": True, "due_in_days": 5},
        ],
    },
    {
        "name": "Training Material Review",
        "description": "Training owner review followed by QA approval.",
        "is_default": False,
        "steps": [
            {"name": "Training Review", "role": "Training", "requires_signature": False, "due_in_days": 7},
            {"name": "QA Approval", "role": "QA", "requires_signature": True, "due_in_days": 5},
        ],
    },
]


@contextmanager
def _session_scope(database_url: str):
    engine = create_engine(database_url, future=True)
    sm = sessionmaker(bind=engine, class_=Session, autoflush=False, autocommit=False, expire_on_commit=False, future=True)
    s: Session = sm()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed admin user, document types and workflow templates in an idempotent way.
    Does NOT overwrite an existing admin user's password and never edits an
    existing workflow template (documents may already be bound to it).
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@cdms.local").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"
    admin_name = (os.environ.get("ADMIN_NAME") or "System Administrator").strip()

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///cdms.db").strip()

    with _session_scope(db_url) as s:
        user = s.query(User).filter(User.email == admin_email).one_or_none()
        if not user:
            user = User(
                email=admin_email,
                password_hash=generate_password_hash(admin_password),
                name=admin_name,
                role="Admin",
                is_active=True,
            )
            s.add(user)
            s.flush()

        for name, description in DOCUMENT_TYPES:
            if not s.query(DocumentType).filter(DocumentType.name == name).one_or_none():
                s.add(DocumentType(name=name, description=description))

        for payload in WORKFLOWS:
            if s.query(WorkflowDefinition).filter(WorkflowDefinition.name == payload["name"]).one_or_none():
                continue
            if payload.get("is_default") and s.query(WorkflowDefinition).filter(WorkflowDefinition.is_default.is_(True)).first():
                # Keep whichever default an operator already chose.
                payload = dict(payload, is_default=False)
            register_workflow(s, payload, actor=user)

    print("Initialized database (seed_only).")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
