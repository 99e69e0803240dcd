import pytest
from werkzeug.security import generate_password_hash

from app.cdms import auth, create_app
from app.cdms.db import session_scope
from app.cdms.models import Base, User
from app.cdms.modules.document_control.models import DocumentType
from app.cdms.modules.document_control.service import create_document
from app.cdms.modules.workflows.service import register_workflow

PASSWORD = "pw"

USERS = {
    "qa": ("qa@example.com", "Quinn Auditor", "QA"),
    "mfg": ("mfg@example.com", "Morgan Maker", "Manufacturing"),
    "reg": ("reg@example.com", "Riley Regs", "Regulatory"),
    "admin": ("admin@example.com", "Avery Admin", "Admin"),
}

GMP_WORKFLOW = {
    "id": "wf-gmp",
    "name": "GMP Standard Approval",
    "is_default": True,
    "steps": [
        {"id": "step-qa", "name": "QA Review", "role": "QA", "requires_signature": True, "due_in_days": 5},
        {"id": "step-mfg", "name": "Manufacturing Sign-off", "role": "Manufacturing", "requires_signature": False, "due_in_days": 3},
        {"id": "step-reg", "name": "Regulatory Release", "role": "Regulatory", "requires_signature": True, "due_in_days": 5},
    ],
}


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    for k in ("SIGNATURE_REQUIRE_PASSWORD", "REVIEW_INTERVAL_DAYS"):
        monkeypatch.delenv(k, raising=False)

    # login throttle is per-process and keyed by client IP
    auth._login_attempts.clear()

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)
    return app


@pytest.fixture()
def seeded(app):
    """Four users (one per role), the 3-step GMP workflow, and one Draft SOP."""
    with session_scope(app) as s:
        for key, (email, name, role) in USERS.items():
            s.add(
                User(
                    id=f"user-{key}",
                    email=email,
                    password_hash=generate_password_hash(PASSWORD),
                    name=name,
                    role=role,
                    is_active=True,
                )
            )
        s.add(DocumentType(id="type-sop", name="SOP", description="Standard Operating Procedure"))
        register_workflow(s, GMP_WORKFLOW)
        admin = s.get(User, "user-admin")
        doc = create_document(
            s,
            {
                "title": "Cleaning of Granulator",
                "number": "SOP-MFG-001",
                "category": "Manufacturing",
                "security": "Internal",
                "document_type_id": "type-sop",
            },
            admin,
        )
        doc_id = doc.id
    return {"doc": doc_id}


@pytest.fixture()
def client(app, seeded):
    return app.test_client()


def login(client, key: str) -> dict:
    """Log in as one of USERS; returns headers carrying the CSRF token."""
    r = client.post("/auth/login", json={"email": USERS[key][0], "password": PASSWORD})
    assert r.status_code == 200, r.json
    return {"X-CSRF-Token": r.json["csrf_token"]}
