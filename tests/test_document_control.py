import json

from app.cdms.db import session_scope
from app.cdms.models import AuditEvent
from app.cdms.modules.document_control.models import Approval, ControlledDocument

from conftest import login

SIG = {"challenge_question": "Confirm identity", "signature_statement": "I approve this document"}


def _decide(client, headers, doc_id, step_id, decision="approved", **extra):
    return client.post(
        f"/api/documents/{doc_id}/workflow",
        json={"step_id": step_id, "decision": decision, **extra},
        headers=headers,
    )


def test_document_control_vertical_slice_creates_approves_releases_and_audits(client):
    app = client.application

    # Create document as admin -> Draft, revision 1.0, QA pending
    h = login(client, "admin")
    r = client.post(
        "/api/documents",
        json={
            "title": "Line Clearance",
            "number": "WI-QA-002",
            "category": "Quality",
            "security": "Restricted",
            "document_type_id": "type-sop",
            "tags": "gmp, line clearance",
        },
        headers=h,
    )
    assert r.status_code == 201, r.json
    doc = r.json["document"]
    doc_id = doc["id"]
    assert doc["lifecycle_status"] == "Draft"
    assert doc["document_type_name"] == "SOP"
    assert doc["tags"] == ["gmp", "line clearance"]
    assert [rev["version_label"] for rev in doc["revisions"]] == ["1.0"]
    assert doc["pending_step"]["id"] == "step-qa"
    assert doc["can_act"] is False

    # Admin has no override on the QA step
    r = _decide(client, h, doc_id, "step-qa", signature=SIG)
    assert r.status_code == 403
    assert r.json["error"] == "not_authorized"

    # QA approves with a signature (form-style JSON string)
    h = login(client, "qa")
    r = client.get(f"/api/documents/{doc_id}")
    assert r.json["document"]["can_act"] is True

    r = _decide(client, h, doc_id, "step-qa", signature=json.dumps(dict(SIG, signer_id="user-admin")))
    assert r.status_code == 200, r.json
    assert r.json["revision"]["status"] == "In Review"
    approval = r.json["revision"]["approvals"][0]
    assert approval["performed_by_id"] == "user-qa"
    assert approval["signature"]["signer_id"] == "user-qa"
    assert r.json["document"]["pending_step"]["id"] == "step-mfg"
    assert r.json["document"]["can_act"] is False

    # Replay of the same step is stale
    r = _decide(client, h, doc_id, "step-qa", signature=SIG)
    assert r.status_code == 409
    assert r.json["error"] == "step_not_pending"

    # Manufacturing approves (no signature needed)
    h = login(client, "mfg")
    r = _decide(client, h, doc_id, "step-mfg", comments="Equipment list verified")
    assert r.status_code == 200, r.json

    # Regulatory must sign
    h = login(client, "reg")
    r = _decide(client, h, doc_id, "step-reg")
    assert r.status_code == 422
    assert r.json["error"] == "signature_required"

    r = _decide(client, h, doc_id, "step-reg", signature=SIG)
    assert r.status_code == 200, r.json
    assert r.json["document"]["workflow_complete"] is True
    assert r.json["document"]["pending_step"] is None
    assert r.json["document"]["lifecycle_status"] == "Draft"
    assert r.json["revision"]["status"] == "Approved"

    # Release
    r = client.post(f"/api/documents/{doc_id}/lifecycle", json={"status": "Effective"}, headers=h)
    assert r.status_code == 200, r.json
    assert r.json["document"]["lifecycle_status"] == "Effective"

    r = client.get("/api/documents?status=Effective")
    assert [d["number"] for d in r.json["documents"]] == ["WI-QA-002"]

    # Audit trail for the document, newest first
    r = client.get(f"/api/audit?entity_id={doc_id}")
    assert r.status_code == 200
    events = r.json["events"]
    assert [e["event_type"] for e in events] == [
        "doc.lifecycle",
        "workflow.decision",
        "workflow.decision",
        "workflow.decision",
        "doc.create",
    ]
    assert events[0]["action"] == "Lifecycle status updated to Effective"
    assert events[0]["actor_role"] == "Regulatory"
    assert events[3]["action"] == "QA Review approved"
    assert events[3]["request_id"]

    r = client.get("/api/audit?event_type=workflow&actor=Morgan")
    assert [e["action"] for e in r.json["events"]] == ["Manufacturing Sign-off approved"]

    with session_scope(app) as s:
        d = s.query(ControlledDocument).filter(ControlledDocument.number == "WI-QA-002").one()
        assert d.lifecycle_status == "Effective"
        assert s.query(Approval).filter(Approval.revision_id == d.current_revision.id).count() == 3
        assert s.query(AuditEvent).filter(AuditEvent.event_type == "auth.login").count() == 4

    # Next revision opens a fresh cycle
    h = login(client, "admin")
    r = client.post(f"/api/documents/{doc_id}/revisions", json={"change_summary": "Annual review"}, headers=h)
    assert r.status_code == 201, r.json
    assert r.json["revision"]["version_label"] == "1.1"
    assert r.json["revision"]["approvals"] == []

    r = client.get(f"/api/documents/{doc_id}")
    doc = r.json["document"]
    assert [rev["version_label"] for rev in doc["revisions"]] == ["1.1", "1.0"]
    assert doc["pending_step"]["id"] == "step-qa"
    assert doc["lifecycle_status"] == "Effective"


def test_create_document_validation_errors(client):
    h = login(client, "admin")
    r = client.post("/api/documents", json={"number": "SOP-MFG-001", "category": "Quality"}, headers=h)
    assert r.status_code == 400
    assert r.json["error"] == "validation_error"
    assert "Title is required." in r.json["errors"]
    assert "Document number already exists." in r.json["errors"]


def test_form_posts_are_accepted(client, seeded):
    h = login(client, "qa")
    r = client.post(
        f"/api/documents/{seeded['doc']}/workflow",
        data={"step_id": "step-qa", "decision": "comment", "comments": "Typo in 4.2", "signature": json.dumps(SIG)},
        headers=h,
    )
    assert r.status_code == 200, r.json
    assert r.json["revision"]["approvals"][0]["decision"] == "comment"


def test_mutations_require_csrf_token(client, seeded):
    login(client, "qa")
    r = _decide(client, {}, seeded["doc"], "step-qa", signature=SIG)
    assert r.status_code == 400
    assert r.json["error"] == "csrf_failed"

    r = _decide(client, {"X-CSRF-Token": "forged"}, seeded["doc"], "step-qa", signature=SIG)
    assert r.status_code == 400

    with session_scope(client.application) as s:
        assert s.query(Approval).count() == 0


def test_workflow_errors_map_to_status_codes(client, seeded):
    h = login(client, "qa")
    r = _decide(client, h, "missing", "step-qa", signature=SIG)
    assert r.status_code == 404
    assert r.json["error"] == "document_not_found"

    r = _decide(client, h, seeded["doc"], "nope", signature=SIG)
    assert r.status_code == 404
    assert r.json["error"] == "step_not_found"

    r = _decide(client, h, seeded["doc"], "step-mfg")
    assert r.status_code == 409

    r = _decide(client, h, seeded["doc"], "step-qa", decision="veto", signature=SIG)
    assert r.status_code == 400

    r = client.post(f"/api/documents/{seeded['doc']}/lifecycle", json={"status": "Retired"}, headers=h)
    assert r.status_code == 400

    r = client.get("/api/documents/missing")
    assert r.status_code == 404

    r = client.get("/api/audit?date_from=yesterday")
    assert r.status_code == 400


def test_wrongly_typed_json_fields_are_validation_errors(client, seeded):
    app = client.application
    h = login(client, "qa")

    r = client.post(f"/api/documents/{seeded['doc']}/workflow", json={"step_id": 5, "decision": "approved"}, headers=h)
    assert r.status_code == 400
    assert r.json["error"] == "validation_error"
    assert "step_id must be a string." in r.json["errors"]

    r = _decide(client, h, seeded["doc"], "step-qa", comments=7, signature={})
    assert r.status_code == 400
    assert r.json["error"] == "validation_error"
    assert r.json["errors"] == ["comments must be a string."]

    r = _decide(client, h, seeded["doc"], "step-qa", decision=1, signature=SIG)
    assert r.status_code == 400
    assert "decision must be a string." in r.json["errors"]

    r = client.post(f"/api/documents/{seeded['doc']}/lifecycle", json={"status": 2}, headers=h)
    assert r.status_code == 400
    assert r.json["errors"] == ["status must be a string."]

    with session_scope(app) as s:
        assert s.query(Approval).count() == 0

    h = login(client, "admin")
    r = client.post(
        "/api/documents",
        json={
            "title": "Line Clearance",
            "number": 42,
            "category": "Quality",
            "security": "Restricted",
            "document_type_id": "type-sop",
        },
        headers=h,
    )
    assert r.status_code == 400
    assert r.json["error"] == "validation_error"
    assert "number must be a string." in r.json["errors"]

    r = client.post(
        "/api/workflows",
        json={"name": "Numeric", "steps": [{"name": 3, "role": 4}]},
        headers=h,
    )
    assert r.status_code == 400
    assert "Step 1: name must be a string." in r.json["errors"]
    assert "Step 1: role must be a string." in r.json["errors"]

    r = client.post("/api/workflows", json=["not", "an", "object"], headers=h)
    assert r.status_code == 400
    assert r.json["error"] == "validation_error"

    with session_scope(app) as s:
        assert s.query(ControlledDocument).count() == 1


def test_signature_password_mode(app, seeded):
    app.config["SIGNATURE_REQUIRE_PASSWORD"] = True
    client = app.test_client()
    h = login(client, "qa")

    r = _decide(client, h, seeded["doc"], "step-qa", signature=dict(SIG, password="wrong"))
    assert r.status_code == 422
    assert r.json["error"] == "signature_invalid"

    r = _decide(client, h, seeded["doc"], "step-qa", signature=dict(SIG, password="pw"))
    assert r.status_code == 200, r.json


def test_workflow_catalog_admin_only(client):
    h = login(client, "qa")
    r = client.get("/api/workflows")
    assert r.status_code == 200
    gmp = r.json["workflows"][0]
    assert gmp["is_default"] is True
    assert [st["role"] for st in gmp["steps"]] == ["QA", "Manufacturing", "Regulatory"]

    payload = {"name": "Training Material Review", "steps": [{"name": "Trainer Review", "role": "Training"}]}
    r = client.post("/api/workflows", json=payload, headers=h)
    assert r.status_code == 403

    h = login(client, "admin")
    r = client.post("/api/workflows", json=payload, headers=h)
    assert r.status_code == 201, r.json
    assert r.json["workflow"]["steps"][0]["position"] == 0

    r = client.post("/api/workflows", json=payload, headers=h)
    assert r.status_code == 400

    r = client.get("/api/users")
    assert sorted(u["role"] for u in r.json["users"]) == ["Admin", "Manufacturing", "QA", "Regulatory"]

    r = client.get("/api/document-types")
    assert [t["name"] for t in r.json["document_types"]] == ["SOP"]
