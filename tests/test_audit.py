from datetime import date, datetime, timedelta

import pytest

from app.cdms.audit import event_to_dict, list_events, record_event
from app.cdms.db import session_scope
from app.cdms.models import AuditEvent, ImmutableRecordError, User
from app.cdms.modules.document_control.models import Approval, ElectronicSignature
from app.cdms.modules.document_control.service import progress_workflow


def _approve_qa(app, doc_id):
    with session_scope(app) as s:
        progress_workflow(
            s,
            document_id=doc_id,
            step_id="step-qa",
            performer_id="user-qa",
            decision="approved",
            signature={"signature_statement": "Approved"},
        )


def test_audit_events_cannot_be_updated_or_deleted(app, seeded):
    with session_scope(app) as s:
        ev = s.query(AuditEvent).filter(AuditEvent.entity_id == seeded["doc"]).one()
        ev.action = "rewritten"
        with pytest.raises(ImmutableRecordError):
            s.flush()
        s.rollback()

        ev = s.query(AuditEvent).filter(AuditEvent.entity_id == seeded["doc"]).one()
        s.delete(ev)
        with pytest.raises(ImmutableRecordError):
            s.flush()
        s.rollback()

    with session_scope(app) as s:
        ev = s.query(AuditEvent).filter(AuditEvent.entity_id == seeded["doc"]).one()
        assert ev.action == "Document SOP-MFG-001 created"


def test_approvals_and_signatures_are_append_only(app, seeded):
    _approve_qa(app, seeded["doc"])

    with session_scope(app) as s:
        a = s.query(Approval).one()
        a.decision = "rejected"
        with pytest.raises(ImmutableRecordError):
            s.flush()
        s.rollback()

        sig = s.query(ElectronicSignature).one()
        sig.signer_id = "user-admin"
        with pytest.raises(ImmutableRecordError):
            s.flush()
        s.rollback()

        s.delete(s.query(Approval).one())
        with pytest.raises(ImmutableRecordError):
            s.flush()
        s.rollback()

    with session_scope(app) as s:
        a = s.query(Approval).one()
        assert a.decision == "approved"
        assert a.signature.signer_id == "user-qa"


def test_actor_snapshot_survives_user_rename(app, seeded):
    _approve_qa(app, seeded["doc"])
    with session_scope(app) as s:
        u = s.get(User, "user-qa")
        u.name = "Quinn Renamed"
        u.role = "Engineering"

    with session_scope(app) as s:
        ev = list_events(s, entity_id=seeded["doc"], event_type="workflow.decision")[0]
        assert ev.actor_name == "Quinn Auditor"
        assert ev.actor_role == "QA"
        assert s.query(Approval).one().performed_by_name == "Quinn Auditor"


def test_list_events_orders_newest_first_and_filters(app, seeded):
    base = datetime(2026, 3, 1, 9, 0, 0)
    with session_scope(app) as s:
        qa = s.get(User, "user-qa")
        for i in range(3):
            ev = record_event(
                s,
                actor=qa,
                event_type="doc.note",
                action=f"Note {i}",
                entity="document",
                entity_id="doc-x",
                context={"i": i},
            )
            ev.created_at = base + timedelta(days=i)
        # same timestamp: insertion order breaks the tie
        tie = record_event(s, actor=None, event_type="doc.note", action="Note tie", entity_id="doc-x")
        tie.created_at = base + timedelta(days=2)

    with session_scope(app) as s:
        actions = [e.action for e in list_events(s, entity_id="doc-x")]
        assert actions == ["Note tie", "Note 2", "Note 1", "Note 0"]

        in_range = list_events(s, entity_id="doc-x", date_from=date(2026, 3, 2), date_to=date(2026, 3, 2))
        assert [e.action for e in in_range] == ["Note 1"]

        by_actor = list_events(s, entity_id="doc-x", actor="Quinn")
        assert len(by_actor) == 3
        assert [e.action for e in list_events(s, entity_id="doc-x", actor="user-qa")] == ["Note 2", "Note 1", "Note 0"]

        assert len(list_events(s, entity_id="doc-x", limit=2)) == 2

        d = event_to_dict(list_events(s, entity_id="doc-x", actor="Quinn")[-1])
        assert d["timestamp"] == "2026-03-01T09:00:00"
        assert d["actor_role"] == "QA"
        assert d["context"] == {"i": 0}
        assert d["request_id"] is None
