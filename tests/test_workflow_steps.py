import pytest

from app.cdms.errors import ValidationError
from app.cdms.models import User
from app.cdms.modules.document_control.models import Approval, DocumentRevision
from app.cdms.modules.document_control.service import derive_revision_status, next_version_label
from app.cdms.modules.workflows.models import WorkflowDefinition, WorkflowStep
from app.cdms.modules.workflows.service import authorize, find_step, is_complete, pending_step


def _workflow():
    # positions deliberately listed out of order
    return WorkflowDefinition(
        id="wf",
        name="Three step",
        steps=[
            WorkflowStep(id="c", position=2, name="Release", role="Regulatory", requires_signature=True, due_in_days=5),
            WorkflowStep(id="a", position=0, name="Review", role="QA", requires_signature=True, due_in_days=5),
            WorkflowStep(id="b", position=1, name="Sign-off", role="Manufacturing", requires_signature=False, due_in_days=3),
        ],
    )


def _revision(*decided):
    return DocumentRevision(
        id="r1",
        sequence=1,
        version_label="1.0",
        approvals=[Approval(id=f"ap-{step_id}", step_id=step_id, decision=decision) for step_id, decision in decided],
    )


def test_pending_step_follows_position_order():
    wf = _workflow()
    assert pending_step(wf, _revision()).id == "a"
    assert pending_step(wf, _revision(("a", "approved"))).id == "b"
    assert pending_step(wf, _revision(("a", "approved"), ("b", "comment"))).id == "c"
    assert pending_step(wf, _revision(("a", "approved"), ("b", "approved"), ("c", "approved"))) is None


def test_rejection_and_comment_consume_their_step():
    wf = _workflow()
    assert pending_step(wf, _revision(("a", "rejected"))).id == "b"
    assert pending_step(wf, _revision(("a", "comment"))).id == "b"


def test_is_complete_and_revision_status():
    wf = _workflow()
    assert not is_complete(wf, _revision())
    assert derive_revision_status(wf, _revision()) == "Draft"
    assert derive_revision_status(wf, _revision(("a", "approved"))) == "In Review"
    assert derive_revision_status(wf, _revision(("a", "approved"), ("b", "rejected"))) == "Draft"

    done = _revision(("a", "approved"), ("b", "approved"), ("c", "approved"))
    assert is_complete(wf, done)
    assert derive_revision_status(wf, done) == "Approved"

    # a rejection anywhere keeps the revision in Draft even when every step is decided
    rejected = _revision(("a", "approved"), ("b", "approved"), ("c", "rejected"))
    assert is_complete(wf, rejected)
    assert derive_revision_status(wf, rejected) == "Draft"


def test_empty_workflow_is_complete_immediately():
    wf = WorkflowDefinition(id="empty", name="Empty", steps=[])
    assert pending_step(wf, _revision()) is None


def test_find_step_and_exact_role_match():
    wf = _workflow()
    assert find_step(wf, "b").name == "Sign-off"
    assert find_step(wf, "zzz") is None
    assert find_step(wf, None) is None

    step = find_step(wf, "a")
    assert authorize(step, User(id="u1", role="QA"))
    assert not authorize(step, User(id="u2", role="qa"))
    assert not authorize(step, User(id="u3", role="Admin"))


@pytest.mark.parametrize(
    "current,expected",
    [
        ("1.0", "1.1"),
        ("2.9", "2.10"),
        ("1.2.3", "1.2.4"),
        ("7", "8"),
        ("A", "B"),
        ("Z", "AA"),
        ("AZ", "BA"),
        ("", "1.0"),
    ],
)
def test_next_version_label(current, expected):
    assert next_version_label(current) == expected


def test_next_version_label_rejects_unknown_format():
    with pytest.raises(ValidationError):
        next_version_label("v1-beta")
