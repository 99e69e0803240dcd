"""
Workflow step resolution and authorization.

A workflow is an ordered array of steps; the "cursor" of a revision is derived,
never stored: the first step (by position) with no recorded decision. Any
recorded decision (approved, rejected, comment) consumes its step.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

from app.cdms.audit import record_event
from app.cdms.constants import USER_ROLES
from app.cdms.errors import ValidationError
from app.cdms.models import new_id
from app.cdms.utils import str_field

from .models import WorkflowDefinition, WorkflowStep

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from app.cdms.models import User
    from app.cdms.modules.document_control.models import DocumentRevision


def pending_step(workflow: WorkflowDefinition, revision: "DocumentRevision") -> WorkflowStep | None:
    """Return the next step awaiting a decision, or None when the workflow is complete."""
    recorded = {a.step_id for a in revision.approvals}
    for step in sorted(workflow.steps, key=lambda st: st.position):
        if step.id not in recorded:
            return step
    return None


def is_complete(workflow: WorkflowDefinition, revision: "DocumentRevision") -> bool:
    return pending_step(workflow, revision) is None


def find_step(workflow: WorkflowDefinition, step_id: str | None) -> WorkflowStep | None:
    for step in workflow.steps:
        if step.id == step_id:
            return step
    return None


def authorize(step: WorkflowStep, performer: "User") -> bool:
    """Exact role match. No delegation and no admin override."""
    return performer.role == step.role


def validate_workflow_payload(payload: dict) -> list[str]:
    errors: list[str] = []
    if not str_field(payload, "name", errors):
        errors.append("Workflow name is required.")
    str_field(payload, "description", errors)
    steps = payload.get("steps") or []
    if not isinstance(steps, list):
        return errors + ["Steps must be a list."]
    if not steps:
        errors.append("A workflow needs at least one step.")
    for i, raw in enumerate(steps, start=1):
        if not isinstance(raw, dict):
            errors.append(f"Step {i}: expected an object.")
            continue
        step_errors: list[str] = []
        if not str_field(raw, "name", step_errors):
            step_errors.append("name is required.")
        role = str_field(raw, "role", step_errors)
        if role not in USER_ROLES:
            step_errors.append(f"invalid role {role!r}. Must be one of: {', '.join(USER_ROLES)}")
        try:
            due = int(raw.get("due_in_days", 0))
        except (TypeError, ValueError):
            step_errors.append("due_in_days must be an integer.")
        else:
            if due < 0:
                step_errors.append("due_in_days must be >= 0.")
        errors.extend(f"Step {i}: {e}" for e in step_errors)
    return errors


def register_workflow(s: "Session", payload: dict, actor: "User | None" = None) -> WorkflowDefinition:
    """
    Add a workflow template to the catalog.

    Steps keep the order they are given in. Marking the new workflow as default
    clears the flag on every other workflow (at most one default).
    """
    errors = validate_workflow_payload(payload)
    name = str_field(payload, "name", [])
    if name and s.query(WorkflowDefinition).filter(WorkflowDefinition.name == name).first():
        errors.append(f"Workflow {name!r} already exists.")
    if errors:
        raise ValidationError(errors)

    is_default = bool(payload.get("is_default"))
    if is_default:
        s.query(WorkflowDefinition).filter(WorkflowDefinition.is_default.is_(True)).update(
            {WorkflowDefinition.is_default: False}
        )

    wf = WorkflowDefinition(
        id=str(payload.get("id") or new_id()),
        name=payload["name"].strip(),
        description=(payload.get("description") or "").strip(),
        is_default=is_default,
    )
    for position, raw in enumerate(payload["steps"]):
        step = WorkflowStep(
            id=str(raw.get("id") or new_id()),
            position=position,
            name=raw["name"].strip(),
            role=raw["role"].strip(),
            requires_signature=bool(raw.get("requires_signature")),
            due_in_days=int(raw.get("due_in_days", 0)),
        )
        wf.steps.append(step)
    s.add(wf)
    record_event(
        s,
        actor=actor,
        event_type="workflow.create",
        action=f"Workflow {wf.name} registered",
        entity="workflow",
        entity_id=wf.id,
        context={"steps": [st.name for st in wf.steps], "is_default": wf.is_default},
    )
    s.flush()
    return wf


def step_to_dict(step: WorkflowStep) -> dict[str, Any]:
    return {
        "id": step.id,
        "position": step.position,
        "name": step.name,
        "role": step.role,
        "requires_signature": step.requires_signature,
        "due_in_days": step.due_in_days,
    }


def workflow_to_dict(wf: WorkflowDefinition) -> dict[str, Any]:
    return {
        "id": wf.id,
        "name": wf.name,
        "description": wf.description,
        "is_default": wf.is_default,
        "steps": [step_to_dict(st) for st in wf.steps],
    }
