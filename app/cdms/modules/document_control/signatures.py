"""
Electronic signature capture (21 CFR Part 11 style).

The signature is always attributed to the authenticated performer. Whatever
signer identity the submitted payload claims is ignored, and the signing time
is taken from the server clock at validation.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from werkzeug.security import check_password_hash

from app.cdms.constants import DEFAULT_CHALLENGE_QUESTION, DEFAULT_SIGNATURE_STATEMENT
from app.cdms.errors import SignatureInvalid, SignatureRequired, ValidationError
from app.cdms.models import new_id

from .models import ElectronicSignature

if TYPE_CHECKING:
    from app.cdms.models import User
    from app.cdms.modules.workflows.models import WorkflowStep

logger = logging.getLogger(__name__)


def parse_signature_payload(raw: Any) -> dict | None:
    """Accept a dict, a JSON object string, or nothing."""
    if raw is None:
        return None
    if isinstance(raw, str):
        if not raw.strip():
            return None
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Signature payload is not valid JSON: {e}")
    if not isinstance(raw, dict):
        raise ValidationError("Signature payload must be a JSON object.")
    return raw


def validate_signature(
    step: "WorkflowStep",
    submitted: Any,
    performer: "User",
    *,
    require_password: bool = False,
) -> ElectronicSignature | None:
    """
    Returns None when the step needs no signature (any submission is dropped),
    otherwise a new, unsaved ElectronicSignature bound to the performer.
    """
    if not step.requires_signature:
        return None

    payload = parse_signature_payload(submitted)
    if payload is None:
        raise SignatureRequired()

    if require_password:
        password = payload.get("password") or ""
        if not password or not check_password_hash(performer.password_hash, password):
            logger.warning("Signature password check failed step=%s performer=%s", step.id, performer.id)
            raise SignatureInvalid()

    claimed = payload.get("signer_id")
    if claimed and claimed != performer.id:
        logger.warning("Signature payload claimed signer=%s; binding to performer=%s", claimed, performer.id)

    challenge = (payload.get("challenge_question") or "").strip()
    statement = (payload.get("signature_statement") or "").strip()
    return ElectronicSignature(
        id=new_id(),
        signer_id=performer.id,
        signer_name=performer.name,
        role=performer.role,
        signed_at=datetime.utcnow(),
        challenge_question=challenge or DEFAULT_CHALLENGE_QUESTION,
        signature_statement=statement or DEFAULT_SIGNATURE_STATEMENT,
    )


def signature_to_dict(sig: ElectronicSignature) -> dict[str, Any]:
    return {
        "id": sig.id,
        "signer_id": sig.signer_id,
        "signer_name": sig.signer_name,
        "role": sig.role,
        "signed_at": sig.signed_at.isoformat(),
        "challenge_question": sig.challenge_question,
        "signature_statement": sig.signature_statement,
    }
