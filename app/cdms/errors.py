"""
Failure taxonomy for document workflow operations.

Every error carries a stable ``code`` (rendered to API callers) and the HTTP
status the JSON layer answers with. All of them are recoverable by the caller:
fix the input, re-authenticate, or route the request to the right role.
"""
from __future__ import annotations


class CdmsError(Exception):
    code = "error"
    http_status = 400

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message()
        super().__init__(self.message)

    def default_message(self) -> str:
        return self.code.replace("_", " ").capitalize()

    def to_dict(self) -> dict:
        return {"ok": False, "error": self.code, "message": self.message}


class NotFoundError(CdmsError):
    code = "not_found"
    http_status = 404


class DocumentNotFound(NotFoundError):
    code = "document_not_found"

    def default_message(self) -> str:
        return "Document not found"


class WorkflowNotConfigured(NotFoundError):
    code = "workflow_not_configured"

    def default_message(self) -> str:
        return "Workflow not configured"


class StepNotFound(NotFoundError):
    code = "step_not_found"

    def default_message(self) -> str:
        return "Workflow step not found"


class PerformerNotRecognised(NotFoundError):
    code = "performer_not_recognised"

    def default_message(self) -> str:
        return "Performer not recognised"


class UserNotFound(NotFoundError):
    code = "user_not_found"

    def default_message(self) -> str:
        return "User not found"


class StepNotPending(CdmsError):
    code = "step_not_pending"
    http_status = 409


class NotAuthorized(CdmsError):
    code = "not_authorized"
    http_status = 403


class SignatureRequired(CdmsError):
    code = "signature_required"
    http_status = 422

    def default_message(self) -> str:
        return "Electronic signature required for this step"


class SignatureInvalid(SignatureRequired):
    code = "signature_invalid"

    def default_message(self) -> str:
        return "Electronic signature could not be verified"


class ValidationError(CdmsError, ValueError):
    code = "validation_error"
    http_status = 400

    def __init__(self, errors: list[str] | str) -> None:
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["errors"] = self.errors
        return d
