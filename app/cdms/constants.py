"""
Central constants for the controlled document service.
"""
from __future__ import annotations

# Organizational roles a workflow step can require
USER_ROLES = (
    "QA",
    "Manufacturing",
    "Regulatory",
    "Quality Control",
    "Engineering",
    "Training",
    "Admin",
)

# Document lifecycle (set explicitly, never by the approval engine)
LIFECYCLE_STATUSES = (
    "Draft",
    "In Review",
    "In Approval",
    "Effective",
    "Superseded",
    "Obsolete",
)

# Revision status derived from recorded approvals
REVISION_DRAFT = "Draft"
REVISION_IN_REVIEW = "In Review"
REVISION_APPROVED = "Approved"
REVISION_STATUSES = (REVISION_DRAFT, REVISION_IN_REVIEW, REVISION_APPROVED)

DECISION_APPROVED = "approved"
DECISION_REJECTED = "rejected"
DECISION_COMMENT = "comment"
DECISIONS = (DECISION_APPROVED, DECISION_REJECTED, DECISION_COMMENT)

DOCUMENT_CATEGORIES = (
    "Manufacturing",
    "Quality",
    "Training",
    "Regulatory",
    "Engineering",
    "Validation",
)

SECURITY_LEVELS = ("Confidential", "Internal", "Restricted", "Public")

DEFAULT_VERSION_LABEL = "1.0"
DEFAULT_CHANGE_SUMMARY = "Initial release"

# Compliance defaults for electronic signatures
DEFAULT_CHALLENGE_QUESTION = "Password authenticated"
DEFAULT_SIGNATURE_STATEMENT = "Approved via electronic signature"
