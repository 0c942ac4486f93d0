"""Exception hierarchy for the audit engine.

Validation and PII errors are raised before any judgment call is issued and
carry enough structure for a caller to correct the submission.
"""

from __future__ import annotations

from consult_audit.models import PIIIssue


class AuditError(Exception):
    """Base exception for all audit errors."""

    pass


class AuditValidationError(AuditError):
    """Raised when a submission has the wrong shape (empty, wrong record count)."""

    def __init__(self, message: str, found: int | None = None, expected: str | None = None):
        super().__init__(message)
        self.found = found
        self.expected = expected


class PIIBlockedError(AuditError):
    """Raised when HIGH-severity identifiable information blocks a submission."""

    def __init__(self, issues: list[PIIIssue]):
        summary = "; ".join(f"{i.severity.value}: {i.message}" for i in issues)
        super().__init__(f"Submission blocked by PII guard: {summary}")
        self.issues = issues


class JudgmentError(AuditError):
    """Raised when the judgment capability fails after its retries."""

    pass
