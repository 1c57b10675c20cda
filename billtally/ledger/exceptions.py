"""
Ledger Derivation Errors

Each exception carries an error_code that ends up in DerivationOutcome
and MigrationFailure, so callers can react without parsing messages.
"""

from typing import Any, Optional
from uuid import UUID


class LedgerError(Exception):
    """
    Base exception for ledger derivation.

    Attributes:
        error_code: Stable code, e.g. "SOURCE_NOT_FOUND"
        details: Extra context for logs and audit events
    """

    error_code = "LEDGER_ERROR"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class SourceNotFoundError(LedgerError):
    """The bill to derive from did not exist at derivation time."""

    error_code = "SOURCE_NOT_FOUND"

    def __init__(self, bill_id: UUID):
        super().__init__(f"Bill not found: {bill_id}", {"bill_id": str(bill_id)})
        self.bill_id = bill_id


class InvalidSourceError(LedgerError):
    """The source document has blocking validation errors."""

    error_code = "INVALID_SOURCE"

    def __init__(self, source_id: UUID, issues: list[dict]):
        super().__init__(
            f"Source {source_id} failed validation: "
            + "; ".join(issue["message"] for issue in issues),
            {"source_id": str(source_id), "issues": issues},
        )
        self.source_id = source_id
        self.issues = issues


class PersistenceFailureError(LedgerError):
    """
    Storage rejected some or all postings of a batch.

    `written` postings may already be in storage; they are not rolled back.
    """

    error_code = "PERSISTENCE_FAILURE"

    def __init__(
        self,
        source_id: UUID,
        written: int,
        attempted: int,
        reason: str,
    ):
        super().__init__(
            f"Stored {written} of {attempted} postings for {source_id}: {reason}",
            {"source_id": str(source_id), "written": written, "attempted": attempted},
        )
        self.source_id = source_id
        self.written = written
        self.attempted = attempted
