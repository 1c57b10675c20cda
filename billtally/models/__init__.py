"""
Data Models Package

This package contains all Pydantic models used by the ledger engine.
Source documents come in, ledger postings go out, and every record
in between conforms to these schemas.
"""

from billtally.models.bill import (
    BankTransaction,
    Bill,
    BillType,
    SourceDocument,
    SourceType,
    ValidationIssue,
    ValidationResult,
)
from billtally.models.ledger import (
    BALANCE_SHEET_CATEGORIES,
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    TAX_CATEGORIES,
    BalanceCheck,
    DerivationOutcome,
    LedgerCategory,
    LedgerPosting,
    MigrationFailure,
    MigrationReport,
)
from billtally.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Source documents
    "BankTransaction",
    "Bill",
    "BillType",
    "SourceDocument",
    "SourceType",
    "ValidationIssue",
    "ValidationResult",
    # Ledger models
    "BALANCE_SHEET_CATEGORIES",
    "EXPENSE_CATEGORIES",
    "INCOME_CATEGORIES",
    "TAX_CATEGORIES",
    "BalanceCheck",
    "DerivationOutcome",
    "LedgerCategory",
    "LedgerPosting",
    "MigrationFailure",
    "MigrationReport",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
