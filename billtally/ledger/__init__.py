"""Ledger derivation package."""

from billtally.ledger.deriver import (
    BANK_ACCOUNT_NAME,
    BANK_PARTY_NAME,
    LedgerDeriver,
    build_bill_postings,
    derive_transaction_postings,
)
from billtally.ledger.exceptions import (
    InvalidSourceError,
    LedgerError,
    PersistenceFailureError,
    SourceNotFoundError,
)
from billtally.ledger.migrator import BatchMigrator

__all__ = [
    "BANK_ACCOUNT_NAME",
    "BANK_PARTY_NAME",
    "BatchMigrator",
    "LedgerDeriver",
    "build_bill_postings",
    "derive_transaction_postings",
    # Errors
    "InvalidSourceError",
    "LedgerError",
    "PersistenceFailureError",
    "SourceNotFoundError",
]
