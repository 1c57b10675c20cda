"""Services package."""

from billtally.services.storage import (
    AuditStorageInterface,
    BillStorageInterface,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsBillStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryBillStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    PartialWriteError,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "BillStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBillStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    "InMemoryAuditStorage",
    "InMemoryBillStorage",
    "InMemoryLedgerStorage",
    "LedgerStorageInterface",
    "PartialWriteError",
    "StorageError",
]
