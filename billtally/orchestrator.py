"""
Main Orchestrator for Bill Tally

This module ties the ledger components together and defines the
entry points other parts of the system call:
1. Bill saved → derive and store its postings
2. Bank transaction recorded → derive and store its two postings
3. Bank statement processed → one derivation per transaction
4. Migration → derive postings for every existing bill of a user

DESIGN DECISION: The orchestrator is the error boundary.
- The engine below it raises typed errors
- Callers of the orchestrator get a DerivationOutcome or MigrationReport
- Every failure carries an error code and is audited
"""

import logging
from typing import Optional
from uuid import UUID

import structlog

from billtally.audit import AuditLogger, create_correlation_id
from billtally.config import get_settings
from billtally.ledger import BatchMigrator, LedgerDeriver, LedgerError
from billtally.models.bill import BankTransaction, SourceType
from billtally.models.ledger import DerivationOutcome, MigrationReport
from billtally.services.storage import (
    BillStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsBillStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryBillStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    StorageError,
)
from billtally.validation import LedgerValidator


logger = structlog.get_logger(__name__)


def _failed_outcome(
    source_type: SourceType,
    source_id: Optional[UUID],
    error: Exception,
) -> DerivationOutcome:
    return DerivationOutcome(
        success=False,
        source_type=source_type,
        source_id=source_id,
        error_code=getattr(error, "error_code", "STORAGE_ERROR"),
        error_message=str(error),
    )


class LedgerFlow:
    """
    Orchestrates ledger derivation.

    Flow per source document:
    1. Fetch (bills only) → re-read the stored bill by ID
    2. Validate → reject on errors, flag warnings
    3. Build → classify and produce postings
    4. Check → report unbalanced postings
    5. Persist → one batch insert

    Single-document methods never raise LedgerError or StorageError;
    those become DerivationOutcome(success=False).
    """

    def __init__(
        self,
        bill_storage: BillStorageInterface,
        ledger_storage: LedgerStorageInterface,
        validator: Optional[LedgerValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        stop_on_error: Optional[bool] = None,
    ):
        self._audit_logger = audit_logger
        self._deriver = LedgerDeriver(
            bill_storage=bill_storage,
            ledger_storage=ledger_storage,
            validator=validator,
            audit_logger=audit_logger,
        )
        self._migrator = BatchMigrator(
            bill_storage=bill_storage,
            deriver=self._deriver,
            audit_logger=audit_logger,
            stop_on_error=stop_on_error,
        )

    async def on_bill_saved(
        self,
        bill_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> DerivationOutcome:
        """
        Derive postings for a bill that was just saved.

        Returns:
            DerivationOutcome, with success=False and an error code when
            the bill is missing, invalid, or could not be written
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            return await self._deriver.derive_bill(bill_id, correlation_id)
        except LedgerError as e:
            return _failed_outcome(SourceType.BILL, bill_id, e)
        except StorageError as e:
            await self._storage_failed(e, correlation_id)
            return _failed_outcome(SourceType.BILL, bill_id, e)

    async def on_transaction_recorded(
        self,
        transaction: BankTransaction,
        correlation_id: Optional[UUID] = None,
    ) -> DerivationOutcome:
        """Derive postings for one bank transaction."""
        correlation_id = correlation_id or create_correlation_id()

        try:
            return await self._deriver.record_transaction(transaction, correlation_id)
        except LedgerError as e:
            return _failed_outcome(SourceType.BANK_TRANSACTION, transaction.id, e)
        except StorageError as e:
            await self._storage_failed(e, correlation_id)
            return _failed_outcome(SourceType.BANK_TRANSACTION, transaction.id, e)

    async def process_statement(
        self,
        transactions: list[BankTransaction],
        statement_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[DerivationOutcome]:
        """
        Derive postings for every transaction of a bank statement.

        Transactions are processed in order. A failing transaction is
        reported in its outcome and does not stop the rest.
        """
        correlation_id = correlation_id or create_correlation_id()

        outcomes = []
        for transaction in transactions:
            outcomes.append(
                await self.on_transaction_recorded(transaction, correlation_id)
            )

        failed_count = sum(1 for outcome in outcomes if not outcome.success)
        logger.info(
            "statement_processed",
            statement_id=str(statement_id) if statement_id else None,
            transaction_count=len(transactions),
            failed_count=failed_count,
        )
        if self._audit_logger:
            await self._audit_logger.log_statement_processed(
                statement_id=statement_id,
                transaction_count=len(transactions),
                failed_count=failed_count,
                correlation_id=correlation_id,
            )

        return outcomes

    async def migrate(
        self,
        user_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> MigrationReport:
        """
        Derive postings for all existing bills of a user.

        Not idempotent: every call writes every bill's postings again.
        """
        correlation_id = correlation_id or create_correlation_id()
        return await self._migrator.migrate_existing_bills(user_id, correlation_id)

    async def _storage_failed(
        self,
        error: StorageError,
        correlation_id: UUID,
    ) -> None:
        """Storage errors not already mapped to a LedgerError, e.g. a failed bill read."""
        logger.error("storage_failed", error=str(error))
        if self._audit_logger:
            await self._audit_logger.log_external_service_error(
                service="storage",
                error_message=str(error),
                correlation_id=correlation_id,
            )


def create_app_components(
    use_storage: bool = True,
) -> tuple[LedgerFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run against in-memory storage.

    Returns:
        (ledger_flow, sheets_client)
    """
    logging.basicConfig(level=get_settings().app.log_level)

    sheets_client = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            bill_storage = GoogleSheetsBillStorage(sheets_client)
            ledger_storage = GoogleSheetsLedgerStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            use_storage = False

    if not use_storage:
        sheets_client = None
        bill_storage = InMemoryBillStorage()
        ledger_storage = InMemoryLedgerStorage()
        audit_logger = AuditLogger(InMemoryAuditStorage())

    ledger_flow = LedgerFlow(
        bill_storage=bill_storage,
        ledger_storage=ledger_storage,
        audit_logger=audit_logger,
    )

    return ledger_flow, sheets_client
