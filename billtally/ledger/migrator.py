"""
Batch Migrator

Re-derives ledger postings for every bill a user owns. Used to build
ledgers for bills saved before ledger derivation existed.

Bills are processed one at a time, in storage order. A failing bill is
recorded in the report and the run moves on to the next bill; bills
already migrated stay migrated.

NOT IDEMPOTENT: nothing records which bills were migrated before, so
running this twice writes every bill's postings twice.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

import structlog

from billtally.audit import AuditLogger
from billtally.config import get_settings
from billtally.ledger.deriver import LedgerDeriver
from billtally.ledger.exceptions import LedgerError
from billtally.models.ledger import MigrationFailure, MigrationReport
from billtally.services.storage import BillStorageInterface, StorageError


logger = structlog.get_logger(__name__)


class BatchMigrator:
    """Runs bill derivation over all of a user's bills."""

    def __init__(
        self,
        bill_storage: BillStorageInterface,
        deriver: LedgerDeriver,
        audit_logger: Optional[AuditLogger] = None,
        stop_on_error: Optional[bool] = None,
    ):
        """
        Args:
            bill_storage: Source of the bill IDs to migrate
            deriver: Derives and stores each bill's postings
            audit_logger: Optional audit trail
            stop_on_error: Abort at the first failing bill. Defaults to
                LEDGER_MIGRATION_STOP_ON_ERROR.
        """
        if stop_on_error is None:
            stop_on_error = get_settings().ledger.migration_stop_on_error
        self._bill_storage = bill_storage
        self._deriver = deriver
        self._audit_logger = audit_logger
        self._stop_on_error = stop_on_error

    async def migrate_existing_bills(
        self,
        user_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> MigrationReport:
        """
        Derive postings for every bill owned by the user.

        Raises:
            StorageError: The bill list itself could not be read
            LedgerError / StorageError: A bill failed and stop_on_error is set
        """
        bill_ids = await self._bill_storage.list_bill_ids(user_id)
        report = MigrationReport(user_id=user_id)

        logger.info("migration_started", user_id=str(user_id), bill_count=len(bill_ids))
        if self._audit_logger:
            await self._audit_logger.log_migration_started(
                user_id=user_id,
                bill_count=len(bill_ids),
                correlation_id=correlation_id,
            )

        for bill_id in bill_ids:
            try:
                postings = await self._deriver.derive_bill_postings(bill_id, correlation_id)
            except (LedgerError, StorageError) as e:
                await self._record_failure(report, bill_id, e, correlation_id)
                if self._stop_on_error:
                    report.aborted = True
                    await self._finish(report, correlation_id)
                    raise
                continue

            report.migrated.append(bill_id)
            report.postings_created += len(postings)

        await self._finish(report, correlation_id)
        return report

    async def _record_failure(
        self,
        report: MigrationReport,
        bill_id: UUID,
        error: Exception,
        correlation_id: Optional[UUID],
    ) -> None:
        error_code = getattr(error, "error_code", "STORAGE_ERROR")
        report.failed.append(MigrationFailure(
            bill_id=bill_id,
            error_code=error_code,
            error_message=str(error),
        ))

        logger.error(
            "migration_bill_failed",
            bill_id=str(bill_id),
            error_code=error_code,
            error=str(error),
        )
        if self._audit_logger:
            await self._audit_logger.log_migration_bill_failed(
                bill_id=bill_id,
                error_code=error_code,
                error_message=str(error),
                correlation_id=correlation_id,
            )

    async def _finish(
        self,
        report: MigrationReport,
        correlation_id: Optional[UUID],
    ) -> None:
        report.finished_at = datetime.utcnow()

        logger.info(
            "migration_completed",
            user_id=str(report.user_id),
            migrated=report.migrated_count,
            failed=report.failed_count,
            postings_created=report.postings_created,
            aborted=report.aborted,
        )
        if self._audit_logger:
            await self._audit_logger.log_migration_completed(
                user_id=report.user_id,
                migrated_count=report.migrated_count,
                failed_count=report.failed_count,
                correlation_id=correlation_id,
            )
