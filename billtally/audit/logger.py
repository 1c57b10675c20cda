"""
Audit Logger

DESIGN DECISION: Every ledger write, and every reason one did not
happen, is logged. This provides:
1. Complete traceability
2. Debugging capability
3. A per-bill failure history for migrations

The audit logger:
- Is async to match the storage interface
- Gracefully handles failures (doesn't crash a derivation if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from billtally.models.audit import AuditEvent, AuditEventBuilder
from billtally.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_postings_created(
        self,
        source_type: str,
        source_id: UUID,
        posting_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a successful ledger write."""
        event = AuditEventBuilder.postings_created(
            source_type=source_type,
            source_id=source_id,
            posting_count=posting_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_postings_failed(
        self,
        source_type: str,
        source_id: UUID,
        written: int,
        attempted: int,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a rejected or partial ledger write."""
        event = AuditEventBuilder.postings_failed(
            source_type=source_type,
            source_id=source_id,
            written=written,
            attempted=attempted,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_source_not_found(
        self,
        bill_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a bill that vanished before derivation."""
        event = AuditEventBuilder.source_not_found(
            bill_id=bill_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_source_rejected(
        self,
        source_type: str,
        source_id: UUID,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a source document rejected by validation."""
        event = AuditEventBuilder.source_rejected(
            source_type=source_type,
            source_id=source_id,
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_validation_gap(
        self,
        bill_id: UUID,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log inconsistent bill fields that were derived anyway."""
        event = AuditEventBuilder.validation_gap(
            bill_id=bill_id,
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_ledger_unbalanced(
        self,
        source_type: str,
        source_id: UUID,
        debit_total: str,
        credit_total: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a posting set whose debits and credits differ."""
        event = AuditEventBuilder.ledger_unbalanced(
            source_type=source_type,
            source_id=source_id,
            debit_total=debit_total,
            credit_total=credit_total,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_migration_started(
        self,
        user_id: UUID,
        bill_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.migration_started(
            user_id=user_id,
            bill_count=bill_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_migration_bill_failed(
        self,
        bill_id: UUID,
        error_code: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.migration_bill_failed(
            bill_id=bill_id,
            error_code=error_code,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_migration_completed(
        self,
        user_id: UUID,
        migrated_count: int,
        failed_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.migration_completed(
            user_id=user_id,
            migrated_count=migrated_count,
            failed_count=failed_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_statement_processed(
        self,
        statement_id: Optional[UUID],
        transaction_count: int,
        failed_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.statement_processed(
            statement_id=statement_id,
            transaction_count=transaction_count,
            failed_count=failed_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new action (e.g., a migration run).
    Pass it through all subsequent operations.
    """
    return uuid4()
