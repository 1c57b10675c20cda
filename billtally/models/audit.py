"""
Audit Models for Bill Tally

Every ledger write, and every reason a ledger write did not happen,
is recorded as an audit event. This provides:
1. Traceability from a posting back to the run that created it
2. A record of inputs that produced unbalanced ledgers
3. Per-bill failure history for batch migrations

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step of ledger derivation has its own event type.
    """
    # Derivation
    POSTINGS_CREATED = "postings_created"
    POSTINGS_FAILED = "postings_failed"
    SOURCE_NOT_FOUND = "source_not_found"
    SOURCE_REJECTED = "source_rejected"

    # Ledger integrity
    VALIDATION_GAP_DETECTED = "validation_gap_detected"
    LEDGER_UNBALANCED = "ledger_unbalanced"

    # Batch operations
    MIGRATION_STARTED = "migration_started"
    MIGRATION_BILL_FAILED = "migration_bill_failed"
    MIGRATION_COMPLETED = "migration_completed"
    STATEMENT_PROCESSED = "statement_processed"

    # System events
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'bill', 'bank_transaction', 'user')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all bills in one migration)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_code, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_code or "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.postings_created("bill", bill_id, 4, correlation_id)
        event = AuditEventBuilder.migration_completed(user_id, 10, 1, correlation_id)
    """

    @staticmethod
    def postings_created(
        source_type: str,
        source_id: UUID,
        posting_count: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.POSTINGS_CREATED,
            entity_type=source_type,
            entity_id=source_id,
            correlation_id=correlation_id,
            description=f"Created {posting_count} ledger postings for {source_type}",
            details={
                "posting_count": posting_count,
            },
        )

    @staticmethod
    def postings_failed(
        source_type: str,
        source_id: UUID,
        written: int,
        attempted: int,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.POSTINGS_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=source_type,
            entity_id=source_id,
            correlation_id=correlation_id,
            description=f"Ledger write failed: {written} of {attempted} postings stored",
            details={
                "written": written,
                "attempted": attempted,
            },
            error_code="PERSISTENCE_FAILURE",
            error_message=error_message,
        )

    @staticmethod
    def source_not_found(
        bill_id: UUID,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SOURCE_NOT_FOUND,
            severity=AuditSeverity.ERROR,
            entity_type="bill",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description="Bill not found at derivation time",
            error_code="SOURCE_NOT_FOUND",
        )

    @staticmethod
    def source_rejected(
        source_type: str,
        source_id: UUID,
        issues: list[dict],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SOURCE_REJECTED,
            severity=AuditSeverity.ERROR,
            entity_type=source_type,
            entity_id=source_id,
            correlation_id=correlation_id,
            description=f"{source_type} rejected with {len(issues)} blocking issues",
            details={
                "issues": issues,
            },
            error_code="INVALID_SOURCE",
        )

    @staticmethod
    def validation_gap(
        bill_id: UUID,
        issues: list[dict],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_GAP_DETECTED,
            severity=AuditSeverity.WARNING,
            entity_type="bill",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description=f"Bill has {len(issues)} inconsistencies; postings derived unchanged",
            details={
                "issues": issues,
            },
        )

    @staticmethod
    def ledger_unbalanced(
        source_type: str,
        source_id: UUID,
        debit_total: str,
        credit_total: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_UNBALANCED,
            severity=AuditSeverity.WARNING,
            entity_type=source_type,
            entity_id=source_id,
            correlation_id=correlation_id,
            description=f"Postings do not balance: debits ₹{debit_total}, credits ₹{credit_total}",
            details={
                "debit_total": debit_total,
                "credit_total": credit_total,
            },
        )

    @staticmethod
    def migration_started(
        user_id: UUID,
        bill_count: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MIGRATION_STARTED,
            entity_type="user",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"Migrating {bill_count} existing bills",
            details={
                "bill_count": bill_count,
            },
        )

    @staticmethod
    def migration_bill_failed(
        bill_id: UUID,
        error_code: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MIGRATION_BILL_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="bill",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description="Bill could not be migrated; continuing with the next bill",
            error_code=error_code,
            error_message=error_message,
        )

    @staticmethod
    def migration_completed(
        user_id: UUID,
        migrated_count: int,
        failed_count: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        severity = AuditSeverity.WARNING if failed_count else AuditSeverity.INFO
        return AuditEvent(
            event_type=AuditEventType.MIGRATION_COMPLETED,
            severity=severity,
            entity_type="user",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"Migration finished: {migrated_count} migrated, {failed_count} failed",
            details={
                "migrated_count": migrated_count,
                "failed_count": failed_count,
            },
        )

    @staticmethod
    def statement_processed(
        statement_id: Optional[UUID],
        transaction_count: int,
        failed_count: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATEMENT_PROCESSED,
            severity=AuditSeverity.WARNING if failed_count else AuditSeverity.INFO,
            entity_type="statement",
            entity_id=statement_id,
            correlation_id=correlation_id,
            description=(
                f"Statement processed: {transaction_count} transactions, "
                f"{failed_count} failed"
            ),
            details={
                "transaction_count": transaction_count,
                "failed_count": failed_count,
            },
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
