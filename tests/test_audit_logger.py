"""Tests for the audit logger."""

from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from billtally.audit import AuditLogger, create_correlation_id
from billtally.models.audit import AuditEventBuilder, AuditEventType, AuditSeverity
from billtally.services.storage import AuditStorageInterface, StorageError


class TestAuditLogger:
    """Tests for AuditLogger."""

    @pytest.mark.asyncio
    async def test_event_is_persisted(self, audit_logger, audit_storage):
        bill_id = uuid4()

        await audit_logger.log_source_not_found(bill_id=bill_id)

        [event] = audit_storage.events
        assert event.event_type == AuditEventType.SOURCE_NOT_FOUND
        assert event.severity == AuditSeverity.ERROR
        assert event.entity_id == bill_id
        assert event.error_code == "SOURCE_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_without_storage_logs_locally(self):
        """With no storage the event is only logged and reported as written."""
        audit_logger = AuditLogger()

        event = AuditEventBuilder.migration_started(user_id=uuid4(), bill_count=3)

        assert await audit_logger.log(event) is True

    @pytest.mark.asyncio
    async def test_storage_failure_does_not_raise(self):
        """An audit write failure never breaks the derivation that caused it."""
        storage = MagicMock(spec=AuditStorageInterface)
        storage.append_event = AsyncMock(side_effect=StorageError("sheet offline"))
        audit_logger = AuditLogger(storage)

        await audit_logger.log_postings_created(
            source_type="bill",
            source_id=uuid4(),
            posting_count=4,
        )

        storage.append_event.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_log_returns_storage_result(self, audit_storage):
        audit_logger = AuditLogger(audit_storage)
        event = AuditEventBuilder.external_service_error("google_sheets", "timeout")

        assert await audit_logger.log(event) is True

    @pytest.mark.asyncio
    async def test_log_external_service_error(self, audit_logger, audit_storage):
        correlation_id = create_correlation_id()

        await audit_logger.log_external_service_error(
            service="google_sheets",
            error_message="quota exceeded",
            correlation_id=correlation_id,
        )

        [event] = audit_storage.events
        assert event.event_type == AuditEventType.EXTERNAL_SERVICE_ERROR
        assert event.correlation_id == correlation_id

    def test_correlation_ids_are_unique(self):
        assert create_correlation_id() != create_correlation_id()
