"""Tests for the batch migrator."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from billtally.ledger import (
    BatchMigrator,
    LedgerDeriver,
    PersistenceFailureError,
)
from billtally.models.audit import AuditEventType
from billtally.services.storage import (
    BillStorageInterface,
    ConnectionError,
    InMemoryBillStorage,
    InMemoryLedgerStorage,
)


@pytest.fixture
def bills(make_bill):
    """Five bills for the same user, each with four postings."""
    return [make_bill(bill_number=f"INV-{n:03d}") for n in range(1, 6)]


def _migrator(bills, validator, audit_logger=None, stop_on_error=False, **ledger_kwargs):
    bill_storage = InMemoryBillStorage(bills)
    ledger_storage = InMemoryLedgerStorage(**ledger_kwargs)
    deriver = LedgerDeriver(bill_storage, ledger_storage, validator, audit_logger)
    migrator = BatchMigrator(
        bill_storage,
        deriver,
        audit_logger=audit_logger,
        stop_on_error=stop_on_error,
    )
    return migrator, ledger_storage


class TestMigrateExistingBills:
    """Tests for BatchMigrator.migrate_existing_bills()."""

    @pytest.mark.asyncio
    async def test_migrates_every_bill(self, bills, validator, user_id):
        migrator, ledger_storage = _migrator(bills, validator)

        report = await migrator.migrate_existing_bills(user_id)

        assert report.migrated == [bill.id for bill in bills]
        assert report.failed == []
        assert report.postings_created == 20
        assert len(ledger_storage.postings) == 20
        assert report.finished_at is not None
        assert not report.aborted

    @pytest.mark.asyncio
    async def test_bills_processed_in_order(self, bills, validator, user_id):
        """Each bill's batch is written before the next bill starts."""
        migrator, ledger_storage = _migrator(bills, validator)

        await migrator.migrate_existing_bills(user_id)

        assert [batch[0].bill_id for batch in ledger_storage.batches] == [
            bill.id for bill in bills
        ]

    @pytest.mark.asyncio
    async def test_only_users_bills(self, bills, make_bill, validator, user_id):
        other = make_bill(user_id=uuid4())
        migrator, _ = _migrator(bills + [other], validator)

        report = await migrator.migrate_existing_bills(user_id)

        assert other.id not in report.migrated
        assert report.migrated_count == 5

    @pytest.mark.asyncio
    async def test_no_bills(self, validator, user_id):
        migrator, ledger_storage = _migrator([], validator)

        report = await migrator.migrate_existing_bills(user_id)

        assert report.processed_count == 0
        assert ledger_storage.postings == []

    @pytest.mark.asyncio
    async def test_failing_bill_does_not_stop_the_run(self, bills, validator, user_id):
        """Bill 3 of 5 is rejected by storage; the other four migrate."""
        failing = bills[2]
        migrator, ledger_storage = _migrator(
            bills, validator, reject_bill_ids={failing.id}
        )

        report = await migrator.migrate_existing_bills(user_id)

        assert report.migrated_count == 4
        assert failing.id not in report.migrated
        assert report.failed_ids == [failing.id]
        assert report.failed[0].error_code == "PERSISTENCE_FAILURE"
        assert report.postings_created == 16
        assert len(ledger_storage.postings) == 16

    @pytest.mark.asyncio
    async def test_invalid_bill_is_reported(self, bills, make_bill, validator, user_id):
        bad = make_bill(total_amount=Decimal("10.00"))
        migrator, _ = _migrator(bills[:2] + [bad], validator)

        report = await migrator.migrate_existing_bills(user_id)

        assert report.migrated_count == 2
        assert report.failed[0].bill_id == bad.id
        assert report.failed[0].error_code == "INVALID_SOURCE"

    @pytest.mark.asyncio
    async def test_running_twice_duplicates_postings(self, bills, validator, user_id):
        """Migration is not idempotent: a second run writes everything again."""
        migrator, ledger_storage = _migrator(bills, validator)

        await migrator.migrate_existing_bills(user_id)
        await migrator.migrate_existing_bills(user_id)

        assert len(ledger_storage.postings) == 40
        for bill in bills:
            bill_postings = [p for p in ledger_storage.postings if p.bill_id == bill.id]
            assert len(bill_postings) == 8

    @pytest.mark.asyncio
    async def test_stop_on_error_aborts(self, bills, validator, user_id):
        """With stop_on_error the first failure ends the run and is re-raised."""
        failing = bills[1]
        migrator, ledger_storage = _migrator(
            bills, validator, stop_on_error=True, reject_bill_ids={failing.id}
        )

        with pytest.raises(PersistenceFailureError):
            await migrator.migrate_existing_bills(user_id)

        # Bill 1 stays migrated, bills 3-5 were never attempted
        assert len(ledger_storage.batches) == 1
        assert ledger_storage.batches[0][0].bill_id == bills[0].id

    @pytest.mark.asyncio
    async def test_listing_failure_propagates(self, validator, user_id):
        """If the bill list cannot be read there is nothing to report on."""
        bill_storage = MagicMock(spec=BillStorageInterface)
        bill_storage.list_bill_ids = AsyncMock(side_effect=ConnectionError("offline"))
        deriver = LedgerDeriver(bill_storage, InMemoryLedgerStorage(), validator)
        migrator = BatchMigrator(bill_storage, deriver, stop_on_error=False)

        with pytest.raises(ConnectionError):
            await migrator.migrate_existing_bills(user_id)


class TestMigrationAudit:
    """Tests for the audit trail of a migration."""

    @pytest.mark.asyncio
    async def test_audit_trail(self, bills, validator, audit_logger, audit_storage, user_id):
        failing = bills[0]
        migrator, _ = _migrator(
            bills, validator, audit_logger=audit_logger, reject_bill_ids={failing.id}
        )

        await migrator.migrate_existing_bills(user_id)

        types = [event.event_type for event in audit_storage.events]
        assert types[0] == AuditEventType.MIGRATION_STARTED
        assert types[-1] == AuditEventType.MIGRATION_COMPLETED
        assert types.count(AuditEventType.POSTINGS_CREATED) == 4
        assert types.count(AuditEventType.MIGRATION_BILL_FAILED) == 1

        completed = audit_storage.events[-1]
        assert completed.details == {"migrated_count": 4, "failed_count": 1}

    @pytest.mark.asyncio
    async def test_events_share_correlation_id(
        self, bills, validator, audit_logger, audit_storage, user_id
    ):
        migrator, _ = _migrator(bills, validator, audit_logger=audit_logger)
        correlation_id = uuid4()

        await migrator.migrate_existing_bills(user_id, correlation_id)

        events = await audit_storage.get_events_by_correlation_id(correlation_id)
        assert len(events) == len(audit_storage.events)
