"""
Tests for the orchestration layer.

LedgerFlow turns engine errors into structured outcomes; these tests
check that nothing escapes as an exception.
"""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from billtally.models.audit import AuditEventType
from billtally.models.bill import SourceType
from billtally.orchestrator import LedgerFlow, create_app_components
from billtally.services.storage import (
    BillStorageInterface,
    InMemoryBillStorage,
    InMemoryLedgerStorage,
    StorageError,
)


@pytest.fixture
def flow(bill_storage, ledger_storage, validator, audit_logger):
    return LedgerFlow(
        bill_storage=bill_storage,
        ledger_storage=ledger_storage,
        validator=validator,
        audit_logger=audit_logger,
        stop_on_error=False,
    )


class TestOnBillSaved:
    """Tests for LedgerFlow.on_bill_saved()."""

    @pytest.mark.asyncio
    async def test_success(self, flow, bill_storage, make_bill):
        bill = make_bill()
        await bill_storage.save_bill(bill)

        outcome = await flow.on_bill_saved(bill.id)

        assert outcome.success
        assert outcome.posting_count == 4
        assert outcome.error_code is None

    @pytest.mark.asyncio
    async def test_missing_bill_is_an_outcome(self, flow):
        """A missing bill comes back as a failed outcome, not an exception."""
        bill_id = uuid4()

        outcome = await flow.on_bill_saved(bill_id)

        assert not outcome.success
        assert outcome.source_type == SourceType.BILL
        assert outcome.source_id == bill_id
        assert outcome.error_code == "SOURCE_NOT_FOUND"
        assert str(bill_id) in outcome.error_message
        assert outcome.postings == []

    @pytest.mark.asyncio
    async def test_invalid_bill_is_an_outcome(self, flow, bill_storage, make_bill):
        bill = make_bill(total_amount=Decimal("100.00"))
        await bill_storage.save_bill(bill)

        outcome = await flow.on_bill_saved(bill.id)

        assert not outcome.success
        assert outcome.error_code == "INVALID_SOURCE"

    @pytest.mark.asyncio
    async def test_storage_failure_is_an_outcome(
        self, bill_storage, validator, audit_logger, make_bill
    ):
        bill = make_bill()
        await bill_storage.save_bill(bill)
        flow = LedgerFlow(
            bill_storage,
            InMemoryLedgerStorage(reject_bill_ids={bill.id}),
            validator,
            audit_logger,
        )

        outcome = await flow.on_bill_saved(bill.id)

        assert not outcome.success
        assert outcome.error_code == "PERSISTENCE_FAILURE"

    @pytest.mark.asyncio
    async def test_events_get_a_correlation_id(self, flow, bill_storage, audit_storage, make_bill):
        """Without a caller-supplied ID a fresh one is created."""
        bill = make_bill()
        await bill_storage.save_bill(bill)

        await flow.on_bill_saved(bill.id)

        assert audit_storage.events[0].correlation_id is not None

    @pytest.mark.asyncio
    async def test_bill_read_failure_is_an_outcome(
        self, ledger_storage, validator, audit_logger, audit_storage
    ):
        """A storage error while reading the bill is audited and reported."""
        bill_storage = MagicMock(spec=BillStorageInterface)
        bill_storage.get_bill_by_id = AsyncMock(side_effect=StorageError("sheet offline"))
        flow = LedgerFlow(bill_storage, ledger_storage, validator, audit_logger)

        outcome = await flow.on_bill_saved(uuid4())

        assert not outcome.success
        assert outcome.error_code == "STORAGE_ERROR"
        assert "sheet offline" in outcome.error_message
        assert audit_storage.events[0].event_type == AuditEventType.EXTERNAL_SERVICE_ERROR


class TestTransactionsAndStatements:
    """Tests for bank transaction entry points."""

    @pytest.mark.asyncio
    async def test_on_transaction_recorded(self, flow, ledger_storage, make_transaction):
        outcome = await flow.on_transaction_recorded(make_transaction())

        assert outcome.success
        assert outcome.source_type == SourceType.BANK_TRANSACTION
        assert len(ledger_storage.postings) == 2

    @pytest.mark.asyncio
    async def test_process_statement(self, flow, ledger_storage, audit_storage, make_transaction):
        statement_id = uuid4()
        transactions = [
            make_transaction(statement_id=statement_id),
            make_transaction(
                statement_id=statement_id,
                description="SALARY MARCH",
                debit_amount=Decimal("30000.00"),
            ),
            make_transaction(
                statement_id=statement_id,
                description="ATM CASH WITHDRAWAL",
                debit_amount=Decimal("2000.00"),
            ),
        ]

        outcomes = await flow.process_statement(transactions, statement_id)

        assert [o.success for o in outcomes] == [True, True, True]
        assert len(ledger_storage.postings) == 6

        summary = audit_storage.events[-1]
        assert summary.event_type == AuditEventType.STATEMENT_PROCESSED
        assert summary.entity_id == statement_id
        assert summary.details == {"transaction_count": 3, "failed_count": 0}

    @pytest.mark.asyncio
    async def test_statement_with_long_reference_narration(
        self, flow, ledger_storage, make_transaction
    ):
        """A maximum-length narration with no spaces is processed like any other."""
        transactions = [
            make_transaction(description="UPI/" + "9" * 496),
            make_transaction(),
        ]

        outcomes = await flow.process_statement(transactions)

        assert [o.success for o in outcomes] == [True, True]
        assert len(ledger_storage.postings) == 4
        assert len(ledger_storage.postings[0].party_name) == 500

    @pytest.mark.asyncio
    async def test_statement_postings_share_correlation_id(
        self, flow, audit_storage, make_transaction
    ):
        correlation_id = uuid4()

        await flow.process_statement(
            [make_transaction(), make_transaction()],
            correlation_id=correlation_id,
        )

        assert {e.correlation_id for e in audit_storage.events} == {correlation_id}


class TestMigrate:
    """Tests for LedgerFlow.migrate()."""

    @pytest.mark.asyncio
    async def test_migrate_reports_failures(
        self, validator, audit_logger, make_bill, user_id
    ):
        bills = [make_bill(bill_number=f"INV-{n}") for n in range(3)]
        bill_storage = InMemoryBillStorage(bills)
        ledger_storage = InMemoryLedgerStorage(reject_bill_ids={bills[1].id})
        flow = LedgerFlow(bill_storage, ledger_storage, validator, audit_logger, stop_on_error=False)

        report = await flow.migrate(user_id)

        assert report.migrated == [bills[0].id, bills[2].id]
        assert report.failed_ids == [bills[1].id]


class TestCreateAppComponents:
    """Tests for the component factory."""

    @pytest.mark.asyncio
    async def test_in_memory_components(self):
        flow, sheets_client = create_app_components(use_storage=False)

        assert sheets_client is None
        assert isinstance(flow, LedgerFlow)

        outcome = await flow.on_bill_saved(uuid4())
        assert outcome.error_code == "SOURCE_NOT_FOUND"

    def test_falls_back_without_sheets_config(self, monkeypatch):
        """Missing Google Sheets settings fall back to in-memory storage."""
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)

        flow, sheets_client = create_app_components(use_storage=True)

        assert sheets_client is None
        assert isinstance(flow, LedgerFlow)
