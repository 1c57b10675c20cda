"""Shared fixtures: bill/transaction factories and in-memory storage."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from billtally.audit import AuditLogger
from billtally.ledger import LedgerDeriver
from billtally.models.bill import BankTransaction, Bill
from billtally.services.storage import (
    InMemoryAuditStorage,
    InMemoryBillStorage,
    InMemoryLedgerStorage,
)
from billtally.validation import LedgerValidator


@pytest.fixture
def user_id():
    return uuid4()


@pytest.fixture
def make_bill(user_id):
    """Factory for bills; defaults to the 1180 = 1000 + 90 + 90 bill."""

    def _make(**overrides) -> Bill:
        fields = {
            "user_id": user_id,
            "vendor_name": "Sharma Stationers",
            "bill_number": "INV-001",
            "bill_date": date(2024, 4, 1),
            "total_amount": Decimal("1180.00"),
            "tax_amount": Decimal("180.00"),
            "cgst": Decimal("90.00"),
            "sgst": Decimal("90.00"),
            "igst": Decimal("0.00"),
            "description": "Office stationery",
        }
        fields.update(overrides)
        return Bill(**fields)

    return _make


@pytest.fixture
def make_transaction(user_id):
    """Factory for bank transactions; defaults to a 2500 fuel debit."""

    def _make(**overrides) -> BankTransaction:
        fields = {
            "user_id": user_id,
            "description": "HP PETROL PUMP MUMBAI",
            "transaction_date": date(2024, 4, 2),
            "debit_amount": Decimal("2500.00"),
            "credit_amount": Decimal("0.00"),
        }
        fields.update(overrides)
        return BankTransaction(**fields)

    return _make


@pytest.fixture
def bill_storage():
    return InMemoryBillStorage()


@pytest.fixture
def ledger_storage():
    return InMemoryLedgerStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def validator():
    return LedgerValidator(balance_tolerance=Decimal("0.00"))


@pytest.fixture
def deriver(bill_storage, ledger_storage, validator, audit_logger):
    return LedgerDeriver(
        bill_storage=bill_storage,
        ledger_storage=ledger_storage,
        validator=validator,
        audit_logger=audit_logger,
    )
