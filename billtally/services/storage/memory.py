"""
In-Memory Storage Implementation

Dict/list backed implementations of the storage interfaces. Used by the
test suite and when the app runs without Google Sheets configured.

The ledger store can be told to reject or truncate specific writes so
failure handling can be exercised without a real backend.
"""

from typing import Optional
from uuid import UUID

from billtally.models.audit import AuditEvent
from billtally.models.bill import Bill
from billtally.models.ledger import LedgerPosting
from billtally.services.storage.interface import (
    AuditStorageInterface,
    BillStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    PartialWriteError,
    StorageError,
)


class InMemoryBillStorage(BillStorageInterface):
    """Bills kept in insertion order, keyed by ID."""

    def __init__(self, bills: Optional[list[Bill]] = None):
        self._bills: dict[UUID, Bill] = {}
        for bill in bills or []:
            self._bills[bill.id] = bill

    async def save_bill(self, bill: Bill) -> bool:
        if bill.id in self._bills:
            raise DuplicateError(f"Bill already exists: {bill.id}")
        self._bills[bill.id] = bill
        return True

    async def get_bill_by_id(self, bill_id: UUID) -> Optional[Bill]:
        return self._bills.get(bill_id)

    async def list_bill_ids(self, user_id: UUID) -> list[UUID]:
        return [bill.id for bill in self._bills.values() if bill.user_id == user_id]

    def remove(self, bill_id: UUID) -> None:
        """Drop a bill, simulating a concurrent delete by another collaborator."""
        self._bills.pop(bill_id, None)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """
    Postings kept in a flat list, in write order.

    Args:
        reject_bill_ids: Batches for these bills raise StorageError.
        truncate_bill_ids: Batches for these bills keep only the first
            posting and raise PartialWriteError.
    """

    def __init__(
        self,
        reject_bill_ids: Optional[set[UUID]] = None,
        truncate_bill_ids: Optional[set[UUID]] = None,
    ):
        self.postings: list[LedgerPosting] = []
        self.batches: list[list[LedgerPosting]] = []
        self.reject_bill_ids = set(reject_bill_ids or ())
        self.truncate_bill_ids = set(truncate_bill_ids or ())

    async def insert_postings(self, postings: list[LedgerPosting]) -> int:
        bill_ids = {p.bill_id for p in postings if p.bill_id is not None}

        if bill_ids & self.reject_bill_ids:
            raise StorageError("Ledger insert rejected by storage")

        if bill_ids & self.truncate_bill_ids and len(postings) > 1:
            written = postings[:1]
            self.postings.extend(written)
            self.batches.append(list(written))
            raise PartialWriteError(
                "Ledger insert stopped after the first row",
                written=len(written),
                attempted=len(postings),
            )

        self.postings.extend(postings)
        self.batches.append(list(postings))
        return len(postings)

    async def list_postings(
        self,
        user_id: UUID,
        bill_id: Optional[UUID] = None,
    ) -> list[LedgerPosting]:
        return [
            p for p in self.postings
            if p.user_id == user_id and (bill_id is None or p.bill_id == bill_id)
        ]


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]
