"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep ledger logic decoupled from storage implementation

The ledger engine only reads bills and appends postings. It never reads
back postings it wrote, and never updates or deletes them.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from billtally.models.bill import Bill
from billtally.models.ledger import LedgerPosting
from billtally.models.audit import AuditEvent


class BillStorageInterface(ABC):
    """
    Abstract interface for bill storage operations.

    Bills are created outside the ledger engine (by the upload flow).
    """

    @abstractmethod
    async def save_bill(self, bill: Bill) -> bool:
        """
        Save a bill to storage.

        Args:
            bill: The bill to save

        Returns:
            True if saved successfully

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_bill_by_id(self, bill_id: UUID) -> Optional[Bill]:
        """
        Retrieve a bill by its ID.

        Args:
            bill_id: The bill's unique identifier

        Returns:
            The bill if found, None otherwise
        """
        pass

    @abstractmethod
    async def list_bill_ids(self, user_id: UUID) -> list[UUID]:
        """
        List the IDs of all bills owned by a user.

        Args:
            user_id: The owner

        Returns:
            Bill IDs in storage order
        """
        pass


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger posting storage.

    Postings are append-only.
    """

    @abstractmethod
    async def insert_postings(self, postings: list[LedgerPosting]) -> int:
        """
        Insert the postings of one source document as a single batch.

        Args:
            postings: Postings to insert

        Returns:
            Number of postings actually written

        Raises:
            StorageError: If the batch is rejected
            PartialWriteError: If only part of the batch was written
        """
        pass

    @abstractmethod
    async def list_postings(
        self,
        user_id: UUID,
        bill_id: Optional[UUID] = None,
    ) -> list[LedgerPosting]:
        """
        List stored postings for a user, optionally for one bill.

        Provided for reporting callers. The ledger engine does not use it.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Args:
            event: The audit event to log

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one migration run).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class PartialWriteError(StorageError):
    """Only part of a batch insert was written."""

    def __init__(self, message: str, written: int, attempted: int):
        super().__init__(message)
        self.written = written
        self.attempted = attempted
