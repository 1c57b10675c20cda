"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the storage backend because:
1. Non-technical users can view their ledgers directly in Sheets
2. No database setup required
3. Easy to export to an accountant or migrate later

TRADEOFFS:
- No transactions. A batch of postings goes out as a single append call,
  but nothing ties it to the bill it came from.
- Limited query capabilities (we filter in Python)

Each ledger posting is one row. The category column stores the
LedgerCategory value and is parsed back through the enum on read, so a
row with an unknown category is rejected rather than passed on.
"""

import json
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from billtally.config import get_settings
from billtally.models.audit import AuditEvent, AuditEventType, AuditSeverity
from billtally.models.bill import Bill, BillType
from billtally.models.ledger import LedgerCategory, LedgerPosting
from billtally.services.storage.interface import (
    AuditStorageInterface,
    BillStorageInterface,
    ConnectionError,
    LedgerStorageInterface,
    StorageError,
)


# Column mappings for Bills sheet
BILL_COLUMNS = [
    "id",
    "user_id",
    "created_at",
    "vendor_name",
    "bill_number",
    "bill_date",
    "bill_type",
    "total_amount",
    "tax_amount",
    "cgst",
    "sgst",
    "igst",
    "description",
]

# Column mappings for Ledgers sheet
LEDGER_COLUMNS = [
    "id",
    "user_id",
    "bill_id",
    "party_name",
    "account_name",
    "category",
    "debit_amount",
    "credit_amount",
    "description",
    "date",
    "created_at",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_code",
    "error_message",
]

# Only transport failures are retried. A row that fails to parse fails the
# same way on every attempt.
retry_on_transport_error = retry(
    retry=retry_if_exception_type(ConnectionError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)

# Raised by the row parsers for malformed cells; pydantic.ValidationError
# is a ValueError.
ROW_PARSE_ERRORS = (ValueError, InvalidOperation)


def _safe_getter(row: list):
    """Return a getter that treats missing trailing cells as empty."""
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


def _optional_decimal(value: str) -> Optional[Decimal]:
    return Decimal(value) if value else None


def _data_rows(get_sheet, what: str) -> list[list[str]]:
    """Read every row below the header. API failures become ConnectionError."""
    try:
        return get_sheet().get_all_values()[1:]
    except ConnectionError:
        raise
    except gspread.exceptions.APIError as e:
        raise ConnectionError(f"Failed to read {what}: {e}")
    except Exception as e:
        raise StorageError(f"Failed to read {what}: {e}")


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_bills_sheet(self) -> gspread.Worksheet:
        """Get or create the Bills worksheet."""
        return self._get_or_create_sheet(
            self._settings.bills_sheet_name, BILL_COLUMNS, rows=1000
        )

    def get_ledgers_sheet(self) -> gspread.Worksheet:
        """Get or create the Ledgers worksheet."""
        return self._get_or_create_sheet(
            self._settings.ledgers_sheet_name, LEDGER_COLUMNS, rows=5000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsBillStorage(BillStorageInterface):
    """
    Google Sheets implementation of bill storage.

    Bills are stored as rows in a worksheet with one bill per row.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _bill_to_row(self, bill: Bill) -> list:
        """Convert a Bill to a spreadsheet row."""
        return [
            str(bill.id),
            str(bill.user_id),
            bill.created_at.isoformat(),
            bill.vendor_name,
            bill.bill_number,
            bill.bill_date.isoformat(),
            bill.bill_type.value,
            str(bill.total_amount),
            str(bill.tax_amount) if bill.tax_amount is not None else "",
            str(bill.cgst) if bill.cgst is not None else "",
            str(bill.sgst) if bill.sgst is not None else "",
            str(bill.igst) if bill.igst is not None else "",
            bill.description or "",
        ]

    def _row_to_bill(self, row: list) -> Bill:
        """Convert a spreadsheet row to a Bill."""
        safe_get = _safe_getter(row)

        return Bill(
            id=UUID(safe_get(0)),
            user_id=UUID(safe_get(1)),
            created_at=datetime.fromisoformat(safe_get(2)),
            vendor_name=safe_get(3),
            bill_number=safe_get(4),
            bill_date=date.fromisoformat(safe_get(5)),
            bill_type=BillType(safe_get(6, BillType.PURCHASE.value)),
            total_amount=Decimal(safe_get(7)),
            tax_amount=_optional_decimal(safe_get(8)),
            cgst=_optional_decimal(safe_get(9)),
            sgst=_optional_decimal(safe_get(10)),
            igst=_optional_decimal(safe_get(11)),
            description=safe_get(12) or None,
        )

    async def save_bill(self, bill: Bill) -> bool:
        """Save a bill to Google Sheets."""
        try:
            sheet = self._client.get_bills_sheet()
            sheet.append_row(self._bill_to_row(bill), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to save bill: {e}")

    @retry_on_transport_error
    async def get_bill_by_id(self, bill_id: UUID) -> Optional[Bill]:
        """Retrieve a bill by its ID."""
        all_rows = _data_rows(self._client.get_bills_sheet, "bills")

        for row in all_rows:
            if row and row[0] == str(bill_id):
                try:
                    return self._row_to_bill(row)
                except ROW_PARSE_ERRORS as e:
                    raise StorageError(f"Malformed bill row {bill_id}: {e}")

        return None

    @retry_on_transport_error
    async def list_bill_ids(self, user_id: UUID) -> list[UUID]:
        """List bill IDs owned by a user, in sheet order."""
        all_rows = _data_rows(self._client.get_bills_sheet, "bills")

        try:
            return [
                UUID(row[0])
                for row in all_rows
                if len(row) > 1 and row[0] and row[1] == str(user_id)
            ]
        except ValueError as e:
            raise StorageError(f"Malformed bill id in bills sheet: {e}")


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    One posting per row. A batch is written with a single append call.
    Inserts are NOT retried: a retry after a timeout that actually
    succeeded would write the batch twice.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _posting_to_row(self, posting: LedgerPosting) -> list:
        """Convert a LedgerPosting to a spreadsheet row."""
        return [
            str(posting.id),
            str(posting.user_id),
            str(posting.bill_id) if posting.bill_id else "",
            posting.party_name,
            posting.account_name,
            posting.category.value,
            str(posting.debit_amount),
            str(posting.credit_amount),
            posting.description or "",
            posting.date.isoformat(),
            posting.created_at.isoformat(),
        ]

    def _row_to_posting(self, row: list) -> LedgerPosting:
        """Convert a spreadsheet row to a LedgerPosting."""
        safe_get = _safe_getter(row)

        return LedgerPosting(
            id=UUID(safe_get(0)),
            user_id=UUID(safe_get(1)),
            bill_id=UUID(safe_get(2)) if safe_get(2) else None,
            party_name=safe_get(3),
            account_name=safe_get(4),
            category=LedgerCategory(safe_get(5)),
            debit_amount=Decimal(safe_get(6, "0")),
            credit_amount=Decimal(safe_get(7, "0")),
            description=safe_get(8) or None,
            date=date.fromisoformat(safe_get(9)),
            created_at=datetime.fromisoformat(safe_get(10)),
        )

    async def insert_postings(self, postings: list[LedgerPosting]) -> int:
        """Append all postings in one call."""
        if not postings:
            return 0
        try:
            sheet = self._client.get_ledgers_sheet()
            rows = [self._posting_to_row(p) for p in postings]
            sheet.append_rows(rows, value_input_option="RAW")
            return len(rows)
        except Exception as e:
            raise StorageError(f"Failed to insert ledger postings: {e}")

    @retry_on_transport_error
    async def list_postings(
        self,
        user_id: UUID,
        bill_id: Optional[UUID] = None,
    ) -> list[LedgerPosting]:
        """List postings for a user, optionally for one bill."""
        all_rows = _data_rows(self._client.get_ledgers_sheet, "ledger postings")

        postings = []
        for row in all_rows:
            if len(row) < 3 or row[1] != str(user_id):
                continue
            if bill_id is not None and row[2] != str(bill_id):
                continue
            try:
                postings.append(self._row_to_posting(row))
            except ROW_PARSE_ERRORS as e:
                raise StorageError(f"Malformed ledger row {row[0]}: {e}")
        return postings


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        safe_get = _safe_getter(row)

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=UUID(safe_get(5)) if safe_get(5) else None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_code=safe_get(9) or None,
            error_message=safe_get(10) or None,
        )

    @retry_on_transport_error
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except ConnectionError:
            raise
        except gspread.exceptions.APIError as e:
            raise ConnectionError(f"Failed to write audit event: {e}")
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]

            events = [
                self._row_to_event(row)
                for row in all_rows
                if row and len(row) > 6 and row[6] == str(correlation_id)
            ]

            # Sort chronologically
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]

            events = [self._row_to_event(row) for row in all_rows if row and row[0]]

            # Sort newest first
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
