"""
Ledger Models for Bill Tally

The chart of accounts and the rows the ledger engine produces.

DESIGN DECISION: LedgerCategory is the single closed set of category
values. The classifier returns members of it, postings carry members of
it, and storage rows are parsed back through it. No free-form categories.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from billtally.models.bill import SourceType, ValidationIssue


# =============================================================================
# CHART OF ACCOUNTS
# =============================================================================

class LedgerCategory(str, Enum):
    """
    Fixed chart of accounts.

    Values match the persisted `ledger_category` column, so changing a
    value is a storage migration, not a refactor.
    """
    # Expenses
    TRAVEL_EXPENSE = "travel_expense"
    FUEL_EXPENSE = "fuel_expense"
    OFFICE_EXPENSE = "office_expense"
    CONSTRUCTION_EXPENSE = "construction_expense"
    MATERIAL_EXPENSE = "material_expense"
    SALARY_EXPENSE = "salary_expense"
    RENT_EXPENSE = "rent_expense"
    UTILITIES_EXPENSE = "utilities_expense"
    PROFESSIONAL_FEES = "professional_fees"
    MARKETING_EXPENSE = "marketing_expense"
    MAINTENANCE_EXPENSE = "maintenance_expense"
    INSURANCE_EXPENSE = "insurance_expense"

    # Income
    SALES_INCOME = "sales_income"
    SERVICE_INCOME = "service_income"
    OTHER_INCOME = "other_income"

    # GST
    CGST_PAYABLE = "cgst_payable"
    SGST_PAYABLE = "sgst_payable"
    IGST_PAYABLE = "igst_payable"
    CGST_RECEIVABLE = "cgst_receivable"
    SGST_RECEIVABLE = "sgst_receivable"
    IGST_RECEIVABLE = "igst_receivable"

    # Balance sheet
    ACCOUNTS_PAYABLE = "accounts_payable"
    ACCOUNTS_RECEIVABLE = "accounts_receivable"
    CASH = "cash"
    BANK = "bank"
    OTHER = "other"

    @property
    def account_label(self) -> str:
        """Display label, e.g. TRAVEL_EXPENSE -> 'TRAVEL EXPENSE'."""
        return self.value.replace("_", " ").upper()

    @property
    def group(self) -> str:
        """One of 'expense', 'income', 'tax' or 'balance_sheet'."""
        if self in EXPENSE_CATEGORIES:
            return "expense"
        if self in INCOME_CATEGORIES:
            return "income"
        if self in TAX_CATEGORIES:
            return "tax"
        return "balance_sheet"


EXPENSE_CATEGORIES = frozenset({
    LedgerCategory.TRAVEL_EXPENSE,
    LedgerCategory.FUEL_EXPENSE,
    LedgerCategory.OFFICE_EXPENSE,
    LedgerCategory.CONSTRUCTION_EXPENSE,
    LedgerCategory.MATERIAL_EXPENSE,
    LedgerCategory.SALARY_EXPENSE,
    LedgerCategory.RENT_EXPENSE,
    LedgerCategory.UTILITIES_EXPENSE,
    LedgerCategory.PROFESSIONAL_FEES,
    LedgerCategory.MARKETING_EXPENSE,
    LedgerCategory.MAINTENANCE_EXPENSE,
    LedgerCategory.INSURANCE_EXPENSE,
})

INCOME_CATEGORIES = frozenset({
    LedgerCategory.SALES_INCOME,
    LedgerCategory.SERVICE_INCOME,
    LedgerCategory.OTHER_INCOME,
})

TAX_CATEGORIES = frozenset({
    LedgerCategory.CGST_PAYABLE,
    LedgerCategory.SGST_PAYABLE,
    LedgerCategory.IGST_PAYABLE,
    LedgerCategory.CGST_RECEIVABLE,
    LedgerCategory.SGST_RECEIVABLE,
    LedgerCategory.IGST_RECEIVABLE,
})

BALANCE_SHEET_CATEGORIES = frozenset({
    LedgerCategory.ACCOUNTS_PAYABLE,
    LedgerCategory.ACCOUNTS_RECEIVABLE,
    LedgerCategory.CASH,
    LedgerCategory.BANK,
    LedgerCategory.OTHER,
})


# =============================================================================
# POSTINGS
# =============================================================================

class LedgerPosting(BaseModel):
    """
    One ledger row.

    Postings are written once, as part of the batch for their source
    document, and never updated or deleted by the engine.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    bill_id: Optional[UUID] = Field(
        default=None,
        description="Source bill, when the posting came from a bill"
    )
    party_name: str = Field(..., max_length=500)
    account_name: str = Field(..., max_length=500)
    category: LedgerCategory
    debit_amount: Decimal = Field(default=Decimal("0"), ge=0)
    credit_amount: Decimal = Field(default=Decimal("0"), ge=0)
    description: Optional[str] = None
    date: date
    created_at: datetime = Field(default_factory=datetime.utcnow)


class BalanceCheck(BaseModel):
    """Debit/credit totals for the postings of one source document."""

    debit_total: Decimal
    credit_total: Decimal
    tolerance: Decimal = Decimal("0")

    @property
    def difference(self) -> Decimal:
        return self.debit_total - self.credit_total

    @property
    def is_balanced(self) -> bool:
        return abs(self.difference) <= self.tolerance


# =============================================================================
# RESULTS
# =============================================================================

class DerivationOutcome(BaseModel):
    """
    Structured result of deriving postings for one source document.

    This is what callers outside the engine see. Failures are reported
    here with an error code instead of raising.
    """

    success: bool
    source_type: SourceType
    source_id: Optional[UUID] = None
    postings: list[LedgerPosting] = Field(default_factory=list)
    balance: Optional[BalanceCheck] = None
    issues: list[ValidationIssue] = Field(default_factory=list)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def posting_count(self) -> int:
        return len(self.postings)


class MigrationFailure(BaseModel):
    """A bill that could not be migrated."""

    bill_id: UUID
    error_code: str
    error_message: str


class MigrationReport(BaseModel):
    """
    Result of re-deriving ledgers for all of a user's bills.

    Bills are listed in the order they were processed.
    """

    user_id: UUID
    started_at: datetime = Field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None
    migrated: list[UUID] = Field(default_factory=list)
    failed: list[MigrationFailure] = Field(default_factory=list)
    postings_created: int = 0
    aborted: bool = Field(
        default=False,
        description="True when the run stopped at the first failure"
    )

    @property
    def migrated_count(self) -> int:
        return len(self.migrated)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def processed_count(self) -> int:
        return self.migrated_count + self.failed_count

    @property
    def failed_ids(self) -> list[UUID]:
        return [failure.bill_id for failure in self.failed]
