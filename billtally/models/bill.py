"""
Source Document Models for Bill Tally

These models describe the records the ledger engine consumes:
1. Bills saved after OCR extraction and user review
2. Bank transactions parsed from an uploaded statement

Both are immutable inputs. They are created outside the ledger engine
and are never modified by it.

DESIGN DECISION: The two record kinds form a tagged union (the `kind`
field), so a single entry point can dispatch to the right derivation.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)


# =============================================================================
# ENUMS
# =============================================================================

class BillType(str, Enum):
    """
    Bill type as entered on the upload form.

    The value is part of the payable account label, e.g. "ACME - purchase".
    """
    PURCHASE = "purchase"
    SALES = "sales"
    EXPENSE = "expense"
    RETURN = "return"


class SourceType(str, Enum):
    """Discriminator values for source documents."""
    BILL = "bill"
    BANK_TRANSACTION = "bank_transaction"


# =============================================================================
# SOURCE DOCUMENTS
# =============================================================================

class Bill(BaseModel):
    """
    A saved bill.

    GST is recorded as separate CGST/SGST/IGST components. Each one is
    optional; a missing component means "none charged".

    NOTE: Nothing here checks that tax_amount == cgst + sgst + igst.
    The ledger validator reports that mismatch instead of rejecting it.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    kind: Literal["bill"] = "bill"

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique bill ID"
    )
    user_id: UUID = Field(
        ...,
        description="Owner of the bill"
    )
    vendor_name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Vendor name (required)"
    )
    bill_number: str = Field(
        ...,
        max_length=50,
        description="Bill/Invoice number"
    )
    bill_date: date = Field(
        ...,
        description="Date on the bill"
    )
    bill_type: BillType = Field(
        default=BillType.PURCHASE,
        description="Purchase, sales, expense or return"
    )

    # Amounts
    total_amount: Annotated[
        Decimal,
        Field(ge=0, decimal_places=2, description="Total amount in INR (required)")
    ]
    tax_amount: Optional[Decimal] = Field(
        default=None,
        ge=0,
        decimal_places=2,
        description="Total tax on the bill"
    )
    cgst: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    sgst: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    igst: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)

    description: Optional[str] = Field(
        default=None,
        max_length=1000,
        description="Free-text description of what was bought or sold"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the bill was saved"
    )

    @property
    def effective_tax(self) -> Decimal:
        """Tax amount, treating a missing value as zero."""
        return self.tax_amount or Decimal("0")

    @property
    def gst_total(self) -> Decimal:
        """Sum of the CGST/SGST/IGST components."""
        return (
            (self.cgst or Decimal("0"))
            + (self.sgst or Decimal("0"))
            + (self.igst or Decimal("0"))
        )

    @property
    def classification_text(self) -> str:
        """Text the classifier sees: the description, else the vendor."""
        return self.description or self.vendor_name


class BankTransaction(BaseModel):
    """
    One line of a parsed bank statement.

    Conventionally only one of debit_amount / credit_amount is nonzero.
    This is not enforced; the validator warns when both are set.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    kind: Literal["bank_transaction"] = "bank_transaction"

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique transaction ID"
    )
    user_id: UUID
    statement_id: Optional[UUID] = Field(
        default=None,
        description="Statement this line was parsed from"
    )
    description: str = Field(
        ...,
        max_length=500,
        description="Narration as printed on the statement"
    )
    transaction_date: date
    debit_amount: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        decimal_places=2,
        description="Money leaving the account"
    )
    credit_amount: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        decimal_places=2,
        description="Money entering the account"
    )
    reference_number: Optional[str] = Field(default=None, max_length=100)
    balance: Optional[Decimal] = Field(
        default=None,
        decimal_places=2,
        description="Running balance after this transaction"
    )


SourceDocument = Annotated[
    Union[Bill, BankTransaction],
    Field(discriminator="kind"),
]


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'tax_breakdown_mismatch', 'tax_exceeds_total')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of validating one source document before deriving postings.

    Errors block derivation. Warnings are reported and derivation
    continues, so a warning may leave the ledger unbalanced.
    """

    source_type: SourceType
    source_id: UUID
    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )

    is_valid: bool = Field(
        ...,
        description="True when there are no error-level issues"
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    def issues_of_type(self, issue_type: str) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.issue_type == issue_type]
