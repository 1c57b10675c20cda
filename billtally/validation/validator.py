"""
Ledger Validation

Checks a source document before postings are derived from it, and checks
the derived postings afterwards.

SOURCE CHECKS:
- Blocking (error): values that cannot produce a valid posting at all,
  e.g. tax larger than the bill total (the expense debit would be negative)
- Reporting (warning): inconsistencies that still produce postings but
  leave the ledger unbalanced or suspicious, e.g. tax_amount that does
  not equal CGST + SGST + IGST

POSTING CHECK:
- Debit total vs credit total for one source document

IMPORTANT: Validation NEVER silently fixes issues.
A tax breakdown mismatch is reported, and the postings are derived from
the fields exactly as recorded.
"""

from decimal import Decimal
from typing import Iterable, Optional

from billtally.config import get_settings
from billtally.models.bill import (
    BankTransaction,
    Bill,
    SourceType,
    ValidationIssue,
    ValidationResult,
)
from billtally.models.ledger import BalanceCheck, LedgerPosting


ZERO = Decimal("0")


class LedgerValidator:
    """
    Validates source documents and posting sets.

    Stateless apart from the balance tolerance, so one instance can be
    shared across derivations.
    """

    def __init__(self, balance_tolerance: Optional[Decimal] = None):
        """
        Initialize validator.

        Args:
            balance_tolerance: Largest debit/credit difference treated as
                balanced. Defaults to LEDGER_BALANCE_TOLERANCE.
        """
        if balance_tolerance is None:
            balance_tolerance = get_settings().ledger.balance_tolerance
        self._tolerance = balance_tolerance

    @property
    def tolerance(self) -> Decimal:
        return self._tolerance

    def validate_bill(self, bill: Bill) -> ValidationResult:
        """
        Validate a bill before deriving postings.

        Checks:
        - Tax not larger than total (error)
        - tax_amount == CGST + SGST + IGST (warning)
        - IGST not mixed with CGST/SGST (warning)
        - CGST equal to SGST (warning)
        - Description present (info)
        """
        issues = []
        tax = bill.effective_tax
        cgst = bill.cgst or ZERO
        sgst = bill.sgst or ZERO
        igst = bill.igst or ZERO

        if tax > bill.total_amount:
            issues.append(ValidationIssue(
                field="tax_amount",
                issue_type="tax_exceeds_total",
                message=(
                    f"Tax (₹{tax}) is larger than the bill total "
                    f"(₹{bill.total_amount})"
                ),
                severity="error",
                suggested_fix="Check whether total and tax were swapped",
            ))

        if abs(tax - bill.gst_total) > self._tolerance:
            issues.append(ValidationIssue(
                field="tax_amount",
                issue_type="tax_breakdown_mismatch",
                message=(
                    f"Tax amount (₹{tax}) doesn't match "
                    f"CGST + SGST + IGST (₹{bill.gst_total}); "
                    "the derived ledger will not balance"
                ),
                severity="warning",
                suggested_fix="Correct the tax amount or the GST components on the bill",
            ))

        if igst > ZERO and (cgst > ZERO or sgst > ZERO):
            issues.append(ValidationIssue(
                field="igst",
                issue_type="mixed_gst",
                message="Bill charges IGST together with CGST/SGST",
                severity="warning",
                suggested_fix="Inter-state bills carry IGST only; intra-state bills carry CGST + SGST",
            ))
        elif igst == ZERO and cgst != sgst:
            issues.append(ValidationIssue(
                field="sgst",
                issue_type="cgst_sgst_mismatch",
                message=f"CGST (₹{cgst}) and SGST (₹{sgst}) differ",
                severity="warning",
                suggested_fix="CGST and SGST are normally equal halves of the GST",
            ))

        if not bill.description:
            issues.append(ValidationIssue(
                field="description",
                issue_type="missing",
                message="No description; category will be guessed from the vendor name",
                severity="info",
            ))

        return self._result(SourceType.BILL, bill.id, issues)

    def validate_transaction(self, transaction: BankTransaction) -> ValidationResult:
        """
        Validate a bank transaction before deriving postings.

        Nothing here blocks derivation; the two postings mirror each
        other and always balance.
        """
        issues = []

        if transaction.debit_amount > ZERO and transaction.credit_amount > ZERO:
            issues.append(ValidationIssue(
                field="credit_amount",
                issue_type="both_debit_and_credit",
                message="Transaction has both a debit and a credit amount",
                severity="warning",
                suggested_fix="Split the statement line into two transactions",
            ))
        elif transaction.debit_amount == ZERO and transaction.credit_amount == ZERO:
            issues.append(ValidationIssue(
                field="debit_amount",
                issue_type="zero_amount_transaction",
                message="Transaction has neither a debit nor a credit amount",
                severity="warning",
                suggested_fix="Check the amount columns were parsed correctly",
            ))

        return self._result(SourceType.BANK_TRANSACTION, transaction.id, issues)

    def check_balance(self, postings: Iterable[LedgerPosting]) -> BalanceCheck:
        """Total the debits and credits of one source document's postings."""
        debit_total = ZERO
        credit_total = ZERO
        for posting in postings:
            debit_total += posting.debit_amount
            credit_total += posting.credit_amount

        return BalanceCheck(
            debit_total=debit_total,
            credit_total=credit_total,
            tolerance=self._tolerance,
        )

    def _result(
        self,
        source_type: SourceType,
        source_id,
        issues: list[ValidationIssue],
    ) -> ValidationResult:
        return ValidationResult(
            source_type=source_type,
            source_id=source_id,
            is_valid=not any(issue.severity == "error" for issue in issues),
            issues=issues,
            warnings=[i.message for i in issues if i.severity == "warning"],
        )
