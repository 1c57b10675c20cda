"""
Ledger Deriver

Turns one source document into its double-entry postings.

BILL (purchase side):
    Cr  Accounts payable          total
    Dr  <classified category>     total - tax
    Dr  CGST/SGST/IGST receivable each component > 0

BANK TRANSACTION:
    Primary posting with the statement's own debit/credit
    Mirror posting on the bank account with debit and credit swapped

The bill postings balance only when tax_amount == CGST + SGST + IGST.
That is checked and reported, never corrected here.

The builders (build_bill_postings, derive_transaction_postings) are pure.
LedgerDeriver adds the read, validation, audit and the single batch write.
"""

from typing import Optional
from uuid import UUID

import structlog

from billtally.audit import AuditLogger
from billtally.classification import classify, extract_party_name
from billtally.ledger.exceptions import (
    InvalidSourceError,
    PersistenceFailureError,
    SourceNotFoundError,
)
from billtally.models.bill import (
    BankTransaction,
    Bill,
    SourceDocument,
    SourceType,
    ValidationResult,
)
from billtally.models.ledger import (
    BalanceCheck,
    DerivationOutcome,
    LedgerCategory,
    LedgerPosting,
)
from billtally.services.storage import (
    BillStorageInterface,
    LedgerStorageInterface,
    PartialWriteError,
    StorageError,
)
from billtally.validation import LedgerValidator


logger = structlog.get_logger(__name__)

BANK_PARTY_NAME = "Bank Account"
BANK_ACCOUNT_NAME = "Current Account"

# (label, Bill attribute, receivable category), in posting order
GST_COMPONENTS = (
    ("CGST", "cgst", LedgerCategory.CGST_RECEIVABLE),
    ("SGST", "sgst", LedgerCategory.SGST_RECEIVABLE),
    ("IGST", "igst", LedgerCategory.IGST_RECEIVABLE),
)


def build_bill_postings(
    bill: Bill,
    category: Optional[LedgerCategory] = None,
) -> list[LedgerPosting]:
    """
    Build the postings for a bill, in fixed order.

    Args:
        bill: The bill
        category: Category for the expense/income posting. Defaults to
            classifying the description, or the vendor name without one.
    """
    category = category or classify(bill.classification_text)
    description = bill.description or ""

    def posting(**fields) -> LedgerPosting:
        return LedgerPosting(
            user_id=bill.user_id,
            bill_id=bill.id,
            party_name=bill.vendor_name,
            date=bill.bill_date,
            **fields,
        )

    postings = [
        posting(
            account_name=f"{bill.vendor_name} - {bill.bill_type.value}",
            category=LedgerCategory.ACCOUNTS_PAYABLE,
            credit_amount=bill.total_amount,
            description=f"Bill {bill.bill_number} - {description}",
        ),
        posting(
            account_name=category.account_label,
            category=category,
            debit_amount=bill.total_amount - bill.effective_tax,
            description=f"{bill.vendor_name} - {description}",
        ),
    ]

    for label, attribute, gst_category in GST_COMPONENTS:
        amount = getattr(bill, attribute)
        if amount and amount > 0:
            postings.append(posting(
                account_name=f"{label} Receivable",
                category=gst_category,
                debit_amount=amount,
                description=f"{label} on Bill {bill.bill_number}",
            ))

    return postings


def derive_transaction_postings(
    transaction: BankTransaction,
    category: Optional[LedgerCategory] = None,
) -> list[LedgerPosting]:
    """
    Build the two postings for a bank transaction.

    The second posting mirrors the first with debit and credit swapped,
    so the pair balances by construction.
    """
    category = category or classify(transaction.description)
    direction = "Payment" if transaction.debit_amount > 0 else "Receipt"

    return [
        LedgerPosting(
            user_id=transaction.user_id,
            party_name=extract_party_name(transaction.description),
            account_name=transaction.description,
            category=category,
            debit_amount=transaction.debit_amount,
            credit_amount=transaction.credit_amount,
            description=transaction.description,
            date=transaction.transaction_date,
        ),
        LedgerPosting(
            user_id=transaction.user_id,
            party_name=BANK_PARTY_NAME,
            account_name=BANK_ACCOUNT_NAME,
            category=LedgerCategory.BANK,
            debit_amount=transaction.credit_amount,
            credit_amount=transaction.debit_amount,
            description=f"Bank {direction} - {transaction.description}",
            date=transaction.transaction_date,
        ),
    ]


def _issue_dicts(validation: ValidationResult, severity: str) -> list[dict]:
    return [
        issue.model_dump(include={"field", "issue_type", "message"})
        for issue in validation.issues
        if issue.severity == severity
    ]


class LedgerDeriver:
    """
    Derives and stores the postings for one source document per call.

    Calls are independent: nothing is cached between them and postings
    written earlier are never read back.
    """

    def __init__(
        self,
        bill_storage: BillStorageInterface,
        ledger_storage: LedgerStorageInterface,
        validator: Optional[LedgerValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._bill_storage = bill_storage
        self._ledger_storage = ledger_storage
        self._validator = validator or LedgerValidator()
        self._audit_logger = audit_logger

    async def derive_bill_postings(
        self,
        bill_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> list[LedgerPosting]:
        """
        Derive and store the postings for a saved bill.

        Raises:
            SourceNotFoundError: The bill does not exist
            InvalidSourceError: The bill has blocking validation errors
            PersistenceFailureError: Storage rejected some or all postings
        """
        outcome = await self.derive_bill(bill_id, correlation_id)
        return outcome.postings

    async def derive_bill(
        self,
        bill_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> DerivationOutcome:
        """Same as derive_bill_postings, returning balance and issues too."""
        bill = await self._bill_storage.get_bill_by_id(bill_id)
        if bill is None:
            logger.warning("bill_not_found", bill_id=str(bill_id))
            if self._audit_logger:
                await self._audit_logger.log_source_not_found(
                    bill_id=bill_id,
                    correlation_id=correlation_id,
                )
            raise SourceNotFoundError(bill_id)

        validation = self._validator.validate_bill(bill)
        await self._report_validation(SourceType.BILL, bill.id, validation, correlation_id)

        postings = build_bill_postings(bill)
        balance = await self._check_balance(SourceType.BILL, bill.id, postings, correlation_id)
        await self._persist(SourceType.BILL, bill.id, postings, correlation_id)

        logger.info(
            "bill_postings_created",
            bill_id=str(bill.id),
            bill_number=bill.bill_number,
            posting_count=len(postings),
            category=postings[1].category.value,
        )
        return DerivationOutcome(
            success=True,
            source_type=SourceType.BILL,
            source_id=bill.id,
            postings=postings,
            balance=balance,
            issues=validation.issues,
        )

    async def record_transaction_postings(
        self,
        transaction: BankTransaction,
        correlation_id: Optional[UUID] = None,
    ) -> list[LedgerPosting]:
        """
        Derive and store the postings for a bank transaction.

        Raises:
            PersistenceFailureError: Storage rejected some or all postings
        """
        outcome = await self.record_transaction(transaction, correlation_id)
        return outcome.postings

    async def record_transaction(
        self,
        transaction: BankTransaction,
        correlation_id: Optional[UUID] = None,
    ) -> DerivationOutcome:
        """Same as record_transaction_postings, returning balance and issues too."""
        validation = self._validator.validate_transaction(transaction)
        await self._report_validation(
            SourceType.BANK_TRANSACTION, transaction.id, validation, correlation_id
        )

        postings = derive_transaction_postings(transaction)
        balance = await self._check_balance(
            SourceType.BANK_TRANSACTION, transaction.id, postings, correlation_id
        )
        await self._persist(
            SourceType.BANK_TRANSACTION, transaction.id, postings, correlation_id
        )

        logger.info(
            "transaction_postings_created",
            transaction_id=str(transaction.id),
            reference_number=transaction.reference_number,
            category=postings[0].category.value,
        )
        return DerivationOutcome(
            success=True,
            source_type=SourceType.BANK_TRANSACTION,
            source_id=transaction.id,
            postings=postings,
            balance=balance,
            issues=validation.issues,
        )

    async def derive(
        self,
        source: SourceDocument,
        correlation_id: Optional[UUID] = None,
    ) -> DerivationOutcome:
        """
        Dispatch on the source document kind.

        A Bill is re-read from storage by ID, so the stored version wins
        over the one passed in.
        """
        if isinstance(source, Bill):
            return await self.derive_bill(source.id, correlation_id)
        if isinstance(source, BankTransaction):
            return await self.record_transaction(source, correlation_id)
        raise TypeError(f"Unsupported source document: {type(source).__name__}")

    async def _report_validation(
        self,
        source_type: SourceType,
        source_id: UUID,
        validation: ValidationResult,
        correlation_id: Optional[UUID],
    ) -> None:
        """Reject on errors; log and audit warnings without changing anything."""
        if validation.has_errors:
            errors = _issue_dicts(validation, "error")
            logger.error(
                "source_rejected",
                source_type=source_type.value,
                source_id=str(source_id),
                issues=errors,
            )
            if self._audit_logger:
                await self._audit_logger.log_source_rejected(
                    source_type=source_type.value,
                    source_id=source_id,
                    issues=errors,
                    correlation_id=correlation_id,
                )
            raise InvalidSourceError(source_id, errors)

        warnings = _issue_dicts(validation, "warning")
        if not warnings:
            return

        logger.warning(
            "validation_gap",
            source_type=source_type.value,
            source_id=str(source_id),
            issues=warnings,
        )
        if self._audit_logger and source_type is SourceType.BILL:
            await self._audit_logger.log_validation_gap(
                bill_id=source_id,
                issues=warnings,
                correlation_id=correlation_id,
            )

    async def _check_balance(
        self,
        source_type: SourceType,
        source_id: UUID,
        postings: list[LedgerPosting],
        correlation_id: Optional[UUID],
    ) -> BalanceCheck:
        balance = self._validator.check_balance(postings)
        if not balance.is_balanced:
            logger.warning(
                "ledger_unbalanced",
                source_type=source_type.value,
                source_id=str(source_id),
                debit_total=str(balance.debit_total),
                credit_total=str(balance.credit_total),
            )
            if self._audit_logger:
                await self._audit_logger.log_ledger_unbalanced(
                    source_type=source_type.value,
                    source_id=source_id,
                    debit_total=str(balance.debit_total),
                    credit_total=str(balance.credit_total),
                    correlation_id=correlation_id,
                )
        return balance

    async def _persist(
        self,
        source_type: SourceType,
        source_id: UUID,
        postings: list[LedgerPosting],
        correlation_id: Optional[UUID],
    ) -> None:
        """Write the postings as one batch, surfacing any shortfall."""
        attempted = len(postings)
        try:
            written = await self._ledger_storage.insert_postings(postings)
        except PartialWriteError as e:
            raise await self._persistence_failure(
                source_type, source_id, e.written, attempted, str(e), correlation_id
            ) from e
        except StorageError as e:
            raise await self._persistence_failure(
                source_type, source_id, 0, attempted, str(e), correlation_id
            ) from e

        if written != attempted:
            raise await self._persistence_failure(
                source_type,
                source_id,
                written,
                attempted,
                "storage reported a short write",
                correlation_id,
            )

        if self._audit_logger:
            await self._audit_logger.log_postings_created(
                source_type=source_type.value,
                source_id=source_id,
                posting_count=written,
                correlation_id=correlation_id,
            )

    async def _persistence_failure(
        self,
        source_type: SourceType,
        source_id: UUID,
        written: int,
        attempted: int,
        reason: str,
        correlation_id: Optional[UUID],
    ) -> PersistenceFailureError:
        logger.error(
            "ledger_write_failed",
            source_type=source_type.value,
            source_id=str(source_id),
            written=written,
            attempted=attempted,
            reason=reason,
        )
        if self._audit_logger:
            await self._audit_logger.log_postings_failed(
                source_type=source_type.value,
                source_id=source_id,
                written=written,
                attempted=attempted,
                error_message=reason,
                correlation_id=correlation_id,
            )
        return PersistenceFailureError(source_id, written, attempted, reason)
