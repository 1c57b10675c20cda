"""Tests for ledger validation."""

from decimal import Decimal

from billtally.ledger import build_bill_postings, derive_transaction_postings
from billtally.models.bill import SourceType
from billtally.validation import LedgerValidator


class TestValidateBill:
    """Tests for LedgerValidator.validate_bill()."""

    def test_consistent_bill_has_no_warnings(self, validator, make_bill):
        result = validator.validate_bill(make_bill())

        assert result.is_valid
        assert result.source_type == SourceType.BILL
        assert result.issues == []
        assert result.warnings == []

    def test_tax_breakdown_mismatch_is_a_warning(self, validator, make_bill):
        """tax_amount != CGST + SGST + IGST is reported, not blocking."""
        result = validator.validate_bill(make_bill(tax_amount=Decimal("200.00")))

        assert result.is_valid
        [issue] = result.issues_of_type("tax_breakdown_mismatch")
        assert issue.severity == "warning"
        assert "200.00" in issue.message

    def test_missing_tax_with_gst_components(self, validator, make_bill):
        """GST components without a tax_amount is also a mismatch."""
        result = validator.validate_bill(make_bill(tax_amount=None))

        assert result.issues_of_type("tax_breakdown_mismatch")

    def test_tax_exceeding_total_is_an_error(self, validator, make_bill):
        result = validator.validate_bill(make_bill(total_amount=Decimal("100.00")))

        assert not result.is_valid
        assert result.has_errors
        assert result.issues_of_type("tax_exceeds_total")[0].severity == "error"

    def test_tax_equal_to_total_is_allowed(self, validator, make_bill):
        result = validator.validate_bill(make_bill(total_amount=Decimal("180.00")))

        assert result.is_valid

    def test_mixed_gst(self, validator, make_bill):
        bill = make_bill(
            tax_amount=Decimal("270.00"),
            igst=Decimal("90.00"),
            total_amount=Decimal("1270.00"),
        )
        result = validator.validate_bill(bill)

        assert [i.issue_type for i in result.issues] == ["mixed_gst"]

    def test_cgst_sgst_mismatch(self, validator, make_bill):
        bill = make_bill(cgst=Decimal("100.00"), sgst=Decimal("80.00"))
        result = validator.validate_bill(bill)

        assert [i.issue_type for i in result.issues] == ["cgst_sgst_mismatch"]

    def test_missing_description_is_info(self, validator, make_bill):
        result = validator.validate_bill(make_bill(description=None))

        [issue] = result.issues
        assert issue.issue_type == "missing"
        assert issue.severity == "info"
        assert result.warnings == []

    def test_tolerance_absorbs_rounding(self, make_bill):
        validator = LedgerValidator(balance_tolerance=Decimal("0.01"))
        result = validator.validate_bill(make_bill(tax_amount=Decimal("180.01")))

        assert result.issues_of_type("tax_breakdown_mismatch") == []


class TestValidateTransaction:
    """Tests for LedgerValidator.validate_transaction()."""

    def test_plain_debit(self, validator, make_transaction):
        result = validator.validate_transaction(make_transaction())

        assert result.is_valid
        assert result.source_type == SourceType.BANK_TRANSACTION
        assert result.issues == []

    def test_both_amounts(self, validator, make_transaction):
        result = validator.validate_transaction(
            make_transaction(credit_amount=Decimal("10.00"))
        )

        assert result.is_valid
        assert result.issues[0].issue_type == "both_debit_and_credit"

    def test_zero_amounts(self, validator, make_transaction):
        result = validator.validate_transaction(
            make_transaction(debit_amount=Decimal("0.00"))
        )

        assert result.issues[0].issue_type == "zero_amount_transaction"


class TestCheckBalance:
    """Tests for LedgerValidator.check_balance()."""

    def test_consistent_bill_balances(self, validator, make_bill):
        check = validator.check_balance(build_bill_postings(make_bill()))

        assert check.debit_total == Decimal("1180.00")
        assert check.credit_total == Decimal("1180.00")
        assert check.is_balanced

    def test_inconsistent_bill_does_not_balance(self, validator, make_bill):
        postings = build_bill_postings(make_bill(tax_amount=Decimal("200.00")))
        check = validator.check_balance(postings)

        assert not check.is_balanced
        assert check.difference == Decimal("-20.00")

    def test_transaction_pair_balances(self, validator, make_transaction):
        check = validator.check_balance(derive_transaction_postings(make_transaction()))

        assert check.is_balanced

    def test_empty_set_balances(self, validator):
        assert validator.check_balance([]).is_balanced
