"""Tests for input validation."""

import pytest
from decimal import Decimal
from uuid import uuid4

from financas.models.ledger import DebtCreate, DepositCreate, ExpenseCreate
from financas.validation import (
    ValidationError,
    validate_debt_input,
    validate_deposit_input,
    validate_expense_input,
    validate_installments,
    validate_pay_debt_input,
    validate_person_input,
    validate_required_field,
)


class TestRequiredFields:
    """Tests for required string fields."""

    @pytest.mark.parametrize("value", [None, "", "   ", 12])
    def test_rejects_missing_or_blank(self, value):
        """Test that blank and non-string values are rejected."""
        with pytest.raises(ValidationError) as exc:
            validate_required_field(value, "title")
        assert exc.value.field == "title"

    def test_accepts_text(self):
        """Test that a non-empty string passes."""
        validate_required_field(" Aluguel ", "title")


class TestPersonValidation:
    """Tests for person creation input."""

    def test_accepts_zero_balance(self):
        """Test that a person may start with nothing."""
        validate_person_input("Ana", 0)

    def test_rejects_negative_balance(self):
        """Test that the opening balance cannot be negative."""
        with pytest.raises(ValidationError) as exc:
            validate_person_input("Ana", Decimal("-1"))
        assert exc.value.field == "initial_balance"

    def test_rejects_blank_name(self):
        """Test that a name is required."""
        with pytest.raises(ValidationError):
            validate_person_input("  ")


class TestDebtValidation:
    """Tests for debt registration input."""

    def test_open_ended_debt_is_valid(self):
        """Test that amount and installments are optional."""
        validate_debt_input(DebtCreate(title="Tab", creditor="Bar"))

    def test_rejects_missing_creditor(self):
        """Test that the creditor is required."""
        with pytest.raises(ValidationError) as exc:
            validate_debt_input(DebtCreate(title="Tab", creditor=""))
        assert exc.value.field == "creditor"

    def test_rejects_non_positive_amount(self):
        """Test that a given amount must be positive."""
        with pytest.raises(ValidationError) as exc:
            validate_debt_input(DebtCreate(title="TV", creditor="Loja", amount=Decimal("0")))
        assert exc.value.field == "amount"

    def test_rejects_unknown_status(self):
        """Test that only the three statuses are accepted."""
        with pytest.raises(ValidationError) as exc:
            validate_debt_input(DebtCreate(title="TV", creditor="Loja", status="overdue"))
        assert exc.value.field == "status"

    def test_rejects_zero_installments(self):
        """Test that an installment count must be at least one."""
        with pytest.raises(ValidationError) as exc:
            validate_debt_input(DebtCreate(title="TV", creditor="Loja", total_installments=0))
        assert exc.value.field == "total_installments"


class TestDepositAndExpenseValidation:
    """Tests for deposit and expense input."""

    def test_loan_requires_creditor_name(self):
        """Test that loan deposits must name the lender."""
        data = DepositCreate(description="Loan", amount=Decimal("100"), is_loan=True)
        with pytest.raises(ValidationError) as exc:
            validate_deposit_input(data)
        assert exc.value.field == "creditor_name"

    def test_plain_deposit_is_valid(self):
        """Test a regular deposit."""
        validate_deposit_input(DepositCreate(description="Salary", amount=Decimal("3000")))

    def test_expense_rejects_negative_amount(self):
        """Test that expenses must be positive."""
        with pytest.raises(ValidationError):
            validate_expense_input(ExpenseCreate(description="Lunch", amount=Decimal("-5")))


class TestPaymentValidation:
    """Tests for payment requests."""

    def test_accepts_uuid_ids(self):
        """Test that ids may be passed as UUIDs."""
        validate_pay_debt_input(uuid4(), uuid4(), Decimal("10"), 2)

    def test_rejects_missing_debt_id(self):
        """Test that the debt id is required."""
        with pytest.raises(ValidationError) as exc:
            validate_pay_debt_input(uuid4(), None)
        assert exc.value.field == "debt_id"

    @pytest.mark.parametrize("installments", [0, -1, 1.5, True])
    def test_rejects_bad_installment_counts(self, installments):
        """Test that installments must be an integer >= 1, bools excluded."""
        with pytest.raises(ValidationError):
            validate_installments(installments, "installments_to_pay")


class TestLooseInput:
    """Tests for request values that are not of the expected type."""

    def test_debt_tags_must_be_a_list(self):
        """Test that a single tag string is rejected."""
        with pytest.raises(ValidationError) as exc:
            validate_debt_input(DebtCreate(title="TV", creditor="Loja", tags="home"))
        assert exc.value.field == "tags"

    def test_fractional_installment_count(self):
        """Test that a non-integer installment count reaches validation."""
        with pytest.raises(ValidationError) as exc:
            validate_debt_input(DebtCreate(title="TV", creditor="Loja", total_installments=1.5))
        assert exc.value.field == "total_installments"

    def test_non_numeric_amount(self):
        """Test that text amounts are rejected by validation, not by the DTO."""
        with pytest.raises(ValidationError) as exc:
            validate_expense_input(ExpenseCreate(description="Lunch", amount="abc"))
        assert exc.value.field == "amount"

    def test_missing_deposit_amount(self):
        """Test that an amount is required."""
        with pytest.raises(ValidationError) as exc:
            validate_deposit_input(DepositCreate(description="Salary"))
        assert exc.value.field == "amount"

    def test_numeric_strings_are_accepted(self):
        """Test that amounts given as text still validate."""
        validate_deposit_input(DepositCreate(description="Salary", amount="3000.50"))


class TestSubCentAmounts:
    """Tests for amounts that round to zero cents."""

    @pytest.mark.parametrize("amount", [Decimal("0.004"), 0.004, "0.001"])
    def test_rejects_amount_below_one_cent(self, amount):
        """Test that an amount must be at least 0.01 after rounding."""
        with pytest.raises(ValidationError) as exc:
            validate_pay_debt_input(uuid4(), uuid4(), amount)
        assert exc.value.field == "amount"

    def test_half_cent_rounds_up_to_valid(self):
        """Test that 0.005 rounds half up to one cent."""
        validate_pay_debt_input(uuid4(), uuid4(), Decimal("0.005"))
