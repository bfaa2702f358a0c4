"""
Input Validation

DESIGN DECISION: Every public ledger operation validates its input
before any store access. Validation is:
- Pure (no side effects, no storage)
- Loud (the first broken rule raises, nothing is silently fixed)
- Specific (the error names the field and the rule it broke)

A ValidationError is always safe to retry once the input is corrected,
because nothing has been written yet.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from financas.models.ledger import (
    DebtCreate,
    DebtStatus,
    DepositCreate,
    ExpenseCreate,
    to_money,
)


VALID_DEBT_STATUSES = [status.value for status in DebtStatus]


class ValidationError(Exception):
    """Malformed input, rejected before touching any state."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


def _as_decimal(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation:
            return None
    return None


def validate_required_field(value: Any, field_name: str) -> None:
    """Strings must be non-empty after trimming."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field_name, f"Required field is missing or empty: {field_name}")


def validate_positive_number(value: Any, field_name: str) -> None:
    """Monetary values must be finite and at least one cent once rounded."""
    number = _as_decimal(value)
    try:
        cents = to_money(number) if number is not None and number.is_finite() else None
    except InvalidOperation:
        cents = None
    if cents is None or cents <= 0:
        raise ValidationError(field_name, f"{field_name} must be a number of at least 0.01")


def validate_installments(value: Any, field_name: str) -> None:
    """Installment counts must be integers >= 1."""
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(field_name, f"{field_name} must be an integer greater than or equal to 1")


def validate_debt_status(status: Any) -> None:
    if status not in VALID_DEBT_STATUSES:
        raise ValidationError(
            "status",
            f"Invalid status. Allowed values: {', '.join(VALID_DEBT_STATUSES)}",
        )


def validate_person_input(name: Any, initial_balance: Any = 0) -> None:
    """A person needs a name and a non-negative opening balance."""
    validate_required_field(name, "name")

    balance = _as_decimal(initial_balance)
    if balance is None or not balance.is_finite() or balance < 0:
        raise ValidationError("initial_balance", "initial_balance must be a number greater than or equal to 0")


def validate_debt_input(debt: DebtCreate) -> None:
    """
    Validate a debt registration.

    Amount and total_installments are optional: leaving them out
    registers an open-ended debt.
    """
    validate_required_field(debt.title, "title")
    validate_required_field(debt.creditor, "creditor")

    if debt.amount is not None:
        validate_positive_number(debt.amount, "amount")

    if not isinstance(debt.tags, list):
        raise ValidationError("tags", "tags is required and must be a list")

    if debt.status is not None:
        validate_debt_status(debt.status)

    if debt.total_installments is not None:
        validate_installments(debt.total_installments, "total_installments")


def validate_deposit_input(deposit: DepositCreate) -> None:
    """Loan deposits must name who lent the money."""
    validate_required_field(deposit.description, "description")
    validate_positive_number(deposit.amount, "amount")

    if deposit.is_loan:
        validate_required_field(deposit.creditor_name, "creditor_name")


def validate_expense_input(expense: ExpenseCreate) -> None:
    validate_required_field(expense.description, "description")
    validate_positive_number(expense.amount, "amount")

    if expense.tags is not None and not isinstance(expense.tags, list):
        raise ValidationError("tags", "tags must be a list")


def validate_pay_debt_input(
    person_id: Any,
    debt_id: Any,
    amount: Any = None,
    installments_to_pay: Any = None,
) -> None:
    """
    Validate a payment request.

    Both ids are accepted as strings or UUIDs.
    """
    validate_required_field(str(person_id) if person_id is not None else None, "person_id")
    validate_required_field(str(debt_id) if debt_id is not None else None, "debt_id")

    if amount is not None:
        validate_positive_number(amount, "amount")

    if installments_to_pay is not None:
        validate_installments(installments_to_pay, "installments_to_pay")
