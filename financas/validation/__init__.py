"""Input validation package."""

from financas.validation.validator import (
    VALID_DEBT_STATUSES,
    ValidationError,
    validate_debt_input,
    validate_deposit_input,
    validate_expense_input,
    validate_installments,
    validate_pay_debt_input,
    validate_person_input,
    validate_positive_number,
    validate_required_field,
)

__all__ = [
    "VALID_DEBT_STATUSES",
    "ValidationError",
    "validate_debt_input",
    "validate_deposit_input",
    "validate_expense_input",
    "validate_installments",
    "validate_pay_debt_input",
    "validate_person_input",
    "validate_positive_number",
    "validate_required_field",
]
