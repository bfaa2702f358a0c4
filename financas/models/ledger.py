"""
Core Data Models for Financas

These models define the schemas for all ledger data flowing through the system.
They are designed to:
1. Carry money as Decimal, never as float
2. Be serializable for storage and logging
3. Keep the derived installment fields next to the data they come from

DESIGN DECISION: Input DTOs are deliberately loose.
Business rules (positive amounts, known statuses, installment counts) are
enforced by the validation layer so every rejection carries the same
ValidationError shape, whatever the caller passed in.
"""

from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


CENT = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    """Quantize a numeric value to cents, rounding half up."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class DebtStatus(str, Enum):
    """
    Debt settlement status.

    pending --(any payment)--> partially_paid --(nothing left)--> paid

    PAID is terminal.
    """
    PENDING = "pending"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"


# =============================================================================
# STORED RECORDS
# =============================================================================

class Person(BaseModel):
    """
    The owner of a ledger.

    The balance only changes through deposits (credit), expenses (debit)
    and debt payments (debit).
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=200)
    balance: Decimal = Field(
        default=Decimal("0.00"),
        ge=0,
        description="Current balance, never negative"
    )
    created_at: datetime = Field(default_factory=_utcnow)


class Debt(BaseModel):
    """
    A tracked liability with an optional installment plan.

    Either dimension of the plan may be open-ended:
    - total_amount is None for a debt whose final value is not known
    - total_installments is None for a running tab
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    title: str = Field(..., min_length=1, max_length=200)
    creditor: str = Field(..., min_length=1, max_length=200)
    tags: list[str] = Field(default_factory=list)
    due_date: date = Field(default_factory=date.today)
    status: DebtStatus = DebtStatus.PENDING

    # Installment plan
    total_amount: Optional[Decimal] = Field(default=None, gt=0)
    total_installments: Optional[int] = Field(default=None, ge=1)
    paid_installments: int = Field(default=0, ge=0)
    installment_amount: Optional[Decimal] = Field(
        default=None,
        description="Fixed per-installment amount, computed once at registration"
    )
    remaining_amount: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Known running balance; None when the total is open-ended"
    )

    pay_date: Optional[datetime] = Field(
        default=None,
        description="When the last payment was applied"
    )
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def has_fixed_installments(self) -> bool:
        return self.total_installments is not None and self.total_installments >= 1

    @property
    def has_known_total_amount(self) -> bool:
        return (
            self.total_amount is not None
            and self.total_amount.is_finite()
            and self.total_amount > 0
        )

    @property
    def remaining_installments(self) -> Optional[int]:
        if not self.has_fixed_installments:
            return None
        return max(0, self.total_installments - self.paid_installments)


class Deposit(BaseModel):
    """Money coming in. Append-only."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    description: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0)
    is_loan: bool = False
    creditor_name: Optional[str] = Field(
        default=None,
        description="Who lent the money, for loan deposits"
    )
    date: datetime = Field(default_factory=_utcnow)


class Expense(BaseModel):
    """Money going out. Append-only."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    description: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0)
    tags: list[str] = Field(default_factory=list)
    date: datetime = Field(default_factory=_utcnow)


# =============================================================================
# INPUT DTOs
# =============================================================================

class DebtCreate(BaseModel):
    """Debt registration request."""

    title: Any = ""
    creditor: Any = ""
    amount: Any = None
    status: Any = None
    tags: Any = Field(default_factory=list)
    due_date: Optional[date] = None
    total_installments: Any = None


class DepositCreate(BaseModel):
    """Deposit registration request."""

    description: Any = ""
    amount: Any = None
    is_loan: bool = False
    creditor_name: Any = None
    date: Optional[datetime] = None


class ExpenseCreate(BaseModel):
    """Expense registration request."""

    description: Any = ""
    amount: Any = None
    tags: Any = Field(default_factory=list)
    date: Optional[datetime] = None


# =============================================================================
# RESULTS
# =============================================================================

class SettlementResult(BaseModel):
    """Outcome of applying a payment to a debt."""

    success: bool = True
    debt_id: UUID
    installments_paid_now: int = Field(ge=1)
    paid_installments: int = Field(ge=0)
    total_installments: Optional[int] = None
    remaining_amount: Optional[Decimal] = None
    status: DebtStatus
    amount_charged: Decimal


class AccountSummary(BaseModel):
    """
    Snapshot of a person's ledger.

    open_debt_total only sums debts whose remaining amount is known.
    """

    person_id: UUID
    name: str
    balance: Decimal
    deposit_count: int = 0
    deposit_total: Decimal = Decimal("0.00")
    expense_count: int = 0
    expense_total: Decimal = Decimal("0.00")
    open_debt_count: int = 0
    open_debt_total: Decimal = Decimal("0.00")
