"""
Debt Settlement Engine

Applies a payment to a debt. This is the only code path that changes
a debt's status, paid installments and remaining amount.

A payment is planned as a pure computation over the debt's state.
It is planned once from the caller's copy to fail fast, and again
inside the transaction from the debt as stored. Only that second plan
is charged: the balance debit and the debt update commit together in
one transaction or not at all.

Rounding: the per-installment amount is fixed at registration and
rounded to cents, so it can drift from total / installments. The
installment that completes the plan does not use it; it charges
whatever is left, which brings the remaining amount to exactly zero.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog
from pydantic import BaseModel

from financas.models.ledger import (
    Debt,
    DebtStatus,
    SettlementResult,
    to_money,
)
from financas.services.storage import LedgerStorageInterface, LedgerTransaction


logger = structlog.get_logger(__name__)


class DomainError(Exception):
    """
    Well-formed input that the ledger's current state does not allow.

    The code is stable and meant for callers; the message is meant
    for people.
    """

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class PaymentPlan(BaseModel):
    """Everything a payment will change, computed before any write."""

    installments_to_pay: int
    amount_to_charge: Decimal
    expected_amount: Optional[Decimal] = None
    new_paid_installments: int
    new_remaining_amount: Optional[Decimal] = None
    new_status: DebtStatus


def compute_expected_amount(
    installment_amount: Decimal,
    remaining_amount: Decimal,
    paid_installments: int,
    total_installments: int,
    installments_to_pay: int,
) -> Decimal:
    """
    Amount owed for the next `installments_to_pay` installments.

    Installments are walked in order starting at the next unpaid one.
    Each costs the flat installment amount, except the one that
    completes the plan, which costs what is left of the remaining
    amount after the installments before it in this same call.
    """
    expected = Decimal("0")
    for index in range(1, installments_to_pay + 1):
        if paid_installments + index == total_installments:
            expected += to_money(remaining_amount - expected)
        else:
            expected += installment_amount
    return to_money(expected)


def plan_payment(
    debt: Debt,
    installments_to_pay: int = 1,
    amount: Optional[Decimal] = None,
) -> PaymentPlan:
    """
    Validate a payment request against the debt and compute its effect.

    Raises:
        DomainError: If the debt state does not allow this payment
    """
    if debt.status == DebtStatus.PAID:
        raise DomainError("already_paid", "Debt is already paid")

    if (
        isinstance(installments_to_pay, bool)
        or not isinstance(installments_to_pay, int)
        or installments_to_pay < 1
    ):
        raise DomainError(
            "invalid_installments",
            "The number of installments to pay must be an integer >= 1",
        )

    has_fixed_installments = debt.has_fixed_installments
    has_known_total_amount = debt.has_known_total_amount
    total_installments = debt.total_installments if has_fixed_installments else None
    paid_installments = debt.paid_installments or 0

    # Debts stored without a running balance fall back to their total
    if debt.remaining_amount is not None:
        remaining_amount = debt.remaining_amount
    elif has_known_total_amount:
        remaining_amount = debt.total_amount
    else:
        remaining_amount = None

    if has_fixed_installments:
        remaining_installments = max(0, total_installments - paid_installments)
        if installments_to_pay > remaining_installments:
            raise DomainError(
                "installments_exceeded",
                f"Cannot pay {installments_to_pay} installments. "
                f"Remaining installments: {remaining_installments}",
            )

    expected_amount = None
    if has_fixed_installments and remaining_amount is not None:
        installment_amount = debt.installment_amount
        if installment_amount is None:
            installment_amount = (
                to_money(debt.total_amount / total_installments)
                if has_known_total_amount
                else Decimal("0")
            )
        expected_amount = compute_expected_amount(
            installment_amount=installment_amount,
            remaining_amount=remaining_amount,
            paid_installments=paid_installments,
            total_installments=total_installments,
            installments_to_pay=installments_to_pay,
        )

    if expected_amount is None and amount is None:
        raise DomainError(
            "amount_required",
            "Provide the amount to pay for debts with an undefined total amount",
        )

    amount_to_charge = to_money(amount) if amount is not None else expected_amount

    if remaining_amount is not None and amount_to_charge > remaining_amount:
        raise DomainError(
            "amount_exceeds_remaining",
            "The amount is greater than the remaining balance of the debt",
        )

    new_paid_installments = paid_installments + installments_to_pay
    new_remaining_amount = (
        None
        if remaining_amount is None
        else to_money(max(Decimal("0"), remaining_amount - amount_to_charge))
    )
    is_fully_paid = (
        (new_remaining_amount is not None and new_remaining_amount <= 0)
        or (has_fixed_installments and new_paid_installments >= total_installments)
    )

    return PaymentPlan(
        installments_to_pay=installments_to_pay,
        amount_to_charge=amount_to_charge,
        expected_amount=expected_amount,
        new_paid_installments=new_paid_installments,
        new_remaining_amount=new_remaining_amount,
        new_status=DebtStatus.PAID if is_fully_paid else DebtStatus.PARTIALLY_PAID,
    )


class SettlementEngine:
    """
    Applies planned payments through the store's transaction.

    GUARANTEES:
    - The payer's balance never goes negative
    - Debit and debt update are both persisted, or neither is
    - A rejected payment leaves no trace in the store
    """

    def __init__(self, storage: LedgerStorageInterface):
        self._storage = storage

    async def apply_payment(
        self,
        person_id: UUID,
        debt: Debt,
        installments_to_pay: int = 1,
        amount: Optional[Decimal] = None,
    ) -> SettlementResult:
        """
        Pay `installments_to_pay` installments of `debt` from the person's balance.

        The debt passed in only serves to reject hopeless requests early.
        The charge is planned again inside the transaction from the debt
        as stored, so a payment that raced this one, or a retried
        transaction, is always planned against current state.

        Args:
            person_id: The payer, who must own the debt
            debt: The debt as last read by the caller
            installments_to_pay: Installments covered by this payment
            amount: Explicit amount; required when the plan is open-ended

        Raises:
            DomainError: If the payment is not allowed or the balance is short
            StorageError: If the transaction could not commit
        """
        plan = plan_payment(debt, installments_to_pay, amount)

        payer = await self._storage.find_person_by_id(person_id)
        if payer is None or payer.balance < plan.amount_to_charge:
            raise DomainError("insufficient_funds", "Insufficient balance or person not found")

        pay_date = datetime.now(timezone.utc)

        async def settle(tx: LedgerTransaction) -> tuple[Debt, PaymentPlan]:
            current = await tx.find_debt(person_id, debt.id)
            if current is None:
                raise DomainError("debt_not_found", "Debt not found")
            current_plan = plan_payment(current, installments_to_pay, amount)

            # The balance may have moved since the lookup above
            if not await tx.conditional_debit(person_id, current_plan.amount_to_charge):
                raise DomainError("insufficient_funds", "Insufficient balance or person not found")

            updated = await tx.update_debt_after_payment(
                person_id,
                current.id,
                current_plan.new_status,
                current_plan.new_paid_installments,
                current_plan.new_remaining_amount,
                pay_date,
            )
            if not updated:
                raise DomainError("debt_not_found", "Debt not found")
            return current, current_plan

        current, plan = await self._storage.run_in_transaction(settle)

        logger.debug(
            "payment_applied",
            person_id=str(person_id),
            debt_id=str(current.id),
            amount=str(plan.amount_to_charge),
            status=plan.new_status.value,
        )

        return SettlementResult(
            success=True,
            debt_id=current.id,
            installments_paid_now=plan.installments_to_pay,
            paid_installments=plan.new_paid_installments,
            total_installments=current.total_installments if current.has_fixed_installments else None,
            remaining_amount=plan.new_remaining_amount,
            status=plan.new_status,
            amount_charged=plan.amount_to_charge,
        )
