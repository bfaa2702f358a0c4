"""Debt settlement package."""

from financas.settlement.engine import (
    DomainError,
    PaymentPlan,
    SettlementEngine,
    compute_expected_amount,
    plan_payment,
)

__all__ = [
    "DomainError",
    "PaymentPlan",
    "SettlementEngine",
    "compute_expected_amount",
    "plan_payment",
]
