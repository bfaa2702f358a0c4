"""
Data Models Package

This package contains all Pydantic models used in Financas.
All data flowing through the system must conform to these schemas.
"""

from financas.models.ledger import (
    AccountSummary,
    Debt,
    DebtCreate,
    DebtStatus,
    Deposit,
    DepositCreate,
    Expense,
    ExpenseCreate,
    Person,
    SettlementResult,
    to_money,
)
from financas.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "AccountSummary",
    "Debt",
    "DebtCreate",
    "DebtStatus",
    "Deposit",
    "DepositCreate",
    "Expense",
    "ExpenseCreate",
    "Person",
    "SettlementResult",
    "to_money",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
