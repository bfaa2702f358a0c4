"""
In-Memory Storage Implementation

Keeps the whole ledger in Python dictionaries. Used by the test suite
and when the app runs without a database (STORAGE_BACKEND=memory).

Transactions are serialized by a single asyncio.Lock. The unit of work
writes into a deep copy of the state, and the copy replaces the live
state only when the unit of work returns normally.
"""

import asyncio
import copy
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Awaitable, Callable, Optional, TypeVar
from uuid import UUID

import structlog

from financas.models.ledger import (
    Debt,
    DebtStatus,
    Deposit,
    Expense,
    Person,
)
from financas.models.audit import AuditEvent
from financas.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    LedgerTransaction,
    NotFoundError,
)


T = TypeVar("T")

logger = structlog.get_logger(__name__)


@dataclass
class _LedgerState:
    persons: dict[UUID, Person] = field(default_factory=dict)
    # person_id -> owned records, in insertion order
    debts: dict[UUID, list[Debt]] = field(default_factory=dict)
    deposits: dict[UUID, list[Deposit]] = field(default_factory=dict)
    expenses: dict[UUID, list[Expense]] = field(default_factory=dict)


class InMemoryLedgerTransaction(LedgerTransaction):
    """Writes against a staged copy of the ledger state."""

    def __init__(self, state: _LedgerState):
        self._state = state

    async def find_debt(self, person_id: UUID, debt_id: UUID) -> Optional[Debt]:
        for debt in self._state.debts.get(person_id, []):
            if debt.id == debt_id:
                return debt.model_copy(deep=True)
        return None

    async def conditional_debit(self, person_id: UUID, amount: Decimal) -> bool:
        person = self._state.persons.get(person_id)
        if person is None or person.balance < amount:
            return False
        person.balance = person.balance - amount
        return True

    async def credit(self, person_id: UUID, amount: Decimal) -> bool:
        person = self._state.persons.get(person_id)
        if person is None:
            return False
        person.balance = person.balance + amount
        return True

    async def update_debt_after_payment(
        self,
        person_id: UUID,
        debt_id: UUID,
        status: DebtStatus,
        paid_installments: int,
        remaining_amount: Optional[Decimal],
        pay_date: datetime,
    ) -> bool:
        for debt in self._state.debts.get(person_id, []):
            if debt.id == debt_id:
                debt.status = status
                debt.paid_installments = paid_installments
                debt.remaining_amount = remaining_amount
                debt.pay_date = pay_date
                return True
        return False

    async def add_deposit(self, person_id: UUID, deposit: Deposit) -> None:
        if person_id not in self._state.persons:
            raise NotFoundError(f"Person not found: {person_id}")
        self._state.deposits.setdefault(person_id, []).append(deposit.model_copy(deep=True))

    async def add_expense(self, person_id: UUID, expense: Expense) -> None:
        if person_id not in self._state.persons:
            raise NotFoundError(f"Person not found: {person_id}")
        self._state.expenses.setdefault(person_id, []).append(expense.model_copy(deep=True))


class InMemoryLedgerStorage(LedgerStorageInterface):
    """
    Dictionary-backed ledger.

    Reads return copies, so callers can never mutate stored records
    outside a transaction.
    """

    def __init__(self):
        self._state = _LedgerState()
        self._lock = asyncio.Lock()

    async def create_person(self, person: Person) -> None:
        async with self._lock:
            if person.id in self._state.persons:
                raise DuplicateError(f"Person already exists: {person.id}")
            self._state.persons[person.id] = person.model_copy(deep=True)

    async def find_person_by_id(self, person_id: UUID) -> Optional[Person]:
        person = self._state.persons.get(person_id)
        return person.model_copy(deep=True) if person else None

    async def list_persons(self) -> list[Person]:
        return [p.model_copy(deep=True) for p in self._state.persons.values()]

    async def delete_person(self, person_id: UUID) -> bool:
        async with self._lock:
            if self._state.persons.pop(person_id, None) is None:
                return False
            self._state.debts.pop(person_id, None)
            self._state.deposits.pop(person_id, None)
            self._state.expenses.pop(person_id, None)
            return True

    async def add_debt(self, person_id: UUID, debt: Debt) -> None:
        async with self._lock:
            if person_id not in self._state.persons:
                raise NotFoundError(f"Person not found: {person_id}")
            self._state.debts.setdefault(person_id, []).append(debt.model_copy(deep=True))

    async def list_debts_for_person(self, person_id: UUID) -> list[Debt]:
        return [d.model_copy(deep=True) for d in self._state.debts.get(person_id, [])]

    async def list_deposits_for_person(self, person_id: UUID) -> list[Deposit]:
        return [d.model_copy(deep=True) for d in self._state.deposits.get(person_id, [])]

    async def list_expenses_for_person(self, person_id: UUID) -> list[Expense]:
        return [e.model_copy(deep=True) for e in self._state.expenses.get(person_id, [])]

    async def run_in_transaction(
        self,
        unit_of_work: Callable[[LedgerTransaction], Awaitable[T]],
    ) -> T:
        async with self._lock:
            staged = copy.deepcopy(self._state)
            try:
                result = await unit_of_work(InMemoryLedgerTransaction(staged))
            except Exception:
                logger.debug("memory_transaction_aborted")
                raise
            self._state = staged
            return result


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
