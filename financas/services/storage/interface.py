"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Run on MongoDB in production
2. Use in-memory storage for testing
3. Keep the settlement engine decoupled from any driver

The one non-trivial requirement is the transaction: a unit of work
receives a LedgerTransaction and either everything it wrote commits,
or nothing does. The balance debit inside it is condition-checked,
so two concurrent payments can never overdraw the same person.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Awaitable, Callable, Optional, TypeVar
from uuid import UUID

from financas.models.ledger import (
    Debt,
    DebtStatus,
    Deposit,
    Expense,
    Person,
)
from financas.models.audit import AuditEvent


T = TypeVar("T")


class LedgerTransaction(ABC):
    """
    Writes available inside one all-or-nothing unit of work.

    Implementations must serialize conflicting writes to the same
    person record (locking, optimistic checks or serializable
    transactions are all acceptable).
    """

    @abstractmethod
    async def find_debt(self, person_id: UUID, debt_id: UUID) -> Optional[Debt]:
        """
        Read a debt as this transaction sees it.

        Returns:
            The debt if the person owns it, None otherwise
        """
        pass

    @abstractmethod
    async def conditional_debit(self, person_id: UUID, amount: Decimal) -> bool:
        """
        Debit the person's balance only if it still covers the amount.

        Returns:
            True if the debit was applied, False if the balance was
            insufficient or the person does not exist
        """
        pass

    @abstractmethod
    async def credit(self, person_id: UUID, amount: Decimal) -> bool:
        """
        Unconditionally credit the person's balance.

        Returns:
            False if the person does not exist
        """
        pass

    @abstractmethod
    async def update_debt_after_payment(
        self,
        person_id: UUID,
        debt_id: UUID,
        status: DebtStatus,
        paid_installments: int,
        remaining_amount: Optional[Decimal],
        pay_date: datetime,
    ) -> bool:
        """
        Persist the settlement bookkeeping of a debt.

        Returns:
            False if the person owns no debt with that ID
        """
        pass

    @abstractmethod
    async def add_deposit(self, person_id: UUID, deposit: Deposit) -> None:
        pass

    @abstractmethod
    async def add_expense(self, person_id: UUID, expense: Expense) -> None:
        pass


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Any storage implementation (MongoDB, in-memory, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def create_person(self, person: Person) -> None:
        """
        Save a new person.

        Raises:
            DuplicateError: If the ID is already taken
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def find_person_by_id(self, person_id: UUID) -> Optional[Person]:
        """
        Retrieve a person by ID.

        Returns:
            The person if found, None otherwise
        """
        pass

    @abstractmethod
    async def list_persons(self) -> list[Person]:
        pass

    @abstractmethod
    async def delete_person(self, person_id: UUID) -> bool:
        """
        Delete a person and everything they own.

        Debts, deposits and expenses go with the person.

        Returns:
            True if the person existed
        """
        pass

    @abstractmethod
    async def add_debt(self, person_id: UUID, debt: Debt) -> None:
        """
        Attach a new debt to a person.

        Raises:
            NotFoundError: If the person doesn't exist
        """
        pass

    @abstractmethod
    async def list_debts_for_person(self, person_id: UUID) -> list[Debt]:
        pass

    @abstractmethod
    async def list_deposits_for_person(self, person_id: UUID) -> list[Deposit]:
        pass

    @abstractmethod
    async def list_expenses_for_person(self, person_id: UUID) -> list[Expense]:
        pass

    @abstractmethod
    async def run_in_transaction(
        self,
        unit_of_work: Callable[[LedgerTransaction], Awaitable[T]],
    ) -> T:
        """
        Run a unit of work atomically.

        Any exception raised by the unit of work aborts the transaction
        and propagates unchanged. Nothing it wrote is visible afterwards.

        Raises:
            StorageError: If the transaction could not commit
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity, in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class TransientStorageError(StorageError):
    """A transaction hit a conflict that is safe to retry from scratch."""
    pass
