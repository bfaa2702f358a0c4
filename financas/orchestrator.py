"""
Main Orchestrator for Financas

This module ties together all the components and defines the
end-to-end flows for:
1. People (create → look up → delete with everything they own)
2. Debts (validate → register → pay through the settlement engine)
3. Deposits and expenses (validate → move the balance → record)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches the store before validation passes
- Every balance change happens inside one store transaction
- Every step is audited, rejections included

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional, Union
from uuid import UUID

from financas.audit import AuditLogger
from financas.config import get_settings
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
from financas.services.storage import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    LedgerTransaction,
    MongoAuditStorage,
    MongoClientManager,
    MongoLedgerStorage,
    StorageError,
)
from financas.settlement import DomainError, SettlementEngine
from financas.validation import (
    ValidationError,
    validate_debt_input,
    validate_deposit_input,
    validate_expense_input,
    validate_pay_debt_input,
    validate_person_input,
)


PersonRef = Union[UUID, str]


def _as_uuid(value: PersonRef, field_name: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value).strip())
    except (ValueError, AttributeError):
        raise ValidationError(field_name, f"{field_name} is not a valid id")


def _as_utc(moment: Optional[datetime]) -> datetime:
    if moment is None:
        return datetime.now(timezone.utc)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _known_total_amount(amount: Any) -> Optional[Decimal]:
    if amount is None:
        return None
    amount = Decimal(str(amount)) if not isinstance(amount, Decimal) else amount
    if not amount.is_finite() or amount <= 0:
        return None
    return to_money(amount)


class LedgerService:
    """
    Orchestrates every ledger operation for a person.

    Flow for each operation:
    1. Validate → ValidationError, nothing touched
    2. Check state → DomainError, nothing touched
    3. Write → one store transaction
    4. Audit → success or rejection

    Debt payments always go through the SettlementEngine.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._engine = SettlementEngine(storage)
        self._audit_logger = audit_logger or AuditLogger()

    @property
    def storage(self) -> LedgerStorageInterface:
        return self._storage

    async def _rejected(
        self,
        operation: str,
        error: Exception,
        person_id: Optional[UUID] = None,
    ) -> None:
        if isinstance(error, ValidationError):
            await self._audit_logger.log_rejected(
                operation, f"invalid_{error.field}", error.message, person_id
            )
        elif isinstance(error, DomainError):
            await self._audit_logger.log_rejected(
                operation, error.code, error.message, person_id
            )
        else:
            await self._audit_logger.log_storage_error(operation, str(error), person_id)

    # =========================================================================
    # PEOPLE
    # =========================================================================

    async def create_person(self, name: str, initial_balance: Any = 0) -> Person:
        """Create a person with an opening balance (0 by default)."""
        try:
            validate_person_input(name, initial_balance)
            person = Person(name=name.strip(), balance=to_money(initial_balance))
            await self._storage.create_person(person)
        except (ValidationError, StorageError) as e:
            await self._rejected("create_person", e)
            raise

        await self._audit_logger.log_person_created(person.id, person.name, str(person.balance))
        return person

    async def get_person(self, person_id: PersonRef) -> Person:
        """
        Fetch a person by ID.

        Raises:
            DomainError: person_not_found
        """
        person = await self._storage.find_person_by_id(_as_uuid(person_id, "person_id"))
        if person is None:
            raise DomainError("person_not_found", "Person not found")
        return person

    async def find_person(self, identifier: str) -> Person:
        """
        Resolve a person from an ID or a name.

        An identifier that parses as an ID and matches a person wins.
        Otherwise names are compared case-insensitively and must match
        exactly one person.

        Raises:
            DomainError: person_not_found or ambiguous_person
        """
        if isinstance(identifier, UUID):
            return await self.get_person(identifier)

        text = (identifier or "").strip()
        try:
            person = await self._storage.find_person_by_id(UUID(text))
        except ValueError:
            person = None
        if person is not None:
            return person

        wanted = text.casefold()
        matches = [p for p in await self._storage.list_persons() if p.name.casefold() == wanted]
        if not matches:
            raise DomainError("person_not_found", f"Person not found: {text}")
        if len(matches) > 1:
            raise DomainError(
                "ambiguous_person",
                f"More than one person is named {text}. Use the person's id instead",
            )
        return matches[0]

    async def list_persons(self) -> list[Person]:
        persons = await self._storage.list_persons()
        return sorted(persons, key=lambda p: p.created_at)

    async def delete_person(self, person_id: PersonRef) -> None:
        """Delete a person with all their debts, deposits and expenses."""
        try:
            pid = _as_uuid(person_id, "person_id")
            if not await self._storage.delete_person(pid):
                raise DomainError("person_not_found", "Person not found")
        except (ValidationError, DomainError, StorageError) as e:
            await self._rejected("delete_person", e)
            raise

        await self._audit_logger.log_person_deleted(pid)

    # =========================================================================
    # DEBTS
    # =========================================================================

    async def register_debt(self, person_id: PersonRef, data: DebtCreate) -> Debt:
        """
        Register a debt for a person.

        Installment bookkeeping is derived once, here:
        - installment_amount = total / installments, rounded to cents
        - remaining_amount starts at the total

        Leaving out the amount or the installment count registers an
        open-ended debt; both are optional.
        """
        pid = None
        try:
            pid = _as_uuid(person_id, "person_id")
            validate_debt_input(data)
            await self.get_person(pid)

            total_amount = _known_total_amount(data.amount)
            total_installments = data.total_installments
            installment_amount = None
            if total_amount is not None and total_installments is not None:
                installment_amount = to_money(total_amount / total_installments)

            debt = Debt(
                title=data.title.strip(),
                creditor=data.creditor.strip(),
                tags=list(data.tags),
                due_date=data.due_date or date.today(),
                status=DebtStatus(data.status) if data.status else DebtStatus.PENDING,
                total_amount=total_amount,
                total_installments=total_installments,
                paid_installments=0,
                installment_amount=installment_amount,
                remaining_amount=total_amount,
            )
            await self._storage.add_debt(pid, debt)
        except (ValidationError, DomainError, StorageError) as e:
            await self._rejected("register_debt", e, pid)
            raise

        await self._audit_logger.log_debt_registered(
            person_id=pid,
            debt_id=debt.id,
            title=debt.title,
            total_amount=str(total_amount) if total_amount is not None else None,
            total_installments=total_installments,
        )
        return debt

    async def list_debts(self, person_id: PersonRef) -> list[Debt]:
        """All debts of a person, earliest due date first."""
        debts = await self._storage.list_debts_for_person(_as_uuid(person_id, "person_id"))
        return sorted(debts, key=lambda d: d.due_date)

    async def pay_debt(
        self,
        person_id: PersonRef,
        debt_id: Union[UUID, str],
        amount: Any = None,
        installments_to_pay: int = 1,
    ) -> SettlementResult:
        """
        Pay one or more installments of a debt from the person's balance.

        When the amount is left out, the installment plan decides it.
        Open-ended debts need an explicit amount.

        Raises:
            ValidationError: Malformed request
            DomainError: The debt or the balance does not allow it
        """
        pid = None
        did = None
        try:
            validate_pay_debt_input(person_id, debt_id, amount, installments_to_pay)
            pid = _as_uuid(person_id, "person_id")
            did = _as_uuid(debt_id, "debt_id")

            debts = await self._storage.list_debts_for_person(pid)
            debt = next((d for d in debts if d.id == did), None)
            if debt is None:
                raise DomainError("debt_not_found", "Debt not found")
            if debt.status == DebtStatus.PAID:
                raise DomainError("already_paid", "Debt is already paid")

            result = await self._engine.apply_payment(
                pid,
                debt,
                installments_to_pay=installments_to_pay,
                amount=to_money(amount) if amount is not None else None,
            )
        except (ValidationError, DomainError) as e:
            code = e.code if isinstance(e, DomainError) else f"invalid_{e.field}"
            if pid is not None:
                await self._audit_logger.log_payment_rejected(pid, did, code, e.message)
            else:
                await self._rejected("pay_debt", e)
            raise
        except StorageError as e:
            await self._rejected("pay_debt", e, pid)
            raise

        await self._audit_logger.log_payment_applied(
            person_id=pid,
            debt_id=did,
            amount=str(result.amount_charged),
            installments=result.installments_paid_now,
            status=result.status.value,
            remaining_amount=(
                str(result.remaining_amount) if result.remaining_amount is not None else None
            ),
        )
        return result

    async def pay_debt_installments(
        self,
        person_id: PersonRef,
        debt_id: Union[UUID, str],
        installments: int,
    ) -> SettlementResult:
        """Pay a number of installments at the amount the plan computes."""
        return await self.pay_debt(person_id, debt_id, amount=None, installments_to_pay=installments)

    # =========================================================================
    # DEPOSITS AND EXPENSES
    # =========================================================================

    async def register_deposit(self, person_id: PersonRef, data: DepositCreate) -> Deposit:
        """Record money coming in and credit it to the balance."""
        pid = None
        try:
            pid = _as_uuid(person_id, "person_id")
            validate_deposit_input(data)

            deposit = Deposit(
                description=data.description.strip(),
                amount=to_money(data.amount),
                is_loan=data.is_loan,
                creditor_name=data.creditor_name.strip() if data.is_loan else None,
                date=_as_utc(data.date),
            )

            async def record(tx: LedgerTransaction) -> None:
                if not await tx.credit(pid, deposit.amount):
                    raise DomainError("person_not_found", "Person not found")
                await tx.add_deposit(pid, deposit)

            await self._storage.run_in_transaction(record)
        except (ValidationError, DomainError, StorageError) as e:
            await self._rejected("register_deposit", e, pid)
            raise

        await self._audit_logger.log_deposit_registered(
            person_id=pid,
            deposit_id=deposit.id,
            amount=str(deposit.amount),
            is_loan=deposit.is_loan,
        )
        return deposit

    async def list_deposits(self, person_id: PersonRef) -> list[Deposit]:
        deposits = await self._storage.list_deposits_for_person(_as_uuid(person_id, "person_id"))
        return sorted(deposits, key=lambda d: d.date)

    async def register_expense(self, person_id: PersonRef, data: ExpenseCreate) -> Expense:
        """Record money going out. The balance must cover it."""
        pid = None
        try:
            pid = _as_uuid(person_id, "person_id")
            validate_expense_input(data)

            expense = Expense(
                description=data.description.strip(),
                amount=to_money(data.amount),
                tags=list(data.tags or []),
                date=_as_utc(data.date),
            )

            async def record(tx: LedgerTransaction) -> None:
                if not await tx.conditional_debit(pid, expense.amount):
                    raise DomainError(
                        "insufficient_funds", "Insufficient balance or person not found"
                    )
                await tx.add_expense(pid, expense)

            await self._storage.run_in_transaction(record)
        except (ValidationError, DomainError, StorageError) as e:
            await self._rejected("register_expense", e, pid)
            raise

        await self._audit_logger.log_expense_registered(
            person_id=pid,
            expense_id=expense.id,
            amount=str(expense.amount),
            tags=expense.tags,
        )
        return expense

    async def list_expenses(self, person_id: PersonRef) -> list[Expense]:
        expenses = await self._storage.list_expenses_for_person(_as_uuid(person_id, "person_id"))
        return sorted(expenses, key=lambda e: e.date)

    # =========================================================================
    # SUMMARY
    # =========================================================================

    async def get_summary(self, person_id: PersonRef) -> AccountSummary:
        """Balance plus totals of deposits, expenses and open debts."""
        person = await self.get_person(person_id)
        deposits = await self._storage.list_deposits_for_person(person.id)
        expenses = await self._storage.list_expenses_for_person(person.id)
        open_debts = [
            d for d in await self._storage.list_debts_for_person(person.id)
            if d.status != DebtStatus.PAID
        ]

        return AccountSummary(
            person_id=person.id,
            name=person.name,
            balance=person.balance,
            deposit_count=len(deposits),
            deposit_total=to_money(sum((d.amount for d in deposits), Decimal("0"))),
            expense_count=len(expenses),
            expense_total=to_money(sum((e.amount for e in expenses), Decimal("0"))),
            open_debt_count=len(open_debts),
            open_debt_total=to_money(
                sum(
                    (d.remaining_amount for d in open_debts if d.remaining_amount is not None),
                    Decimal("0"),
                )
            ),
        )


def create_app_components(
    use_database: bool = True,
) -> tuple[LedgerService, LedgerStorageInterface, Optional[MongoClientManager]]:
    """
    Factory function to create all application components.

    Args:
        use_database: Whether to use the MongoDB backend configured in
                    settings. Set to False for testing without a database.

    Returns:
        (ledger_service, ledger_storage, mongo_manager)

    The MongoDB manager is returned unconnected; the caller owns it and
    must await connect() before the first operation and close() on
    shutdown. It is None for the in-memory backend.
    """
    settings = get_settings()
    logging.getLogger("financas").setLevel(settings.app.log_level)
    manager = None

    if use_database and settings.app.storage_backend == "mongodb":
        manager = MongoClientManager(settings.mongodb)
        storage = MongoLedgerStorage(
            manager, max_attempts=settings.app.transaction_max_attempts
        )
        audit_storage = MongoAuditStorage(manager) if settings.app.persist_audit_events else None
    else:
        storage = InMemoryLedgerStorage()
        audit_storage = InMemoryAuditStorage() if settings.app.persist_audit_events else None

    audit_logger = AuditLogger(audit_storage)
    service = LedgerService(storage, audit_logger)

    return service, storage, manager
