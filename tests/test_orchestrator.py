"""Tests for the ledger service flows (in-memory store)."""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from financas.models.audit import AuditEventType
from financas.models.ledger import (
    DebtCreate,
    DebtStatus,
    DepositCreate,
    ExpenseCreate,
)
from financas.orchestrator import LedgerService, create_app_components
from financas.services.storage import (
    InMemoryLedgerStorage,
    MongoClientManager,
    MongoLedgerStorage,
    StorageError,
)
from financas.settlement import DomainError
from financas.validation import ValidationError


class TestPersons:
    """Tests for person management."""

    @pytest.mark.asyncio
    async def test_create_person_defaults_to_zero_balance(self, service):
        """Test that a person starts at 0.00 when no balance is given."""
        person = await service.create_person("Bruno")
        assert person.balance == Decimal("0.00")
        assert (await service.get_person(person.id)).name == "Bruno"

    @pytest.mark.asyncio
    async def test_create_person_rejects_negative_balance(self, service, audit_storage):
        """Test that invalid input is rejected and audited."""
        with pytest.raises(ValidationError):
            await service.create_person("Bruno", -1)

        events = await audit_storage.get_recent_events()
        assert events[0].event_type == AuditEventType.OPERATION_REJECTED
        assert events[0].error_code == "invalid_initial_balance"

    @pytest.mark.asyncio
    async def test_find_person_by_id_or_name(self, service, person):
        """Test lookup by id string and by case-insensitive name."""
        assert (await service.find_person(str(person.id))).id == person.id
        assert (await service.find_person("ANA")).id == person.id

    @pytest.mark.asyncio
    async def test_find_person_ambiguous_name(self, service, person):
        """Test that a shared name cannot identify a person."""
        await service.create_person("ana")

        with pytest.raises(DomainError) as exc:
            await service.find_person("Ana")

        assert exc.value.code == "ambiguous_person"

    @pytest.mark.asyncio
    async def test_find_person_not_found(self, service):
        """Test that an unknown identifier is a domain error."""
        with pytest.raises(DomainError) as exc:
            await service.find_person("Nobody")

        assert exc.value.code == "person_not_found"

    @pytest.mark.asyncio
    async def test_delete_person_cascades(self, service, storage, person):
        """Test that deleting a person removes everything they own."""
        await service.register_debt(person.id, DebtCreate(title="TV", creditor="Loja", amount=Decimal("100")))
        await service.register_deposit(person.id, DepositCreate(description="Salary", amount=Decimal("10")))
        await service.register_expense(person.id, ExpenseCreate(description="Lunch", amount=Decimal("5")))

        await service.delete_person(person.id)

        assert await storage.find_person_by_id(person.id) is None
        assert await storage.list_debts_for_person(person.id) == []
        assert await storage.list_deposits_for_person(person.id) == []
        assert await storage.list_expenses_for_person(person.id) == []

    @pytest.mark.asyncio
    async def test_delete_unknown_person(self, service):
        """Test that deleting a missing person fails."""
        with pytest.raises(DomainError) as exc:
            await service.delete_person(uuid4())

        assert exc.value.code == "person_not_found"


class TestDebts:
    """Tests for debt registration and payment."""

    @pytest.mark.asyncio
    async def test_register_debt_derives_installments(self, service, person):
        """Test the bookkeeping computed at registration."""
        debt = await service.register_debt(
            person.id,
            DebtCreate(title="TV", creditor="Loja", amount=Decimal("100"), total_installments=3),
        )

        assert debt.installment_amount == Decimal("33.33")
        assert debt.remaining_amount == Decimal("100.00")
        assert debt.status == DebtStatus.PENDING
        assert debt.paid_installments == 0

    @pytest.mark.asyncio
    async def test_register_debt_for_unknown_person(self, service):
        """Test that a debt needs an owner."""
        with pytest.raises(DomainError) as exc:
            await service.register_debt(uuid4(), DebtCreate(title="TV", creditor="Loja"))

        assert exc.value.code == "person_not_found"

    @pytest.mark.asyncio
    async def test_list_debts_sorted_by_due_date(self, service, person):
        """Test that debts come back earliest due first."""
        today = date.today()
        for title, offset in [("Later", 30), ("Sooner", 1), ("Middle", 10)]:
            await service.register_debt(
                person.id,
                DebtCreate(title=title, creditor="X", due_date=today + timedelta(days=offset)),
            )

        titles = [d.title for d in await service.list_debts(person.id)]
        assert titles == ["Sooner", "Middle", "Later"]

    @pytest.mark.asyncio
    async def test_rent_scenario(self, service, person):
        """Test registering and paying a single-payment debt."""
        debt = await service.register_debt(
            person.id,
            DebtCreate(title="Aluguel", creditor="Imobiliaria", amount=Decimal("1200")),
        )
        assert debt.status == DebtStatus.PENDING
        assert debt.remaining_amount == Decimal("1200.00")
        assert debt.installment_amount is None

        result = await service.pay_debt(person.id, debt.id, amount=Decimal("1200"))

        assert result.status == DebtStatus.PAID
        assert result.remaining_amount == Decimal("0.00")
        assert (await service.get_person(person.id)).balance == Decimal("3800.00")

    @pytest.mark.asyncio
    async def test_pay_debt_installments(self, service, person, audit_storage):
        """Test paying by installment count and the audit trail it leaves."""
        debt = await service.register_debt(
            person.id,
            DebtCreate(title="TV", creditor="Loja", amount=Decimal("1200"), total_installments=3),
        )

        result = await service.pay_debt_installments(person.id, debt.id, 2)

        assert result.amount_charged == Decimal("800.00")
        assert result.paid_installments == 2
        assert result.status == DebtStatus.PARTIALLY_PAID

        events = await audit_storage.get_events_by_entity("debt", debt.id)
        assert [e.event_type for e in events] == [
            AuditEventType.DEBT_REGISTERED,
            AuditEventType.DEBT_PAYMENT_APPLIED,
        ]

    @pytest.mark.asyncio
    async def test_pay_unknown_debt(self, service, person):
        """Test that the debt must belong to the person."""
        with pytest.raises(DomainError) as exc:
            await service.pay_debt(person.id, uuid4(), amount=Decimal("10"))

        assert exc.value.code == "debt_not_found"

    @pytest.mark.asyncio
    async def test_pay_paid_debt_is_audited(self, service, person, audit_storage):
        """Test that a rejected payment is recorded with its code."""
        debt = await service.register_debt(
            person.id,
            DebtCreate(title="TV", creditor="Loja", amount=Decimal("100"), status="paid"),
        )

        with pytest.raises(DomainError) as exc:
            await service.pay_debt(person.id, debt.id, amount=Decimal("10"))

        assert exc.value.code == "already_paid"
        events = await audit_storage.get_events_by_entity("debt", debt.id)
        assert events[-1].event_type == AuditEventType.DEBT_PAYMENT_REJECTED
        assert events[-1].error_code == "already_paid"

    @pytest.mark.asyncio
    async def test_pay_debt_rejects_bad_installments(self, service, person):
        """Test that validation runs before any lookup."""
        with pytest.raises(ValidationError):
            await service.pay_debt(person.id, uuid4(), installments_to_pay=0)


class TestDepositsAndExpenses:
    """Tests for money moving in and out."""

    @pytest.mark.asyncio
    async def test_deposit_credits_balance(self, service, person):
        """Test that a deposit raises the balance."""
        deposit = await service.register_deposit(
            person.id,
            DepositCreate(description="Loan", amount=Decimal("250.50"), is_loan=True, creditor_name="Bia"),
        )

        assert deposit.creditor_name == "Bia"
        assert (await service.get_person(person.id)).balance == Decimal("5250.50")

    @pytest.mark.asyncio
    async def test_deposit_for_unknown_person(self, service):
        """Test that a deposit needs an existing person."""
        with pytest.raises(DomainError) as exc:
            await service.register_deposit(uuid4(), DepositCreate(description="X", amount=Decimal("1")))

        assert exc.value.code == "person_not_found"

    @pytest.mark.asyncio
    async def test_expense_debits_balance(self, service, person):
        """Test that an expense lowers the balance."""
        await service.register_expense(
            person.id, ExpenseCreate(description="Market", amount=Decimal("120.35"), tags=["food"])
        )

        assert (await service.get_person(person.id)).balance == Decimal("4879.65")

    @pytest.mark.asyncio
    async def test_expense_insufficient_funds(self, service, person):
        """Test that an expense larger than the balance changes nothing."""
        with pytest.raises(DomainError) as exc:
            await service.register_expense(
                person.id, ExpenseCreate(description="Car", amount=Decimal("5000.01"))
            )

        assert exc.value.code == "insufficient_funds"
        assert (await service.get_person(person.id)).balance == Decimal("5000.00")
        assert await service.list_expenses(person.id) == []

    @pytest.mark.asyncio
    async def test_lists_sorted_by_date(self, service, person):
        """Test that deposits and expenses come back oldest first."""
        now = datetime.now(timezone.utc)
        await service.register_deposit(
            person.id, DepositCreate(description="New", amount=Decimal("1"), date=now)
        )
        await service.register_deposit(
            person.id, DepositCreate(description="Old", amount=Decimal("1"), date=now - timedelta(days=3))
        )
        await service.register_expense(
            person.id, ExpenseCreate(description="New", amount=Decimal("1"), date=now)
        )
        await service.register_expense(
            person.id, ExpenseCreate(description="Old", amount=Decimal("1"), date=now - timedelta(days=3))
        )

        assert [d.description for d in await service.list_deposits(person.id)] == ["Old", "New"]
        assert [e.description for e in await service.list_expenses(person.id)] == ["Old", "New"]


class TestSubCentAmounts:
    """Tests for amounts that would round to zero cents."""

    @pytest.mark.asyncio
    async def test_pay_debt_rejects_sub_cent_amount(self, service, person):
        """Test that a payment must charge at least one cent."""
        debt = await service.register_debt(person.id, DebtCreate(title="Tab", creditor="Bar"))

        with pytest.raises(ValidationError) as exc:
            await service.pay_debt(person.id, debt.id, amount=Decimal("0.004"))

        assert exc.value.field == "amount"
        stored = (await service.list_debts(person.id))[0]
        assert stored.status == DebtStatus.PENDING
        assert stored.paid_installments == 0

    @pytest.mark.asyncio
    async def test_register_deposit_rejects_sub_cent_amount(self, service, person, audit_storage):
        """Test that a rounded-away deposit is a validation error and is audited."""
        with pytest.raises(ValidationError):
            await service.register_deposit(
                person.id, DepositCreate(description="Coin", amount=Decimal("0.004"))
            )

        rejected = [
            e for e in await audit_storage.get_recent_events()
            if e.event_type == AuditEventType.OPERATION_REJECTED
        ]
        assert [e.error_code for e in rejected] == ["invalid_amount"]
        assert await service.list_deposits(person.id) == []

    @pytest.mark.asyncio
    async def test_register_expense_rejects_sub_cent_amount(self, service, person):
        """Test that an expense must be at least one cent."""
        with pytest.raises(ValidationError):
            await service.register_expense(
                person.id, ExpenseCreate(description="Gum", amount=0.004)
            )

        assert (await service.get_person(person.id)).balance == Decimal("5000.00")

    @pytest.mark.asyncio
    async def test_register_debt_rejects_sub_cent_amount(self, service, person):
        """Test that a debt total must be at least one cent."""
        with pytest.raises(ValidationError) as exc:
            await service.register_debt(
                person.id, DebtCreate(title="TV", creditor="Loja", amount=Decimal("0.004"))
            )

        assert exc.value.field == "amount"
        assert await service.list_debts(person.id) == []

    @pytest.mark.asyncio
    async def test_text_amounts_are_accepted(self, service, person):
        """Test that amounts given as text are rounded to cents."""
        deposit = await service.register_deposit(
            person.id, DepositCreate(description="Salary", amount="100.505")
        )

        assert deposit.amount == Decimal("100.51")


class TestSummary:
    """Tests for the account summary."""

    @pytest.mark.asyncio
    async def test_summary_totals(self, service, person):
        """Test balance, totals and open debts in one snapshot."""
        await service.register_deposit(person.id, DepositCreate(description="Salary", amount=Decimal("1000")))
        await service.register_expense(person.id, ExpenseCreate(description="Lunch", amount=Decimal("30")))
        open_debt = await service.register_debt(
            person.id, DebtCreate(title="TV", creditor="Loja", amount=Decimal("300"), total_installments=3)
        )
        await service.register_debt(person.id, DebtCreate(title="Tab", creditor="Bar"))
        paid = await service.register_debt(
            person.id, DebtCreate(title="Phone", creditor="Op", amount=Decimal("50"))
        )
        await service.pay_debt(person.id, paid.id, amount=Decimal("50"))
        await service.pay_debt(person.id, open_debt.id)

        summary = await service.get_summary(person.id)

        assert summary.balance == Decimal("5820.00")
        assert summary.deposit_count == 1
        assert summary.deposit_total == Decimal("1000.00")
        assert summary.expense_total == Decimal("30.00")
        assert summary.open_debt_count == 2
        assert summary.open_debt_total == Decimal("200.00")


class TestAppComponents:
    """Tests for the component factory."""

    def test_without_database_uses_memory(self):
        """Test that use_database=False never builds a MongoDB client."""
        service, storage, manager = create_app_components(use_database=False)

        assert isinstance(service, LedgerService)
        assert isinstance(storage, InMemoryLedgerStorage)
        assert manager is None

    def test_memory_backend_from_settings(self, monkeypatch):
        """Test that STORAGE_BACKEND=memory selects the in-memory store."""
        monkeypatch.setenv("STORAGE_BACKEND", "memory")

        _, storage, manager = create_app_components()

        assert isinstance(storage, InMemoryLedgerStorage)
        assert manager is None

    def test_mongodb_backend_is_not_connected(self, monkeypatch):
        """Test that the MongoDB manager is handed back unconnected."""
        monkeypatch.setenv("STORAGE_BACKEND", "mongodb")

        _, storage, manager = create_app_components()

        assert isinstance(storage, MongoLedgerStorage)
        assert isinstance(manager, MongoClientManager)
        with pytest.raises(StorageError):
            _ = manager.client
