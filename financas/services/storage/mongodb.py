"""
MongoDB Storage Implementation

DESIGN DECISION: MongoDB (through the Motor async driver) is the
production backend because:
1. Multi-document transactions give us all-or-nothing payments
2. A filtered find_one_and_update is a natural conditional debit
3. Write-conflict detection serializes concurrent debits of one person

Ownership is modelled with a person_id field on every debt, deposit
and expense document. Deleting a person removes all of them in one
transaction.

NOTE: Transactions need a replica set (a single-node one is enough).

The implementation follows the abstract interface, so business logic
never sees a Motor object.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional, TypeVar
from uuid import UUID

import structlog
from bson.decimal128 import Decimal128
from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorClientSession,
    AsyncIOMotorDatabase,
)
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError
from tenacity import (
    AsyncRetrying,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from financas.config import MongoSettings, get_settings
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
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    LedgerTransaction,
    NotFoundError,
    StorageError,
    TransientStorageError,
)


T = TypeVar("T")

logger = structlog.get_logger(__name__)


# =============================================================================
# DOCUMENT CONVERSION
# =============================================================================

def _to_decimal128(value: Optional[Decimal]) -> Optional[Decimal128]:
    return Decimal128(value) if value is not None else None


def _from_decimal128(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    if isinstance(value, Decimal128):
        return value.to_decimal()
    return Decimal(str(value))


def _person_to_document(person: Person) -> dict:
    return {
        "_id": str(person.id),
        "name": person.name,
        "balance": _to_decimal128(person.balance),
        "created_at": person.created_at,
    }


def _document_to_person(doc: dict) -> Person:
    return Person(
        id=UUID(doc["_id"]),
        name=doc["name"],
        balance=_from_decimal128(doc.get("balance")) or Decimal("0.00"),
        created_at=doc["created_at"],
    )


def _debt_to_document(person_id: UUID, debt: Debt) -> dict:
    return {
        "_id": str(debt.id),
        "person_id": str(person_id),
        "title": debt.title,
        "creditor": debt.creditor,
        "tags": list(debt.tags),
        # BSON has no plain date type
        "due_date": debt.due_date.isoformat(),
        "status": debt.status.value,
        "total_amount": _to_decimal128(debt.total_amount),
        "total_installments": debt.total_installments,
        "paid_installments": debt.paid_installments,
        "installment_amount": _to_decimal128(debt.installment_amount),
        "remaining_amount": _to_decimal128(debt.remaining_amount),
        "pay_date": debt.pay_date,
        "created_at": debt.created_at,
    }


def _document_to_debt(doc: dict) -> Debt:
    return Debt(
        id=UUID(doc["_id"]),
        title=doc["title"],
        creditor=doc["creditor"],
        tags=doc.get("tags") or [],
        due_date=date.fromisoformat(doc["due_date"]),
        status=DebtStatus(doc.get("status", DebtStatus.PENDING.value)),
        total_amount=_from_decimal128(doc.get("total_amount")),
        total_installments=doc.get("total_installments"),
        paid_installments=doc.get("paid_installments") or 0,
        installment_amount=_from_decimal128(doc.get("installment_amount")),
        remaining_amount=_from_decimal128(doc.get("remaining_amount")),
        pay_date=doc.get("pay_date"),
        created_at=doc["created_at"],
    )


def _deposit_to_document(person_id: UUID, deposit: Deposit) -> dict:
    return {
        "_id": str(deposit.id),
        "person_id": str(person_id),
        "description": deposit.description,
        "amount": _to_decimal128(deposit.amount),
        "is_loan": deposit.is_loan,
        "creditor_name": deposit.creditor_name,
        "date": deposit.date,
    }


def _document_to_deposit(doc: dict) -> Deposit:
    return Deposit(
        id=UUID(doc["_id"]),
        description=doc["description"],
        amount=_from_decimal128(doc["amount"]),
        is_loan=doc.get("is_loan", False),
        creditor_name=doc.get("creditor_name"),
        date=doc["date"],
    )


def _expense_to_document(person_id: UUID, expense: Expense) -> dict:
    return {
        "_id": str(expense.id),
        "person_id": str(person_id),
        "description": expense.description,
        "amount": _to_decimal128(expense.amount),
        "tags": list(expense.tags),
        "date": expense.date,
    }


def _document_to_expense(doc: dict) -> Expense:
    return Expense(
        id=UUID(doc["_id"]),
        description=doc["description"],
        amount=_from_decimal128(doc["amount"]),
        tags=doc.get("tags") or [],
        date=doc["date"],
    )


# =============================================================================
# CONNECTION
# =============================================================================

class MongoClientManager:
    """
    Owns the MongoDB client for the lifetime of the process.

    Call connect() before use and close() on shutdown. There is no
    module-level client.
    """

    def __init__(self, settings: Optional[MongoSettings] = None):
        self._settings = settings or get_settings().mongodb
        self._client: Optional[AsyncIOMotorClient] = None
        self._db: Optional[AsyncIOMotorDatabase] = None

    @property
    def settings(self) -> MongoSettings:
        return self._settings

    @property
    def client(self) -> AsyncIOMotorClient:
        if self._client is None:
            raise ConnectionError("MongoDB client is not connected")
        return self._client

    @property
    def database(self) -> AsyncIOMotorDatabase:
        if self._db is None:
            raise ConnectionError("MongoDB client is not connected")
        return self._db

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def connect(self) -> AsyncIOMotorDatabase:
        """
        Establish the connection and make sure indexes exist.
        """
        if self._client is None:
            client = AsyncIOMotorClient(
                self._settings.uri,
                tz_aware=True,
                serverSelectionTimeoutMS=self._settings.server_selection_timeout_ms,
            )
            try:
                await client.admin.command("ping")
            except PyMongoError as e:
                client.close()
                raise ConnectionError(f"Failed to connect to MongoDB: {e}")

            self._client = client
            self._db = client[self._settings.database]
            await self._create_indexes()
            logger.info("mongodb_connected", database=self._settings.database)

        return self._db

    async def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            self._db = None
            logger.info("mongodb_disconnected")

    async def _create_indexes(self) -> None:
        db = self._db
        s = self._settings
        await db[s.debts_collection].create_index([("person_id", ASCENDING), ("due_date", ASCENDING)])
        await db[s.deposits_collection].create_index([("person_id", ASCENDING), ("date", ASCENDING)])
        await db[s.expenses_collection].create_index([("person_id", ASCENDING), ("date", ASCENDING)])
        await db[s.audit_collection].create_index([("entity_type", ASCENDING), ("entity_id", ASCENDING)])
        await db[s.audit_collection].create_index([("timestamp", DESCENDING)])


# =============================================================================
# LEDGER STORAGE
# =============================================================================

class MongoLedgerTransaction(LedgerTransaction):
    """Writes bound to one client session with an open transaction."""

    def __init__(self, storage: "MongoLedgerStorage", session: AsyncIOMotorClientSession):
        self._storage = storage
        self._session = session

    async def find_debt(self, person_id: UUID, debt_id: UUID) -> Optional[Debt]:
        doc = await self._storage.debts.find_one(
            {"_id": str(debt_id), "person_id": str(person_id)},
            session=self._session,
        )
        return _document_to_debt(doc) if doc else None

    async def conditional_debit(self, person_id: UUID, amount: Decimal) -> bool:
        # The balance filter and the $inc are evaluated as one atomic update
        result = await self._storage.persons.find_one_and_update(
            {"_id": str(person_id), "balance": {"$gte": Decimal128(amount)}},
            {"$inc": {"balance": Decimal128(-amount)}},
            session=self._session,
        )
        return result is not None

    async def credit(self, person_id: UUID, amount: Decimal) -> bool:
        result = await self._storage.persons.update_one(
            {"_id": str(person_id)},
            {"$inc": {"balance": Decimal128(amount)}},
            session=self._session,
        )
        return result.matched_count > 0

    async def update_debt_after_payment(
        self,
        person_id: UUID,
        debt_id: UUID,
        status: DebtStatus,
        paid_installments: int,
        remaining_amount: Optional[Decimal],
        pay_date: datetime,
    ) -> bool:
        result = await self._storage.debts.update_one(
            {"_id": str(debt_id), "person_id": str(person_id)},
            {
                "$set": {
                    "status": status.value,
                    "paid_installments": paid_installments,
                    "remaining_amount": _to_decimal128(remaining_amount),
                    "pay_date": pay_date,
                }
            },
            session=self._session,
        )
        return result.matched_count > 0

    async def add_deposit(self, person_id: UUID, deposit: Deposit) -> None:
        await self._storage.deposits.insert_one(
            _deposit_to_document(person_id, deposit),
            session=self._session,
        )

    async def add_expense(self, person_id: UUID, expense: Expense) -> None:
        await self._storage.expenses.insert_one(
            _expense_to_document(person_id, expense),
            session=self._session,
        )


class MongoLedgerStorage(LedgerStorageInterface):
    """
    MongoDB implementation of ledger storage.

    One collection per record type; owned records point back to their
    person through person_id.
    """

    def __init__(
        self,
        manager: MongoClientManager,
        max_attempts: Optional[int] = None,
    ):
        self._manager = manager
        self._max_attempts = max_attempts or get_settings().app.transaction_max_attempts

    def _collection(self, name: str):
        return self._manager.database[name]

    @property
    def persons(self):
        return self._collection(self._manager.settings.persons_collection)

    @property
    def debts(self):
        return self._collection(self._manager.settings.debts_collection)

    @property
    def deposits(self):
        return self._collection(self._manager.settings.deposits_collection)

    @property
    def expenses(self):
        return self._collection(self._manager.settings.expenses_collection)

    async def create_person(self, person: Person) -> None:
        try:
            await self.persons.insert_one(_person_to_document(person))
        except DuplicateKeyError:
            raise DuplicateError(f"Person already exists: {person.id}")
        except PyMongoError as e:
            raise StorageError(f"Failed to create person: {e}")

    async def find_person_by_id(self, person_id: UUID) -> Optional[Person]:
        try:
            doc = await self.persons.find_one({"_id": str(person_id)})
        except PyMongoError as e:
            raise StorageError(f"Failed to get person: {e}")
        return _document_to_person(doc) if doc else None

    async def list_persons(self) -> list[Person]:
        try:
            docs = await self.persons.find({}).sort("name", ASCENDING).to_list(None)
        except PyMongoError as e:
            raise StorageError(f"Failed to list persons: {e}")
        return [_document_to_person(doc) for doc in docs]

    async def delete_person(self, person_id: UUID) -> bool:
        key = str(person_id)

        async def cascade(session: AsyncIOMotorClientSession) -> bool:
            await self.debts.delete_many({"person_id": key}, session=session)
            await self.deposits.delete_many({"person_id": key}, session=session)
            await self.expenses.delete_many({"person_id": key}, session=session)
            result = await self.persons.delete_one({"_id": key}, session=session)
            return result.deleted_count > 0

        deleted = await self._with_retries(cascade)
        logger.info("person_deleted", person_id=key, deleted=deleted)
        return deleted

    async def add_debt(self, person_id: UUID, debt: Debt) -> None:
        if await self.find_person_by_id(person_id) is None:
            raise NotFoundError(f"Person not found: {person_id}")
        try:
            await self.debts.insert_one(_debt_to_document(person_id, debt))
        except PyMongoError as e:
            raise StorageError(f"Failed to add debt: {e}")

    async def list_debts_for_person(self, person_id: UUID) -> list[Debt]:
        return await self._list_owned(self.debts, person_id, _document_to_debt)

    async def list_deposits_for_person(self, person_id: UUID) -> list[Deposit]:
        return await self._list_owned(self.deposits, person_id, _document_to_deposit)

    async def list_expenses_for_person(self, person_id: UUID) -> list[Expense]:
        return await self._list_owned(self.expenses, person_id, _document_to_expense)

    async def _list_owned(self, collection, person_id: UUID, convert):
        try:
            docs = await collection.find({"person_id": str(person_id)}).to_list(None)
        except PyMongoError as e:
            raise StorageError(f"Failed to list {collection.name}: {e}")
        return [convert(doc) for doc in docs]

    async def run_in_transaction(
        self,
        unit_of_work: Callable[[LedgerTransaction], Awaitable[T]],
    ) -> T:
        async def callback(session: AsyncIOMotorClientSession) -> T:
            return await unit_of_work(MongoLedgerTransaction(self, session))

        return await self._with_retries(callback)

    async def _with_retries(
        self,
        callback: Callable[[AsyncIOMotorClientSession], Awaitable[T]],
    ) -> T:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
            retry=retry_if_exception_type(TransientStorageError),
            reraise=True,
        ):
            with attempt:
                return await self._run_once(callback)

    async def _run_once(
        self,
        callback: Callable[[AsyncIOMotorClientSession], Awaitable[T]],
    ) -> T:
        """
        Run the callback inside one session and one transaction.

        Leaving the transaction block with an exception aborts it.
        Non-driver exceptions (domain rejections) propagate unchanged.
        """
        try:
            async with await self._manager.client.start_session() as session:
                async with session.start_transaction():
                    return await callback(session)
        except PyMongoError as e:
            if e.has_error_label("TransientTransactionError"):
                logger.warning("mongodb_transaction_conflict", error=str(e))
                raise TransientStorageError(f"Transaction conflict: {e}")
            raise StorageError(f"Transaction failed: {e}")


# =============================================================================
# AUDIT STORAGE
# =============================================================================

class MongoAuditStorage(AuditStorageInterface):
    """
    MongoDB implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, manager: MongoClientManager):
        self._manager = manager

    @property
    def events(self):
        return self._manager.database[self._manager.settings.audit_collection]

    @staticmethod
    def _event_to_document(event: AuditEvent) -> dict:
        doc = event.model_dump(mode="json")
        doc["_id"] = doc["event_id"]
        return doc

    @staticmethod
    def _document_to_event(doc: dict) -> AuditEvent:
        doc = dict(doc)
        doc.pop("_id", None)
        return AuditEvent.model_validate(doc)

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            await self.events.insert_one(self._event_to_document(event))
            return True
        except PyMongoError as e:
            # Audit logging should not break the main flow
            logger.warning("audit_event_write_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        try:
            docs = await self.events.find(
                {"entity_type": entity_type, "entity_id": str(entity_id)}
            ).sort("timestamp", ASCENDING).to_list(None)
        except PyMongoError as e:
            raise StorageError(f"Failed to get audit events: {e}")
        return [self._document_to_event(doc) for doc in docs]

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            docs = await self.events.find({}).sort("timestamp", DESCENDING).to_list(limit)
        except PyMongoError as e:
            raise StorageError(f"Failed to get audit events: {e}")
        return [self._document_to_event(doc) for doc in docs]
