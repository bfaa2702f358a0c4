"""Shared fixtures: an in-memory ledger with audit events captured."""

from decimal import Decimal

import pytest
import pytest_asyncio

from financas.audit import AuditLogger
from financas.orchestrator import LedgerService
from financas.services.storage import InMemoryAuditStorage, InMemoryLedgerStorage


@pytest.fixture
def storage() -> InMemoryLedgerStorage:
    return InMemoryLedgerStorage()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def service(storage, audit_storage) -> LedgerService:
    return LedgerService(storage, AuditLogger(audit_storage))


@pytest_asyncio.fixture
async def person(service):
    """A person with 5000.00 on their balance."""
    return await service.create_person("Ana", Decimal("5000"))
