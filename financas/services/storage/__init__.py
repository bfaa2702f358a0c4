"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
MongoDB is the production backend; the in-memory backend serves tests and
database-less runs.
"""

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
from financas.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)
from financas.services.storage.mongodb import (
    MongoAuditStorage,
    MongoClientManager,
    MongoLedgerStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    "LedgerTransaction",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    "TransientStorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    # MongoDB implementation
    "MongoAuditStorage",
    "MongoClientManager",
    "MongoLedgerStorage",
]
