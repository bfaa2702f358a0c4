"""Services package."""

from financas.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    LedgerTransaction,
    MongoAuditStorage,
    MongoClientManager,
    MongoLedgerStorage,
    NotFoundError,
    StorageError,
    TransientStorageError,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    "LedgerStorageInterface",
    "LedgerTransaction",
    "MongoAuditStorage",
    "MongoClientManager",
    "MongoLedgerStorage",
    "NotFoundError",
    "StorageError",
    "TransientStorageError",
]
