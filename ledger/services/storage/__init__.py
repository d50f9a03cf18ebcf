"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Currently implements SQLite as the backend, but designed to be swappable.
"""

from ledger.services.storage.interface import (
    AttachmentStorageInterface,
    NotFoundError,
    QuotaExceededError,
    SchemaVersionError,
    StorageError,
    StoreUnavailableError,
    TransactionStorageInterface,
)
from ledger.services.storage.sqlite import (
    SQLiteAttachmentStorage,
    SQLiteClient,
    SQLiteTransactionStorage,
)
from ledger.services.storage.migrations import (
    SCHEMA_VERSION,
    MigrationManager,
    MigrationReport,
)

__all__ = [
    # Interfaces
    "AttachmentStorageInterface",
    "TransactionStorageInterface",
    # Exceptions
    "NotFoundError",
    "QuotaExceededError",
    "SchemaVersionError",
    "StorageError",
    "StoreUnavailableError",
    # SQLite implementation
    "SQLiteAttachmentStorage",
    "SQLiteClient",
    "SQLiteTransactionStorage",
    # Schema
    "SCHEMA_VERSION",
    "MigrationManager",
    "MigrationReport",
]
