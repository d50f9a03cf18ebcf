"""Services package."""

from ledger.services.feeds import (
    FeedUnavailableError,
    IndicatorFeedClient,
    IndicatorRefresher,
    IndicatorService,
)
from ledger.services.previews import PreviewLease, PreviewManager
from ledger.services.storage import (
    AttachmentStorageInterface,
    MigrationManager,
    NotFoundError,
    QuotaExceededError,
    SchemaVersionError,
    SQLiteAttachmentStorage,
    SQLiteClient,
    SQLiteTransactionStorage,
    StorageError,
    StoreUnavailableError,
    TransactionStorageInterface,
)

__all__ = [
    # Feeds
    "FeedUnavailableError",
    "IndicatorFeedClient",
    "IndicatorRefresher",
    "IndicatorService",
    # Previews
    "PreviewLease",
    "PreviewManager",
    # Storage services
    "AttachmentStorageInterface",
    "MigrationManager",
    "NotFoundError",
    "QuotaExceededError",
    "SchemaVersionError",
    "SQLiteAttachmentStorage",
    "SQLiteClient",
    "SQLiteTransactionStorage",
    "StorageError",
    "StoreUnavailableError",
    "TransactionStorageInterface",
]
