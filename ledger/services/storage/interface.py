"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap SQLite for another local engine later
2. Use fault-injecting fakes for testing
3. Keep the mutation pipeline decoupled from storage implementation

The interface is intentionally simple - we're not building a full ORM.
Each method is its own storage transaction; there is no cross-call
transaction boundary.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ledger.models.attachment import Attachment, AttachmentUpload
from ledger.models.transaction import Transaction, TransactionRecord, TransactionType


class TransactionStorageInterface(ABC):
    """
    Abstract interface for the record store.

    Ids are assigned here and only here. Result order of every listing is
    unspecified; callers sort.
    """

    @abstractmethod
    async def list_all(self) -> list[Transaction]:
        """
        Full scan of the collection.

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def get_by_id(self, transaction_id: int) -> Optional[Transaction]:
        """
        Retrieve a transaction by its ID.

        Returns:
            The transaction if found, None otherwise
        """
        pass

    @abstractmethod
    async def insert(self, record: TransactionRecord) -> int:
        """
        Insert a new transaction.

        Args:
            record: The record to persist (without id)

        Returns:
            The store-assigned id

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def replace(self, transaction: Transaction) -> None:
        """
        Overwrite every field of an existing transaction.

        Raises:
            StorageError: If the write fails
            NotFoundError: If the id does not exist
        """
        pass

    @abstractmethod
    async def delete(self, transaction_id: int) -> bool:
        """
        Delete a transaction by ID. Referenced attachments are untouched.

        Returns:
            True if a record was deleted, False if none existed
        """
        pass

    @abstractmethod
    async def list_by_date_range(self, start: str, end: str) -> list[Transaction]:
        """Transactions with start <= date <= end (ISO strings), via the date index."""
        pass

    @abstractmethod
    async def list_by_type(self, transaction_type: TransactionType) -> list[Transaction]:
        """Transactions of one type, via the type index."""
        pass


class AttachmentStorageInterface(ABC):
    """
    Abstract interface for the attachment blob store.

    Attachments are write-once: there is no update.
    """

    @abstractmethod
    async def insert(self, upload: AttachmentUpload) -> int:
        """
        Persist a blob and its metadata.

        Returns:
            The store-assigned id

        Raises:
            StorageError: If the write fails (nothing is kept)
        """
        pass

    @abstractmethod
    async def get_by_id(self, attachment_id: int) -> Optional[Attachment]:
        """
        Retrieve attachment metadata and a lazy handle to its blob.

        Returns:
            The attachment if found, None otherwise
        """
        pass

    @abstractmethod
    async def delete(self, attachment_id: int) -> bool:
        """
        Delete an attachment by ID.

        Returns:
            True if deleted, False if it did not exist
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class QuotaExceededError(StorageError):
    """The storage medium is full."""
    pass


class StoreUnavailableError(StorageError):
    """Could not open or use the storage backend (locked, corrupt, missing)."""
    pass


class SchemaVersionError(StorageError):
    """The database was written by a newer, unsupported schema."""
    pass
