"""In-memory stores with switchable faults, for pipeline failure paths."""

from datetime import datetime, timezone
from typing import Optional

from ledger.models.attachment import Attachment, AttachmentUpload, bytes_handle
from ledger.models.transaction import Transaction, TransactionRecord, TransactionType
from ledger.services.storage import (
    AttachmentStorageInterface,
    NotFoundError,
    QuotaExceededError,
    TransactionStorageInterface,
)


class FakeTransactionStorage(TransactionStorageInterface):
    """Dict-backed record store. Set any `fail_*` attribute to raise."""

    def __init__(self):
        self.records: dict[int, Transaction] = {}
        self._next_id = 1
        self.fail_insert: Optional[Exception] = None
        self.fail_replace: Optional[Exception] = None
        self.fail_get: Optional[Exception] = None
        self.fail_delete: Optional[Exception] = None

    async def list_all(self) -> list[Transaction]:
        return list(self.records.values())

    async def get_by_id(self, transaction_id: int) -> Optional[Transaction]:
        if self.fail_get:
            raise self.fail_get
        return self.records.get(transaction_id)

    async def insert(self, record: TransactionRecord) -> int:
        if self.fail_insert:
            raise self.fail_insert
        new_id = self._next_id
        self._next_id += 1
        self.records[new_id] = Transaction(id=new_id, **record.model_dump())
        return new_id

    async def replace(self, transaction: Transaction) -> None:
        if self.fail_replace:
            raise self.fail_replace
        if transaction.id not in self.records:
            raise NotFoundError(f"Transaction not found: {transaction.id}")
        self.records[transaction.id] = transaction

    async def delete(self, transaction_id: int) -> bool:
        if self.fail_delete:
            raise self.fail_delete
        return self.records.pop(transaction_id, None) is not None

    async def list_by_date_range(self, start: str, end: str) -> list[Transaction]:
        return [tx for tx in self.records.values() if start <= tx.date <= end]

    async def list_by_type(self, transaction_type: TransactionType) -> list[Transaction]:
        return [tx for tx in self.records.values() if tx.type == transaction_type]


class FakeAttachmentStorage(AttachmentStorageInterface):
    """Dict-backed blob store. `quota_after` makes inserts past N fail as full."""

    def __init__(self, quota_after: Optional[int] = None):
        self.blobs: dict[int, Attachment] = {}
        self._next_id = 1
        self.quota_after = quota_after

    async def insert(self, upload: AttachmentUpload) -> int:
        if self.quota_after is not None and len(self.blobs) >= self.quota_after:
            raise QuotaExceededError("Storage quota exceeded during store attachment")
        payload = upload.content if not upload.is_stream else upload.content.read()
        new_id = self._next_id
        self._next_id += 1
        self.blobs[new_id] = Attachment(
            id=new_id,
            name=upload.name,
            mime_type=upload.mime_type,
            size=len(payload),
            created=datetime.now(timezone.utc),
            blob=bytes_handle(new_id, payload),
        )
        return new_id

    async def get_by_id(self, attachment_id: int) -> Optional[Attachment]:
        return self.blobs.get(attachment_id)

    async def delete(self, attachment_id: int) -> bool:
        return self.blobs.pop(attachment_id, None) is not None
