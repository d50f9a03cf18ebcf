"""Tests for the SQLite record and attachment stores."""

import io
import os
import sqlite3

import pytest

from ledger.models.attachment import AttachmentUpload
from ledger.models.transaction import (
    AttachmentKind,
    AttachmentRef,
    Transaction,
    TransactionRecord,
    TransactionType,
)
from ledger.services.storage import (
    NotFoundError,
    QuotaExceededError,
    StorageError,
    StoreUnavailableError,
)
from ledger.services.storage.sqlite import translate_error


def record(name="Bread", amount=1200, on="2024-01-05", tx_type=TransactionType.EXPENSE, **kwargs):
    return TransactionRecord(type=tx_type, name=name, amount=amount, date=on, **kwargs)


class TestTransactionStorage:
    """Tests for SQLiteTransactionStorage."""

    @pytest.mark.asyncio
    async def test_insert_assigns_distinct_ids(self, transaction_store):
        ids = [await transaction_store.insert(record(name=f"item {i}")) for i in range(5)]
        assert len(set(ids)) == 5
        assert ids == sorted(ids)

    @pytest.mark.asyncio
    async def test_ids_are_not_reused_after_delete(self, transaction_store):
        first = await transaction_store.insert(record())
        assert await transaction_store.delete(first) is True
        second = await transaction_store.insert(record())
        assert second > first

    @pytest.mark.asyncio
    async def test_round_trip_with_refs(self, transaction_store):
        refs = [
            AttachmentRef(store_id=3, kind=AttachmentKind.PHOTO, name="a.jpg", mime_type="image/jpeg"),
            AttachmentRef(store_id=4, kind=AttachmentKind.DOCUMENT, name="b.pdf", mime_type="application/pdf"),
        ]
        new_id = await transaction_store.insert(record(attachments=refs))
        loaded = await transaction_store.get_by_id(new_id)
        assert loaded.id == new_id
        assert loaded.name == "Bread"
        assert loaded.amount == 1200
        assert loaded.date == "2024-01-05"
        assert loaded.attachments == refs

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, transaction_store):
        assert await transaction_store.get_by_id(999) is None

    @pytest.mark.asyncio
    async def test_replace_overwrites_whole_record(self, transaction_store):
        new_id = await transaction_store.insert(record())
        await transaction_store.replace(Transaction(
            id=new_id,
            type=TransactionType.INCOME,
            name="Refund",
            amount=700,
            date="2024-02-01",
        ))
        loaded = await transaction_store.get_by_id(new_id)
        assert loaded.type == TransactionType.INCOME
        assert loaded.name == "Refund"
        assert loaded.amount == 700
        assert loaded.date == "2024-02-01"

    @pytest.mark.asyncio
    async def test_replace_missing_raises(self, transaction_store):
        with pytest.raises(NotFoundError):
            await transaction_store.replace(
                Transaction(id=42, name="Ghost", amount=1, date="2024-01-01")
            )

    @pytest.mark.asyncio
    async def test_delete_missing_returns_false(self, transaction_store):
        assert await transaction_store.delete(12345) is False

    @pytest.mark.asyncio
    async def test_list_by_date_range_is_inclusive(self, transaction_store):
        for on in ("2024-01-01", "2024-01-05", "2024-01-10", "2024-01-11"):
            await transaction_store.insert(record(on=on))
        found = await transaction_store.list_by_date_range("2024-01-05", "2024-01-10")
        assert sorted(tx.date for tx in found) == ["2024-01-05", "2024-01-10"]

    @pytest.mark.asyncio
    async def test_list_by_type(self, transaction_store):
        await transaction_store.insert(record(tx_type=TransactionType.INCOME, name="Salary"))
        await transaction_store.insert(record())
        found = await transaction_store.list_by_type(TransactionType.INCOME)
        assert [tx.name for tx in found] == ["Salary"]

    @pytest.mark.asyncio
    async def test_check_constraint_becomes_storage_error(self, transaction_store, migrated_client):
        with pytest.raises(StorageError):
            with migrated_client.transaction("bad insert") as conn:
                conn.execute(
                    "INSERT INTO transactions(type, name, amount, date, created) "
                    "VALUES ('gift', 'x', 1, '2024-01-01', '2024-01-01T00:00:00')"
                )
        assert await transaction_store.list_all() == []


class TestAttachmentStorage:
    """Tests for SQLiteAttachmentStorage."""

    @pytest.mark.asyncio
    async def test_bytes_round_trip(self, attachment_store):
        payload = bytes(range(256)) * 10
        new_id = await attachment_store.insert(AttachmentUpload(
            kind="photo",
            name="receipt.jpg",
            mime_type="image/jpeg",
            content=payload,
        ))
        stored = await attachment_store.get_by_id(new_id)
        assert stored.size == len(payload)
        assert stored.mime_type == "image/jpeg"
        assert stored.name == "receipt.jpg"
        assert stored.blob.read_bytes() == payload

    @pytest.mark.asyncio
    async def test_stream_is_copied_in_chunks(self, attachment_store):
        """A file object larger than the chunk size arrives intact."""
        payload = os.urandom(5 * 1024 + 17)
        new_id = await attachment_store.insert(AttachmentUpload(
            kind="document",
            name="invoice.pdf",
            mime_type="application/pdf",
            content=io.BytesIO(payload),
        ))
        stored = await attachment_store.get_by_id(new_id)
        chunks = list(stored.blob.iter_chunks(1024))
        assert len(chunks) == 6
        assert b"".join(chunks) == payload

    @pytest.mark.asyncio
    async def test_empty_blob(self, attachment_store):
        new_id = await attachment_store.insert(AttachmentUpload(kind="photo", content=b""))
        stored = await attachment_store.get_by_id(new_id)
        assert stored.size == 0
        assert stored.blob.read_bytes() == b""

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, attachment_store):
        assert await attachment_store.get_by_id(77) is None

    @pytest.mark.asyncio
    async def test_delete(self, attachment_store):
        new_id = await attachment_store.insert(AttachmentUpload(kind="photo", content=b"x"))
        assert await attachment_store.delete(new_id) is True
        assert await attachment_store.get_by_id(new_id) is None
        assert await attachment_store.delete(new_id) is False

    @pytest.mark.asyncio
    async def test_handle_of_deleted_blob_raises_not_found(self, attachment_store):
        new_id = await attachment_store.insert(AttachmentUpload(kind="photo", content=b"xyz"))
        stored = await attachment_store.get_by_id(new_id)
        await attachment_store.delete(new_id)
        with pytest.raises(NotFoundError):
            stored.blob.read_bytes()

    @pytest.mark.asyncio
    async def test_short_stream_is_rolled_back(self, attachment_store, migrated_client):
        class ShortStream(io.BytesIO):
            """Reports 100 bytes but delivers only 10."""

            def read(self, size=-1):
                remaining = 10 - self.tell()
                if remaining <= 0:
                    return b""
                return super().read(remaining if size is None or size < 0 else min(size, remaining))

        with pytest.raises(StorageError):
            await attachment_store.insert(
                AttachmentUpload(kind="photo", content=ShortStream(b"a" * 100))
            )

        with migrated_client.reading("count") as conn:
            assert conn.execute("SELECT COUNT(*) FROM attachments").fetchone()[0] == 0


class TestErrorTranslation:
    """Tests for sqlite3 error mapping."""

    def test_disk_full_is_quota(self):
        assert isinstance(
            translate_error(sqlite3.OperationalError("database or disk is full"), "insert"),
            QuotaExceededError,
        )

    def test_corruption_is_unavailable(self):
        assert isinstance(
            translate_error(sqlite3.DatabaseError("database disk image is malformed"), "read"),
            StoreUnavailableError,
        )

    def test_locked_is_unavailable(self):
        assert isinstance(
            translate_error(sqlite3.OperationalError("database is locked"), "write"),
            StoreUnavailableError,
        )

    def test_other_errors_are_storage_errors(self):
        error = translate_error(sqlite3.IntegrityError("CHECK constraint failed"), "insert")
        assert type(error) is StorageError
        assert "insert" in str(error)
