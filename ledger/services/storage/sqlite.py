"""
SQLite Storage Implementation

DESIGN DECISION: SQLite is the local storage backend because:
1. One file holds both collections, no server to run
2. Every statement group runs in a real transaction, so a failed write
   leaves nothing behind
3. Secondary indices are declared, not hand-maintained
4. Incremental blob I/O lets receipts be streamed in and out

TRADEOFFS:
- The connection is shared by the event loop; calls run inline and are
  serialized by the loop itself (single writer per session)
- No cross-call transactions: create() writes attachments and the record
  in separate transactions

The implementation follows the abstract interface, so the mutation
pipeline never sees SQL.
"""

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

import structlog

from ledger.config import get_settings
from ledger.models.attachment import DEFAULT_CHUNK_SIZE, Attachment, AttachmentUpload, BlobHandle
from ledger.models.transaction import (
    AttachmentRef,
    Transaction,
    TransactionRecord,
    TransactionType,
)
from ledger.services.storage.interface import (
    AttachmentStorageInterface,
    NotFoundError,
    QuotaExceededError,
    StorageError,
    StoreUnavailableError,
    TransactionStorageInterface,
)

logger = structlog.get_logger(__name__)

TRANSACTION_COLUMNS = "id, type, name, amount, date, attachments_json, created"
ATTACHMENT_META_COLUMNS = "id, name, mime_type, size, created"


def translate_error(error: sqlite3.Error, operation: str) -> StorageError:
    """Map a sqlite3 error onto the storage error taxonomy."""
    message = f"Failed to {operation}: {error}"
    error_name = getattr(error, "sqlite_errorname", "")
    text = str(error).lower()

    if error_name == "SQLITE_FULL" or "database or disk is full" in text:
        return QuotaExceededError(message)
    if error_name in ("SQLITE_CORRUPT", "SQLITE_NOTADB", "SQLITE_CANTOPEN", "SQLITE_BUSY", "SQLITE_LOCKED"):
        return StoreUnavailableError(message)
    if "malformed" in text or "not a database" in text or "locked" in text or "unable to open" in text:
        return StoreUnavailableError(message)
    return StorageError(message)


class SQLiteClient:
    """
    Low-level SQLite wrapper.

    Owns the single connection and the transaction boundaries. The
    connection runs in autocommit mode; every write goes through
    `transaction()`, which issues BEGIN / COMMIT / ROLLBACK itself so DDL
    is covered too.
    """

    def __init__(
        self,
        database_path: Optional[str] = None,
        busy_timeout_seconds: Optional[float] = None,
    ):
        settings = get_settings().storage
        self.database_path = database_path or settings.database_path
        self._timeout = (
            busy_timeout_seconds
            if busy_timeout_seconds is not None
            else settings.busy_timeout_seconds
        )
        self._conn: Optional[sqlite3.Connection] = None

    def connect(self) -> sqlite3.Connection:
        """Open the connection on first use."""
        if self._conn is None:
            try:
                conn = sqlite3.connect(
                    self.database_path,
                    timeout=self._timeout,
                    isolation_level=None,
                    check_same_thread=False,
                )
                conn.row_factory = sqlite3.Row
                conn.execute("PRAGMA foreign_keys = ON")
                if self.database_path != ":memory:":
                    conn.execute("PRAGMA journal_mode = WAL")
            except sqlite3.Error as e:
                raise StoreUnavailableError(
                    f"Could not open ledger database {self.database_path}: {e}"
                ) from e
            self._conn = conn
            logger.debug("sqlite_connected", path=self.database_path)
        return self._conn

    @contextmanager
    def transaction(self, operation: str, immediate: bool = True) -> Iterator[sqlite3.Connection]:
        """
        Run a block in one SQLite transaction.

        Any exception rolls the block back; sqlite3 errors are translated
        into StorageError subclasses, everything else propagates as is.
        """
        conn = self.connect()
        try:
            conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
        except sqlite3.Error as e:
            raise translate_error(e, operation) from e

        try:
            yield conn
        except sqlite3.Error as e:
            self._rollback(conn)
            raise translate_error(e, operation) from e
        except BaseException:
            self._rollback(conn)
            raise

        try:
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            self._rollback(conn)
            raise translate_error(e, operation) from e

    @contextmanager
    def reading(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Run read-only statements, translating sqlite3 errors."""
        conn = self.connect()
        try:
            yield conn
        except sqlite3.Error as e:
            raise translate_error(e, operation) from e

    @staticmethod
    def _rollback(conn: sqlite3.Connection) -> None:
        if conn.in_transaction:
            conn.execute("ROLLBACK")

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None


class SQLiteTransactionStorage(TransactionStorageInterface):
    """
    SQLite implementation of the record store.

    Attachment refs are stored as a JSON array beside the scalar columns;
    they are only ever read and written as part of the whole record.
    """

    def __init__(self, client: SQLiteClient):
        self._client = client

    @staticmethod
    def _row_to_transaction(row: sqlite3.Row) -> Transaction:
        return Transaction(
            id=row["id"],
            type=row["type"],
            name=row["name"],
            amount=row["amount"],
            date=row["date"],
            attachments=[AttachmentRef(**ref) for ref in json.loads(row["attachments_json"] or "[]")],
            created=datetime.fromisoformat(row["created"]),
        )

    @staticmethod
    def _record_params(record: TransactionRecord) -> tuple:
        return (
            record.type.value,
            record.name,
            record.amount,
            record.date,
            json.dumps([ref.model_dump(mode="json") for ref in record.attachments]),
            record.created.isoformat(),
        )

    def _select(self, operation: str, where: str = "", params: tuple = ()) -> list[Transaction]:
        with self._client.reading(operation) as conn:
            rows = conn.execute(
                f"SELECT {TRANSACTION_COLUMNS} FROM transactions {where}", params
            ).fetchall()
        return [self._row_to_transaction(row) for row in rows]

    async def list_all(self) -> list[Transaction]:
        return self._select("list transactions")

    async def get_by_id(self, transaction_id: int) -> Optional[Transaction]:
        found = self._select("get transaction", "WHERE id = ?", (transaction_id,))
        return found[0] if found else None

    async def insert(self, record: TransactionRecord) -> int:
        with self._client.transaction("insert transaction") as conn:
            cursor = conn.execute(
                """INSERT INTO transactions(type, name, amount, date, attachments_json, created)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                self._record_params(record),
            )
            new_id = cursor.lastrowid
        logger.debug("transaction_inserted", transaction_id=new_id)
        return new_id

    async def replace(self, transaction: Transaction) -> None:
        with self._client.transaction("replace transaction") as conn:
            cursor = conn.execute(
                """UPDATE transactions
                   SET type = ?, name = ?, amount = ?, date = ?, attachments_json = ?, created = ?
                   WHERE id = ?""",
                (*self._record_params(transaction), transaction.id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError(f"Transaction not found: {transaction.id}")

    async def delete(self, transaction_id: int) -> bool:
        with self._client.transaction("delete transaction") as conn:
            cursor = conn.execute("DELETE FROM transactions WHERE id = ?", (transaction_id,))
            return cursor.rowcount > 0

    async def list_by_date_range(self, start: str, end: str) -> list[Transaction]:
        return self._select(
            "list transactions by date",
            "INDEXED BY idx_transactions_date WHERE date BETWEEN ? AND ?",
            (start, end),
        )

    async def list_by_type(self, transaction_type: TransactionType) -> list[Transaction]:
        return self._select(
            "list transactions by type",
            "INDEXED BY idx_transactions_type WHERE type = ?",
            (TransactionType(transaction_type).value,),
        )


class SQLiteAttachmentStorage(AttachmentStorageInterface):
    """
    SQLite implementation of the attachment store.

    Streams are copied into a preallocated zeroblob chunk by chunk, and
    reads go through sqlite3.Blob handles, so no code path outside the
    caller's own read loads a whole receipt.
    """

    def __init__(self, client: SQLiteClient, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self._client = client
        self._chunk_size = chunk_size

    async def insert(self, upload: AttachmentUpload) -> int:
        size = upload.content_size()
        created = datetime.now().astimezone().isoformat()

        with self._client.transaction("store attachment") as conn:
            if not upload.is_stream:
                cursor = conn.execute(
                    """INSERT INTO attachments(blob, name, mime_type, size, created)
                       VALUES (?, ?, ?, ?, ?)""",
                    (upload.content, upload.name, upload.mime_type, size, created),
                )
                return cursor.lastrowid

            cursor = conn.execute(
                """INSERT INTO attachments(blob, name, mime_type, size, created)
                   VALUES (zeroblob(?), ?, ?, ?, ?)""",
                (size, upload.name, upload.mime_type, size, created),
            )
            attachment_id = cursor.lastrowid
            self._copy_stream(conn, attachment_id, upload, size)
            return attachment_id

    def _copy_stream(
        self,
        conn: sqlite3.Connection,
        attachment_id: int,
        upload: AttachmentUpload,
        size: int,
    ) -> None:
        written = 0
        with conn.blobopen("attachments", "blob", attachment_id) as blob:
            while written < size:
                chunk = upload.content.read(min(self._chunk_size, size - written))
                if not chunk:
                    break
                blob.write(chunk)
                written += len(chunk)
        if written != size:
            raise StorageError(
                f"Attachment stream ended after {written} of {size} bytes"
            )

    def _open_blob(self, attachment_id: int):
        conn = self._client.connect()
        try:
            return conn.blobopen("attachments", "blob", attachment_id, readonly=True)
        except sqlite3.OperationalError as e:
            if "no such rowid" in str(e).lower():
                raise NotFoundError(f"Attachment not found: {attachment_id}") from e
            raise translate_error(e, "open attachment") from e
        except sqlite3.Error as e:
            raise translate_error(e, "open attachment") from e

    async def get_by_id(self, attachment_id: int) -> Optional[Attachment]:
        with self._client.reading("get attachment") as conn:
            row = conn.execute(
                f"SELECT {ATTACHMENT_META_COLUMNS} FROM attachments WHERE id = ?",
                (attachment_id,),
            ).fetchone()
        if row is None:
            return None

        return Attachment(
            id=row["id"],
            name=row["name"],
            mime_type=row["mime_type"],
            size=row["size"],
            created=datetime.fromisoformat(row["created"]),
            blob=BlobHandle(
                row["id"],
                row["size"],
                lambda: self._open_blob(row["id"]),
            ),
        )

    async def delete(self, attachment_id: int) -> bool:
        with self._client.transaction("delete attachment") as conn:
            cursor = conn.execute("DELETE FROM attachments WHERE id = ?", (attachment_id,))
            return cursor.rowcount > 0
