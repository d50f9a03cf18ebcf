"""
Schema Migrations

The schema version lives in SQLite's own `PRAGMA user_version`:

    0  empty database
    1  legacy expense tracker: `expenses`, `attachments`, `meta` (income scalar)
    2  unified ledger: `transactions` (with a type discriminant), `attachments`

DESIGN DECISION: The upgrade is one-way and runs inside a single SQLite
transaction. Either every expense is copied and the legacy tables are
dropped, or nothing changes.

The legacy income scalar is NOT turned into an income transaction. Its
value is reported and logged so the user can enter it by hand.
"""

import json
from typing import Optional

import structlog
from pydantic import BaseModel

from ledger.audit import AuditLogger
from ledger.models.transaction import AttachmentRef, TransactionRecord
from ledger.services.storage.interface import SchemaVersionError, StorageError
from ledger.services.storage.sqlite import SQLiteClient
from ledger.utils.amounts import parse_amount

logger = structlog.get_logger(__name__)

SCHEMA_VERSION = 2
LEGACY_SCHEMA_VERSION = 1

UNIFIED_SCHEMA = [
    """CREATE TABLE IF NOT EXISTS transactions (
        id               INTEGER PRIMARY KEY AUTOINCREMENT,
        type             TEXT    NOT NULL CHECK(type IN ('expense','income')),
        name             TEXT    NOT NULL,
        amount           INTEGER NOT NULL CHECK(amount >= 0),
        date             TEXT    NOT NULL,
        attachments_json TEXT    NOT NULL DEFAULT '[]',
        created          TEXT    NOT NULL
    )""",
    "CREATE INDEX IF NOT EXISTS idx_transactions_date ON transactions(date)",
    "CREATE INDEX IF NOT EXISTS idx_transactions_type ON transactions(type)",
    "CREATE INDEX IF NOT EXISTS idx_transactions_name ON transactions(name)",
    """CREATE TABLE IF NOT EXISTS attachments (
        id        INTEGER PRIMARY KEY AUTOINCREMENT,
        blob      BLOB    NOT NULL,
        name      TEXT    NOT NULL DEFAULT '',
        mime_type TEXT    NOT NULL DEFAULT 'application/octet-stream',
        size      INTEGER NOT NULL,
        created   TEXT    NOT NULL
    )""",
]

# Layout written by the legacy expense tracker. Kept as the contract the
# upgrade reads from.
LEGACY_SCHEMA = [
    """CREATE TABLE IF NOT EXISTS expenses (
        id               INTEGER PRIMARY KEY AUTOINCREMENT,
        name             TEXT    NOT NULL,
        amount           INTEGER NOT NULL,
        date             TEXT    NOT NULL,
        attachments_json TEXT    NOT NULL DEFAULT '[]',
        created          TEXT    NOT NULL
    )""",
    "CREATE INDEX IF NOT EXISTS idx_expenses_date ON expenses(date)",
    "CREATE INDEX IF NOT EXISTS idx_expenses_name ON expenses(name)",
    UNIFIED_SCHEMA[4],
    """CREATE TABLE IF NOT EXISTS meta (
        key   TEXT PRIMARY KEY,
        value TEXT NOT NULL
    )""",
]

REQUIRED_OBJECTS = {
    ("table", "transactions"),
    ("table", "attachments"),
    ("index", "idx_transactions_date"),
    ("index", "idx_transactions_type"),
    ("index", "idx_transactions_name"),
}


class MigrationReport(BaseModel):
    """What a migration run did."""

    from_version: int
    to_version: int
    applied: bool
    migrated_records: int = 0
    legacy_income: Optional[int] = None


class MigrationManager:
    """
    Establishes and upgrades the schema on open.

    Idempotent: on an up-to-date database `migrate()` checks the version
    and the required tables/indices and returns without writing.
    """

    def __init__(self, client: SQLiteClient, audit_logger: Optional[AuditLogger] = None):
        self._client = client
        self._audit_logger = audit_logger

    def current_version(self) -> int:
        with self._client.reading("read schema version") as conn:
            return conn.execute("PRAGMA user_version").fetchone()[0]

    def _schema_objects(self) -> set[tuple[str, str]]:
        with self._client.reading("read schema") as conn:
            rows = conn.execute(
                "SELECT type, name FROM sqlite_master WHERE type IN ('table', 'index')"
            ).fetchall()
        return {(row["type"], row["name"]) for row in rows}

    async def migrate(self) -> MigrationReport:
        """
        Bring the database to SCHEMA_VERSION.

        Raises:
            SchemaVersionError: If the database is newer than this code
            StorageError: If the upgrade fails (nothing is changed)
        """
        version = self.current_version()
        if version > SCHEMA_VERSION:
            raise SchemaVersionError(
                f"Ledger database has schema v{version}; this build supports up to v{SCHEMA_VERSION}"
            )

        objects = self._schema_objects()
        has_legacy = ("table", "expenses") in objects
        if version == SCHEMA_VERSION and not has_legacy and REQUIRED_OBJECTS <= objects:
            return MigrationReport(
                from_version=version,
                to_version=SCHEMA_VERSION,
                applied=False,
            )

        migrated = 0
        legacy_income = None
        with self._client.transaction("migrate schema") as conn:
            for statement in UNIFIED_SCHEMA:
                conn.execute(statement)
            if has_legacy:
                migrated = self._copy_legacy_expenses(conn)
                legacy_income = self._read_legacy_income(conn, objects)
                conn.execute("DROP TABLE expenses")
                conn.execute("DROP TABLE IF EXISTS meta")
            conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")

        logger.info(
            "schema_migrated",
            from_version=version,
            to_version=SCHEMA_VERSION,
            migrated_records=migrated,
        )
        if self._audit_logger:
            await self._audit_logger.log_migration_applied(
                from_version=version,
                to_version=SCHEMA_VERSION,
                migrated_records=migrated,
            )
            if legacy_income:
                await self._audit_logger.log_legacy_income_dropped(legacy_income)

        return MigrationReport(
            from_version=version,
            to_version=SCHEMA_VERSION,
            applied=True,
            migrated_records=migrated,
            legacy_income=legacy_income,
        )

    @staticmethod
    def _copy_legacy_expenses(conn) -> int:
        """Copy every expense row, keeping its id so refs stay valid."""
        rows = conn.execute(
            "SELECT id, name, amount, date, attachments_json, created FROM expenses ORDER BY id"
        ).fetchall()

        for row in rows:
            try:
                record = TransactionRecord(
                    name=(row["name"] or "").strip() or f"Expense #{row['id']}",
                    amount=parse_amount(row["amount"]),
                    date=row["date"],
                    attachments=[
                        AttachmentRef(**ref)
                        for ref in json.loads(row["attachments_json"] or "[]")
                    ],
                    created=row["created"],
                )
            except ValueError as e:
                raise StorageError(f"Legacy expense {row['id']} cannot be migrated: {e}") from e

            conn.execute(
                """INSERT INTO transactions(id, type, name, amount, date, attachments_json, created)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    row["id"],
                    record.type.value,
                    record.name,
                    record.amount,
                    record.date,
                    json.dumps([ref.model_dump(mode="json") for ref in record.attachments]),
                    record.created.isoformat(),
                ),
            )
        return len(rows)

    @staticmethod
    def _read_legacy_income(conn, objects: set[tuple[str, str]]) -> Optional[int]:
        if ("table", "meta") not in objects:
            return None
        row = conn.execute("SELECT value FROM meta WHERE key = 'income'").fetchone()
        return parse_amount(row["value"]) if row else None
