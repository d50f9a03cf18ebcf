"""Shared fixtures: a migrated SQLite ledger in a temp dir and a flow over it."""

from datetime import date

import pytest

from ledger.audit import AuditLogger
from ledger.orchestrator import LedgerFlow
from ledger.services.storage import (
    MigrationManager,
    SQLiteAttachmentStorage,
    SQLiteClient,
    SQLiteTransactionStorage,
)
from ledger.validation import TransactionValidator

FIXED_TODAY = date(2024, 3, 20)


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "ledger.db")


@pytest.fixture
def client(db_path):
    client = SQLiteClient(db_path)
    yield client
    client.close()


@pytest.fixture
def audit_logger():
    return AuditLogger()


@pytest.fixture
async def migrated_client(client):
    await MigrationManager(client).migrate()
    return client


@pytest.fixture
def transaction_store(migrated_client):
    return SQLiteTransactionStorage(migrated_client)


@pytest.fixture
def attachment_store(migrated_client):
    return SQLiteAttachmentStorage(migrated_client, chunk_size=1024)


@pytest.fixture
def validator():
    return TransactionValidator(max_attachment_size_bytes=1024 * 1024)


@pytest.fixture
async def flow(transaction_store, attachment_store, validator, audit_logger):
    flow = LedgerFlow(
        transaction_storage=transaction_store,
        attachment_storage=attachment_store,
        validator=validator,
        audit_logger=audit_logger,
        today=lambda: FIXED_TODAY,
        histogram_points=14,
    )
    await flow.load()
    return flow
