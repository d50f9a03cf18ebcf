"""
Main Orchestrator for Pocket Ledger

This module ties together the stores, the validator, the in-memory
mirror and the aggregation engine, and defines the end-to-end flows for:
1. Create (validate → store attachments → insert → refresh → recompute)
2. Update (staged edit → validate → replace → refresh → recompute)
3. Delete (delete → refresh → recompute)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is written unless validation passed
- Attachments are written before the record that references them
- The mirror is only refreshed after the store call returned
- Every step is audited

Storage faults are NOT caught here. They are audited and re-raised so the
caller can tell the user the store is unavailable, full or broken.
"""

from datetime import date
from typing import Callable, Iterable, Optional
from uuid import UUID

from ledger.aggregation import build_snapshot, summarize_period
from ledger.audit import AuditLogger, create_correlation_id
from ledger.config import get_settings
from ledger.models.attachment import AttachmentUpload, ResolvedAttachment
from ledger.models.snapshot import (
    DateWindow,
    LedgerSnapshot,
    MutationOutcome,
    PeriodSummary,
)
from ledger.models.transaction import (
    AttachmentRef,
    Transaction,
    TransactionDraft,
    TransactionRecord,
)
from ledger.services.feeds import IndicatorService
from ledger.services.storage import (
    AttachmentStorageInterface,
    MigrationManager,
    NotFoundError,
    SQLiteAttachmentStorage,
    SQLiteClient,
    SQLiteTransactionStorage,
    StorageError,
    TransactionStorageInterface,
)
from ledger.state import LedgerState
from ledger.validation import TransactionValidator, ValidationError


class LedgerFlow:
    """
    Orchestrates every mutation of the ledger.

    Flow for create:
    1. Validate → reject before any I/O
    2. Attachments → store each upload, in order
    3. Insert → store the record with refs in the same order
    4. Refresh → reload the mirror from the record store
    5. Recompute → rebuild the snapshot in full

    A failure in step 3 leaves the blobs from step 2 orphaned. They are
    logged, never rolled back.
    """

    def __init__(
        self,
        transaction_storage: TransactionStorageInterface,
        attachment_storage: AttachmentStorageInterface,
        validator: Optional[TransactionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        state: Optional[LedgerState] = None,
        today: Callable[[], date] = date.today,
        histogram_points: Optional[int] = None,
    ):
        self._transactions = transaction_storage
        self._attachments = attachment_storage
        self._validator = validator or TransactionValidator()
        self._audit_logger = audit_logger
        self._state = state or LedgerState()
        self._today = today
        self._histogram_points = (
            histogram_points
            if histogram_points is not None
            else get_settings().app.histogram_points
        )
        self._snapshot = self._recompute()

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    @property
    def state(self) -> LedgerState:
        return self._state

    @property
    def snapshot(self) -> LedgerSnapshot:
        """The derived views as of the last recompute."""
        return self._snapshot

    @property
    def edit_id(self) -> Optional[int]:
        return self._state.edit_id

    def _recompute(self) -> LedgerSnapshot:
        self._snapshot = build_snapshot(
            self._state.transactions,
            self._today(),
            self._histogram_points,
        )
        return self._snapshot

    async def _refresh(self) -> LedgerSnapshot:
        self._state.replace_all(await self._transactions.list_all())
        return self._recompute()

    async def load(self) -> LedgerSnapshot:
        """Read every record, rebuild the mirror and recompute."""
        return await self._refresh()

    def search(self, query: str) -> list[Transaction]:
        return self._state.search(query)

    def summarize(self, window: DateWindow) -> PeriodSummary:
        """Expense total, count and daily average for any window."""
        return summarize_period(self._state.transactions, window)

    async def resolve_attachment(self, ref: AttachmentRef) -> ResolvedAttachment:
        """
        Open a stored receipt.

        The blob is not read here; callers stream it from the handle.

        Raises:
            NotFoundError: If the blob is gone
        """
        attachment = await self._attachments.get_by_id(ref.store_id)
        if attachment is None:
            raise NotFoundError(f"Attachment not found: {ref.store_id}")
        return ResolvedAttachment(
            blob=attachment.blob,
            mime_type=attachment.mime_type or ref.mime_type,
            name=attachment.name or ref.name,
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _skipped(self, message: str) -> MutationOutcome:
        return MutationOutcome(applied=False, message=message, snapshot=self._snapshot)

    async def _check(
        self,
        operation: str,
        draft: TransactionDraft,
        uploads: list[AttachmentUpload],
        correlation_id: UUID,
    ) -> Optional[MutationOutcome]:
        """Validate; returns a rejected outcome, or None when the draft is fine."""
        try:
            self._validator.ensure_valid(draft, uploads, self._today())
        except ValidationError as e:
            if self._audit_logger:
                await self._audit_logger.log_validation_rejected(
                    operation=operation,
                    issues=[issue.model_dump() for issue in e.issues],
                    correlation_id=correlation_id,
                )
            return self._skipped(self._validator.get_user_friendly_summary(e.result))
        return None

    async def _store_uploads(
        self,
        uploads: list[AttachmentUpload],
        correlation_id: UUID,
    ) -> list[AttachmentRef]:
        """Persist uploads in order; refs come back in the same order."""
        refs: list[AttachmentRef] = []
        for upload in uploads:
            try:
                size = upload.content_size()
                store_id = await self._attachments.insert(upload)
            except StorageError as e:
                await self._fault(
                    "store attachment", e, correlation_id,
                    orphaned=[ref.store_id for ref in refs],
                )
                raise

            refs.append(AttachmentRef(
                store_id=store_id,
                kind=upload.kind,
                name=upload.name,
                mime_type=upload.mime_type,
            ))
            if self._audit_logger:
                await self._audit_logger.log_attachment_stored(
                    attachment_id=store_id,
                    kind=upload.kind.value,
                    size=size,
                    correlation_id=correlation_id,
                )
        return refs

    async def _fault(
        self,
        operation: str,
        error: Exception,
        correlation_id: UUID,
        orphaned: Iterable[int] = (),
    ) -> None:
        if not self._audit_logger:
            return
        await self._audit_logger.log_storage_fault(
            operation=operation,
            error_message=str(error),
            correlation_id=correlation_id,
        )
        orphaned = list(orphaned)
        if orphaned:
            await self._audit_logger.log_attachments_orphaned(
                attachment_ids=orphaned,
                reason=f"{operation} failed",
                correlation_id=correlation_id,
            )

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def create(
        self,
        draft: TransactionDraft,
        uploads: Iterable[AttachmentUpload] = (),
        correlation_id: Optional[UUID] = None,
    ) -> MutationOutcome:
        """
        Record a new transaction.

        Args:
            draft: The submitted form values
            uploads: Files to attach, in display order
            correlation_id: Optional ID for tracing

        Returns:
            MutationOutcome; `applied=False` when validation rejected it

        Raises:
            StorageError: If either store fails
        """
        correlation_id = correlation_id or create_correlation_id()
        uploads = list(uploads)

        rejected = await self._check("create", draft, uploads, correlation_id)
        if rejected:
            return rejected

        refs = await self._store_uploads(uploads, correlation_id)
        record = TransactionRecord(
            type=draft.type,
            name=draft.name,
            amount=draft.amount,
            date=draft.resolved_date(self._today()),
            attachments=refs,
        )

        try:
            transaction_id = await self._transactions.insert(record)
        except StorageError as e:
            await self._fault(
                "insert transaction", e, correlation_id,
                orphaned=[ref.store_id for ref in refs],
            )
            raise

        if self._audit_logger:
            await self._audit_logger.log_transaction_created(
                transaction_id=transaction_id,
                transaction_type=record.type.value,
                amount=record.amount,
                attachment_count=len(refs),
                correlation_id=correlation_id,
            )

        snapshot = await self._refresh()
        return MutationOutcome(
            applied=True,
            message="Transaction saved",
            transaction=self._state.get(transaction_id),
            snapshot=snapshot,
        )

    def begin_edit(self, transaction_id: int) -> Optional[Transaction]:
        """
        Stage a record for editing.

        Returns the staged record, or None (and nothing staged) when it
        is not in the mirror.
        """
        transaction = self._state.get(transaction_id)
        self._state.edit_id = transaction.id if transaction else None
        return transaction

    def cancel_edit(self) -> None:
        self._state.edit_id = None

    async def update(
        self,
        draft: TransactionDraft,
        uploads: Optional[Iterable[AttachmentUpload]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> MutationOutcome:
        """
        Overwrite the staged record with the submitted values.

        `type`, `name`, `amount` and `date` are always overwritten. The
        attachment list is replaced entirely only when uploads are given;
        the previous blobs then become orphans.

        A no-op when nothing is staged or the staged record is gone.
        """
        correlation_id = correlation_id or create_correlation_id()
        uploads = list(uploads or ())

        edit_id = self._state.edit_id
        if edit_id is None:
            return await self._skip("update", "No transaction is being edited", correlation_id)

        rejected = await self._check("update", draft, uploads, correlation_id)
        if rejected:
            return rejected

        existing = await self._transactions.get_by_id(edit_id)
        if existing is None:
            self._state.edit_id = None
            return await self._skip(
                "update", "The transaction no longer exists", correlation_id, edit_id
            )

        refs = existing.attachments
        if uploads:
            refs = await self._store_uploads(uploads, correlation_id)

        updated = Transaction(
            id=existing.id,
            type=draft.type,
            name=draft.name,
            amount=draft.amount,
            date=draft.resolved_date(self._today()),
            attachments=refs,
            created=existing.created,
        )

        try:
            await self._transactions.replace(updated)
        except NotFoundError:
            self._state.edit_id = None
            await self._orphan(refs if uploads else [], "replaced record vanished", correlation_id)
            return await self._skip(
                "update", "The transaction no longer exists", correlation_id, edit_id
            )
        except StorageError as e:
            await self._fault(
                "replace transaction", e, correlation_id,
                orphaned=[ref.store_id for ref in refs] if uploads else (),
            )
            raise

        self._state.edit_id = None
        if uploads:
            await self._orphan(existing.attachments, "attachments replaced", correlation_id)
        if self._audit_logger:
            await self._audit_logger.log_transaction_updated(
                transaction_id=edit_id,
                replaced_attachments=bool(uploads),
                correlation_id=correlation_id,
            )

        snapshot = await self._refresh()
        return MutationOutcome(
            applied=True,
            message="Transaction updated",
            transaction=self._state.get(edit_id),
            snapshot=snapshot,
        )

    async def delete(
        self,
        transaction_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> MutationOutcome:
        """
        Remove a record. Its attachments stay in the attachment store.

        A missing id is a no-op.
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            existing = await self._transactions.get_by_id(transaction_id)
            deleted = await self._transactions.delete(transaction_id)
        except StorageError as e:
            await self._fault("delete transaction", e, correlation_id)
            raise

        self._state.remove(transaction_id)
        if not deleted:
            return await self._skip(
                "delete", "The transaction no longer exists", correlation_id, transaction_id
            )

        if self._audit_logger:
            await self._audit_logger.log_transaction_deleted(
                transaction_id=transaction_id,
                retained_attachment_ids=[
                    ref.store_id for ref in (existing.attachments if existing else [])
                ],
                correlation_id=correlation_id,
            )

        snapshot = await self._refresh()
        return MutationOutcome(
            applied=True,
            message="Transaction deleted",
            transaction=existing,
            snapshot=snapshot,
        )

    async def _skip(
        self,
        operation: str,
        reason: str,
        correlation_id: UUID,
        transaction_id: Optional[int] = None,
    ) -> MutationOutcome:
        if self._audit_logger:
            await self._audit_logger.log_mutation_skipped(
                operation=operation,
                reason=reason,
                correlation_id=correlation_id,
                transaction_id=transaction_id,
            )
        return self._skipped(reason)

    async def _orphan(
        self,
        refs: Iterable[AttachmentRef],
        reason: str,
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_attachments_orphaned(
                attachment_ids=[ref.store_id for ref in refs],
                reason=reason,
                correlation_id=correlation_id,
            )


async def create_app_components(
    database_path: Optional[str] = None,
    today: Callable[[], date] = date.today,
) -> tuple[LedgerFlow, IndicatorService, SQLiteClient]:
    """
    Factory function to create all application components.

    Opens (or creates) the ledger database, brings its schema up to date
    and loads the mirror.

    Args:
        database_path: SQLite file. Defaults to LEDGER_STORAGE_DATABASE_PATH.
        today: Clock used for "today" in defaults and aggregation

    Returns:
        (ledger_flow, indicator_service, sqlite_client)

    Raises:
        SchemaVersionError: If the database was written by a newer build
        StorageError: If the database cannot be opened or upgraded
    """
    audit_logger = AuditLogger()
    client = SQLiteClient(database_path)

    await MigrationManager(client, audit_logger).migrate()

    ledger_flow = LedgerFlow(
        transaction_storage=SQLiteTransactionStorage(client),
        attachment_storage=SQLiteAttachmentStorage(client),
        audit_logger=audit_logger,
        today=today,
    )
    await ledger_flow.load()

    indicator_service = IndicatorService(audit_logger=audit_logger)

    return ledger_flow, indicator_service, client
