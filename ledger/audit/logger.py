"""
Audit Logger

DESIGN DECISION: Every significant action in the ledger is logged.
This provides:
1. Complete traceability of writes to both stores
2. Debugging capability when a store call fails
3. A trail of orphaned blobs, so a later cleanup can find them

The audit logger:
- Is async so it can sit inline in the async mutation pipeline
- Never raises into the caller
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from ledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Events go to the structured local log. The logger keeps the last
    events in memory so callers (and tests) can inspect what happened.
    """

    def __init__(self, history_size: int = 200):
        self._logger = structlog.get_logger("ledger.audit")
        self._history: list[AuditEvent] = []
        self._history_size = history_size

    @property
    def history(self) -> list[AuditEvent]:
        """Most recent events, oldest first."""
        return list(self._history)

    async def log(self, event: AuditEvent) -> None:
        """Log an audit event locally."""
        self._history.append(event)
        del self._history[:-self._history_size]

        log_dict = event.to_log_dict()
        try:
            if event.severity == AuditSeverity.ERROR:
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Logging must never break a mutation
            structlog.get_logger("ledger.audit").error(
                "audit_log_failed",
                error=str(e),
                event_id=str(event.event_id),
            )

    async def log_validation_rejected(
        self,
        operation: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log a mutation rejected before any I/O."""
        await self.log(AuditEventBuilder.validation_rejected(
            operation=operation,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_attachment_stored(
        self,
        attachment_id: int,
        kind: str,
        size: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.attachment_stored(
            attachment_id=attachment_id,
            kind=kind,
            size=size,
            correlation_id=correlation_id,
        ))

    async def log_attachments_orphaned(
        self,
        attachment_ids: list[int],
        reason: str,
        correlation_id: UUID,
    ) -> None:
        """Log blobs that no transaction references any more."""
        if not attachment_ids:
            return
        await self.log(AuditEventBuilder.attachments_orphaned(
            attachment_ids=attachment_ids,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_transaction_created(
        self,
        transaction_id: int,
        transaction_type: str,
        amount: int,
        attachment_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_created(
            transaction_id=transaction_id,
            transaction_type=transaction_type,
            amount=amount,
            attachment_count=attachment_count,
            correlation_id=correlation_id,
        ))

    async def log_transaction_updated(
        self,
        transaction_id: int,
        replaced_attachments: bool,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_updated(
            transaction_id=transaction_id,
            replaced_attachments=replaced_attachments,
            correlation_id=correlation_id,
        ))

    async def log_transaction_deleted(
        self,
        transaction_id: int,
        retained_attachment_ids: list[int],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_deleted(
            transaction_id=transaction_id,
            retained_attachment_ids=retained_attachment_ids,
            correlation_id=correlation_id,
        ))

    async def log_mutation_skipped(
        self,
        operation: str,
        reason: str,
        correlation_id: UUID,
        transaction_id: Optional[int] = None,
    ) -> None:
        await self.log(AuditEventBuilder.mutation_skipped(
            operation=operation,
            reason=reason,
            correlation_id=correlation_id,
            transaction_id=transaction_id,
        ))

    async def log_storage_fault(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.storage_fault(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_migration_applied(
        self,
        from_version: int,
        to_version: int,
        migrated_records: int,
    ) -> None:
        await self.log(AuditEventBuilder.migration_applied(
            from_version=from_version,
            to_version=to_version,
            migrated_records=migrated_records,
        ))

    async def log_legacy_income_dropped(self, amount: int) -> None:
        await self.log(AuditEventBuilder.legacy_income_dropped(amount))

    async def log_feed_unavailable(self, feed: str, error_message: str) -> None:
        await self.log(AuditEventBuilder.feed_unavailable(
            feed=feed,
            error_message=error_message,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., submitting a form).
    Pass it through all subsequent operations.
    """
    return uuid4()
