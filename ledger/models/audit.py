"""
Audit Models for Pocket Ledger

Every mutation of the ledger, and every failure on the way, is logged.
This provides:
1. Traceability of what was written, replaced or removed
2. Debugging information when a store call fails
3. A record of orphaned blobs left behind by failed or replacing writes
4. The value of the legacy income scalar dropped during migration

DESIGN DECISION: Audit events are structured log records only. They are
never written back into the ledger database.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from ledger.models.transaction import utcnow


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step in the mutation pipeline has its own event type.
    """
    # Validation
    VALIDATION_REJECTED = "validation_rejected"

    # Attachments
    ATTACHMENT_STORED = "attachment_stored"
    ATTACHMENT_ORPHANED = "attachment_orphaned"

    # Persistence
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    MUTATION_SKIPPED = "mutation_skipped"
    STORAGE_FAULT = "storage_fault"

    # Schema
    MIGRATION_APPLIED = "migration_applied"
    LEGACY_INCOME_DROPPED = "legacy_income_dropped"

    # Collaborators
    FEED_UNAVAILABLE = "feed_unavailable"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'attachment', 'schema')"
    )
    entity_id: Optional[int] = Field(
        default=None,
        description="Store id of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one create with its attachments)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_created(tx_id, "expense", 1200, 0, cid)
        event = AuditEventBuilder.storage_fault("insert", "disk full", cid)
    """

    @staticmethod
    def validation_rejected(
        operation: str,
        issues: list[dict],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"{operation.capitalize()} rejected with {len(issues)} issues",
            details={
                "operation": operation,
                "issues": issues,
            },
            is_user_action=True,
        )

    @staticmethod
    def attachment_stored(
        attachment_id: int,
        kind: str,
        size: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ATTACHMENT_STORED,
            entity_type="attachment",
            entity_id=attachment_id,
            correlation_id=correlation_id,
            description=f"Attachment stored: {kind}",
            details={
                "kind": kind,
                "size_bytes": size,
            },
        )

    @staticmethod
    def attachments_orphaned(
        attachment_ids: list[int],
        reason: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ATTACHMENT_ORPHANED,
            severity=AuditSeverity.WARNING,
            entity_type="attachment",
            correlation_id=correlation_id,
            description=f"{len(attachment_ids)} attachments no longer referenced",
            details={
                "attachment_ids": attachment_ids,
                "reason": reason,
            },
        )

    @staticmethod
    def transaction_created(
        transaction_id: int,
        transaction_type: str,
        amount: int,
        attachment_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction created: {transaction_type} {amount}",
            details={
                "type": transaction_type,
                "amount": amount,
                "attachment_count": attachment_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_updated(
        transaction_id: int,
        replaced_attachments: bool,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction updated",
            details={
                "replaced_attachments": replaced_attachments,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: int,
        retained_attachment_ids: list[int],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction deleted, attachments retained",
            details={
                "retained_attachment_ids": retained_attachment_ids,
            },
            is_user_action=True,
        )

    @staticmethod
    def mutation_skipped(
        operation: str,
        reason: str,
        correlation_id: UUID,
        transaction_id: Optional[int] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_SKIPPED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"{operation.capitalize()} skipped: {reason}",
            details={
                "operation": operation,
                "reason": reason,
            },
        )

    @staticmethod
    def storage_fault(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_FAULT,
            severity=AuditSeverity.ERROR,
            description=f"Storage fault during {operation}",
            error_message=error_message,
            details={
                "operation": operation,
            },
            correlation_id=correlation_id,
        )

    @staticmethod
    def migration_applied(
        from_version: int,
        to_version: int,
        migrated_records: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MIGRATION_APPLIED,
            entity_type="schema",
            entity_id=to_version,
            description=f"Schema migrated from v{from_version} to v{to_version}",
            details={
                "from_version": from_version,
                "to_version": to_version,
                "migrated_records": migrated_records,
            },
        )

    @staticmethod
    def legacy_income_dropped(amount: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEGACY_INCOME_DROPPED,
            severity=AuditSeverity.WARNING,
            entity_type="schema",
            description="Legacy income setting not converted; re-enter it as an income transaction",
            details={
                "amount": amount,
            },
        )

    @staticmethod
    def feed_unavailable(
        feed: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FEED_UNAVAILABLE,
            severity=AuditSeverity.WARNING,
            description=f"Indicator feed unavailable: {feed}",
            error_message=error_message,
            details={
                "feed": feed,
            },
        )
