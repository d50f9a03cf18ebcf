"""
Data Models Package

This package contains all Pydantic models used in Pocket Ledger.
All data flowing through the system must conform to these schemas.
"""

from ledger.models.transaction import (
    AttachmentKind,
    AttachmentRef,
    Transaction,
    TransactionDraft,
    TransactionRecord,
    TransactionType,
    ValidationIssue,
    ValidationResult,
    to_iso_date,
)
from ledger.models.attachment import (
    Attachment,
    AttachmentUpload,
    BlobHandle,
    ResolvedAttachment,
)
from ledger.models.snapshot import (
    Balance,
    DateWindow,
    LedgerSnapshot,
    MutationOutcome,
    PeriodStats,
    PeriodSummary,
    PeriodWindows,
)
from ledger.models.indicators import (
    FeedStatus,
    IndicatorItem,
    IndicatorPanel,
)
from ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "AttachmentKind",
    "AttachmentRef",
    "Transaction",
    "TransactionDraft",
    "TransactionRecord",
    "TransactionType",
    "ValidationIssue",
    "ValidationResult",
    "to_iso_date",
    # Attachment models
    "Attachment",
    "AttachmentUpload",
    "BlobHandle",
    "ResolvedAttachment",
    # Derived views
    "Balance",
    "DateWindow",
    "LedgerSnapshot",
    "MutationOutcome",
    "PeriodStats",
    "PeriodSummary",
    "PeriodWindows",
    # Indicator panel
    "FeedStatus",
    "IndicatorItem",
    "IndicatorPanel",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
