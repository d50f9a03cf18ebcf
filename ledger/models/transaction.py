"""
Core Data Models for Pocket Ledger

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Carry the load-time rule for records written by the legacy schema

DESIGN DECISION: Dates are kept as ISO-8601 `YYYY-MM-DD` strings.
Lexicographic order on that format is chronological order, and it is
exactly what the store indexes, so no conversion happens on the hot path.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from ledger.utils.amounts import parse_amount


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """
    Transaction discriminant.

    Legacy records carry no type at all; they are expenses.
    """
    EXPENSE = "expense"
    INCOME = "income"


class AttachmentKind(str, Enum):
    """What the user attached: a photo of a receipt or a document."""
    PHOTO = "photo"
    DOCUMENT = "document"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso_date(value: Any) -> str:
    """
    Normalize a date or ISO string to `YYYY-MM-DD`.

    Raises ValueError for anything that is not a real calendar date.
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str):
        raise ValueError(f"Invalid date: {value!r}")
    text = value.strip()
    if len(text) != 10:
        raise ValueError(f"Invalid date: {value!r} (expected YYYY-MM-DD)")
    return date.fromisoformat(text).isoformat()


# =============================================================================
# ATTACHMENT REFERENCES
# =============================================================================

class AttachmentRef(BaseModel):
    """
    Non-owning reference from a transaction to a stored blob.

    The blob belongs to the attachment store. Deleting the transaction
    leaves the blob in place.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    store_id: int = Field(
        ...,
        ge=1,
        description="Attachment store id of the blob"
    )
    kind: AttachmentKind = Field(
        ...,
        description="Photo or document"
    )
    name: str = Field(
        default="",
        max_length=255,
        description="Original file name"
    )
    mime_type: str = Field(
        default="application/octet-stream",
        description="MIME type reported when the file was attached"
    )


# =============================================================================
# CORE TRANSACTION MODELS
# =============================================================================

class TransactionDraft(BaseModel):
    """
    A mutation intent as submitted by the user.

    CRITICAL: This is UNVALIDATED input. The amount is already parsed
    (non-numeric and negative become 0, fractions round half up), but
    name/amount/date rules are checked by TransactionValidator.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    type: TransactionType = Field(
        default=TransactionType.EXPENSE,
        description="Expense or income"
    )
    name: str = Field(
        default="",
        max_length=200,
        description="Display label"
    )
    amount: int = Field(
        default=0,
        ge=0,
        description="Whole currency units"
    )
    date: Optional[str] = Field(
        default=None,
        description="ISO date; today when absent"
    )

    @field_validator('amount', mode='before')
    @classmethod
    def parse_raw_amount(cls, v: Any) -> int:
        """Form values arrive as text; clamp and round them here."""
        return parse_amount(v)

    @field_validator('date', mode='before')
    @classmethod
    def blank_date_is_none(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        if isinstance(v, (date, datetime)):
            return to_iso_date(v)
        text = str(v).strip()
        return text or None

    def resolved_date(self, today: "date") -> str:
        """The date to persist: the given one, normalized, or today."""
        return to_iso_date(self.date) if self.date else today.isoformat()


class TransactionRecord(BaseModel):
    """
    A transaction as written to the record store, before it has an id.

    Full-record replace is the only update path, so this is also the
    shape of every write.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    type: TransactionType = Field(
        default=TransactionType.EXPENSE,
        description="Expense or income (absent in legacy data means expense)"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display label (required)"
    )
    amount: int = Field(
        ...,
        ge=0,
        description="Whole currency units (required)"
    )
    date: str = Field(
        ...,
        description="ISO-8601 calendar date"
    )
    attachments: list[AttachmentRef] = Field(default_factory=list)
    created: datetime = Field(
        default_factory=utcnow,
        description="Capture timestamp, informational only"
    )

    @model_validator(mode='before')
    @classmethod
    def apply_legacy_discriminant(cls, data: Any) -> Any:
        """
        Load-time migration rule: records without a type are expenses.

        This is the only place the default is applied.
        """
        if isinstance(data, dict) and data.get("type") in (None, ""):
            data = {**data, "type": TransactionType.EXPENSE}
        return data

    @field_validator('date', mode='before')
    @classmethod
    def validate_date(cls, v: Any) -> str:
        return to_iso_date(v)


class Transaction(TransactionRecord):
    """
    A persisted transaction.

    Ordering everywhere is (date desc, id desc); `created` never
    participates.
    """

    id: int = Field(
        ...,
        ge=1,
        description="Store-assigned id, immutable"
    )

    @property
    def is_expense(self) -> bool:
        return self.type == TransactionType.EXPENSE

    @property
    def sort_key(self) -> tuple[str, int]:
        return (self.date, self.id)

    def to_record(self) -> TransactionRecord:
        return TransactionRecord(**self.model_dump(exclude={"id"}))


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'non_positive')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """Result of validating a mutation intent before any I/O."""

    validated_at: datetime = Field(
        default_factory=utcnow
    )
    is_valid: bool = Field(
        ...,
        description="Overall validation result"
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
