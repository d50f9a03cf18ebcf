"""
Two-Stage Validation Pipeline

DESIGN DECISION: Validation happens in two distinct stages, and both run
before any store is touched:

STAGE 1 - SCHEMA VALIDATION:
- Name present after trimming
- Amount strictly positive and within the storable integer range
- Date is a real calendar date
This catches malformed form input.

STAGE 2 - SEMANTIC VALIDATION:
- Attachment size limits
- Future date detection
This catches input that is well-formed but suspicious or unstorable.

A rejected draft never reaches the attachment store, so a failed
validation cannot leave orphaned blobs behind.

IMPORTANT: Validation NEVER silently fixes issues. Amount parsing
(clamping and rounding) happens when the draft is built; everything
checked here is reported, not corrected.
"""

from datetime import date
from typing import Iterable, Optional

from ledger.config import get_settings
from ledger.models.attachment import AttachmentUpload
from ledger.models.transaction import (
    TransactionDraft,
    ValidationIssue,
    ValidationResult,
    to_iso_date,
)

# Largest amount an SQLite INTEGER column holds
MAX_AMOUNT = 2**63 - 1


class ValidationError(Exception):
    """Raised by `ensure_valid` when a draft has error-level issues."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(
            issue.message for issue in result.issues if issue.severity == "error"
        )
        super().__init__(messages or "Validation failed")

    @property
    def issues(self) -> list[ValidationIssue]:
        return self.result.issues


class TransactionValidator:
    """
    Validates mutation intents through a two-stage pipeline.

    Stage 1: Schema validation (fields of the draft itself)
    Stage 2: Semantic validation (attachments, dates relative to today)
    """

    def __init__(self, max_attachment_size_bytes: Optional[int] = None):
        """
        Initialize validator.

        Args:
            max_attachment_size_bytes: Per-file limit. Defaults to the
                configured LEDGER max_attachment_size_mb.
        """
        self._settings = get_settings().app
        self._max_attachment_size = (
            max_attachment_size_bytes
            if max_attachment_size_bytes is not None
            else self._settings.max_attachment_size_bytes
        )

    def _validate_schema(
        self,
        draft: TransactionDraft,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if not draft.name.strip():
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Name is required",
                severity="error",
                suggested_fix="Describe what the money was for",
            ))

        if draft.amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="non_positive",
                message="Amount must be greater than zero",
                severity="error",
                suggested_fix="Enter a whole amount such as 1500",
            ))
        elif draft.amount > MAX_AMOUNT:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="too_large",
                message="Amount is too large to store",
                severity="error",
                suggested_fix="Check the amount for extra digits",
            ))

        if draft.date is not None:
            try:
                to_iso_date(draft.date)
            except ValueError:
                issues.append(ValidationIssue(
                    field="date",
                    issue_type="invalid_format",
                    message=f"'{draft.date}' is not a valid date",
                    severity="error",
                    suggested_fix="Use the YYYY-MM-DD format, or leave it blank for today",
                ))

        is_valid = not any(i.severity == "error" for i in issues)
        return is_valid, issues

    def _validate_semantic(
        self,
        draft: TransactionDraft,
        uploads: list[AttachmentUpload],
        today: date,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Only runs when stage 1 passed, so the date is known to parse.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if draft.resolved_date(today) > today.isoformat():
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Date {draft.date} is in the future",
                severity="warning",
                suggested_fix="Check the date; it will count once that day arrives",
            ))

        for index, upload in enumerate(uploads):
            try:
                size = upload.content_size()
            except (OSError, ValueError) as e:
                issues.append(ValidationIssue(
                    field=f"attachments[{index}]",
                    issue_type="unreadable",
                    message=f"Attachment '{upload.name or index}' cannot be read: {e}",
                    severity="error",
                ))
                continue

            if size > self._max_attachment_size:
                limit_mb = self._max_attachment_size / (1024 * 1024)
                issues.append(ValidationIssue(
                    field=f"attachments[{index}]",
                    issue_type="too_large",
                    message=f"Attachment '{upload.name or index}' exceeds {limit_mb:g} MB",
                    severity="error",
                    suggested_fix="Attach a smaller file or a compressed photo",
                ))
            elif size == 0:
                issues.append(ValidationIssue(
                    field=f"attachments[{index}]",
                    issue_type="empty",
                    message=f"Attachment '{upload.name or index}' is empty",
                    severity="warning",
                ))

        is_valid = not any(i.severity == "error" for i in issues)
        return is_valid, issues

    def validate(
        self,
        draft: TransactionDraft,
        uploads: Iterable[AttachmentUpload] = (),
        today: Optional[date] = None,
    ) -> ValidationResult:
        """
        Run the full validation pipeline.

        Args:
            draft: The mutation intent as submitted
            uploads: Files the user attached, in order
            today: Anchor for "today" (defaults to the local date)

        Returns:
            ValidationResult with all issues found
        """
        today = today or date.today()
        all_issues = []

        # Stage 1: Schema validation
        schema_valid, schema_issues = self._validate_schema(draft)
        all_issues.extend(schema_issues)

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(
                draft, list(uploads), today
            )
            all_issues.extend(semantic_issues)

        return ValidationResult(
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
        )

    def ensure_valid(
        self,
        draft: TransactionDraft,
        uploads: Iterable[AttachmentUpload] = (),
        today: Optional[date] = None,
    ) -> ValidationResult:
        """Like `validate`, but raises ValidationError on error-level issues."""
        result = self.validate(draft, uploads, today)
        if not result.is_valid:
            raise ValidationError(result)
        return result

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is the message shown next to the form.
        """
        warnings = [i for i in result.issues if i.severity == "warning"]
        if result.is_valid and not warnings:
            return "✅ All checks passed!"

        lines = []

        if result.has_errors:
            lines.append("❌ This entry could not be saved:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in warnings:
                lines.append(f"   • {warning.message}")

        return "\n".join(lines)
