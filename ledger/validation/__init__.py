"""Validation package: checks every mutation intent before any I/O."""

from ledger.validation.validator import TransactionValidator, ValidationError

__all__ = [
    "TransactionValidator",
    "ValidationError",
]
