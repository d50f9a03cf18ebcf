"""Small helpers shared across packages."""

from ledger.utils.amounts import parse_amount
from ledger.utils.currency import PLACEHOLDER, format_currency, format_signed, format_usd

__all__ = [
    "PLACEHOLDER",
    "format_currency",
    "format_signed",
    "format_usd",
    "parse_amount",
]
