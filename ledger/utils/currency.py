"""Display formatting for whole-unit amounts (CLP style: $1.234.567)."""

from typing import Optional

PLACEHOLDER = "—"


def format_currency(amount: Optional[int], symbol: str = "$") -> str:
    """Format an amount with dot thousands separators; None renders as 0."""
    value = int(round(amount or 0))
    grouped = f"{abs(value):,}".replace(",", ".")
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{grouped}"


def format_usd(amount: Optional[float]) -> str:
    """US-style dollars with comma separators, rounded to whole units."""
    if amount is None:
        return PLACEHOLDER
    return f"${int(round(amount)):,}"


def format_signed(amount: int, is_expense: bool, symbol: str = "$") -> str:
    """List-row rendering: '- $1.000' for expenses, '+ $1.000' for income."""
    sign = "-" if is_expense else "+"
    return f"{sign} {format_currency(amount, symbol)}"
