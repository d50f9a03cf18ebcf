"""
Derived View Models

Everything the rendering layer reads after a recompute. All of these are
frozen: the snapshot is a read-only value, rebuilt from scratch on every
mutation.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ledger.models.transaction import Transaction


class DateWindow(BaseModel):
    """An inclusive calendar range, bounds as ISO strings."""
    model_config = ConfigDict(frozen=True)

    start: str
    end: str

    def contains(self, iso_date: str) -> bool:
        return self.start <= iso_date <= self.end

    @property
    def days(self) -> int:
        return (date.fromisoformat(self.end) - date.fromisoformat(self.start)).days + 1


class PeriodWindows(BaseModel):
    """The four rolling windows anchored at one day."""
    model_config = ConfigDict(frozen=True)

    today: DateWindow
    week: DateWindow
    fortnight: DateWindow
    month: DateWindow


class Balance(BaseModel):
    """
    Income against expenses.

    `available` is NOT clamped: overspending shows as a negative number.
    """
    model_config = ConfigDict(frozen=True)

    income: int = 0
    expense: int = 0
    available: int = 0
    ratio: int = Field(default=0, ge=0, le=100, description="Expense as % of income")


class PeriodStats(BaseModel):
    """Expense totals per window."""
    model_config = ConfigDict(frozen=True)

    today: int = 0
    week: int = 0
    fortnight: int = 0
    month: int = 0
    all_time: int = 0


class PeriodSummary(BaseModel):
    """Total, count and per-day average of expenses inside one window."""
    model_config = ConfigDict(frozen=True)

    window: DateWindow
    total: int = 0
    count: int = 0
    daily_average: int = 0


class LedgerSnapshot(BaseModel):
    """
    The read-only view handed to the rendering layer after every recompute.

    `histogram` holds (date, amount) points, oldest first; `bars` holds the
    matching bar heights in percent.
    """
    model_config = ConfigDict(frozen=True)

    as_of: date
    balance: Balance = Field(default_factory=Balance)
    period_stats: PeriodStats = Field(default_factory=PeriodStats)
    histogram: list[tuple[str, int]] = Field(default_factory=list)
    bars: list[int] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)


class MutationOutcome(BaseModel):
    """
    Result of a create/update/delete request.

    A rejected or no-op request has `applied=False` and a message for the
    user; the snapshot is then the unchanged current one.
    """
    model_config = ConfigDict(frozen=True)

    applied: bool
    message: str = ""
    transaction: Optional[Transaction] = None
    snapshot: LedgerSnapshot
