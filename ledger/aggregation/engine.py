"""
Aggregation Engine

Pure functions from (transactions, today) to the derived views: balance,
per-period expense sums, and the daily histogram.

DESIGN DECISION: Nothing here is incremental. Every mutation rebuilds
the whole snapshot from the full record set. Personal ledgers hold
thousands of records, not millions, and a full pass cannot drift.

All windows are inclusive on both ends and compared as ISO date strings.
Rounding is half up everywhere, on integers, so results are exact.
"""

import calendar
from datetime import date, timedelta
from typing import Iterable, Sequence

from ledger.models.snapshot import (
    Balance,
    DateWindow,
    LedgerSnapshot,
    PeriodStats,
    PeriodSummary,
    PeriodWindows,
)
from ledger.models.transaction import Transaction, TransactionType

HISTOGRAM_POINTS = 14
MIN_BAR_HEIGHT = 4


def _round_half_up_div(numerator: int, denominator: int) -> int:
    """round(numerator / denominator) for non-negative integers, halves up."""
    return (2 * numerator + denominator) // (2 * denominator)


def sort_transactions(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Newest first: date descending, then id descending."""
    return sorted(transactions, key=lambda t: t.sort_key, reverse=True)


def compute_balance(transactions: Iterable[Transaction]) -> Balance:
    """
    Income, expense, what is left, and expense as a percentage of income.

    `available` may be negative. `ratio` is clamped to [0, 100] and is 0
    when there is no income.
    """
    income = 0
    expense = 0
    for tx in transactions:
        if tx.type == TransactionType.INCOME:
            income += tx.amount
        else:
            expense += tx.amount

    ratio = 0
    if income > 0:
        ratio = min(100, max(0, _round_half_up_div(expense * 100, income)))

    return Balance(
        income=income,
        expense=expense,
        available=income - expense,
        ratio=ratio,
    )


def period_windows(today: date) -> PeriodWindows:
    """
    The rolling windows anchored at `today`.

    - today: the day itself
    - week: the trailing 7 days, today included
    - fortnight: days 1-15 of the month, or 16 to month end
    - month: the calendar month
    """
    month_start = today.replace(day=1)
    month_end = today.replace(day=calendar.monthrange(today.year, today.month)[1])

    if today.day <= 15:
        fortnight = DateWindow(start=month_start.isoformat(), end=today.replace(day=15).isoformat())
    else:
        fortnight = DateWindow(start=today.replace(day=16).isoformat(), end=month_end.isoformat())

    return PeriodWindows(
        today=DateWindow(start=today.isoformat(), end=today.isoformat()),
        week=DateWindow(start=(today - timedelta(days=6)).isoformat(), end=today.isoformat()),
        fortnight=fortnight,
        month=DateWindow(start=month_start.isoformat(), end=month_end.isoformat()),
    )


def expenses_in(transactions: Iterable[Transaction], window: DateWindow) -> list[Transaction]:
    return [
        tx for tx in transactions
        if tx.type == TransactionType.EXPENSE and window.contains(tx.date)
    ]


def sum_expenses(transactions: Iterable[Transaction], window: DateWindow) -> int:
    return sum(tx.amount for tx in expenses_in(transactions, window))


def compute_period_stats(transactions: Sequence[Transaction], today: date) -> PeriodStats:
    windows = period_windows(today)
    return PeriodStats(
        today=sum_expenses(transactions, windows.today),
        week=sum_expenses(transactions, windows.week),
        fortnight=sum_expenses(transactions, windows.fortnight),
        month=sum_expenses(transactions, windows.month),
        all_time=sum(tx.amount for tx in transactions if tx.type == TransactionType.EXPENSE),
    )


def summarize_period(transactions: Iterable[Transaction], window: DateWindow) -> PeriodSummary:
    """Total, count and per-day average of the expenses inside `window`."""
    selected = expenses_in(transactions, window)
    total = sum(tx.amount for tx in selected)
    return PeriodSummary(
        window=window,
        total=total,
        count=len(selected),
        daily_average=_round_half_up_div(total, window.days),
    )


def daily_histogram(
    transactions: Iterable[Transaction],
    limit: int = HISTOGRAM_POINTS,
) -> list[tuple[str, int]]:
    """
    Expense totals per date, oldest first, truncated to the last `limit` dates.

    Only dates that have at least one expense appear.
    """
    totals: dict[str, int] = {}
    for tx in transactions:
        if tx.type == TransactionType.EXPENSE:
            totals[tx.date] = totals.get(tx.date, 0) + tx.amount

    points = sorted(totals.items())
    return points[-limit:] if limit > 0 else []


def bar_heights(points: Sequence[tuple[str, int]], min_height: int = MIN_BAR_HEIGHT) -> list[int]:
    """
    Bar heights in percent of the largest visible point.

    Every bar is at least `min_height` so days next to zero stay visible.
    """
    peak = max([1, *(amount for _, amount in points)])
    return [
        max(min_height, _round_half_up_div(amount * 100, peak))
        for _, amount in points
    ]


def build_snapshot(
    transactions: Sequence[Transaction],
    today: date,
    histogram_points: int = HISTOGRAM_POINTS,
) -> LedgerSnapshot:
    """Recompute every derived view from the full, sorted record set."""
    histogram = daily_histogram(transactions, histogram_points)
    return LedgerSnapshot(
        as_of=today,
        balance=compute_balance(transactions),
        period_stats=compute_period_stats(transactions, today),
        histogram=histogram,
        bars=bar_heights(histogram),
        transactions=list(transactions),
    )
