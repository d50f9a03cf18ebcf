"""Aggregation package: pure recomputation of the derived views."""

from ledger.aggregation.engine import (
    HISTOGRAM_POINTS,
    bar_heights,
    build_snapshot,
    compute_balance,
    compute_period_stats,
    daily_histogram,
    period_windows,
    sort_transactions,
    sum_expenses,
    summarize_period,
)

__all__ = [
    "HISTOGRAM_POINTS",
    "bar_heights",
    "build_snapshot",
    "compute_balance",
    "compute_period_stats",
    "daily_histogram",
    "period_windows",
    "sort_transactions",
    "sum_expenses",
    "summarize_period",
]
