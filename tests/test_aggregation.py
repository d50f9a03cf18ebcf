"""Tests for the pure aggregation engine and the mirror state."""

from datetime import date

from ledger.aggregation import (
    bar_heights,
    build_snapshot,
    compute_balance,
    compute_period_stats,
    daily_histogram,
    period_windows,
    sort_transactions,
    summarize_period,
)
from ledger.models.snapshot import DateWindow
from ledger.models.transaction import Transaction, TransactionType
from ledger.state import LedgerState


def make_tx(tx_id, amount, on, tx_type=TransactionType.EXPENSE, name=None):
    return Transaction(
        id=tx_id,
        type=tx_type,
        name=name or f"tx {tx_id}",
        amount=amount,
        date=on,
    )


class TestBalance:
    """Tests for income against expense."""

    def test_income_and_expense_same_day(self):
        """Income 500000 and expense 120000 leave 380000 at 24%."""
        balance = compute_balance([
            make_tx(1, 500000, "2024-03-20", TransactionType.INCOME),
            make_tx(2, 120000, "2024-03-20"),
        ])
        assert balance.income == 500000
        assert balance.expense == 120000
        assert balance.available == 380000
        assert balance.ratio == 24

    def test_available_identity(self):
        txs = [
            make_tx(1, 1000, "2024-01-01", TransactionType.INCOME),
            make_tx(2, 333, "2024-01-02"),
            make_tx(3, 250, "2024-01-03", TransactionType.INCOME),
            make_tx(4, 17, "2024-01-04"),
        ]
        balance = compute_balance(txs)
        assert balance.available == balance.income - balance.expense == 900

    def test_overspending_is_negative_and_ratio_clamped(self):
        balance = compute_balance([
            make_tx(1, 100, "2024-01-01", TransactionType.INCOME),
            make_tx(2, 250, "2024-01-01"),
        ])
        assert balance.available == -150
        assert balance.ratio == 100

    def test_no_income_ratio_is_zero(self):
        balance = compute_balance([make_tx(1, 250, "2024-01-01")])
        assert balance.ratio == 0
        assert balance.available == -250

    def test_ratio_rounds_half_up(self):
        balance = compute_balance([
            make_tx(1, 200, "2024-01-01", TransactionType.INCOME),
            make_tx(2, 49, "2024-01-01"),
        ])
        # 24.5% rounds to 25
        assert balance.ratio == 25

    def test_empty(self):
        balance = compute_balance([])
        assert (balance.income, balance.expense, balance.available, balance.ratio) == (0, 0, 0, 0)


class TestPeriodWindows:
    """Tests for the rolling windows."""

    def test_fortnight_first_half(self):
        windows = period_windows(date(2024, 3, 10))
        assert windows.fortnight == DateWindow(start="2024-03-01", end="2024-03-15")

    def test_fortnight_second_half(self):
        windows = period_windows(date(2024, 3, 20))
        assert windows.fortnight == DateWindow(start="2024-03-16", end="2024-03-31")

    def test_fortnight_boundary_days(self):
        assert period_windows(date(2024, 3, 15)).fortnight.end == "2024-03-15"
        assert period_windows(date(2024, 3, 16)).fortnight.start == "2024-03-16"

    def test_february_leap_year_month_end(self):
        windows = period_windows(date(2024, 2, 20))
        assert windows.month == DateWindow(start="2024-02-01", end="2024-02-29")
        assert windows.fortnight.end == "2024-02-29"

    def test_week_is_trailing_seven_days(self):
        windows = period_windows(date(2024, 3, 3))
        assert windows.week == DateWindow(start="2024-02-26", end="2024-03-03")
        assert windows.week.days == 7


class TestPeriodStats:
    """Tests for per-window expense sums."""

    def test_only_expenses_count(self):
        txs = [
            make_tx(1, 100, "2024-03-20"),
            make_tx(2, 9999, "2024-03-20", TransactionType.INCOME),
            make_tx(3, 50, "2024-03-15"),
            make_tx(4, 25, "2024-02-28"),
        ]
        stats = compute_period_stats(txs, date(2024, 3, 20))
        assert stats.today == 100
        assert stats.week == 150
        assert stats.fortnight == 100
        assert stats.month == 150
        assert stats.all_time == 175

    def test_week_includes_six_days_back(self):
        txs = [make_tx(1, 10, "2024-03-14"), make_tx(2, 20, "2024-03-13")]
        stats = compute_period_stats(txs, date(2024, 3, 20))
        assert stats.week == 10

    def test_summarize_period(self):
        txs = [
            make_tx(1, 100, "2024-03-01"),
            make_tx(2, 51, "2024-03-02"),
            make_tx(3, 500, "2024-03-02", TransactionType.INCOME),
        ]
        summary = summarize_period(txs, DateWindow(start="2024-03-01", end="2024-03-02"))
        assert summary.total == 151
        assert summary.count == 2
        # 75.5 rounds to 76
        assert summary.daily_average == 76


class TestHistogram:
    """Tests for the daily histogram and its bars."""

    def test_groups_by_date_ascending(self):
        txs = [
            make_tx(1, 1000, "2024-01-01"),
            make_tx(2, 2000, "2024-01-01"),
            make_tx(3, 3000, "2024-01-02"),
        ]
        assert daily_histogram(txs) == [("2024-01-01", 3000), ("2024-01-02", 3000)]

    def test_income_is_ignored(self):
        txs = [
            make_tx(1, 1000, "2024-01-01", TransactionType.INCOME),
            make_tx(2, 10, "2024-01-02"),
        ]
        assert daily_histogram(txs) == [("2024-01-02", 10)]

    def test_keeps_last_fourteen_points(self):
        txs = [make_tx(i, i, f"2024-01-{i:02d}") for i in range(1, 21)]
        points = daily_histogram(txs)
        assert len(points) == 14
        assert points[0] == ("2024-01-07", 7)
        assert points[-1] == ("2024-01-20", 20)

    def test_bar_heights_relative_to_visible_peak(self):
        points = [("2024-01-01", 50), ("2024-01-02", 100), ("2024-01-03", 1)]
        assert bar_heights(points) == [50, 100, 4]

    def test_bar_heights_all_zero(self):
        assert bar_heights([("2024-01-01", 0)]) == [4]

    def test_bar_heights_empty(self):
        assert bar_heights([]) == []


class TestSnapshot:
    """Tests for the full recompute."""

    def test_snapshot_sorts_and_aggregates(self):
        txs = [
            make_tx(1, 100, "2024-03-19"),
            make_tx(2, 500, "2024-03-20", TransactionType.INCOME),
            make_tx(3, 40, "2024-03-20"),
        ]
        snapshot = build_snapshot(sort_transactions(txs), date(2024, 3, 20))
        assert [tx.id for tx in snapshot.transactions] == [3, 2, 1]
        assert snapshot.balance.available == 360
        assert snapshot.period_stats.today == 40
        assert snapshot.histogram == [("2024-03-19", 100), ("2024-03-20", 40)]
        assert snapshot.bars == [100, 40]

    def test_same_date_orders_by_id_desc(self):
        txs = [make_tx(i, 1, "2024-03-20") for i in (2, 9, 5)]
        assert [tx.id for tx in sort_transactions(txs)] == [9, 5, 2]


class TestLedgerState:
    """Tests for the in-memory mirror."""

    def test_sorted_on_construction(self):
        state = LedgerState([make_tx(1, 1, "2024-01-01"), make_tx(2, 1, "2024-02-01")])
        assert [tx.id for tx in state.transactions] == [2, 1]

    def test_remove_clears_matching_edit(self):
        state = LedgerState([make_tx(1, 1, "2024-01-01")])
        state.edit_id = 1
        removed = state.remove(1)
        assert removed.id == 1
        assert state.edit_id is None
        assert len(state) == 0

    def test_search_is_case_insensitive(self):
        state = LedgerState([
            make_tx(1, 1, "2024-01-01", name="Coffee beans"),
            make_tx(2, 1, "2024-01-02", name="Rent"),
            make_tx(3, 1, "2024-01-03", name="COFFEE shop"),
        ])
        assert [tx.id for tx in state.search("coffee")] == [3, 1]
        assert len(state.search("  ")) == 3

    def test_transactions_returns_copy(self):
        state = LedgerState([make_tx(1, 1, "2024-01-01")])
        state.transactions.clear()
        assert len(state) == 1
