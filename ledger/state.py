"""
Ledger State

The in-memory mirror of the record store plus the record staged for
editing. One instance is owned by each LedgerFlow; nothing here is
module-level.

INVARIANT: `transactions` is sorted by (date desc, id desc) after every
method returns.
"""

from typing import Iterable, Optional

from ledger.aggregation import sort_transactions
from ledger.models.transaction import Transaction


class LedgerState:
    """Sorted working set driving both list rendering and aggregation."""

    def __init__(self, transactions: Iterable[Transaction] = ()):
        self._transactions: list[Transaction] = sort_transactions(transactions)
        self.edit_id: Optional[int] = None

    @property
    def transactions(self) -> list[Transaction]:
        return list(self._transactions)

    def __len__(self) -> int:
        return len(self._transactions)

    def replace_all(self, transactions: Iterable[Transaction]) -> None:
        self._transactions = sort_transactions(transactions)

    def remove(self, transaction_id: int) -> Optional[Transaction]:
        removed = self.get(transaction_id)
        if removed is not None:
            self._transactions = [tx for tx in self._transactions if tx.id != transaction_id]
        if self.edit_id == transaction_id:
            self.edit_id = None
        return removed

    def get(self, transaction_id: int) -> Optional[Transaction]:
        for tx in self._transactions:
            if tx.id == transaction_id:
                return tx
        return None

    def search(self, query: str) -> list[Transaction]:
        """Case-insensitive substring match on name, in mirror order."""
        needle = query.strip().lower()
        if not needle:
            return self.transactions
        return [tx for tx in self._transactions if needle in tx.name.lower()]
