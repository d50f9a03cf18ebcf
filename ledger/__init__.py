"""
Pocket Ledger - Source Package

A local-first personal ledger: dated expenses and income, receipts
attached to them, and the rolling aggregates a dashboard needs.

DESIGN PRINCIPLES:
1. The store assigns identity, callers never do
2. Attachments are written before the record that references them
3. Aggregates are always recomputed from the full record set
4. Invalid input is rejected before any I/O
5. Storage layer is swappable
"""

__version__ = "2.0.0"
__author__ = "Pocket Ledger Team"
