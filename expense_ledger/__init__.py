"""
Expense Ledger - Core Package

The ledger computation engine behind a personal expense tracker:
accounts, a two-level category tree, the transaction log, balance
derivation, period reports and the guided transaction-entry flow.

DESIGN PRINCIPLES:
1. Balances are derived from the log, never stored
2. Validate before the store is touched
3. Every failure is a typed, recoverable error
4. Aggregation is pure and safe to call from anywhere
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Expense Ledger Team"

from expense_ledger.orchestrator import Ledger, create_ledger, open_store

__all__ = [
    "Ledger",
    "create_ledger",
    "open_store",
]
