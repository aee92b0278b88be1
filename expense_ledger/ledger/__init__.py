"""
Ledger Package

The three stateful components of the core: the category tree, the
account ledger and the transaction log.
"""

from expense_ledger.ledger.accounts import (
    AccountLedger,
    derive_balance,
    derive_total_balance,
)
from expense_ledger.ledger.categories import CategoryTree
from expense_ledger.ledger.transactions import TransactionLog

__all__ = [
    "AccountLedger",
    "CategoryTree",
    "TransactionLog",
    "derive_balance",
    "derive_total_balance",
]
