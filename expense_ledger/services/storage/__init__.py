"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Ships an in-memory backend and a SQLite backend; both follow the same
locking and notification contracts.
"""

from expense_ledger.services.storage.interface import (
    AccountStore,
    AuditStorageInterface,
    CategoryStore,
    ChangeEvent,
    ChangeListener,
    LedgerStore,
    NotFoundError,
    StorageError,
    TransactionStore,
)
from expense_ledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStore,
)
from expense_ledger.services.storage.sqlite import SQLiteLedgerStore

__all__ = [
    # Interfaces
    "AccountStore",
    "AuditStorageInterface",
    "CategoryStore",
    "ChangeEvent",
    "ChangeListener",
    "LedgerStore",
    "TransactionStore",
    # Exceptions
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStore",
    # SQLite implementation
    "SQLiteLedgerStore",
]
