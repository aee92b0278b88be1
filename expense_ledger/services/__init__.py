"""Services package."""

from expense_ledger.services.storage import (
    AccountStore,
    AuditStorageInterface,
    CategoryStore,
    ChangeEvent,
    InMemoryAuditStorage,
    InMemoryLedgerStore,
    LedgerStore,
    NotFoundError,
    SQLiteLedgerStore,
    StorageError,
    TransactionStore,
)

__all__ = [
    # Storage services
    "AccountStore",
    "AuditStorageInterface",
    "CategoryStore",
    "ChangeEvent",
    "InMemoryAuditStorage",
    "InMemoryLedgerStore",
    "LedgerStore",
    "NotFoundError",
    "SQLiteLedgerStore",
    "StorageError",
    "TransactionStore",
]
