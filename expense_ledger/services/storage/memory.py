"""
In-Memory Storage

DESIGN DECISION: The in-memory store is a complete backend, not a mock.
It is the default for tests and for short-lived sessions, and it follows
exactly the same contracts as the SQLite store:
1. One re-entrant lock guards all three entity tables
2. Records are copied on the way in and on the way out
3. Listeners fire after the lock is released
"""

import itertools
import threading
from datetime import date
from typing import Optional

from expense_ledger.errors import HasChildrenError
from expense_ledger.models.audit import AuditEvent
from expense_ledger.models.entities import Account, Category, Transaction
from expense_ledger.services.storage.interface import (
    AccountStore,
    AuditStorageInterface,
    CategoryStore,
    ChangeEvent,
    LedgerStore,
    NotFoundError,
    TransactionStore,
    account_sort_key,
    category_sort_key,
    transaction_sort_key,
)


class _MemoryCategoryStore(CategoryStore):

    def __init__(self, owner: "InMemoryLedgerStore"):
        self._owner = owner

    def insert(self, category: Category) -> Category:
        owner = self._owner
        with owner._lock:
            stored = category.model_copy(update={"id": next(owner._category_ids)})
            owner._categories[stored.id] = stored
        owner._notify(ChangeEvent("category", "insert", stored.id))
        return stored.model_copy()

    def update(self, category: Category) -> Category:
        owner = self._owner
        with owner._lock:
            if category.id not in owner._categories:
                raise NotFoundError("category", category.id)
            stored = category.model_copy()
            owner._categories[stored.id] = stored
        owner._notify(ChangeEvent("category", "update", stored.id))
        return stored.model_copy()

    def delete_by_id(self, category_id: int) -> bool:
        owner = self._owner
        with owner._lock:
            if category_id not in owner._categories:
                return False
            if self._has_children_locked(category_id):
                raise HasChildrenError(category_id)

            del owner._categories[category_id]
            for txn_id, txn in owner._transactions.items():
                changes = {}
                if txn.category_id == category_id:
                    changes["category_id"] = None
                if txn.subcategory_id == category_id:
                    changes["subcategory_id"] = None
                if changes:
                    owner._transactions[txn_id] = txn.model_copy(update=changes)
        owner._notify(ChangeEvent("category", "delete", category_id))
        return True

    def by_id(self, category_id: int) -> Optional[Category]:
        with self._owner._lock:
            category = self._owner._categories.get(category_id)
            return category.model_copy() if category else None

    def roots(self) -> list[Category]:
        with self._owner._lock:
            found = [c.model_copy() for c in self._owner._categories.values() if c.parent_id is None]
        return sorted(found, key=category_sort_key)

    def children_of(self, parent_id: int) -> list[Category]:
        with self._owner._lock:
            found = [c.model_copy() for c in self._owner._categories.values() if c.parent_id == parent_id]
        return sorted(found, key=category_sort_key)

    def has_children(self, category_id: int) -> bool:
        with self._owner._lock:
            return self._has_children_locked(category_id)

    def all(self) -> list[Category]:
        with self._owner._lock:
            found = [c.model_copy() for c in self._owner._categories.values()]
        return sorted(found, key=category_sort_key)

    def _has_children_locked(self, category_id: int) -> bool:
        return any(c.parent_id == category_id for c in self._owner._categories.values())


class _MemoryAccountStore(AccountStore):

    def __init__(self, owner: "InMemoryLedgerStore"):
        self._owner = owner

    def insert(self, account: Account) -> Account:
        owner = self._owner
        with owner._lock:
            if account.is_default:
                self._clear_defaults_locked()
            stored = account.model_copy(update={"id": next(owner._account_ids)})
            owner._accounts[stored.id] = stored
        owner._notify(ChangeEvent("account", "insert", stored.id))
        return stored.model_copy()

    def update(self, account: Account) -> Account:
        owner = self._owner
        with owner._lock:
            if account.id not in owner._accounts:
                raise NotFoundError("account", account.id)
            if account.is_default:
                self._clear_defaults_locked()
            stored = account.model_copy()
            owner._accounts[stored.id] = stored
        owner._notify(ChangeEvent("account", "update", stored.id))
        return stored.model_copy()

    def delete_by_id(self, account_id: int) -> bool:
        owner = self._owner
        with owner._lock:
            if owner._accounts.pop(account_id, None) is None:
                return False
            for txn_id, txn in owner._transactions.items():
                changes = {}
                if txn.account_id == account_id:
                    changes["account_id"] = None
                if txn.to_account_id == account_id:
                    changes["to_account_id"] = None
                if changes:
                    owner._transactions[txn_id] = txn.model_copy(update=changes)
        owner._notify(ChangeEvent("account", "delete", account_id))
        return True

    def by_id(self, account_id: int) -> Optional[Account]:
        with self._owner._lock:
            account = self._owner._accounts.get(account_id)
            return account.model_copy() if account else None

    def default_account(self) -> Optional[Account]:
        with self._owner._lock:
            for account in self._owner._accounts.values():
                if account.is_default:
                    return account.model_copy()
        return None

    def all(self) -> list[Account]:
        with self._owner._lock:
            found = [a.model_copy() for a in self._owner._accounts.values()]
        return sorted(found, key=account_sort_key)

    def clear_all_defaults(self) -> None:
        with self._owner._lock:
            self._clear_defaults_locked()
        self._owner._notify(ChangeEvent("account", "update"))

    def promote_default(self, account_id: int) -> Optional[int]:
        owner = self._owner
        with owner._lock:
            target = owner._accounts.get(account_id)
            if target is None:
                raise NotFoundError("account", account_id)
            previous = self._clear_defaults_locked()
            owner._accounts[account_id] = target.model_copy(update={"is_default": True})
        owner._notify(ChangeEvent("account", "update", account_id))
        return previous

    def _clear_defaults_locked(self) -> Optional[int]:
        previous = None
        accounts = self._owner._accounts
        for account_id, account in accounts.items():
            if account.is_default:
                previous = account_id
                accounts[account_id] = account.model_copy(update={"is_default": False})
        return previous


class _MemoryTransactionStore(TransactionStore):

    def __init__(self, owner: "InMemoryLedgerStore"):
        self._owner = owner

    def insert(self, txn: Transaction) -> Transaction:
        owner = self._owner
        with owner._lock:
            stored = txn.model_copy(update={"id": next(owner._transaction_ids)})
            owner._transactions[stored.id] = stored
        owner._notify(ChangeEvent("transaction", "insert", stored.id))
        return stored.model_copy()

    def update(self, txn: Transaction) -> Transaction:
        owner = self._owner
        with owner._lock:
            if txn.id not in owner._transactions:
                raise NotFoundError("transaction", txn.id)
            stored = txn.model_copy()
            owner._transactions[stored.id] = stored
        owner._notify(ChangeEvent("transaction", "update", stored.id))
        return stored.model_copy()

    def delete_by_id(self, txn_id: int) -> bool:
        owner = self._owner
        with owner._lock:
            if owner._transactions.pop(txn_id, None) is None:
                return False
        owner._notify(ChangeEvent("transaction", "delete", txn_id))
        return True

    def by_id(self, txn_id: int) -> Optional[Transaction]:
        with self._owner._lock:
            txn = self._owner._transactions.get(txn_id)
            return txn.model_copy() if txn else None

    def by_date_range(self, start: date, end: date) -> list[Transaction]:
        with self._owner._lock:
            found = [
                t.model_copy() for t in self._owner._transactions.values()
                if start <= t.date <= end
            ]
        return sorted(found, key=transaction_sort_key, reverse=True)

    def all(self) -> list[Transaction]:
        with self._owner._lock:
            found = [t.model_copy() for t in self._owner._transactions.values()]
        return sorted(found, key=transaction_sort_key, reverse=True)

    def uses_category(self, category_id: int) -> bool:
        with self._owner._lock:
            return any(
                category_id in (t.category_id, t.subcategory_id)
                for t in self._owner._transactions.values()
            )


class InMemoryLedgerStore(LedgerStore):
    """Thread-safe in-memory ledger store."""

    def __init__(self):
        super().__init__()
        self._categories: dict[int, Category] = {}
        self._accounts: dict[int, Account] = {}
        self._transactions: dict[int, Transaction] = {}
        self._category_ids = itertools.count(1)
        self._account_ids = itertools.count(1)
        self._transaction_ids = itertools.count(1)

        self._category_store = _MemoryCategoryStore(self)
        self._account_store = _MemoryAccountStore(self)
        self._transaction_store = _MemoryTransactionStore(self)

    @property
    def categories(self) -> CategoryStore:
        return self._category_store

    @property
    def accounts(self) -> AccountStore:
        return self._account_store

    @property
    def transactions(self) -> TransactionStore:
        return self._transaction_store


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self._events: list[AuditEvent] = []
        self._lock = threading.Lock()

    def append_event(self, event: AuditEvent) -> bool:
        with self._lock:
            self._events.append(event)
        return True

    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: int,
    ) -> list[AuditEvent]:
        with self._lock:
            return [
                e for e in self._events
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        with self._lock:
            return list(reversed(self._events))[:limit]
