"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep an in-memory store for tests and short-lived sessions
2. Persist to SQLite without touching ledger logic
3. Keep business logic decoupled from storage implementation

The interface is intentionally narrow. Stores assume their inputs already
satisfy the entity invariants: validation happens in the ledger layer before
a store is touched. The two exceptions are the ones that need the store's
own lock to be correct:
- deleting a category re-checks for children inside the same critical section
- changing the default account clears and sets in one atomic operation

All three stores of one LedgerStore share a single lock, so cross-entity
effects (clearing transaction references when an account or category is
deleted) are applied atomically with the delete itself. Callers that must
check and then write (validation against references, category moves) wrap
both in LedgerStore.locked().
"""

import threading
from contextlib import contextmanager
from abc import ABC, abstractmethod
from datetime import date
from typing import Callable, Iterator, NamedTuple, Optional

from expense_ledger.errors import LedgerError
from expense_ledger.models.audit import AuditEvent
from expense_ledger.models.entities import Account, Category, Transaction


# =============================================================================
# CHANGE NOTIFICATION
# =============================================================================

class ChangeEvent(NamedTuple):
    """Describes one committed mutation."""
    entity: str
    action: str
    entity_id: Optional[int] = None


ChangeListener = Callable[[ChangeEvent], None]


# =============================================================================
# ORDERING CONTRACTS
# =============================================================================

def category_sort_key(category: Category) -> tuple:
    """Defaults first, then name (case-insensitive), then id."""
    return (not category.is_default, category.name.casefold(), category.id or 0)


def account_sort_key(account: Account) -> tuple:
    """Defaults first, then name (case-insensitive), then id."""
    return (not account.is_default, account.name.casefold(), account.id or 0)


def transaction_sort_key(txn: Transaction) -> tuple:
    """Ascending key; sort with reverse=True for newest first."""
    return (txn.date, txn.created_at, txn.id or 0)


# =============================================================================
# ENTITY STORES
# =============================================================================

class CategoryStore(ABC):
    """Storage contract for the category tree."""

    @abstractmethod
    def insert(self, category: Category) -> Category:
        """
        Insert a new category.

        Args:
            category: Category with id=None

        Returns:
            The stored category with its assigned id
        """
        pass

    @abstractmethod
    def update(self, category: Category) -> Category:
        """
        Replace a stored category.

        Raises:
            NotFoundError: If no category has this id
        """
        pass

    @abstractmethod
    def delete_by_id(self, category_id: int) -> bool:
        """
        Delete a childless category.

        Transactions referencing it as category or subcategory have
        that reference cleared; they are never deleted.

        Returns:
            True if a category was deleted, False if none had this id

        Raises:
            HasChildrenError: If the category has subcategories
        """
        pass

    @abstractmethod
    def by_id(self, category_id: int) -> Optional[Category]:
        pass

    @abstractmethod
    def roots(self) -> list[Category]:
        """Top-level categories in listing order."""
        pass

    @abstractmethod
    def children_of(self, parent_id: int) -> list[Category]:
        """Subcategories of a root in listing order."""
        pass

    @abstractmethod
    def has_children(self, category_id: int) -> bool:
        pass

    @abstractmethod
    def all(self) -> list[Category]:
        pass


class AccountStore(ABC):
    """Storage contract for accounts."""

    @abstractmethod
    def insert(self, account: Account) -> Account:
        """
        Insert a new account.

        If the account is marked default, any previous default is
        cleared in the same operation.
        """
        pass

    @abstractmethod
    def update(self, account: Account) -> Account:
        """
        Replace a stored account.

        Raises:
            NotFoundError: If no account has this id
        """
        pass

    @abstractmethod
    def delete_by_id(self, account_id: int) -> bool:
        """
        Delete an account.

        Transactions referencing it through account_id or to_account_id
        have that reference cleared.
        """
        pass

    @abstractmethod
    def by_id(self, account_id: int) -> Optional[Account]:
        pass

    @abstractmethod
    def default_account(self) -> Optional[Account]:
        pass

    @abstractmethod
    def all(self) -> list[Account]:
        pass

    @abstractmethod
    def clear_all_defaults(self) -> None:
        pass

    @abstractmethod
    def promote_default(self, account_id: int) -> Optional[int]:
        """
        Make one account the only default, atomically.

        Returns:
            The id of the previous default, if any

        Raises:
            NotFoundError: If no account has this id
        """
        pass


class TransactionStore(ABC):
    """Storage contract for the transaction log."""

    @abstractmethod
    def insert(self, txn: Transaction) -> Transaction:
        pass

    @abstractmethod
    def update(self, txn: Transaction) -> Transaction:
        """
        Replace a stored transaction.

        Raises:
            NotFoundError: If no transaction has this id
        """
        pass

    @abstractmethod
    def delete_by_id(self, txn_id: int) -> bool:
        pass

    @abstractmethod
    def by_id(self, txn_id: int) -> Optional[Transaction]:
        pass

    @abstractmethod
    def by_date_range(self, start: date, end: date) -> list[Transaction]:
        """
        Transactions dated within [start, end], both bounds inclusive.

        Ordered by date desc, created_at desc, id desc.
        """
        pass

    @abstractmethod
    def all(self) -> list[Transaction]:
        """Every transaction, newest first."""
        pass

    @abstractmethod
    def uses_category(self, category_id: int) -> bool:
        """True if any transaction has this category or subcategory."""
        pass


# =============================================================================
# LEDGER STORE
# =============================================================================

class LedgerStore(ABC):
    """
    The three entity stores plus change subscription.

    Listeners are called after a mutation has been committed and the
    store lock has been released, so a listener may read from the store.
    Changes made inside locked() are delivered when the outermost
    locked() block exits.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._scope = threading.local()
        self._listeners: list[ChangeListener] = []
        self._listeners_lock = threading.Lock()

    @property
    @abstractmethod
    def categories(self) -> CategoryStore:
        pass

    @property
    @abstractmethod
    def accounts(self) -> AccountStore:
        pass

    @property
    @abstractmethod
    def transactions(self) -> TransactionStore:
        pass

    def close(self) -> None:
        """Release backend resources. No-op by default."""
        pass

    @contextmanager
    def locked(self) -> Iterator[None]:
        """
        Hold the store lock across several calls.

        No other thread can mutate or read the store inside the block,
        so a check followed by a write sees no interleaved change.
        Nested use on the same thread is allowed.
        """
        pending: list[ChangeEvent] = []
        try:
            with self._lock:
                depth = getattr(self._scope, "depth", 0)
                if depth == 0:
                    self._scope.pending = []
                self._scope.depth = depth + 1
                try:
                    yield
                finally:
                    self._scope.depth = depth
                    if depth == 0:
                        pending = self._scope.pending
        finally:
            # committed changes are reported even when the block raised
            for event in pending:
                self._dispatch(event)

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """
        Register a callback fired after every committed mutation.

        Returns:
            A function that removes the listener when called
        """
        with self._listeners_lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._listeners_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: ChangeEvent) -> None:
        if getattr(self._scope, "depth", 0) > 0:
            self._scope.pending.append(event)
            return
        self._dispatch(event)

    def _dispatch(self, event: ChangeEvent) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(event)


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Args:
            event: The audit event to log

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: int,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Args:
            entity_type: Type of entity (e.g., 'account', 'transaction')
            entity_id: The entity's ID

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Args:
            limit: Maximum number of events to return

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(LedgerError):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""

    def __init__(self, entity: str, entity_id: Optional[int]):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} {entity_id} no longer exists")
