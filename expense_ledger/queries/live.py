"""
Live Queries

A LiveQuery holds the latest result of a computation over the ledger and
recomputes it whenever the store reports a committed change. Observers
are called with each fresh snapshot.

Snapshots are eventually consistent: a reader may see the value from
just before a concurrent mutation, never a half-applied one.
"""

import threading
from typing import Callable, Generic, Iterable, Optional, TypeVar

import structlog

from expense_ledger.services.storage import ChangeEvent, LedgerStore


logger = structlog.get_logger(__name__)

T = TypeVar("T")


class LiveQuery(Generic[T]):
    """
    A recomputing snapshot of one query.

    Usage:
        total = LiveQuery(store, ledger.accounts.total_balance)
        stop = total.observe(lambda value: print(value))
        ...
        total.close()
    """

    def __init__(
        self,
        store: LedgerStore,
        compute: Callable[[], T],
        entities: Optional[Iterable[str]] = None,
    ):
        """
        Args:
            store: Store whose changes trigger recomputation
            compute: Zero-argument function producing the snapshot
            entities: Only recompute for changes to these entity kinds
                      ('category', 'account', 'transaction'); all if None
        """
        self._compute = compute
        self._entities = frozenset(entities) if entities is not None else None
        self._lock = threading.Lock()
        self._refresh_lock = threading.RLock()
        self._observers: list[Callable[[T], None]] = []
        self._value: T = compute()
        self._unsubscribe = store.subscribe(self._on_change)
        self._closed = False

    @property
    def value(self) -> T:
        """Latest snapshot."""
        with self._lock:
            return self._value

    def observe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """
        Call callback with the current snapshot now and on every change.

        Returns:
            A function that stops the callbacks
        """
        with self._lock:
            self._observers.append(callback)
            current = self._value
        callback(current)

        def stop() -> None:
            with self._lock:
                if callback in self._observers:
                    self._observers.remove(callback)

        return stop

    def refresh(self) -> T:
        """
        Recompute now and notify observers.

        Refreshes run one at a time, so the stored snapshot always comes
        from the most recent computation.
        """
        with self._refresh_lock:
            value = self._compute()
            with self._lock:
                self._value = value
                observers = list(self._observers)
            for observer in observers:
                observer(value)
        return value

    def close(self) -> None:
        """Stop listening to the store. The last snapshot stays readable."""
        if not self._closed:
            self._unsubscribe()
            self._closed = True

    def _on_change(self, event: ChangeEvent) -> None:
        if self._entities is not None and event.entity not in self._entities:
            return
        try:
            self.refresh()
        except Exception:
            # The mutation already committed; keep the previous snapshot
            logger.exception(
                "live_query_refresh_failed",
                entity=event.entity,
                action=event.action,
                entity_id=event.entity_id,
            )
