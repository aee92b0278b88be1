"""
Tests for store change notifications and live queries.
"""

import threading
import time

import pytest
from decimal import Decimal

from conftest import make_txn
from expense_ledger.models import Account, Category, TransactionType
from expense_ledger.queries import LiveQuery
from expense_ledger.services.storage import ChangeEvent


class TestSubscriptions:
    """Tests for LedgerStore.subscribe."""

    def test_listener_receives_committed_changes(self, ledger, store):
        """Test that each mutation is reported once."""
        events = []
        store.subscribe(events.append)

        account = ledger.accounts.create(Account(name="Cash"))
        ledger.transactions.insert(make_txn("1", account_id=account.id))

        assert [e.entity for e in events] == ["account", "transaction"]
        assert events[0] == ChangeEvent("account", "insert", account.id)

    def test_unsubscribe(self, ledger, store):
        """Test that an unsubscribed listener is not called."""
        events = []
        unsubscribe = store.subscribe(events.append)
        unsubscribe()

        ledger.categories.create(Category(name="Food"))
        assert events == []

    def test_listener_can_read_the_store(self, ledger, store):
        """Test that listeners run after the lock is released and see the change."""
        seen = []
        store.subscribe(lambda event: seen.append(len(store.categories.all())))

        ledger.categories.create(Category(name="Food"))
        assert seen == [1]

    def test_cascading_delete_is_one_change(self, ledger, store, cash):
        """Test that deleting an account emits one event."""
        ledger.transactions.insert(make_txn("1", account_id=cash.id))
        events = []
        store.subscribe(events.append)

        ledger.accounts.delete(cash.id)
        assert events == [ChangeEvent("account", "delete", cash.id)]


class TestLiveQuery:
    """Tests for recomputing snapshots."""

    def test_total_balance_follows_transactions(self, ledger, cash):
        """Test that the snapshot updates on each change."""
        live = ledger.watch_total_balance()
        seen = []
        live.observe(seen.append)

        ledger.transactions.insert(make_txn("50", TransactionType.INCOME, account_id=cash.id))
        ledger.transactions.insert(make_txn("20", TransactionType.EXPENSE, account_id=cash.id))

        assert live.value == Decimal("130")
        assert seen == [Decimal("100"), Decimal("150"), Decimal("130")]

    def test_entity_filter(self, ledger, store, cash):
        """Test that unrelated changes do not recompute."""
        calls = []

        def compute():
            calls.append(1)
            return len(calls)

        live = LiveQuery(store, compute, entities=("transaction",))
        ledger.categories.create(Category(name="Food"))
        assert live.value == 1

        ledger.transactions.insert(make_txn("1", account_id=cash.id))
        assert live.value == 2

    def test_close_stops_updates(self, ledger, cash):
        """Test that a closed query keeps its last value."""
        live = ledger.watch_balance(cash.id)
        live.close()

        ledger.transactions.insert(make_txn("1", account_id=cash.id))
        assert live.value == Decimal("100")

    def test_failed_refresh_keeps_previous_snapshot(self, ledger, cash):
        """Test that a query whose subject disappears keeps its last value."""
        live = ledger.watch_balance(cash.id)
        ledger.accounts.delete(cash.id)
        assert live.value == Decimal("100")

    def test_stop_observing(self, ledger, cash):
        """Test removing an observer."""
        live = ledger.watch_accounts()
        seen = []
        stop = live.observe(seen.append)
        stop()

        ledger.transactions.insert(make_txn("1", account_id=cash.id))
        assert len(seen) == 1
        assert live.value[0].current_balance == Decimal("99")


class TestConcurrentRefresh:
    """Tests for refreshes triggered from several threads."""

    def test_slow_refresh_does_not_overwrite_newer_snapshot(self, ledger, store, cash):
        """Test that an older computation finishing late never wins."""
        stalled = threading.Event()
        release = threading.Event()
        calls = []

        def compute():
            calls.append(1)
            value = ledger.accounts.total_balance()
            if len(calls) == 2:
                stalled.set()
                release.wait(timeout=5)
            return value

        live = LiveQuery(store, compute, entities=("transaction",))

        first = threading.Thread(
            target=ledger.transactions.insert,
            args=(make_txn("10", TransactionType.INCOME, account_id=cash.id),),
        )
        second = threading.Thread(
            target=ledger.transactions.insert,
            args=(make_txn("5", TransactionType.INCOME, account_id=cash.id),),
        )

        first.start()
        assert stalled.wait(timeout=5)
        second.start()
        deadline = time.monotonic() + 5
        while len(store.transactions.all()) < 2 and time.monotonic() < deadline:
            time.sleep(0.01)
        release.set()
        first.join(timeout=5)
        second.join(timeout=5)

        assert ledger.accounts.total_balance() == Decimal("115")
        assert live.value == Decimal("115")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
