"""
Shared fixtures.

Every ledger built here uses an in-memory store, no .env file and no
seeded defaults, so each test starts from an empty ledger.
"""

from datetime import date
from decimal import Decimal

import pytest

from expense_ledger import Ledger, create_ledger
from expense_ledger.config import LedgerSettings
from expense_ledger.models import Account, AccountType, Category, Transaction, TransactionType
from expense_ledger.services.storage import InMemoryAuditStorage, InMemoryLedgerStore


@pytest.fixture
def settings() -> LedgerSettings:
    return LedgerSettings(_env_file=None, seed_defaults=False)


@pytest.fixture
def store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def ledger(settings, store, audit_storage) -> Ledger:
    return create_ledger(settings=settings, store=store, audit_storage=audit_storage)


@pytest.fixture
def cash(ledger) -> Account:
    return ledger.accounts.create(Account(
        name="Cash",
        type=AccountType.CASH,
        initial_balance=Decimal("100"),
        is_default=True,
    ))


@pytest.fixture
def bank(ledger) -> Account:
    return ledger.accounts.create(Account(name="Bank", type=AccountType.BANK))


@pytest.fixture
def food(ledger) -> Category:
    """A root category with two subcategories."""
    return ledger.categories.create(Category(name="Food"))


@pytest.fixture
def groceries(ledger, food) -> Category:
    return ledger.categories.create(Category(name="Groceries", parent_id=food.id))


@pytest.fixture
def restaurants(ledger, food) -> Category:
    return ledger.categories.create(Category(name="Restaurants", parent_id=food.id))


@pytest.fixture
def salary(ledger) -> Category:
    """A root category without subcategories."""
    return ledger.categories.create(Category(name="Salary"))


def make_txn(
    amount: str,
    txn_type: TransactionType = TransactionType.EXPENSE,
    on: date = date(2026, 3, 10),
    **fields,
) -> Transaction:
    """Build an unsaved transaction with sensible defaults."""
    return Transaction(amount=Decimal(amount), type=txn_type, date=on, **fields)
