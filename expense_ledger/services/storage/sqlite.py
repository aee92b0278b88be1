"""
SQLite Storage Implementation

Persists the ledger to a single SQLite file using the standard library
driver.

DESIGN DECISION: One connection, one lock.
SQLite serialises writers anyway; holding a single connection behind a
re-entrant lock gives us the same guarantees as the in-memory store:
- every mutation (including the cross-table reference clearing on delete)
  runs inside one transaction
- promote_default clears and sets the default inside one transaction
- listeners fire after commit, outside the lock

Money is stored as TEXT so Decimal values round-trip exactly.
Writes that hit "database is locked" are retried with backoff.
"""

import sqlite3
from datetime import date
from pathlib import Path
from typing import Any, Callable, Optional, Union

import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from expense_ledger.errors import HasChildrenError
from expense_ledger.models.entities import Account, Category, Transaction
from expense_ledger.services.storage.interface import (
    AccountStore,
    CategoryStore,
    ChangeEvent,
    LedgerStore,
    NotFoundError,
    StorageError,
    TransactionStore,
    account_sort_key,
    category_sort_key,
    transaction_sort_key,
)


logger = structlog.get_logger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS categories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    icon TEXT NOT NULL,
    color_value INTEGER NOT NULL,
    is_default INTEGER NOT NULL DEFAULT 0,
    parent_id INTEGER,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS accounts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    type TEXT NOT NULL,
    icon TEXT NOT NULL,
    color_value INTEGER NOT NULL,
    initial_balance TEXT NOT NULL,
    is_default INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    amount TEXT NOT NULL,
    note TEXT NOT NULL DEFAULT '',
    category_id INTEGER,
    subcategory_id INTEGER,
    account_id INTEGER,
    to_account_id INTEGER,
    type TEXT NOT NULL,
    date TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_categories_parent ON categories(parent_id);
CREATE INDEX IF NOT EXISTS idx_transactions_date ON transactions(date);
"""

CATEGORY_COLUMNS = ("name", "icon", "color_value", "is_default", "parent_id", "created_at")
ACCOUNT_COLUMNS = ("name", "type", "icon", "color_value", "initial_balance", "is_default", "created_at")
TRANSACTION_COLUMNS = (
    "amount", "note", "category_id", "subcategory_id",
    "account_id", "to_account_id", "type", "date", "created_at",
)


def _to_row(model: Union[Category, Account, Transaction], columns: tuple[str, ...]) -> list[Any]:
    """Flatten a model into column values in the given order."""
    data = model.model_dump(mode="json")
    values = []
    for column in columns:
        value = data[column]
        if isinstance(value, bool):
            value = int(value)
        values.append(value)
    return values


class _SQLiteCategoryStore(CategoryStore):

    def __init__(self, owner: "SQLiteLedgerStore"):
        self._owner = owner

    def insert(self, category: Category) -> Category:
        def work(conn: sqlite3.Connection) -> int:
            cursor = conn.execute(
                f"INSERT INTO categories ({', '.join(CATEGORY_COLUMNS)}) VALUES (?, ?, ?, ?, ?, ?)",
                _to_row(category, CATEGORY_COLUMNS),
            )
            return cursor.lastrowid

        new_id = self._owner._write(work)
        self._owner._notify(ChangeEvent("category", "insert", new_id))
        return category.model_copy(update={"id": new_id})

    def update(self, category: Category) -> Category:
        def work(conn: sqlite3.Connection) -> None:
            assignments = ", ".join(f"{c} = ?" for c in CATEGORY_COLUMNS)
            cursor = conn.execute(
                f"UPDATE categories SET {assignments} WHERE id = ?",
                [*_to_row(category, CATEGORY_COLUMNS), category.id],
            )
            if cursor.rowcount == 0:
                raise NotFoundError("category", category.id)

        self._owner._write(work)
        self._owner._notify(ChangeEvent("category", "update", category.id))
        return category.model_copy()

    def delete_by_id(self, category_id: int) -> bool:
        def work(conn: sqlite3.Connection) -> bool:
            child = conn.execute(
                "SELECT 1 FROM categories WHERE parent_id = ? LIMIT 1", (category_id,)
            ).fetchone()
            if child is not None:
                raise HasChildrenError(category_id)
            cursor = conn.execute("DELETE FROM categories WHERE id = ?", (category_id,))
            if cursor.rowcount == 0:
                return False
            conn.execute(
                "UPDATE transactions SET category_id = NULL WHERE category_id = ?",
                (category_id,),
            )
            conn.execute(
                "UPDATE transactions SET subcategory_id = NULL WHERE subcategory_id = ?",
                (category_id,),
            )
            return True

        deleted = self._owner._write(work)
        if deleted:
            self._owner._notify(ChangeEvent("category", "delete", category_id))
        return deleted

    def by_id(self, category_id: int) -> Optional[Category]:
        rows = self._owner._read("SELECT * FROM categories WHERE id = ?", (category_id,))
        return Category.model_validate(dict(rows[0])) if rows else None

    def roots(self) -> list[Category]:
        return self._select("SELECT * FROM categories WHERE parent_id IS NULL")

    def children_of(self, parent_id: int) -> list[Category]:
        return self._select("SELECT * FROM categories WHERE parent_id = ?", (parent_id,))

    def has_children(self, category_id: int) -> bool:
        rows = self._owner._read(
            "SELECT 1 FROM categories WHERE parent_id = ? LIMIT 1", (category_id,)
        )
        return bool(rows)

    def all(self) -> list[Category]:
        return self._select("SELECT * FROM categories")

    def _select(self, sql: str, params: tuple = ()) -> list[Category]:
        rows = self._owner._read(sql, params)
        return sorted(
            (Category.model_validate(dict(row)) for row in rows),
            key=category_sort_key,
        )


class _SQLiteAccountStore(AccountStore):

    def __init__(self, owner: "SQLiteLedgerStore"):
        self._owner = owner

    def insert(self, account: Account) -> Account:
        def work(conn: sqlite3.Connection) -> int:
            if account.is_default:
                conn.execute("UPDATE accounts SET is_default = 0 WHERE is_default = 1")
            cursor = conn.execute(
                f"INSERT INTO accounts ({', '.join(ACCOUNT_COLUMNS)}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                _to_row(account, ACCOUNT_COLUMNS),
            )
            return cursor.lastrowid

        new_id = self._owner._write(work)
        self._owner._notify(ChangeEvent("account", "insert", new_id))
        return account.model_copy(update={"id": new_id})

    def update(self, account: Account) -> Account:
        def work(conn: sqlite3.Connection) -> None:
            exists = conn.execute("SELECT 1 FROM accounts WHERE id = ?", (account.id,)).fetchone()
            if exists is None:
                raise NotFoundError("account", account.id)
            if account.is_default:
                conn.execute(
                    "UPDATE accounts SET is_default = 0 WHERE is_default = 1 AND id != ?",
                    (account.id,),
                )
            assignments = ", ".join(f"{c} = ?" for c in ACCOUNT_COLUMNS)
            conn.execute(
                f"UPDATE accounts SET {assignments} WHERE id = ?",
                [*_to_row(account, ACCOUNT_COLUMNS), account.id],
            )

        self._owner._write(work)
        self._owner._notify(ChangeEvent("account", "update", account.id))
        return account.model_copy()

    def delete_by_id(self, account_id: int) -> bool:
        def work(conn: sqlite3.Connection) -> bool:
            cursor = conn.execute("DELETE FROM accounts WHERE id = ?", (account_id,))
            if cursor.rowcount == 0:
                return False
            conn.execute(
                "UPDATE transactions SET account_id = NULL WHERE account_id = ?",
                (account_id,),
            )
            conn.execute(
                "UPDATE transactions SET to_account_id = NULL WHERE to_account_id = ?",
                (account_id,),
            )
            return True

        deleted = self._owner._write(work)
        if deleted:
            self._owner._notify(ChangeEvent("account", "delete", account_id))
        return deleted

    def by_id(self, account_id: int) -> Optional[Account]:
        rows = self._owner._read("SELECT * FROM accounts WHERE id = ?", (account_id,))
        return Account.model_validate(dict(rows[0])) if rows else None

    def default_account(self) -> Optional[Account]:
        rows = self._owner._read("SELECT * FROM accounts WHERE is_default = 1 LIMIT 1")
        return Account.model_validate(dict(rows[0])) if rows else None

    def all(self) -> list[Account]:
        rows = self._owner._read("SELECT * FROM accounts")
        return sorted(
            (Account.model_validate(dict(row)) for row in rows),
            key=account_sort_key,
        )

    def clear_all_defaults(self) -> None:
        self._owner._write(
            lambda conn: conn.execute("UPDATE accounts SET is_default = 0 WHERE is_default = 1")
        )
        self._owner._notify(ChangeEvent("account", "update"))

    def promote_default(self, account_id: int) -> Optional[int]:
        def work(conn: sqlite3.Connection) -> Optional[int]:
            exists = conn.execute("SELECT 1 FROM accounts WHERE id = ?", (account_id,)).fetchone()
            if exists is None:
                raise NotFoundError("account", account_id)
            previous = conn.execute(
                "SELECT id FROM accounts WHERE is_default = 1 LIMIT 1"
            ).fetchone()
            conn.execute("UPDATE accounts SET is_default = 0 WHERE is_default = 1")
            conn.execute("UPDATE accounts SET is_default = 1 WHERE id = ?", (account_id,))
            return previous["id"] if previous is not None else None

        previous_id = self._owner._write(work)
        self._owner._notify(ChangeEvent("account", "update", account_id))
        return previous_id


class _SQLiteTransactionStore(TransactionStore):

    def __init__(self, owner: "SQLiteLedgerStore"):
        self._owner = owner

    def insert(self, txn: Transaction) -> Transaction:
        def work(conn: sqlite3.Connection) -> int:
            cursor = conn.execute(
                f"INSERT INTO transactions ({', '.join(TRANSACTION_COLUMNS)}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                _to_row(txn, TRANSACTION_COLUMNS),
            )
            return cursor.lastrowid

        new_id = self._owner._write(work)
        self._owner._notify(ChangeEvent("transaction", "insert", new_id))
        return txn.model_copy(update={"id": new_id})

    def update(self, txn: Transaction) -> Transaction:
        def work(conn: sqlite3.Connection) -> None:
            assignments = ", ".join(f"{c} = ?" for c in TRANSACTION_COLUMNS)
            cursor = conn.execute(
                f"UPDATE transactions SET {assignments} WHERE id = ?",
                [*_to_row(txn, TRANSACTION_COLUMNS), txn.id],
            )
            if cursor.rowcount == 0:
                raise NotFoundError("transaction", txn.id)

        self._owner._write(work)
        self._owner._notify(ChangeEvent("transaction", "update", txn.id))
        return txn.model_copy()

    def delete_by_id(self, txn_id: int) -> bool:
        deleted = self._owner._write(
            lambda conn: conn.execute(
                "DELETE FROM transactions WHERE id = ?", (txn_id,)
            ).rowcount > 0
        )
        if deleted:
            self._owner._notify(ChangeEvent("transaction", "delete", txn_id))
        return deleted

    def by_id(self, txn_id: int) -> Optional[Transaction]:
        rows = self._owner._read("SELECT * FROM transactions WHERE id = ?", (txn_id,))
        return Transaction.model_validate(dict(rows[0])) if rows else None

    def by_date_range(self, start: date, end: date) -> list[Transaction]:
        return self._select(
            "SELECT * FROM transactions WHERE date BETWEEN ? AND ?",
            (start.isoformat(), end.isoformat()),
        )

    def all(self) -> list[Transaction]:
        return self._select("SELECT * FROM transactions")

    def uses_category(self, category_id: int) -> bool:
        rows = self._owner._read(
            "SELECT 1 FROM transactions WHERE category_id = ? OR subcategory_id = ? LIMIT 1",
            (category_id, category_id),
        )
        return bool(rows)

    def _select(self, sql: str, params: tuple = ()) -> list[Transaction]:
        rows = self._owner._read(sql, params)
        return sorted(
            (Transaction.model_validate(dict(row)) for row in rows),
            key=transaction_sort_key,
            reverse=True,
        )


class SQLiteLedgerStore(LedgerStore):
    """
    Ledger store backed by a SQLite database file.

    Pass ":memory:" as the path for a throwaway database.
    """

    def __init__(self, path: Union[str, Path], timeout: float = 30.0):
        super().__init__()
        self._path = str(path)
        try:
            self._conn = sqlite3.connect(
                self._path,
                timeout=timeout,
                check_same_thread=False,
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(SCHEMA)
            self._conn.commit()
        except sqlite3.Error as e:
            logger.error("sqlite_open_failed", path=self._path, error=str(e))
            raise StorageError(f"Could not open database {self._path}: {e}") from e

        logger.info("sqlite_store_opened", path=self._path)

        self._category_store = _SQLiteCategoryStore(self)
        self._account_store = _SQLiteAccountStore(self)
        self._transaction_store = _SQLiteTransactionStore(self)

    @property
    def categories(self) -> CategoryStore:
        return self._category_store

    @property
    def accounts(self) -> AccountStore:
        return self._account_store

    @property
    def transactions(self) -> TransactionStore:
        return self._transaction_store

    def close(self) -> None:
        with self._lock:
            self._conn.close()
        logger.info("sqlite_store_closed", path=self._path)

    @retry(
        retry=retry_if_exception_type(sqlite3.OperationalError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        reraise=True,
    )
    def _run_in_transaction(self, work: Callable[[sqlite3.Connection], Any]) -> Any:
        with self._lock:
            try:
                result = work(self._conn)
                self._conn.commit()
            except BaseException:
                self._conn.rollback()
                raise
        return result

    def _write(self, work: Callable[[sqlite3.Connection], Any]) -> Any:
        """
        Run a mutation in one transaction.

        Ledger errors raised by the work function (NotFoundError,
        HasChildrenError) pass through unchanged after rollback.

        Raises:
            StorageError: If the driver fails after retries
        """
        try:
            return self._run_in_transaction(work)
        except sqlite3.Error as e:
            logger.error("sqlite_write_failed", path=self._path, error=str(e))
            raise StorageError(f"Database write failed: {e}") from e

    def _read(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        try:
            with self._lock:
                return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            logger.error("sqlite_read_failed", path=self._path, error=str(e))
            raise StorageError(f"Database read failed: {e}") from e
