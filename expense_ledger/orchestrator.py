"""
Main Orchestrator for the Expense Ledger

This module ties together all the components and defines the
entry points for:
1. Ledger mutations (categories, accounts, transactions)
2. Guided entry (draft -> validate -> commit)
3. Reports and live balance snapshots

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches a store without validation
- Balances are derived, never stored
- Every mutation is audited

This is the "glue" that wires one store into every component so they
all observe the same data.
"""

from typing import Optional

from expense_ledger.audit import AuditLogger, configure_logging
from expense_ledger.config import LedgerSettings, get_settings
from expense_ledger.entry import GuidedEntry
from expense_ledger.ledger import AccountLedger, CategoryTree, TransactionLog
from expense_ledger.models.entities import TransactionType
from expense_ledger.models.reports import AccountWithBalance, MonthlyReport
from expense_ledger.queries import LiveQuery, ReportService
from expense_ledger.services.storage import (
    AuditStorageInterface,
    InMemoryLedgerStore,
    LedgerStore,
    SQLiteLedgerStore,
    StorageError,
)
from expense_ledger.validation import TransactionValidator


class Ledger:
    """
    One ledger over one store.

    Components:
    - categories: CategoryTree
    - accounts: AccountLedger
    - transactions: TransactionLog
    - reports: ReportService
    """

    def __init__(
        self,
        store: LedgerStore,
        settings: Optional[LedgerSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._settings = settings or get_settings()
        self._audit = audit_logger or AuditLogger()

        self.validator = TransactionValidator(store.categories, store.accounts, self._settings)
        self.categories = CategoryTree(store, self._audit)
        self.accounts = AccountLedger(store, self._audit)
        self.transactions = TransactionLog(store, self.validator, self._audit)
        self.reports = ReportService(self.categories, self.accounts, self.transactions)

    @property
    def store(self) -> LedgerStore:
        return self._store

    def seed_defaults(self) -> tuple[int, int]:
        """
        Create default categories and the Cash account on an empty ledger.

        Returns:
            (categories_created, accounts_created)
        """
        try:
            categories_created = self.categories.seed_defaults()
            accounts_created = 1 if self.accounts.ensure_default_account() else 0
        except StorageError as e:
            self._audit.log_error("seed_failed", str(e))
            raise

        if categories_created or accounts_created:
            self._audit.log_defaults_seeded(categories_created, accounts_created)
        return categories_created, accounts_created

    # =========================================================================
    # Guided entry
    # =========================================================================

    def _entry(self) -> GuidedEntry:
        return GuidedEntry(self.categories, self.accounts, self.transactions, self._audit)

    def new_entry(self, txn_type: TransactionType = TransactionType.EXPENSE) -> GuidedEntry:
        entry = self._entry()
        entry.new(txn_type)
        return entry

    def edit_entry(self, txn_id: int) -> GuidedEntry:
        entry = self._entry()
        entry.edit(txn_id)
        return entry

    def copy_entry(self, txn_id: int, use_today: bool = False) -> GuidedEntry:
        entry = self._entry()
        entry.copy_of(txn_id, use_today=use_today)
        return entry

    # =========================================================================
    # Live snapshots
    # =========================================================================

    def watch_total_balance(self) -> LiveQuery:
        return LiveQuery(
            self._store,
            self.accounts.total_balance,
            entities=("account", "transaction"),
        )

    def watch_balance(self, account_id: int) -> LiveQuery:
        """
        Live balance of one account.

        Raises:
            NotFoundError: If the account does not exist
        """
        return LiveQuery(
            self._store,
            lambda: self.accounts.balance_of(account_id),
            entities=("account", "transaction"),
        )

    def watch_accounts(self) -> "LiveQuery[list[AccountWithBalance]]":
        return LiveQuery(
            self._store,
            self.accounts.accounts_with_balances,
            entities=("account", "transaction"),
        )

    def watch_monthly_report(self, year: int, month: int) -> "LiveQuery[MonthlyReport]":
        return LiveQuery(self._store, lambda: self.reports.monthly_report(year, month))

    def close(self) -> None:
        self._store.close()


def open_store(settings: LedgerSettings) -> LedgerStore:
    """Open the store backend named in settings."""
    if settings.storage_backend == "sqlite":
        return SQLiteLedgerStore(settings.database_path, timeout=settings.sqlite_timeout_seconds)
    return InMemoryLedgerStore()


def create_ledger(
    settings: Optional[LedgerSettings] = None,
    store: Optional[LedgerStore] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
    configure_logs: bool = False,
) -> Ledger:
    """
    Factory function to create a ready-to-use ledger.

    Args:
        settings: Settings to use; loaded from the environment if None
        store: Store to use; opened from settings if None
        audit_storage: Where audit events are persisted, if anywhere
        configure_logs: Configure structlog from settings first

    Returns:
        A Ledger, seeded with defaults when settings.seed_defaults is set
    """
    settings = settings or get_settings()
    if configure_logs:
        configure_logging(settings.log_level, settings.log_json)

    ledger = Ledger(
        store=store or open_store(settings),
        settings=settings,
        audit_logger=AuditLogger(audit_storage),
    )

    if settings.seed_defaults:
        ledger.seed_defaults()

    return ledger
