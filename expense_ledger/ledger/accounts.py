"""
Account Ledger

Accounts store only their opening balance. The current balance of an
account is always derived from the transaction log:

    balance = initial + income - expense - transfers out + transfers in

DESIGN DECISION: The total across all accounts skips transfer terms.
Every transfer debits one account in the set and credits another, so the
terms cancel exactly. That shortcut is only valid for the total and is
never used for a single account.
"""

from decimal import Decimal
from typing import Iterable, Optional

from expense_ledger.audit import AuditLogger
from expense_ledger.models.audit import AuditEventType
from expense_ledger.models.entities import (
    DEFAULT_ACCOUNT,
    Account,
    Transaction,
    TransactionType,
)
from expense_ledger.models.reports import AccountWithBalance
from expense_ledger.services.storage import LedgerStore, NotFoundError
from expense_ledger.utils.date_utils import utc_now


ZERO = Decimal("0")


def derive_balance(account: Account, transactions: Iterable[Transaction]) -> Decimal:
    """
    Current balance of one account over a transaction set.

    Args:
        account: The account (its id and initial_balance are used)
        transactions: Any transaction set; unrelated entries are ignored

    Returns:
        initial + income - expense - transfers out + transfers in
    """
    balance = account.initial_balance
    for txn in transactions:
        if txn.account_id == account.id:
            if txn.type == TransactionType.INCOME:
                balance += txn.amount
            else:
                # expense and transfer-out both leave the account
                balance -= txn.amount
        if txn.type == TransactionType.TRANSFER and txn.to_account_id == account.id:
            balance += txn.amount
    return balance


def derive_total_balance(
    accounts: Iterable[Account],
    transactions: Iterable[Transaction],
) -> Decimal:
    """
    Sum of initial balances plus income minus expense.

    Transactions with no account are excluded. Transfer terms are
    omitted because they cancel within the account set.
    """
    total = sum((a.initial_balance for a in accounts), ZERO)
    for txn in transactions:
        if txn.account_id is None:
            continue
        if txn.type == TransactionType.INCOME:
            total += txn.amount
        elif txn.type == TransactionType.EXPENSE:
            total -= txn.amount
    return total


class AccountLedger:
    """Accounts plus balances derived from the transaction log."""

    def __init__(
        self,
        store: LedgerStore,
        audit: Optional[AuditLogger] = None,
    ):
        self._ledger_store = store
        self._accounts = store.accounts
        self._transactions = store.transactions
        self._audit = audit or AuditLogger()

    # =========================================================================
    # Mutations
    # =========================================================================

    def create(self, account: Account) -> Account:
        """
        Add an account.

        If it is marked default, the previous default is cleared in the
        same store operation.
        """
        stored = self._accounts.insert(account.model_copy(update={"id": None}))
        self._audit.log_entity_changed(
            AuditEventType.ACCOUNT_CREATED, "account", stored.id, stored.name,
            {"type": stored.type.value, "initial_balance": str(stored.initial_balance)},
        )
        return stored

    def update(self, account: Account) -> Account:
        """
        Replace an account. created_at is kept from the stored record.

        Raises:
            NotFoundError: If the account does not exist
        """
        with self._ledger_store.locked():
            existing = self.by_id(account.id)
            stored = self._accounts.update(
                account.model_copy(update={"created_at": existing.created_at})
            )
        self._audit.log_entity_changed(
            AuditEventType.ACCOUNT_UPDATED, "account", stored.id, stored.name,
        )
        return stored

    def delete(self, account_id: int) -> None:
        """
        Delete an account.

        Transactions that referenced it are kept with the reference
        cleared. Deleting the default account leaves no default.

        Raises:
            NotFoundError: If the account does not exist
        """
        with self._ledger_store.locked():
            existing = self.by_id(account_id)
            self._accounts.delete_by_id(account_id)
        self._audit.log_entity_changed(
            AuditEventType.ACCOUNT_DELETED, "account", account_id, existing.name,
        )

    def set_default(self, account_id: int) -> Account:
        """
        Make this account the only default.

        Clearing the old default and setting the new one is a single
        store operation, so concurrent calls never leave zero or two
        defaults.

        Raises:
            NotFoundError: If the account does not exist
        """
        previous_id = self._accounts.promote_default(account_id)
        if previous_id != account_id:
            self._audit.log_default_account_changed(account_id, previous_id)
        return self.by_id(account_id)

    def ensure_default_account(self) -> Optional[Account]:
        """
        Create the default Cash account when there are no accounts.

        Returns:
            The created account, or None if accounts already existed
        """
        with self._ledger_store.locked():
            if self._accounts.all():
                return None
            return self._accounts.insert(DEFAULT_ACCOUNT.model_copy(update={"created_at": utc_now()}))

    # =========================================================================
    # Queries
    # =========================================================================

    def by_id(self, account_id: Optional[int]) -> Account:
        """
        Raises:
            NotFoundError: If no account has this id
        """
        account = self._accounts.by_id(account_id) if account_id is not None else None
        if account is None:
            raise NotFoundError("account", account_id)
        return account

    def find(self, account_id: Optional[int]) -> Optional[Account]:
        if account_id is None:
            return None
        return self._accounts.by_id(account_id)

    def all(self) -> list[Account]:
        """All accounts, default first, then by name."""
        return self._accounts.all()

    def default_account(self) -> Optional[Account]:
        return self._accounts.default_account()

    def balance_of(self, account_id: int) -> Decimal:
        """
        Current balance of one account.

        Raises:
            NotFoundError: If the account does not exist
        """
        account = self.by_id(account_id)
        return derive_balance(account, self._transactions.all())

    def total_balance(self) -> Decimal:
        """Total across all accounts."""
        return derive_total_balance(self._accounts.all(), self._transactions.all())

    def accounts_with_balances(self) -> list[AccountWithBalance]:
        """Every account with its current balance, in listing order."""
        transactions = self._transactions.all()
        return [
            AccountWithBalance(account=account, current_balance=derive_balance(account, transactions))
            for account in self._accounts.all()
        ]
