"""
Transaction Log

Append, update and delete entries of the ledger. Every insert and update
is validated before the store is touched; an invalid transaction raises
TransactionValidationError and nothing is written. Validation and the
write run under one store lock, so a reference cannot disappear between
the check and the write.
"""

from datetime import date
from typing import Optional

import structlog

from expense_ledger.audit import AuditLogger
from expense_ledger.errors import TransactionValidationError
from expense_ledger.models.audit import AuditEventType
from expense_ledger.models.entities import Transaction
from expense_ledger.services.storage import LedgerStore, NotFoundError
from expense_ledger.utils.date_utils import month_range, year_range
from expense_ledger.validation import TransactionValidator


logger = structlog.get_logger(__name__)


class TransactionLog:
    """The ledger's record of expenses, income and transfers."""

    def __init__(
        self,
        store: LedgerStore,
        validator: TransactionValidator,
        audit: Optional[AuditLogger] = None,
    ):
        self._ledger_store = store
        self._store = store.transactions
        self._validator = validator
        self._audit = audit or AuditLogger()

    def insert(self, txn: Transaction) -> int:
        """
        Validate and append a transaction.

        Args:
            txn: The transaction; any id it carries is ignored

        Returns:
            The id assigned by the store

        Raises:
            TransactionValidationError: If an invariant is violated
        """
        txn = txn.model_copy(update={"id": None})
        with self._ledger_store.locked():
            self._validate(txn)
            stored = self._store.insert(txn)
        self._audit.log_entity_changed(
            AuditEventType.TRANSACTION_INSERTED, "transaction", stored.id,
            f"{stored.type.value} {stored.amount}",
        )
        return stored.id

    def update(self, txn: Transaction) -> Transaction:
        """
        Validate and replace a stored transaction.

        The whole record is replaced; created_at is kept from the
        stored version.

        Raises:
            NotFoundError: If the transaction does not exist
            TransactionValidationError: If an invariant is violated
        """
        with self._ledger_store.locked():
            existing = self.by_id(txn.id)
            txn = txn.model_copy(update={"created_at": existing.created_at})
            self._validate(txn)
            stored = self._store.update(txn)
        self._audit.log_entity_changed(
            AuditEventType.TRANSACTION_UPDATED, "transaction", stored.id,
            f"{stored.type.value} {stored.amount}",
        )
        return stored

    def delete(self, txn_id: int) -> bool:
        """
        Remove a transaction.

        Returns:
            True if something was deleted
        """
        deleted = self._store.delete_by_id(txn_id)
        if deleted:
            self._audit.log_entity_changed(
                AuditEventType.TRANSACTION_DELETED, "transaction", txn_id, str(txn_id),
            )
        return deleted

    def by_id(self, txn_id: Optional[int]) -> Transaction:
        """
        Raises:
            NotFoundError: If no transaction has this id
        """
        txn = self._store.by_id(txn_id) if txn_id is not None else None
        if txn is None:
            raise NotFoundError("transaction", txn_id)
        return txn

    def by_date_range(self, start: date, end: date) -> list[Transaction]:
        """Transactions in [start, end], newest first. Empty if start > end."""
        if start > end:
            return []
        return self._store.by_date_range(start, end)

    def by_month(self, year: int, month: int) -> list[Transaction]:
        return self.by_date_range(*month_range(year, month))

    def by_year(self, year: int) -> list[Transaction]:
        return self.by_date_range(*year_range(year))

    def all(self) -> list[Transaction]:
        return self._store.all()

    def _validate(self, txn: Transaction) -> None:
        try:
            result = self._validator.ensure_valid(txn)
        except TransactionValidationError as e:
            self._audit.log_validation_failed(txn.id, e.code.value, str(e))
            raise

        if result.warnings:
            logger.warning(
                "transaction_warnings",
                transaction_id=txn.id,
                warnings=result.warnings,
            )
