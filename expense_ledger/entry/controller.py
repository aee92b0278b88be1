"""
Guided Entry Controller

Wraps the pure state machine for one user's one active draft. The
controller resolves the lookups the machine needs (default account,
whether a category has subcategories), and commits the draft through
the transaction log.

DESIGN DECISION: save() never raises for a bad draft.
A draft problem is a normal outcome of data entry, so it comes back as
a SaveResult carrying the first ValidationIssue. Only storage failures
propagate.

Not thread-safe: one controller per entry screen.
"""

import datetime
from typing import Optional

from pydantic import BaseModel, Field

from expense_ledger.audit import AuditLogger
from expense_ledger.entry.state_machine import (
    AccountSelected,
    AmountConfirmed,
    AmountEntered,
    CategorySelected,
    DateSelected,
    EntryEvent,
    EntryField,
    EntryState,
    FieldFocused,
    NoteEntered,
    SubcategoryCleared,
    SubcategorySelected,
    ToAccountSelected,
    TransactionDraft,
    TypeChanged,
    draft_from_transaction,
    draft_to_transaction,
    next_entry_state,
    transition,
    validate_draft,
)
from expense_ledger.errors import CategoryDepthError, TransactionValidationError
from expense_ledger.ledger import AccountLedger, CategoryTree, TransactionLog
from expense_ledger.models.entities import (
    Category,
    Transaction,
    TransactionType,
    ValidationErrorCode,
    ValidationIssue,
)
from expense_ledger.services.storage import NotFoundError


class SaveResult(BaseModel):
    """Outcome of GuidedEntry.save()."""

    success: bool
    transaction_id: Optional[int] = None
    updated: bool = Field(
        default=False,
        description="An existing transaction was updated rather than inserted"
    )
    error: Optional[ValidationIssue] = None


class GuidedEntry:
    """
    Field-by-field transaction capture.

    Usage:
        entry = ledger.new_entry()
        entry.select_category(food.id)
        entry.enter_amount("12.50")
        result = entry.save()
    """

    def __init__(
        self,
        categories: CategoryTree,
        accounts: AccountLedger,
        transactions: TransactionLog,
        audit: Optional[AuditLogger] = None,
    ):
        self._categories = categories
        self._accounts = accounts
        self._transactions = transactions
        self._audit = audit or AuditLogger()
        self._state = EntryState()

    # =========================================================================
    # Flow starters
    # =========================================================================

    def new(self, txn_type: TransactionType = TransactionType.EXPENSE) -> EntryState:
        """
        Start a new entry at the account field.

        The default account, if any, is preselected.
        """
        default = self._accounts.default_account()
        self._state = EntryState(
            field=EntryField.ACCOUNT,
            draft=TransactionDraft(
                type=txn_type,
                date=datetime.date.today(),
                account_id=default.id if default else None,
            ),
        )
        return self._state

    def edit(self, txn_id: int) -> EntryState:
        """
        Start editing a stored transaction. Saving updates it.

        Raises:
            NotFoundError: If the transaction does not exist
        """
        txn = self._transactions.by_id(txn_id)
        self._state = EntryState(
            field=EntryField.NONE,
            draft=draft_from_transaction(txn, self._subcategory_required(txn)),
        )
        return self._state

    def copy_of(self, txn_id: int, use_today: bool = False) -> EntryState:
        """
        Start a new entry seeded from a stored transaction.

        Saving always inserts; the copied transaction is never touched.

        Raises:
            NotFoundError: If the transaction does not exist
        """
        txn = self._transactions.by_id(txn_id)
        self._state = EntryState(
            field=EntryField.NONE,
            draft=draft_from_transaction(
                txn,
                self._subcategory_required(txn),
                as_copy=True,
                date=datetime.date.today() if use_today else None,
            ),
        )
        return self._state

    # =========================================================================
    # State
    # =========================================================================

    @property
    def state(self) -> EntryState:
        return self._state

    @property
    def draft(self) -> TransactionDraft:
        return self._state.draft

    @property
    def current_field(self) -> EntryField:
        return self._state.field

    def dispatch(self, event: EntryEvent) -> EntryState:
        """Apply one event through the pure transition function."""
        self._state = transition(self._state, event)
        return self._state

    # =========================================================================
    # User actions
    # =========================================================================

    def select_account(self, account_id: int) -> EntryState:
        """
        Raises:
            NotFoundError: If the account does not exist
        """
        self._accounts.by_id(account_id)
        return self.dispatch(AccountSelected(account_id=account_id))

    def select_to_account(self, account_id: int) -> EntryState:
        self._accounts.by_id(account_id)
        return self.dispatch(ToAccountSelected(account_id=account_id))

    def select_category(self, category_id: int) -> EntryState:
        """
        Pick a root category. Moves to the subcategory menu if it has
        subcategories, otherwise straight to the amount.

        Raises:
            NotFoundError: If the category does not exist
            CategoryDepthError: If the category is a subcategory
        """
        category = self._categories.by_id(category_id)
        if not category.is_root:
            raise CategoryDepthError(f"'{category.name}' is a subcategory; pick its parent first")
        return self.dispatch(CategorySelected(
            category_id=category_id,
            has_children=self._categories.has_children(category_id),
        ))

    def select_subcategory(self, subcategory_id: int) -> EntryState:
        """
        Raises:
            NotFoundError: If the subcategory does not exist
            CategoryDepthError: If it is not a child of the selected category
        """
        subcategory = self._categories.by_id(subcategory_id)
        if subcategory.parent_id is None or subcategory.parent_id != self.draft.category_id:
            raise CategoryDepthError(
                f"'{subcategory.name}' is not a subcategory of the selected category"
            )
        return self.dispatch(SubcategorySelected(subcategory_id=subcategory_id))

    def clear_subcategory(self) -> EntryState:
        return self.dispatch(SubcategoryCleared())

    def available_subcategories(self) -> list[Category]:
        """Subcategories of the selected category, in listing order."""
        if self.draft.category_id is None:
            return []
        return self._categories.children_of(self.draft.category_id)

    def enter_amount(self, text: str) -> EntryState:
        return self.dispatch(AmountEntered(text=text))

    def confirm_amount(self) -> EntryState:
        return self.dispatch(AmountConfirmed())

    def enter_note(self, note: str) -> EntryState:
        return self.dispatch(NoteEntered(note=note))

    def select_date(self, date: datetime.date) -> EntryState:
        return self.dispatch(DateSelected(date=date))

    def change_type(self, txn_type: TransactionType) -> EntryState:
        return self.dispatch(TypeChanged(type=txn_type))

    def set_current_field(self, field: EntryField) -> EntryState:
        return self.dispatch(FieldFocused(field=field))

    # =========================================================================
    # Commit
    # =========================================================================

    def save(self, continue_entry: bool = False) -> SaveResult:
        """
        Validate the draft and write it to the transaction log.

        Args:
            continue_entry: Reset for the next entry, keeping type, date
                            and accounts

        Returns:
            SaveResult; on failure the state is left unchanged
        """
        draft = self.draft
        issue = validate_draft(draft)
        if issue is not None:
            self._audit.log_entry_rejected(issue.code.value, issue.message, draft.transaction_id)
            return SaveResult(success=False, error=issue)

        txn = draft_to_transaction(draft)
        try:
            if draft.is_editing:
                txn_id = self._transactions.update(txn).id
            else:
                txn_id = self._transactions.insert(txn)
        except TransactionValidationError as e:
            self._audit.log_entry_rejected(e.code.value, str(e), draft.transaction_id)
            return SaveResult(
                success=False,
                error=ValidationIssue(
                    field=e.field or "transaction",
                    code=e.code,
                    issue_type=e.code.value,
                    message=str(e),
                    severity="error",
                ),
            )
        except NotFoundError as e:
            self._audit.log_entry_rejected(
                ValidationErrorCode.UNKNOWN_REFERENCE.value, str(e), draft.transaction_id,
            )
            return SaveResult(
                success=False,
                error=ValidationIssue(
                    field="transaction_id",
                    code=ValidationErrorCode.UNKNOWN_REFERENCE,
                    issue_type=ValidationErrorCode.UNKNOWN_REFERENCE.value,
                    message=str(e),
                    severity="error",
                ),
            )

        self._audit.log_entry_saved(
            transaction_id=txn_id,
            transaction_type=txn.type.value,
            amount=str(txn.amount),
            updated=draft.is_editing,
        )

        if continue_entry:
            self._state = next_entry_state(draft)
        else:
            # a second save of the same draft updates instead of duplicating
            self._state = EntryState(
                field=EntryField.NONE,
                draft=draft.model_copy(update={"transaction_id": txn_id}),
            )

        return SaveResult(success=True, transaction_id=txn_id, updated=draft.is_editing)

    def delete(self) -> bool:
        """
        Delete the transaction being edited.

        Returns:
            True if a stored transaction was deleted; False for unsaved drafts
        """
        if not self.draft.is_editing:
            return False
        deleted = self._transactions.delete(self.draft.transaction_id)
        self._state = EntryState(
            field=EntryField.NONE,
            draft=self.draft.model_copy(update={"transaction_id": None}),
        )
        return deleted

    def _subcategory_required(self, txn: Transaction) -> bool:
        return (
            txn.subcategory_id is not None
            and txn.category_id is not None
            and self._categories.has_children(txn.category_id)
        )
