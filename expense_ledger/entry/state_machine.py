"""
Guided Entry State Machine

Drives field-by-field capture of one transaction:

    expense / income:  account -> category -> [subcategory] -> amount -> note
    transfer:          account -> to_account -> amount -> note

DESIGN DECISION: The machine is a pure function.
`transition(state, event)` returns a new EntryState and never touches a
store. Anything that needs a lookup (does this category have children?)
is resolved by the caller and carried on the event. This keeps the
machine testable without any storage or UI.

The active field only decides which input surface is shown. It says
nothing about whether the draft is complete; `validate_draft` does that.
"""

import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from expense_ledger.models.entities import (
    Transaction,
    TransactionType,
    ValidationErrorCode,
    ValidationIssue,
)


# =============================================================================
# STATE
# =============================================================================

class EntryField(str, Enum):
    """The input surface currently active."""
    NONE = "none"
    DATE = "date"
    ACCOUNT = "account"
    TO_ACCOUNT = "to_account"
    CATEGORY = "category"
    SUBCATEGORY = "subcategory"
    AMOUNT = "amount"
    NOTE = "note"


def _today() -> datetime.date:
    return datetime.date.today()


class TransactionDraft(BaseModel):
    """
    An in-progress transaction.

    The amount is kept as the text the user typed; it is parsed only
    when the draft is validated or saved.
    """
    model_config = ConfigDict(frozen=True)

    transaction_id: Optional[int] = Field(
        default=None,
        description="Set when editing; saving then updates instead of inserting"
    )
    type: TransactionType = TransactionType.EXPENSE
    date: datetime.date = Field(default_factory=_today)
    account_id: Optional[int] = None
    to_account_id: Optional[int] = None
    category_id: Optional[int] = None
    subcategory_id: Optional[int] = None
    amount: str = ""
    note: str = ""
    subcategory_required: bool = Field(
        default=False,
        description="The chosen category has subcategories, so one must be picked"
    )

    @property
    def is_editing(self) -> bool:
        return self.transaction_id is not None

    @property
    def is_transfer(self) -> bool:
        return self.type == TransactionType.TRANSFER


class EntryState(BaseModel):
    """Active field plus the draft being built."""
    model_config = ConfigDict(frozen=True)

    field: EntryField = EntryField.ACCOUNT
    draft: TransactionDraft = Field(default_factory=TransactionDraft)


# =============================================================================
# EVENTS
# =============================================================================

class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)


class AccountSelected(_Event):
    account_id: int


class ToAccountSelected(_Event):
    account_id: int


class CategorySelected(_Event):
    """A root category was picked. has_children is resolved by the caller."""
    category_id: int
    has_children: bool


class SubcategorySelected(_Event):
    subcategory_id: int


class SubcategoryCleared(_Event):
    """Back out of the subcategory menu, dropping the parent choice too."""
    pass


class AmountEntered(_Event):
    """Raw amount text; it is sanitized on the way in."""
    text: str


class AmountConfirmed(_Event):
    """Amount finished: normalize to two decimals and move to the note."""
    pass


class NoteEntered(_Event):
    note: str


class DateSelected(_Event):
    date: datetime.date


class TypeChanged(_Event):
    type: TransactionType


class FieldFocused(_Event):
    """Explicit focus request. Always legal, never validated."""
    field: EntryField


EntryEvent = Union[
    AccountSelected,
    ToAccountSelected,
    CategorySelected,
    SubcategorySelected,
    SubcategoryCleared,
    AmountEntered,
    AmountConfirmed,
    NoteEntered,
    DateSelected,
    TypeChanged,
    FieldFocused,
]


# =============================================================================
# AMOUNT TEXT
# =============================================================================

def sanitize_amount_input(text: str, current: str = "") -> str:
    """
    Keep digits and at most one decimal point.

    Input with a second decimal point is rejected and the current
    text is kept.
    """
    filtered = "".join(ch for ch in text if ch.isdigit() or ch == ".")
    if filtered.count(".") > 1:
        return current
    return filtered


def parse_amount(text: str) -> Optional[Decimal]:
    """Parse amount text. None if it is empty or not a finite number."""
    try:
        value = Decimal(text.strip())
    except (InvalidOperation, AttributeError):
        return None
    if not value.is_finite():
        return None
    return value


def format_amount(text: str) -> str:
    """Normalize amount text to two decimals; unparseable text is returned as is."""
    value = parse_amount(text)
    if value is None:
        return text
    return str(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


# =============================================================================
# TRANSITIONS
# =============================================================================

def _with(state: EntryState, field: EntryField, **changes) -> EntryState:
    return EntryState(field=field, draft=state.draft.model_copy(update=changes))


def transition(state: EntryState, event: EntryEvent) -> EntryState:
    """
    Apply one event to the entry state.

    Events that do not apply to the draft's type (a category on a
    transfer, a destination on an expense) leave the state unchanged.

    Args:
        state: Current state
        event: What the user did

    Returns:
        The next state
    """
    draft = state.draft

    if isinstance(event, FieldFocused):
        return EntryState(field=event.field, draft=draft)

    if isinstance(event, AccountSelected):
        next_field = EntryField.TO_ACCOUNT if draft.is_transfer else EntryField.CATEGORY
        return _with(state, next_field, account_id=event.account_id)

    if isinstance(event, ToAccountSelected):
        if not draft.is_transfer:
            return state
        return _with(state, EntryField.AMOUNT, to_account_id=event.account_id)

    if isinstance(event, CategorySelected):
        if draft.is_transfer:
            return state
        if event.has_children:
            return _with(
                state, EntryField.SUBCATEGORY,
                category_id=event.category_id,
                subcategory_id=None,
                subcategory_required=True,
            )
        return _with(
            state, EntryField.AMOUNT,
            category_id=event.category_id,
            subcategory_id=None,
            subcategory_required=False,
        )

    if isinstance(event, SubcategorySelected):
        if draft.is_transfer or draft.category_id is None:
            return state
        return _with(state, EntryField.AMOUNT, subcategory_id=event.subcategory_id)

    if isinstance(event, SubcategoryCleared):
        return _with(
            state, EntryField.CATEGORY,
            category_id=None,
            subcategory_id=None,
            subcategory_required=False,
        )

    if isinstance(event, AmountEntered):
        return _with(state, state.field, amount=sanitize_amount_input(event.text, draft.amount))

    if isinstance(event, AmountConfirmed):
        return _with(state, EntryField.NOTE, amount=format_amount(draft.amount))

    if isinstance(event, NoteEntered):
        return _with(state, state.field, note=event.note)

    if isinstance(event, DateSelected):
        return _with(state, state.field, date=event.date)

    if isinstance(event, TypeChanged):
        if event.type == draft.type:
            return state
        if event.type == TransactionType.TRANSFER:
            return _with(
                state, state.field,
                type=event.type,
                category_id=None,
                subcategory_id=None,
                subcategory_required=False,
            )
        if draft.is_transfer:
            return _with(state, state.field, type=event.type, to_account_id=None)
        return _with(state, state.field, type=event.type)

    raise TypeError(f"Unknown entry event: {type(event).__name__}")


def next_entry_state(draft: TransactionDraft) -> EntryState:
    """
    State for the next entry after "save and continue".

    Type, date, account and destination account are kept. Amount, note
    and category choices are cleared, and the new draft always inserts.
    The active field is the first one still missing.
    """
    fresh = draft.model_copy(update={
        "transaction_id": None,
        "amount": "",
        "note": "",
        "category_id": None,
        "subcategory_id": None,
        "subcategory_required": False,
    })

    if fresh.account_id is None:
        field = EntryField.ACCOUNT
    elif fresh.is_transfer:
        field = EntryField.AMOUNT if fresh.to_account_id is not None else EntryField.TO_ACCOUNT
    else:
        field = EntryField.CATEGORY
    return EntryState(field=field, draft=fresh)


# =============================================================================
# COMMIT
# =============================================================================

def _issue(field: str, code: ValidationErrorCode, message: str) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        code=code,
        issue_type=code.value,
        message=message,
        severity="error",
    )


def validate_draft(draft: TransactionDraft) -> Optional[ValidationIssue]:
    """
    Check a draft before saving.

    Checks run in a fixed order and stop at the first failure:
    amount, account, destination (transfers), category and
    subcategory (expense and income).

    Returns:
        The first blocking issue, or None if the draft can be saved
    """
    amount = parse_amount(draft.amount)
    if amount is None or amount <= 0:
        return _issue("amount", ValidationErrorCode.INVALID_AMOUNT, "Please enter a valid amount")

    if draft.account_id is None:
        return _issue("account_id", ValidationErrorCode.MISSING_ACCOUNT, "Please select an account")

    if draft.is_transfer:
        if draft.to_account_id is None:
            return _issue(
                "to_account_id",
                ValidationErrorCode.MISSING_DESTINATION,
                "Please select a destination account",
            )
        if draft.to_account_id == draft.account_id:
            return _issue(
                "to_account_id",
                ValidationErrorCode.SAME_ACCOUNT,
                "Source and destination accounts must differ",
            )
        return None

    if draft.category_id is None and draft.subcategory_id is None:
        return _issue("category_id", ValidationErrorCode.MISSING_CATEGORY, "Please select a category")

    if draft.subcategory_required and draft.subcategory_id is None:
        return _issue(
            "subcategory_id",
            ValidationErrorCode.MISSING_SUBCATEGORY,
            "Please select a subcategory",
        )

    return None


def draft_to_transaction(draft: TransactionDraft) -> Transaction:
    """
    Build the Transaction a validated draft describes.

    Raises:
        ValueError: If the amount text does not parse
    """
    amount = parse_amount(draft.amount)
    if amount is None:
        raise ValueError(f"Amount is not a number: {draft.amount!r}")

    if draft.is_transfer:
        return Transaction(
            id=draft.transaction_id,
            amount=amount,
            note=draft.note,
            account_id=draft.account_id,
            to_account_id=draft.to_account_id,
            type=draft.type,
            date=draft.date,
        )

    return Transaction(
        id=draft.transaction_id,
        amount=amount,
        note=draft.note,
        category_id=draft.category_id,
        subcategory_id=draft.subcategory_id,
        account_id=draft.account_id,
        type=draft.type,
        date=draft.date,
    )


def draft_from_transaction(
    txn: Transaction,
    subcategory_required: bool,
    as_copy: bool = False,
    date: Optional[datetime.date] = None,
) -> TransactionDraft:
    """
    Seed a draft from a stored transaction.

    Args:
        txn: The transaction to edit or copy
        subcategory_required: Whether its category has subcategories
        as_copy: Drop the id so saving inserts a new transaction
        date: Replacement date (used when copying to today)
    """
    return TransactionDraft(
        transaction_id=None if as_copy else txn.id,
        type=txn.type,
        date=date or txn.date,
        account_id=txn.account_id,
        to_account_id=txn.to_account_id,
        category_id=txn.category_id,
        subcategory_id=txn.subcategory_id,
        amount=format_amount(str(txn.amount)),
        note=txn.note,
        subcategory_required=subcategory_required,
    )
