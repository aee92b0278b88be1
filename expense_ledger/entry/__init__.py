"""
Guided Entry Package

The pure entry state machine and the controller that commits drafts
to the transaction log.
"""

from expense_ledger.entry.controller import GuidedEntry, SaveResult
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
    format_amount,
    next_entry_state,
    parse_amount,
    sanitize_amount_input,
    transition,
    validate_draft,
)

__all__ = [
    # Controller
    "GuidedEntry",
    "SaveResult",
    # State
    "EntryField",
    "EntryState",
    "TransactionDraft",
    # Events
    "AccountSelected",
    "AmountConfirmed",
    "AmountEntered",
    "CategorySelected",
    "DateSelected",
    "EntryEvent",
    "FieldFocused",
    "NoteEntered",
    "SubcategoryCleared",
    "SubcategorySelected",
    "ToAccountSelected",
    "TypeChanged",
    # Functions
    "draft_from_transaction",
    "draft_to_transaction",
    "format_amount",
    "next_entry_state",
    "parse_amount",
    "sanitize_amount_input",
    "transition",
    "validate_draft",
]
