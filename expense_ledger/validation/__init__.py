"""Validation package."""

from expense_ledger.validation.validator import TransactionValidator

__all__ = [
    "TransactionValidator",
]
