"""
Error taxonomy for the ledger core.

Every failure in the core is recoverable and surfaces as one of these
types. Nothing here is meant to terminate the process:

- TransactionValidationError: a draft or transaction broke an invariant.
  Raised before any store mutation.
- StructuralError: the category tree refused a change (delete of a parent,
  a third level of nesting, moving a category that transactions use).
- StorageError / NotFoundError live with the storage interface but share
  the LedgerError base so callers can catch the whole family at once.
"""

from typing import Optional


class LedgerError(Exception):
    """Base exception for all ledger errors."""
    pass


class TransactionValidationError(LedgerError):
    """A transaction or draft failed validation."""

    def __init__(self, code, message: str, field: Optional[str] = None):
        self.code = code
        self.field = field
        super().__init__(message)


class StructuralError(LedgerError):
    """The category tree cannot accept the requested change."""
    pass


class HasChildrenError(StructuralError):
    """Category still has subcategories and cannot be deleted."""

    def __init__(self, category_id: int):
        self.category_id = category_id
        super().__init__(
            f"Category {category_id} has subcategories. Delete subcategories first."
        )


class CategoryDepthError(StructuralError):
    """Change would nest categories deeper than two levels."""
    pass


class CategoryInUseError(StructuralError):
    """Category is used by transactions and cannot move in the tree."""

    def __init__(self, category_id: int):
        self.category_id = category_id
        super().__init__(
            f"Category {category_id} is used by transactions and cannot change its parent"
        )
