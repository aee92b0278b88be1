"""
Core Data Models for the Expense Ledger

These models define the schemas for every record the ledger stores:
categories, accounts and transactions, plus the validation result types
shared by the transaction log and the guided entry flow.

They are designed to:
1. Enforce field types at runtime
2. Be replaced as whole records (no partial writes)
3. Be serializable for storage and logging

DESIGN DECISION: Cross-entity invariants (a subcategory must belong to its
category, a transfer needs two distinct accounts) are NOT enforced here.
They need store lookups and must surface as typed validation errors, so
they live in the TransactionValidator. Models only check what a single
record can check about itself.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)

from expense_ledger.utils.date_utils import utc_now


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """
    Direction of a transaction.

    The amount is always positive; the type says which way it moves.
    """
    EXPENSE = "expense"
    INCOME = "income"
    TRANSFER = "transfer"


class AccountType(str, Enum):
    """Kinds of accounts a user can hold money in."""
    CASH = "cash"
    BANK = "bank"
    CREDIT_CARD = "credit_card"
    SAVINGS = "savings"
    INVESTMENT = "investment"
    OTHER = "other"


class ValidationErrorCode(str, Enum):
    """
    Codes for blocking validation failures.

    The first six are the ones the guided entry flow reports to users.
    The rest are invariants the transaction log enforces on any caller.
    """
    INVALID_AMOUNT = "invalid_amount"
    MISSING_ACCOUNT = "missing_account"
    MISSING_DESTINATION = "missing_destination"
    SAME_ACCOUNT = "same_account"
    MISSING_CATEGORY = "missing_category"
    MISSING_SUBCATEGORY = "missing_subcategory"

    CATEGORY_ON_TRANSFER = "category_on_transfer"
    DESTINATION_ON_NON_TRANSFER = "destination_on_non_transfer"
    INVALID_CATEGORY = "invalid_category"
    INVALID_SUBCATEGORY = "invalid_subcategory"
    UNKNOWN_REFERENCE = "unknown_reference"


# =============================================================================
# LEDGER ENTITIES
# =============================================================================

class Category(BaseModel):
    """
    A spending or income category.

    Categories form a tree at most two levels deep: roots, and
    subcategories whose parent is a root.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[int] = Field(
        default=None,
        description="Store-assigned identifier (None until inserted)"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    icon: str = Field(
        default="category",
        max_length=50,
        description="Icon identifier"
    )
    color_value: int = Field(
        default=0xFF4ECDC4,
        ge=0,
        description="ARGB colour as an integer"
    )
    is_default: bool = Field(
        default=False,
        description="Shipped with the app rather than user-created"
    )
    parent_id: Optional[int] = Field(
        default=None,
        description="Parent category (must be a root)"
    )
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    @model_validator(mode='after')
    def validate_parent(self) -> 'Category':
        """A category cannot be its own parent."""
        if self.id is not None and self.parent_id == self.id:
            raise ValueError("Category cannot be its own parent")
        return self


class Account(BaseModel):
    """
    A place money lives: wallet, bank account, card.

    Only the opening balance is stored. The current balance is always
    derived from the transaction log.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[int] = None
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    type: AccountType = Field(
        default=AccountType.CASH,
        description="Kind of account"
    )
    icon: str = Field(default="wallet", max_length=50)
    color_value: int = Field(default=0xFF4CAF50, ge=0)
    initial_balance: Decimal = Field(
        default=Decimal("0"),
        description="Opening balance (may be negative, e.g. a card)"
    )
    is_default: bool = Field(
        default=False,
        description="Pre-selected account for new entries (at most one)"
    )
    created_at: datetime = Field(default_factory=utc_now)


class Transaction(BaseModel):
    """
    One entry in the transaction log.

    CRITICAL: amount is always positive. Direction comes from `type` and
    from which account field references an account.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[int] = None
    amount: Decimal = Field(
        ...,
        description="Positive amount"
    )
    note: str = Field(
        default="",
        max_length=1000,
        description="Free-text note"
    )
    category_id: Optional[int] = Field(
        default=None,
        description="Top-level category actually used"
    )
    subcategory_id: Optional[int] = Field(
        default=None,
        description="Child of category_id, if one was chosen"
    )
    account_id: Optional[int] = Field(
        default=None,
        description="Account debited (expense, transfer) or credited (income)"
    )
    to_account_id: Optional[int] = Field(
        default=None,
        description="Destination account for transfers"
    )
    type: TransactionType
    date: date
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def is_transfer(self) -> bool:
        return self.type == TransactionType.TRANSFER


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    code: Optional[ValidationErrorCode] = Field(
        default=None,
        description="Error code (set for blocking issues)"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """
    Result of validating a transaction against the ledger.

    Errors block the write. Warnings are reported but never block.
    """

    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def first_error(self) -> Optional[ValidationIssue]:
        """The first blocking issue, in check order."""
        return next(
            (issue for issue in self.issues if issue.severity == "error"),
            None,
        )


# =============================================================================
# SEED DATA
# =============================================================================

DEFAULT_CATEGORIES: list[Category] = [
    Category(name="Food & Dining", icon="restaurant", color_value=0xFFFF6B6B, is_default=True),
    Category(name="Transportation", icon="directions_car", color_value=0xFF4ECDC4, is_default=True),
    Category(name="Shopping", icon="shopping_bag", color_value=0xFFFFE66D, is_default=True),
    Category(name="Entertainment", icon="movie", color_value=0xFF95E1D3, is_default=True),
    Category(name="Bills & Utilities", icon="receipt_long", color_value=0xFFA8E6CF, is_default=True),
    Category(name="Health", icon="medical_services", color_value=0xFFDDA0DD, is_default=True),
    Category(name="Education", icon="school", color_value=0xFF87CEEB, is_default=True),
    Category(name="Salary", icon="payments", color_value=0xFF98D8C8, is_default=True),
    Category(name="Investment", icon="trending_up", color_value=0xFFB4A7D6, is_default=True),
    Category(name="Other", icon="more_horiz", color_value=0xFFBDBDBD, is_default=True),
]

DEFAULT_ACCOUNT = Account(
    name="Cash",
    type=AccountType.CASH,
    icon="wallet",
    color_value=0xFF4CAF50,
    is_default=True,
)
