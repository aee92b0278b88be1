"""
Two-Stage Transaction Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - STRUCTURAL VALIDATION:
- Amount is positive
- Transfer shape: two distinct accounts, no category
- Expense/income shape: no destination account
- Needs no store access

STAGE 2 - REFERENCE VALIDATION:
- Every referenced account and category exists
- The category is a root, the subcategory is its child
- Suspicious values (very large amounts, far-future dates) are flagged
  as warnings

Errors block the write and are reported in check order, so the first
error is always the most fundamental one. Warnings never block.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them to the caller.
"""

from datetime import date, timedelta
from typing import Optional

from expense_ledger.config import LedgerSettings, get_settings
from expense_ledger.errors import TransactionValidationError
from expense_ledger.models.entities import (
    Transaction,
    TransactionType,
    ValidationErrorCode,
    ValidationIssue,
    ValidationResult,
)
from expense_ledger.services.storage import AccountStore, CategoryStore


def _error(
    field: str,
    code: ValidationErrorCode,
    message: str,
    suggested_fix: Optional[str] = None,
) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        code=code,
        issue_type=code.value,
        message=message,
        severity="error",
        suggested_fix=suggested_fix,
    )


class TransactionValidator:
    """
    Checks a transaction against the ledger invariants.

    Stage 1 runs without storage. Stage 2 looks up references in the
    category and account stores.
    """

    def __init__(
        self,
        categories: CategoryStore,
        accounts: AccountStore,
        settings: Optional[LedgerSettings] = None,
    ):
        self._categories = categories
        self._accounts = accounts
        self._settings = settings or get_settings()

    def _validate_structure(self, txn: Transaction) -> list[ValidationIssue]:
        """
        Stage 1: shape checks that need no lookups.

        Returns: list of error issues, in check order
        """
        issues = []

        if txn.amount <= 0:
            issues.append(_error(
                "amount",
                ValidationErrorCode.INVALID_AMOUNT,
                "Amount must be greater than zero",
                "Enter a positive amount",
            ))

        if txn.type == TransactionType.TRANSFER:
            if txn.account_id is None:
                issues.append(_error(
                    "account_id",
                    ValidationErrorCode.MISSING_ACCOUNT,
                    "A transfer needs a source account",
                ))
            if txn.to_account_id is None:
                issues.append(_error(
                    "to_account_id",
                    ValidationErrorCode.MISSING_DESTINATION,
                    "A transfer needs a destination account",
                ))
            elif txn.to_account_id == txn.account_id:
                issues.append(_error(
                    "to_account_id",
                    ValidationErrorCode.SAME_ACCOUNT,
                    "Source and destination accounts must differ",
                    "Pick a different destination account",
                ))
            if txn.category_id is not None or txn.subcategory_id is not None:
                issues.append(_error(
                    "category_id",
                    ValidationErrorCode.CATEGORY_ON_TRANSFER,
                    "Transfers cannot have a category",
                ))
        else:
            if txn.to_account_id is not None:
                issues.append(_error(
                    "to_account_id",
                    ValidationErrorCode.DESTINATION_ON_NON_TRANSFER,
                    f"A {txn.type.value} cannot have a destination account",
                ))
            if txn.subcategory_id is not None and txn.category_id is None:
                issues.append(_error(
                    "subcategory_id",
                    ValidationErrorCode.INVALID_SUBCATEGORY,
                    "A subcategory needs its parent category",
                ))

        return issues

    def _validate_references(self, txn: Transaction) -> list[ValidationIssue]:
        """
        Stage 2: referenced entities exist and fit the category tree.

        Returns: list of error issues, in check order
        """
        issues = []

        for field, account_id in (
            ("account_id", txn.account_id),
            ("to_account_id", txn.to_account_id),
        ):
            if account_id is not None and self._accounts.by_id(account_id) is None:
                issues.append(_error(
                    field,
                    ValidationErrorCode.UNKNOWN_REFERENCE,
                    f"Account {account_id} no longer exists",
                ))

        if txn.category_id is not None:
            category = self._categories.by_id(txn.category_id)
            if category is None:
                issues.append(_error(
                    "category_id",
                    ValidationErrorCode.UNKNOWN_REFERENCE,
                    f"Category {txn.category_id} no longer exists",
                ))
            elif not category.is_root:
                issues.append(_error(
                    "category_id",
                    ValidationErrorCode.INVALID_CATEGORY,
                    f"'{category.name}' is a subcategory; record it as subcategory_id",
                    "Set category_id to its parent",
                ))

        if txn.subcategory_id is not None and txn.category_id is not None:
            subcategory = self._categories.by_id(txn.subcategory_id)
            if subcategory is None:
                issues.append(_error(
                    "subcategory_id",
                    ValidationErrorCode.UNKNOWN_REFERENCE,
                    f"Category {txn.subcategory_id} no longer exists",
                ))
            elif subcategory.parent_id != txn.category_id:
                issues.append(_error(
                    "subcategory_id",
                    ValidationErrorCode.INVALID_SUBCATEGORY,
                    f"'{subcategory.name}' is not a subcategory of category {txn.category_id}",
                ))

        return issues

    def _collect_warnings(self, txn: Transaction) -> list[ValidationIssue]:
        warnings = []

        if txn.amount > self._settings.large_amount_warning:
            warnings.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount {txn.amount} is unusually large",
                severity="warning",
                suggested_fix="Please verify the amount is correct",
            ))

        max_future_date = date.today() + timedelta(days=self._settings.future_date_tolerance_days)
        if txn.date > max_future_date:
            warnings.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Date ({txn.date}) is far in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        return warnings

    def validate(self, txn: Transaction) -> ValidationResult:
        """
        Run both validation stages.

        Stage 2 is skipped when stage 1 found errors.

        Returns:
            ValidationResult with all issues and warnings
        """
        issues = self._validate_structure(txn)
        if not issues:
            issues.extend(self._validate_references(txn))

        warning_issues = self._collect_warnings(txn)
        issues.extend(warning_issues)

        return ValidationResult(
            is_valid=not any(issue.severity == "error" for issue in issues),
            issues=issues,
            warnings=[w.message for w in warning_issues],
        )

    def ensure_valid(self, txn: Transaction) -> ValidationResult:
        """
        Validate and raise on the first error.

        Raises:
            TransactionValidationError: If any blocking issue was found
        """
        result = self.validate(txn)
        first = result.first_error
        if first is not None:
            raise TransactionValidationError(first.code, first.message, first.field)
        return result
