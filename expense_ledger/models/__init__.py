"""
Data Models Package

This package contains all Pydantic models used by the ledger core.
Every record the stores hold and every report the engine produces
conforms to these schemas.
"""

from expense_ledger.models.entities import (
    DEFAULT_ACCOUNT,
    DEFAULT_CATEGORIES,
    Account,
    AccountType,
    Category,
    Transaction,
    TransactionType,
    ValidationErrorCode,
    ValidationIssue,
    ValidationResult,
)
from expense_ledger.models.reports import (
    AccountWithBalance,
    CategoryBreakdown,
    MonthData,
    MonthlyReport,
    MonthlyTotal,
    PeriodStats,
    TransactionDetail,
    YearlyReport,
)
from expense_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger entities
    "DEFAULT_ACCOUNT",
    "DEFAULT_CATEGORIES",
    "Account",
    "AccountType",
    "Category",
    "Transaction",
    "TransactionType",
    "ValidationErrorCode",
    "ValidationIssue",
    "ValidationResult",
    # Report models
    "AccountWithBalance",
    "CategoryBreakdown",
    "MonthData",
    "MonthlyReport",
    "MonthlyTotal",
    "PeriodStats",
    "TransactionDetail",
    "YearlyReport",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
