"""
Report Models

Read-side shapes produced by the aggregation engine and the report
service. None of these are stored; they are recomputed from the
transaction log whenever they are asked for.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from expense_ledger.models.entities import (
    Account,
    Category,
    Transaction,
    TransactionType,
)


class CategoryBreakdown(BaseModel):
    """One row of a category breakdown: who got how much of the total."""

    category_id: Optional[int] = Field(
        default=None,
        description="Top-level category (None = uncategorized)"
    )
    category: Optional[Category] = Field(
        default=None,
        description="Resolved category, when a lookup was supplied"
    )
    amount: Decimal
    percentage: float = Field(
        ge=0.0,
        le=100.0,
        description="Share of the breakdown total (0-100)"
    )

    @property
    def label(self) -> str:
        if self.category is not None:
            return self.category.name
        if self.category_id is None:
            return "Uncategorized"
        return f"Category {self.category_id}"


class MonthlyTotal(BaseModel):
    """Sum of one transaction type within one calendar month."""

    month: int = Field(ge=1, le=12)
    type: TransactionType
    amount: Decimal


class MonthData(BaseModel):
    """Income and expense for one month of a yearly series."""

    month: int = Field(ge=1, le=12)
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")

    @property
    def net(self) -> Decimal:
        return self.income - self.expense


class PeriodStats(BaseModel):
    """Totals and breakdowns for an arbitrary set of transactions."""

    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")
    expense_breakdown: list[CategoryBreakdown] = Field(default_factory=list)
    income_breakdown: list[CategoryBreakdown] = Field(default_factory=list)


class MonthlyReport(BaseModel):
    """Report for one calendar month."""

    year: int
    month: int = Field(ge=1, le=12)
    start_date: date
    end_date: date
    stats: PeriodStats
    transaction_count: int = Field(ge=0)


class YearlyReport(BaseModel):
    """Report for one calendar year, with a 12-month series."""

    year: int
    stats: PeriodStats
    monthly_data: list[MonthData] = Field(default_factory=list)
    transaction_count: int = Field(ge=0)


class AccountWithBalance(BaseModel):
    """An account together with its derived current balance."""

    account: Account
    current_balance: Decimal


class TransactionDetail(BaseModel):
    """A transaction with its references resolved for display."""

    transaction: Transaction
    category: Optional[Category] = None
    subcategory: Optional[Category] = None
    account: Optional[Account] = None
    to_account: Optional[Account] = None

    @property
    def category_label(self) -> str:
        """'Parent > Child', 'Parent', or 'Uncategorized'."""
        if self.category is None:
            return "Uncategorized" if not self.transaction.is_transfer else "Transfer"
        if self.subcategory is not None:
            return f"{self.category.name} > {self.subcategory.name}"
        return self.category.name
