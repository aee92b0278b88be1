"""
Aggregation Engine

DESIGN DECISION: Aggregation is a pure fold over an already-loaded
transaction list. No function here reads a store, mutates its input or
raises on empty input: an empty period simply yields zero totals and an
empty breakdown.

Totals are grouped by the top-level category_id only. A transaction
recorded under a subcategory still counts toward its parent.
"""

from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Optional

from expense_ledger.models.entities import Category, Transaction, TransactionType
from expense_ledger.models.reports import (
    CategoryBreakdown,
    MonthData,
    MonthlyTotal,
    PeriodStats,
)


ZERO = Decimal("0")
_TYPE_ORDER = {t: i for i, t in enumerate(TransactionType)}


def total_by_type(transactions: Iterable[Transaction], txn_type: TransactionType) -> Decimal:
    """Sum of amounts of one transaction type."""
    return sum((t.amount for t in transactions if t.type == txn_type), ZERO)


def category_totals(
    transactions: Iterable[Transaction],
    txn_type: TransactionType,
) -> dict[Optional[int], Decimal]:
    """
    Totals per top-level category for one transaction type.

    Returns:
        Mapping of category_id (None = uncategorized) to total,
        in order of first appearance
    """
    totals: dict[Optional[int], Decimal] = {}
    for txn in transactions:
        if txn.type != txn_type:
            continue
        totals[txn.category_id] = totals.get(txn.category_id, ZERO) + txn.amount
    return totals


def _breakdown_sort_key(row: CategoryBreakdown) -> tuple:
    # amount desc, then category id asc, uncategorized last
    return (-row.amount, row.category_id is None, row.category_id or 0)


def breakdown(
    totals: Mapping[Optional[int], Decimal],
    categories: Optional[Mapping[int, Category]] = None,
) -> list[CategoryBreakdown]:
    """
    Turn category totals into percentage rows.

    Args:
        totals: Output of category_totals
        categories: Optional id -> Category lookup used to attach names

    Returns:
        Rows sorted by amount descending. Ties go to the lower category
        id, with uncategorized last. Percentages are 0 when the grand
        total is 0.
    """
    grand_total = sum(totals.values(), ZERO)
    categories = categories or {}

    rows = []
    for category_id, amount in totals.items():
        percentage = float(amount * 100 / grand_total) if grand_total > 0 else 0.0
        rows.append(CategoryBreakdown(
            category_id=category_id,
            category=categories.get(category_id) if category_id is not None else None,
            amount=amount,
            percentage=min(max(percentage, 0.0), 100.0),
        ))

    return sorted(rows, key=_breakdown_sort_key)


def monthly_totals(transactions: Iterable[Transaction], year: int) -> list[MonthlyTotal]:
    """
    Totals per (month, type) for transactions dated in the given year.

    Months or types with no transactions are absent; treat them as zero.
    """
    totals: dict[tuple[int, TransactionType], Decimal] = {}
    for txn in transactions:
        if txn.date.year != year:
            continue
        key = (txn.date.month, txn.type)
        totals[key] = totals.get(key, ZERO) + txn.amount

    return [
        MonthlyTotal(month=month, type=txn_type, amount=amount)
        for (month, txn_type), amount in sorted(
            totals.items(), key=lambda item: (item[0][0], _TYPE_ORDER[item[0][1]])
        )
    ]


def monthly_series(transactions: Iterable[Transaction], year: int) -> list[MonthData]:
    """Income and expense for all twelve months of a year, zero-filled."""
    series = {month: MonthData(month=month) for month in range(1, 13)}
    for total in monthly_totals(transactions, year):
        if total.type == TransactionType.INCOME:
            series[total.month].income = total.amount
        elif total.type == TransactionType.EXPENSE:
            series[total.month].expense = total.amount
    return list(series.values())


def period_stats(
    transactions: Iterable[Transaction],
    categories: Optional[Mapping[int, Category]] = None,
) -> PeriodStats:
    """Income, expense, balance and both category breakdowns."""
    transactions = list(transactions)
    total_income = total_by_type(transactions, TransactionType.INCOME)
    total_expense = total_by_type(transactions, TransactionType.EXPENSE)

    return PeriodStats(
        total_income=total_income,
        total_expense=total_expense,
        balance=total_income - total_expense,
        expense_breakdown=breakdown(
            category_totals(transactions, TransactionType.EXPENSE), categories
        ),
        income_breakdown=breakdown(
            category_totals(transactions, TransactionType.INCOME), categories
        ),
    )
