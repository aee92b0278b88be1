"""Aggregation, reporting and live query package."""

from expense_ledger.queries.aggregation import (
    breakdown,
    category_totals,
    monthly_series,
    monthly_totals,
    period_stats,
    total_by_type,
)
from expense_ledger.queries.live import LiveQuery
from expense_ledger.queries.reports import ReportService

__all__ = [
    "LiveQuery",
    "ReportService",
    "breakdown",
    "category_totals",
    "monthly_series",
    "monthly_totals",
    "period_stats",
    "total_by_type",
]
