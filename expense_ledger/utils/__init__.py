"""
Utility functions for the ledger core.
"""

from expense_ledger.utils.date_utils import month_range, shift_month, utc_now, year_range

__all__ = [
    "month_range",
    "shift_month",
    "utc_now",
    "year_range",
]
