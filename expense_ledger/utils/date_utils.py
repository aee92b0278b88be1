"""
Date utilities for period ranges and month navigation.
"""

import calendar
from datetime import date, datetime, timezone


def utc_now() -> datetime:
    """Timezone-aware current UTC time, used for created_at stamps."""
    return datetime.now(timezone.utc)


def month_range(year: int, month: int) -> tuple[date, date]:
    """
    Get the inclusive date range for a specific month.

    Args:
        year: Year (e.g., 2026)
        month: Month (1-12)

    Returns:
        Tuple of (first_day, last_day)

    Raises:
        ValueError: If month is not in valid range (1-12)
    """
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month}")

    _, last_day = calendar.monthrange(year, month)
    return date(year, month, 1), date(year, month, last_day)


def year_range(year: int) -> tuple[date, date]:
    """Get the inclusive date range for a calendar year."""
    return date(year, 1, 1), date(year, 12, 31)


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    """
    Move a (year, month) pair by delta months.

    Used for previous/next month navigation in reports.
    """
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month}")

    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1
