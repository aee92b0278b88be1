"""
Report Service

DESIGN DECISION: Reports are DETERMINISTIC views over stored data.
The service loads the transactions of a period once, hands them to the
pure aggregation functions and attaches category records for display.
It never estimates: an empty period is reported as zeros.
"""

from datetime import date
from typing import Optional

from expense_ledger.ledger import AccountLedger, CategoryTree, TransactionLog
from expense_ledger.models.entities import Category
from expense_ledger.models.reports import MonthlyReport, TransactionDetail, YearlyReport
from expense_ledger.queries.aggregation import monthly_series, period_stats
from expense_ledger.utils.date_utils import month_range, shift_month


class ReportService:
    """
    Builds monthly and yearly reports and transaction details.

    GUARANTEES:
    - Only returns real data from storage
    - Breakdowns are ordered by amount, ties by category id
    - Transfers never appear in income or expense figures
    """

    def __init__(
        self,
        categories: CategoryTree,
        accounts: AccountLedger,
        transactions: TransactionLog,
    ):
        self._categories = categories
        self._accounts = accounts
        self._transactions = transactions

    def monthly_report(
        self,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> MonthlyReport:
        """
        Report for one calendar month.

        Defaults to the current month.

        Raises:
            ValueError: If month is outside 1-12
        """
        today = date.today()
        year = year if year is not None else today.year
        month = month if month is not None else today.month

        start, end = month_range(year, month)
        transactions = self._transactions.by_date_range(start, end)

        return MonthlyReport(
            year=year,
            month=month,
            start_date=start,
            end_date=end,
            stats=period_stats(transactions, self._category_lookup()),
            transaction_count=len(transactions),
        )

    def adjacent_monthly_report(self, report: MonthlyReport, delta: int) -> MonthlyReport:
        """Report for the month delta months away (-1 previous, +1 next)."""
        year, month = shift_month(report.year, report.month, delta)
        return self.monthly_report(year, month)

    def yearly_report(self, year: Optional[int] = None) -> YearlyReport:
        """Report for one calendar year with a zero-filled 12-month series."""
        year = year if year is not None else date.today().year
        transactions = self._transactions.by_year(year)

        return YearlyReport(
            year=year,
            stats=period_stats(transactions, self._category_lookup()),
            monthly_data=monthly_series(transactions, year),
            transaction_count=len(transactions),
        )

    def transaction_detail(self, txn_id: int) -> TransactionDetail:
        """
        A transaction with its category, subcategory and accounts resolved.

        References that were cleared or no longer exist resolve to None.

        Raises:
            NotFoundError: If the transaction does not exist
        """
        txn = self._transactions.by_id(txn_id)
        return TransactionDetail(
            transaction=txn,
            category=self._categories.find(txn.category_id),
            subcategory=self._categories.find(txn.subcategory_id),
            account=self._accounts.find(txn.account_id),
            to_account=self._accounts.find(txn.to_account_id),
        )

    def _category_lookup(self) -> dict[int, Category]:
        return {category.id: category for category in self._categories.all()}
