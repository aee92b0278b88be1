"""
Tests for monthly and yearly reports and transaction details.
"""

import pytest
from datetime import date
from decimal import Decimal

from freezegun import freeze_time

from conftest import make_txn
from expense_ledger.models import TransactionType
from expense_ledger.services.storage import NotFoundError


@pytest.fixture
def populated(ledger, cash, bank, food, groceries, salary):
    ledger.transactions.insert(make_txn(
        "40", account_id=cash.id, category_id=food.id, subcategory_id=groceries.id, on=date(2026, 3, 3),
    ))
    ledger.transactions.insert(make_txn("10", account_id=cash.id, category_id=food.id, on=date(2026, 3, 30)))
    ledger.transactions.insert(make_txn("50", account_id=cash.id, on=date(2026, 3, 12)))
    ledger.transactions.insert(make_txn(
        "1000", TransactionType.INCOME, account_id=bank.id, category_id=salary.id, on=date(2026, 3, 1),
    ))
    ledger.transactions.insert(make_txn(
        "200", TransactionType.TRANSFER, account_id=bank.id, to_account_id=cash.id, on=date(2026, 3, 2),
    ))
    ledger.transactions.insert(make_txn("7", account_id=cash.id, on=date(2026, 4, 1)))
    return ledger


class TestMonthlyReport:
    """Tests for the monthly report."""

    def test_monthly_totals_and_breakdown(self, populated, food):
        """Test a month with every transaction type."""
        report = populated.reports.monthly_report(2026, 3)

        assert report.start_date == date(2026, 3, 1)
        assert report.end_date == date(2026, 3, 31)
        assert report.transaction_count == 5
        assert report.stats.total_expense == Decimal("100")
        assert report.stats.total_income == Decimal("1000")
        assert report.stats.balance == Decimal("900")

        rows = report.stats.expense_breakdown
        assert [(r.label, r.amount, r.percentage) for r in rows] == [
            ("Food", Decimal("50"), 50.0),
            ("Uncategorized", Decimal("50"), 50.0),
        ]
        assert rows[0].category_id == food.id

    def test_empty_month(self, populated):
        """Test that a month without data reports zeros."""
        report = populated.reports.monthly_report(2025, 2)
        assert report.transaction_count == 0
        assert report.stats.total_expense == Decimal("0")
        assert report.stats.expense_breakdown == []

    @freeze_time("2026-04-18")
    def test_defaults_to_current_month(self, populated):
        """Test the current-month default."""
        report = populated.reports.monthly_report()
        assert (report.year, report.month) == (2026, 4)
        assert report.stats.total_expense == Decimal("7")

    def test_previous_and_next_month(self, populated):
        """Test month navigation across a year boundary."""
        january = populated.reports.monthly_report(2026, 1)
        december = populated.reports.adjacent_monthly_report(january, -1)
        assert (december.year, december.month) == (2025, 12)

        april = populated.reports.adjacent_monthly_report(populated.reports.monthly_report(2026, 3), 1)
        assert april.transaction_count == 1

    def test_invalid_month(self, populated):
        """Test that an impossible month is refused."""
        with pytest.raises(ValueError):
            populated.reports.monthly_report(2026, 13)


class TestYearlyReport:
    """Tests for the yearly report."""

    def test_yearly_report(self, populated):
        """Test totals and the 12-month series."""
        report = populated.reports.yearly_report(2026)

        assert report.transaction_count == 6
        assert report.stats.total_expense == Decimal("107")
        assert len(report.monthly_data) == 12
        assert report.monthly_data[2].expense == Decimal("100")
        assert report.monthly_data[2].income == Decimal("1000")
        assert report.monthly_data[3].expense == Decimal("7")
        assert report.monthly_data[0].expense == Decimal("0")


class TestTransactionDetail:
    """Tests for resolved transaction details."""

    def test_detail_resolves_names(self, ledger, cash, food, groceries):
        """Test resolving category, subcategory and account."""
        txn_id = ledger.transactions.insert(make_txn(
            "40", account_id=cash.id, category_id=food.id, subcategory_id=groceries.id,
        ))
        detail = ledger.reports.transaction_detail(txn_id)

        assert detail.category_label == "Food > Groceries"
        assert detail.account.name == "Cash"
        assert detail.to_account is None

    def test_detail_after_account_delete(self, ledger, cash, bank):
        """Test that a cleared reference resolves to None."""
        txn_id = ledger.transactions.insert(make_txn(
            "5", TransactionType.TRANSFER, account_id=cash.id, to_account_id=bank.id,
        ))
        ledger.accounts.delete(bank.id)

        detail = ledger.reports.transaction_detail(txn_id)
        assert detail.account.name == "Cash"
        assert detail.to_account is None
        assert detail.category_label == "Transfer"

    def test_detail_missing(self, ledger):
        """Test that a missing transaction is reported."""
        with pytest.raises(NotFoundError):
            ledger.reports.transaction_detail(3)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
