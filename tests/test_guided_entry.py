"""
Tests for the guided entry controller against a real in-memory ledger.
"""

import pytest
from datetime import date
from decimal import Decimal

from freezegun import freeze_time

from conftest import make_txn
from expense_ledger.entry import EntryField
from expense_ledger.errors import CategoryDepthError
from expense_ledger.models import AuditEventType, TransactionType, ValidationErrorCode
from expense_ledger.services.storage import NotFoundError


class TestNewEntry:
    """Tests for the new-transaction flow."""

    @freeze_time("2026-05-20")
    def test_new_entry_starts_at_account_with_default(self, ledger, cash, bank):
        """Test the starting state."""
        entry = ledger.new_entry()
        assert entry.current_field == EntryField.ACCOUNT
        assert entry.draft.account_id == cash.id
        assert entry.draft.date == date(2026, 5, 20)
        assert not entry.draft.is_editing

    def test_new_entry_without_accounts(self, ledger):
        """Test that no account is preselected on an empty ledger."""
        assert ledger.new_entry().draft.account_id is None

    def test_leaf_category_flow(self, ledger, cash, salary):
        """Test Account -> Category(leaf) -> Amount -> save."""
        entry = ledger.new_entry(TransactionType.INCOME)
        entry.select_account(cash.id)
        entry.select_category(salary.id)
        assert entry.current_field == EntryField.AMOUNT

        entry.enter_amount("2500")
        result = entry.save()

        assert result.success
        txn = ledger.transactions.by_id(result.transaction_id)
        assert txn.category_id == salary.id
        assert txn.subcategory_id is None
        assert txn.amount == Decimal("2500")

    def test_subcategory_flow(self, ledger, cash, food, groceries, restaurants):
        """Test Account -> Category(parent) -> Subcategory -> Amount -> save."""
        entry = ledger.new_entry()
        entry.select_account(cash.id)
        entry.select_category(food.id)
        assert entry.current_field == EntryField.SUBCATEGORY
        assert [c.name for c in entry.available_subcategories()] == ["Groceries", "Restaurants"]

        entry.select_subcategory(restaurants.id)
        entry.enter_amount("18.40")
        entry.enter_note("dinner")
        result = entry.save()

        txn = ledger.transactions.by_id(result.transaction_id)
        assert txn.category_id == food.id
        assert txn.subcategory_id == restaurants.id
        assert txn.note == "dinner"

    def test_parent_alone_is_rejected(self, ledger, cash, food, groceries):
        """Test MISSING_SUBCATEGORY when the menu was shown."""
        entry = ledger.new_entry()
        entry.select_category(food.id)
        entry.enter_amount("5")
        result = entry.save()

        assert not result.success
        assert result.error.code == ValidationErrorCode.MISSING_SUBCATEGORY
        assert ledger.transactions.all() == []

    def test_failed_save_keeps_state(self, ledger, cash, salary):
        """Test that a rejected save leaves the draft intact."""
        entry = ledger.new_entry()
        entry.select_category(salary.id)
        before = entry.state

        result = entry.save()

        assert result.error.code == ValidationErrorCode.INVALID_AMOUNT
        assert entry.state == before

    def test_rejection_is_audited(self, ledger, audit_storage, cash):
        """Test that a refused entry leaves an audit record."""
        ledger.new_entry().save()
        assert audit_storage.get_recent_events(limit=1)[0].event_type == AuditEventType.ENTRY_REJECTED

    def test_rejection_by_transaction_log_is_audited(self, ledger, audit_storage, cash, salary):
        """Test that a draft refused when written is audited like a draft error."""
        entry = ledger.new_entry(TransactionType.INCOME)
        entry.select_account(cash.id)
        entry.select_category(salary.id)
        entry.enter_amount("2500")
        ledger.categories.delete(salary.id)

        result = entry.save()

        assert not result.success
        assert result.error.code == ValidationErrorCode.UNKNOWN_REFERENCE
        rejected = [
            e for e in audit_storage.get_recent_events()
            if e.event_type == AuditEventType.ENTRY_REJECTED
        ]
        assert len(rejected) == 1
        assert rejected[0].error_code == ValidationErrorCode.UNKNOWN_REFERENCE.value

    def test_transfer_flow(self, ledger, cash, bank):
        """Test Account -> ToAccount -> Amount -> save."""
        entry = ledger.new_entry(TransactionType.TRANSFER)
        entry.select_account(cash.id)
        assert entry.current_field == EntryField.TO_ACCOUNT
        entry.select_to_account(bank.id)
        entry.enter_amount("30")
        assert entry.save().success

        assert ledger.accounts.balance_of(bank.id) == Decimal("30")

    def test_transfer_to_same_account(self, ledger, cash):
        """Test SAME_ACCOUNT from the entry flow."""
        entry = ledger.new_entry(TransactionType.TRANSFER)
        entry.select_to_account(cash.id)
        entry.enter_amount("1")
        assert entry.save().error.code == ValidationErrorCode.SAME_ACCOUNT

    def test_selecting_subcategory_as_category_is_refused(self, ledger, cash, groceries):
        """Test that only roots can be picked as a category."""
        with pytest.raises(CategoryDepthError):
            ledger.new_entry().select_category(groceries.id)

    def test_selecting_foreign_subcategory_is_refused(self, ledger, cash, food, groceries, salary):
        """Test that the subcategory must belong to the chosen category."""
        entry = ledger.new_entry()
        entry.select_category(salary.id)
        with pytest.raises(CategoryDepthError):
            entry.select_subcategory(groceries.id)

    def test_unknown_account(self, ledger):
        """Test selecting an account that does not exist."""
        with pytest.raises(NotFoundError):
            ledger.new_entry().select_account(7)

    def test_second_save_updates(self, ledger, cash, salary):
        """Test that saving twice does not duplicate the transaction."""
        entry = ledger.new_entry()
        entry.select_category(salary.id)
        entry.enter_amount("10")
        first = entry.save()
        entry.enter_amount("12")
        second = entry.save()

        assert second.updated
        assert second.transaction_id == first.transaction_id
        assert len(ledger.transactions.all()) == 1
        assert ledger.transactions.by_id(first.transaction_id).amount == Decimal("12")


class TestSaveAndContinue:
    """Tests for rapid repeated entry."""

    def test_continue_keeps_type_date_account(self, ledger, cash, bank, food, groceries):
        """Test what survives save-and-continue."""
        entry = ledger.new_entry()
        entry.select_account(bank.id)
        entry.select_date(date(2026, 1, 9))
        entry.select_category(food.id)
        entry.select_subcategory(groceries.id)
        entry.enter_amount("7")
        entry.enter_note("milk")

        result = entry.save(continue_entry=True)

        assert result.success
        assert entry.current_field == EntryField.CATEGORY
        assert entry.draft.account_id == bank.id
        assert entry.draft.date == date(2026, 1, 9)
        assert entry.draft.type == TransactionType.EXPENSE
        assert entry.draft.amount == ""
        assert entry.draft.note == ""
        assert entry.draft.category_id is None
        assert entry.draft.subcategory_id is None

    def test_continue_after_edit_inserts(self, ledger, cash, salary):
        """Test that the next entry after an edit is a new transaction."""
        txn_id = ledger.transactions.insert(make_txn(
            "100", TransactionType.INCOME, account_id=cash.id, category_id=salary.id,
        ))
        entry = ledger.edit_entry(txn_id)
        entry.enter_amount("110")
        assert entry.save(continue_entry=True).updated

        entry.select_category(salary.id)
        entry.enter_amount("5")
        result = entry.save()

        assert not result.updated
        assert result.transaction_id != txn_id
        assert len(ledger.transactions.all()) == 2


class TestEditAndCopy:
    """Tests for flows seeded from a stored transaction."""

    def test_edit_starts_at_none(self, ledger, cash, food, groceries):
        """Test the edit starting state."""
        txn_id = ledger.transactions.insert(make_txn(
            "9.5", account_id=cash.id, category_id=food.id, subcategory_id=groceries.id,
        ))
        entry = ledger.edit_entry(txn_id)

        assert entry.current_field == EntryField.NONE
        assert entry.draft.transaction_id == txn_id
        assert entry.draft.amount == "9.50"
        assert entry.draft.subcategory_required

    def test_edit_updates_in_place(self, ledger, cash, salary):
        """Test that saving an edit updates the stored transaction."""
        txn_id = ledger.transactions.insert(make_txn(
            "100", TransactionType.INCOME, account_id=cash.id, category_id=salary.id,
        ))
        entry = ledger.edit_entry(txn_id)
        entry.set_current_field(EntryField.AMOUNT)
        entry.enter_amount("150")
        result = entry.save()

        assert result.updated
        assert result.transaction_id == txn_id
        assert ledger.transactions.by_id(txn_id).amount == Decimal("150")

    def test_edit_unknown_transaction(self, ledger):
        """Test editing a transaction that does not exist."""
        with pytest.raises(NotFoundError):
            ledger.edit_entry(404)

    def test_edit_after_concurrent_delete(self, ledger, cash, salary):
        """Test saving an edit whose transaction was deleted meanwhile."""
        txn_id = ledger.transactions.insert(make_txn(
            "100", TransactionType.INCOME, account_id=cash.id, category_id=salary.id,
        ))
        entry = ledger.edit_entry(txn_id)
        ledger.transactions.delete(txn_id)

        result = entry.save()
        assert not result.success
        assert result.error.code == ValidationErrorCode.UNKNOWN_REFERENCE

    @freeze_time("2026-06-01")
    def test_copy_with_today(self, ledger, cash, salary):
        """Test copying a transaction to today's date."""
        txn_id = ledger.transactions.insert(make_txn(
            "100", TransactionType.INCOME, account_id=cash.id, category_id=salary.id,
            on=date(2026, 1, 1), note="bonus",
        ))
        entry = ledger.copy_entry(txn_id, use_today=True)

        assert entry.draft.transaction_id is None
        assert entry.draft.date == date(2026, 6, 1)
        assert entry.draft.note == "bonus"

        result = entry.save()
        assert not result.updated
        assert result.transaction_id != txn_id
        assert ledger.transactions.by_id(txn_id).date == date(2026, 1, 1)

    def test_copy_keeps_original_date_by_default(self, ledger, cash, salary):
        """Test copying without changing the date."""
        txn_id = ledger.transactions.insert(make_txn(
            "1", TransactionType.INCOME, account_id=cash.id, category_id=salary.id, on=date(2025, 8, 8),
        ))
        assert ledger.copy_entry(txn_id).draft.date == date(2025, 8, 8)

    def test_delete_from_edit(self, ledger, cash, salary):
        """Test deleting the transaction being edited."""
        txn_id = ledger.transactions.insert(make_txn("3", account_id=cash.id, category_id=salary.id))
        entry = ledger.edit_entry(txn_id)

        assert entry.delete()
        assert ledger.transactions.all() == []
        assert not ledger.new_entry().delete()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
