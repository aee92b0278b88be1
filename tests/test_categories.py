"""
Tests for the category tree.
"""

import pytest
import threading
from decimal import Decimal

from conftest import make_txn
from expense_ledger.errors import (
    CategoryDepthError,
    CategoryInUseError,
    HasChildrenError,
    StructuralError,
)
from expense_ledger.models import AuditEventType, Category, TransactionType
from expense_ledger.queries import category_totals
from expense_ledger.services.storage import NotFoundError


class TestCategoryCreation:
    """Tests for creating categories."""

    def test_create_assigns_id(self, ledger):
        """Test that the store assigns an id."""
        category = ledger.categories.create(Category(name="Travel"))
        assert category.id is not None
        assert ledger.categories.by_id(category.id).name == "Travel"

    def test_create_ignores_supplied_id(self, ledger):
        """Test that a caller-supplied id is not used."""
        category = ledger.categories.create(Category(id=999, name="Travel"))
        assert category.id != 999

    def test_subcategory_of_root(self, food, groceries):
        """Test creating a subcategory under a root."""
        assert groceries.parent_id == food.id

    def test_grandchild_is_rejected(self, ledger, groceries):
        """Test that a third level of nesting is refused."""
        with pytest.raises(CategoryDepthError):
            ledger.categories.create(Category(name="Organic", parent_id=groceries.id))

    def test_unknown_parent_is_rejected(self, ledger):
        """Test that a missing parent is reported."""
        with pytest.raises(NotFoundError):
            ledger.categories.create(Category(name="Orphan", parent_id=404))

    def test_depth_error_is_structural(self):
        """Test the error hierarchy."""
        assert issubclass(CategoryDepthError, StructuralError)
        assert issubclass(HasChildrenError, StructuralError)


class TestCategoryUpdate:
    """Tests for updating categories."""

    def test_update_replaces_record_and_keeps_created_at(self, ledger, salary):
        """Test that update keeps the stored created_at."""
        changed = salary.model_copy(update={"name": "Wages", "created_at": salary.created_at.replace(year=2000)})
        updated = ledger.categories.update(changed)
        assert updated.name == "Wages"
        assert updated.created_at == salary.created_at

    def test_parent_with_children_cannot_become_subcategory(self, ledger, food, groceries, salary):
        """Test that moving a parent under another root is refused."""
        with pytest.raises(CategoryDepthError):
            ledger.categories.update(food.model_copy(update={"parent_id": salary.id}))

    def test_cannot_move_under_subcategory(self, ledger, groceries, salary):
        """Test that a subcategory cannot become a parent."""
        with pytest.raises(CategoryDepthError):
            ledger.categories.update(salary.model_copy(update={"parent_id": groceries.id}))

    def test_update_missing_category(self, ledger):
        """Test updating a category that does not exist."""
        with pytest.raises(NotFoundError):
            ledger.categories.update(Category(id=77, name="Ghost"))

    def test_used_root_cannot_move_under_another_root(self, ledger, cash, food, salary):
        """Test that a root used as a transaction category stays a root."""
        txn_id = ledger.transactions.insert(make_txn(
            "500", TransactionType.INCOME, category_id=salary.id, account_id=cash.id,
        ))

        with pytest.raises(CategoryInUseError) as exc_info:
            ledger.categories.update(salary.model_copy(update={"parent_id": food.id}))

        assert exc_info.value.category_id == salary.id
        assert ledger.categories.by_id(salary.id).parent_id is None
        totals = category_totals(ledger.transactions.all(), TransactionType.INCOME)
        assert list(totals) == [salary.id]

        # the transaction can still be edited and saved
        entry = ledger.edit_entry(txn_id)
        entry.enter_note("March")
        assert entry.save().success

    def test_used_subcategory_cannot_change_parent(self, ledger, cash, food, groceries, salary):
        """Test that a subcategory in use keeps its parent."""
        ledger.transactions.insert(make_txn(
            "20", category_id=food.id, subcategory_id=groceries.id, account_id=cash.id,
        ))

        with pytest.raises(CategoryInUseError):
            ledger.categories.update(groceries.model_copy(update={"parent_id": salary.id}))
        with pytest.raises(CategoryInUseError):
            ledger.categories.update(groceries.model_copy(update={"parent_id": None}))
        assert ledger.categories.by_id(groceries.id).parent_id == food.id

    def test_used_category_can_be_renamed(self, ledger, cash, salary):
        """Test that edits which keep the parent are allowed for used categories."""
        ledger.transactions.insert(make_txn(
            "500", TransactionType.INCOME, category_id=salary.id, account_id=cash.id,
        ))
        assert ledger.categories.update(salary.model_copy(update={"name": "Wages"})).name == "Wages"

    def test_unused_root_can_become_subcategory(self, ledger, food, salary):
        """Test moving a childless, unused root under another root."""
        moved = ledger.categories.update(salary.model_copy(update={"parent_id": food.id}))
        assert moved.parent_id == food.id
        assert [c.id for c in ledger.categories.children_of(food.id)] == [salary.id]

    def test_in_use_error_is_structural(self):
        assert issubclass(CategoryInUseError, StructuralError)


class TestCategoryConcurrency:
    """Tests for checks and writes happening in one critical section."""

    def test_parent_cannot_be_deleted_while_subcategory_is_created(self, ledger, store, food, monkeypatch):
        """Test that a parent removed mid-create never leaves an orphan."""
        outcome = []

        def delete_parent():
            try:
                outcome.append(store.categories.delete_by_id(food.id))
            except HasChildrenError as e:
                outcome.append(e)

        deleter = threading.Thread(target=delete_parent)
        original_by_id = ledger.categories.by_id

        def by_id_then_delete(category_id):
            found = original_by_id(category_id)
            if not deleter.is_alive() and not outcome:
                deleter.start()
                deleter.join(timeout=0.2)
                # the delete waits for the create to finish
                assert deleter.is_alive()
            return found

        monkeypatch.setattr(ledger.categories, "by_id", by_id_then_delete)
        child = ledger.categories.create(Category(name="Snacks", parent_id=food.id))
        deleter.join(timeout=5)

        assert isinstance(outcome[0], HasChildrenError)
        assert store.categories.by_id(child.parent_id) is not None


class TestCategoryDelete:
    """Tests for deleting categories."""

    def test_delete_with_children_fails_without_change(self, ledger, food, groceries, restaurants):
        """Test that a parent with subcategories cannot be deleted."""
        before = ledger.categories.all()

        with pytest.raises(HasChildrenError) as exc_info:
            ledger.categories.delete(food.id)

        assert exc_info.value.category_id == food.id
        assert ledger.categories.all() == before

    def test_blocked_delete_is_audited(self, ledger, audit_storage, food, groceries):
        """Test that a refused delete leaves an audit record."""
        with pytest.raises(HasChildrenError):
            ledger.categories.delete(food.id)

        events = audit_storage.get_events_by_entity("category", food.id)
        assert events[-1].event_type == AuditEventType.CATEGORY_DELETE_BLOCKED

    def test_delete_childless_category_uncategorizes_transactions(self, ledger, cash, salary):
        """Test that transactions survive and lose their category."""
        txn_id = ledger.transactions.insert(make_txn(
            "500", "income", category_id=salary.id, account_id=cash.id,
        ))

        ledger.categories.delete(salary.id)

        txn = ledger.transactions.by_id(txn_id)
        assert txn.category_id is None
        assert txn.amount == Decimal("500")

    def test_delete_subcategory_clears_only_subcategory(self, ledger, cash, food, groceries):
        """Test that deleting a subcategory keeps the parent reference."""
        txn_id = ledger.transactions.insert(make_txn(
            "20", category_id=food.id, subcategory_id=groceries.id, account_id=cash.id,
        ))

        ledger.categories.delete(groceries.id)

        txn = ledger.transactions.by_id(txn_id)
        assert txn.category_id == food.id
        assert txn.subcategory_id is None

    def test_parent_deletable_after_children_removed(self, ledger, food, groceries, restaurants):
        """Test deleting subcategories first, then the parent."""
        ledger.categories.delete(groceries.id)
        ledger.categories.delete(restaurants.id)
        ledger.categories.delete(food.id)

        with pytest.raises(NotFoundError):
            ledger.categories.by_id(food.id)

    def test_delete_missing_category(self, ledger):
        """Test deleting a category that does not exist."""
        with pytest.raises(NotFoundError):
            ledger.categories.delete(1234)


class TestCategoryListing:
    """Tests for ordering and tree queries."""

    def test_roots_defaults_first_then_alphabetical(self, ledger):
        """Test the listing order contract."""
        ledger.categories.create(Category(name="zoo"))
        ledger.categories.create(Category(name="Bills", is_default=True))
        ledger.categories.create(Category(name="apples"))
        ledger.categories.create(Category(name="Auto", is_default=True))

        names = [c.name for c in ledger.categories.roots()]
        assert names == ["Auto", "Bills", "apples", "zoo"]

    def test_children_of(self, ledger, food, groceries, restaurants, salary):
        """Test listing subcategories."""
        assert [c.name for c in ledger.categories.children_of(food.id)] == ["Groceries", "Restaurants"]
        assert ledger.categories.children_of(salary.id) == []

    def test_roots_exclude_subcategories(self, ledger, food, groceries, salary):
        """Test that roots() only lists top-level categories."""
        assert {c.id for c in ledger.categories.roots()} == {food.id, salary.id}

    def test_has_children(self, ledger, food, groceries, salary):
        """Test has_children."""
        assert ledger.categories.has_children(food.id)
        assert not ledger.categories.has_children(salary.id)

    def test_subcategory_map(self, ledger, food, groceries, salary):
        """Test the root -> subcategories map."""
        mapping = ledger.categories.subcategory_map()
        assert [c.id for c in mapping[food.id]] == [groceries.id]
        assert mapping[salary.id] == []


class TestCategorySeeding:
    """Tests for default categories."""

    def test_seed_into_empty_tree(self, ledger):
        """Test seeding defaults."""
        assert ledger.categories.seed_defaults() == 10
        assert all(c.is_default for c in ledger.categories.all())

    def test_seed_skips_non_empty_tree(self, ledger, salary):
        """Test that seeding never adds to existing categories."""
        assert ledger.categories.seed_defaults() == 0
        assert len(ledger.categories.all()) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
