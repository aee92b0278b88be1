"""
Category Tree

Categories form a tree at most two levels deep: root categories and
their subcategories. The tree enforces that shape on every write and
refuses to delete a category that still has subcategories. A category
that transactions use keeps its place in the tree, so a transaction's
category is always a root and its subcategory always a child of it.

Every listing is ordered defaults first, then by name. Pickers and
reports rely on that order.
"""

from typing import Optional

from expense_ledger.audit import AuditLogger
from expense_ledger.errors import CategoryDepthError, CategoryInUseError, HasChildrenError
from expense_ledger.models.audit import AuditEventType
from expense_ledger.models.entities import DEFAULT_CATEGORIES, Category
from expense_ledger.services.storage import LedgerStore, NotFoundError
from expense_ledger.utils.date_utils import utc_now


class CategoryTree:
    """Two-level category hierarchy over a CategoryStore."""

    def __init__(
        self,
        store: LedgerStore,
        audit: Optional[AuditLogger] = None,
    ):
        self._ledger_store = store
        self._store = store.categories
        self._transactions = store.transactions
        self._audit = audit or AuditLogger()

    # =========================================================================
    # Mutations
    # =========================================================================

    def create(self, category: Category) -> Category:
        """
        Add a category.

        Args:
            category: New category; any id it carries is ignored

        Returns:
            The stored category with its id

        Raises:
            NotFoundError: If parent_id references nothing
            CategoryDepthError: If the parent is itself a subcategory
        """
        with self._ledger_store.locked():
            self._check_parent(category.parent_id)
            stored = self._store.insert(category.model_copy(update={"id": None}))
        self._audit.log_entity_changed(
            AuditEventType.CATEGORY_CREATED, "category", stored.id, stored.name,
            {"parent_id": stored.parent_id},
        )
        return stored

    def update(self, category: Category) -> Category:
        """
        Replace a category. created_at is kept from the stored record.

        Raises:
            NotFoundError: If the category does not exist
            CategoryDepthError: If the change would nest three levels deep
            CategoryInUseError: If the parent changes while transactions
                                use the category
        """
        with self._ledger_store.locked():
            existing = self.by_id(category.id)
            if category.parent_id is not None:
                if category.parent_id == category.id:
                    raise CategoryDepthError("Category cannot be its own parent")
                self._check_parent(category.parent_id)
                if self._store.has_children(category.id):
                    raise CategoryDepthError(
                        f"Category {category.id} has subcategories and cannot become one"
                    )
            moved = category.parent_id != existing.parent_id
            if moved and self._transactions.uses_category(category.id):
                raise CategoryInUseError(category.id)

            stored = self._store.update(
                category.model_copy(update={"created_at": existing.created_at})
            )
        self._audit.log_entity_changed(
            AuditEventType.CATEGORY_UPDATED, "category", stored.id, stored.name,
        )
        return stored

    def delete(self, category_id: int) -> None:
        """
        Delete a childless category.

        Transactions that used it keep existing and become
        uncategorized (or lose their subcategory).

        Raises:
            NotFoundError: If the category does not exist
            HasChildrenError: If it still has subcategories; nothing changes
        """
        try:
            with self._ledger_store.locked():
                existing = self.by_id(category_id)
                self._store.delete_by_id(category_id)
        except HasChildrenError:
            self._audit.log_delete_blocked(category_id, existing.name)
            raise

        self._audit.log_entity_changed(
            AuditEventType.CATEGORY_DELETED, "category", category_id, existing.name,
        )

    def seed_defaults(self) -> int:
        """
        Insert the default categories into an empty tree.

        Returns:
            Number of categories inserted (0 if the tree was not empty)
        """
        with self._ledger_store.locked():
            if self._store.all():
                return 0

            for category in DEFAULT_CATEGORIES:
                self._store.insert(category.model_copy(update={"created_at": utc_now()}))
        return len(DEFAULT_CATEGORIES)

    # =========================================================================
    # Queries
    # =========================================================================

    def by_id(self, category_id: Optional[int]) -> Category:
        """
        Raises:
            NotFoundError: If no category has this id
        """
        category = self._store.by_id(category_id) if category_id is not None else None
        if category is None:
            raise NotFoundError("category", category_id)
        return category

    def find(self, category_id: Optional[int]) -> Optional[Category]:
        if category_id is None:
            return None
        return self._store.by_id(category_id)

    def roots(self) -> list[Category]:
        return self._store.roots()

    def children_of(self, parent_id: int) -> list[Category]:
        return self._store.children_of(parent_id)

    def has_children(self, category_id: int) -> bool:
        return self._store.has_children(category_id)

    def all(self) -> list[Category]:
        return self._store.all()

    def subcategory_map(self) -> dict[int, list[Category]]:
        """Every root id mapped to its subcategories, roots in listing order."""
        children: dict[int, list[Category]] = {}
        for category in self._store.all():
            if category.parent_id is not None:
                children.setdefault(category.parent_id, []).append(category)
        return {root.id: children.get(root.id, []) for root in self._store.roots()}

    def _check_parent(self, parent_id: Optional[int]) -> None:
        if parent_id is None:
            return
        parent = self.by_id(parent_id)
        if not parent.is_root:
            raise CategoryDepthError(
                f"'{parent.name}' is a subcategory and cannot have subcategories"
            )
