"""Category domain service."""

from typing import Optional
from finledger.database.base import Database
from finledger.domain.entities import Category, CategoryNature
from finledger.domain.errors import NotFoundError, ValidationError


class CategoryService:
    """Service for managing categories."""

    def __init__(self, db: Database):
        """Initialize category service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_category(
        self,
        name: str,
        parent_path: Optional[str] = None,
        nature: CategoryNature = CategoryNature.EXPENSE,
    ) -> int:
        """Create a category.

        Args:
            name: Category name
            parent_path: Optional parent category path (e.g., "Food > Groceries")
            nature: Whether the category classifies income, expenses or neither

        Returns:
            Category ID

        Raises:
            ValidationError: If the name is blank
            NotFoundError: If parent category doesn't exist
        """
        name = name.strip()
        if not name:
            raise ValidationError("Category name cannot be empty")

        parent_id = None
        if parent_path is not None:
            parent = self.get_category_by_path(parent_path)
            if parent is None:
                raise NotFoundError(f"Parent category '{parent_path}' not found")
            parent_id = parent.id

        return self.db.create_category(name=name, parent_id=parent_id, nature=nature)

    def get_category(self, category_id: int) -> Optional[Category]:
        """Get category by ID."""
        return self.db.get_category(category_id)

    def get_category_by_path(self, path: str) -> Optional[Category]:
        """Get category by path.

        Args:
            path: Category path (e.g., "Food > Groceries")

        Returns:
            Category or None if not found
        """
        parts = [part.strip() for part in path.split(">")]
        categories = self.db.list_categories()
        parent_id = None
        current = None
        for part in parts:
            current = next(
                (c for c in categories if c.name == part and c.parent_id == parent_id),
                None,
            )
            if current is None:
                return None
            parent_id = current.id
        return current

    def list_categories(self) -> list[Category]:
        """List all categories."""
        return self.db.list_categories()

    def format_category_path(self, category_id: int) -> str:
        """Get full path for a category.

        Args:
            category_id: Category ID

        Returns:
            Full category path (e.g., "Food > Groceries"), or "" if missing
        """
        cat = self.get_category(category_id)
        if cat is None:
            return ""

        path_parts = [cat.name]
        current_parent_id = cat.parent_id

        while current_parent_id is not None:
            parent = self.get_category(current_parent_id)
            if parent is None:
                break
            path_parts.append(parent.name)
            current_parent_id = parent.parent_id

        return " > ".join(reversed(path_parts))
