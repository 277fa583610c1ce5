"""
Category Repository
===================

Data access for editorial categories.
"""

import sqlite3
from typing import List, Optional

from ..database.models import Category, to_db_timestamp
from ..database.connection import DatabaseConnection
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ValidationError, ErrorCode


class CategoryRepository:
    """Repository for Category operations."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.logger = get_logger_for_component("category_repository")

    def create_category(self, category: Category) -> int:
        """Create a category.

        Raises:
            ValidationError: If the slug is already taken
            DatabaseError: If creation fails
        """
        try:
            with self.db.get_connection() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO categories (name, slug, description, created_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (category.name, category.slug, category.description,
                     to_db_timestamp(category.created_at)),
                )
                conn.commit()
                category_id = cursor.lastrowid

            self.logger.info(f"Created category {category.slug} (id={category_id})")
            return category_id

        except sqlite3.IntegrityError as e:
            raise ValidationError(
                f"Category slug already exists: {category.slug}",
                field_name="slug",
                error_code=ErrorCode.VALIDATION_DUPLICATE,
            ) from e
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to create category: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def get_category(self, category_id: int) -> Optional[Category]:
        row = self.db.execute_one("SELECT * FROM categories WHERE id = ?", (category_id,))
        return Category.from_db_row(row) if row else None

    def get_by_slug(self, slug: str) -> Optional[Category]:
        row = self.db.execute_one("SELECT * FROM categories WHERE slug = ?", (slug,))
        return Category.from_db_row(row) if row else None

    def list_categories(self) -> List[Category]:
        rows = self.db.execute_query("SELECT * FROM categories ORDER BY name")
        return [Category.from_db_row(row) for row in rows]
