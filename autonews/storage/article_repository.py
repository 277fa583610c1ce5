"""
Article Repository
==================

Repository for stored articles. Slug and source URL uniqueness is enforced
by the database; inserts report a conflict instead of raising.
"""

import sqlite3
from typing import List, Optional

from ..database.models import Article, to_db_timestamp, utc_now
from ..database.connection import DatabaseConnection
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ErrorCode


class ArticleRepository:
    """Repository for Article CRUD operations with database abstraction."""

    def __init__(self, db_connection: DatabaseConnection):
        """Initialize article repository.

        Args:
            db_connection: Database connection manager
        """
        self.db = db_connection
        self.logger = get_logger_for_component("article_repository")

    def insert_article(
        self, article: Article, conn: Optional[sqlite3.Connection] = None
    ) -> Optional[int]:
        """Insert an article unless its slug or source URL already exists.

        Args:
            article: Article model to create
            conn: Connection of an enclosing transaction, if any

        Returns:
            New article ID, or None if an article with the same slug or
            source URL is already stored

        Raises:
            DatabaseError: If the insert fails for any other reason
        """
        try:
            with self.db.reuse_or_connect(conn) as c:
                cursor = c.execute(
                    """
                    INSERT INTO articles (title, slug, content, excerpt, source_url,
                                          source_name, published_at, category_id,
                                          is_published, view_count, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT DO NOTHING
                    """,
                    (
                        article.title, article.slug, article.content, article.excerpt,
                        article.source_url, article.source_name,
                        to_db_timestamp(article.published_at), article.category_id,
                        article.is_published, article.view_count,
                        to_db_timestamp(article.created_at),
                        to_db_timestamp(article.updated_at),
                    ),
                )
                if cursor.rowcount == 0:
                    self.logger.debug(f"Article already stored: {article.slug}")
                    return None
                article_id = cursor.lastrowid

            self.logger.debug(f"Created article {article_id}: {article.slug}")
            return article_id

        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to create article: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def exists(self, source_url: Optional[str], slug: str) -> bool:
        """Check whether an article with this source URL or slug is stored."""
        row = self.db.execute_one(
            """
            SELECT 1 FROM articles
            WHERE slug = ? OR (? IS NOT NULL AND source_url = ?)
            LIMIT 1
            """,
            (slug, source_url, source_url),
        )
        return row is not None

    def get_article(self, article_id: int) -> Optional[Article]:
        try:
            row = self.db.execute_one("SELECT * FROM articles WHERE id = ?", (article_id,))
            return Article.from_db_row(row) if row else None
        except sqlite3.Error as e:
            self.logger.error(f"Failed to get article {article_id}: {e}")
            return None

    def get_by_slug(
        self, slug: str, published_only: bool = False, count_view: bool = False
    ) -> Optional[Article]:
        """Get an article by slug.

        Args:
            slug: Article slug
            published_only: Ignore unpublished articles
            count_view: Increment the view counter of the returned article

        Returns:
            Article model or None if not found
        """
        query = "SELECT * FROM articles WHERE slug = ?"
        if published_only:
            query += " AND is_published = 1"

        with self.db.get_connection() as conn:
            row = conn.execute(query, (slug,)).fetchone()
            if row is None:
                return None
            if count_view:
                conn.execute(
                    "UPDATE articles SET view_count = view_count + 1 WHERE id = ?",
                    (row["id"],),
                )
                conn.commit()
                row = conn.execute("SELECT * FROM articles WHERE id = ?", (row["id"],)).fetchone()
            return Article.from_db_row(row)

    def list_published(
        self, category_id: Optional[int] = None, limit: int = 20, offset: int = 0
    ) -> List[Article]:
        """Published articles, newest first, optionally within one category."""
        query = "SELECT * FROM articles WHERE is_published = 1"
        params: tuple = ()
        if category_id is not None:
            query += " AND category_id = ?"
            params = (category_id,)
        query += " ORDER BY published_at DESC, id DESC LIMIT ? OFFSET ?"

        rows = self.db.execute_query(query, params + (limit, offset))
        return [Article.from_db_row(row) for row in rows]

    def list_recent(self, limit: int = 20) -> List[Article]:
        rows = self.db.execute_query(
            "SELECT * FROM articles ORDER BY created_at DESC, id DESC LIMIT ?", (limit,)
        )
        return [Article.from_db_row(row) for row in rows]

    def publish(self, article_id: int) -> bool:
        """Mark an article as published.

        Returns:
            True if the article exists and was unpublished
        """
        updated = self.db.execute_update(
            """
            UPDATE articles SET is_published = 1, updated_at = ?
            WHERE id = ? AND is_published = 0
            """,
            (to_db_timestamp(utc_now()), article_id),
        )
        if updated:
            self.logger.info(f"Published article {article_id}")
        return updated > 0

    def count(self, published: Optional[bool] = None) -> int:
        if published is None:
            row = self.db.execute_one("SELECT COUNT(*) FROM articles")
        else:
            row = self.db.execute_one(
                "SELECT COUNT(*) FROM articles WHERE is_published = ?", (published,)
            )
        return row[0]
