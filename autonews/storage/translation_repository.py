"""
Translation Repository
======================

Stores AI translations of articles, one row per article and language.
"""

import sqlite3
from typing import List, Optional

from ..database.models import ArticleTranslation, to_db_timestamp, utc_now
from ..database.connection import DatabaseConnection
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ErrorCode


class TranslationRepository:
    """Repository for article translations."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.logger = get_logger_for_component("translation_repository")

    def upsert_translation(self, translation: ArticleTranslation) -> int:
        """Insert a translation, replacing any earlier one for the same language.

        Returns:
            Translation row ID

        Raises:
            DatabaseError: If the write fails
        """
        try:
            with self.db.get_connection() as conn:
                conn.execute(
                    """
                    INSERT INTO article_translations (article_id, language, title, content,
                                                      meta_description, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(article_id, language) DO UPDATE SET
                        title = excluded.title,
                        content = excluded.content,
                        meta_description = excluded.meta_description,
                        created_at = excluded.created_at
                    """,
                    (
                        translation.article_id, translation.language, translation.title,
                        translation.content, translation.meta_description,
                        to_db_timestamp(translation.created_at or utc_now()),
                    ),
                )
                row = conn.execute(
                    "SELECT id FROM article_translations WHERE article_id = ? AND language = ?",
                    (translation.article_id, translation.language),
                ).fetchone()
                conn.commit()

            self.logger.info(
                f"Stored {translation.language} translation for article {translation.article_id}"
            )
            return row["id"]

        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to store translation: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def get_translation(self, article_id: int, language: str) -> Optional[ArticleTranslation]:
        row = self.db.execute_one(
            "SELECT * FROM article_translations WHERE article_id = ? AND language = ?",
            (article_id, language.strip().lower()),
        )
        return ArticleTranslation.from_db_row(row) if row else None

    def list_for_article(self, article_id: int) -> List[ArticleTranslation]:
        rows = self.db.execute_query(
            "SELECT * FROM article_translations WHERE article_id = ? ORDER BY language",
            (article_id,),
        )
        return [ArticleTranslation.from_db_row(row) for row in rows]
