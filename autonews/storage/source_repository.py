"""
RSS Source Repository
=====================

Data access for configured RSS/Atom sources and their fetch bookkeeping.
"""

import sqlite3
from datetime import datetime
from typing import List, Optional

from ..database.models import RSSSource, to_db_timestamp, utc_now
from ..database.connection import DatabaseConnection
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ValidationError, ErrorCode


class SourceRepository:
    """Repository for RSSSource operations."""

    def __init__(self, db_connection: DatabaseConnection):
        """Initialize source repository.

        Args:
            db_connection: Database connection manager
        """
        self.db = db_connection
        self.logger = get_logger_for_component("source_repository")

    def create_source(self, source: RSSSource) -> int:
        """Register a new feed.

        Args:
            source: Source model to create

        Returns:
            Created source ID

        Raises:
            ValidationError: If the URL is already registered
            DatabaseError: If creation fails
        """
        try:
            with self.db.get_connection() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO rss_sources (name, url, category_id, is_active,
                                             fetch_interval, last_fetched_at, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        source.name, source.url, source.category_id, source.is_active,
                        source.fetch_interval, to_db_timestamp(source.last_fetched_at),
                        to_db_timestamp(source.created_at),
                    ),
                )
                conn.commit()
                source_id = cursor.lastrowid

            self.logger.info(f"Created RSS source {source.name} (id={source_id})")
            return source_id

        except sqlite3.IntegrityError as e:
            raise ValidationError(
                f"Could not register source {source.url}: {e}",
                field_name="url",
                error_code=ErrorCode.VALIDATION_DUPLICATE,
            ) from e
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to create source: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def get_source(self, source_id: int) -> Optional[RSSSource]:
        row = self.db.execute_one("SELECT * FROM rss_sources WHERE id = ?", (source_id,))
        return RSSSource.from_db_row(row) if row else None

    def list_sources(self, active_only: bool = False) -> List[RSSSource]:
        query = "SELECT * FROM rss_sources"
        if active_only:
            query += " WHERE is_active = 1"
        query += " ORDER BY id"
        return [RSSSource.from_db_row(row) for row in self.db.execute_query(query)]

    def get_active_by_staleness(self) -> List[RSSSource]:
        """Active sources, least recently fetched first; never-fetched sources lead."""
        rows = self.db.execute_query(
            """
            SELECT * FROM rss_sources
            WHERE is_active = 1
            ORDER BY last_fetched_at IS NOT NULL, last_fetched_at ASC, id ASC
            """
        )
        return [RSSSource.from_db_row(row) for row in rows]

    def update_last_fetched(self, source_id: int, fetched_at: Optional[datetime] = None) -> bool:
        """Record a fetch attempt.

        Raises:
            DatabaseError: If the update fails
        """
        try:
            updated = self.db.execute_update(
                "UPDATE rss_sources SET last_fetched_at = ? WHERE id = ?",
                (to_db_timestamp(fetched_at or utc_now()), source_id),
            )
            return updated > 0
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to update last_fetched_at for source {source_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def set_active(self, source_id: int, active: bool) -> bool:
        updated = self.db.execute_update(
            "UPDATE rss_sources SET is_active = ? WHERE id = ?",
            (active, source_id),
        )
        if updated:
            self.logger.info(f"Source {source_id} {'activated' if active else 'deactivated'}")
        return updated > 0
