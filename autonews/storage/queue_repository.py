"""
Content Queue Repository
========================

Data access for the content queue. Every status change is a conditional
UPDATE that only matches rows in a state from which the move is legal, so
concurrent runs cannot double-process an entry. Methods report whether the
row actually changed.
"""

import json
import sqlite3
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..database.models import (
    ProcessedContent,
    ProcessingStatus,
    QueueEntry,
    QueueStats,
    RewriteResult,
    RewriteStatus,
    REWRITABLE_PROCESSING_STATES,
    to_db_timestamp,
    utc_now,
)
from ..database.connection import DatabaseConnection
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ErrorCode

_REWRITABLE_SQL = ", ".join(f"'{status.value}'" for status in REWRITABLE_PROCESSING_STATES)


class QueueRepository:
    """Repository for content queue entries."""

    def __init__(self, db_connection: DatabaseConnection):
        """Initialize queue repository.

        Args:
            db_connection: Database connection manager
        """
        self.db = db_connection
        self.logger = get_logger_for_component("queue_repository")

    def enqueue(
        self,
        content: ProcessedContent,
        source_type: str,
        source_data: Dict[str, Any],
        scheduled_for: Optional[datetime] = None,
    ) -> Optional[int]:
        """Insert a pending entry unless its slug or source URL is already queued.

        Args:
            content: Normalized content for the entry
            source_type: 'rss' or 'manual'
            source_data: JSON-serializable payload stored with the entry
            scheduled_for: Earliest processing time (defaults to now)

        Returns:
            New entry ID, or None if an entry with the same slug or source
            URL already exists

        Raises:
            DatabaseError: If the insert fails for any other reason
        """
        now = utc_now()
        try:
            with self.db.get_connection() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO content_queue (source_type, source_data, title, slug,
                                               source_url, scheduled_for, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT DO NOTHING
                    """,
                    (
                        source_type,
                        json.dumps(source_data, ensure_ascii=False, default=str),
                        content.title,
                        content.slug,
                        content.source_url,
                        to_db_timestamp(scheduled_for or now),
                        to_db_timestamp(now),
                    ),
                )
                conn.commit()
                if cursor.rowcount == 0:
                    return None
                return cursor.lastrowid

        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to enqueue content {content.slug}: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def get_entry(self, entry_id: int) -> Optional[QueueEntry]:
        row = self.db.execute_one("SELECT * FROM content_queue WHERE id = ?", (entry_id,))
        return QueueEntry.from_db_row(row) if row else None

    def get_pending_due(self, now: Optional[datetime] = None, limit: int = 10) -> List[QueueEntry]:
        """Pending entries whose scheduled time has come, oldest first."""
        rows = self.db.execute_query(
            """
            SELECT * FROM content_queue
            WHERE processing_status = 'pending' AND scheduled_for <= ?
            ORDER BY created_at ASC, id ASC
            LIMIT ?
            """,
            (to_db_timestamp(now or utc_now()), limit),
        )
        return [QueueEntry.from_db_row(row) for row in rows]

    def list_entries(
        self, processing_status: Optional[ProcessingStatus] = None, limit: int = 50
    ) -> List[QueueEntry]:
        query = "SELECT * FROM content_queue"
        params: tuple = ()
        if processing_status is not None:
            query += " WHERE processing_status = ?"
            params = (processing_status.value,)
        query += " ORDER BY created_at DESC, id DESC LIMIT ?"
        rows = self.db.execute_query(query, params + (limit,))
        return [QueueEntry.from_db_row(row) for row in rows]

    def claim(self, entry_id: int) -> bool:
        """Move a pending entry to processing.

        Returns:
            False if another run claimed the entry first
        """
        updated = self.db.execute_update(
            """
            UPDATE content_queue SET processing_status = 'processing'
            WHERE id = ? AND processing_status = 'pending'
            """,
            (entry_id,),
        )
        return updated == 1

    def mark_completed(
        self,
        entry_id: int,
        article_id: int,
        processed_at: Optional[datetime] = None,
        conn: Optional[sqlite3.Connection] = None,
    ) -> bool:
        with self.db.reuse_or_connect(conn) as c:
            cursor = c.execute(
                """
                UPDATE content_queue
                SET processing_status = 'completed', article_id = ?, processed_at = ?,
                    error_message = NULL
                WHERE id = ? AND processing_status = 'processing'
                """,
                (article_id, to_db_timestamp(processed_at or utc_now()), entry_id),
            )
            return cursor.rowcount == 1

    def mark_failed(
        self, entry_id: int, error_message: str, processed_at: Optional[datetime] = None
    ) -> bool:
        updated = self.db.execute_update(
            """
            UPDATE content_queue
            SET processing_status = 'failed', error_message = ?, processed_at = ?
            WHERE id = ? AND processing_status = 'processing'
            """,
            (error_message, to_db_timestamp(processed_at or utc_now()), entry_id),
        )
        return updated == 1

    def get_rewrite_eligible(self, limit: int = 5) -> List[QueueEntry]:
        """Entries not yet rewritten and not claimed or failed, oldest first."""
        rows = self.db.execute_query(
            f"""
            SELECT * FROM content_queue
            WHERE rewrite_status = 'not_rewritten'
              AND processing_status IN ({_REWRITABLE_SQL})
            ORDER BY created_at ASC, id ASC
            LIMIT ?
            """,
            (limit,),
        )
        return [QueueEntry.from_db_row(row) for row in rows]

    def mark_rewritten(
        self,
        entry_id: int,
        result: RewriteResult,
        image_prompt: str = "",
        processed_at: Optional[datetime] = None,
    ) -> bool:
        """Store a rewrite result.

        Returns:
            False if the entry is no longer eligible (already rewritten, or
            claimed by a processor since it was selected)
        """
        updated = self.db.execute_update(
            f"""
            UPDATE content_queue
            SET rewrite_status = 'rewritten', ai_title = ?, ai_content = ?,
                ai_meta_description = ?, ai_keywords = ?, ai_category = ?,
                ai_summary = ?, ai_image_prompt = ?, ai_processed_at = ?,
                ai_error_message = NULL
            WHERE id = ? AND rewrite_status = 'not_rewritten'
              AND processing_status IN ({_REWRITABLE_SQL})
            """,
            (
                result.title, result.content, result.meta_description,
                json.dumps(result.keywords, ensure_ascii=False), result.category,
                result.summary, image_prompt,
                to_db_timestamp(processed_at or utc_now()), entry_id,
            ),
        )
        return updated == 1

    def mark_rewrite_failed(
        self, entry_id: int, error_message: str, processed_at: Optional[datetime] = None
    ) -> bool:
        updated = self.db.execute_update(
            f"""
            UPDATE content_queue
            SET rewrite_status = 'rewrite_failed', ai_error_message = ?, ai_processed_at = ?
            WHERE id = ? AND rewrite_status = 'not_rewritten'
              AND processing_status IN ({_REWRITABLE_SQL})
            """,
            (error_message, to_db_timestamp(processed_at or utc_now()), entry_id),
        )
        return updated == 1

    def get_stats(self) -> QueueStats:
        """Count entries per processing status and per rewrite status."""
        stats = QueueStats(
            processing={status.value: 0 for status in ProcessingStatus},
            rewrite={status.value: 0 for status in RewriteStatus},
        )
        with self.db.get_connection() as conn:
            for row in conn.execute(
                "SELECT processing_status, COUNT(*) AS n FROM content_queue GROUP BY processing_status"
            ):
                stats.processing[row["processing_status"]] = row["n"]
            for row in conn.execute(
                "SELECT rewrite_status, COUNT(*) AS n FROM content_queue GROUP BY rewrite_status"
            ):
                stats.rewrite[row["rewrite_status"]] = row["n"]
        return stats
