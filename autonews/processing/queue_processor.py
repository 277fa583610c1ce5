"""
Queue Processor
===============

Converts pending queue entries into unpublished articles.

Each entry is claimed with a conditional update before any work is done, so
two overlapping runs never process the same entry. A failure marks only that
entry as failed; the rest of the batch continues.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional

from ..config.settings import AutoNewsSettings, get_settings
from ..database.connection import DatabaseConnection
from ..database.models import (
    Article,
    ProcessedContent,
    QueueEntry,
    SourceType,
    utc_now,
)
from ..ingestion.content_normalizer import ContentNormalizer
from ..ingestion.rss_parser import FeedItem
from ..storage.article_repository import ArticleRepository
from ..storage.queue_repository import QueueRepository
from ..utils.logging import get_logger_for_component, PerformanceLogger
from ..utils.exceptions import ErrorCode, ProcessingError, QueueStateError


class QueueItemStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class QueueItemResult:
    """Outcome of processing one queue entry."""
    queue_id: int
    status: QueueItemStatus
    article_id: Optional[int] = None
    error: Optional[str] = None


class QueueProcessor:
    """Turns pending queue entries into articles."""

    def __init__(
        self,
        db: DatabaseConnection,
        normalizer: ContentNormalizer,
        settings: Optional[AutoNewsSettings] = None,
    ):
        self.db = db
        self.normalizer = normalizer
        self.settings = settings or get_settings()

        self.queue = QueueRepository(db)
        self.articles = ArticleRepository(db)
        self.logger = get_logger_for_component("queue_processor")

    def process_batch(
        self, limit: Optional[int] = None, now: Optional[datetime] = None
    ) -> List[QueueItemResult]:
        """Process pending entries that are due.

        Args:
            limit: Maximum entries to process (default from settings)
            now: Reference time for ``scheduled_for`` (default: now)

        Returns:
            One result per selected entry, in selection order
        """
        limit = limit or self.settings.processing.queue_batch_size
        entries = self.queue.get_pending_due(now=now or utc_now(), limit=limit)
        results: List[QueueItemResult] = []

        with PerformanceLogger(self.logger, "queue batch", batch_size=len(entries)):
            for entry in entries:
                results.append(self.process_entry(entry))

        completed = sum(1 for r in results if r.status == QueueItemStatus.COMPLETED)
        failed = sum(1 for r in results if r.status == QueueItemStatus.FAILED)
        self.logger.info(
            f"Processed {len(results)} queue entries: {completed} completed, {failed} failed",
            extra={"completed": completed, "failed": failed},
        )
        return results

    def process_entry(self, entry: QueueEntry) -> QueueItemResult:
        """Claim and convert a single entry. Never raises for entry-level errors."""
        logger = get_logger_for_component("queue_processor", queue_id=entry.id)

        try:
            claimed = entry.state.can_claim and self.queue.claim(entry.id)
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error(f"Failed to claim entry {entry.id}: {message}")
            return QueueItemResult(entry.id, QueueItemStatus.FAILED, error=message)

        if not claimed:
            logger.info(f"Entry {entry.id} already claimed by another run")
            return QueueItemResult(entry.id, QueueItemStatus.SKIPPED)

        try:
            content = self._build_content(entry)
            article = Article(
                title=content.title,
                slug=content.slug,
                content=content.content,
                excerpt=content.excerpt,
                source_url=content.source_url,
                source_name=content.source_name,
                published_at=content.published_at,
                category_id=content.category_id,
                is_published=False,
            )

            with self.db.transaction() as conn:
                article_id = self.articles.insert_article(article, conn=conn)
                if article_id is None:
                    raise ProcessingError(
                        f"An article with slug '{article.slug}' or the same source URL already exists",
                        queue_id=entry.id,
                        error_code=ErrorCode.VALIDATION_DUPLICATE,
                    )
                if not self.queue.mark_completed(entry.id, article_id, conn=conn):
                    raise QueueStateError(
                        f"Entry {entry.id} left the processing state before completion",
                        queue_id=entry.id,
                    )

        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error(f"Failed to process entry {entry.id}: {message}")
            try:
                self.queue.mark_failed(entry.id, message)
            except Exception as mark_error:
                logger.error(f"Could not mark entry {entry.id} failed: {mark_error}")
            return QueueItemResult(entry.id, QueueItemStatus.FAILED, error=message)

        logger.debug(f"Entry {entry.id} converted into article {article_id}")
        return QueueItemResult(entry.id, QueueItemStatus.COMPLETED, article_id=article_id)

    def _build_content(self, entry: QueueEntry) -> ProcessedContent:
        """Article fields for an entry, by source type."""
        if entry.source_type == SourceType.RSS.value:
            payload = entry.source_data.get("processed_content")
            if not payload:
                raise ProcessingError(
                    "RSS entry has no processed content", queue_id=entry.id
                )
            return ProcessedContent.model_validate(payload)

        if entry.source_type == SourceType.MANUAL.value:
            payload = entry.source_data.get("normalized_data")
            if not payload:
                raise ProcessingError(
                    "Manual entry has no normalized data", queue_id=entry.id
                )
            content = self.normalizer.from_manual_item(FeedItem.from_payload(payload))
            if entry.slug:
                content.slug = entry.slug
            return content

        raise ProcessingError(
            f"Unknown source type: {entry.source_type}",
            queue_id=entry.id,
            error_code=ErrorCode.QUEUE_UNKNOWN_SOURCE_TYPE,
        )
