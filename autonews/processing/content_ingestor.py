"""
Content Ingestor
================

Dedup & enqueue for both ingestion paths:

- RSS: fetch a source, parse it, normalize every item and enqueue it
- Upload: validate every record of a batch, then enqueue them all

Duplicates are detected by the database (unique slug and source URL on both
the queue and the article table) and reported as skipped, never raised.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import aiohttp

from .feed_fetcher import FeedFetcher
from ..config.settings import AutoNewsSettings, get_settings
from ..database.connection import DatabaseConnection
from ..database.models import ProcessedContent, RSSSource, SourceType, utc_now
from ..ingestion.content_normalizer import ContentNormalizer
from ..ingestion.rss_parser import FeedItem, ParsedFeed, RSSParser
from ..ingestion.upload_parser import UploadFormat
from ..storage.article_repository import ArticleRepository
from ..storage.queue_repository import QueueRepository
from ..storage.source_repository import SourceRepository
from ..utils.logging import get_logger_for_component, PerformanceLogger
from ..utils.exceptions import ErrorCode, FeedError


class EnqueueStatus(str, Enum):
    ENQUEUED = "enqueued"
    SKIPPED = "skipped"


@dataclass
class EnqueueOutcome:
    """Result of offering one piece of content to the queue."""
    status: EnqueueStatus
    slug: str
    queue_id: Optional[int] = None
    reason: Optional[str] = None


@dataclass
class SourceIngestResult:
    """Summary of one RSS source ingestion."""
    source_id: int
    source_name: str
    feed_title: str = ""
    total_items: int = 0
    enqueued: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)
    fetched_at: Optional[datetime] = None


@dataclass
class UploadIngestResult:
    """Summary of one upload batch."""
    upload_format: str
    total_records: int = 0
    enqueued: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)


class ContentIngestor:
    """Normalizes incoming content and stages it in the content queue."""

    def __init__(
        self,
        db: DatabaseConnection,
        fetcher: FeedFetcher,
        parser: RSSParser,
        normalizer: ContentNormalizer,
        settings: Optional[AutoNewsSettings] = None,
    ):
        """Initialize the ingestor.

        Args:
            db: Database connection manager
            fetcher: Feed fetcher used for RSS sources
            parser: RSS/Atom parser
            normalizer: Content normalizer
            settings: Application settings (default: global settings)
        """
        self.db = db
        self.fetcher = fetcher
        self.parser = parser
        self.normalizer = normalizer
        self.settings = settings or get_settings()

        self.sources = SourceRepository(db)
        self.queue = QueueRepository(db)
        self.articles = ArticleRepository(db)
        self.logger = get_logger_for_component("content_ingestor")

    def enqueue(
        self, content: ProcessedContent, source_type: SourceType, source_data: Dict[str, Any]
    ) -> EnqueueOutcome:
        """Stage content unless the same story is already known.

        A story is known when an article or a queue entry already has the same
        source URL or the same slug.

        Raises:
            DatabaseError: If the queue insert fails for another reason
        """
        if self.articles.exists(content.source_url, content.slug):
            return EnqueueOutcome(EnqueueStatus.SKIPPED, content.slug, reason="article exists")

        queue_id = self.queue.enqueue(content, SourceType(source_type).value, source_data)
        if queue_id is None:
            return EnqueueOutcome(EnqueueStatus.SKIPPED, content.slug, reason="duplicate")

        self.logger.debug(f"Enqueued {content.slug} as entry {queue_id}")
        return EnqueueOutcome(EnqueueStatus.ENQUEUED, content.slug, queue_id=queue_id)

    async def ingest_source(
        self, source_id: int, session: Optional[aiohttp.ClientSession] = None
    ) -> SourceIngestResult:
        """Fetch one RSS source and enqueue its items.

        Args:
            source_id: ID of an active RSS source
            session: Shared HTTP session; a new one is opened when omitted

        Returns:
            Per-source counts of enqueued, skipped and failed items

        Raises:
            FeedError: If the source is unknown or inactive
            FeedFetchError: If the feed cannot be retrieved
            FeedParseError: If the document is not valid RSS/Atom
        """
        source = self.sources.get_source(source_id)
        if source is None or not source.is_active:
            raise FeedError(
                f"RSS source {source_id} not found or inactive",
                error_code=ErrorCode.FEED_SOURCE_NOT_FOUND,
                recoverable=False,
            )

        logger = get_logger_for_component("content_ingestor", source_id=source.id)
        fetched_at = utc_now()

        with PerformanceLogger(logger, f"ingest source {source.name}", feed_url=source.url):
            try:
                feed = await self._fetch_and_parse(source, session)
            except FeedError:
                self.sources.update_last_fetched(source.id, fetched_at)
                raise

            result = SourceIngestResult(
                source_id=source.id,
                source_name=source.name,
                feed_title=feed.title,
                total_items=len(feed.items),
                fetched_at=fetched_at,
            )

            for item in feed.items:
                try:
                    content = self.normalizer.from_feed_item(item, source)
                    outcome = self.enqueue(
                        content,
                        SourceType.RSS,
                        {
                            "rss_source_id": source.id,
                            "original_item": item.to_payload(),
                            "processed_content": content.to_payload(),
                        },
                    )
                except Exception as e:
                    result.failed += 1
                    result.errors.append(f"{item.link or item.title}: {e}")
                    logger.warning(f"Failed to enqueue item {item.link or item.title!r}: {e}")
                    continue

                if outcome.status == EnqueueStatus.ENQUEUED:
                    result.enqueued += 1
                else:
                    result.skipped += 1

            self.sources.update_last_fetched(source.id, fetched_at)

        logger.info(
            f"Source {source.name}: {result.enqueued} enqueued, {result.skipped} skipped, "
            f"{result.failed} failed of {result.total_items}",
            extra={"enqueued": result.enqueued, "skipped": result.skipped, "failed": result.failed},
        )
        return result

    async def _fetch_and_parse(
        self, source: RSSSource, session: Optional[aiohttp.ClientSession]
    ) -> ParsedFeed:
        if session is None:
            async with self.fetcher.session() as own_session:
                document = await self.fetcher.fetch(source.url, own_session)
        else:
            document = await self.fetcher.fetch(source.url, session)
        return self.parser.parse(document, feed_url=source.url)

    def ingest_records(
        self, records: Sequence[Dict[str, Any]], upload_format
    ) -> UploadIngestResult:
        """Validate and enqueue an uploaded batch.

        Every record is validated before anything is enqueued, so an invalid
        row rejects the whole batch.

        Raises:
            UploadValidationError: If any record is invalid
        """
        upload_format = UploadFormat(upload_format)
        staged: List[tuple] = []
        for index, record in enumerate(records):
            item = self.normalizer.normalize_record(record, index)
            content = self.normalizer.from_manual_item(item, index)
            staged.append((record, item, content))

        result = UploadIngestResult(upload_format=upload_format.value, total_records=len(staged))

        for index, (record, item, content) in enumerate(staged):
            try:
                outcome = self.enqueue(
                    content,
                    SourceType.MANUAL,
                    self._manual_source_data(upload_format, record, item),
                )
            except Exception as e:
                result.failed += 1
                result.errors.append(f"Row {index}: {e}")
                self.logger.warning(f"Failed to enqueue row {index}: {e}")
                continue

            if outcome.status == EnqueueStatus.ENQUEUED:
                result.enqueued += 1
            else:
                result.skipped += 1

        self.logger.info(
            f"Upload ({upload_format.value}): {result.enqueued} enqueued, "
            f"{result.skipped} skipped, {result.failed} failed of {result.total_records}"
        )
        return result

    @staticmethod
    def _manual_source_data(
        upload_format: UploadFormat, record: Dict[str, Any], item: FeedItem
    ) -> Dict[str, Any]:
        return {
            "source_type": upload_format.value,
            "original_data": dict(record),
            "normalized_data": item.to_payload(),
        }
