"""
Rewrite Service
===============

Runs the AI rewrite step over the content queue and translates stored
articles. The rewriter is injected, so the service never creates an AI
client on its own.

Rewrite results are written with conditional updates. If a queue processor
claims an entry while its rewrite is in flight, the result is discarded and
the entry is picked up again by a later run.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from .providers.base import ContentRewriter, RewriteResult
from ..config.settings import AutoNewsSettings, get_settings
from ..database.connection import DatabaseConnection
from ..database.models import ArticleTranslation, QueueEntry, SourceType
from ..ingestion.content_cleaner import clean_content
from ..storage.article_repository import ArticleRepository
from ..storage.queue_repository import QueueRepository
from ..storage.translation_repository import TranslationRepository
from ..utils.logging import get_logger_for_component, PerformanceLogger
from ..utils.exceptions import (
    AIError,
    ErrorCode,
    ProcessingError,
    QueueStateError,
    ValidationError,
)


class RewriteItemStatus(str, Enum):
    REWRITTEN = "rewritten"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class RewriteItemResult:
    """Outcome of rewriting one queue entry."""
    queue_id: int
    status: RewriteItemStatus
    title: Optional[str] = None
    error: Optional[str] = None


@dataclass
class TranslationOutcome:
    """Stored translation of an article."""
    article_id: int
    language: str
    translation_id: int
    title: str


class RewriteService:
    """AI rewrite and translation for queued and stored content."""

    def __init__(
        self,
        db: DatabaseConnection,
        rewriter: ContentRewriter,
        settings: Optional[AutoNewsSettings] = None,
    ):
        self.db = db
        self.rewriter = rewriter
        self.settings = settings or get_settings()

        self.queue = QueueRepository(db)
        self.articles = ArticleRepository(db)
        self.translations = TranslationRepository(db)
        self.logger = get_logger_for_component("rewrite_service")

    async def process_pending(self, limit: Optional[int] = None) -> List[RewriteItemResult]:
        """Rewrite eligible queue entries, oldest first.

        Entries are handled one at a time; a failing entry is marked
        ``rewrite_failed`` and the batch carries on.

        Args:
            limit: Maximum entries to rewrite (default from settings)

        Returns:
            One result per selected entry
        """
        limit = limit or self.settings.processing.rewrite_batch_size
        entries = self.queue.get_rewrite_eligible(limit=limit)
        results: List[RewriteItemResult] = []

        with PerformanceLogger(self.logger, "rewrite batch", batch_size=len(entries)):
            for entry in entries:
                results.append(await self._rewrite_entry(entry))

        rewritten = sum(1 for r in results if r.status == RewriteItemStatus.REWRITTEN)
        failed = sum(1 for r in results if r.status == RewriteItemStatus.FAILED)
        self.logger.info(
            f"Rewrote {rewritten} of {len(results)} queue entries ({failed} failed)",
            extra={"rewritten": rewritten, "failed": failed},
        )
        return results

    async def rewrite_content(
        self,
        content: str,
        title: str,
        source_url: Optional[str] = None,
        queue_id: Optional[int] = None,
    ) -> RewriteResult:
        """Rewrite one piece of content.

        With ``queue_id`` the result (and an image prompt) is stored on that
        entry; a failure marks the entry ``rewrite_failed`` before the error
        propagates.

        Raises:
            AIError: If the rewrite fails
            ProcessingError: If the queue entry does not exist
            QueueStateError: If the entry is not eligible for a rewrite
        """
        if queue_id is None:
            return await self.rewriter.rewrite(self._truncate(content), title, source_url)

        entry = self.queue.get_entry(queue_id)
        if entry is None:
            raise ProcessingError(
                f"Queue entry {queue_id} not found",
                queue_id=queue_id,
                error_code=ErrorCode.QUEUE_ENTRY_NOT_FOUND,
            )
        if not entry.state.can_rewrite:
            raise QueueStateError(
                f"Queue entry {queue_id} cannot be rewritten in state {entry.state}",
                queue_id=queue_id,
            )

        logger = get_logger_for_component("rewrite_service", queue_id=queue_id)
        try:
            result = await self.rewriter.rewrite(self._truncate(content), title, source_url)
        except AIError as e:
            self.queue.mark_rewrite_failed(queue_id, str(e))
            raise

        image_prompt = await self._image_prompt(result.title, result.content, logger)
        if not self.queue.mark_rewritten(queue_id, result, image_prompt):
            raise QueueStateError(
                f"Queue entry {queue_id} changed state during the rewrite",
                queue_id=queue_id,
            )
        return result

    async def translate_article(self, article_id: int, target_language: str) -> TranslationOutcome:
        """Translate a stored article and save it, replacing an older translation.

        Raises:
            ValidationError: If the article does not exist
            AIError: If the translation fails
        """
        article = self.articles.get_article(article_id)
        if article is None:
            raise ValidationError(
                f"Article {article_id} not found",
                error_code=ErrorCode.RESOURCE_NOT_FOUND,
            )

        logger = get_logger_for_component("rewrite_service", article_id=article_id)
        with PerformanceLogger(logger, f"translate article to {target_language}"):
            translated = await self.rewriter.translate(
                self._truncate(article.content),
                article.title,
                article.excerpt,
                target_language,
            )

        translation = ArticleTranslation(
            article_id=article_id,
            language=target_language,
            title=translated.title,
            content=translated.content,
            meta_description=translated.meta_description,
        )
        translation_id = self.translations.upsert_translation(translation)
        logger.info(f"Stored {translation.language} translation of article {article_id}")
        return TranslationOutcome(
            article_id=article_id,
            language=translation.language,
            translation_id=translation_id,
            title=translation.title,
        )

    async def _rewrite_entry(self, entry: QueueEntry) -> RewriteItemResult:
        logger = get_logger_for_component("rewrite_service", queue_id=entry.id)

        try:
            content, title, source_url = self.original_content(entry)
            result = await self.rewriter.rewrite(self._truncate(content), title, source_url)
            image_prompt = await self._image_prompt(result.title, result.content, logger)
            stored = self.queue.mark_rewritten(entry.id, result, image_prompt)
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error(f"Rewrite of entry {entry.id} failed: {message}")
            return self._record_failure(entry.id, message, logger)

        if not stored:
            logger.warning(f"Entry {entry.id} changed state during rewrite; result discarded")
            return RewriteItemResult(entry.id, RewriteItemStatus.SKIPPED)

        logger.debug(f"Entry {entry.id} rewritten as {result.title[:50]!r}")
        return RewriteItemResult(entry.id, RewriteItemStatus.REWRITTEN, title=result.title)

    def _record_failure(self, entry_id: int, message: str, logger) -> RewriteItemResult:
        try:
            recorded = self.queue.mark_rewrite_failed(entry_id, message)
        except Exception as e:
            logger.error(f"Could not mark entry {entry_id} rewrite_failed: {e}")
            return RewriteItemResult(entry_id, RewriteItemStatus.FAILED, error=message)

        if not recorded:
            logger.warning(f"Entry {entry_id} changed state; rewrite failure not recorded")
            return RewriteItemResult(entry_id, RewriteItemStatus.SKIPPED, error=message)
        return RewriteItemResult(entry_id, RewriteItemStatus.FAILED, error=message)

    async def _image_prompt(self, title: str, content: str, logger) -> str:
        """Illustration prompt for a rewrite; failures yield an empty prompt."""
        try:
            return await self.rewriter.generate_image_prompt(title, content)
        except Exception as e:
            logger.warning(f"Image prompt generation failed: {e}")
            return ""

    def original_content(self, entry: QueueEntry) -> Tuple[str, str, Optional[str]]:
        """Original body, title and source URL of an entry, from its stored payload."""
        data = entry.source_data
        if entry.source_type == SourceType.RSS.value:
            payload = data.get("processed_content") or {}
            content = payload.get("content") or payload.get("excerpt") or ""
        elif entry.source_type == SourceType.MANUAL.value:
            payload = data.get("normalized_data") or {}
            content = clean_content(payload.get("content") or payload.get("description") or "")
        else:
            raise ProcessingError(
                f"Unknown source type: {entry.source_type}",
                queue_id=entry.id,
                error_code=ErrorCode.QUEUE_UNKNOWN_SOURCE_TYPE,
            )

        if not content.strip():
            raise ProcessingError(
                "Entry has no content to rewrite",
                queue_id=entry.id,
                error_code=ErrorCode.CONTENT_INVALID,
            )
        title = payload.get("title") or entry.title
        source_url = payload.get("source_url") or payload.get("link") or entry.source_url
        return content, title, source_url

    def _truncate(self, content: str) -> str:
        return content[: self.settings.processing.ai_content_chars]
