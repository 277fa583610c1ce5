"""
Rewrite Service Integration Tests
=================================

AI rewrite over the content queue and article translation, with an
in-process rewriter standing in for the Groq API.
"""

from typing import Callable, Dict, Optional
from unittest.mock import patch

import pytest

from autonews.ai.providers.base import ContentRewriter, RewriteResult, TranslationResult
from autonews.ai.rewrite_service import RewriteItemStatus, RewriteService
from autonews.database.models import ProcessingStatus, RewriteStatus
from autonews.ingestion.rss_parser import RSSParser
from autonews.processing.content_ingestor import ContentIngestor
from autonews.processing.feed_fetcher import FeedFetcher
from autonews.processing.queue_processor import QueueProcessor
from autonews.storage import ArticleRepository, QueueRepository, TranslationRepository
from autonews.utils.exceptions import (
    AIError,
    DatabaseError,
    ErrorCode,
    ProcessingError,
    QueueStateError,
    ValidationError,
)


class FakeRewriter(ContentRewriter):
    """Deterministic rewriter; titles listed in ``failing`` raise AIError."""

    provider_name = "fake"

    def __init__(self, failing: Optional[Dict[str, AIError]] = None,
                 image_error: Optional[Exception] = None,
                 on_rewrite: Optional[Callable[[str], None]] = None):
        self.failing = failing or {}
        self.image_error = image_error
        self.on_rewrite = on_rewrite
        self.calls = []

    async def rewrite(self, content, title, source_url=None):
        self.calls.append((content, title, source_url))
        if self.on_rewrite:
            self.on_rewrite(title)
        if title in self.failing:
            raise self.failing[title]
        return RewriteResult(
            title=f"Rewritten: {title}",
            content=f"<p>{content}</p>",
            meta_description="A rewritten story.",
            keywords=["news", "rewrite"],
            category="Technology",
            summary="Short summary.",
        )

    async def translate(self, content, title, meta_description, target_language):
        return TranslationResult(
            title=f"[{target_language}] {title}",
            content=f"[{target_language}] {content}",
            meta_description=f"[{target_language}] {meta_description}",
        )

    async def generate_image_prompt(self, title, content):
        if self.image_error:
            raise self.image_error
        return f"Editorial illustration of {title}"


RECORDS = [
    {"title": "Local Team Wins", "link": "https://example.com/team", "description": "<p>Big <b>win</b>.</p>"},
    {"title": "Council Approves Budget", "link": "https://example.com/budget", "content": "The budget passed."},
]


@pytest.fixture
def ingestor(db_connection, normalizer, settings):
    return ContentIngestor(db_connection, FeedFetcher(settings), RSSParser(), normalizer, settings)


@pytest.fixture
def queue(db_connection):
    return QueueRepository(db_connection)


@pytest.fixture
def entries(ingestor, queue):
    """Two manual queue entries, oldest first."""
    ingestor.ingest_records(RECORDS, "json")
    return sorted(queue.list_entries(), key=lambda e: e.id)


def _service(db_connection, settings, rewriter):
    return RewriteService(db_connection, rewriter, settings)


class TestProcessPending:

    @pytest.mark.asyncio
    async def test_success_and_failure_are_isolated(self, db_connection, settings, queue, entries):
        rewriter = FakeRewriter(failing={
            "Local Team Wins": AIError("quota", error_code=ErrorCode.AI_RATE_LIMIT),
        })

        results = await _service(db_connection, settings, rewriter).process_pending()

        assert [r.status for r in results] == [RewriteItemStatus.FAILED, RewriteItemStatus.REWRITTEN]

        failed = queue.get_entry(entries[0].id)
        assert failed.rewrite_status == RewriteStatus.REWRITE_FAILED
        assert failed.ai_error_message == "[A006] quota"
        assert failed.processing_status == ProcessingStatus.PENDING

        done = queue.get_entry(entries[1].id)
        assert done.rewrite_status == RewriteStatus.REWRITTEN
        assert done.ai_title == "Rewritten: Council Approves Budget"
        assert done.ai_keywords == ["news", "rewrite"]
        assert done.ai_image_prompt == "Editorial illustration of Rewritten: Council Approves Budget"
        assert done.ai_processed_at is not None

    @pytest.mark.asyncio
    async def test_rewritten_entries_not_selected_again(self, db_connection, settings, entries):
        service = _service(db_connection, settings, FakeRewriter())

        first = await service.process_pending()
        second = await service.process_pending()

        assert len(first) == 2
        assert second == []

    @pytest.mark.asyncio
    async def test_manual_content_is_cleaned(self, db_connection, settings, entries):
        rewriter = FakeRewriter()

        await _service(db_connection, settings, rewriter).process_pending(limit=1)

        content, title, source_url = rewriter.calls[0]
        assert content == "Big win."
        assert title == "Local Team Wins"
        assert source_url == "https://example.com/team"

    @pytest.mark.asyncio
    async def test_image_prompt_failure_is_not_fatal(self, db_connection, settings, queue, entries):
        rewriter = FakeRewriter(image_error=AIError("no prompt"))

        results = await _service(db_connection, settings, rewriter).process_pending()

        assert all(r.status == RewriteItemStatus.REWRITTEN for r in results)
        assert queue.get_entry(entries[0].id).ai_image_prompt == ""

    @pytest.mark.asyncio
    async def test_unexpected_image_prompt_error_is_not_fatal(
        self, db_connection, settings, queue, entries
    ):
        rewriter = FakeRewriter(image_error=RuntimeError("prompt service crashed"))

        results = await _service(db_connection, settings, rewriter).process_pending()

        assert [r.status for r in results] == [RewriteItemStatus.REWRITTEN] * 2
        assert queue.get_entry(entries[1].id).ai_image_prompt == ""

    @pytest.mark.asyncio
    async def test_store_error_does_not_stop_batch(self, db_connection, settings, queue, entries):
        service = _service(db_connection, settings, FakeRewriter())
        real_mark = service.queue.mark_rewritten

        def mark_rewritten(entry_id, result, image_prompt=""):
            if entry_id == entries[0].id:
                raise DatabaseError("database is locked")
            return real_mark(entry_id, result, image_prompt)

        with patch.object(service.queue, "mark_rewritten", side_effect=mark_rewritten):
            results = await service.process_pending()

        assert [r.status for r in results] == [RewriteItemStatus.FAILED, RewriteItemStatus.REWRITTEN]
        failed = queue.get_entry(entries[0].id)
        assert failed.rewrite_status == RewriteStatus.REWRITE_FAILED
        assert "database is locked" in failed.ai_error_message
        assert queue.get_entry(entries[1].id).rewrite_status == RewriteStatus.REWRITTEN

    @pytest.mark.asyncio
    async def test_completed_entry_is_still_eligible(
        self, db_connection, settings, normalizer, queue, entries
    ):
        QueueProcessor(db_connection, normalizer, settings).process_batch()

        results = await _service(db_connection, settings, FakeRewriter()).process_pending()

        assert len(results) == 2
        entry = queue.get_entry(entries[0].id)
        assert entry.processing_status == ProcessingStatus.COMPLETED
        assert entry.rewrite_status == RewriteStatus.REWRITTEN

        # The article keeps the original wording
        article = ArticleRepository(db_connection).get_article(entry.article_id)
        assert article.title == "Local Team Wins"

    @pytest.mark.asyncio
    async def test_claim_during_rewrite_discards_result(self, db_connection, settings, queue, entries):
        target = entries[0]
        rewriter = FakeRewriter(
            on_rewrite=lambda title: queue.claim(target.id) if title == target.title else None
        )

        results = await _service(db_connection, settings, rewriter).process_pending()

        by_id = {r.queue_id: r for r in results}
        assert by_id[target.id].status == RewriteItemStatus.SKIPPED
        assert by_id[entries[1].id].status == RewriteItemStatus.REWRITTEN

        entry = queue.get_entry(target.id)
        assert entry.processing_status == ProcessingStatus.PROCESSING
        assert entry.rewrite_status == RewriteStatus.NOT_REWRITTEN
        assert entry.ai_title is None


class TestRewriteContent:

    @pytest.mark.asyncio
    async def test_without_queue_entry(self, db_connection, settings):
        service = _service(db_connection, settings, FakeRewriter())

        result = await service.rewrite_content("Some text.", "Headline")

        assert result.title == "Rewritten: Headline"

    @pytest.mark.asyncio
    async def test_content_is_truncated(self, db_connection, settings):
        rewriter = FakeRewriter()
        service = _service(db_connection, settings, rewriter)

        await service.rewrite_content("x" * 20000, "Long")

        assert len(rewriter.calls[0][0]) == settings.processing.ai_content_chars

    @pytest.mark.asyncio
    async def test_result_stored_on_entry(self, db_connection, settings, queue, entries):
        service = _service(db_connection, settings, FakeRewriter())
        entry = entries[1]

        content, title, source_url = service.original_content(entry)
        result = await service.rewrite_content(content, title, source_url, queue_id=entry.id)

        stored = queue.get_entry(entry.id)
        assert stored.rewrite_status == RewriteStatus.REWRITTEN
        assert stored.ai_content == result.content == "<p>The budget passed.</p>"

    @pytest.mark.asyncio
    async def test_failure_marks_entry(self, db_connection, settings, queue, entries):
        entry = entries[0]
        rewriter = FakeRewriter(failing={"Local Team Wins": AIError("bad gateway")})
        service = _service(db_connection, settings, rewriter)

        with pytest.raises(AIError):
            await service.rewrite_content("Big win.", entry.title, queue_id=entry.id)

        assert queue.get_entry(entry.id).rewrite_status == RewriteStatus.REWRITE_FAILED

    @pytest.mark.asyncio
    async def test_ineligible_entry_rejected(self, db_connection, settings, queue, entries):
        entry = entries[0]
        queue.claim(entry.id)
        service = _service(db_connection, settings, FakeRewriter())

        with pytest.raises(QueueStateError):
            await service.rewrite_content("Big win.", entry.title, queue_id=entry.id)

    @pytest.mark.asyncio
    async def test_unknown_entry(self, db_connection, settings):
        service = _service(db_connection, settings, FakeRewriter())

        with pytest.raises(ProcessingError) as exc_info:
            await service.rewrite_content("text", "title", queue_id=999)

        assert exc_info.value.error_code == ErrorCode.QUEUE_ENTRY_NOT_FOUND


class TestTranslateArticle:

    @pytest.fixture
    def article_id(self, db_connection, normalizer, settings, entries):
        results = QueueProcessor(db_connection, normalizer, settings).process_batch()
        return results[0].article_id

    @pytest.mark.asyncio
    async def test_translation_stored(self, db_connection, settings, article_id):
        service = _service(db_connection, settings, FakeRewriter())

        outcome = await service.translate_article(article_id, "ES")

        assert outcome.language == "es"
        assert outcome.title == "[ES] Local Team Wins"
        stored = TranslationRepository(db_connection).get_translation(article_id, "es")
        assert stored.content == "[ES] Big win."

    @pytest.mark.asyncio
    async def test_retranslation_replaces(self, db_connection, settings, article_id):
        service = _service(db_connection, settings, FakeRewriter())

        first = await service.translate_article(article_id, "fr")
        second = await service.translate_article(article_id, "fr")

        translations = TranslationRepository(db_connection).list_for_article(article_id)
        assert len(translations) == 1
        assert first.translation_id == second.translation_id

    @pytest.mark.asyncio
    async def test_missing_article(self, db_connection, settings):
        service = _service(db_connection, settings, FakeRewriter())

        with pytest.raises(ValidationError) as exc_info:
            await service.translate_article(404, "de")

        assert exc_info.value.error_code == ErrorCode.RESOURCE_NOT_FOUND
