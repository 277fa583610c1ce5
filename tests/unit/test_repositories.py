"""
Tests for Repository Components
===============================

CRUD and state-guarded updates against a temporary SQLite database.
"""

from datetime import datetime, timedelta, timezone

import pytest

from autonews.database.models import (
    AffiliateLink,
    Article,
    ArticleTranslation,
    Category,
    ProcessedContent,
    ProcessingStatus,
    RSSSource,
    RewriteResult,
    RewriteStatus,
)
from autonews.database.schema import DatabaseSchema
from autonews.storage import (
    AffiliateRepository,
    ArticleRepository,
    CategoryRepository,
    QueueRepository,
    SourceRepository,
    TranslationRepository,
)
from autonews.utils.exceptions import ErrorCode, ValidationError


def _content(n, **overrides):
    data = {
        "title": f"Story {n}",
        "slug": f"story-{n}",
        "content": f"Body of story {n}",
        "excerpt": f"Body of story {n}",
        "source_url": f"https://example.com/story-{n}",
        "source_name": "Tech Wire",
        "published_at": datetime(2024, 1, n, tzinfo=timezone.utc),
    }
    data.update(overrides)
    return ProcessedContent(**data)


def _article(n, **overrides):
    content = _content(n)
    data = {
        "title": content.title,
        "slug": content.slug,
        "content": content.content,
        "source_url": content.source_url,
        "published_at": content.published_at,
    }
    data.update(overrides)
    return Article(**data)


REWRITE = RewriteResult(
    title="New title",
    content="New body",
    meta_description="Meta",
    keywords=["a", "b"],
    category="Technology",
    summary="Summary",
)


class TestCategoryRepository:

    def test_create_and_get(self, db_connection):
        repo = CategoryRepository(db_connection)
        category_id = repo.create_category(Category(name="Technology", slug="technology"))

        assert repo.get_category(category_id).name == "Technology"
        assert repo.get_by_slug("technology").id == category_id
        assert [c.slug for c in repo.list_categories()] == ["technology"]

    def test_duplicate_slug(self, db_connection):
        repo = CategoryRepository(db_connection)
        repo.create_category(Category(name="Technology", slug="technology"))

        with pytest.raises(ValidationError) as exc_info:
            repo.create_category(Category(name="Tech", slug="technology"))
        assert exc_info.value.error_code == ErrorCode.VALIDATION_DUPLICATE


class TestSourceRepository:

    def test_active_by_staleness(self, db_connection):
        repo = SourceRepository(db_connection)
        recent = repo.create_source(RSSSource(name="Recent", url="https://example.com/recent.xml"))
        never = repo.create_source(RSSSource(name="Never", url="https://example.com/never.xml"))
        old = repo.create_source(RSSSource(name="Old", url="https://example.com/old.xml"))
        inactive = repo.create_source(
            RSSSource(name="Off", url="https://example.com/off.xml", is_active=False)
        )

        now = datetime(2024, 1, 3, 12, 0, tzinfo=timezone.utc)
        repo.update_last_fetched(recent, now - timedelta(minutes=5))
        repo.update_last_fetched(old, now - timedelta(days=2))

        ordered = [s.id for s in repo.get_active_by_staleness()]
        assert ordered == [never, old, recent]
        assert inactive not in ordered

    def test_update_last_fetched(self, db_connection, rss_source):
        repo = SourceRepository(db_connection)
        fetched_at = datetime(2024, 1, 3, 12, 0, tzinfo=timezone.utc)

        assert repo.update_last_fetched(rss_source.id, fetched_at)
        assert repo.get_source(rss_source.id).last_fetched_at == fetched_at

    def test_set_active(self, db_connection, rss_source):
        repo = SourceRepository(db_connection)

        assert repo.set_active(rss_source.id, False)
        assert repo.list_sources(active_only=True) == []
        assert len(repo.list_sources()) == 1
        assert not repo.set_active(9999, True)


class TestArticleRepository:

    def test_insert_and_duplicates(self, db_connection):
        repo = ArticleRepository(db_connection)

        article_id = repo.insert_article(_article(1))
        assert article_id is not None
        assert repo.insert_article(_article(1)) is None
        assert repo.insert_article(_article(2, slug="story-1")) is None
        assert repo.insert_article(_article(3, source_url="https://example.com/story-1")) is None
        assert repo.count() == 1

    def test_exists(self, db_connection):
        repo = ArticleRepository(db_connection)
        repo.insert_article(_article(1))

        assert repo.exists("https://example.com/story-1", "other")
        assert repo.exists(None, "story-1")
        assert not repo.exists("https://example.com/other", "other")

    def test_publish_and_public_reads(self, db_connection):
        category_id = CategoryRepository(db_connection).create_category(
            Category(name="Technology", slug="technology")
        )
        repo = ArticleRepository(db_connection)
        first = repo.insert_article(_article(1, category_id=category_id))
        repo.insert_article(_article(2))

        assert repo.get_by_slug("story-1", published_only=True) is None
        assert repo.publish(first)
        assert not repo.publish(first)

        assert [a.id for a in repo.list_published()] == [first]
        assert [a.id for a in repo.list_published(category_id=category_id)] == [first]
        assert repo.count(published=True) == 1
        assert repo.count(published=False) == 1

    def test_get_by_slug_counts_views(self, db_connection):
        repo = ArticleRepository(db_connection)
        repo.insert_article(_article(1))

        assert repo.get_by_slug("story-1", count_view=True).view_count == 1
        assert repo.get_by_slug("story-1", count_view=True).view_count == 2
        assert repo.get_by_slug("story-1").view_count == 2


class TestQueueRepository:

    def test_enqueue_is_insert_or_skip(self, db_connection):
        repo = QueueRepository(db_connection)

        entry_id = repo.enqueue(_content(1), "rss", {"rss_source_id": 1})
        assert entry_id is not None
        assert repo.enqueue(_content(1), "rss", {}) is None
        assert repo.enqueue(_content(2, slug="story-1"), "rss", {}) is None

        entry = repo.get_entry(entry_id)
        assert entry.source_data == {"rss_source_id": 1}
        assert entry.processing_status == ProcessingStatus.PENDING
        assert entry.rewrite_status == RewriteStatus.NOT_REWRITTEN

    def test_pending_due_respects_schedule(self, db_connection):
        repo = QueueRepository(db_connection)
        now = datetime.now(timezone.utc)
        due = repo.enqueue(_content(1), "rss", {})
        repo.enqueue(_content(2), "rss", {}, scheduled_for=now + timedelta(hours=1))

        assert [e.id for e in repo.get_pending_due(now=now + timedelta(seconds=1))] == [due]

    def test_claim_is_exclusive(self, db_connection):
        repo = QueueRepository(db_connection)
        entry_id = repo.enqueue(_content(1), "rss", {})

        assert repo.claim(entry_id)
        assert not repo.claim(entry_id)
        assert repo.get_entry(entry_id).processing_status == ProcessingStatus.PROCESSING

    def test_complete_and_fail_require_processing(self, db_connection):
        repo = QueueRepository(db_connection)
        done = repo.enqueue(_content(1), "rss", {})
        broken = repo.enqueue(_content(2), "rss", {})
        article_id = ArticleRepository(db_connection).insert_article(_article(1))

        assert not repo.mark_completed(done, article_id)
        assert not repo.mark_failed(broken, "too early")

        repo.claim(done)
        repo.claim(broken)
        assert repo.mark_completed(done, article_id)
        assert repo.mark_failed(broken, "bad payload")

        assert repo.get_entry(done).article_id == article_id
        failed = repo.get_entry(broken)
        assert failed.processing_status == ProcessingStatus.FAILED
        assert failed.error_message == "bad payload"

    def test_rewrite_eligibility(self, db_connection):
        repo = QueueRepository(db_connection)
        pending = repo.enqueue(_content(1), "rss", {})
        processing = repo.enqueue(_content(2), "rss", {})
        repo.claim(processing)

        assert [e.id for e in repo.get_rewrite_eligible()] == [pending]
        assert not repo.mark_rewritten(processing, REWRITE)

        assert repo.mark_rewritten(pending, REWRITE, image_prompt="A chip")
        assert not repo.mark_rewritten(pending, REWRITE)
        assert not repo.mark_rewrite_failed(pending, "late failure")

        entry = repo.get_entry(pending)
        assert entry.rewrite_status == RewriteStatus.REWRITTEN
        assert entry.ai_title == "New title"
        assert entry.ai_keywords == ["a", "b"]
        assert entry.ai_image_prompt == "A chip"
        assert entry.ai_processed_at is not None

    def test_rewrite_failed_keeps_processing_status(self, db_connection):
        repo = QueueRepository(db_connection)
        entry_id = repo.enqueue(_content(1), "rss", {})

        assert repo.mark_rewrite_failed(entry_id, "quota exceeded")

        entry = repo.get_entry(entry_id)
        assert entry.processing_status == ProcessingStatus.PENDING
        assert entry.rewrite_status == RewriteStatus.REWRITE_FAILED
        assert entry.ai_error_message == "quota exceeded"
        assert entry.error_message is None

    def test_stats(self, db_connection):
        repo = QueueRepository(db_connection)
        first = repo.enqueue(_content(1), "rss", {})
        repo.enqueue(_content(2), "manual", {})
        repo.claim(first)
        repo.mark_failed(first, "boom")

        stats = repo.get_stats()
        assert stats.total == 2
        assert stats.pending == 1
        assert stats.failed == 1
        assert stats.processing["completed"] == 0
        assert stats.rewrite["not_rewritten"] == 2


class TestTranslationRepository:

    def test_upsert_replaces_translation(self, db_connection):
        article_id = ArticleRepository(db_connection).insert_article(_article(1))
        repo = TranslationRepository(db_connection)

        first_id = repo.upsert_translation(
            ArticleTranslation(article_id=article_id, language="es", title="Uno", content="C1")
        )
        second_id = repo.upsert_translation(
            ArticleTranslation(article_id=article_id, language="ES", title="Dos", content="C2")
        )

        assert first_id == second_id
        assert repo.get_translation(article_id, "es").title == "Dos"
        assert len(repo.list_for_article(article_id)) == 1


class TestAffiliateRepository:

    @pytest.fixture
    def repo(self, db_connection):
        return AffiliateRepository(db_connection)

    @pytest.fixture
    def link_id(self, repo):
        return repo.create_link(AffiliateLink(
            name="Headphones",
            original_url="https://shop.example.com/headphones",
            affiliate_url="https://shop.example.com/headphones?tag=autonews-20",
            network="Example Associates",
            commission_rate=4.5,
        ))

    def test_click_returns_target_and_is_recorded(self, repo, link_id):
        target = repo.resolve_and_track(
            link_id,
            ip_address="203.0.113.7",
            user_agent="Mozilla/5.0",
            referrer="https://news.example.com/article/quantum-chip",
        )

        assert target == "https://shop.example.com/headphones?tag=autonews-20"
        click = repo.list_clicks(link_id)[0]
        assert click.ip_address == "203.0.113.7"
        assert click.user_agent == "Mozilla/5.0"
        assert click.referrer == "https://news.example.com/article/quantum-chip"
        assert click.clicked_at is not None

    def test_click_defaults(self, repo, link_id):
        repo.resolve_and_track(link_id)

        click = repo.list_clicks(link_id)[0]
        assert click.ip_address == "unknown"
        assert click.user_agent == ""
        assert click.referrer == ""

    def test_inactive_link_is_not_followed(self, repo, link_id):
        repo.set_active(link_id, False)

        assert repo.resolve_and_track(link_id, ip_address="203.0.113.7") is None
        assert repo.click_count(link_id) == 0

    def test_unknown_link(self, repo):
        assert repo.resolve_and_track(404) is None

    def test_list_links_carries_click_counts(self, repo, link_id):
        other_id = repo.create_link(AffiliateLink(
            name="Desk",
            original_url="https://shop.example.com/desk",
            affiliate_url="https://shop.example.com/desk?tag=autonews-20",
        ))
        repo.resolve_and_track(link_id)
        repo.resolve_and_track(link_id)

        counts = {link.id: link.click_count for link in repo.list_links()}
        assert counts == {link_id: 2, other_id: 0}
        assert repo.get_link(link_id).click_count == 2
        assert repo.get_link(link_id).commission_rate == 4.5

    def test_top_links_counts_only_the_window(self, repo, link_id):
        now = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)
        repo.resolve_and_track(link_id, clicked_at=now - timedelta(days=40))
        repo.resolve_and_track(link_id, clicked_at=now - timedelta(days=1))

        top = repo.top_links(since=now - timedelta(days=30))

        assert [(link.id, link.click_count) for link in top] == [(link_id, 1)]
        assert repo.click_count(link_id) == 2
        assert repo.click_count(link_id, since=now - timedelta(days=30)) == 1

    def test_delete_removes_clicks(self, repo, link_id, db_connection):
        repo.resolve_and_track(link_id)

        assert repo.delete_link(link_id)
        assert repo.get_link(link_id) is None
        assert db_connection.execute_one("SELECT COUNT(*) FROM affiliate_clicks")[0] == 0

    def test_non_http_urls_rejected(self):
        with pytest.raises(ValueError):
            AffiliateLink(name="Bad", original_url="ftp://example.com", affiliate_url="https://example.com")


class TestSchema:

    def test_schema_verifies_with_affiliate_tables(self, temp_db, db_connection):
        assert DatabaseSchema(temp_db).verify_schema()

        counts = db_connection.get_database_info()["table_counts"]
        assert counts["affiliate_links"] == 0
        assert counts["affiliate_clicks"] == 0
