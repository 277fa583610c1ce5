"""
PyTest Configuration and Fixtures
=================================

Shared fixtures and configuration for AutoNews tests.

- Environment is set before any autonews import so settings never read a
  developer's .env values for paths or keys
- Every test gets its own temporary SQLite database built with DatabaseSchema
"""

import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Set test environment variables before any imports
_TEST_DIR = Path(tempfile.gettempdir()) / "autonews_tests"
os.environ["AUTONEWS_DATABASE__PATH"] = str(_TEST_DIR / "autonews_test.db")
os.environ["AUTONEWS_LOGGING__FILE_PATH"] = str(_TEST_DIR / "autonews_test.log")
os.environ["AUTONEWS_AI__GROQ_API_KEY"] = "test-groq-key-for-unit-testing"
os.environ["AUTONEWS_DEBUG"] = "true"


# ============================================================================
# Settings and Database Fixtures
# ============================================================================


@pytest.fixture
def settings():
    """Fresh settings built from the test environment."""
    from autonews.config.settings import AutoNewsSettings

    return AutoNewsSettings()


@pytest.fixture
def temp_db(tmp_path):
    """Path of a temporary database with the full schema."""
    from autonews.database.schema import DatabaseSchema

    db_path = tmp_path / "autonews_test.db"
    schema = DatabaseSchema(str(db_path))
    schema.create_tables()
    return str(db_path)


@pytest.fixture
def db_connection(temp_db):
    """Database connection manager for the temporary database."""
    from autonews.database.connection import DatabaseConnection

    connection = DatabaseConnection(temp_db, pool_size=2)
    yield connection

    connection.close_all_connections()


@pytest.fixture
def normalizer(settings):
    from autonews.ingestion.content_normalizer import ContentNormalizer

    return ContentNormalizer(settings)


@pytest.fixture
def rss_source(db_connection):
    """An active RSS source that was never fetched."""
    from autonews.database.models import RSSSource
    from autonews.storage.source_repository import SourceRepository

    repo = SourceRepository(db_connection)
    source_id = repo.create_source(
        RSSSource(name="Tech Wire", url="https://example.com/feed.xml", fetch_interval=3600)
    )
    return repo.get_source(source_id)


# ============================================================================
# Sample Feed Documents
# ============================================================================


SAMPLE_RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Tech Wire</title>
    <link>https://example.com</link>
    <description>Technology news</description>
    <item>
      <title>Quantum Chip Breaks Record</title>
      <link>https://example.com/quantum-chip</link>
      <description>&lt;p&gt;A new &lt;b&gt;quantum&lt;/b&gt; chip was unveiled.&lt;/p&gt;</description>
      <pubDate>Tue, 02 Jan 2024 10:00:00 GMT</pubDate>
      <author>jane@example.com (Jane Doe)</author>
      <category>Technology</category>
      <guid>https://example.com/quantum-chip</guid>
    </item>
    <item>
      <title>Battery Prices Fall Again</title>
      <link>https://example.com/battery-prices</link>
      <description>Lithium battery prices dropped for the third year.</description>
      <pubDate>Mon, 01 Jan 2024 08:30:00 GMT</pubDate>
      <guid>https://example.com/battery-prices</guid>
    </item>
  </channel>
</rss>
"""

SAMPLE_ATOM = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Tech Wire</title>
  <link href="https://example.com"/>
  <id>urn:example:feed</id>
  <updated>2024-01-02T10:00:00Z</updated>
  <entry>
    <title>Quantum Chip Breaks Record</title>
    <link href="https://example.com/quantum-chip"/>
    <id>https://example.com/quantum-chip</id>
    <published>2024-01-02T10:00:00Z</published>
    <updated>2024-01-02T10:00:00Z</updated>
    <summary type="html">&lt;p&gt;A new &lt;b&gt;quantum&lt;/b&gt; chip was unveiled.&lt;/p&gt;</summary>
    <author><name>Jane Doe</name></author>
    <category term="Technology"/>
  </entry>
  <entry>
    <title>Battery Prices Fall Again</title>
    <link href="https://example.com/battery-prices"/>
    <id>https://example.com/battery-prices</id>
    <published>2024-01-01T08:30:00Z</published>
    <updated>2024-01-01T08:30:00Z</updated>
    <summary>Lithium battery prices dropped for the third year.</summary>
  </entry>
</feed>
"""


@pytest.fixture
def sample_rss():
    return SAMPLE_RSS


@pytest.fixture
def sample_atom():
    return SAMPLE_ATOM


@pytest.fixture
def fixed_now():
    return datetime(2024, 1, 3, 12, 0, 0, tzinfo=timezone.utc)
