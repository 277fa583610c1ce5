"""
AutoNews Database Schema
========================

SQLite schema for the ingestion pipeline and article store:
- categories: editorial categories for sources and articles
- rss_sources: configured RSS/Atom feeds with fetch intervals
- articles: stored articles, unique by slug and by source URL
- content_queue: staged candidate content awaiting conversion and rewrite
- article_translations: AI translations, one per article and language
- affiliate_links: tracked outbound links and their redirect targets
- affiliate_clicks: one row per followed affiliate link
"""

import sqlite3
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

EXPECTED_TABLES = {
    "categories",
    "rss_sources",
    "articles",
    "content_queue",
    "article_translations",
    "affiliate_links",
    "affiliate_clicks",
}


class DatabaseSchema:
    """Database schema manager for the AutoNews SQLite database."""

    def __init__(self, db_path: str = "data/autonews.db"):
        """Initialize database schema manager.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables with proper schema."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("PRAGMA foreign_keys = ON")

            # Dependency order
            self._create_categories_table(conn)
            self._create_rss_sources_table(conn)
            self._create_articles_table(conn)
            self._create_content_queue_table(conn)
            self._create_article_translations_table(conn)
            self._create_affiliate_links_table(conn)
            self._create_affiliate_clicks_table(conn)

            self._create_indexes(conn)

            conn.commit()
            logger.info("Database schema created successfully")

    def _create_categories_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS categories (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                slug TEXT UNIQUE NOT NULL,
                description TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

    def _create_rss_sources_table(self, conn: sqlite3.Connection) -> None:
        """Create rss_sources table; fetch_interval is in seconds."""
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS rss_sources (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                url TEXT UNIQUE NOT NULL,
                category_id INTEGER,
                is_active BOOLEAN DEFAULT TRUE,
                fetch_interval INTEGER NOT NULL DEFAULT 3600 CHECK (fetch_interval > 0),
                last_fetched_at TIMESTAMP,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (category_id) REFERENCES categories(id) ON DELETE SET NULL
            )
        """
        )

    def _create_articles_table(self, conn: sqlite3.Connection) -> None:
        """Create articles table; slug and source_url are the dedup keys."""
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS articles (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                slug TEXT UNIQUE NOT NULL,
                content TEXT NOT NULL DEFAULT '',
                excerpt TEXT NOT NULL DEFAULT '',
                source_url TEXT UNIQUE,
                source_name TEXT,
                published_at TIMESTAMP,
                category_id INTEGER,
                is_published BOOLEAN DEFAULT FALSE,
                view_count INTEGER DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (category_id) REFERENCES categories(id) ON DELETE SET NULL
            )
        """
        )

    def _create_content_queue_table(self, conn: sqlite3.Connection) -> None:
        """Create content_queue table with both status dimensions."""
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS content_queue (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                source_type TEXT NOT NULL,
                source_data TEXT NOT NULL,  -- JSON payload
                title TEXT NOT NULL,
                slug TEXT UNIQUE NOT NULL,
                source_url TEXT UNIQUE,
                processing_status TEXT NOT NULL DEFAULT 'pending'
                    CHECK (processing_status IN ('pending', 'processing', 'completed', 'failed')),
                rewrite_status TEXT NOT NULL DEFAULT 'not_rewritten'
                    CHECK (rewrite_status IN ('not_rewritten', 'rewritten', 'rewrite_failed')),
                scheduled_for TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                error_message TEXT,
                article_id INTEGER,
                processed_at TIMESTAMP,
                ai_title TEXT,
                ai_content TEXT,
                ai_meta_description TEXT,
                ai_keywords TEXT,  -- JSON array
                ai_category TEXT,
                ai_summary TEXT,
                ai_image_prompt TEXT,
                ai_processed_at TIMESTAMP,
                ai_error_message TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (article_id) REFERENCES articles(id) ON DELETE SET NULL
            )
        """
        )

    def _create_article_translations_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS article_translations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                article_id INTEGER NOT NULL,
                language TEXT NOT NULL,
                title TEXT NOT NULL,
                content TEXT NOT NULL,
                meta_description TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (article_id) REFERENCES articles(id) ON DELETE CASCADE,
                UNIQUE(article_id, language)
            )
        """
        )

    def _create_affiliate_links_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS affiliate_links (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                original_url TEXT NOT NULL,
                affiliate_url TEXT NOT NULL,
                network TEXT NOT NULL DEFAULT '',
                commission_rate REAL NOT NULL DEFAULT 0,
                is_active BOOLEAN NOT NULL DEFAULT 1,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

    def _create_affiliate_clicks_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS affiliate_clicks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                affiliate_link_id INTEGER NOT NULL,
                ip_address TEXT NOT NULL DEFAULT 'unknown',
                user_agent TEXT NOT NULL DEFAULT '',
                referrer TEXT NOT NULL DEFAULT '',
                clicked_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (affiliate_link_id) REFERENCES affiliate_links(id) ON DELETE CASCADE
            )
        """
        )

    def _create_indexes(self, conn: sqlite3.Connection) -> None:
        """Create database indexes for the pipeline's hot queries."""
        indexes = [
            # Source indexes
            "CREATE INDEX IF NOT EXISTS idx_sources_active_fetched ON rss_sources(is_active, last_fetched_at)",
            # Article indexes
            "CREATE INDEX IF NOT EXISTS idx_articles_published ON articles(is_published, published_at)",
            "CREATE INDEX IF NOT EXISTS idx_articles_category ON articles(category_id)",
            "CREATE INDEX IF NOT EXISTS idx_articles_created ON articles(created_at)",
            # Queue indexes
            "CREATE INDEX IF NOT EXISTS idx_queue_processing ON content_queue(processing_status, scheduled_for, created_at)",
            "CREATE INDEX IF NOT EXISTS idx_queue_rewrite ON content_queue(rewrite_status, created_at)",
            # Translation indexes
            "CREATE INDEX IF NOT EXISTS idx_translations_article ON article_translations(article_id)",
            # Affiliate indexes
            "CREATE INDEX IF NOT EXISTS idx_affiliate_clicks_link ON affiliate_clicks(affiliate_link_id, clicked_at)",
        ]

        for index_sql in indexes:
            conn.execute(index_sql)

    def get_connection(self) -> sqlite3.Connection:
        """Get database connection with foreign keys enabled."""
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA foreign_keys = ON")
        conn.row_factory = sqlite3.Row
        return conn

    def verify_schema(self) -> bool:
        """Verify database schema is correctly created."""
        try:
            conn = self.get_connection()
            try:
                cursor = conn.execute(
                    """
                    SELECT name FROM sqlite_master
                    WHERE type='table' AND name NOT LIKE 'sqlite_%'
                    ORDER BY name
                """
                )
                tables = {row[0] for row in cursor.fetchall()}
                missing = EXPECTED_TABLES - tables
                if missing:
                    logger.error(f"Missing tables: {sorted(missing)}")
                    return False

                conn.execute("PRAGMA foreign_key_check")
            finally:
                conn.close()

            logger.info("Database schema verification passed")
            return True

        except sqlite3.Error as e:
            logger.error(f"Schema verification failed: {e}")
            return False
