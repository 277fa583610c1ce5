"""
AutoNews - News Content Back Office
===================================

RSS and upload ingestion, content queue processing and AI rewriting for a
news publishing site.

Main Components:
- Database: SQLite with connection pooling and schema management
- Configuration: environment variables with Pydantic validation
- Ingestion: RSS/Atom parsing, upload decoding, content normalization
- Processing: dedup & enqueue, queue-to-article conversion
- Scheduler: per-source fetch intervals for cron-driven runs
- AI Integration: Groq-backed rewrite, translation and image prompts
"""

__version__ = "1.0.0"
__author__ = "AutoNews Development Team"
__description__ = "News content ingestion and rewrite pipeline"

from .config.settings import get_settings
from .database.connection import DatabaseConnection
from .database.schema import DatabaseSchema
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import AutoNewsError

__all__ = [
    "get_settings",
    "DatabaseConnection",
    "DatabaseSchema",
    "configure_application_logging",
    "get_logger_for_component",
    "AutoNewsError",
]
