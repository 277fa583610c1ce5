"""
AutoNews Storage Layer
======================

Repository pattern implementations for data access abstraction.

This module provides:
- Category and RSS source repositories for configuration data
- Queue repository with state-guarded status transitions
- Article and translation repositories for published content
- Affiliate repository with click tracking
"""

from .affiliate_repository import AffiliateRepository
from .article_repository import ArticleRepository
from .category_repository import CategoryRepository
from .queue_repository import QueueRepository
from .source_repository import SourceRepository
from .translation_repository import TranslationRepository

__all__ = [
    "AffiliateRepository",
    "ArticleRepository",
    "CategoryRepository",
    "QueueRepository",
    "SourceRepository",
    "TranslationRepository",
]
