"""
AutoNews Processing Module
==========================

Feed fetching, dedup & enqueue, and conversion of queue entries into
articles.
"""

from .feed_fetcher import FeedFetcher
from .content_ingestor import ContentIngestor
from .queue_processor import QueueProcessor

__all__ = [
    'FeedFetcher',
    'ContentIngestor',
    'QueueProcessor',
]
