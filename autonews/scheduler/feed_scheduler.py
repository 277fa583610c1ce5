"""
AutoNews Feed Scheduler
=======================

Decides which RSS sources are due and ingests them one after another.
Designed to be called by cron or systemd timers; each call is one pass.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from ..database.models import RSSSource, utc_now
from ..processing.content_ingestor import ContentIngestor, SourceIngestResult
from ..storage.source_repository import SourceRepository
from ..utils.logging import get_logger_for_component, PerformanceLogger

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class SourceRunStatus(str, Enum):
    PROCESSED = "processed"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass
class SourceRunResult:
    """What happened to one source during a scheduling pass."""
    source_id: int
    source_name: str
    status: SourceRunStatus
    reason: Optional[str] = None
    ingest: Optional[SourceIngestResult] = None
    error: Optional[str] = None


def is_due(source: RSSSource, now: datetime) -> bool:
    """True once ``fetch_interval`` seconds have passed since the last fetch.

    A source that was never fetched is always due.
    """
    last_fetched = source.last_fetched_at or EPOCH
    if last_fetched.tzinfo is None:
        last_fetched = last_fetched.replace(tzinfo=timezone.utc)
    return (now - last_fetched).total_seconds() >= source.fetch_interval


class FeedScheduler:
    """Runs ingestion for every active source whose interval has elapsed."""

    def __init__(self, ingestor: ContentIngestor, source_repository: SourceRepository):
        self.ingestor = ingestor
        self.sources = source_repository
        self.logger = get_logger_for_component("feed_scheduler")

    async def run_due_sources(self, now: Optional[datetime] = None) -> List[SourceRunResult]:
        """Ingest all due sources, least recently fetched first.

        Sources are handled strictly one at a time. A failing source is
        reported with status ``error`` and does not stop the pass.

        Args:
            now: Reference time (default: current UTC time)

        Returns:
            One result per active source
        """
        now = now or utc_now()
        sources = self.sources.get_active_by_staleness()
        results: List[SourceRunResult] = []

        self.logger.info(f"Checking {len(sources)} active RSS sources", extra={"source_count": len(sources)})

        with PerformanceLogger(self.logger, "feed scheduling pass", source_count=len(sources)):
            for source in sources:
                if not is_due(source, now):
                    results.append(SourceRunResult(
                        source_id=source.id,
                        source_name=source.name,
                        status=SourceRunStatus.SKIPPED,
                        reason="too_recent",
                    ))
                    continue

                try:
                    ingest = await self.ingestor.ingest_source(source.id)
                    results.append(SourceRunResult(
                        source_id=source.id,
                        source_name=source.name,
                        status=SourceRunStatus.PROCESSED,
                        ingest=ingest,
                    ))
                except Exception as e:
                    self.logger.error(
                        f"Source {source.name} failed: {e}",
                        extra={"source_id": source.id, "feed_url": source.url},
                    )
                    results.append(SourceRunResult(
                        source_id=source.id,
                        source_name=source.name,
                        status=SourceRunStatus.ERROR,
                        error=str(e),
                    ))

        processed = sum(1 for r in results if r.status == SourceRunStatus.PROCESSED)
        errors = sum(1 for r in results if r.status == SourceRunStatus.ERROR)
        self.logger.info(
            f"Scheduling pass finished: {processed} processed, {errors} errors, "
            f"{len(results) - processed - errors} skipped"
        )
        return results
