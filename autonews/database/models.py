"""
AutoNews Data Models
====================

Pydantic data models mirroring the database rows, plus the composite queue
state machine that governs how a queue entry moves through conversion and
AI rewrite.
"""

import json
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Dict, Any

from pydantic import BaseModel, Field, field_validator

from ..utils.exceptions import QueueStateError


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_db_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Render a datetime in the UTC text form SQLite's CURRENT_TIMESTAMP uses.

    Naive datetimes are taken to be UTC already.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def parse_db_timestamp(value: Any) -> Optional[datetime]:
    """Parse a stored timestamp into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _timestamps_from_row(data: Dict[str, Any], *keys: str) -> Dict[str, Any]:
    for key in keys:
        if key in data:
            data[key] = parse_db_timestamp(data[key])
    return data


class SourceType(str, Enum):
    """Where a queue entry came from."""
    RSS = "rss"
    MANUAL = "manual"


class ProcessingStatus(str, Enum):
    """Conversion status of a queue entry."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class RewriteStatus(str, Enum):
    """AI rewrite status of a queue entry."""
    NOT_REWRITTEN = "not_rewritten"
    REWRITTEN = "rewritten"
    REWRITE_FAILED = "rewrite_failed"


# Processing states from which an AI rewrite may start
REWRITABLE_PROCESSING_STATES = (ProcessingStatus.PENDING, ProcessingStatus.COMPLETED)


@dataclass(frozen=True)
class QueueState:
    """Composite state of a queue entry.

    Conversion moves pending -> processing -> completed | failed and never
    reverts. Rewrite moves not_rewritten -> rewritten | rewrite_failed and may
    only start while the entry is pending or completed, never while it is
    claimed by a processor or after it failed. ``completed`` together with
    ``rewrite_failed`` is a terminal combination; the article created for such
    an entry stays unpublished until someone publishes it explicitly.

    Every transition returns a new state and raises ``QueueStateError`` if the
    move is not allowed.
    """
    processing: ProcessingStatus = ProcessingStatus.PENDING
    rewrite: RewriteStatus = RewriteStatus.NOT_REWRITTEN
    error_message: Optional[str] = None
    rewrite_error: Optional[str] = None

    def __post_init__(self):
        if self.processing == ProcessingStatus.FAILED and not self.error_message:
            raise QueueStateError("A failed entry must carry an error message")
        if self.rewrite == RewriteStatus.REWRITE_FAILED and not self.rewrite_error:
            raise QueueStateError("A rewrite-failed entry must carry an error message")

    @property
    def can_claim(self) -> bool:
        return self.processing == ProcessingStatus.PENDING

    @property
    def can_rewrite(self) -> bool:
        return (
            self.rewrite == RewriteStatus.NOT_REWRITTEN
            and self.processing in REWRITABLE_PROCESSING_STATES
        )

    @property
    def is_terminal(self) -> bool:
        """No further automatic transition is possible."""
        return not self.can_claim and not self.can_rewrite and self.processing != ProcessingStatus.PROCESSING

    def claim(self) -> "QueueState":
        if not self.can_claim:
            raise QueueStateError(f"Cannot claim entry in state {self}")
        return replace(self, processing=ProcessingStatus.PROCESSING)

    def complete(self) -> "QueueState":
        if self.processing != ProcessingStatus.PROCESSING:
            raise QueueStateError(f"Cannot complete entry in state {self}")
        return replace(self, processing=ProcessingStatus.COMPLETED)

    def fail(self, message: str) -> "QueueState":
        if self.processing != ProcessingStatus.PROCESSING:
            raise QueueStateError(f"Cannot fail entry in state {self}")
        return replace(self, processing=ProcessingStatus.FAILED, error_message=message)

    def mark_rewritten(self) -> "QueueState":
        if not self.can_rewrite:
            raise QueueStateError(f"Cannot record rewrite for entry in state {self}")
        return replace(self, rewrite=RewriteStatus.REWRITTEN)

    def mark_rewrite_failed(self, message: str) -> "QueueState":
        if not self.can_rewrite:
            raise QueueStateError(f"Cannot record rewrite failure for entry in state {self}")
        return replace(self, rewrite=RewriteStatus.REWRITE_FAILED, rewrite_error=message)

    def __str__(self) -> str:
        return f"{self.processing.value}/{self.rewrite.value}"


class Category(BaseModel):
    """Editorial category."""
    id: Optional[int] = Field(default=None, description="Database primary key")
    name: str = Field(..., min_length=1, max_length=200, description="Display name")
    slug: str = Field(..., min_length=1, max_length=200, description="URL slug")
    description: Optional[str] = Field(default=None, description="Category description")
    created_at: Optional[datetime] = Field(default_factory=utc_now)

    @classmethod
    def from_db_row(cls, row) -> "Category":
        return cls(**_timestamps_from_row(dict(row), "created_at"))

    def __str__(self) -> str:
        return f"Category({self.name})"


class RSSSource(BaseModel):
    """Configured RSS/Atom feed."""
    id: Optional[int] = Field(default=None, description="Database primary key")
    name: str = Field(..., min_length=1, max_length=255, description="Source display name")
    url: str = Field(..., min_length=1, description="Feed URL")
    category_id: Optional[int] = Field(default=None, description="Category assigned to the source's items")
    is_active: bool = Field(default=True, description="Whether the source is fetched")
    fetch_interval: int = Field(default=3600, gt=0, description="Minimum seconds between fetches")
    last_fetched_at: Optional[datetime] = Field(default=None, description="Last fetch attempt")
    created_at: Optional[datetime] = Field(default_factory=utc_now)

    @field_validator('url')
    @classmethod
    def validate_url(cls, v):
        """Feed URLs must be http(s)."""
        v = v.strip()
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError("Feed URL must start with http:// or https://")
        return v

    @classmethod
    def from_db_row(cls, row) -> "RSSSource":
        return cls(**_timestamps_from_row(dict(row), "last_fetched_at", "created_at"))

    def __str__(self) -> str:
        return f"RSSSource({self.name}:{self.url})"


class ProcessedContent(BaseModel):
    """The common normalized shape for both RSS items and uploaded records."""
    title: str = Field(..., min_length=1, description="Article title")
    slug: str = Field(..., min_length=1, description="URL slug derived from the title")
    content: str = Field(default="", description="Cleaned plain-text body")
    excerpt: str = Field(default="", description="Short plain-text excerpt")
    source_url: Optional[str] = Field(default=None, description="Original story URL")
    source_name: str = Field(default="", description="Publisher or import label")
    published_at: datetime = Field(default_factory=utc_now, description="Original publication time")
    category_id: Optional[int] = Field(default=None, description="Category, if known")

    def to_payload(self) -> Dict[str, Any]:
        """JSON-safe dict for storage inside a queue entry's source data."""
        return self.model_dump(mode="json")

    def __str__(self) -> str:
        return f"ProcessedContent({self.slug})"


class Article(BaseModel):
    """Stored article."""
    id: Optional[int] = Field(default=None, description="Database primary key")
    title: str = Field(..., min_length=1, description="Article title")
    slug: str = Field(..., min_length=1, description="Globally unique slug")
    content: str = Field(default="", description="Article body")
    excerpt: str = Field(default="", description="Article excerpt")
    source_url: Optional[str] = Field(default=None, description="Original story URL")
    source_name: Optional[str] = Field(default=None, description="Publisher name")
    published_at: Optional[datetime] = Field(default=None, description="Original publication time")
    category_id: Optional[int] = Field(default=None, description="Category")
    is_published: bool = Field(default=False, description="Visible on the public site")
    view_count: int = Field(default=0, ge=0, description="Public view counter")
    created_at: Optional[datetime] = Field(default_factory=utc_now)
    updated_at: Optional[datetime] = Field(default_factory=utc_now)

    @classmethod
    def from_db_row(cls, row) -> "Article":
        return cls(**_timestamps_from_row(dict(row), "published_at", "created_at", "updated_at"))

    def __str__(self) -> str:
        return f"Article({self.title[:50]})"


class QueueEntry(BaseModel):
    """A staged piece of content awaiting conversion into an article."""
    id: Optional[int] = Field(default=None, description="Database primary key")
    source_type: str = Field(..., description="Origin of the entry (rss or manual)")
    source_data: Dict[str, Any] = Field(default_factory=dict, description="Original item and normalized payload")
    title: str = Field(..., description="Normalized title")
    slug: str = Field(..., description="Normalized slug")
    source_url: Optional[str] = Field(default=None, description="Original story URL")
    processing_status: ProcessingStatus = Field(default=ProcessingStatus.PENDING)
    rewrite_status: RewriteStatus = Field(default=RewriteStatus.NOT_REWRITTEN)
    scheduled_for: Optional[datetime] = Field(default_factory=utc_now, description="Not eligible before this time")
    error_message: Optional[str] = Field(default=None, description="Conversion failure")
    article_id: Optional[int] = Field(default=None, description="Article created from this entry")
    processed_at: Optional[datetime] = Field(default=None)
    ai_title: Optional[str] = None
    ai_content: Optional[str] = None
    ai_meta_description: Optional[str] = None
    ai_keywords: List[str] = Field(default_factory=list)
    ai_category: Optional[str] = None
    ai_summary: Optional[str] = None
    ai_image_prompt: Optional[str] = None
    ai_processed_at: Optional[datetime] = None
    ai_error_message: Optional[str] = Field(default=None, description="Rewrite failure")
    created_at: Optional[datetime] = Field(default_factory=utc_now)

    @property
    def state(self) -> QueueState:
        return QueueState(
            processing=self.processing_status,
            rewrite=self.rewrite_status,
            error_message=self.error_message,
            rewrite_error=self.ai_error_message,
        )

    @classmethod
    def from_db_row(cls, row) -> "QueueEntry":
        """Create QueueEntry from database row with JSON parsing."""
        data = dict(row)
        if isinstance(data.get('source_data'), str):
            data['source_data'] = json.loads(data['source_data'])
        if isinstance(data.get('ai_keywords'), str):
            data['ai_keywords'] = json.loads(data['ai_keywords'])
        elif data.get('ai_keywords') is None:
            data['ai_keywords'] = []
        return cls(**_timestamps_from_row(
            data, "scheduled_for", "processed_at", "ai_processed_at", "created_at"
        ))

    def __str__(self) -> str:
        return f"QueueEntry({self.id}:{self.slug}:{self.state})"


class ArticleTranslation(BaseModel):
    """Translated version of an article."""
    id: Optional[int] = Field(default=None, description="Database primary key")
    article_id: int = Field(..., description="Translated article")
    language: str = Field(..., min_length=2, max_length=20, description="Target language code")
    title: str = Field(..., description="Translated title")
    content: str = Field(..., description="Translated body")
    meta_description: Optional[str] = Field(default=None, description="Translated meta description")
    created_at: Optional[datetime] = Field(default_factory=utc_now)

    @field_validator('language')
    @classmethod
    def normalize_language(cls, v):
        return v.strip().lower()

    @classmethod
    def from_db_row(cls, row) -> "ArticleTranslation":
        return cls(**_timestamps_from_row(dict(row), "created_at"))


class AffiliateLink(BaseModel):
    """Outbound link tracked through the click redirect."""
    id: Optional[int] = Field(default=None, description="Database primary key")
    name: str = Field(..., min_length=1, max_length=255, description="Display name")
    original_url: str = Field(..., min_length=1, description="Plain URL the affiliate link replaces")
    affiliate_url: str = Field(..., min_length=1, description="Redirect target carrying the affiliate tag")
    network: str = Field(default="", description="Affiliate network")
    commission_rate: float = Field(default=0.0, ge=0, le=100, description="Commission in percent")
    is_active: bool = Field(default=True, description="Whether clicks are redirected")
    click_count: int = Field(default=0, description="Tracked clicks, filled in by listings")
    created_at: Optional[datetime] = Field(default_factory=utc_now)

    @field_validator('original_url', 'affiliate_url')
    @classmethod
    def validate_urls(cls, v):
        v = v.strip()
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v

    @classmethod
    def from_db_row(cls, row) -> "AffiliateLink":
        return cls(**_timestamps_from_row(dict(row), "created_at"))

    def __str__(self) -> str:
        return f"AffiliateLink({self.name}:{self.affiliate_url})"


class AffiliateClick(BaseModel):
    """One followed affiliate link."""
    id: Optional[int] = Field(default=None, description="Database primary key")
    affiliate_link_id: int = Field(..., description="Followed link")
    ip_address: str = Field(default="unknown", description="Client address")
    user_agent: str = Field(default="", description="Client user agent")
    referrer: str = Field(default="", description="Referring page")
    clicked_at: Optional[datetime] = Field(default_factory=utc_now)

    @classmethod
    def from_db_row(cls, row) -> "AffiliateClick":
        return cls(**_timestamps_from_row(dict(row), "clicked_at"))


class RewriteResult(BaseModel):
    """Structured output of an AI rewrite."""
    title: str = Field(..., min_length=1, description="Rewritten title")
    content: str = Field(..., min_length=1, description="Rewritten body")
    meta_description: str = Field(default="", description="SEO meta description")
    keywords: List[str] = Field(default_factory=list, description="SEO keywords")
    category: str = Field(default="", description="Suggested category name")
    summary: str = Field(default="", description="Short summary")

    @field_validator('keywords', mode='before')
    @classmethod
    def split_keywords(cls, v):
        """Accept a comma-separated string as well as a list."""
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split(",")
        return [str(k).strip() for k in v if str(k).strip()]


class TranslationResult(BaseModel):
    """Structured output of an AI translation."""
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    meta_description: str = Field(default="")


@dataclass
class QueueStats:
    """Queue counts per status dimension."""
    processing: Dict[str, int] = field(default_factory=dict)
    rewrite: Dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.processing.values())

    @property
    def pending(self) -> int:
        return self.processing.get(ProcessingStatus.PENDING.value, 0)

    @property
    def failed(self) -> int:
        return self.processing.get(ProcessingStatus.FAILED.value, 0)
