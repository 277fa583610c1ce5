"""
Content Normalizer
==================

Maps parsed feed items and uploaded records onto the common
:class:`ProcessedContent` shape stored in the content queue.
"""

from datetime import date, datetime, timezone
from typing import Any, Dict, Mapping, Optional

from dateutil.parser import parse as parse_date

from .content_cleaner import clean_content, generate_excerpt, generate_slug
from .rss_parser import FeedItem
from ..config.settings import AutoNewsSettings, get_settings
from ..database.models import ProcessedContent, RSSSource
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import ErrorCode, UploadValidationError, ValidationError

# Record field -> accepted keys, first non-empty value wins
FIELD_ALIASES = {
    "title": ("headline", "title"),
    "link": ("link", "url"),
    "description": ("description", "summary"),
    "pub_date": ("published_time", "pubDate", "date"),
    "author": ("author",),
    "category": ("category",),
    "content": ("content", "body"),
}

REQUIRED_FIELDS = ("title", "link")

MANUAL_SOURCE_NAME = "Manual Import"


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value).strip()


class ContentNormalizer:
    """Builds ProcessedContent from feed items and uploaded records."""

    def __init__(self, settings: Optional[AutoNewsSettings] = None):
        self.settings = settings or get_settings()
        self.logger = get_logger_for_component("content_normalizer")

    def from_feed_item(self, item: FeedItem, source: RSSSource) -> ProcessedContent:
        """Normalize a parsed feed item from an RSS source.

        Raises:
            ValidationError: If the item has no title usable for a slug
        """
        return self._build(item, source_name=source.name, category_id=source.category_id)

    def normalize_record(self, record: Mapping[str, Any], row_index: Optional[int] = None) -> FeedItem:
        """Resolve field aliases of an uploaded record into a FeedItem.

        Args:
            record: One uploaded row or JSON object
            row_index: Position of the record in the upload, for error messages

        Returns:
            FeedItem with ``""`` for any optional field the record lacks

        Raises:
            UploadValidationError: If the record is not a mapping or lacks a
                required field (title or link)
        """
        if not isinstance(record, Mapping):
            raise UploadValidationError(
                f"Row {row_index}: expected an object, got {type(record).__name__}",
                row_index=row_index,
                error_code=ErrorCode.UPLOAD_MALFORMED,
            )

        lookup = {str(key).strip().lower(): value for key, value in record.items() if key is not None}
        values: Dict[str, Any] = {}
        for field_name, aliases in FIELD_ALIASES.items():
            values[field_name] = ""
            for alias in aliases:
                raw = lookup.get(alias.lower())
                if _as_text(raw):
                    values[field_name] = raw
                    break

        for field_name in REQUIRED_FIELDS:
            if not _as_text(values[field_name]):
                raise UploadValidationError(
                    f"Row {row_index}: missing required field '{field_name}' "
                    f"(accepted keys: {', '.join(FIELD_ALIASES[field_name])})",
                    row_index=row_index,
                    field_name=field_name,
                    error_code=ErrorCode.UPLOAD_MISSING_FIELD,
                )

        return FeedItem(
            title=_as_text(values["title"]),
            description=_as_text(values["description"]),
            link=_as_text(values["link"]),
            pub_date=self._parse_record_date(values["pub_date"], row_index),
            author=_as_text(values["author"]),
            category=_as_text(values["category"]),
            content=_as_text(values["content"]),
        )

    def from_record(self, record: Mapping[str, Any], row_index: Optional[int] = None) -> ProcessedContent:
        """Normalize an uploaded record into ProcessedContent.

        Raises:
            UploadValidationError: If the record is invalid
        """
        return self.from_manual_item(self.normalize_record(record, row_index), row_index)

    def from_manual_item(self, item: FeedItem, row_index: Optional[int] = None) -> ProcessedContent:
        """Build ProcessedContent from an already-normalized uploaded record."""
        try:
            return self._build(item, source_name=MANUAL_SOURCE_NAME, category_id=None)
        except ValidationError as e:
            raise UploadValidationError(
                f"Row {row_index}: {e.message}",
                row_index=row_index,
                field_name="title",
                error_code=ErrorCode.UPLOAD_MALFORMED,
            ) from e

    def _build(self, item: FeedItem, source_name: str, category_id: Optional[int]) -> ProcessedContent:
        processing = self.settings.processing
        title = item.title.strip()
        slug = generate_slug(title, processing.slug_max_length)
        if not slug:
            raise ValidationError(
                f"Title {title!r} does not produce a usable slug",
                field_name="title",
                error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
            )

        content = clean_content(item.content or item.description)
        return ProcessedContent(
            title=title,
            slug=slug,
            content=content[:processing.max_content_length],
            excerpt=generate_excerpt(item.description or item.content, processing.excerpt_length),
            source_url=item.link or None,
            source_name=source_name,
            published_at=item.pub_date,
            category_id=category_id,
        )

    def _parse_record_date(self, value: Any, row_index: Optional[int]) -> datetime:
        """Parse an uploaded date; blank or unparseable values fall back to now."""
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, date):
            parsed = datetime(value.year, value.month, value.day)
        else:
            text = _as_text(value)
            if not text:
                return datetime.now(timezone.utc)
            try:
                parsed = parse_date(text)
            except (ValueError, OverflowError) as e:
                self.logger.warning(
                    f"Row {row_index}: unparseable date {text!r}, using current time",
                    extra={"row_index": row_index, "error": str(e)},
                )
                return datetime.now(timezone.utc)

        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
