"""
RSS Parser
==========

Turns a raw RSS 2.0 or Atom document into a :class:`ParsedFeed` of
:class:`FeedItem` records using feedparser.

Parsing is strict: a document that is not well-formed XML, or whose root is
neither ``<rss>`` nor an Atom ``<feed>``, raises :class:`FeedParseError` and
yields no items at all.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

import feedparser

from ..utils.logging import get_logger_for_component
from ..utils.exceptions import FeedParseError, ErrorCode

# Bozo exceptions that do not indicate a broken document
BENIGN_BOZO_EXCEPTIONS = (
    feedparser.CharacterEncodingOverride,
    feedparser.NonXMLContentType,
)

# RDF-based formats share the "rss" prefix in feedparser's version names
RDF_VERSIONS = {"rss090", "rss10"}

TEXT_WRAPPER_KEYS = ("value", "#text", "__cdata", "_")


@dataclass
class FeedItem:
    """One normalized feed entry. Transient; never persisted as-is."""

    title: str
    description: str
    link: str
    pub_date: datetime
    author: str = ""
    category: str = ""
    guid: str = ""
    content: str = ""

    def to_payload(self) -> Dict[str, Any]:
        """JSON-safe dict for storage inside a queue entry."""
        payload = asdict(self)
        payload["pub_date"] = self.pub_date.isoformat()
        return payload

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "FeedItem":
        pub_date = data.get("pub_date")
        if isinstance(pub_date, str) and pub_date:
            pub_date = datetime.fromisoformat(pub_date)
        if not isinstance(pub_date, datetime):
            pub_date = datetime.now(timezone.utc)
        return cls(
            title=data.get("title") or "",
            description=data.get("description") or "",
            link=data.get("link") or "",
            pub_date=pub_date,
            author=data.get("author") or "",
            category=data.get("category") or "",
            guid=data.get("guid") or "",
            content=data.get("content") or "",
        )


@dataclass
class ParsedFeed:
    """Feed-level metadata plus its items."""

    title: str
    description: str
    link: str
    items: List[FeedItem] = field(default_factory=list)


def extract_text(value: Any) -> str:
    """Pull text out of a field that may be wrapped.

    Tries, in order: a plain string, a ``value``/``#text`` wrapper, a
    CDATA-style ``__cdata``/``_`` wrapper, and the first element of a list.
    Anything else yields ``""``.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, dict):
        for key in TEXT_WRAPPER_KEYS:
            if key in value:
                return extract_text(value[key])
        return ""
    if isinstance(value, (list, tuple)):
        return extract_text(value[0]) if value else ""
    return ""


def is_supported_version(version: str) -> bool:
    """True for RSS 0.9x/2.0 (``<rss>`` root) and Atom documents."""
    if not version:
        return False
    if version.startswith("atom"):
        return True
    return version.startswith("rss") and version not in RDF_VERSIONS


class RSSParser:
    """Parses RSS 2.0 and Atom documents into feed items."""

    DEFAULT_FEED_TITLE = "Unknown Feed"

    def __init__(self):
        self.logger = get_logger_for_component("rss_parser")

    def parse(self, document: Union[str, bytes], feed_url: Optional[str] = None) -> ParsedFeed:
        """Parse a feed document.

        Args:
            document: Raw XML, as fetched bytes or already decoded text
            feed_url: Source URL, used for error context only

        Returns:
            Parsed feed with its items

        Raises:
            FeedParseError: If the XML is malformed or not RSS/Atom
        """
        parsed = feedparser.parse(document)

        if parsed.get("bozo"):
            exc = parsed.get("bozo_exception")
            if not isinstance(exc, BENIGN_BOZO_EXCEPTIONS):
                raise FeedParseError(
                    f"Malformed feed XML: {exc}",
                    feed_url=feed_url,
                    error_code=ErrorCode.FEED_PARSE_ERROR,
                )
            self.logger.debug(f"Ignoring benign feed warning for {feed_url}: {exc}")

        version = parsed.get("version", "")
        if not is_supported_version(version):
            raise FeedParseError("Invalid RSS format", feed_url=feed_url)

        feed = parsed.get("feed", {})
        items = [self._extract_item(entry) for entry in parsed.get("entries", [])]

        self.logger.debug(f"Parsed {len(items)} items ({version}) from {feed_url or 'document'}")

        return ParsedFeed(
            title=extract_text(feed.get("title")) or self.DEFAULT_FEED_TITLE,
            description=extract_text(feed.get("subtitle") or feed.get("description")),
            link=extract_text(feed.get("link")),
            items=items,
        )

    def _extract_item(self, entry) -> FeedItem:
        content = extract_text(entry.get("content"))
        description = extract_text(entry.get("summary") or entry.get("description")) or content

        author = extract_text(entry.get("author"))
        if not author:
            author = extract_text((entry.get("author_detail") or {}).get("name"))

        tags = entry.get("tags") or []
        category = extract_text(tags[0].get("term")) if tags else ""

        guid = extract_text(entry.get("id"))

        return FeedItem(
            title=extract_text(entry.get("title")),
            description=description,
            link=extract_text(entry.get("link")) or guid,
            pub_date=self._extract_date(entry),
            author=author,
            category=category,
            guid=guid,
            content=content,
        )

    @staticmethod
    def _extract_date(entry) -> datetime:
        """Published date, else updated date, else now (UTC)."""
        for key in ("published_parsed", "updated_parsed"):
            parsed_time = entry.get(key)
            if parsed_time:
                return datetime(*parsed_time[:6], tzinfo=timezone.utc)
        return datetime.now(timezone.utc)
