"""
Content Cleaner
===============

Text helpers shared by every ingestion path:

- ``generate_slug``: URL slug from a title
- ``clean_content``: plain text from an HTML fragment
- ``generate_excerpt``: bounded plain-text excerpt with an ellipsis
"""

import re

from bs4 import BeautifulSoup

# Elements removed together with everything inside them
DANGEROUS_ELEMENTS = [
    "script",
    "style",
    "iframe",
    "embed",
    "object",
    "applet",
    "form",
    "noscript",
    "template",
    "head",
]

SLUG_INVALID_CHARS_PATTERN = re.compile(r"[^a-z0-9\s-]")
WHITESPACE_PATTERN = re.compile(r"\s+")
REPEATED_HYPHENS_PATTERN = re.compile(r"-+")
TAG_PATTERN = re.compile(r"<[^>]*>")
ENTITY_PATTERN = re.compile(r"&[^;\s]+;")

ELLIPSIS = "..."
DEFAULT_SLUG_LENGTH = 100
DEFAULT_EXCERPT_LENGTH = 200


def generate_slug(title: str, max_length: int = DEFAULT_SLUG_LENGTH) -> str:
    """Build a URL slug from a title.

    Lowercases, drops everything outside ``[a-z0-9\\s-]``, turns whitespace
    runs into hyphens, collapses repeated hyphens and truncates. The result
    is a pure function of the title and feeding a slug back in returns it
    unchanged.

    >>> generate_slug("Hello, World! 2024")
    'hello-world-2024'
    """
    slug = (title or "").lower()
    slug = SLUG_INVALID_CHARS_PATTERN.sub("", slug)
    slug = WHITESPACE_PATTERN.sub("-", slug.strip())
    slug = REPEATED_HYPHENS_PATTERN.sub("-", slug)
    return slug[:max_length].strip("-")


def clean_content(html_content: str) -> str:
    """Reduce an HTML fragment to collapsed plain text.

    Script/style-like elements are removed with their contents, remaining
    tags are stripped, HTML entities become spaces and whitespace runs
    collapse to one space.
    """
    if not html_content or not html_content.strip():
        return ""

    if "<" in html_content:
        soup = BeautifulSoup(html_content, "html.parser")
        for element in soup(DANGEROUS_ELEMENTS):
            element.decompose()
        html_content = str(soup)

    text = TAG_PATTERN.sub("", html_content)
    text = ENTITY_PATTERN.sub(" ", text)
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def generate_excerpt(text: str, max_length: int = DEFAULT_EXCERPT_LENGTH) -> str:
    """Cleaned excerpt, truncated to ``max_length`` with ``...`` appended.

    The result is never longer than ``max_length + 3``.

    >>> generate_excerpt("<p>Hello <b>World</b></p>", 5)
    'Hello...'
    """
    cleaned = clean_content(text)
    if len(cleaned) <= max_length:
        return cleaned
    return cleaned[:max_length].rstrip() + ELLIPSIS
