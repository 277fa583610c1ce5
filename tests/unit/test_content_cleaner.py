"""
Tests for Content Cleaner
=========================

Slug, plain-text and excerpt helpers shared by both ingestion paths.
"""

import pytest

from autonews.ingestion.content_cleaner import (
    clean_content,
    generate_excerpt,
    generate_slug,
)


class TestGenerateSlug:
    """Test slug generation."""

    def test_basic_title(self):
        assert generate_slug("Hello, World! 2024") == "hello-world-2024"

    def test_idempotent(self):
        slug = generate_slug("Hello, World! 2024")
        assert generate_slug(slug) == slug

    @pytest.mark.parametrize("title, expected", [
        ("  Leading and trailing  ", "leading-and-trailing"),
        ("Multiple   spaces\tand\ttabs", "multiple-spaces-and-tabs"),
        ("Already-hyphen--ated", "already-hyphen-ated"),
        ("Ünïcödé stripped", "ncd-stripped"),
        ("!!!", ""),
    ])
    def test_normalization(self, title, expected):
        assert generate_slug(title) == expected

    def test_truncation(self):
        slug = generate_slug("word " * 50, max_length=20)
        assert len(slug) <= 20
        assert not slug.endswith("-")

    def test_none_title(self):
        assert generate_slug(None) == ""


class TestCleanContent:
    """Test HTML to plain text conversion."""

    def test_strips_tags(self):
        assert clean_content("<p>Hello <b>World</b></p>") == "Hello World"

    def test_removes_script_and_style_contents(self):
        html = "<p>Keep</p><script>alert('x')</script><style>p {color: red}</style>"
        assert clean_content(html) == "Keep"

    def test_entities_become_spaces(self):
        assert clean_content("Fish&nbsp;chips") == "Fish chips"

    def test_collapses_whitespace(self):
        assert clean_content("  a \n\n b\t c  ") == "a b c"

    @pytest.mark.parametrize("value", ["", "   ", None])
    def test_empty_input(self, value):
        assert clean_content(value) == ""


class TestGenerateExcerpt:
    """Test excerpt generation."""

    def test_truncates_with_ellipsis(self):
        assert generate_excerpt("<p>Hello <b>World</b></p>", 5) == "Hello..."

    def test_short_text_unchanged(self):
        assert generate_excerpt("<p>Short</p>", 200) == "Short"

    def test_never_longer_than_limit_plus_ellipsis(self):
        text = "lorem ipsum dolor sit amet " * 40
        for max_length in (1, 10, 57, 200):
            assert len(generate_excerpt(text, max_length)) <= max_length + 3
