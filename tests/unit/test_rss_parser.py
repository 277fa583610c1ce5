"""
Tests for RSS Parser
====================

RSS 2.0 / Atom parsing, strict rejection of broken documents and text
extraction from wrapped values.
"""

from datetime import datetime, timezone

import pytest

from autonews.ingestion.rss_parser import (
    FeedItem,
    RSSParser,
    extract_text,
    is_supported_version,
)
from autonews.utils.exceptions import ErrorCode, FeedParseError


@pytest.fixture
def parser():
    return RSSParser()


class TestRSSParser:
    """Test feed document parsing."""

    def test_parse_rss(self, parser, sample_rss):
        feed = parser.parse(sample_rss, feed_url="https://example.com/feed.xml")

        assert feed.title == "Tech Wire"
        assert len(feed.items) == 2

        first = feed.items[0]
        assert first.title == "Quantum Chip Breaks Record"
        assert first.link == "https://example.com/quantum-chip"
        assert "quantum" in first.description
        assert first.category == "Technology"
        assert first.pub_date == datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc)

    def test_rss_and_atom_are_equivalent(self, parser, sample_rss, sample_atom):
        rss_items = parser.parse(sample_rss).items
        atom_items = parser.parse(sample_atom).items

        assert len(rss_items) == len(atom_items)
        for rss_item, atom_item in zip(rss_items, atom_items):
            assert rss_item.title == atom_item.title
            assert rss_item.link == atom_item.link
            assert rss_item.description == atom_item.description
            assert rss_item.pub_date == atom_item.pub_date
            assert rss_item.category == atom_item.category

    def test_atom_author(self, parser, sample_atom):
        feed = parser.parse(sample_atom)
        assert feed.items[0].author == "Jane Doe"

    def test_malformed_xml_rejected(self, parser):
        broken = "<rss version=\"2.0\"><channel><item><title>Broken</title></channel>"

        with pytest.raises(FeedParseError) as exc_info:
            parser.parse(broken)

        assert exc_info.value.error_code == ErrorCode.FEED_PARSE_ERROR

    def test_non_feed_root_rejected(self, parser):
        with pytest.raises(FeedParseError):
            parser.parse("<?xml version=\"1.0\"?><catalog><book>Title</book></catalog>")

    def test_missing_feed_title_defaults(self, parser):
        xml = (
            "<?xml version=\"1.0\"?><rss version=\"2.0\"><channel>"
            "<item><title>Only item</title><link>https://example.com/a</link></item>"
            "</channel></rss>"
        )
        feed = parser.parse(xml)
        assert feed.title == RSSParser.DEFAULT_FEED_TITLE
        assert len(feed.items) == 1

    def test_missing_date_falls_back_to_now(self, parser):
        xml = (
            "<?xml version=\"1.0\"?><rss version=\"2.0\"><channel><title>T</title>"
            "<item><title>Undated</title><link>https://example.com/u</link></item>"
            "</channel></rss>"
        )
        before = datetime.now(timezone.utc)
        item = parser.parse(xml).items[0]
        assert item.pub_date >= before.replace(microsecond=0)

    def test_guid_used_when_link_missing(self, parser):
        xml = (
            "<?xml version=\"1.0\"?><rss version=\"2.0\"><channel><title>T</title>"
            "<item><title>No link</title><guid>https://example.com/by-guid</guid></item>"
            "</channel></rss>"
        )
        item = parser.parse(xml).items[0]
        assert item.link == "https://example.com/by-guid"


class TestSupportedVersions:

    @pytest.mark.parametrize("version", ["rss20", "rss091u", "rss092", "atom10", "atom03"])
    def test_supported(self, version):
        assert is_supported_version(version)

    @pytest.mark.parametrize("version", ["", "rss090", "rss10", "cdf"])
    def test_unsupported(self, version):
        assert not is_supported_version(version)


class TestExtractText:
    """Test extraction from wrapped values."""

    @pytest.mark.parametrize("value, expected", [
        ("  plain  ", "plain"),
        ({"value": "wrapped"}, "wrapped"),
        ({"#text": "text node"}, "text node"),
        ({"__cdata": "cdata"}, "cdata"),
        ({"_": "underscore"}, "underscore"),
        (["first", "second"], "first"),
        ([{"value": "nested"}], "nested"),
        ([], ""),
        (None, ""),
        (42, ""),
        ({"other": "x"}, ""),
    ])
    def test_extract_text(self, value, expected):
        assert extract_text(value) == expected


class TestFeedItemPayload:

    def test_payload_round_trip_keeps_date(self):
        item = FeedItem(
            title="T",
            description="D",
            link="https://example.com/t",
            pub_date=datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc),
        )
        restored = FeedItem.from_payload(item.to_payload())
        assert restored == item

    def test_from_payload_defaults(self):
        item = FeedItem.from_payload({"title": "T"})
        assert item.link == ""
        assert item.pub_date.tzinfo is not None
