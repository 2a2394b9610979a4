"""Unit tests for the Craigslist classifieds source."""

import os
from datetime import UTC, datetime
from unittest.mock import patch

import pytest

from feed_relay.config import Config
from feed_relay.errors import UpstreamMalformed
from feed_relay.models import FeedEntry
from feed_relay.sources import classifieds

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)


def make_entry(title: str, link: str, content: str = "Solid oak, barely used") -> FeedEntry:
    return FeedEntry(title=title, link=link, published=NOW, content=content)


class TestClassifiedsUnit:
    """Unit tests for listing parsing and normalization."""

    def test_parse_listing(self):
        entry = make_entry(
            "Oak dining table - $250 (Ypsilanti)",
            "https://annarbor.craigslist.org/fuo/d/ypsilanti-oak-table/7712345678.html",
        )
        listing = classifieds.parse_listing(entry)

        assert listing["id"] == "7712345678"
        assert listing["title"] == "Oak dining table"
        assert listing["price"] == "$250"
        assert listing["location"] == "Ypsilanti"
        assert listing["category"] == "furniture"

    def test_listing_without_price_or_location(self):
        entry = make_entry(
            "Free couch", "https://annarbor.craigslist.org/zip/d/free-couch/7700000001.html"
        )
        listing = classifieds.parse_listing(entry)

        assert listing["title"] == "Free couch"
        assert listing["price"] == ""
        assert listing["location"] == "Ann Arbor"
        assert listing["category"] == "free"

    def test_unknown_category_code_is_kept(self):
        assert classifieds.category_for("https://annarbor.craigslist.org/xyz/d/a/1.html") == "xyz"
        assert classifieds.category_for("https://example.com/no-category") == "for-sale"

    def test_price_emoji(self):
        assert classifieds.price_emoji("$1,500") == "💎"
        assert classifieds.price_emoji("$750") == "💰"
        assert classifieds.price_emoji("$120") == "💵"
        assert classifieds.price_emoji("$60") == "💴"
        assert classifieds.price_emoji("$5") == "💳"
        assert classifieds.price_emoji("") == "💰"

    def test_normalize_applies_limit_in_order(self):
        entries = [
            make_entry(f"Item {i} - ${i}0 (Ann Arbor)", f"https://annarbor.craigslist.org/ele/d/x/{i}.html")
            for i in range(1, 6)
        ]
        items = classifieds.normalize(entries, {"limit": 3}, NOW)

        assert [item.id for item in items] == ["craigslist-1", "craigslist-2", "craigslist-3"]
        assert items[0].title == "📱 Item 1 - $10 (📍 Ann Arbor)"
        assert items[0].categories == ["Craigslist", "electronics", "Ann Arbor"]
        assert "View on Craigslist" in items[0].description

    def test_description_escapes_listing_text(self):
        entry = make_entry(
            "<script>x</script> - $5",
            "https://annarbor.craigslist.org/for/d/x/9.html",
            content="<b>bold</b>",
        )
        (item,) = classifieds.normalize([entry], {"limit": 25}, NOW)

        assert "<script>" not in item.description
        assert "&lt;b&gt;bold&lt;/b&gt;" in item.description

    def test_decode_rejects_empty_feed(self):
        with pytest.raises(UpstreamMalformed):
            classifieds.decode('<rss version="2.0"><channel><title>x</title></channel></rss>')

    def test_limit_is_not_part_of_cache_key(self):
        assert classifieds.cache_params({"limit": 5}) == {}

    def test_channel(self):
        with patch.dict(os.environ, {"PUBLIC_BASE_URL": "https://feeds.example.com"}, clear=True):
            meta = classifieds.channel({"limit": 25}, Config())

        assert meta.link == classifieds.SITE_URL
        assert meta.self_link == "https://feeds.example.com/api/craigslist"
        assert meta.ttl == 60
