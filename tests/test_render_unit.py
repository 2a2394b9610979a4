"""Unit tests for RSS rendering."""

import xml.etree.ElementTree as ET
from datetime import UTC, datetime

from feed_relay.models import ChannelMetadata, NormalizedItem
from feed_relay.render import FeedRenderer, cdata, escape_xml, rfc822

NOW = datetime(2026, 10, 18, 12, 30, tzinfo=UTC)
ATOM = "{http://www.w3.org/2005/Atom}"


def sample_channel(**overrides) -> ChannelMetadata:
    values = {
        "title": "🚨 Emergency Alerts - 48103",
        "description": "Alerts",
        "link": "https://feeds.example.com/api/emergency-alerts?location=48103",
        "self_link": "https://feeds.example.com/api/emergency-alerts?location=48103",
        "ttl": 15,
        "categories": ["Emergency", "Weather"],
    }
    values.update(overrides)
    return ChannelMetadata(**values)


class TestRenderHelpersUnit:
    """Unit tests for the escaping helpers."""

    def test_escape_xml(self):
        assert escape_xml("a & b < c > d") == "a &amp; b &lt; c &gt; d"
        assert escape_xml('say "hi"', quote=True) == "say &quot;hi&quot;"
        assert escape_xml(None) == ""

    def test_escape_xml_strips_control_characters(self):
        assert escape_xml("bell\x07 tab\t") == "bell tab\t"

    def test_cdata_splits_terminator(self):
        assert cdata("a]]>b") == "<![CDATA[a]]]]><![CDATA[>b]]>"

    def test_rfc822_uses_gmt(self):
        assert rfc822(NOW) == "Sun, 18 Oct 2026 12:30:00 GMT"

    def test_rfc822_treats_naive_as_utc(self):
        assert rfc822(datetime(2026, 10, 18, 12, 30)) == "Sun, 18 Oct 2026 12:30:00 GMT"


class TestFeedRendererUnit:
    """Unit tests for FeedRenderer."""

    def test_channel_fields(self):
        channel = sample_channel(
            copyright="Alert data from National Weather Service",
            managing_editor="alerts@localhost",
            image_url="https://example.com/logo.png",
            namespaces={"cap": "urn:oasis:names:tc:emergency:cap:1.2"},
        )
        document = FeedRenderer().render(channel, [], NOW)

        assert document.startswith('<?xml version="1.0" encoding="UTF-8"?>')
        assert 'xmlns:cap="urn:oasis:names:tc:emergency:cap:1.2"' in document

        root = ET.fromstring(document.encode("utf-8"))
        assert root.get("version") == "2.0"
        node = root.find("channel")
        assert node.findtext("title") == "🚨 Emergency Alerts - 48103"
        assert node.findtext("ttl") == "15"
        assert node.findtext("lastBuildDate") == "Sun, 18 Oct 2026 12:30:00 GMT"
        assert node.findtext("managingEditor") == "alerts@localhost"
        assert [c.text for c in node.findall("category")] == ["Emergency", "Weather"]
        assert node.find(f"{ATOM}link").get("rel") == "self"
        assert node.find("image/url").text == "https://example.com/logo.png"
        assert node.findall("item") == []

    def test_optional_channel_fields_omitted(self):
        document = FeedRenderer().render(sample_channel(), [], NOW)
        node = ET.fromstring(document.encode("utf-8")).find("channel")

        assert node.find("copyright") is None
        assert node.find("managingEditor") is None
        assert node.find("image") is None

    def test_item_fields(self):
        item = NormalizedItem(
            id="reddit-annarbor-abc",
            title="Fish & Chips <best>",
            link="https://reddit.com/r/annarbor/abc?a=1&b=2",
            published=datetime(2026, 10, 17, 8, 0, tzinfo=UTC),
            categories=["Reddit", "", "r/annarbor"],
            description="<p>Hello</p>",
            author="u/someone",
            enclosure_url="https://i.redd.it/x.jpg?a=1&b=2",
        )
        document = FeedRenderer().render(sample_channel(), [item], NOW)
        node = ET.fromstring(document.encode("utf-8")).find("channel/item")

        assert node.findtext("title") == "Fish & Chips <best>"
        assert node.findtext("description") == "<p>Hello</p>"
        assert node.findtext("link") == "https://reddit.com/r/annarbor/abc?a=1&b=2"
        assert node.findtext("pubDate") == "Sat, 17 Oct 2026 08:00:00 GMT"
        assert node.find("guid").get("isPermaLink") == "false"
        assert node.findtext("guid") == "reddit-annarbor-abc"
        assert [c.text for c in node.findall("category")] == ["Reddit", "r/annarbor"]
        assert node.findtext("author") == "u/someone"
        enclosure = node.find("enclosure")
        assert enclosure.get("url") == "https://i.redd.it/x.jpg?a=1&b=2"
        assert enclosure.get("type") == "image/jpeg"

    def test_description_with_cdata_terminator(self):
        item = NormalizedItem(
            id="1",
            title="t",
            link="https://example.com",
            published=NOW,
            description="before ]]> after",
        )
        document = FeedRenderer().render(sample_channel(), [item], NOW)
        node = ET.fromstring(document.encode("utf-8")).find("channel/item")

        assert node.findtext("description") == "before ]]> after"
