"""RSS 2.0 serialization of normalized items."""

import re
from datetime import UTC, datetime
from email.utils import format_datetime

from .models import ChannelMetadata, FeedDocument, NormalizedItem

ATOM_NAMESPACE = "http://www.w3.org/2005/Atom"

# Code points XML 1.0 does not allow anywhere in a document.
_INVALID_XML_CHARS = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff￾￿]")


def strip_invalid_xml_chars(text: str) -> str:
    return _INVALID_XML_CHARS.sub("", text)


def escape_xml(text, quote: bool = False) -> str:
    """Escape text for an XML element body (or attribute when ``quote``)."""
    if text is None:
        return ""
    text = strip_invalid_xml_chars(str(text))
    text = text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
    if quote:
        text = text.replace('"', "&quot;")
    return text


def cdata(text: str) -> str:
    """Wrap text in CDATA, splitting any ']]>' so the section cannot end early."""
    text = strip_invalid_xml_chars(text or "")
    return "<![CDATA[" + text.replace("]]>", "]]]]><![CDATA[>") + "]]>"


def rfc822(value: datetime) -> str:
    """RFC 822 date as used by RSS pubDate/lastBuildDate."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return format_datetime(value.astimezone(UTC), usegmt=True)


class FeedRenderer:
    """
    Serializes channel metadata and items into an RSS 2.0 document.

    Output is a pure function of the input and ``now``; items are emitted in
    the order given, without sorting or filtering.
    """

    def render(
        self, channel: ChannelMetadata, items: list[NormalizedItem], now: datetime
    ) -> str:
        """Render a complete RSS document."""
        build_date = rfc822(now)

        namespaces = {"atom": ATOM_NAMESPACE, **channel.namespaces}
        ns_attrs = "".join(
            f' xmlns:{prefix}="{escape_xml(uri, quote=True)}"'
            for prefix, uri in namespaces.items()
        )

        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            f'<rss version="2.0"{ns_attrs}>',
            "  <channel>",
            f"    <title>{escape_xml(channel.title)}</title>",
            f"    <description>{escape_xml(channel.description)}</description>",
            f"    <link>{escape_xml(channel.link)}</link>",
            f'    <atom:link href="{escape_xml(channel.self_link, quote=True)}" '
            'rel="self" type="application/rss+xml"/>',
            f"    <language>{escape_xml(channel.language)}</language>",
        ]
        lines.extend(
            f"    <category>{escape_xml(category)}</category>"
            for category in channel.categories
        )
        if channel.copyright:
            lines.append(f"    <copyright>{escape_xml(channel.copyright)}</copyright>")
        if channel.managing_editor:
            editor = escape_xml(channel.managing_editor)
            lines.append(f"    <managingEditor>{editor}</managingEditor>")
            lines.append(f"    <webMaster>{editor}</webMaster>")
        lines.extend(
            [
                f"    <lastBuildDate>{build_date}</lastBuildDate>",
                f"    <pubDate>{build_date}</pubDate>",
                f"    <ttl>{int(channel.ttl)}</ttl>",
                f"    <generator>{escape_xml(channel.generator)}</generator>",
            ]
        )
        if channel.image_url:
            lines.extend(
                [
                    "    <image>",
                    f"      <url>{escape_xml(channel.image_url)}</url>",
                    f"      <title>{escape_xml(channel.image_title or channel.title)}</title>",
                    f"      <link>{escape_xml(channel.link)}</link>",
                    f"      <width>{int(channel.image_size)}</width>",
                    f"      <height>{int(channel.image_size)}</height>",
                    "    </image>",
                ]
            )

        for item in items:
            lines.extend(self.render_item(item))

        lines.extend(["  </channel>", "</rss>"])
        return "\n".join(lines) + "\n"

    def render_document(self, document: FeedDocument, now: datetime) -> str:
        return self.render(document.channel, document.items, now)

    def render_item(self, item: NormalizedItem) -> list[str]:
        """Render one <item> element as a list of lines."""
        lines = [
            "    <item>",
            f"      <title>{escape_xml(item.title)}</title>",
            f"      <description>{cdata(item.description)}</description>",
            f"      <link>{escape_xml(item.link)}</link>",
            f"      <pubDate>{rfc822(item.published)}</pubDate>",
            f'      <guid isPermaLink="false">{escape_xml(item.id)}</guid>',
        ]
        lines.extend(
            f"      <category>{escape_xml(category)}</category>"
            for category in item.categories
            if category
        )
        if item.author:
            lines.append(f"      <author>{escape_xml(item.author)}</author>")
        if item.enclosure_url:
            lines.append(
                f'      <enclosure url="{escape_xml(item.enclosure_url, quote=True)}" '
                f'type="{escape_xml(item.enclosure_type, quote=True)}" length="0"/>'
            )
        lines.append("    </item>")
        return lines
