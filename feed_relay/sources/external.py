"""Static third-party RSS/Atom feeds, republished through the feed renderer."""

import hashlib
from datetime import datetime
from typing import Any

from .. import formatting as fmt
from ..config import Config, ExternalFeedConfig
from ..models import ChannelMetadata, FeedEntry, NormalizedItem
from ..pipeline import FetchContext, SourceDescriptor
from ..rss import FeedParser
from ..upstream import UpstreamRequest

SUMMARY_LIMIT = 1000
ACCEPT = "application/rss+xml, application/atom+xml, application/xml, text/xml, */*"


def entry_id(feed_name: str, entry: FeedEntry) -> str:
    """Upstream guid or link; a content hash when the entry has neither."""
    if entry.guid or entry.link:
        return entry.guid or entry.link
    digest = hashlib.sha256(f"{feed_name}|{entry.title}".encode("utf-8")).hexdigest()[:16]
    return f"{feed_name}-{digest}"


def describe(entry: FeedEntry, feed_title: str) -> str:
    parts = [f'<h2 style="margin: 0 0 10px 0; color: #2c3e50;">{fmt.escape_html(entry.title)}</h2>']
    parts.append(fmt.image(entry.image_url, entry.title))
    if entry.content:
        parts.append(f"<p>{fmt.escape_html(fmt.truncate(entry.content, SUMMARY_LIMIT))}</p>")
    if entry.link:
        parts.append(fmt.button(entry.link, f"📰 Read on {feed_title}", "#2c5aa0"))
    footer = [("📰 Source", feed_title), ("📅 Published", fmt.format_datetime(entry.published))]
    if entry.author:
        footer.append(("✍️ Author", entry.author))
    parts.append(fmt.footer(footer))
    return fmt.container("".join(parts))


def build_source(feed: ExternalFeedConfig) -> SourceDescriptor:
    """Descriptor republishing one configured feed."""
    title = feed.title or feed.name

    def fetch(context: FetchContext, params: dict[str, Any]) -> str:
        return context.client.fetch(
            UpstreamRequest(url=feed.url, timeout=feed.timeout, headers={"Accept": ACCEPT}, expect="feed")
        )

    def decode(body: str) -> list[FeedEntry]:
        return FeedParser().parse(body, source=feed.name)

    def normalize(entries: list[FeedEntry], params: dict[str, Any], now: datetime) -> list[NormalizedItem]:
        return [
            NormalizedItem(
                id=entry_id(feed.name, entry),
                title=entry.title,
                link=entry.link,
                published=entry.published,
                categories=[title],
                payload={"source": feed.name},
                description=describe(entry, title),
                author=entry.author,
                enclosure_url=entry.image_url,
            )
            for entry in entries
        ]

    def channel(params: dict[str, Any], config: Config) -> ChannelMetadata:
        self_link = config.endpoint_url(feed.name)
        return ChannelMetadata(
            title=title,
            description=f"Latest stories from {title}",
            link=feed.link or self_link,
            self_link=self_link,
            ttl=30,
            categories=["News", "Ann Arbor"],
            copyright=f"Content from {title}",
        )

    return SourceDescriptor(
        name=feed.name,
        fetch=fetch,
        decode=decode,
        normalize=normalize,
        channel=channel,
        max_age=1800,
        cors=True,
    )
