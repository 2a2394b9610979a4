"""Data models for Feed Relay."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class CacheEntry:
    """A raw upstream body stored under a cache key."""

    key: str
    body: str
    written_at: float  # epoch seconds (file mtime)
    age_ms: int


@dataclass
class FeedEntry:
    """A single entry parsed out of an upstream RSS/Atom document."""

    title: str
    link: str
    published: datetime
    content: str  # plain text, HTML removed
    raw_content: str = ""  # HTML as delivered upstream
    guid: str | None = None
    author: str | None = None
    image_url: str | None = None


@dataclass
class NormalizedItem:
    """Source-agnostic record produced from an upstream payload."""

    id: str
    title: str
    link: str
    published: datetime
    categories: list[str] = field(default_factory=list)
    payload: dict[str, Any] = field(default_factory=dict)
    description: str = ""  # HTML, filled in by the source's item template
    author: str | None = None
    enclosure_url: str | None = None
    enclosure_type: str = "image/jpeg"


@dataclass
class ChannelMetadata:
    """Channel-level fields of a rendered RSS document."""

    title: str
    description: str
    link: str
    self_link: str
    ttl: int  # minutes
    categories: list[str] = field(default_factory=list)
    copyright: str = ""
    managing_editor: str = ""
    generator: str = "Feed Relay"
    image_url: str | None = None
    image_title: str | None = None
    image_size: int = 64
    language: str = "en-us"
    namespaces: dict[str, str] = field(default_factory=dict)


@dataclass
class FeedDocument:
    """Channel metadata plus the items to render, in output order."""

    channel: ChannelMetadata
    items: list[NormalizedItem]
