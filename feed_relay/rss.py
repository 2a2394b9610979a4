"""Parsing of upstream RSS/Atom documents for Feed Relay."""

from datetime import UTC, datetime

import feedparser
from bs4 import BeautifulSoup
from dateutil import parser as date_parser

from .logging_config import create_execution_logger
from .models import FeedEntry


class FeedParser:
    """Turns a raw RSS/Atom body into normalized FeedEntry records."""

    def __init__(self, execution_id: str | None = None):
        """Initialize FeedParser.

        Args:
            execution_id: Execution ID for logging context
        """
        self.logger = create_execution_logger("feed_parser", execution_id)

    def parse(self, body: str, source: str = "") -> list[FeedEntry]:
        """Parse a feed body.

        Args:
            body: Raw RSS/Atom document
            source: Name used in log messages

        Returns:
            Entries in document order; entries that cannot be normalized are skipped
        """
        feed = feedparser.parse(body)

        if feed.bozo and hasattr(feed, "bozo_exception"):
            self.logger.warning(
                f"Feed parsing warning for {source}: {feed.bozo_exception}",
                source=source,
                bozo_exception=str(feed.bozo_exception),
            )

        entries = []
        for raw_entry in feed.entries:
            try:
                entries.append(self.normalize_entry(raw_entry))
            except Exception as e:
                self.logger.warning(
                    f"Failed to normalize entry from {source}: {e}",
                    source=source,
                    error=str(e),
                )
                continue

        self.logger.info(
            "Parsed upstream feed",
            source=source,
            items_count=len(entries),
            total_entries=len(feed.entries),
        )
        return entries

    def normalize_entry(self, raw_entry) -> FeedEntry:
        """Normalize a raw feedparser entry into a FeedEntry."""
        title = getattr(raw_entry, "title", None) or "No Title"
        link = getattr(raw_entry, "link", None) or ""

        published = self.parse_date(
            getattr(raw_entry, "published", None) or getattr(raw_entry, "updated", None)
        )

        raw_content = ""
        if getattr(raw_entry, "summary", None):
            raw_content = raw_entry.summary
        elif getattr(raw_entry, "description", None):
            raw_content = raw_entry.description
        elif getattr(raw_entry, "content", None):
            if isinstance(raw_entry.content, list) and raw_entry.content:
                raw_content = raw_entry.content[0].get("value", "")
            else:
                raw_content = str(raw_entry.content)

        guid = getattr(raw_entry, "id", None) or getattr(raw_entry, "guid", None) or None

        return FeedEntry(
            title=clean_html_content(title) or title,
            link=link,
            published=published,
            content=clean_html_content(raw_content),
            raw_content=raw_content,
            guid=guid,
            author=getattr(raw_entry, "author", None) or None,
            image_url=self._first_image(raw_entry, raw_content),
        )

    @staticmethod
    def parse_date(value: str | None) -> datetime:
        """Parse an RSS/Atom date, defaulting to now (UTC) when absent or invalid."""
        if not value:
            return datetime.now(UTC)
        try:
            published = date_parser.parse(value)
        except (ValueError, TypeError, OverflowError):
            return datetime.now(UTC)
        if published.tzinfo is None:
            published = published.replace(tzinfo=UTC)
        return published

    @staticmethod
    def _first_image(raw_entry, raw_content: str) -> str | None:
        for enclosure in getattr(raw_entry, "enclosures", None) or []:
            if str(enclosure.get("type", "")).startswith("image/") and enclosure.get("href"):
                return enclosure["href"]
        for media in getattr(raw_entry, "media_content", None) or []:
            if media.get("url"):
                return media["url"]
        if raw_content and "<img" in raw_content:
            img = BeautifulSoup(raw_content, "html.parser").find("img")
            if img is not None and img.get("src"):
                return img["src"]
        return None


def clean_html_content(content: str | None) -> str:
    """Remove HTML tags from content and normalize whitespace.

    Args:
        content: Raw content that may contain HTML

    Returns:
        Clean text content without HTML tags
    """
    if not content:
        return ""

    if "<" not in content and ">" not in content and "&" not in content:
        return " ".join(content.split())

    soup = BeautifulSoup(content, "html.parser")

    for element in soup(["script", "style"]):
        element.decompose()

    text = soup.get_text(separator=" ")
    return " ".join(text.split())
