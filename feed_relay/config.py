"""Configuration management for Feed Relay."""

import json
import os
from dataclasses import dataclass
from pathlib import Path


@dataclass
class CachePolicy:
    """Freshness threshold applied by a handler to its cached upstream bodies."""

    freshness_seconds: int

    def is_fresh(self, age_ms: int) -> bool:
        """Return True while an entry of the given age may be reused directly."""
        return age_ms < self.freshness_seconds * 1000


@dataclass
class ExternalFeedConfig:
    """A static third-party RSS/Atom feed republished through our renderer."""

    name: str
    url: str
    title: str = ""
    link: str = ""  # homepage of the publication
    enabled: bool = True
    timeout: int = 30


@dataclass
class MetricsConfig:
    """Configuration for CloudWatch request metrics."""

    enabled: bool = False
    namespace: str = "Feed-Relay"
    region: str = "us-east-1"


@dataclass
class SourceTimeouts:
    """Upstream timeouts in seconds."""

    scrape: int = 15
    api: int = 20
    feed: int = 30


TIMEOUTS = SourceTimeouts()

CLASSIFIEDS_CACHE = CachePolicy(freshness_seconds=3 * 60 * 60)
SOCIAL_CACHE = CachePolicy(freshness_seconds=30 * 60)


class Config:
    """Main configuration manager."""

    FEEDS_FILE = "feeds.json"

    DEFAULT_EXTERNAL_FEEDS = [
        ExternalFeedConfig(
            name="mlive",
            title="MLive Ann Arbor",
            link="https://www.mlive.com/topic/local-aa/index.html",
            url=(
                "https://rss-bridge.org/bridge01/?action=display&bridge=CssSelectorBridge"
                "&home_page=https%3A%2F%2Fwww.mlive.com%2Ftopic%2Flocal-aa%2Findex.html"
                "&url_selector=%23river+%3E+li+%3E+a&url_pattern="
                "&content_selector=%23river+%3E+li+%3E+a+%3E+div.river-item__content+%3E+p"
                "&content_cleanup=&title_cleanup=&limit=25&format=Atom"
            ),
        ),
        ExternalFeedConfig(
            name="michigandaily",
            title="The Michigan Daily",
            link="https://www.michigandaily.com/",
            url="https://www.michigandaily.com/feed/",
        ),
        ExternalFeedConfig(
            name="damnarbor",
            title="Damn Arbor",
            link="https://www.damnarbor.com/",
            url="https://www.damnarbor.com/feeds/posts/default?alt=rss",
        ),
    ]

    def __init__(self):
        """Initialize configuration from environment variables."""
        self.cache_dir = Path(os.getenv("CACHE_DIR", ".cache"))
        self.base_url = os.getenv("PUBLIC_BASE_URL", "http://localhost:3000").rstrip("/")
        self.aws_region = os.getenv(
            "CURRENT_AWS_REGION", os.getenv("AWS_DEFAULT_REGION", "us-east-1")
        )
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        self.user_agent = os.getenv(
            "UPSTREAM_USER_AGENT", "RSS-Feed-Bot/1.0 (Personal RSS aggregator)"
        )
        self.metrics_enabled = os.getenv("METRICS_ENABLED", "false").lower() in (
            "1",
            "true",
            "yes",
        )
        self.metrics_namespace = os.getenv("METRICS_NAMESPACE", "Feed-Relay")

    def endpoint_url(self, path: str) -> str:
        """Absolute public URL of one of our own endpoints."""
        return f"{self.base_url}/api/{path.lstrip('/')}"

    def get_external_feeds(self) -> list[ExternalFeedConfig]:
        """Get enabled external feeds from feeds.json, or the built-in defaults."""
        feeds_file = Path(self.FEEDS_FILE)
        if not feeds_file.exists():
            feeds_file = Path("/var/task") / self.FEEDS_FILE

        if not feeds_file.exists():
            return list(self.DEFAULT_EXTERNAL_FEEDS)

        try:
            with open(feeds_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in feeds file: {e}") from e
        except OSError as e:
            raise ValueError(f"Cannot read feeds file {feeds_file}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("feeds", []), list):
            raise ValueError("feeds.json must be an object with a 'feeds' list")

        feeds = []
        for feed in data.get("feeds", []):
            if not isinstance(feed, dict):
                raise ValueError(f"Feed entry must be an object: {feed!r}")
            if not feed.get("enabled", True):
                continue
            if "name" not in feed or "url" not in feed:
                raise ValueError(f"Feed entry needs 'name' and 'url': {feed}")
            try:
                timeout = int(feed.get("timeout", TIMEOUTS.feed))
            except (TypeError, ValueError) as e:
                raise ValueError(f"Feed {feed['name']} has an invalid timeout") from e
            feeds.append(
                ExternalFeedConfig(
                    name=feed["name"],
                    url=feed["url"],
                    title=feed.get("title", feed["name"]),
                    link=feed.get("link", ""),
                    timeout=timeout,
                )
            )

        if not feeds:
            raise ValueError("No enabled feeds found in feeds.json")

        return feeds

    def get_metrics_config(self) -> MetricsConfig:
        """Get CloudWatch metrics configuration."""
        return MetricsConfig(
            enabled=self.metrics_enabled,
            namespace=self.metrics_namespace,
            region=self.aws_region,
        )
