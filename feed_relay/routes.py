"""Path to source descriptor table."""

from .config import Config
from .pipeline import SourceDescriptor
from .sources import alerts, classifieds, events, external, realestate, reddit, weather

BUILTIN_SOURCES = [
    classifieds.SOURCE,
    reddit.SOURCE,
    weather.DAILY_SOURCE,
    weather.WEEKLY_SOURCE,
    alerts.SOURCE,
    events.SOURCE,
    realestate.SOURCE,
]


def build_routes(config: Config) -> dict[str, SourceDescriptor]:
    """
    Map each endpoint path segment to its source descriptor.

    Raises:
        ValueError: An external feed name collides with another route
    """
    routes = {source.name: source for source in BUILTIN_SOURCES}
    for feed in config.get_external_feeds():
        if feed.name in routes:
            raise ValueError(f"Feed name '{feed.name}' collides with an existing endpoint")
        routes[feed.name] = external.build_source(feed)
    return routes


def normalize_path(path: str | None) -> str:
    """Strip slashes and an optional leading ``api/`` segment."""
    path = (path or "").strip("/")
    if path == "api":
        return ""
    if path.startswith("api/"):
        path = path[len("api/") :]
    return path.strip("/")
