"""Craigslist Ann Arbor for-sale listings, scraped through the OpenRSS mirror."""

import re
from datetime import datetime
from typing import Any

from .. import formatting as fmt
from ..config import CLASSIFIEDS_CACHE, TIMEOUTS, Config
from ..errors import UpstreamMalformed
from ..models import ChannelMetadata, FeedEntry, NormalizedItem
from ..pipeline import FetchContext, SourceDescriptor
from ..rss import FeedParser
from ..upstream import UpstreamRequest
from .common import parse_limit

UPSTREAM_URL = "https://openrss.org/annarbor.craigslist.org/search/sss?sort=date"
SITE_URL = "https://annarbor.craigslist.org/search/sss?sort=date"
DEFAULT_LOCATION = "Ann Arbor"
DESCRIPTION_LIMIT = 300

PRICE_PATTERN = re.compile(r"\$[\d,]+")
PRICE_SUFFIX_PATTERN = re.compile(r"\s*-\s*\$[\d,]+")
LOCATION_PATTERN = re.compile(r"\(([^)]+)\)$")
LOCATION_SUFFIX_PATTERN = re.compile(r"\s*\([^)]+\)$")
CATEGORY_PATTERN = re.compile(r"craigslist\.org/([^/]+)/")
POSTING_ID_PATTERN = re.compile(r"/(\d+)\.html")

# Craigslist section codes; owner ("o") and dealer ("d") variants share a name.
CATEGORY_NAMES = {
    "for": "furniture",
    "fuo": "furniture",
    "fud": "furniture",
    "ele": "electronics",
    "elo": "electronics",
    "eld": "electronics",
    "spo": "sporting",
    "mus": "musical",
    "app": "appliances",
    "bks": "books",
    "cto": "auto",
    "ctd": "auto",
    "clo": "clothing",
    "tls": "tools",
    "grd": "garden",
    "toy": "toys",
    "jwl": "jewelry",
    "art": "art",
    "hea": "health",
    "bty": "beauty",
    "zip": "free",
    "atq": "antiques",
    "sss": "general",
}

CATEGORY_EMOJI = {
    "furniture": "🪑",
    "electronics": "📱",
    "sporting": "⚽",
    "musical": "🎸",
    "appliances": "🏠",
    "books": "📚",
    "auto": "🚗",
    "clothing": "👕",
    "tools": "🔧",
    "garden": "🌱",
    "toys": "🧸",
    "jewelry": "💎",
    "art": "🎨",
    "health": "💊",
    "beauty": "💄",
}
DEFAULT_CATEGORY_EMOJI = "🛍️"


def parse_params(query) -> dict[str, Any]:
    return {"limit": parse_limit(query)}


def cache_params(params: dict[str, Any]) -> dict[str, Any]:
    # The full upstream page is cached; limit is applied afterwards.
    return {}


def fetch(context: FetchContext, params: dict[str, Any]) -> str:
    return context.client.fetch(
        UpstreamRequest(
            url=UPSTREAM_URL,
            timeout=TIMEOUTS.scrape,
            headers={"Accept": "application/rss+xml, application/xml, text/xml"},
            expect="feed",
        )
    )


def decode(body: str) -> list[FeedEntry]:
    entries = FeedParser().parse(body, source="craigslist")
    if not entries:
        raise UpstreamMalformed("No items found in RSS feed")
    return entries


def category_for(link: str) -> str:
    match = CATEGORY_PATTERN.search(link or "")
    if not match:
        return "for-sale"
    code = match.group(1)
    return CATEGORY_NAMES.get(code, code)


def price_emoji(price: str) -> str:
    digits = re.sub(r"[^0-9]", "", price or "")
    if not digits:
        return "💰"
    amount = int(digits)
    if amount >= 1000:
        return "💎"
    if amount >= 500:
        return "💰"
    if amount >= 100:
        return "💵"
    if amount >= 50:
        return "💴"
    return "💳"


def parse_listing(entry: FeedEntry) -> dict[str, Any]:
    """Split a listing title into its name, price and location."""
    raw_title = entry.title
    price_match = PRICE_PATTERN.search(raw_title)
    location_match = LOCATION_PATTERN.search(raw_title)

    title = LOCATION_SUFFIX_PATTERN.sub("", PRICE_SUFFIX_PATTERN.sub("", raw_title, count=1)).strip()

    id_match = POSTING_ID_PATTERN.search(entry.link)
    if id_match:
        posting_id = id_match.group(1)
    else:
        posting_id = re.sub(r"[^a-zA-Z0-9]", "", entry.guid or entry.link)

    return {
        "id": posting_id,
        "title": title or raw_title,
        "price": price_match.group(0) if price_match else "",
        "location": location_match.group(1) if location_match else DEFAULT_LOCATION,
        "category": category_for(entry.link),
        "url": entry.link,
        "description": entry.content,
    }


def describe(listing: dict[str, Any], posted: datetime) -> str:
    category_emoji = CATEGORY_EMOJI.get(listing["category"], DEFAULT_CATEGORY_EMOJI)
    money_emoji = price_emoji(listing["price"])

    labels = []
    if listing["price"]:
        labels.append(fmt.badge(f"{money_emoji} {listing['price']}", "#27ae60"))
    labels.append(fmt.badge(f"📍 {listing['location']}", "#3498db"))
    labels.append(fmt.badge(f"{category_emoji} {listing['category']}", "#9b59b6"))

    parts = [
        f'<h2 style="margin: 0 0 10px 0; color: #2c3e50;">{fmt.escape_html(listing["title"])}</h2>',
        fmt.badges(labels),
    ]
    if listing["description"]:
        text = fmt.truncate(listing["description"], DESCRIPTION_LIMIT)
        parts.append(
            fmt.panel("📝 Description", f"<p>{fmt.escape_html(text)}</p>", accent="#3498db")
        )

    stats = []
    if listing["price"]:
        stats.append((f"{money_emoji} Price", listing["price"], "#27ae60"))
    stats.append(("📍 Location", listing["location"], "#3498db"))
    stats.append((f"{category_emoji} Category", listing["category"], "#9b59b6"))
    parts.append(fmt.stat_grid(stats))

    parts.append(fmt.button(listing["url"], "🔗 View on Craigslist", "#e74c3c"))
    parts.append(
        fmt.footer(
            [
                ("📅 Posted", fmt.format_datetime(posted)),
                ("🔗 Link", listing["url"]),
                ("⚠️ Safety", "Meet in public places, inspect items before purchase, be cautious of scams"),
            ]
        )
    )
    return fmt.container("".join(parts))


def normalize(entries: list[FeedEntry], params: dict[str, Any], now: datetime) -> list[NormalizedItem]:
    """Listings in upstream order, cut to the requested limit."""
    items = []
    for entry in entries[: params["limit"]]:
        listing = parse_listing(entry)
        category_emoji = CATEGORY_EMOJI.get(listing["category"], DEFAULT_CATEGORY_EMOJI)
        price = f" - {listing['price']}" if listing["price"] else ""
        items.append(
            NormalizedItem(
                id=f"craigslist-{listing['id']}",
                title=f"{category_emoji} {listing['title']}{price} (📍 {listing['location']})",
                link=listing["url"],
                published=entry.published,
                categories=["Craigslist", listing["category"], listing["location"]],
                payload=listing,
                description=describe(listing, entry.published),
            )
        )
    return items


def channel(params: dict[str, Any], config: Config) -> ChannelMetadata:
    return ChannelMetadata(
        title="🏪 Craigslist Ann Arbor - For Sale",
        description="Latest items for sale on Craigslist Ann Arbor, sorted by date",
        link=SITE_URL,
        self_link=config.endpoint_url("craigslist"),
        ttl=60,
        categories=["Craigslist", "Ann Arbor", "For Sale"],
        copyright="Content from Craigslist users",
        managing_editor="craigslist-rss@localhost",
        image_url="https://www.craigslist.org/favicon.ico",
        image_title="Craigslist RSS Feed",
        image_size=32,
    )


SOURCE = SourceDescriptor(
    name="craigslist",
    parse_params=parse_params,
    fetch=fetch,
    decode=decode,
    normalize=normalize,
    channel=channel,
    cache_policy=CLASSIFIEDS_CACHE,
    cache_params=cache_params,
    max_age=3600,
)
