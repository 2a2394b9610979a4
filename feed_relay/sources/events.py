"""Upcoming Ann Arbor area events from the Ticketmaster Discovery API."""

import random
from datetime import datetime, time, timedelta
from typing import Any

from dateutil import parser as date_parser

from .. import formatting as fmt
from ..config import TIMEOUTS, Config
from ..errors import UpstreamMalformed
from ..models import ChannelMetadata, NormalizedItem
from ..pipeline import CredentialRequirement, FetchContext, SourceDescriptor
from ..upstream import UpstreamRequest, decode_json
from .common import ANN_ARBOR, DEFAULT_AREA, parse_zip, with_query

API_URL = "https://app.ticketmaster.com/discovery/v2/events.json"
API_KEY_ENV = "TICKETMASTER_API_KEY"
SEARCH_RADIUS_MILES = 25
PAGE_SIZE = 200

MUSIC_GENRE_EMOJI = [
    (("rock", "metal"), "🎸"),
    (("pop", "dance"), "🎤"),
    (("country",), "🤠"),
    (("jazz", "blues"), "🎷"),
    (("classical",), "🎼"),
    (("hip hop", "rap"), "🎧"),
]
SPORTS_GENRE_EMOJI = [
    (("football",), "🏈"),
    (("basketball",), "🏀"),
    (("baseball",), "⚾"),
    (("hockey",), "🏒"),
    (("soccer",), "⚽"),
]

MOCK_EVENTS = [
    ("Ann Arbor Symphony Orchestra: Fall Classics", "Michigan Theater", "Arts & Theatre", "Classical", 19, 30),
    ("The Ark Presents: Folk Night", "The Ark", "Music", "Folk", 20, 0),
    ("Michigan Wolverines Hockey", "Yost Ice Arena", "Sports", "Hockey", 19, 0),
    ("Comedy Showcase", "Blind Pig", "Arts & Theatre", "Comedy", 21, 0),
    ("Indie Rock Night", "Blind Pig", "Music", "Rock", 21, 30),
]


def parse_params(query) -> dict[str, Any]:
    return {"location": parse_zip(query)}


def event_emoji(category: str, genre: str) -> str:
    category = (category or "").lower()
    genre = (genre or "").lower()
    if "music" in category or "music" in genre:
        return _match(genre, MUSIC_GENRE_EMOJI, "🎵")
    if "sports" in category:
        return _match(genre, SPORTS_GENRE_EMOJI, "🏟️")
    if "arts" in category or "theatre" in category:
        return "🎭"
    if "family" in category:
        return "👨‍👩‍👧‍👦"
    if "comedy" in category:
        return "😂"
    if "film" in category:
        return "🎬"
    return "🎪"


def _match(text: str, table, default: str) -> str:
    for keywords, emoji in table:
        if any(keyword in text for keyword in keywords):
            return emoji
    return default


def fetch(context: FetchContext, params: dict[str, Any]) -> str:
    api_key = context.credentials[API_KEY_ENV]
    lat, lon = ANN_ARBOR
    return context.client.fetch(
        UpstreamRequest(
            url=API_URL,
            timeout=TIMEOUTS.api,
            params={
                "apikey": api_key,
                "latlong": f"{lat},{lon}",
                "radius": str(SEARCH_RADIUS_MILES),
                "unit": "miles",
                "size": str(PAGE_SIZE),
                "sort": "date,asc",
            },
            expect="json",
            secrets=[api_key],
        )
    )


def process_event(event: dict[str, Any]) -> dict[str, Any]:
    """Pull the fields used by the feed out of a Discovery API event."""
    venue = ((event.get("_embedded") or {}).get("venues") or [{}])[0]
    classification = (event.get("classifications") or [{}])[0]
    images = event.get("images") or []
    image = next((img for img in images if img.get("ratio") == "16_9"), images[0] if images else {})
    price_range = (event.get("priceRanges") or [None])[0]
    start = (event.get("dates") or {}).get("start") or {}
    public_sale = (event.get("sales") or {}).get("public") or {}

    if price_range and price_range.get("min") is not None:
        price = f"${price_range['min']} - ${price_range.get('max', price_range['min'])}"
    else:
        price = "TBA"

    return {
        "id": str(event.get("id", "")),
        "name": event.get("name") or "Untitled event",
        "date": start.get("localDate") or "",
        "time": start.get("localTime") or "",
        "venue": venue.get("name") or "TBA",
        "city": (venue.get("city") or {}).get("name") or "",
        "state": (venue.get("state") or {}).get("stateCode") or "",
        "address": (venue.get("address") or {}).get("line1") or "",
        "url": event.get("url") or "",
        "image": image.get("url") or "",
        "category": (classification.get("segment") or {}).get("name") or "Event",
        "genre": (classification.get("genre") or {}).get("name") or "General",
        "price_range": price,
        "description": event.get("info") or event.get("pleaseNote") or "",
        "sale_start": public_sale.get("startDateTime") or "",
        "sale_end": public_sale.get("endDateTime") or "",
    }


def decode(body: str) -> list[dict[str, Any]]:
    data = decode_json(body)
    if not isinstance(data, dict):
        raise UpstreamMalformed("Ticketmaster response is not an object")
    events = (data.get("_embedded") or {}).get("events") or []
    return [process_event(event) for event in events]


def mock_events(params: dict[str, Any], now: datetime, rng: random.Random) -> list[dict[str, Any]]:
    """A week of typical local events starting tomorrow."""
    events = []
    for index, (name, venue, category, genre, hour, minute) in enumerate(MOCK_EVENTS):
        day = (now + timedelta(days=index + 1)).date()
        low = rng.randint(15, 40)
        events.append(
            {
                "id": f"mock-event-{index + 1:03d}",
                "name": name,
                "date": day.isoformat(),
                "time": time(hour, minute).isoformat(),
                "venue": venue,
                "city": "Ann Arbor",
                "state": "MI",
                "address": "",
                "url": "https://www.ticketmaster.com/discover/concerts",
                "image": "",
                "category": category,
                "genre": genre,
                "price_range": f"${low} - ${low + rng.randint(10, 60)}",
                "description": "",
                "sale_start": "",
                "sale_end": "",
            }
        )
    return events


def event_start(event: dict[str, Any], now: datetime) -> datetime | None:
    """Local start time of the event, tagged with the feed's timezone."""
    if not event["date"]:
        return None
    text = f"{event['date']} {event['time']}" if event["time"] else event["date"]
    try:
        return date_parser.parse(text).replace(tzinfo=now.tzinfo)
    except (ValueError, OverflowError):
        return None


def _parse_sale_time(value: str) -> datetime | None:
    try:
        return date_parser.isoparse(value)
    except (ValueError, TypeError):
        return None


def describe(event: dict[str, Any], start: datetime | None, location: str, now: datetime) -> str:
    emoji = event_emoji(event["category"], event["genre"])
    day = fmt.format_date(start) if start else "Date TBA"
    hour = start.strftime("%I:%M %p").lstrip("0") if start and event["time"] else "Time TBA"

    parts = [
        '<div style="background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); color: white; '
        'padding: 20px; border-radius: 10px; margin-bottom: 20px;">'
        f'<h2 style="margin: 0; color: white;">{emoji} {fmt.escape_html(event["name"])}</h2>'
        f'<p style="margin: 10px 0 0 0; font-size: 1.1em;"><strong>📅 {fmt.escape_html(day)}</strong>'
        f" at <strong>🕐 {fmt.escape_html(hour)}</strong></p></div>",
    ]
    if event["image"]:
        parts.append(
            '<div style="text-align: center; margin: 20px 0;">'
            + fmt.image(event["image"], event["name"])
            + "</div>"
        )

    place = ", ".join(part for part in (event["city"], event["state"]) if part)
    venue_lines = fmt.field_line("🏟️ Venue", event["venue"]) + fmt.field_line("🏙️ Location", place or "TBA")
    if event["address"]:
        venue_lines += fmt.field_line("📮 Address", event["address"])
    parts.append(fmt.panel("📍 Venue Information", venue_lines, "#f8f9fa", "#495057"))

    parts.append(
        fmt.panel(
            "🎫 Event Details",
            fmt.field_line("🎭 Category", event["category"])
            + fmt.field_line("🎪 Genre", event["genre"])
            + fmt.field_line("💰 Price Range", event["price_range"]),
            "#e3f2fd",
            "#1976d2",
        )
    )
    if event["description"]:
        parts.append(
            fmt.panel("ℹ️ Description", f"<p>{fmt.escape_html(event['description'])}</p>", "#fff3e0", "#f57c00")
        )

    sale_lines = ""
    sale_start = _parse_sale_time(event["sale_start"]) if event["sale_start"] else None
    sale_end = _parse_sale_time(event["sale_end"]) if event["sale_end"] else None
    if sale_start:
        sale_lines += fmt.field_line("🚀 Sales Start", fmt.format_datetime(sale_start))
    if sale_end:
        sale_lines += fmt.field_line("⏰ Sales End", fmt.format_datetime(sale_end))
    if sale_lines:
        parts.append(fmt.panel("🎟️ Ticket Sales", sale_lines, "#f3e5f5", "#7b1fa2"))

    if event["url"]:
        parts.append(fmt.button(event["url"], "🎫 Buy Tickets on Ticketmaster", "#ff6b35"))
    parts.append(
        fmt.footer(
            [
                ("📍 Location", f"{location} ({DEFAULT_AREA})"),
                ("🎫 Source", "Ticketmaster"),
                ("🆔 Event ID", event["id"]),
                ("🕒 Last Updated", fmt.format_datetime(now)),
            ]
        )
    )
    return fmt.container("".join(parts))


def no_events_item(location: str, now: datetime) -> NormalizedItem:
    body = (
        '<div style="background: #e8f5e8; border: 1px solid #c3e6cb; padding: 20px; '
        'border-radius: 10px; text-align: center;">'
        '<h2 style="color: #155724; margin-top: 0;">🎪 No Events Currently Listed</h2>'
        '<p style="color: #155724; margin-bottom: 0;">There are currently no upcoming events '
        "listed for the Ann Arbor area. Check back later for new events!</p></div>"
    )
    footer = fmt.footer(
        [
            ("📍 Location", f"{location} ({DEFAULT_AREA})"),
            ("🎫 Source", "Ticketmaster"),
            ("🕒 Last Checked", fmt.format_datetime(now)),
            ("🔄 Updates", "This feed updates regularly with new events"),
        ]
    )
    return NormalizedItem(
        id=f"no-events-{location}-{now.date().isoformat()}",
        title=f"🎪 No Upcoming Events Found - {location}",
        link="",
        published=now,
        categories=["Events", "Status"],
        payload={"no_events": True},
        description=fmt.container(body + footer),
        author="ticketmaster-events@localhost",
    )


def normalize(events: list[dict[str, Any]], params: dict[str, Any], now: datetime) -> list[NormalizedItem]:
    """Events in chronological order; undated events go last."""
    location = params["location"]
    if not events:
        return [no_events_item(location, now)]

    dated = [(event_start(event, now), event) for event in events]
    dated.sort(key=lambda pair: (pair[0] is None, pair[0] or now))

    items = []
    for start, event in dated:
        emoji = event_emoji(event["category"], event["genre"])
        day = fmt.format_date(start) if start else "Date TBA"
        items.append(
            NormalizedItem(
                id=f"ticketmaster-event-{location}-{event['id']}",
                title=f"{emoji} {event['name']} - {day} at {event['venue']}",
                link=event["url"],
                published=start or now,
                categories=["Events", event["category"], event["genre"]],
                payload=event,
                description=describe(event, start, location, now),
                author="ticketmaster-events@localhost",
                enclosure_url=event["image"] or None,
            )
        )
    return items


def channel(params: dict[str, Any], config: Config) -> ChannelMetadata:
    location = params["location"]
    link = with_query(config.endpoint_url("ticketmaster-events"), {"location": location})
    return ChannelMetadata(
        title=f"🎪 Ticketmaster Events - {location}",
        description=f"Upcoming events and entertainment in {location} ({DEFAULT_AREA}) from Ticketmaster",
        link=link,
        self_link=link,
        ttl=360,
        categories=["Events", "Entertainment", "Ticketmaster"],
        copyright="Event data from Ticketmaster",
        managing_editor="ticketmaster-events@localhost",
        image_url="https://www.ticketmaster.com/favicon.ico",
        image_title="Ticketmaster Events RSS Feed",
        image_size=32,
        namespaces={"content": "http://purl.org/rss/1.0/modules/content/"},
    )


SOURCE = SourceDescriptor(
    name="ticketmaster-events",
    parse_params=parse_params,
    fetch=fetch,
    decode=decode,
    normalize=normalize,
    channel=channel,
    mock=mock_events,
    credentials=[CredentialRequirement(API_KEY_ENV)],
    max_age=3600,
)
