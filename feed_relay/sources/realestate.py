"""For-sale listings from Zillow (via RapidAPI), with RentSpree as a second source."""

from datetime import UTC, datetime
from typing import Any

from dateutil import parser as date_parser

from .. import formatting as fmt
from ..config import TIMEOUTS, Config
from ..errors import UpstreamError, UpstreamMalformed
from ..models import ChannelMetadata, NormalizedItem
from ..pipeline import CredentialRequirement, FetchContext, SourceDescriptor
from ..upstream import UpstreamRequest, decode_json
from .common import DEFAULT_AREA, parse_int, with_query

ZILLOW_HOST = "zillow-com1.p.rapidapi.com"
ZILLOW_URL = f"https://{ZILLOW_HOST}/propertyExtendedSearch"
RENTSPREE_URL = "https://api.rentspree.com/v1/listings/search"
RAPIDAPI_KEY_ENV = "RAPIDAPI_KEY"
RENTSPREE_KEY_ENV = "RENTSPREE_API_KEY"

DEFAULT_LOCATION = "Ann Arbor, MI"
NEW_LISTING_DAYS = 3
MAX_NEW_LISTINGS = 10
LISTINGS_PER_SUMMARY = 5

PRICE_RANGES = [
    (0, 300_000, "Under $300K"),
    (300_000, 500_000, "$300K - $500K"),
    (500_000, 750_000, "$500K - $750K"),
    (750_000, float("inf"), "Over $750K"),
]

STATUS_EMOJI = {"new": "🆕", "pending": "⏳", "sold": "✅"}

NEIGHBORHOODS = ["Downtown", "Kerrytown", "Burns Park"]


def parse_params(query) -> dict[str, Any]:
    return {
        "location": (query.get("location") or DEFAULT_LOCATION).strip() or DEFAULT_LOCATION,
        "min_price": parse_int(query, "minPrice", minimum=0),
        "max_price": parse_int(query, "maxPrice", minimum=0),
        "min_bedrooms": parse_int(query, "minBedrooms", minimum=0),
        "max_bedrooms": parse_int(query, "maxBedrooms", minimum=0),
        "property_type": (query.get("propertyType") or "").strip() or None,
        "max_days_on_market": parse_int(query, "maxDaysOnMarket", minimum=0),
    }


def status_emoji(status: str) -> str:
    return STATUS_EMOJI.get((status or "").lower(), "🏠")


def property_type_emoji(property_type: str) -> str:
    kind = (property_type or "").lower()
    if "condo" in kind:
        return "🏢"
    if "townhouse" in kind:
        return "🏘️"
    if "multi" in kind:
        return "🏬"
    return "🏠"


def listing_status(upstream_status: str, days_on_market: int) -> str:
    status = (upstream_status or "").lower()
    if "pending" in status:
        return "pending"
    if "sold" in status:
        return "sold"
    if days_on_market <= NEW_LISTING_DAYS:
        return "new"
    return "active"


def neighborhood_for(address: str) -> str:
    for name in NEIGHBORHOODS:
        if name in (address or ""):
            return "Downtown Ann Arbor" if name == "Downtown" else name
    return "Ann Arbor Area"


def city_for(address: str) -> str:
    parts = (address or "").split(",")
    if len(parts) >= 2 and parts[1].strip():
        return parts[1].strip()
    return "Ann Arbor"


def _zillow_request(params: dict[str, Any], api_key: str) -> UpstreamRequest:
    location = DEFAULT_LOCATION if "Ann Arbor" in params["location"] else params["location"]
    query = {
        "location": location,
        "status_type": "ForSale",
        "home_type": params["property_type"] or "Houses",
    }
    for name, upstream_name in (
        ("min_price", "price_min"),
        ("max_price", "price_max"),
        ("min_bedrooms", "beds_min"),
        ("max_bedrooms", "beds_max"),
    ):
        if params[name]:
            query[upstream_name] = str(params[name])
    return UpstreamRequest(
        url=ZILLOW_URL,
        timeout=TIMEOUTS.api,
        params=query,
        headers={"X-RapidAPI-Key": api_key, "X-RapidAPI-Host": ZILLOW_HOST},
        expect="json",
        secrets=[api_key],
    )


def _rentspree_request(params: dict[str, Any], api_key: str) -> UpstreamRequest:
    body: dict[str, Any] = {"location": params["location"], "listing_type": "sale"}
    for name, upstream_name in (
        ("min_price", "price_min"),
        ("max_price", "price_max"),
        ("min_bedrooms", "bedrooms_min"),
        ("max_bedrooms", "bedrooms_max"),
        ("property_type", "property_type"),
    ):
        if params[name]:
            body[upstream_name] = params[name]
    return UpstreamRequest(
        url=RENTSPREE_URL,
        timeout=TIMEOUTS.api,
        method="POST",
        json_body=body,
        headers={"Authorization": f"Bearer {api_key}"},
        expect="json",
        secrets=[api_key],
    )


def fetch(context: FetchContext, params: dict[str, Any]) -> str:
    """Zillow first; RentSpree only when Zillow fails and a RentSpree key is set."""
    try:
        return context.client.fetch(_zillow_request(params, context.credentials[RAPIDAPI_KEY_ENV]))
    except UpstreamError:
        rentspree_key = context.credentials.get(RENTSPREE_KEY_ENV)
        if not rentspree_key:
            raise
        return context.client.fetch(_rentspree_request(params, rentspree_key))


def decode(body: str) -> list[dict[str, Any]]:
    data = decode_json(body)
    if not isinstance(data, dict):
        raise UpstreamMalformed("Listing search response is not an object")
    properties = data.get("props") or data.get("results") or data.get("listings") or []
    if not isinstance(properties, list):
        raise UpstreamMalformed("Listing search results are not a list")
    return [prop for prop in properties if isinstance(prop, dict)]


def _listing_date(value: Any, now: datetime) -> datetime:
    if not value:
        return now
    try:
        parsed = date_parser.parse(str(value))
    except (ValueError, OverflowError):
        return now
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def to_listing(prop: dict[str, Any], index: int, now: datetime) -> dict[str, Any]:
    """Map a Zillow or RentSpree property onto one listing shape."""
    if isinstance(prop.get("address"), dict):
        # RentSpree nests the address and uses snake_case fields
        addr = prop["address"]
        address = f"{addr.get('street', '')}, {addr.get('city', '')}, {addr.get('state', '')} {addr.get('zip', '')}".strip()
        sqft = prop.get("sqft")
        photos = prop.get("photos") or []
        listing = {
            "id": str(prop.get("id") or f"property-{index}"),
            "address": address,
            "price": _int(prop.get("price")),
            "bedrooms": prop.get("bedrooms") or 0,
            "bathrooms": prop.get("bathrooms") or 0,
            "square_footage": sqft,
            "year_built": prop.get("year_built"),
            "property_type": prop.get("property_type") or "Single Family Home",
            "listed": _listing_date(prop.get("listing_date"), now),
            "description": prop.get("description") or "",
            "image_url": photos[0].get("url") if photos else None,
            "mls_number": prop.get("mls_number"),
            "agent": prop.get("agent"),
            "features": prop.get("amenities") or [],
            "neighborhood": prop.get("neighborhood") or neighborhood_for(address),
            "days_on_market": _int(prop.get("days_on_market")),
            "upstream_status": prop.get("status") or "",
        }
    else:
        address = prop.get("address") or "Address not available"
        sqft = prop.get("livingArea")
        photos = prop.get("photos") or []
        image_url = photos[0].get("url") if photos else prop.get("imgSrc")
        home_type = prop.get("homeType") or prop.get("propertyType") or "Single Family Home"
        agent = prop.get("listingAgent")
        listing = {
            "id": str(prop.get("zpid") or f"property-{index}"),
            "address": address,
            "price": _int(prop.get("price")),
            "bedrooms": prop.get("bedrooms") or 0,
            "bathrooms": prop.get("bathrooms") or 0,
            "square_footage": sqft,
            "year_built": prop.get("yearBuilt"),
            "property_type": home_type,
            "listed": _listing_date(prop.get("datePostedString"), now),
            "description": prop.get("description")
            or f"{prop.get('bedrooms') or 0} bedroom, {prop.get('bathrooms') or 0} bathroom "
            f"{home_type.lower()} in {address}",
            "image_url": image_url,
            "mls_number": prop.get("mlsid"),
            "agent": {"name": agent.get("name"), "phone": agent.get("phone")} if agent else None,
            "features": [],
            "neighborhood": neighborhood_for(address),
            "days_on_market": _int(prop.get("daysOnZillow")),
            "upstream_status": prop.get("homeStatus") or prop.get("listingStatus") or "",
        }

    listing["status"] = listing_status(listing.pop("upstream_status"), listing["days_on_market"])
    listing["school_district"] = f"{city_for(listing['address'])} Public Schools"
    sqft = listing["square_footage"]
    listing["price_per_sqft"] = round(listing["price"] / sqft) if sqft else None
    return listing


def _details(listing: dict[str, Any]) -> str:
    lines = [
        fmt.field_line("💵 Price", fmt.format_money(listing["price"])),
        f"<p><strong>🛏️ Bedrooms:</strong> {fmt.escape_html(listing['bedrooms'])} | "
        f"<strong>🛁 Bathrooms:</strong> {fmt.escape_html(listing['bathrooms'])}</p>",
    ]
    if listing["square_footage"]:
        lines.append(fmt.field_line("📐 Square Footage", f"{_int(listing['square_footage']):,} sq ft"))
    if listing["price_per_sqft"]:
        lines.append(fmt.field_line("💲 Price per Sq Ft", f"${listing['price_per_sqft']}"))
    lines.append(fmt.field_line("🏠 Property Type", listing["property_type"]))
    if listing["year_built"]:
        lines.append(fmt.field_line("📅 Year Built", listing["year_built"]))
    lines.append(fmt.field_line("📍 Neighborhood", listing["neighborhood"]))
    return "".join(lines)


def describe_listing(listing: dict[str, Any], location: str) -> str:
    heading = f"{status_emoji(listing['status'])} {property_type_emoji(listing['property_type'])} {listing['address']}"
    parts = [
        f'<h2 style="margin: 0; color: #2c5aa0;">{fmt.escape_html(heading)}</h2>',
        fmt.image(
            listing["image_url"],
            "Property photo",
            style="width: 100%; max-width: 400px; height: 250px; object-fit: cover; border-radius: 8px;",
        ),
        fmt.panel("💰 Price & Details", _details(listing), "#f0f8ff"),
        fmt.panel("📋 Description", f"<p>{fmt.escape_html(listing['description'])}</p>", "#f9f9f9"),
    ]
    if listing["features"]:
        features = "".join(f"<li>{fmt.escape_html(feature)}</li>" for feature in listing["features"])
        parts.append(fmt.panel("✨ Features", f'<ul style="margin: 0; padding-left: 20px;">{features}</ul>', "#f0fff0"))
    agent = listing["agent"]
    if agent and agent.get("name"):
        lines = fmt.field_line("Name", agent["name"])
        if agent.get("phone"):
            lines += fmt.field_line("Phone", agent["phone"])
        if agent.get("email"):
            lines += fmt.field_line("Email", agent["email"])
        parts.append(fmt.panel("👤 Listing Agent", lines, "#fff8f0"))

    footer = [
        ("📅 Listed", fmt.format_date(listing["listed"])),
        ("📊 Days on Market", listing["days_on_market"]),
    ]
    if listing["mls_number"]:
        footer.append(("🏷️ MLS #", listing["mls_number"]))
    footer.append(("🏫 School District", listing["school_district"]))
    footer.append(("📍 Location", location))
    parts.append(fmt.footer(footer))
    return fmt.container("".join(parts))


def describe_summary(label: str, listings: list[dict[str, Any]], location: str, now: datetime) -> str:
    prices = [listing["price"] for listing in listings]
    average = round(sum(prices) / len(prices))
    new_count = sum(1 for listing in listings if listing["status"] == "new")
    summary = (
        fmt.field_line("🏠 Total Listings", len(listings))
        + fmt.field_line("💰 Average Price", fmt.format_money(average))
        + fmt.field_line("📊 Price Range", f"{fmt.format_money(min(prices))} - {fmt.format_money(max(prices))}")
        + fmt.field_line("🆕 New Listings", new_count)
    )

    cards = []
    for listing in listings[:LISTINGS_PER_SUMMARY]:
        heading = f"{status_emoji(listing['status'])} {property_type_emoji(listing['property_type'])} {listing['address']}"
        size = f" | 📐 {_int(listing['square_footage']):,} sq ft" if listing["square_footage"] else ""
        cards.append(
            '<div style="border: 1px solid #ddd; padding: 10px; border-radius: 5px; background: white; margin: 5px 0;">'
            f"<h4>{fmt.escape_html(heading)}</h4>"
            f"<p>💵 {fmt.format_money(listing['price'])} | 🛏️ "
            f"{fmt.escape_html(listing['bedrooms'])}BR/{fmt.escape_html(listing['bathrooms'])}BA{size}</p>"
            f"<p>📅 Listed {fmt.escape_html(fmt.format_date(listing['listed']))} "
            f"({listing['days_on_market']} days ago)</p>"
            f"<p>📍 {fmt.escape_html(listing['neighborhood'])}</p></div>"
        )

    parts = [
        f"<h2>📊 {fmt.escape_html(label)} Price Range Summary</h2>",
        fmt.panel("📈 Market Summary", summary, "#f0f8ff"),
        "<h3>🏠 Recent Listings in This Range</h3>",
        "".join(cards),
        fmt.footer([("📍 Location", location), ("🕒 Generated", fmt.format_datetime(now))]),
    ]
    return fmt.container("".join(parts))


def select_listings(properties: list[dict[str, Any]], params: dict[str, Any], now: datetime) -> list[dict[str, Any]]:
    """Listings within maxDaysOnMarket, newest first."""
    listings = [to_listing(prop, index, now) for index, prop in enumerate(properties)]
    if params["max_days_on_market"] is not None:
        listings = [item for item in listings if item["days_on_market"] <= params["max_days_on_market"]]
    listings.sort(key=lambda item: item["listed"], reverse=True)
    return listings


def normalize(properties: list[dict[str, Any]], params: dict[str, Any], now: datetime) -> list[NormalizedItem]:
    """Up to ten new listings, then one summary item per populated price range."""
    location = params["location"]
    listings = select_listings(properties, params, now)
    items = []

    for listing in [item for item in listings if item["status"] == "new"][:MAX_NEW_LISTINGS]:
        title = (
            f"{status_emoji(listing['status'])} {property_type_emoji(listing['property_type'])} NEW: "
            f"{listing['address']} - {fmt.format_money(listing['price'])} | "
            f"{listing['bedrooms']}BR/{listing['bathrooms']}BA"
        )
        items.append(
            NormalizedItem(
                id=f"realestate-{listing['id']}",
                title=title,
                link="",
                published=listing["listed"],
                categories=["Real Estate", "New Listing", listing["property_type"], listing["neighborhood"]],
                payload=listing,
                description=describe_listing(listing, location),
                author="realestate-rss@localhost",
                enclosure_url=listing["image_url"],
            )
        )

    for low, high, label in PRICE_RANGES:
        in_range = [item for item in listings if low <= item["price"] < high]
        if not in_range:
            continue
        average = round(sum(item["price"] for item in in_range) / len(in_range))
        slug = label.lower().replace(" ", "-")
        items.append(
            NormalizedItem(
                id=f"realestate-summary-{slug}-{now.date().isoformat()}",
                title=f"📊 {label} Summary: {len(in_range)} listings, avg {fmt.format_money(average)}",
                link="",
                published=now,
                categories=["Real Estate", "Market Summary", label],
                payload={"label": label, "count": len(in_range), "average_price": average},
                description=describe_summary(label, in_range, location, now),
                author="realestate-rss@localhost",
            )
        )
    return items


def channel(params: dict[str, Any], config: Config) -> ChannelMetadata:
    location = params["location"]
    link = with_query(
        config.endpoint_url("realestate"),
        {
            "location": location,
            "minPrice": params["min_price"],
            "maxPrice": params["max_price"],
            "minBedrooms": params["min_bedrooms"],
            "maxBedrooms": params["max_bedrooms"],
            "propertyType": params["property_type"],
            "maxDaysOnMarket": params["max_days_on_market"],
        },
    )
    return ChannelMetadata(
        title=f"🏠 Real Estate Listings - {location}",
        description=f"New real estate listings and market summaries for {location} ({DEFAULT_AREA})",
        link=link,
        self_link=link,
        ttl=60,
        categories=["Real Estate", "Property Listings"],
        copyright="Real Estate data from local MLS",
        managing_editor="realestate-rss@localhost",
        image_url="https://picsum.photos/64/64?random=house",
        image_title="Real Estate RSS Feed",
    )


SOURCE = SourceDescriptor(
    name="realestate",
    parse_params=parse_params,
    fetch=fetch,
    decode=decode,
    normalize=normalize,
    channel=channel,
    credentials=[CredentialRequirement(RAPIDAPI_KEY_ENV), CredentialRequirement(RENTSPREE_KEY_ENV, required=False)],
    max_age=1800,
)
