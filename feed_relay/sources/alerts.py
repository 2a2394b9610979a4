"""Active National Weather Service alerts for a zip code."""

import random
from datetime import datetime, timedelta
from typing import Any

from dateutil import parser as date_parser

from .. import formatting as fmt
from ..config import TIMEOUTS, Config
from ..errors import UpstreamMalformed
from ..models import ChannelMetadata, NormalizedItem
from ..pipeline import FetchContext, SourceDescriptor
from ..upstream import UpstreamRequest, decode_json
from .common import DEFAULT_AREA, coordinates_for, parse_zip, with_query

ALERTS_URL = "https://api.weather.gov/alerts/active"

SEVERITY_RANK = {"Extreme": 4, "Severe": 3, "Moderate": 2, "Minor": 1}
URGENCY_RANK = {"Immediate": 4, "Expected": 3, "Future": 2, "Past": 1}

SEVERITY_COLORS = {
    "extreme": "#8B0000",
    "severe": "#FF4500",
    "moderate": "#FFD700",
    "minor": "#32CD32",
}
DEFAULT_COLOR = "#4169E1"

SEVERITY_EMOJI = {"extreme": "🚨", "severe": "⚠️", "moderate": "⚡", "minor": "🔔"}
# Checked in order against the event category when severity is unknown.
CATEGORY_EMOJI = [
    (("fire",), "🔥"),
    (("flood", "tsunami"), "🌊"),
    (("tornado",), "🌪️"),
    (("hurricane",), "🌀"),
    (("winter", "snow", "ice"), "❄️"),
    (("heat",), "🌡️"),
    (("wind",), "💨"),
    (("thunder", "lightning"), "⛈️"),
    (("earthquake",), "🏔️"),
]


def parse_params(query) -> dict[str, Any]:
    return {"location": parse_zip(query)}


def alert_emoji(severity: str, category: str) -> str:
    emoji = SEVERITY_EMOJI.get((severity or "").lower())
    if emoji:
        return emoji
    category = (category or "").lower()
    for keywords, candidate in CATEGORY_EMOJI:
        if any(keyword in category for keyword in keywords):
            return candidate
    return "📢"


def alert_color(severity: str) -> str:
    return SEVERITY_COLORS.get((severity or "").lower(), DEFAULT_COLOR)


def fetch(context: FetchContext, params: dict[str, Any]) -> str:
    lat, lon = coordinates_for(params["location"])
    return context.client.fetch(
        UpstreamRequest(
            url=ALERTS_URL,
            timeout=TIMEOUTS.api,
            params={"point": f"{lat},{lon}"},
            headers={"Accept": "application/geo+json"},
            expect="json",
        )
    )


def decode(body: str) -> list[dict[str, Any]]:
    data = decode_json(body)
    if not isinstance(data, dict):
        raise UpstreamMalformed("NWS alerts response is not an object")
    features = data.get("features") or []
    if not isinstance(features, list) or not all(isinstance(f, dict) for f in features):
        raise UpstreamMalformed("NWS alerts features is not a list of objects")
    alerts = []
    for feature in features:
        props = feature.get("properties") or {}
        if not isinstance(props, dict):
            raise UpstreamMalformed("NWS alert has no properties object")
        alerts.append(
            {
                "id": props.get("id") or feature.get("id") or "",
                "event": props.get("event") or "Alert",
                "headline": props.get("headline") or props.get("event") or "",
                "description": props.get("description") or "",
                "instruction": props.get("instruction") or None,
                "severity": props.get("severity") or "Unknown",
                "urgency": props.get("urgency") or "Unknown",
                "certainty": props.get("certainty") or "Unknown",
                "category": props.get("category") or "",
                "areas": [props["areaDesc"]] if props.get("areaDesc") else [],
                "effective": props.get("effective"),
                "expires": props.get("expires"),
                "sent": props.get("sent"),
            }
        )
    return alerts


def mock_alerts(params: dict[str, Any], now: datetime, rng: random.Random) -> list[dict[str, Any]]:
    """A severe thunderstorm warning and a winter weather advisory."""
    tomorrow = now + timedelta(days=1)
    return [
        {
            "id": "mock-severe-thunderstorm-001",
            "event": "Severe Thunderstorm Warning",
            "headline": "Severe Thunderstorm Warning issued for Ann Arbor area until 8:00 PM EDT",
            "description": (
                "A severe thunderstorm warning has been issued for your area. "
                "Damaging winds up to 70 mph and quarter-size hail are possible."
            ),
            "instruction": "Move to an interior room on the lowest floor of a sturdy building. Avoid windows.",
            "severity": "Severe",
            "urgency": "Immediate",
            "certainty": "Likely",
            "category": "Met",
            "areas": ["Washtenaw County"],
            "effective": now.isoformat(),
            "expires": (now + timedelta(hours=3)).isoformat(),
            "sent": now.isoformat(),
        },
        {
            "id": "mock-winter-weather-002",
            "event": "Winter Weather Advisory",
            "headline": "Winter Weather Advisory in effect from 6 AM to 6 PM EST tomorrow",
            "description": "Snow accumulations of 2 to 4 inches expected. Plan on slippery road conditions.",
            "instruction": "Slow down and use caution while traveling. Check road conditions before heading out.",
            "severity": "Moderate",
            "urgency": "Expected",
            "certainty": "Likely",
            "category": "Met",
            "areas": ["Washtenaw County", "Wayne County"],
            "effective": tomorrow.isoformat(),
            "expires": (tomorrow + timedelta(hours=12)).isoformat(),
            "sent": now.isoformat(),
        },
    ]


def rank_alerts(alerts: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Most severe first, then most urgent; stable for ties."""
    return sorted(
        alerts,
        key=lambda alert: (
            -SEVERITY_RANK.get(alert["severity"], 0),
            -URGENCY_RANK.get(alert["urgency"], 0),
        ),
    )


def _parse_time(value: str | None, default: datetime) -> datetime:
    if not value:
        return default
    try:
        return date_parser.isoparse(value)
    except (ValueError, TypeError):
        return default


def describe(alert: dict[str, Any], location: str, now: datetime) -> str:
    color = alert_color(alert["severity"])
    emoji = alert_emoji(alert["severity"], alert["category"])
    areas = ", ".join(alert["areas"]) or "Unspecified area"

    parts = [
        f'<div style="background: {color}; color: white; padding: 10px; border-radius: 5px;">'
        f'<h2 style="margin: 0; color: white;">{emoji} {fmt.escape_html(alert["event"])}</h2>'
        '<p style="margin: 5px 0 0 0; font-size: 0.9em;">'
        f"<strong>Severity:</strong> {fmt.escape_html(alert['severity'])} | "
        f"<strong>Urgency:</strong> {fmt.escape_html(alert['urgency'])} | "
        f"<strong>Certainty:</strong> {fmt.escape_html(alert['certainty'])}</p></div>",
        fmt.panel("📍 Affected Areas", f"<p><strong>{fmt.escape_html(areas)}</strong></p>", "white", color),
        fmt.panel("📋 Description", f"<p>{fmt.escape_html(alert['description'])}</p>", "white", color),
    ]
    if alert["instruction"]:
        parts.append(
            fmt.panel(
                "⚠️ What You Should Do",
                f'<p style="color: #856404;"><strong>{fmt.escape_html(alert["instruction"])}</strong></p>',
                "#fff3cd",
                "#856404",
            )
        )
    parts.append(
        fmt.panel(
            "🕒 Timing",
            fmt.field_line("Effective", fmt.format_datetime(_parse_time(alert["effective"], now)))
            + fmt.field_line("Expires", fmt.format_datetime(_parse_time(alert["expires"], now))),
            "white",
            color,
        )
    )
    parts.append(
        fmt.footer(
            [
                ("📡 Source", "National Weather Service"),
                ("📍 Location", location),
                ("🆔 Alert ID", alert["id"]),
                ("🕒 Issued", fmt.format_datetime(_parse_time(alert["sent"], now))),
            ]
        )
    )
    return fmt.container("".join(parts), f"border-left: 4px solid {color}; padding-left: 15px;")


def all_clear_item(location: str, now: datetime) -> NormalizedItem:
    """Single status item published when no alert is active."""
    body = (
        '<div style="background: #d4edda; border: 1px solid #c3e6cb; padding: 15px; '
        'border-radius: 5px; text-align: center;">'
        '<h2 style="color: #155724; margin-top: 0;">✅ All Clear</h2>'
        '<p style="color: #155724; margin-bottom: 0;">'
        "There are currently no active emergency alerts for your area.</p></div>"
    )
    footer = fmt.footer(
        [
            ("📍 Location", f"{location} ({DEFAULT_AREA})"),
            ("📡 Source", "National Weather Service"),
            ("🕒 Last Checked", fmt.format_datetime(now)),
            ("🔄 Updates", "This feed updates automatically when new alerts are issued"),
        ]
    )
    return NormalizedItem(
        # One all-clear entry per location and day.
        id=f"no-alerts-{location}-{now.date().isoformat()}",
        title=f"✅ No Active Emergency Alerts - {location}",
        link="",
        published=now,
        categories=["Emergency", "Status"],
        payload={"all_clear": True},
        description=fmt.container(body + footer),
        author="emergency-alerts@localhost",
    )


def normalize(alerts: list[dict[str, Any]], params: dict[str, Any], now: datetime) -> list[NormalizedItem]:
    location = params["location"]
    if not alerts:
        return [all_clear_item(location, now)]

    items = []
    for alert in rank_alerts(alerts):
        emoji = alert_emoji(alert["severity"], alert["category"])
        area = alert["areas"][0] if alert["areas"] else location
        items.append(
            NormalizedItem(
                id=f"emergency-alert-{location}-{alert['id']}",
                title=f"{emoji} {alert['severity'].upper()}: {alert['event']} - {area}",
                link="",
                published=_parse_time(alert["sent"], now),
                categories=["Emergency", alert["category"], alert["severity"]],
                payload=alert,
                description=describe(alert, location, now),
                author="emergency-alerts@localhost",
            )
        )
    return items


def channel(params: dict[str, Any], config: Config) -> ChannelMetadata:
    location = params["location"]
    link = with_query(config.endpoint_url("emergency-alerts"), {"location": location})
    return ChannelMetadata(
        title=f"🚨 Emergency Alerts - {location}",
        description=f"Emergency and severe weather alerts for {location} ({DEFAULT_AREA})",
        link=link,
        self_link=link,
        ttl=15,
        categories=["Emergency", "Weather", "Public Safety"],
        copyright="Alert data from National Weather Service",
        managing_editor="emergency-alerts@localhost",
        image_url="https://www.weather.gov/images/wrh/Climate/new/nws_logo.png",
        image_title="Emergency Alerts RSS Feed",
        namespaces={"cap": "urn:oasis:names:tc:emergency:cap:1.2"},
    )


SOURCE = SourceDescriptor(
    name="emergency-alerts",
    parse_params=parse_params,
    fetch=fetch,
    decode=decode,
    normalize=normalize,
    channel=channel,
    mock=mock_alerts,
    max_age=900,
)
