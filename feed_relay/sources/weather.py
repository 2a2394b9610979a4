"""National Weather Service forecasts: daily items and weekly summaries."""

import random
from collections import Counter
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

POINTS_URL = "https://api.weather.gov/points/{lat},{lon}"
FORECAST_DAYS = 7
NIGHT_TEMPERATURE_DROP = 15
NWS_HEADERS = {"Accept": "application/geo+json"}

MOCK_CONDITIONS = [
    ("Sunny", "https://api.weather.gov/icons/land/day/skc?size=medium"),
    ("Partly Cloudy", "https://api.weather.gov/icons/land/day/sct?size=medium"),
    ("Cloudy", "https://api.weather.gov/icons/land/day/ovc?size=medium"),
    ("Light Rain", "https://api.weather.gov/icons/land/day/rain_light?size=medium"),
    ("Thunderstorms", "https://api.weather.gov/icons/land/day/tsra?size=medium"),
]
WIND_DIRECTIONS = ["N", "NE", "E", "SE", "S", "SW", "W", "NW"]


def parse_params(query) -> dict[str, Any]:
    return {"location": parse_zip(query)}


def weather_emoji(description: str) -> str:
    """Emoji for an NWS short forecast."""
    desc = (description or "").lower()
    if "sunny" in desc or "clear" in desc:
        return "☀️"
    if "partly cloudy" in desc or "partly sunny" in desc:
        return "⛅"
    if "mostly cloudy" in desc or "overcast" in desc:
        return "☁️"
    if "cloudy" in desc:
        return "🌤️"
    if "rain" in desc and "thunder" in desc:
        return "⛈️"
    if "thunder" in desc:
        return "🌩️"
    if "heavy rain" in desc or "downpour" in desc:
        return "🌧️"
    if "rain" in desc or "shower" in desc or "drizzle" in desc:
        return "🌦️"
    if "snow" in desc and "heavy" in desc:
        return "❄️"
    if "snow" in desc or "sleet" in desc or "hail" in desc:
        return "🌨️"
    if "fog" in desc or "mist" in desc:
        return "🌫️"
    if "windy" in desc or "breezy" in desc:
        return "💨"
    if "hot" in desc:
        return "🌡️"
    if "cold" in desc or "freezing" in desc:
        return "🥶"
    return "🌤️"


def fetch(context: FetchContext, params: dict[str, Any]) -> str:
    """Resolve the NWS grid point for the zip code, then fetch its forecast."""
    lat, lon = coordinates_for(params["location"])
    points = context.client.fetch_json(
        UpstreamRequest(
            url=POINTS_URL.format(lat=lat, lon=lon),
            timeout=TIMEOUTS.api,
            headers=NWS_HEADERS,
            expect="json",
        )
    )
    try:
        forecast_url = points["properties"]["forecast"]
    except (KeyError, TypeError) as e:
        raise UpstreamMalformed("NWS grid point response has no forecast URL") from e

    return context.client.fetch(
        UpstreamRequest(url=forecast_url, timeout=TIMEOUTS.api, headers=NWS_HEADERS, expect="json")
    )


def _measure(period: dict[str, Any], name: str) -> int | None:
    value = (period.get(name) or {}).get("value")
    return int(value) if value is not None else None


def _wind_speed(period: dict[str, Any]) -> int | None:
    first = str(period.get("windSpeed") or "").split(" ")[0]
    return int(first) if first.isdigit() else None


def decode(body: str) -> list[dict[str, Any]]:
    """
    Pair NWS forecast periods into at most seven days.

    Pairing starts at the first daytime period so each day is (day, night).
    High and low are the max and min of the pair; a day without a night
    period gets a low fifteen degrees under its high.
    """
    data = decode_json(body)
    try:
        periods = data["properties"]["periods"]
    except (KeyError, TypeError) as e:
        raise UpstreamMalformed("NWS forecast has no periods") from e
    if not isinstance(periods, list) or not all(isinstance(p, dict) for p in periods):
        raise UpstreamMalformed("NWS forecast periods is not a list of objects")

    start = next((i for i, p in enumerate(periods) if p.get("isDaytime", True)), len(periods))
    days = []
    for index in range(start, len(periods), 2):
        day_period = periods[index]
        night_period = periods[index + 1] if index + 1 < len(periods) else None
        try:
            day_temp = int(day_period["temperature"])
            started = date_parser.isoparse(day_period["startTime"])
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamMalformed(f"NWS forecast period is incomplete: {e}") from e

        if night_period is not None and night_period.get("temperature") is not None:
            night_temp = int(night_period["temperature"])
        else:
            night_temp = day_temp - NIGHT_TEMPERATURE_DROP

        days.append(
            {
                "date": started.date().isoformat(),
                "high": max(day_temp, night_temp),
                "low": min(day_temp, night_temp),
                "description": day_period.get("shortForecast") or "",
                "precipitation_chance": _measure(day_period, "probabilityOfPrecipitation"),
                "humidity": _measure(day_period, "relativeHumidity"),
                "wind_speed": _wind_speed(day_period),
                "wind_direction": day_period.get("windDirection") or None,
                "icon": day_period.get("icon") or None,
            }
        )
        if len(days) >= FORECAST_DAYS:
            break

    if not days:
        raise UpstreamMalformed("NWS forecast has no daytime periods")
    return days


def mock_forecast(params: dict[str, Any], now: datetime, rng: random.Random) -> list[dict[str, Any]]:
    """Seven plausible summer days starting today."""
    days = []
    for offset in range(FORECAST_DAYS):
        description, icon = rng.choice(MOCK_CONDITIONS)
        days.append(
            {
                "date": (now + timedelta(days=offset)).date().isoformat(),
                "high": rng.randint(70, 89),
                "low": rng.randint(50, 64),
                "description": description,
                "precipitation_chance": rng.randint(0, 99),
                "humidity": rng.randint(40, 79),
                "wind_speed": rng.randint(5, 19),
                "wind_direction": rng.choice(WIND_DIRECTIONS),
                "icon": icon,
            }
        )
    return days


def _day_datetime(day: dict[str, Any], now: datetime) -> datetime:
    return datetime.fromisoformat(day["date"]).replace(tzinfo=now.tzinfo)


def _day_lines(day: dict[str, Any]) -> list[str]:
    lines = [
        f"<p><strong>🌡️ Temperature:</strong> High {day['high']}°F, Low {day['low']}°F</p>",
        f"<p><strong>☁️ Conditions:</strong> {fmt.escape_html(day['description'])}</p>",
    ]
    if day["precipitation_chance"] is not None:
        lines.append(f"<p><strong>🌧️ Precipitation Chance:</strong> {day['precipitation_chance']}%</p>")
    if day["humidity"] is not None:
        lines.append(f"<p><strong>💧 Humidity:</strong> {day['humidity']}%</p>")
    if day["wind_speed"] is not None and day["wind_direction"]:
        lines.append(
            f"<p><strong>💨 Wind:</strong> {fmt.escape_html(day['wind_direction'])} {day['wind_speed']} mph</p>"
        )
    elif day["wind_speed"] is not None:
        lines.append(f"<p><strong>💨 Wind Speed:</strong> {day['wind_speed']} mph</p>")
    return lines


def describe_day(day: dict[str, Any], when: datetime) -> str:
    emoji = weather_emoji(day["description"])
    parts = [f"<h3>{emoji} {fmt.escape_html(fmt.format_date(when))}</h3>"]
    if day["icon"]:
        parts.append(
            "<p>"
            + fmt.image(
                day["icon"],
                day["description"],
                style="width: 64px; height: 64px; vertical-align: middle; margin-right: 10px;",
            )
            + "</p>"
        )
    parts.extend(_day_lines(day))
    return fmt.container("".join(parts))


def normalize_daily(days: list[dict[str, Any]], params: dict[str, Any], now: datetime) -> list[NormalizedItem]:
    location = params["location"]
    items = []
    for day in days:
        when = _day_datetime(day, now)
        emoji = weather_emoji(day["description"])
        items.append(
            NormalizedItem(
                id=f"weather-{location}-{day['date']}",
                title=f"{emoji} {when.strftime('%A')} - {day['high']}°/{day['low']}°F - {day['description']}",
                link="",
                published=when,
                categories=["Weather"],
                payload=day,
                description=describe_day(day, when),
                author="weather-rss@localhost",
                enclosure_url=day["icon"],
                enclosure_type="image/png",
            )
        )
    return items


def weekly_windows(days: list[dict[str, Any]], windows: int = 3) -> list[dict[str, Any]]:
    """Seven day windows starting at successive days, with summary statistics."""
    forecasts = []
    for offset in range(windows):
        week = days[offset : offset + FORECAST_DAYS]
        if len(week) < FORECAST_DAYS:
            break

        conditions = Counter(day["description"] for day in week)
        dominant = conditions.most_common(1)[0][0]
        chances = [day["precipitation_chance"] for day in week if day["precipitation_chance"] is not None]

        forecasts.append(
            {
                "start_date": week[0]["date"],
                "end_date": week[-1]["date"],
                "days": week,
                "avg_high": round(sum(day["high"] for day in week) / len(week)),
                "avg_low": round(sum(day["low"] for day in week) / len(week)),
                "dominant_condition": dominant,
                "avg_precipitation_chance": round(sum(chances) / len(chances)) if chances else 0,
                "emoji": weather_emoji(dominant),
            }
        )
    return forecasts


def describe_week(forecast: dict[str, Any], location: str, now: datetime) -> str:
    start = datetime.fromisoformat(forecast["start_date"])
    summary = "".join(
        [
            f"<p><strong>🌡️ Average Temperature:</strong> High {forecast['avg_high']}°F, "
            f"Low {forecast['avg_low']}°F</p>",
            f"<p><strong>☁️ Dominant Conditions:</strong> {fmt.escape_html(forecast['dominant_condition'])}</p>",
            f"<p><strong>🌧️ Average Precipitation Chance:</strong> {forecast['avg_precipitation_chance']}%</p>",
        ]
    )

    day_cards = []
    for day in forecast["days"]:
        when = datetime.fromisoformat(day["date"])
        card = [f"<h4>{weather_emoji(day['description'])} {fmt.escape_html(fmt.format_date(when))}</h4>"]
        card.append(
            fmt.image(day["icon"], day["description"], style="width: 48px; height: 48px; float: right;")
        )
        card.extend(_day_lines(day))
        day_cards.append(
            '<div style="border: 1px solid #ddd; padding: 10px; border-radius: 5px; background: white;">'
            + "".join(card)
            + "</div>"
        )

    parts = [
        f"<h2>{forecast['emoji']} 7 Day Forecast starting {fmt.escape_html(fmt.format_date(start))}</h2>",
        fmt.panel("📊 Week Summary", summary, background="#f0f8ff"),
        "<h3>📅 Daily Breakdown</h3>",
        '<div style="display: grid; gap: 10px;">' + "".join(day_cards) + "</div>",
        fmt.footer(
            [
                ("📍 Location", f"{location} ({DEFAULT_AREA})"),
                ("📡 Data Source", "National Weather Service"),
                ("🕒 Generated", fmt.format_datetime(now)),
            ]
        ),
    ]
    return fmt.container("".join(parts))


def normalize_weekly(days: list[dict[str, Any]], params: dict[str, Any], now: datetime) -> list[NormalizedItem]:
    location = params["location"]
    items = []
    for index, forecast in enumerate(weekly_windows(days)):
        start = datetime.fromisoformat(forecast["start_date"]).replace(tzinfo=now.tzinfo)
        first_icon = forecast["days"][0]["icon"]
        items.append(
            NormalizedItem(
                id=f"weekly-weather-{location}-{forecast['start_date']}-{index}",
                title=(
                    f"{forecast['emoji']} 7 Day Forecast starting {start.strftime('%m/%d/%Y')} - "
                    f"Avg {forecast['avg_high']}°/{forecast['avg_low']}°F - {forecast['dominant_condition']}"
                ),
                link="",
                published=start,
                categories=["Weather", "Weekly Forecast"],
                payload=forecast,
                description=describe_week(forecast, location, now),
                author="weather-rss@localhost",
                enclosure_url=first_icon,
                enclosure_type="image/png",
            )
        )
    return items


def daily_channel(params: dict[str, Any], config: Config) -> ChannelMetadata:
    location = params["location"]
    link = with_query(config.endpoint_url("daily-weather"), {"location": location})
    return ChannelMetadata(
        title=f"🌤️ 7-Day Weather Forecast - {location}",
        description=f"Daily weather forecast for {location} ({DEFAULT_AREA}) with icons and detailed conditions",
        link=link,
        self_link=link,
        ttl=360,
        categories=["Weather"],
        copyright="Weather data from National Weather Service",
        managing_editor="weather-rss@localhost",
        image_url="https://api.weather.gov/icons/land/day/skc?size=small",
        image_title="Weather RSS Feed",
    )


def weekly_channel(params: dict[str, Any], config: Config) -> ChannelMetadata:
    location = params["location"]
    link = with_query(config.endpoint_url("weather"), {"location": location})
    return ChannelMetadata(
        title=f"📅 Weekly Weather Forecasts - {location}",
        description=f"7-day weather forecasts starting from different days for {location} ({DEFAULT_AREA})",
        link=link,
        self_link=link,
        ttl=360,
        categories=["Weather", "Weekly Forecast"],
        copyright="Weather data from National Weather Service",
        managing_editor="weather-rss@localhost",
        image_url="https://api.weather.gov/icons/land/day/few?size=small",
        image_title="Weekly Weather RSS Feed",
    )


DAILY_SOURCE = SourceDescriptor(
    name="daily-weather",
    parse_params=parse_params,
    fetch=fetch,
    decode=decode,
    normalize=normalize_daily,
    channel=daily_channel,
    mock=mock_forecast,
    max_age=3600,
)

WEEKLY_SOURCE = SourceDescriptor(
    name="weather",
    parse_params=parse_params,
    fetch=fetch,
    decode=decode,
    normalize=normalize_weekly,
    channel=weekly_channel,
    mock=mock_forecast,
    max_age=3600,
)
