"""Query parameter parsing and location helpers shared by the sources."""

import re
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlencode

from ..errors import ValidationError

DEFAULT_ZIP = "48103"
DEFAULT_AREA = "Ann Arbor, MI area"

# Only Ann Arbor zip codes are mapped; anything else uses the city center.
ANN_ARBOR = (42.2808, -83.7430)
ZIP_COORDINATES = {
    "48103": ANN_ARBOR,
    "48104": ANN_ARBOR,
    "48105": ANN_ARBOR,
}

ZIP_PATTERN = re.compile(r"^\d{5}$")


def coordinates_for(zip_code: str) -> tuple[float, float]:
    """Latitude and longitude for a zip code."""
    return ZIP_COORDINATES.get(zip_code, ANN_ARBOR)


def parse_zip(query: Mapping[str, str], name: str = "location") -> str:
    """Read a five digit zip code, defaulting to 48103."""
    value = (query.get(name) or DEFAULT_ZIP).strip()
    if not ZIP_PATTERN.match(value):
        raise ValidationError(f"{name} must be a 5-digit zip code", message="Invalid location")
    return value


def parse_int(
    query: Mapping[str, str],
    name: str,
    default: int | None = None,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int | None:
    """Read an optional integer parameter within bounds."""
    raw = query.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw.strip())
    except ValueError as e:
        raise ValidationError(f"{name} must be an integer", message=f"Invalid {name}") from e
    if minimum is not None and value < minimum:
        raise ValidationError(f"{name} must be at least {minimum}", message=f"Invalid {name}")
    if maximum is not None and value > maximum:
        raise ValidationError(f"{name} must be at most {maximum}", message=f"Invalid {name}")
    return value


def parse_limit(query: Mapping[str, str], default: int = 25, maximum: int = 100) -> int:
    return parse_int(query, "limit", default=default, minimum=1, maximum=maximum)


def parse_choice(
    query: Mapping[str, str], name: str, choices: tuple[str, ...], default: str | None
) -> str | None:
    """Read a parameter restricted to a fixed set of values (case-insensitive)."""
    raw = query.get(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value not in choices:
        raise ValidationError(
            f"{name} must be one of: {', '.join(choices)}", message=f"Invalid {name}"
        )
    return value


def with_query(url: str, params: Mapping[str, Any]) -> str:
    """Append the non-empty params to url as a query string."""
    present = {name: value for name, value in params.items() if value not in (None, "")}
    if not present:
        return url
    return f"{url}?{urlencode(present)}"
