"""HTML building blocks for RSS item descriptions."""

from datetime import datetime


def escape_html(text) -> str:
    """
    Escape HTML characters in text for embedding in a description.

    Args:
        text: Text to escape (None and non-strings are accepted)

    Returns:
        HTML-escaped text
    """
    if text is None:
        return ""
    text = str(text)

    text = text.replace("&", "&amp;")
    text = text.replace("<", "&lt;")
    text = text.replace(">", "&gt;")
    text = text.replace('"', "&quot;")
    text = text.replace("'", "&#x27;")

    return text


def truncate(text: str, limit: int, marker: str = "...") -> str:
    """Cut text to ``limit`` characters, appending ``marker`` when cut."""
    if not text or len(text) <= limit:
        return text or ""
    return text[:limit] + marker


def format_datetime(value: datetime | None) -> str:
    """Human-readable timestamp, e.g. 'Oct 18, 2026 9:05 AM'."""
    if value is None:
        return "TBA"
    return f"{value.strftime('%b')} {value.day}, {value.year} {value.strftime('%I:%M %p').lstrip('0')}"


def format_date(value: datetime) -> str:
    """Human-readable date, e.g. 'Sunday, October 18, 2026'."""
    return f"{value.strftime('%A, %B')} {value.day}, {value.year}"


def format_money(amount: float | int) -> str:
    """Format a whole-dollar amount, e.g. '$425,000'."""
    return f"${int(round(amount)):,}"


def container(body: str, extra_style: str = "") -> str:
    """Outer wrapper shared by every item description."""
    style = "font-family: Arial, sans-serif; max-width: 600px;"
    if extra_style:
        style = f"{style} {extra_style}"
    return f'<div style="{style}">{body}</div>'


def badge(text: str, background: str, color: str = "white") -> str:
    """Rounded pill label. ``text`` is escaped."""
    return (
        f'<span style="background: {background}; color: {color}; padding: 4px 8px; '
        f'border-radius: 12px; font-size: 0.9em;">{escape_html(text)}</span>'
    )


def badges(items: list[str]) -> str:
    """Row of pre-built badges."""
    if not items:
        return ""
    return (
        '<div style="display: flex; flex-wrap: wrap; gap: 10px; margin-bottom: 15px;">'
        + "".join(items)
        + "</div>"
    )


def panel(heading: str, body_html: str, background: str = "#f8f9fa", accent: str = "#2c3e50") -> str:
    """Titled block of content. ``heading`` is escaped, ``body_html`` is not."""
    return (
        f'<div style="background: {background}; padding: 15px; border-radius: 8px; margin: 15px 0;">'
        f'<h3 style="margin-top: 0; color: {accent};">{escape_html(heading)}</h3>'
        f"{body_html}</div>"
    )


def field_line(label: str, value) -> str:
    """'<p><strong>label:</strong> value</p>' with both parts escaped."""
    return f"<p><strong>{escape_html(label)}:</strong> {escape_html(value)}</p>"


def stat_grid(stats: list[tuple[str, str, str]]) -> str:
    """Grid of (label, value, color) cards."""
    cards = "".join(
        '<div style="background: white; padding: 10px; border-radius: 5px; '
        'border: 1px solid #ddd; text-align: center;">'
        f'<strong>{escape_html(label)}</strong><br>'
        f'<span style="font-size: 1.2em; color: {color};">{escape_html(value)}</span></div>'
        for label, value, color in stats
    )
    return (
        '<div style="display: grid; grid-template-columns: repeat(auto-fit, minmax(120px, 1fr)); '
        f'gap: 10px; margin: 15px 0;">{cards}</div>'
    )


def button(url: str, label: str, background: str) -> str:
    """Call-to-action link."""
    return (
        '<div style="margin: 20px 0; text-align: center;">'
        f'<a href="{escape_html(url)}" style="background: {background}; color: white; '
        'padding: 12px 24px; text-decoration: none; border-radius: 5px; font-weight: bold; '
        f'display: inline-block;">{escape_html(label)}</a></div>'
    )


def image(url: str | None, alt: str, style: str = "max-width: 100%; height: auto; border-radius: 8px;") -> str:
    """Image tag, or nothing when there is no URL."""
    if not url:
        return ""
    return f'<img src="{escape_html(url)}" alt="{escape_html(alt)}" style="{style}"/>'


def footer(lines: list[tuple[str, str]]) -> str:
    """Small grey block of (label, value) lines; values are escaped."""
    body = "".join(field_line(label, value) for label, value in lines)
    return (
        '<div style="margin-top: 15px; padding: 10px; background: #f9f9f9; '
        f'border-radius: 5px; font-size: 0.9em; color: #666;">{body}</div>'
    )
