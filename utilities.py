# utilities.py

import logging
from datetime import datetime
from typing import Any, Dict, Optional
from urllib.parse import quote

logger = logging.getLogger("watchbot.utilities")
logger.setLevel(logging.INFO)

# Characters JavaScript's encodeURIComponent leaves alone
URI_COMPONENT_SAFE = "-_.!~*'()"


def encode_uri_component(value: str) -> str:
    """Percent-encode ``value`` the way encodeURIComponent does."""
    return quote(value, safe=URI_COMPONENT_SAFE)


def minutes_to_hours_minutes(minutes: Optional[int]) -> str:
    """Converts a runtime in minutes to e.g. ``2h 15m``."""
    if not minutes:
        return "N/A"
    if not isinstance(minutes, int):
        raise TypeError("Minutes must be an integer.")
    if minutes < 0:
        raise ValueError("Minutes must be non-negative.")

    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m"


def format_currency(amount: Optional[float]) -> str:
    """Whole US dollars with thousands separators, ``N/A`` for 0 or missing."""
    if not amount:
        return "N/A"
    return f"${amount:,.0f}"


def format_date(date_string: Optional[str]) -> str:
    """Turn a TMDB ``YYYY-MM-DD`` date into ``Month D, YYYY``."""
    if not date_string:
        return "N/A"
    try:
        parsed = datetime.strptime(date_string, "%Y-%m-%d")
    except ValueError:
        logger.debug(f"Unparseable date: {date_string!r}")
        return date_string
    return f"{parsed.strftime('%B')} {parsed.day}, {parsed.year}"


def release_year(item: Dict[str, Any]) -> str:
    """Year part of a movie's release date or a show's first air date."""
    date_string = item.get("release_date") or item.get("first_air_date") or ""
    return date_string.split("-")[0]


def truncate(text: Optional[str], length: int) -> str:
    if not text:
        return ""
    return text if len(text) <= length else text[:length] + "..."
