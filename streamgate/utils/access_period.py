"""Access period parsing utilities.

Parses the compact period strings used by the storefront ("24h", "7d",
"30d", "365d") and converts them to milliseconds for expiry calculations.
"""

import re
from datetime import timedelta

# Milliseconds in common time units
MILLIS_PER_SECOND = 1000
MILLIS_PER_MINUTE = 60 * MILLIS_PER_SECOND
MILLIS_PER_HOUR = 60 * MILLIS_PER_MINUTE
MILLIS_PER_DAY = 24 * MILLIS_PER_HOUR
MILLIS_PER_WEEK = 7 * MILLIS_PER_DAY

_PERIOD_PATTERN = re.compile(r"^(\d+)([HDWY])$")

_PERIOD_LABELS = {
    "24h": "24 Hours",
    "7d": "7 Days",
    "30d": "30 Days",
    "90d": "90 Days",
    "180d": "6 Months",
    "365d": "1 Year",
}


def parse_access_period(period: str) -> int:
    """Parse an access period string to milliseconds.

    Supported formats (case-insensitive):
    - [n]h - hours (e.g., 24h)
    - [n]d - days (e.g., 7d, 30d)
    - [n]w - weeks (e.g., 2w)
    - [n]y - years, approximated as 365 days (e.g., 1y)

    Args:
        period: Period string (e.g., "24h", "30d")

    Returns:
        Duration in milliseconds

    Raises:
        ValueError: If the period string is invalid or unsupported

    Examples:
        >>> parse_access_period("24h")
        86400000

        >>> parse_access_period("7d")
        604800000
    """
    if not period or not isinstance(period, str):
        raise ValueError("Period must be a non-empty string")

    match = _PERIOD_PATTERN.match(period.strip().upper())
    if not match:
        raise ValueError(
            f"Unsupported period format: '{period}'. "
            "Supported formats: [n]h, [n]d, [n]w, [n]y"
        )

    number_str, unit = match.groups()
    number = int(number_str)

    if number <= 0:
        raise ValueError(f"Period number must be positive, got: {number}")

    if unit == "H":
        return number * MILLIS_PER_HOUR
    elif unit == "D":
        return number * MILLIS_PER_DAY
    elif unit == "W":
        return number * MILLIS_PER_WEEK
    else:
        return number * 365 * MILLIS_PER_DAY


def access_period_to_timedelta(period: str) -> timedelta:
    """Convert an access period string to a timedelta.

    Args:
        period: Period string (e.g., "24h", "30d")

    Returns:
        timedelta representing the duration
    """
    return timedelta(milliseconds=parse_access_period(period))


def access_period_days(period: str) -> float:
    """Length of a period in (possibly fractional) days."""
    return parse_access_period(period) / MILLIS_PER_DAY


def validate_access_period(period: str) -> bool:
    """Check if a period string is valid.

    Returns:
        True if valid, False otherwise
    """
    try:
        parse_access_period(period)
        return True
    except ValueError:
        return False


def format_access_period(period: str) -> str:
    """Human-readable label for a period string.

    Known storefront periods use their display labels; anything else is
    rendered from its parsed length.

    Examples:
        >>> format_access_period("30d")
        '30 Days'

        >>> format_access_period("48h")
        '2 Days'
    """
    label = _PERIOD_LABELS.get(period.strip().lower())
    if label:
        return label

    millis = parse_access_period(period)
    if millis % MILLIS_PER_DAY == 0:
        days = millis // MILLIS_PER_DAY
        return f"{days} Day" if days == 1 else f"{days} Days"
    hours = millis // MILLIS_PER_HOUR
    return f"{hours} Hour" if hours == 1 else f"{hours} Hours"
