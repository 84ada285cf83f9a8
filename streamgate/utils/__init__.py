"""Utility functions and helpers for the engine."""

from streamgate.utils.access_period import (
    MILLIS_PER_DAY,
    MILLIS_PER_HOUR,
    MILLIS_PER_SECOND,
    access_period_days,
    access_period_to_timedelta,
    format_access_period,
    parse_access_period,
    validate_access_period,
)
from streamgate.utils.phone import (
    clean_phone,
    format_phone_for_store,
    mask_phone,
    validate_momo_phone,
)

__all__ = [
    # Time units
    "MILLIS_PER_SECOND",
    "MILLIS_PER_HOUR",
    "MILLIS_PER_DAY",
    # Access period parsing
    "parse_access_period",
    "access_period_to_timedelta",
    "access_period_days",
    "validate_access_period",
    "format_access_period",
    # Phone numbers
    "clean_phone",
    "validate_momo_phone",
    "format_phone_for_store",
    "mask_phone",
]
