"""Mobile-money phone number validation and formatting."""

import re
from typing import Optional, Sequence

# Rwanda MoMo numbering: +250 followed by 9 digits, or a local 07XXXXXXXX number
DEFAULT_PHONE_PATTERNS = (r"^\+?250\d{9}$", r"^07\d{8}$")

DEFAULT_PHONE_EXAMPLE = "0788123456"


def clean_phone(phone: Optional[str]) -> str:
    """Strip all whitespace from a phone number."""
    return re.sub(r"\s", "", phone or "")


def validate_momo_phone(
    phone: Optional[str],
    patterns: Sequence[str] = DEFAULT_PHONE_PATTERNS,
    example: str = DEFAULT_PHONE_EXAMPLE,
) -> Optional[str]:
    """Validate a payer phone number.

    Args:
        phone: Raw user input
        patterns: Accepted regular expressions, matched after whitespace removal
        example: Example number quoted in the error message

    Returns:
        None if valid, otherwise a user-facing error message
    """
    cleaned = clean_phone(phone)
    if not cleaned:
        return "Phone number is required"
    if any(re.match(pattern, cleaned) for pattern in patterns):
        return None
    return f"Please enter a valid phone number (e.g. {example})"


def format_phone_for_store(phone: str) -> str:
    """Normalize a validated phone number for the Transaction Store.

    Whitespace is removed; international numbers keep their "+" prefix and
    local numbers keep their leading zero.
    """
    cleaned = clean_phone(phone)
    if cleaned.startswith("+") or cleaned.startswith("0") or cleaned.startswith("250"):
        return cleaned
    return "0" + cleaned


def mask_phone(phone: Optional[str]) -> str:
    """Mask all but the last three digits for logging.

    Examples:
        >>> mask_phone("0788123456")
        '*******456'
    """
    cleaned = clean_phone(phone)
    if len(cleaned) <= 3:
        return "*" * len(cleaned)
    return "*" * (len(cleaned) - 3) + cleaned[-3:]
