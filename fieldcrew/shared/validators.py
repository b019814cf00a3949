"""Shared validation utilities"""

import re
import uuid
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

HHMM_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$|^24:00$")


def validate_uuid(value: str) -> bool:
    """Validate UUID format"""
    try:
        uuid.UUID(value)
        return True
    except (ValueError, AttributeError, TypeError):
        return False


def validate_hhmm(value: str) -> str:
    """
    Validate a zero-padded 24-hour HH:MM time.

    "24:00" is accepted as the end of a full day. Longer stored values
    such as "09:00:00" are truncated to HH:MM first.

    Raises:
        ValueError: If the time is not in HH:MM format
    """
    if not isinstance(value, str):
        raise ValueError("Time must be a string in HH:MM format")

    value = value.strip()[:5]
    if not HHMM_PATTERN.match(value):
        raise ValueError(f"Invalid time '{value}', expected HH:MM (24-hour)")

    return value


def validate_timezone(name: Optional[str], default: str = "UTC") -> ZoneInfo:
    """
    Resolve an IANA timezone name.

    Empty names fall back to `default`.

    Raises:
        ValueError: If the timezone is unknown
    """
    try:
        return ZoneInfo(name or default)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {name}") from e


def validate_us_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize US phone number to E.164 format.

    Args:
        phone: Phone number string in various formats

    Returns:
        Normalized phone number in E.164 format (+1XXXXXXXXXX)

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return phone

    # Remove all non-digit characters
    digits = re.sub(r"\D", "", phone)

    # Handle +1 prefix
    if digits.startswith("1") and len(digits) == 11:
        digits = digits[1:]

    # US phone numbers should have 10 digits
    if len(digits) != 10:
        raise ValueError("Phone number must be 10 digits for US numbers")

    return f"+1{digits}"


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email
