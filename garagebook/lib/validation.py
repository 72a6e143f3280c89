"""
Field grammars and canonical forms for booking input.

Each normalizer takes raw user input and returns the stored form, or raises
ValueError with a human-readable reason. They are plain functions so the
pydantic request schemas can call them from field validators.
"""
import math
import re
from typing import Optional, Tuple


# Current UK registration: two letters, two digits, three letters
PLATE_PATTERN = re.compile(r"^[A-Z]{2}[0-9]{2}[A-Z]{3}$")

# Outward code (area + district) followed by inward code (sector + unit)
POSTCODE_PATTERN = re.compile(r"^([A-Z]{1,2}[0-9][A-Z0-9]?)\s?([0-9][A-Z]{2})$")

# Domestic 0... or international +44... with 9-10 further digits
PHONE_PATTERN = re.compile(r"^(?:0|\+44)[0-9]{9,10}$")

EMAIL_PATTERN = re.compile(r"^[a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,}$")

_PHONE_SEPARATORS = re.compile(r"[\s\-.()]")
_WHITESPACE = re.compile(r"\s")


def normalize_plate(value: str) -> str:
    """
    Canonical vehicle plate: uppercase with no whitespace.

    Input may carry a single interior space ("ab12 cde" -> "AB12CDE").
    """
    if value is None or not value.strip():
        raise ValueError("vehicle plate is required")

    stripped = value.strip()
    if len(_WHITESPACE.findall(stripped)) > 1:
        raise ValueError("vehicle plate may contain at most one space")

    plate = _WHITESPACE.sub("", stripped).upper()
    if not PLATE_PATTERN.match(plate):
        raise ValueError(
            f"'{value}' is not a valid registration (expected format AB12 CDE)"
        )
    return plate


def normalize_postcode(value: str) -> str:
    """Canonical postcode: uppercase, single space before the inward code."""
    compact = _WHITESPACE.sub("", value or "").upper()
    match = POSTCODE_PATTERN.match(compact)
    if not match:
        raise ValueError(f"'{value}' is not a valid postcode")
    return f"{match.group(1)} {match.group(2)}"


def normalize_phone(value: str) -> str:
    """Canonical phone: domestic form, separators removed ("+44 7123..." -> "07123...")."""
    phone = _PHONE_SEPARATORS.sub("", value or "")
    if not PHONE_PATTERN.match(phone):
        raise ValueError(f"'{value}' is not a valid UK phone number")
    if phone.startswith("+44"):
        phone = "0" + phone[3:]
    return phone


def normalize_email(value: str) -> str:
    email = (value or "").strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValueError(f"'{value}' is not a valid email address")
    return email


def validate_coordinates(
    lat: Optional[float],
    lng: Optional[float],
) -> Tuple[Optional[float], Optional[float]]:
    """
    Coordinates are optional but must be supplied together.

    Returns:
        (lat, lng) unchanged when valid, or (None, None)
    """
    if lat is None and lng is None:
        return None, None
    if lat is None or lng is None:
        raise ValueError("lat and lng must be supplied together")
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise ValueError("coordinates must be finite numbers")
    if not -90.0 <= lat <= 90.0:
        raise ValueError(f"latitude {lat} is out of range")
    if not -180.0 <= lng <= 180.0:
        raise ValueError(f"longitude {lng} is out of range")
    return lat, lng
