"""Validation utilities for search input, coordinates, and phone numbers.

Small, self-contained helpers used across the application and tests.
"""

import re
from typing import Tuple

AU_POSTCODE = re.compile(r"^\d{4}$")


def validate_location_input(text: str) -> Tuple[bool, str]:
    """
    Validate the free-text suburb/postcode entered for a proximity search.

    Args:
        text: Suburb name, postcode, or "suburb state postcode"

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not text or not text.strip():
        return False, "Enter a suburb or postcode"

    cleaned = text.strip()
    if cleaned.isdigit() and not AU_POSTCODE.match(cleaned):
        return False, "Postcodes must be 4 digits"
    if len(cleaned) < 3:
        return False, "Enter at least 3 characters"

    return True, "Valid location"


def validate_coordinates(lat: float, lon: float) -> Tuple[bool, str]:
    """
    Validate latitude and longitude coordinates.

    Args:
        lat: Latitude value
        lon: Longitude value

    Returns:
        Tuple of (is_valid, error_message)
    """
    if isinstance(lat, bool) or isinstance(lon, bool):
        return False, "Coordinates must be numeric"
    if not isinstance(lat, (int, float)) or not isinstance(lon, (int, float)):
        return False, "Coordinates must be numeric"

    if lat != lat or lon != lon:
        return False, "Coordinates must not be NaN"

    if not (-90 <= lat <= 90):
        return False, "Latitude must be between -90 and 90"

    if not (-180 <= lon <= 180):
        return False, "Longitude must be between -180 and 180"

    return True, "Valid coordinates"


def validate_phone_number(phone: str) -> Tuple[bool, str]:
    """
    Validate an Australian phone number.

    Args:
        phone: Phone number string

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not phone or not phone.strip():
        return True, "Phone number is optional"

    # Remove common formatting
    cleaned = re.sub(r"[^\d]", "", phone)
    if cleaned.startswith("61") and len(cleaned) == 11:
        cleaned = "0" + cleaned[2:]

    if len(cleaned) == 10 and cleaned.startswith(("0", "13", "18")):
        return True, "Valid phone number"
    elif len(cleaned) == 6 and cleaned.startswith("13"):
        return True, "Valid phone number"
    else:
        return False, "Phone number must be 10 digits (e.g. 02 9876 5432) or a 13 number"
