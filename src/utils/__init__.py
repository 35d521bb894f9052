"""Utilities package for the Cardiac Services Directory.

Re-export stable helper functions from the utility submodules.
"""
# This module intentionally re-exports symbols from submodules. Flake8 F401
# warnings are expected for re-exported names and are silenced locally.
# flake8: noqa: F401

from .cleaning import safe_numeric_conversion  # noqa: F401 (re-exported API)
from .cleaning import normalize_directory_records, validate_and_clean_coordinates, validate_directory_data
from .formatting import (
    format_distance,
    format_phone_number,
    handle_streamlit_error,
    list_window_start,
    service_card_fields,
)
from .geocoding import cached_geocode_place, geocode_place, handle_geocoding_error  # noqa: F401
from .validation import validate_coordinates, validate_location_input, validate_phone_number

__all__ = [
    "cached_geocode_place",
    "format_distance",
    "format_phone_number",
    "geocode_place",
    "handle_geocoding_error",
    "handle_streamlit_error",
    "list_window_start",
    "normalize_directory_records",
    "service_card_fields",
    "validate_and_clean_coordinates",
    "validate_coordinates",
    "validate_directory_data",
    "validate_location_input",
    "validate_phone_number",
]
