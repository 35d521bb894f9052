"""Suburb/postcode geocoding with caching and rate limiting."""
import logging
from typing import Any, Callable, Optional, Tuple

import streamlit as st
from geopy.exc import GeocoderServiceError, GeocoderTimedOut, GeocoderUnavailable
from geopy.extra.rate_limiter import RateLimiter
from geopy.geocoders import Nominatim

from src.utils.config import get_api_config
from src.utils.validation import validate_coordinates

logger = logging.getLogger(__name__)

# Cached factory
_RATE_LIMITED_GEOCODER: Optional[Callable[..., Any]] = None


def _get_rate_limited_geocoder() -> Callable[..., Any]:
    global _RATE_LIMITED_GEOCODER
    if _RATE_LIMITED_GEOCODER is not None:
        return _RATE_LIMITED_GEOCODER

    config = get_api_config("geocoding")
    geolocator = Nominatim(user_agent=config["nominatim_user_agent"], timeout=config["request_timeout"])
    _RATE_LIMITED_GEOCODER = RateLimiter(
        geolocator.geocode,
        min_delay_seconds=float(config["rate_limit_delay"]),
        max_retries=int(config["max_retries"]),
        swallow_exceptions=False,
    )
    return _RATE_LIMITED_GEOCODER


def reset_geocoder() -> None:
    """Forget the cached geocoder so the next lookup re-reads configuration."""
    global _RATE_LIMITED_GEOCODER
    _RATE_LIMITED_GEOCODER = None


def geocode_place(text: str, geocode_fn: Optional[Callable[..., Any]] = None) -> Optional[Tuple[float, float]]:
    """Resolve a suburb or postcode to ``(lat, lng)``.

    Lookups are restricted to the configured country codes. Returns None when
    nothing matches. Geocoder errors propagate so the page can explain them.
    """
    query = (text or "").strip()
    if not query:
        return None

    geocode_fn = geocode_fn or _get_rate_limited_geocoder()
    country_codes = get_api_config("geocoding")["country_codes"]
    location = geocode_fn(query, country_codes=country_codes, exactly_one=True)
    if not location:
        logger.info(f"No geocoding match for '{query}'")
        return None

    lat, lng = float(location.latitude), float(location.longitude)
    is_valid, message = validate_coordinates(lat, lng)
    if not is_valid:
        logger.warning(f"Geocoder returned unusable coordinates for '{query}' ({lat}, {lng}): {message}")
        return None
    return lat, lng


@st.cache_data(ttl=60 * 60 * 24, show_spinner=False)
def cached_geocode_place(text: str) -> Optional[Tuple[float, float]]:
    """Cached :func:`geocode_place` for the Streamlit page."""
    return geocode_place(text)


def geocode_place_with_feedback(text: str) -> Optional[Tuple[float, float]]:
    """Geocode for the page, reporting failures with ``st.warning``."""
    try:
        return cached_geocode_place(text)
    except (GeocoderTimedOut, GeocoderServiceError, GeocoderUnavailable) as e:
        logger.warning(f"Geocoding failed for '{text}': {e}")
        st.warning(handle_geocoding_error(text, e))
        return None


def handle_geocoding_error(address: str, error: Exception) -> str:
    et = str(error).lower()
    if isinstance(error, GeocoderTimedOut) or "timeout" in et or "timed out" in et:
        return "⏱️ **Location Lookup Timeout**: The location service is taking too long. Please try again in a moment."
    if "rate" in et or "limit" in et or "429" in et:
        return "🚦 **Rate Limited**: Too many location lookups. Please wait a moment and try again."
    if "network" in et or "connection" in et:
        return "🌐 **Network Error**: Cannot connect to the location service. Please check your internet connection."
    if isinstance(error, GeocoderUnavailable) or "unavailable" in et or "service" in et:
        return "🔌 **Service Unavailable**: The location service is temporarily unavailable. Please try again later."
    return f"❌ **Location Error**: Unable to find '{address}'. (Error: {type(error).__name__})"
