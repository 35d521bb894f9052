"""
Configuration and secrets management for the Cardiac Services Directory.

Settings are read from Streamlit's secrets (``.streamlit/secrets.toml``) with
sensible defaults for every key, so the app runs without any secrets file.
The search engine itself never imports Streamlit: the page builds its
``SearchSettings`` and ``ClusterOptions`` from the dictionaries returned here.

Usage:
    from src.utils.config import get_search_config, get_directory_config

    search_config = get_search_config()
    radius_options = search_config["radius_options_km"]

    directory_config = get_directory_config()
    api_url = directory_config["api_url"]

Example ``secrets.toml``::

    [directory]
    api_url = "https://directory.example.org/api/services"

    [search]
    default_radius_km = 20
"""

import logging
from typing import Any, Dict

import streamlit as st

logger = logging.getLogger(__name__)

DEFAULT_RADIUS_OPTIONS_KM = [5, 10, 20, 50]
DEFAULT_INITIAL_CENTER = [-25.2744, 133.7751]
KNOWN_ENVIRONMENTS = ("development", "staging", "production")


def get_secret(key_path: str, default: Any = None) -> Any:
    """
    Safely retrieve a secret from Streamlit's secrets management.

    Args:
        key_path: Dot-notation path to the secret (e.g., 'directory.api_url')
        default: Default value if secret is not found

    Returns:
        The secret value or default if not found

    Examples:
        >>> get_secret('directory.api_url', '')
        >>> get_secret('search.keyword_debounce_ms', 300)
        >>> get_secret('app.debug_mode', False)
    """
    try:
        keys = key_path.split(".")
        value = st.secrets

        for key in keys:
            try:
                value = value[key]
            except Exception:
                return default

        return value
    except Exception as e:
        logger.warning(f"Failed to retrieve secret '{key_path}': {e}")
        return default


def get_directory_config() -> Dict[str, Any]:
    """
    Get the dataset source configuration.

    Returns:
        Dictionary with the directory API URL, request timeout and an optional
        local dataset path used instead of the API during development.
    """
    return {
        "api_url": get_secret("directory.api_url", ""),
        "request_timeout": get_secret("directory.request_timeout", 10),
        "local_data_path": get_secret("directory.local_data_path", ""),
    }


def get_api_config(api_name: str) -> Dict[str, Any]:
    """
    Get configuration for an external service.

    Args:
        api_name: Name of the service ('geocoding')

    Returns:
        Dictionary containing the service configuration
    """
    if api_name == "geocoding":
        return {
            "nominatim_user_agent": get_secret("geocoding.nominatim_user_agent", "cardiac_services_directory"),
            "country_codes": get_secret("geocoding.country_codes", "au"),
            "request_timeout": get_secret("geocoding.request_timeout", 10),
            "rate_limit_delay": get_secret("geocoding.rate_limit_delay", 1.0),
            "max_retries": get_secret("geocoding.max_retries", 3),
        }
    else:
        return {}


def get_search_config() -> Dict[str, Any]:
    """
    Get search behaviour: radius choices, debounce, fallback size and map framing.

    Returns:
        Dictionary accepted by ``SearchSettings.from_config``
    """
    return {
        "radius_options_km": list(get_secret("search.radius_options_km", DEFAULT_RADIUS_OPTIONS_KM)),
        "default_radius_km": get_secret("search.default_radius_km", 10),
        "keyword_debounce_ms": get_secret("search.keyword_debounce_ms", 300),
        "nearest_fallback_size": get_secret("search.nearest_fallback_size", 5),
        "initial_center": list(get_secret("search.initial_center", DEFAULT_INITIAL_CENTER)),
        "initial_zoom": get_secret("search.initial_zoom", 4),
        "search_zoom": get_secret("search.search_zoom", 12),
        "focus_zoom": get_secret("search.focus_zoom", 15),
    }


def get_cluster_config() -> Dict[str, Any]:
    """
    Get marker clustering parameters.

    Returns:
        Dictionary accepted by ``ClusterOptions.from_config``
    """
    return {
        "grid_size": get_secret("clustering.grid_size", 60),
        "max_zoom": get_secret("clustering.max_zoom", 15),
        "minimum_cluster_size": get_secret("clustering.minimum_cluster_size", 2),
    }


def get_map_config() -> Dict[str, Any]:
    """
    Get the rendered map size, used to turn centre/zoom into a visible region.
    """
    return {
        "width_px": get_secret("map.width_px", 900),
        "height_px": get_secret("map.height_px", 600),
        "fit_padding_px": get_secret("map.fit_padding_px", 40),
    }


def get_app_config() -> Dict[str, Any]:
    """
    Get general application configuration.

    Returns:
        Dictionary containing app configuration
    """
    return {
        "environment": get_secret("app.environment", "production"),
        "debug_mode": get_secret("app.debug_mode", False),
        "log_level": get_secret("app.log_level", "INFO"),
    }


def validate_configuration() -> Dict[str, str]:
    """
    Validate the application configuration and return any warnings or errors.

    Returns:
        Dictionary of component name to issue description (empty when valid)
    """
    issues = {}

    search_config = get_search_config()
    try:
        radius_options = [float(r) for r in search_config["radius_options_km"]]
        if not radius_options or any(r <= 0 for r in radius_options):
            issues["search"] = "Radius options must be positive numbers"
        elif float(search_config["default_radius_km"]) not in radius_options:
            issues["search"] = f"Default radius {search_config['default_radius_km']} km is not one of the radius options"
        elif float(search_config["keyword_debounce_ms"]) <= 0:
            issues["search"] = "Keyword debounce must be a positive number of milliseconds"
        elif int(search_config["nearest_fallback_size"]) < 1:
            issues["search"] = "Nearest fallback size must be at least 1"
    except (TypeError, ValueError) as e:
        issues["search"] = f"Search settings are not numeric: {e}"

    cluster_config = get_cluster_config()
    try:
        if int(cluster_config["grid_size"]) <= 0:
            issues["clustering"] = "Cluster grid size must be positive"
        elif int(cluster_config["minimum_cluster_size"]) < 1:
            issues["clustering"] = "Minimum cluster size must be at least 1"
    except (TypeError, ValueError) as e:
        issues["clustering"] = f"Clustering settings are not numeric: {e}"

    directory_config = get_directory_config()
    if not directory_config["api_url"] and not directory_config["local_data_path"]:
        issues["directory"] = "Neither a directory API URL nor a local data path is configured"
    elif directory_config["api_url"] and not str(directory_config["api_url"]).startswith(("http://", "https://")):
        issues["directory"] = "Directory API URL format may be invalid"

    app_config = get_app_config()
    if app_config["environment"] not in KNOWN_ENVIRONMENTS:
        issues["app"] = f"Unknown environment: {app_config['environment']}"

    return issues
