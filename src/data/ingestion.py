"""
Data Ingestion Module - loads the services directory once per session.

The directory API returns the whole dataset as a JSON array of service
records; there is no pagination or server-side filtering. For development a
local CSV/JSON/Parquet snapshot can be configured instead. Either way the
records are normalized into the canonical directory DataFrame and cached
with Streamlit's cache system.

Key Features:
- Single HTTP fetch with a request timeout (``requests``)
- Local snapshot fallback for offline development
- Streamlit cache integration with manual refresh
- Data quality summary of the loaded dataset
"""

import logging
from io import BytesIO
from typing import Any, Callable, Dict, Optional

import pandas as pd
import requests
import streamlit as st

from src.data.io_utils import load_dataframe
from src.utils.cleaning import normalize_directory_records, validate_directory_data
from src.utils.config import get_directory_config

logger = logging.getLogger(__name__)


class DirectoryDataError(Exception):
    """The directory dataset could not be fetched or parsed."""


class DirectoryDataLoader:
    """
    Fetch the full services directory and normalize it.

    The API URL takes precedence; the local path is used when no URL is
    configured. Fetch and parse failures raise :class:`DirectoryDataError`
    so the page can show a single friendly message.

    Usage:
        loader = DirectoryDataLoader(api_url="https://.../api/directory/stores")
        df = loader.load()
    """

    def __init__(
        self,
        api_url: str = "",
        local_data_path: str = "",
        request_timeout: float = 10,
        http_get: Callable[..., Any] = requests.get,
    ):
        self.api_url = api_url
        self.local_data_path = local_data_path
        self.request_timeout = request_timeout
        self._http_get = http_get

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> "DirectoryDataLoader":
        config = config or get_directory_config()
        return cls(
            api_url=config.get("api_url", ""),
            local_data_path=config.get("local_data_path", ""),
            request_timeout=float(config.get("request_timeout", 10)),
        )

    @property
    def source_description(self) -> str:
        if self.api_url:
            return self.api_url
        if self.local_data_path:
            return self.local_data_path
        return "unconfigured"

    def _fetch_records(self) -> pd.DataFrame:
        try:
            response = self._http_get(self.api_url, timeout=self.request_timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.Timeout as e:
            raise DirectoryDataError(f"Directory request timed out after {self.request_timeout}s: {e}") from e
        except ValueError as e:
            raise DirectoryDataError(f"Directory response is not valid JSON: {e}") from e
        except requests.RequestException as e:
            raise DirectoryDataError(f"Directory request failed (network or HTTP error): {e}") from e

        if isinstance(payload, dict) and "error" in payload:
            raise DirectoryDataError(f"Directory service reported an error: {payload['error']}")
        if not isinstance(payload, list):
            raise DirectoryDataError(f"Expected a list of services, got {type(payload).__name__}")

        logger.info(f"Fetched {len(payload)} services from {self.api_url}")
        return pd.DataFrame(payload)

    def _read_local(self) -> pd.DataFrame:
        # FileNotFoundError propagates: a missing snapshot is a configuration mistake
        try:
            return load_dataframe(self.local_data_path)
        except (ValueError, TypeError) as e:
            raise DirectoryDataError(f"Could not read directory data from {self.local_data_path}: {e}") from e

    def load(self) -> pd.DataFrame:
        """
        Load and normalize the directory dataset.

        Returns:
            Canonical directory DataFrame (index labels are the record keys)

        Raises:
            DirectoryDataError: If the dataset cannot be fetched or parsed
            FileNotFoundError: If the configured local snapshot does not exist
        """
        if self.api_url:
            raw = self._fetch_records()
        elif self.local_data_path:
            raw = self._read_local()
        else:
            raise DirectoryDataError(
                "No directory data source configured. Set `directory.api_url` or "
                "`directory.local_data_path` in `.streamlit/secrets.toml`."
            )

        df = normalize_directory_records(raw)
        quality = validate_directory_data(df)
        for warning in quality["warnings"]:
            logger.warning(f"Directory data quality: {warning}")
        return df


def load_directory_bytes(data_bytes: bytes, filename: Optional[str] = None) -> pd.DataFrame:
    """Normalize a dataset uploaded or downloaded as raw bytes."""
    try:
        raw = load_dataframe(BytesIO(data_bytes), filename=filename)
    except (ValueError, TypeError) as e:
        raise DirectoryDataError(f"Could not read directory data from {filename or 'upload'}: {e}") from e
    return normalize_directory_records(raw)


@st.cache_data(ttl=3600, show_spinner=False)
def load_directory_data(api_url: str = "", local_data_path: str = "", request_timeout: float = 10) -> pd.DataFrame:
    """
    Load the directory into Streamlit cache.

    Arguments are part of the cache key, so changing the configured source
    reloads the data.
    """
    loader = DirectoryDataLoader(api_url=api_url, local_data_path=local_data_path, request_timeout=request_timeout)
    return loader.load()


def refresh_data_cache():
    """
    Clear Streamlit data cache so the next load fetches the directory again.
    """
    try:
        st.cache_data.clear()
    except Exception as e:
        logger.warning(f"Could not clear Streamlit data cache: {e}")
    logger.info("Data cache cleared - next load will fetch a fresh directory")
