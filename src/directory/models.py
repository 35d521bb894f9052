"""Core data model for the directory search engine.

Provider records live in a pandas DataFrame with fixed, human-readable column
names. The DataFrame index labels are used as record keys: they are assigned
once when the dataset is loaded and every filter in this package preserves
them, so a key always refers to the same provider.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Mapping, Optional, Protocol, Tuple

import numpy as np
import pandas as pd

# Column names of the normalized dataset
WEBSITE = "Website"
SERVICE_NAME = "Service Name"
STREET_ADDRESS = "Street Address"
LATITUDE = "Latitude"
LONGITUDE = "Longitude"
PHONE_NUMBER = "Phone Number"
EMAIL = "Email"
PROGRAM_TYPE = "Program Type"
DISTANCE_KM = "Distance (km)"

DIRECTORY_COLUMNS = [
    WEBSITE,
    SERVICE_NAME,
    STREET_ADDRESS,
    LATITUDE,
    LONGITUDE,
    PHONE_NUMBER,
    EMAIL,
    PROGRAM_TYPE,
]

# Fields searched by the keyword filter. Part of the search contract.
KEYWORD_FIELDS = (SERVICE_NAME, STREET_ADDRESS)

RADIUS_OPTIONS_KM = (5, 10, 20, 50)
DEFAULT_RADIUS_KM = 10
NEAREST_FALLBACK_SIZE = 5

LatLng = Tuple[float, float]


class Facet(Enum):
    """Ownership-class facet applied on top of either search mode."""

    ALL = "all"
    PUBLIC = "Public"
    PRIVATE = "Private"

    @classmethod
    def parse(cls, value: Any) -> "Facet":
        """Accept a Facet or any case variant of 'all' / 'public' / 'private'."""
        if isinstance(value, Facet):
            return value
        text = str(value).strip().lower()
        for facet in cls:
            if facet.value.lower() == text:
                return facet
        raise ValueError(f"Unknown facet: {value!r}")

    @property
    def label(self) -> str:
        return "All" if self is Facet.ALL else self.value


class SearchMode(Enum):
    PROXIMITY = "proximity"
    KEYWORD = "keyword"


def is_valid_position(lat: Any, lng: Any) -> bool:
    """Return True when lat/lng are finite numbers inside the WGS84 ranges."""
    try:
        lat_f = float(lat)
        lng_f = float(lng)
    except (TypeError, ValueError):
        return False
    if not (math.isfinite(lat_f) and math.isfinite(lng_f)):
        return False
    return -90.0 <= lat_f <= 90.0 and -180.0 <= lng_f <= 180.0


def valid_position_mask(records: pd.DataFrame) -> pd.Series:
    """Vectorised version of :func:`is_valid_position` over a DataFrame."""
    if records.empty or LATITUDE not in records.columns or LONGITUDE not in records.columns:
        return pd.Series(False, index=records.index, dtype=bool)

    lat = pd.to_numeric(records[LATITUDE], errors="coerce").to_numpy(dtype=float)
    lng = pd.to_numeric(records[LONGITUDE], errors="coerce").to_numpy(dtype=float)
    with np.errstate(invalid="ignore"):
        mask = np.isfinite(lat) & np.isfinite(lng) & (np.abs(lat) <= 90.0) & (np.abs(lng) <= 180.0)
    return pd.Series(mask, index=records.index, dtype=bool)


def positioned(records: pd.DataFrame) -> pd.DataFrame:
    """Return only the rows that have a usable position."""
    return records[valid_position_mask(records)]


def empty_directory_frame(with_distance: bool = False) -> pd.DataFrame:
    columns = DIRECTORY_COLUMNS + ([DISTANCE_KM] if with_distance else [])
    return pd.DataFrame(columns=columns)


def _text(row: Mapping[str, Any], column: str) -> str:
    value = row.get(column, "")
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return str(value)


@dataclass(frozen=True)
class ProviderRecord:
    """Read-only view of one directory row."""

    key: Any
    website: str
    service_name: str
    street_address: str
    latitude: Optional[float]
    longitude: Optional[float]
    phone_number: str
    email: str
    program_type: str
    distance_km: Optional[float] = None

    @classmethod
    def from_row(cls, key: Any, row: Mapping[str, Any]) -> "ProviderRecord":
        lat = row.get(LATITUDE)
        lng = row.get(LONGITUDE)
        has_position = is_valid_position(lat, lng)
        distance = row.get(DISTANCE_KM)
        distance_km = float(distance) if distance is not None and not pd.isna(distance) else None
        if distance_km is not None and not math.isfinite(distance_km):
            distance_km = None
        return cls(
            key=key,
            website=_text(row, WEBSITE),
            service_name=_text(row, SERVICE_NAME),
            street_address=_text(row, STREET_ADDRESS),
            latitude=float(lat) if has_position else None,
            longitude=float(lng) if has_position else None,
            phone_number=_text(row, PHONE_NUMBER),
            email=_text(row, EMAIL),
            program_type=_text(row, PROGRAM_TYPE),
            distance_km=distance_km,
        )

    @property
    def has_position(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def position(self) -> Optional[LatLng]:
        if not self.has_position:
            return None
        return (self.latitude, self.longitude)

    @property
    def service_path(self) -> Optional[str]:
        """Relative link to the public service page, if the record has a slug."""
        if not self.website:
            return None
        return f"/service/{self.website}"


def record_at(records: pd.DataFrame, key: Any) -> ProviderRecord:
    """Build a :class:`ProviderRecord` for the row with index label ``key``."""
    return ProviderRecord.from_row(key, records.loc[key].to_dict())


@dataclass(frozen=True)
class SearchQuery:
    """The user's current search intent."""

    mode: SearchMode = SearchMode.PROXIMITY
    origin: Optional[LatLng] = None
    radius_km: float = DEFAULT_RADIUS_KM
    keyword: str = ""
    facet: Facet = Facet.ALL

    @property
    def drives_proximity(self) -> bool:
        """True when the origin, not the keyword, drives the base result set."""
        return self.mode is SearchMode.PROXIMITY and self.origin is not None

    def with_changes(self, **changes: Any) -> "SearchQuery":
        return replace(self, **changes)


class Region(Protocol):
    """Anything that can answer a point-containment question."""

    def contains(self, lat: float, lng: float) -> bool:
        ...


@dataclass(frozen=True)
class Viewport:
    """The map's visible region plus its zoom level."""

    region: Region
    zoom: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.region.contains(lat, lng)
