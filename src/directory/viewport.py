"""Viewport windowing: which results are inside the visible map region.

The windower only depends on the :class:`~src.directory.models.Region`
capability (``contains(lat, lng)``). ``BoundingBox`` is the concrete region
used by the bundled map surface, and ``fit_bounds`` / ``region_for_view``
convert between a framed set of points and a centre/zoom pair.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

import numpy as np
import pandas as pd

from src.directory.models import LATITUDE, LONGITUDE, LatLng, Viewport, valid_position_mask
from src.directory.projection import TILE_SIZE, project, unproject, world_size


@dataclass(frozen=True)
class BoundingBox:
    """Latitude/longitude rectangle. ``west > east`` means it crosses the antimeridian."""

    south: float
    west: float
    north: float
    east: float

    def __post_init__(self):
        if self.south > self.north:
            raise ValueError(f"south ({self.south}) must not exceed north ({self.north})")

    @property
    def crosses_antimeridian(self) -> bool:
        return self.west > self.east

    def contains(self, lat: float, lng: float) -> bool:
        if not (self.south <= lat <= self.north):
            return False
        if self.crosses_antimeridian:
            return lng >= self.west or lng <= self.east
        return self.west <= lng <= self.east

    def contains_many(self, lat: np.ndarray, lng: np.ndarray) -> np.ndarray:
        in_lat = (lat >= self.south) & (lat <= self.north)
        if self.crosses_antimeridian:
            in_lng = (lng >= self.west) | (lng <= self.east)
        else:
            in_lng = (lng >= self.west) & (lng <= self.east)
        return in_lat & in_lng

    @property
    def center(self) -> LatLng:
        x_west, y_north = project(self.north, self.west, 0)
        x_east, y_south = project(self.south, self.east, 0)
        if self.crosses_antimeridian:
            x_east += TILE_SIZE
        return unproject((x_west + x_east) / 2, (y_north + y_south) / 2, 0)

    @classmethod
    def from_points(cls, points: Iterable[LatLng]) -> Optional["BoundingBox"]:
        """Smallest box holding every point, or None when there are none."""
        lats, lngs = [], []
        for lat, lng in points:
            lats.append(lat)
            lngs.append(lng)
        if not lats:
            return None
        return cls(south=min(lats), west=min(lngs), north=max(lats), east=max(lngs))

    @classmethod
    def from_records(cls, records: pd.DataFrame) -> Optional["BoundingBox"]:
        placed = records[valid_position_mask(records)]
        if placed.empty:
            return None
        lat = placed[LATITUDE].astype(float)
        lng = placed[LONGITUDE].astype(float)
        return cls(south=lat.min(), west=lng.min(), north=lat.max(), east=lng.max())


def window_to_viewport(result_set: pd.DataFrame, viewport: Optional[Viewport]) -> pd.DataFrame:
    """Return the rows of ``result_set`` inside ``viewport``.

    With no viewport yet the full result set is returned. Rows without a
    valid position are never visible. Order and index labels are kept.
    """
    if viewport is None:
        return result_set.copy()
    if result_set.empty:
        return result_set.copy()

    placed = valid_position_mask(result_set)
    lat = pd.to_numeric(result_set[LATITUDE], errors="coerce").to_numpy(dtype=float)
    lng = pd.to_numeric(result_set[LONGITUDE], errors="coerce").to_numpy(dtype=float)

    region = viewport.region
    if isinstance(region, BoundingBox):
        inside = region.contains_many(lat, lng) & placed.to_numpy()
    else:
        inside = np.array(
            [bool(ok) and bool(region.contains(la, ln)) for ok, la, ln in zip(placed, lat, lng)],
            dtype=bool,
        )
    return result_set[inside].copy()


@dataclass(frozen=True)
class WindowSummary:
    """Counts behind the "showing N of M" affordance."""

    visible: int
    total: int
    viewport_known: bool = True

    @property
    def is_partial(self) -> bool:
        return self.viewport_known and self.visible != self.total

    @property
    def label(self) -> str:
        return f"Showing {self.visible} of {self.total} services in current map view"


def fit_bounds(
    bounds: BoundingBox,
    width_px: int,
    height_px: int,
    padding_px: int = 40,
    min_zoom: int = 3,
    max_zoom: int = 18,
) -> Tuple[LatLng, int]:
    """Return the centre and largest whole zoom at which ``bounds`` fits the map."""
    x_west, y_north = project(bounds.north, bounds.west, 0)
    x_east, y_south = project(bounds.south, bounds.east, 0)
    span_x = x_east - x_west
    if bounds.crosses_antimeridian:
        span_x += TILE_SIZE
    span_y = y_south - y_north

    usable_w = max(width_px - 2 * padding_px, 1)
    usable_h = max(height_px - 2 * padding_px, 1)

    if span_x <= 0 and span_y <= 0:
        zoom = max_zoom
    else:
        scales = []
        if span_x > 0:
            scales.append(usable_w / span_x)
        if span_y > 0:
            scales.append(usable_h / span_y)
        zoom = int(math.floor(math.log2(min(scales))))
    zoom = max(min_zoom, min(max_zoom, zoom))
    return bounds.center, zoom


def region_for_view(center: LatLng, zoom: float, width_px: int, height_px: int) -> BoundingBox:
    """Region visible in a ``width_px`` x ``height_px`` map at ``center``/``zoom``."""
    cx, cy = project(center[0], center[1], zoom)
    size = world_size(zoom)
    half_w = width_px / 2
    half_h = height_px / 2

    north, _ = unproject(cx, max(cy - half_h, 0.0), zoom)
    south, _ = unproject(cx, min(cy + half_h, size), zoom)
    if width_px >= size:
        west, east = -180.0, 180.0
    else:
        _, west = unproject(cx - half_w, cy, zoom)
        _, east = unproject(cx + half_w, cy, zoom)
    return BoundingBox(south=south, west=west, north=north, east=east)


def viewport_for_view(center: LatLng, zoom: float, width_px: int, height_px: int) -> Viewport:
    return Viewport(region=region_for_view(center, zoom, width_px, height_px), zoom=zoom)
