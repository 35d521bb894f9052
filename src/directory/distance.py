"""Great-circle distance calculation."""
import math
from typing import Tuple

import numpy as np
import pandas as pd

from src.directory.models import DISTANCE_KM, LATITUDE, LONGITUDE
from src.utils.performance import monitor_performance

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Haversine distance in kilometres; ``math.inf`` when any input is not finite."""
    try:
        values = [float(v) for v in (lat1, lng1, lat2, lng2)]
    except (TypeError, ValueError):
        return math.inf
    if not all(math.isfinite(v) for v in values):
        return math.inf

    phi1, lam1, phi2, lam2 = (math.radians(v) for v in values)
    dphi = phi2 - phi1
    dlam = lam2 - lam1
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    # Rounding can push `a` a hair above 1 for antipodal points
    a = min(1.0, max(0.0, a))
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


@monitor_performance(slow_threshold=0.25)
def annotate_distances(origin: Tuple[float, float], records: pd.DataFrame) -> pd.DataFrame:
    """Return a copy of ``records`` with a ``Distance (km)`` column from ``origin``.

    Row order and index labels are preserved. Rows without a valid position get
    ``inf`` so that sorting and ``<=`` comparisons never see NaN.
    """
    annotated = records.copy()
    if annotated.empty:
        annotated[DISTANCE_KM] = pd.Series(dtype=float)
        return annotated

    origin_lat, origin_lng = (float(v) for v in origin)
    if not (math.isfinite(origin_lat) and math.isfinite(origin_lng)):
        annotated[DISTANCE_KM] = np.inf
        return annotated

    lat = pd.to_numeric(annotated[LATITUDE], errors="coerce").to_numpy(dtype=float)
    lng = pd.to_numeric(annotated[LONGITUDE], errors="coerce").to_numpy(dtype=float)
    with np.errstate(invalid="ignore"):
        valid = np.isfinite(lat) & np.isfinite(lng) & (np.abs(lat) <= 90.0) & (np.abs(lng) <= 180.0)

    lat_rad = np.radians(lat[valid])
    lng_rad = np.radians(lng[valid])
    origin_lat_rad = math.radians(origin_lat)
    origin_lng_rad = math.radians(origin_lng)

    dlat = lat_rad - origin_lat_rad
    dlng = lng_rad - origin_lng_rad
    a = np.sin(dlat / 2) ** 2 + math.cos(origin_lat_rad) * np.cos(lat_rad) * np.sin(dlng / 2) ** 2
    c = 2 * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))

    distances = np.full(len(annotated), np.inf)
    distances[valid] = EARTH_RADIUS_KM * c
    annotated[DISTANCE_KM] = distances
    return annotated
