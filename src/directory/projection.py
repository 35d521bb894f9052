"""Web Mercator pixel projection shared by the windower and the clusterer."""
import math
from typing import Tuple

TILE_SIZE = 256
# Web Mercator is undefined at the poles; tiles stop here
MAX_LATITUDE = 85.05112878


def world_size(zoom: float) -> float:
    return TILE_SIZE * (2.0 ** zoom)


def project(lat: float, lng: float, zoom: float) -> Tuple[float, float]:
    """Return the world pixel (x, y) of a coordinate at ``zoom``."""
    size = world_size(zoom)
    lat = max(-MAX_LATITUDE, min(MAX_LATITUDE, lat))
    sin_lat = math.sin(math.radians(lat))
    x = (lng + 180.0) / 360.0 * size
    y = (0.5 - math.log((1 + sin_lat) / (1 - sin_lat)) / (4 * math.pi)) * size
    return x, y


def unproject(x: float, y: float, zoom: float) -> Tuple[float, float]:
    """Inverse of :func:`project`; ``x`` wraps around the world."""
    size = world_size(zoom)
    lng = (x / size) * 360.0 - 180.0
    lng = ((lng + 180.0) % 360.0) - 180.0
    n = math.pi - 2 * math.pi * (y / size)
    lat = math.degrees(math.atan(math.sinh(n)))
    return lat, lng
