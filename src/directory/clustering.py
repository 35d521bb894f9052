"""Render-time marker clustering.

Markers are grouped by on-screen pixel distance at the current zoom, not by
geographic distance: two services 50 km apart share a marker when zoomed out
to the whole country, while two services 50 m apart still split once the map
is zoomed past ``max_zoom``.

A marker joins the nearest existing cluster whose centre lies within
``grid_size`` pixels on both axes, otherwise it starts a new cluster. Cluster
centres are the running average of their members. Groups smaller than
``minimum_cluster_size`` are emitted as individual markers.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

import pandas as pd

from src.directory.models import LATITUDE, LONGITUDE, LatLng, valid_position_mask
from src.directory.projection import project
from src.utils.performance import monitor_performance


@dataclass(frozen=True)
class ClusterTier:
    """One row of the cluster size table.

    ``max_count`` is an exclusive upper bound; None marks the open-ended tier.
    ``marker_size_px`` is the diameter the renderer draws for this tier.
    """

    index: int
    max_count: Optional[int]
    marker_size_px: int

    def accepts(self, count: int) -> bool:
        return self.max_count is None or count < self.max_count


DEFAULT_CLUSTER_TIERS: Tuple[ClusterTier, ...] = (
    ClusterTier(index=0, max_count=10, marker_size_px=40),
    ClusterTier(index=1, max_count=50, marker_size_px=44),
    ClusterTier(index=2, max_count=100, marker_size_px=50),
    ClusterTier(index=3, max_count=None, marker_size_px=56),
)


def tier_for_count(count: int, tiers: Tuple[ClusterTier, ...] = DEFAULT_CLUSTER_TIERS) -> ClusterTier:
    """Return the first tier whose bound admits ``count``."""
    if not tiers:
        raise ValueError("Cluster tier table is empty")
    for tier in tiers:
        if tier.accepts(count):
            return tier
    return tiers[-1]


@dataclass(frozen=True)
class ClusterOptions:
    grid_size: int = 60
    max_zoom: int = 15
    minimum_cluster_size: int = 2
    average_center: bool = True
    tiers: Tuple[ClusterTier, ...] = DEFAULT_CLUSTER_TIERS

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "ClusterOptions":
        return cls(
            grid_size=int(config.get("grid_size", cls.grid_size)),
            max_zoom=int(config.get("max_zoom", cls.max_zoom)),
            minimum_cluster_size=int(config.get("minimum_cluster_size", cls.minimum_cluster_size)),
        )


@dataclass(frozen=True)
class Cluster:
    """A map marker: one record, or an aggregate carrying a count."""

    center: LatLng
    record_keys: Tuple[Any, ...]
    tier: Optional[ClusterTier] = None

    @property
    def count(self) -> int:
        return len(self.record_keys)

    @property
    def is_singleton(self) -> bool:
        return self.tier is None

    @property
    def title(self) -> str:
        return f"{self.count} locations"


@dataclass
class _Group:
    keys: List[Any] = field(default_factory=list)
    points: List[LatLng] = field(default_factory=list)
    sum_lat: float = 0.0
    sum_lng: float = 0.0
    center: LatLng = (0.0, 0.0)
    pixel: Tuple[float, float] = (0.0, 0.0)


def _cell(pixel: Tuple[float, float], grid_size: int) -> Tuple[int, int]:
    return int(math.floor(pixel[0] / grid_size)), int(math.floor(pixel[1] / grid_size))


def _singletons(keys: List[Any], points: List[LatLng]) -> List[Cluster]:
    return [Cluster(center=point, record_keys=(key,)) for key, point in zip(keys, points)]


@monitor_performance(slow_threshold=0.1)
def cluster(records: pd.DataFrame, zoom: float, options: ClusterOptions = ClusterOptions()) -> List[Cluster]:
    """Group positioned ``records`` into map markers for ``zoom``.

    Every record with a valid position appears in exactly one returned
    :class:`Cluster`; records without one are skipped.
    """
    if records.empty:
        return []

    placed = records[valid_position_mask(records)]
    keys = list(placed.index)
    points = list(zip(placed[LATITUDE].astype(float), placed[LONGITUDE].astype(float)))

    if zoom > options.max_zoom or options.grid_size <= 0:
        return _singletons(keys, points)

    grid = options.grid_size
    groups: List[_Group] = []
    cells: Dict[Tuple[int, int], Set[int]] = {}

    for key, point in zip(keys, points):
        px = project(point[0], point[1], zoom)
        cx, cy = _cell(px, grid)

        best_id: Optional[int] = None
        best_dist = math.inf
        for dx in (-1, 0, 1):
            for dy in (-1, 0, 1):
                for group_id in cells.get((cx + dx, cy + dy), ()):
                    gx, gy = groups[group_id].pixel
                    if abs(gx - px[0]) > grid or abs(gy - px[1]) > grid:
                        continue
                    dist = (gx - px[0]) ** 2 + (gy - px[1]) ** 2
                    if dist < best_dist or (dist == best_dist and best_id is not None and group_id < best_id):
                        best_id, best_dist = group_id, dist

        if best_id is None:
            group = _Group(center=point, pixel=px)
            groups.append(group)
            best_id = len(groups) - 1
            cells.setdefault((cx, cy), set()).add(best_id)

        group = groups[best_id]
        group.keys.append(key)
        group.points.append(point)
        group.sum_lat += point[0]
        group.sum_lng += point[1]

        if options.average_center and len(group.keys) > 1:
            old_cell = _cell(group.pixel, grid)
            n = len(group.keys)
            group.center = (group.sum_lat / n, group.sum_lng / n)
            group.pixel = project(group.center[0], group.center[1], zoom)
            new_cell = _cell(group.pixel, grid)
            if new_cell != old_cell:
                cells[old_cell].discard(best_id)
                cells.setdefault(new_cell, set()).add(best_id)

    output: List[Cluster] = []
    for group in groups:
        if len(group.keys) < max(options.minimum_cluster_size, 1) or len(group.keys) == 1:
            output.extend(_singletons(group.keys, group.points))
            continue
        output.append(
            Cluster(
                center=group.center,
                record_keys=tuple(group.keys),
                tier=tier_for_count(len(group.keys), options.tiers),
            )
        )
    return output
