"""Facet, keyword and proximity filters over the directory dataset.

All filters return new DataFrames and keep the original index labels. The
facet is always applied first so excluded rows never reach the distance or
substring work.
"""
from dataclasses import dataclass
from typing import Any, Mapping, Tuple

import numpy as np
import pandas as pd

from src.directory.distance import annotate_distances
from src.directory.models import (
    DISTANCE_KM,
    KEYWORD_FIELDS,
    NEAREST_FALLBACK_SIZE,
    PROGRAM_TYPE,
    Facet,
    valid_position_mask,
)


def matches_facet(record: Mapping[str, Any], facet: Facet) -> bool:
    """Return True when ``record`` passes the ownership-class facet."""
    facet = Facet.parse(facet)
    if facet is Facet.ALL:
        return True
    return record.get(PROGRAM_TYPE) == facet.value


def apply_facet(records: pd.DataFrame, facet: Facet) -> pd.DataFrame:
    """Filter providers by ownership class.

    Args:
        records: Directory DataFrame with a "Program Type" column
        facet: Facet to apply; ``Facet.ALL`` keeps every row

    Returns:
        pd.DataFrame: New DataFrame, dataset order preserved
    """
    facet = Facet.parse(facet)
    if facet is Facet.ALL or records.empty:
        return records.copy()
    if PROGRAM_TYPE not in records.columns:
        return records.iloc[0:0].copy()
    return records[records[PROGRAM_TYPE] == facet.value].copy()


def filter_by_keyword(term: str, records: pd.DataFrame, facet: Facet = Facet.ALL) -> pd.DataFrame:
    """Case-insensitive substring search over service name and street address.

    An empty term matches every facet-eligible row. Records without a position
    are still searchable. Zero matches is a normal outcome and is returned as
    an empty DataFrame.
    """
    candidates = apply_facet(records, facet)
    needle = (term or "").lower()
    if not needle or candidates.empty:
        return candidates

    mask = pd.Series(False, index=candidates.index)
    for column in KEYWORD_FIELDS:
        if column in candidates.columns:
            haystack = candidates[column].fillna("").astype(str).str.lower()
            mask |= haystack.str.contains(needle, regex=False)
    return candidates[mask].copy()


@dataclass(frozen=True)
class RadiusSearchResult:
    """Outcome of a proximity query.

    ``matches`` holds rows within the radius and ``nearest_fallback`` the
    closest rows regardless of radius. Both are sorted by ascending distance.
    """

    matches: pd.DataFrame
    nearest_fallback: pd.DataFrame

    @property
    def showing_fallback(self) -> bool:
        """True when the list should present the nearest-fallback rows instead."""
        return self.matches.empty

    @property
    def displayed(self) -> pd.DataFrame:
        return self.nearest_fallback if self.showing_fallback else self.matches


def _sort_by_distance(records: pd.DataFrame) -> pd.DataFrame:
    # mergesort is stable, so ties keep dataset order
    return records.sort_values(by=DISTANCE_KM, ascending=True, kind="mergesort")


def partition_by_radius(
    annotated: pd.DataFrame,
    radius_km: float,
    facet: Facet = Facet.ALL,
    fallback_size: int = NEAREST_FALLBACK_SIZE,
) -> RadiusSearchResult:
    """Split distance-annotated rows into radius matches and the nearest fallback."""
    eligible = apply_facet(annotated, facet)
    if eligible.empty or DISTANCE_KM not in eligible.columns:
        empty = eligible.iloc[0:0].copy()
        return RadiusSearchResult(matches=empty, nearest_fallback=empty.copy())

    distances = eligible[DISTANCE_KM].to_numpy(dtype=float)
    reachable = valid_position_mask(eligible).to_numpy() & np.isfinite(distances)
    ranked = _sort_by_distance(eligible[reachable])

    matches = ranked[ranked[DISTANCE_KM] <= float(radius_km)].copy()
    nearest = ranked.head(max(int(fallback_size), 0)).copy()
    return RadiusSearchResult(matches=matches, nearest_fallback=nearest)


def filter_by_radius(
    origin: Tuple[float, float],
    radius_km: float,
    records: pd.DataFrame,
    facet: Facet = Facet.ALL,
    fallback_size: int = NEAREST_FALLBACK_SIZE,
) -> RadiusSearchResult:
    """Synchronous proximity search: facet, annotate distances, partition.

    The engine runs the annotation on its background worker and only calls
    :func:`partition_by_radius` on the interaction thread; this helper is the
    all-in-one form of the same pipeline.
    """
    eligible = apply_facet(records, facet)
    annotated = annotate_distances(origin, eligible)
    return partition_by_radius(annotated, radius_km, Facet.ALL, fallback_size)
