"""Test suite for radius-based service filtering.

Tests verify that the filter keeps services within the selected distance,
sorts them nearest first, and falls back to the nearest services when the
radius matches nothing.
"""
import numpy as np
import pandas as pd
import pytest

from src.directory.distance import annotate_distances
from src.directory.filters import filter_by_radius, partition_by_radius
from src.directory.models import DISTANCE_KM, Facet

from conftest import make_directory


@pytest.fixture
def three_cities():
    return make_directory(
        [
            ("Sydney Service", "Public", -33.8, 151.2),
            ("Melbourne Service", "Public", -37.8, 144.9),
            ("Brisbane Service", "Public", -27.5, 153.0),
        ]
    )


def test_single_match_at_origin(three_cities):
    """A 5 km search at the first record's position finds only that record."""
    result = filter_by_radius((-33.8, 151.2), 5, three_cities)

    assert list(result.matches.index) == [0]
    assert result.matches[DISTANCE_KM].iloc[0] == pytest.approx(0.0, abs=1e-6)
    assert result.showing_fallback is False


def test_facet_with_no_members_gives_empty_fallback(three_cities):
    """Filtering to Private when every record is Public yields nothing at all."""
    result = filter_by_radius((-33.8, 151.2), 1, three_cities, facet=Facet.PRIVATE)

    assert result.matches.empty
    assert result.nearest_fallback.empty
    assert result.showing_fallback is True


def test_matches_sorted_by_distance(directory_df, sydney):
    """Within 50 km of the CBD: CBD service, then Bondi, then Parramatta."""
    result = filter_by_radius(sydney, 50, directory_df)

    assert list(result.matches.index) == [0, 2, 1]
    assert result.matches[DISTANCE_KM].is_monotonic_increasing


@pytest.mark.parametrize("radius, expected", [(5, [0]), (10, [0, 2]), (50, [0, 2, 1])])
def test_radius_options(directory_df, sydney, radius, expected):
    result = filter_by_radius(sydney, radius, directory_df)

    assert list(result.matches.index) == expected
    assert (result.matches[DISTANCE_KM] <= radius).all()


def test_facet_applied_before_radius(directory_df, sydney):
    result = filter_by_radius(sydney, 50, directory_df, facet=Facet.PRIVATE)

    assert list(result.matches.index) == [1]
    assert (result.matches["Program Type"] == "Private").all()


def test_nearest_fallback_when_nothing_in_radius(directory_df):
    """From Perth nothing is within 5 km, so the five closest positioned services are offered."""
    perth = (-31.9505, 115.8605)

    result = filter_by_radius(perth, 5, directory_df)

    assert result.matches.empty
    assert result.showing_fallback is True
    assert len(result.nearest_fallback) == 5
    assert 5 not in result.nearest_fallback.index, "Unpositioned record must never be offered"
    assert result.nearest_fallback.index[0] == 4, "Melbourne is the closest service to Perth"
    assert result.nearest_fallback[DISTANCE_KM].is_monotonic_increasing


def test_nearest_fallback_respects_facet(directory_df):
    perth = (-31.9505, 115.8605)

    result = filter_by_radius(perth, 5, directory_df, facet=Facet.PRIVATE)

    assert list(result.nearest_fallback.index) == [4, 1]


def test_fallback_size_is_configurable(directory_df):
    perth = (-31.9505, 115.8605)

    result = filter_by_radius(perth, 5, directory_df, fallback_size=2)

    assert len(result.nearest_fallback) == 2


def test_unpositioned_records_never_match(directory_df, sydney):
    result = filter_by_radius(sydney, 50, directory_df)

    assert 5 not in result.matches.index


def test_distance_exactly_on_boundary_is_included():
    df = pd.DataFrame({"Latitude": [0.0, 0.0], "Longitude": [0.0, 1.0], "Program Type": ["Public", "Public"]})
    annotated = annotate_distances((0.0, 0.0), df)
    boundary = annotated[DISTANCE_KM].iloc[1]

    result = partition_by_radius(annotated, boundary)

    assert list(result.matches.index) == [0, 1]


def test_ties_keep_dataset_order():
    df = make_directory(
        [
            ("East", "Public", 0.0, 1.0),
            ("West", "Public", 0.0, -1.0),
        ]
    )

    result = filter_by_radius((0.0, 0.0), 200, df)

    assert list(result.matches.index) == [0, 1]


def test_empty_dataset(sydney):
    df = make_directory([])

    result = filter_by_radius(sydney, 10, df)

    assert result.matches.empty
    assert result.nearest_fallback.empty


def test_partition_without_distance_column_is_empty(directory_df):
    result = partition_by_radius(directory_df, 10)

    assert result.matches.empty
    assert result.nearest_fallback.empty


def test_displayed_switches_to_fallback(directory_df):
    result = filter_by_radius((-31.9505, 115.8605), 5, directory_df)

    pd.testing.assert_frame_equal(result.displayed, result.nearest_fallback)
    assert np.isfinite(result.displayed[DISTANCE_KM]).all()
