"""Test suite for render-time marker clustering."""
import pytest

from src.directory.clustering import (
    DEFAULT_CLUSTER_TIERS,
    ClusterOptions,
    ClusterTier,
    cluster,
    tier_for_count,
)

from conftest import make_directory


def _keys(markers):
    return sorted(k for m in markers for k in m.record_keys)


@pytest.fixture
def sydney_block():
    """Twelve services within a few hundred metres of each other."""
    rows = [(f"Service {i}", "Public", -33.8688 + i * 0.0005, 151.2093 + i * 0.0005) for i in range(12)]
    return make_directory(rows)


class TestTiers:
    @pytest.mark.parametrize(
        "count, index, size",
        [(2, 0, 40), (9, 0, 40), (10, 1, 44), (49, 1, 44), (50, 2, 50), (99, 2, 50), (100, 3, 56), (5000, 3, 56)],
    )
    def test_tier_boundaries(self, count, index, size):
        tier = tier_for_count(count)

        assert tier.index == index
        assert tier.marker_size_px == size

    def test_custom_tier_table(self):
        tiers = (ClusterTier(index=0, max_count=3, marker_size_px=20), ClusterTier(index=1, max_count=None, marker_size_px=30))

        assert tier_for_count(2, tiers).marker_size_px == 20
        assert tier_for_count(3, tiers).marker_size_px == 30

    def test_empty_table_rejected(self):
        with pytest.raises(ValueError):
            tier_for_count(5, ())

    def test_default_table_is_open_ended(self):
        assert DEFAULT_CLUSTER_TIERS[-1].max_count is None


class TestCluster:
    def test_every_positioned_record_in_exactly_one_marker(self, directory_df):
        for zoom in (3, 5, 8, 12, 16):
            markers = cluster(directory_df, zoom)

            assert _keys(markers) == [0, 1, 2, 3, 4], f"zoom {zoom}"

    def test_nearby_services_cluster_when_zoomed_out(self, sydney_block):
        markers = cluster(sydney_block, zoom=5)

        assert len(markers) == 1
        only = markers[0]
        assert only.count == 12
        assert not only.is_singleton
        assert only.tier.index == 1
        assert only.title == "12 locations"

    def test_beyond_max_zoom_everything_is_singleton(self, sydney_block):
        markers = cluster(sydney_block, zoom=16)

        assert len(markers) == 12
        assert all(m.is_singleton for m in markers)

    def test_far_apart_services_stay_separate(self, directory_df):
        markers = cluster(directory_df, zoom=12)

        assert all(m.is_singleton for m in markers)
        assert len(markers) == 5

    def test_country_view_groups_sydney(self, directory_df):
        markers = cluster(directory_df, zoom=4)
        sydney = [m for m in markers if 0 in m.record_keys][0]

        assert set(sydney.record_keys) >= {0, 2}
        melbourne = [m for m in markers if 4 in m.record_keys][0]
        assert melbourne.record_keys == (4,)

    def test_cluster_center_is_member_average(self, sydney_block):
        markers = cluster(sydney_block, zoom=5)
        center = markers[0].center

        assert center[0] == pytest.approx(sydney_block["Latitude"].mean())
        assert center[1] == pytest.approx(sydney_block["Longitude"].mean())

    def test_minimum_cluster_size(self):
        pair = make_directory([("A", "Public", -33.8688, 151.2093), ("B", "Public", -33.8690, 151.2095)])

        assert len(cluster(pair, 5, ClusterOptions(minimum_cluster_size=2))) == 1
        assert len(cluster(pair, 5, ClusterOptions(minimum_cluster_size=3))) == 2

    def test_grid_size_controls_reach(self):
        # ~0.5 degrees of longitude apart: ~46 px at zoom 7
        pair = make_directory([("A", "Public", -33.87, 151.0), ("B", "Public", -33.87, 151.5)])

        assert len(cluster(pair, 7, ClusterOptions(grid_size=60))) == 1
        assert len(cluster(pair, 7, ClusterOptions(grid_size=30))) == 2

    def test_empty_and_unpositioned_input(self, directory_df):
        assert cluster(directory_df.iloc[0:0], 5) == []
        assert cluster(directory_df.iloc[[5]], 5) == []

    def test_deterministic(self, directory_df):
        assert cluster(directory_df, 6) == cluster(directory_df, 6)

    def test_options_from_config(self):
        options = ClusterOptions.from_config({"grid_size": 80, "max_zoom": 14, "minimum_cluster_size": 3})

        assert (options.grid_size, options.max_zoom, options.minimum_cluster_size) == (80, 14, 3)
        assert options.tiers == DEFAULT_CLUSTER_TIERS
