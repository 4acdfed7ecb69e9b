"""
Unit Tests for the marker engine (quakemap/markers/engine.py)

Tests marker descriptors, running averages, failure handling and the
viewport/zoom behaviour of build_markers.
"""

import random

import pytest

from quakemap.markers import (
    ClusterMarker,
    MarkerResult,
    SingleMarker,
    build_markers,
    compute_markers,
    merge_running_average,
)
from quakemap.markers.engine import quake_properties
from quakemap.spatial.features import PointFeature, Viewport, coerce_feature
from quakemap.spatial.index import ClusterIndexConfig
from tests.conftest import assert_approx_equal, make_feature, make_swarm


WORLD = [-180, -85, 180, 85]


# ==============================================================================
# Basic Scenarios
# ==============================================================================

class TestBuildMarkers:
    """Test the list-returning entry point."""

    def test_single_great_quake_at_high_zoom(self, tohoku_feature, world_bbox):
        """A lone M9.1 at zoom 16 is a single, strong-red, large marker."""
        markers = build_markers([tohoku_feature], world_bbox, 16)

        assert len(markers) == 1
        marker = markers[0]
        assert isinstance(marker, SingleMarker)
        assert marker.type == "single"
        assert marker.magnitude == 9.1

        data = marker.to_dict()
        assert data["color"] == "#d32f2f"
        assert data["size"] >= 45

    def test_swarm_becomes_one_cluster(self, swarm_features, world_bbox):
        """Twenty nearby events at zoom 2 collapse into one cluster."""
        markers = build_markers(swarm_features, world_bbox, 2)

        assert len(markers) == 1
        cluster = markers[0]
        assert isinstance(cluster, ClusterMarker)
        assert cluster.count == 20
        assert len(cluster.points) == 10
        assert cluster.to_dict()["size"] == 30

    def test_empty_input(self, world_bbox):
        assert build_markers([], world_bbox, 5) == []
        assert build_markers(None, world_bbox, 5) == []

    def test_invalid_records_dropped(self, world_bbox, sample_features):
        """A record missing its place is ignored; the rest still render."""
        records = [make_feature("noplace", 10.0, 10.0, 6.0, place=None)] + sample_features[:3]
        result = compute_markers(records, world_bbox, 16)

        assert result.is_ok
        assert result.num_records == 4
        assert result.num_valid == 3
        assert result.num_dropped == 1
        assert sorted(m.feature.id for m in result.markers) == ["us1", "us2", "us3"]

    @pytest.mark.parametrize("bad", [
        {"type": "Feature", "id": "p", "geometry": {"type": "Point", "coordinates": [10.0, 10.0]}, "properties": "oops"},
        {"type": "Feature", "id": "g", "geometry": [1, 2], "properties": {"mag": 5.0, "place": "x", "time": 1}},
        PointFeature("pf", 10.0, 10.0, None, "", None),
    ])
    def test_malformed_record_does_not_sink_valid_ones(self, bad, world_bbox, sample_features):
        """Malformed records of any shape are dropped, not turned into a failure."""
        result = compute_markers(sample_features[:3] + [bad], world_bbox, 16)

        assert result.is_ok
        assert result.num_valid == 3
        assert len(result.markers) == 3

    def test_accepts_viewport_object(self, swarm_features, world_bbox):
        markers = build_markers(swarm_features, Viewport(world_bbox, 2.9))
        assert len(markers) == 1

    def test_bbox_as_mapping(self, sample_features):
        bbox = {"west": 100, "south": 0, "east": 160, "north": 50}
        markers = build_markers(sample_features, bbox, 12)

        assert sorted(m.feature.id for m in markers) == ["us1", "us5"]

    def test_viewport_outside_data(self, sample_features):
        assert build_markers(sample_features, [-30, -60, -20, -50], 8) == []


# ==============================================================================
# Descriptor Invariants
# ==============================================================================

class TestDescriptorInvariants:
    """Properties that hold for every descriptor."""

    @pytest.mark.parametrize("zoom", [0, 3, 6, 9, 12, 16])
    def test_counts_and_samples(self, zoom, sample_features, world_bbox):
        records = sample_features + make_swarm(40, seed=3) + make_swarm(15, center_lng=-70, center_lat=-33, seed=5)
        markers = build_markers(records, world_bbox, zoom)

        assert sum(m.count if m.type == "cluster" else 1 for m in markers) == len(records)
        for m in markers:
            if m.type == "cluster":
                assert m.count >= 2
                assert m.count >= len(m.points)
                assert 1 <= len(m.points) <= 10
                assert m.expansion_zoom is not None
                assert m.click_zoom == min(zoom + 2, 16)

    def test_single_matches_input(self, sample_features, world_bbox):
        """Singles carry the validated input feature unchanged."""
        markers = build_markers(sample_features, world_bbox, 16)
        by_id = {m.feature.id: m for m in markers}

        for record in sample_features:
            marker = by_id[record["id"]]
            assert marker.feature == coerce_feature(record)
            assert list(marker.coordinates) == record["geometry"]["coordinates"]
            assert marker.depth == record["geometry"]["coordinates"][2]

    def test_cluster_dict_shape(self, swarm_features, world_bbox):
        data = build_markers(swarm_features, world_bbox, 1)[0].to_dict()

        assert data["type"] == "cluster"
        assert set(data) == {
            "type", "clusterId", "coordinates", "count", "avgMagnitude", "avgDepth",
            "points", "expansionZoom", "clickZoom", "color", "size",
        }
        assert set(data["points"][0]) == {
            "id", "magnitude", "location", "coordinates", "depth", "time", "timestamp", "url",
        }

    def test_single_dict_shape(self, tohoku_feature, world_bbox):
        data = build_markers([tohoku_feature], world_bbox, 3)[0].to_dict()

        assert data["earthquake"]["location"] == "2011 Great Tohoku Earthquake, Japan"
        assert data["earthquake"]["time"] == "Mar 11, 2011, 05:46 AM"
        assert data["coordinates"] == [142.373, 38.297, 29.0]


# ==============================================================================
# Running Averages
# ==============================================================================

class TestRunningAverage:
    """Test magnitude/depth aggregation."""

    def test_single_step_formula(self):
        acc = {"mag": 5.0, "depth": 10.0, "count": 3}
        merge_running_average(acc, {"mag": 7.0, "depth": 30.0})

        assert acc["count"] == 4
        assert_approx_equal(acc["mag"], (5.0 * 3 + 7.0) / 4)
        assert_approx_equal(acc["depth"], (10.0 * 3 + 30.0) / 4)

    def test_merging_subclusters_weights_by_count(self):
        acc = {"mag": 4.0, "depth": 0.0, "count": 1}
        merge_running_average(acc, {"mag": 6.0, "depth": 20.0, "count": 3})

        assert acc["count"] == 4
        assert_approx_equal(acc["mag"], 5.5)
        assert_approx_equal(acc["depth"], 15.0)

    def test_missing_depth_counts_as_zero(self):
        feature = coerce_feature(make_feature("d", 0.0, 0.0, 5.0, depth=None))
        assert quake_properties(feature.properties) == {"mag": 5.0, "depth": 0.0, "count": 1}

    def test_cluster_average_equals_member_mean(self, world_bbox):
        records = make_swarm(20, seed=11)
        cluster = build_markers(records, world_bbox, 0)[0]

        mags = [r["properties"]["mag"] for r in records]
        depths = [r["geometry"]["coordinates"][2] for r in records]
        assert_approx_equal(cluster.avg_magnitude, sum(mags) / len(mags), 1e-6)
        assert_approx_equal(cluster.avg_depth, sum(depths) / len(depths), 1e-6)

    def test_average_is_order_independent(self, world_bbox):
        records = make_swarm(20, seed=13)
        shuffled = list(records)
        random.Random(1).shuffle(shuffled)

        a = build_markers(records, world_bbox, 0)[0]
        b = build_markers(shuffled, world_bbox, 0)[0]

        assert a.count == b.count == 20
        assert_approx_equal(a.avg_magnitude, b.avg_magnitude, 1e-6)
        assert_approx_equal(a.avg_depth, b.avg_depth, 1e-6)


# ==============================================================================
# Failure Handling
# ==============================================================================

class TestFailureHandling:
    """build_markers never raises; compute_markers reports why."""

    @pytest.mark.parametrize("viewport, zoom", [
        ("not a bbox", 3),
        ([1, 2, 3], 3),
        ([-180, -85, 180, 85], float("nan")),
        ([-180, -85, 180, 85], None),
        ([-180, -85, 180, 85], "three"),
    ])
    def test_bad_viewport(self, sample_features, viewport, zoom):
        assert build_markers(sample_features, viewport, zoom) == []

        result = compute_markers(sample_features, viewport, zoom)
        assert result.status == "failed"
        assert result.reason
        assert result.num_valid == len(sample_features)

    def test_non_iterable_features(self, world_bbox):
        result = compute_markers(12345, world_bbox, 3)

        assert not result.is_ok
        assert result.markers == []

    def test_failed_is_distinct_from_empty(self, world_bbox):
        empty = compute_markers([], world_bbox, 3)

        assert empty.is_ok
        assert empty.markers == []
        assert empty.reason is None

    def test_custom_config(self, swarm_features, world_bbox):
        """A tiny radius keeps the swarm apart even at low zoom."""
        config = ClusterIndexConfig(radius=0.001, max_zoom=4)
        result = compute_markers(swarm_features, world_bbox, 2, config=config)

        assert result.is_ok
        assert result.num_singles == 20
        assert result.num_clusters == 0

    def test_result_helpers(self):
        ok = MarkerResult.ok([], num_records=5, num_valid=3, zoom=2)
        failed = MarkerResult.failed("boom", num_records=1)

        assert ok.num_dropped == 2
        assert failed.status == "failed" and failed.reason == "boom"
