"""
Unit tests for inactivity-based segmentation (gpx_heatmap.segmentation).
"""

import math

import pytest

from gpx_heatmap.segmentation import build_segments, segment_label, split_on_inactivity


def _moving_rows(count, start_minute=0, lat=0.0):
    """Points one minute and ~1.1 km apart."""
    return [(lat, 0.01 * i, start_minute + i) for i in range(count)]


class TestSplitOnInactivity:
    """Tests for split_on_inactivity."""

    def test_one_internal_break_gives_two_segments(self, make_points, break_track_rows):
        """18 of 20 minutes below 1 km/h with a 5 minute gap -> exactly one break."""
        points = make_points(break_track_rows)
        assert split_on_inactivity(points, 5) == [(0, 2), (19, 21)]

    def test_stop_shorter_than_gap_is_ignored(self, make_points, break_track_rows):
        points = make_points(break_track_rows)
        assert split_on_inactivity(points, 30) == [(0, 21)]

    def test_gap_reached_exactly_qualifies(self, make_points, break_track_rows):
        points = make_points(break_track_rows)
        assert split_on_inactivity(points, 18) == [(0, 2), (19, 21)]

    def test_infinite_gap_returns_whole_track(self, make_points, break_track_rows):
        rows = break_track_rows + [(0.0, 0.03, 10)]
        points = make_points(rows)
        assert split_on_inactivity(points, math.inf) == [(0, len(points))]

    def test_trailing_break_is_dropped(self, make_points):
        rows = _moving_rows(3) + [(0.0, 0.02, minute) for minute in range(3, 15)]
        points = make_points(rows)
        assert split_on_inactivity(points, 5) == [(0, 3)]

    def test_leading_idle_period_is_skipped(self, make_points):
        """Standing still after switching on opens no one-point segment."""
        rows = [(0.0, 0.0, minute) for minute in range(15)]
        rows += [(0.0, 0.01 * i, 14 + i) for i in range(1, 6)]
        points = make_points(rows)
        assert split_on_inactivity(points, 5) == [(14, 20)]

    def test_leading_idle_then_second_break(self, make_points):
        rows = [(0.0, 0.0, minute) for minute in range(10)]
        rows += [(0.0, 0.01 * i, 9 + i) for i in range(1, 4)]
        rows += [(0.0, 0.03, minute) for minute in range(13, 25)]
        rows += [(0.0, 0.03 + 0.01 * i, 24 + i) for i in range(1, 3)]
        points = make_points(rows)
        assert split_on_inactivity(points, 5) == [(9, 13), (24, 27)]

    def test_idle_only_track_is_one_segment(self, make_points):
        points = make_points([(0.0, 0.0, minute) for minute in range(12)])
        assert split_on_inactivity(points, 5) == [(0, 12)]

    def test_negative_elapsed_forces_cut(self, make_points):
        rows = [(0.0, 0.00, 0), (0.0, 0.01, 1), (0.0, 0.02, 0.5), (0.0, 0.03, 1.5)]
        points = make_points(rows)
        assert split_on_inactivity(points, 5) == [(0, 2), (2, 4)]

    def test_missing_timestamp_resets_without_cut(self, make_points):
        rows = _moving_rows(2)
        rows += [(0.0, 0.01, minute) for minute in range(2, 5)]
        rows += [(0.0, 0.01, None)]
        rows += [(0.0, 0.01, minute) for minute in range(5, 8)]
        rows += [(0.0, 0.02, 8)]
        points = make_points(rows)
        assert split_on_inactivity(points, 5) == [(0, len(points))]

    def test_completeness(self, make_points):
        """Segments are ordered, disjoint, and only skip break interiors."""
        rows = _moving_rows(5)
        rows += [(0.0, 0.04, minute) for minute in range(5, 20)]
        rows += [(0.0, 0.04 + 0.01 * i, 20 + i) for i in range(1, 6)]
        rows += [(0.0, 0.09, minute) for minute in range(26, 40)]
        rows += [(0.0, 0.09 + 0.01 * i, 40 + i) for i in range(1, 4)]
        points = make_points(rows)
        ranges = split_on_inactivity(points, 5)

        assert len(ranges) == 3
        assert ranges[0][0] == 0
        assert ranges[-1][1] == len(points)
        for (start_a, end_a), (start_b, end_b) in zip(ranges, ranges[1:]):
            assert start_a < end_a <= start_b < end_b
            skipped = points[end_a:start_b]
            assert all(p.lon == pytest.approx(points[end_a - 1].lon) for p in skipped)

    def test_degenerate_inputs(self, make_points):
        assert split_on_inactivity([], 5) == []
        assert split_on_inactivity(make_points([(1.0, 1.0, 0)]), 5) == [(0, 1)]

    def test_untimed_track_is_one_segment(self, make_points):
        points = make_points([(0.0, 0.0, None), (0.0, 0.0, None), (0.0, 0.0, None)])
        assert split_on_inactivity(points, 1) == [(0, 3)]


class TestBuildSegments:
    """Tests for Segment enrichment."""

    def test_segments_carry_bounds_statistics_and_labels(self, make_points, break_track_rows):
        points = make_points(break_track_rows)
        segments = build_segments(points, 5)

        assert [s.label for s in segments] == ["Segment 1 (09:00–09:01)", "Segment 2 (09:19–09:20)"]
        first = segments[0]
        assert first.index == 0
        assert first.point_count == 2
        assert first.statistics.point_count == 2
        assert first.overlay is None
        assert first.render_params is None
        for p in first.points:
            assert first.bounds.min_lat < p.lat < first.bounds.max_lat
            assert first.bounds.min_lon < p.lon < first.bounds.max_lon

    def test_single_segment_is_full_activity(self, make_points, break_track_rows):
        segments = build_segments(make_points(break_track_rows), math.inf)
        assert len(segments) == 1
        assert segments[0].label == "Full activity"
        assert segments[0].point_count == len(break_track_rows)

    def test_label_without_timestamps(self, make_points):
        points = make_points([(0.0, 0.0, None)])
        assert segment_label(2, 4, points) == "Segment 3"

    def test_to_dict(self, make_points, break_track_rows):
        data = build_segments(make_points(break_track_rows), 5)[1].to_dict()
        assert data["start_idx"] == 19
        assert data["end_idx"] == 21
        assert data["overlay"] is None
