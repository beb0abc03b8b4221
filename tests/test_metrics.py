"""
Unit tests for the statistics engine and the time series helpers.
"""

from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from gpx_heatmap.metrics import TrackStatistics, compute_track_statistics, compute_trimmed_bounds
from gpx_heatmap.models import TrackPoint
from gpx_heatmap.time_series import build_track_frame, compute_pair_deltas, compute_speed_profile

T0 = datetime(2024, 5, 1, 9, 0, 0, tzinfo=timezone.utc)


def _seconds(offset):
    return T0 + timedelta(seconds=offset)


class TestComputeTrackStatistics:
    """Tests for compute_track_statistics."""

    def test_empty_sequence_is_all_zero(self):
        assert compute_track_statistics([]) == TrackStatistics()

    def test_two_points_one_second_apart(self):
        """~111 m in one second is ~400 km/h and must be reported as is."""
        points = [TrackPoint(0.0, 0.0, _seconds(0)), TrackPoint(0.0, 0.001, _seconds(1))]
        stats = compute_track_statistics(points)

        assert stats.total_distance_km == pytest.approx(0.111195, rel=1e-4)
        assert stats.total_duration_s == 1.0
        assert stats.max_speed_kmh == pytest.approx(400.30, rel=1e-3)
        assert stats.avg_speed_kmh == pytest.approx(stats.max_speed_kmh)
        assert np.isfinite(stats.max_speed_kmh)
        assert stats.point_count == 2

    def test_without_timestamps(self):
        points = [TrackPoint(0.0, 0.0), TrackPoint(0.0, 0.01), TrackPoint(0.0, 0.02)]
        stats = compute_track_statistics(points)

        assert stats.total_distance_km == pytest.approx(2.2239, rel=1e-3)
        assert stats.total_duration_s == 0.0
        assert stats.avg_speed_kmh == 0.0
        assert stats.max_speed_kmh == 0.0

    def test_non_positive_elapsed_contributes_no_speed(self):
        """A jump with zero elapsed time must not produce an infinite speed."""
        points = [
            TrackPoint(0.0, 0.0, _seconds(0)),
            TrackPoint(0.0, 1.0, _seconds(0)),
            TrackPoint(0.0, 1.001, _seconds(10)),
        ]
        stats = compute_track_statistics(points)
        assert stats.max_speed_kmh == pytest.approx(0.111195 * 360, rel=1e-3)

    def test_duration_is_max_minus_min(self):
        points = [
            TrackPoint(0.0, 0.0, _seconds(0)),
            TrackPoint(0.0, 0.001, _seconds(100)),
            TrackPoint(0.0, 0.002, _seconds(50)),
        ]
        assert compute_track_statistics(points).total_duration_s == 100.0

    def test_single_timestamp_has_zero_duration(self):
        points = [TrackPoint(0.0, 0.0, _seconds(0)), TrackPoint(0.0, 0.001)]
        stats = compute_track_statistics(points)
        assert stats.total_duration_s == 0.0
        assert stats.avg_speed_kmh == 0.0

    def test_trimmed_extent_ignores_single_outlier(self):
        cluster = [TrackPoint(0.0001 * (i % 10), 0.0001 * (i // 10)) for i in range(100)]
        points = cluster + [TrackPoint(0.5, 0.5)]
        stats = compute_track_statistics(points)

        assert stats.width_km > 50
        assert stats.trimmed_width_km < 0.2
        assert stats.trimmed_span_km == max(stats.trimmed_width_km, stats.trimmed_height_km)

    def test_trimmed_bounds_are_quantiles(self):
        points = [TrackPoint(float(i), float(i)) for i in range(51)]
        box = compute_trimmed_bounds(points)
        assert box.min_lat == pytest.approx(1.0)
        assert box.max_lon == pytest.approx(49.0)


class TestStatisticsOutput:
    """Tests for the dict and display renderings."""

    def test_to_dict_rounds(self):
        stats = TrackStatistics(total_distance_km=1.23456, avg_speed_kmh=9.8765, point_count=3)
        data = stats.to_dict()
        assert data["total_distance_km"] == 1.235
        assert data["avg_speed_kmh"] == 9.88
        assert data["point_count"] == 3

    def test_display_uses_placeholder_for_undefined(self):
        stats = TrackStatistics(avg_speed_kmh=float("nan"), total_duration_s=float("inf"))
        display = stats.to_display()
        assert display["avg_speed"] == "—"
        assert display["duration"] == "—"
        assert display["distance"] == "0.00 km"


class TestTimeSeries:
    """Tests for the track frame, pair deltas, and speed profile."""

    def test_frame_keeps_order_and_missing_times(self):
        frame = build_track_frame([TrackPoint(1.0, 2.0, _seconds(5)), TrackPoint(3.0, 4.0)])
        assert list(frame["lat"]) == [1.0, 3.0]
        assert frame["timestamp"].isna().tolist() == [False, True]

    def test_empty_frame(self):
        frame = build_track_frame([])
        assert frame.empty
        assert len(compute_pair_deltas(frame)) == 0

    def test_pair_deltas(self):
        frame = build_track_frame([
            TrackPoint(0.0, 0.0, _seconds(0)),
            TrackPoint(0.0, 0.001, _seconds(10)),
            TrackPoint(0.0, 0.002),
        ])
        deltas = compute_pair_deltas(frame)
        assert deltas.elapsed_s[0] == 10.0
        assert np.isnan(deltas.elapsed_s[1])
        assert deltas.speed_kmh[0] == pytest.approx(40.03, rel=1e-3)
        assert np.isnan(deltas.speed_kmh[1])

    def test_speed_profile(self):
        profile = compute_speed_profile([
            TrackPoint(0.0, 0.0, _seconds(0)),
            TrackPoint(0.0, 0.001, _seconds(10)),
            TrackPoint(0.0, 0.002, _seconds(10)),
        ])
        assert list(profile.columns) == ["elapsed_s", "speed_kmh"]
        assert profile["elapsed_s"].tolist() == [0.0, 10.0, 10.0]
        assert profile["speed_kmh"].iloc[0] == 0.0
        assert profile["speed_kmh"].iloc[1] == pytest.approx(40.03, rel=1e-3)
        assert profile["speed_kmh"].iloc[2] == 0.0

    def test_speed_profile_empty(self):
        assert compute_speed_profile([]).empty
