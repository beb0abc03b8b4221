"""
Metrics Computation for GPX Heatmap Analysis

This module computes aggregate statistics for a point sequence: distance,
duration, average and top speed, and raw plus outlier-trimmed extents.
"""

import numpy as np
from dataclasses import dataclass
from typing import Dict, Sequence
from . import constants
from . import geometry
from . import time_series
from . import utils
from .models import TrackPoint


@dataclass(frozen=True)
class TrackStatistics:
    """Aggregate statistics of a track or segment. All fields are finite."""
    total_distance_km: float = 0.0
    total_duration_s: float = 0.0
    avg_speed_kmh: float = 0.0
    max_speed_kmh: float = 0.0
    width_km: float = 0.0
    height_km: float = 0.0
    trimmed_width_km: float = 0.0
    trimmed_height_km: float = 0.0
    point_count: int = 0

    @property
    def trimmed_span_km(self) -> float:
        """Larger side of the outlier-trimmed extent."""
        return max(self.trimmed_width_km, self.trimmed_height_km)

    @property
    def trimmed_area_km2(self) -> float:
        return self.trimmed_width_km * self.trimmed_height_km

    def to_dict(self) -> Dict:
        """Rounded values for JSON output."""
        return {
            "total_distance_km": utils.round_float(self.total_distance_km),
            "total_duration_s": utils.round_float(self.total_duration_s, 1),
            "avg_speed_kmh": utils.round_float(self.avg_speed_kmh, 2),
            "max_speed_kmh": utils.round_float(self.max_speed_kmh, 2),
            "width_km": utils.round_float(self.width_km),
            "height_km": utils.round_float(self.height_km),
            "trimmed_width_km": utils.round_float(self.trimmed_width_km),
            "trimmed_height_km": utils.round_float(self.trimmed_height_km),
            "point_count": self.point_count,
        }

    def to_display(self) -> Dict[str, str]:
        """Human-readable values; anything undefined renders as a dash."""
        return {
            "distance": utils.format_number(self.total_distance_km, 2, "km"),
            "duration": utils.format_duration(self.total_duration_s),
            "avg_speed": utils.format_number(self.avg_speed_kmh, 1, "km/h"),
            "max_speed": utils.format_number(self.max_speed_kmh, 1, "km/h"),
            "extent": (f"{utils.format_number(self.width_km, 2)} x "
                       f"{utils.format_number(self.height_km, 2)} km"),
            "points": str(self.point_count),
        }


def compute_trimmed_bounds(points: Sequence[TrackPoint]) -> geometry.BoundingBox:
    """
    Bounding box from the 2nd-98th percentile of latitude and longitude.

    Each axis is trimmed independently, which removes the influence of single
    GPS outliers on the extent.

    Args:
        points: Non-empty point sequence.

    Returns:
        Trimmed BoundingBox.
    """
    lats = [p.lat for p in points]
    lons = [p.lon for p in points]
    return geometry.BoundingBox(
        min_lat=geometry.quantile(lats, constants.TRIM_LOWER_QUANTILE),
        min_lon=geometry.quantile(lons, constants.TRIM_LOWER_QUANTILE),
        max_lat=geometry.quantile(lats, constants.TRIM_UPPER_QUANTILE),
        max_lon=geometry.quantile(lons, constants.TRIM_UPPER_QUANTILE),
    )


def compute_track_statistics(points: Sequence[TrackPoint]) -> TrackStatistics:
    """
    Compute aggregate statistics for an ordered point sequence.

    - Distance is the haversine sum over consecutive points.
    - Duration is max minus min of all timestamps present (0 with fewer than two).
    - Average speed is distance over duration, 0 when duration is 0.
    - Top speed is the largest pair speed where both timestamps exist and the
      elapsed time is positive. No physical cap is applied.
    - Extents are the raw and trimmed bounding boxes converted to kilometers.

    Args:
        points: Ordered track points.

    Returns:
        TrackStatistics; all zeros for an empty sequence.
    """
    if not points:
        return TrackStatistics()

    frame = time_series.build_track_frame(points)
    deltas = time_series.compute_pair_deltas(frame)

    total_distance_km = float(np.sum(deltas.distance_km)) if len(deltas) else 0.0

    timestamps = frame["timestamp"].dropna()
    if len(timestamps) >= 2:
        total_duration_s = (timestamps.max() - timestamps.min()).total_seconds()
    else:
        total_duration_s = 0.0

    avg_speed_kmh = 0.0
    if total_duration_s > 0:
        avg_speed_kmh = total_distance_km / (total_duration_s / 3600.0)

    finite_speeds = deltas.speed_kmh[np.isfinite(deltas.speed_kmh)]
    max_speed_kmh = float(finite_speeds.max()) if finite_speeds.size else 0.0

    width_km, height_km = geometry.bounds_of_points(points).extent_km()
    trimmed_width_km, trimmed_height_km = compute_trimmed_bounds(points).extent_km()

    return TrackStatistics(
        total_distance_km=utils.finite_or_zero(total_distance_km),
        total_duration_s=utils.finite_or_zero(total_duration_s),
        avg_speed_kmh=utils.finite_or_zero(avg_speed_kmh),
        max_speed_kmh=utils.finite_or_zero(max_speed_kmh),
        width_km=utils.finite_or_zero(width_km),
        height_km=utils.finite_or_zero(height_km),
        trimmed_width_km=utils.finite_or_zero(trimmed_width_km),
        trimmed_height_km=utils.finite_or_zero(trimmed_height_km),
        point_count=len(points),
    )
