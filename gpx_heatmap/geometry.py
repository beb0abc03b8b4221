"""
Geometry Utilities for GPX Heatmap Analysis

This module provides great-circle distances, bounding boxes, and the quantile
helpers used by the statistics engine and the raster builder.
"""

import math
import numpy as np
from dataclasses import dataclass
from typing import Sequence, Tuple
from . import constants


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great-circle distance between two points on Earth.

    Uses the Haversine formula on a sphere of radius 6371 km. Works on scalars
    and, element-wise, on numpy arrays.

    Args:
        lat1, lon1: Latitude and longitude of first point in degrees.
        lat2, lon2: Latitude and longitude of second point in degrees.

    Returns:
        Distance in kilometers between the two points.
    """
    lat1_rad, lon1_rad = np.deg2rad(lat1), np.deg2rad(lon1)
    lat2_rad, lon2_rad = np.deg2rad(lat2), np.deg2rad(lon2)

    dlat = lat2_rad - lat1_rad
    dlon = lon2_rad - lon1_rad

    a = np.sin(dlat / 2) ** 2 + np.cos(lat1_rad) * np.cos(lat2_rad) * np.sin(dlon / 2) ** 2
    a = np.clip(a, 0.0, 1.0)
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))

    return constants.EARTH_RADIUS_KM * c


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned lat/lon box."""
    min_lat: float
    min_lon: float
    max_lat: float
    max_lon: float

    @property
    def lat_span(self) -> float:
        return self.max_lat - self.min_lat

    @property
    def lon_span(self) -> float:
        return self.max_lon - self.min_lon

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.min_lat + self.max_lat) / 2, (self.min_lon + self.max_lon) / 2)

    def padded(self, margin_deg: float = constants.BOUNDS_PADDING_DEG) -> "BoundingBox":
        """Return a copy grown by margin_deg on every side, clamped to valid coordinates."""
        return BoundingBox(
            min_lat=max(self.min_lat - margin_deg, -90.0),
            min_lon=max(self.min_lon - margin_deg, -180.0),
            max_lat=min(self.max_lat + margin_deg, 90.0),
            max_lon=min(self.max_lon + margin_deg, 180.0),
        )

    def extent_km(self) -> Tuple[float, float]:
        """
        Width and height of the box in kilometers.

        Width is measured along the middle latitude, height along the middle
        longitude.

        Returns:
            (width_km, height_km)
        """
        mid_lat, mid_lon = self.center
        width = float(haversine_km(mid_lat, self.min_lon, mid_lat, self.max_lon))
        height = float(haversine_km(self.min_lat, mid_lon, self.max_lat, mid_lon))
        return width, height

    def to_list(self):
        """Corner pairs [[south, west], [north, east]], the form map overlays expect."""
        return [[self.min_lat, self.min_lon], [self.max_lat, self.max_lon]]


def bounds_of_points(points: Sequence) -> BoundingBox:
    """
    Compute the raw bounding box of a point sequence.

    Args:
        points: Objects with lat and lon attributes.

    Returns:
        BoundingBox; all zeros for an empty sequence.
    """
    if not points:
        return BoundingBox(0.0, 0.0, 0.0, 0.0)
    lats = [p.lat for p in points]
    lons = [p.lon for p in points]
    return BoundingBox(min(lats), min(lons), max(lats), max(lons))


def center_of_points(points: Sequence) -> Tuple[float, float]:
    """Midpoint of the raw bounds, (0, 0) for an empty sequence."""
    return bounds_of_points(points).center


def quantile(values, q: float) -> float:
    """
    Quantile with linear interpolation between order statistics.

    Args:
        values: Sequence of numbers.
        q: Quantile in [0, 1].

    Returns:
        Interpolated quantile, or NaN for an empty input.
    """
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return math.nan
    return float(np.quantile(arr, q))


def sampled_percentile(values: np.ndarray, percentile: float,
                       max_samples: int = constants.PERCENTILE_MAX_SAMPLES) -> float:
    """
    Estimate a percentile from a strided sample of at most ~max_samples values.

    The flat array is read with a fixed stride, the sample sorted, and the
    value at floor(p * (n - 1)) returned. Deterministic for a given input.

    Args:
        values: Array of any shape.
        percentile: Percentile in [0, 100].
        max_samples: Upper bound on sample size.

    Returns:
        Estimated percentile, 0.0 for an empty input.
    """
    flat = np.asarray(values, dtype=float).ravel()
    if flat.size == 0:
        return 0.0
    stride = max(1, math.ceil(flat.size / max_samples))
    sample = np.sort(flat[::stride])
    index = int(math.floor(percentile / 100.0 * (sample.size - 1)))
    index = min(max(index, 0), sample.size - 1)
    return float(sample[index])
