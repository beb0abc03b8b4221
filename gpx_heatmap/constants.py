"""
Constants for GPX Heatmap Analysis

This module defines the tunable values and heuristic tables used throughout
the heatmap pipeline. Everything that might be tuned lives here as plain data
so that control flow elsewhere never hard-codes a threshold.
"""

import math

# Earth geometry
EARTH_RADIUS_KM = 6371.0

# Bounding boxes handed to the map are padded on every side (degrees)
BOUNDS_PADDING_DEG = 0.0005

# Outlier-trimmed extents use these quantiles of latitude and longitude
TRIM_LOWER_QUANTILE = 0.02
TRIM_UPPER_QUANTILE = 0.98

# ============================================================================
# SEGMENTATION
# ============================================================================

# Pairs at or below this speed count towards an inactive run
LOW_SPEED_KMH = 1.0

DEFAULT_INACTIVITY_GAP_MIN = 10.0
MIN_INACTIVITY_GAP_MIN = 1.0
MAX_INACTIVITY_GAP_MIN = 60.0
MERGE_ALL_GAP = math.inf

FULL_ACTIVITY_LABEL = "Full activity"

# ============================================================================
# RASTER HEATMAP
# ============================================================================

MIN_GRID_HEIGHT_PX = 10
# Tall, narrow bounds are scaled down to this height, width shrinking in step
MAX_GRID_HEIGHT_PX = 1600
KERNEL_RADIUS_SIGMAS = 3.0
NORMALIZATION_PERCENTILE = 99.0
PERCENTILE_MAX_SAMPLES = 15000
SPAN_EPSILON = 1e-9

# Gradient stops over the rescaled (post-threshold) intensity range
GRADIENT_STOPS = [
    (0.0, "#2ecc40"),  # green
    (0.5, "#ffdc00"),  # yellow
    (0.8, "#ff851b"),  # orange
    (1.0, "#ff4136"),  # red
]
MIN_ALPHA = 0.25
MAX_ALPHA = 0.90

# Default render parameters and the ranges the UI may set
DEFAULT_GAMMA = 0.8
DEFAULT_SIGMA = 8.0
DEFAULT_THRESHOLD = 0.03
DEFAULT_RESOLUTION_PX = 900

GAMMA_RANGE = (0.3, 1.8)
SIGMA_RANGE = (2.0, 30.0)
THRESHOLD_RANGE = (0.0, 0.2)
RESOLUTION_RANGE = (400, 1600)

# ============================================================================
# ACTIVITY CLASSIFICATION
# ============================================================================

# Score rules per profile: (metric, lower bound, upper bound, weight).
# A bound of None is open. Metrics are TrackStatistics attribute names.
ACTIVITY_PROFILES = {
    "compact_field": [
        ("avg_speed_kmh", 2.0, 12.0, 2),
        ("trimmed_span_km", None, 0.25, 3),
        ("total_distance_km", None, 14.0, 1),
        ("trimmed_area_km2", None, 0.03, 2),
    ],
    "endurance_run": [
        ("avg_speed_kmh", 6.0, 20.0, 2),
        ("trimmed_span_km", 0.5, None, 2),
        ("total_distance_km", 3.0, None, 1),
        ("max_speed_kmh", None, 30.0, 1),
    ],
    "cycling": [
        ("avg_speed_kmh", 16.0, None, 3),
        ("max_speed_kmh", 35.0, None, 1),
        ("total_distance_km", 15.0, None, 2),
        ("trimmed_span_km", 2.0, None, 1),
    ],
}

# Earlier entries win ties
ACTIVITY_PRIORITY = ["cycling", "compact_field", "endurance_run"]
FALLBACK_ACTIVITY = "endurance_run"

# Relative distance to a bound that triggers an advisory note
ADVISORY_MARGIN = 0.10

METRIC_DESCRIPTIONS = {
    "avg_speed_kmh": ("average speed", "km/h"),
    "max_speed_kmh": ("top speed", "km/h"),
    "total_distance_km": ("distance", "km"),
    "trimmed_span_km": ("covered span", "km"),
    "trimmed_area_km2": ("covered area", "km²"),
}

# ============================================================================
# PLACE NAMES
# ============================================================================

GEOCODE_PRECISION = 5
UNKNOWN_PLACE_LABEL = "Unknown location"
PENDING_PLACE_LABEL = "Looking up place…"

# Address components, most specific first
VENUE_ADDRESS_KEYS = ["leisure", "amenity", "tourism", "building", "park"]
AREA_ADDRESS_KEYS = ["road", "suburb", "city", "town", "village"]

# Placeholder shown for undefined statistics
PLACEHOLDER_DASH = "—"
