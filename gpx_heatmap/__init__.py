"""
GPX Heatmap Analysis

This package ingests GPX track logs and renders georeferenced density heatmap
overlays, with live-adjustable rendering parameters and automatic splitting of
a track into activity bouts separated by long idle gaps.

The public functions and classes of the stage modules are re-exported here.
"""

# Import data models
from .models import (
    TrackPoint,
    ParsedTrack,
    RenderParams,
)

# Import geometry helpers
from .geometry import (
    BoundingBox,
    haversine_km,
    bounds_of_points,
    center_of_points,
    quantile,
    sampled_percentile,
)

# Import parsing functions
from .data_loading import (
    parse_gpx,
    load_gpx_file,
)

# Import time series functions
from .time_series import (
    build_track_frame,
    compute_pair_deltas,
    compute_speed_profile,
)

# Import statistics
from .metrics import (
    TrackStatistics,
    compute_track_statistics,
)

# Import activity classification
from .classifier import (
    ActivityType,
    Classification,
    classify_activity,
)

# Import segmentation
from .segmentation import (
    Segment,
    split_on_inactivity,
    build_segments,
)

# Import heatmap rendering
from .heatmap import (
    RasterOverlay,
    render_heatmap,
    build_overlay,
)

# Import rebuild coordination
from .rebuild import (
    RebuildSequencer,
    RebuildTicket,
)

# Import place resolution
from .geocode import (
    GeocodeCache,
    NominatimConfig,
    NominatimLookup,
    PlaceResolver,
)

# Import session orchestration
from .session import (
    Session,
    SessionManager,
)

__version__ = "0.1.0"

__all__ = [
    # Models
    "TrackPoint",
    "ParsedTrack",
    "RenderParams",
    # Geometry
    "BoundingBox",
    "haversine_km",
    "bounds_of_points",
    "center_of_points",
    "quantile",
    "sampled_percentile",
    # Parsing
    "parse_gpx",
    "load_gpx_file",
    # Time series
    "build_track_frame",
    "compute_pair_deltas",
    "compute_speed_profile",
    # Statistics
    "TrackStatistics",
    "compute_track_statistics",
    # Classification
    "ActivityType",
    "Classification",
    "classify_activity",
    # Segmentation
    "Segment",
    "split_on_inactivity",
    "build_segments",
    # Heatmap
    "RasterOverlay",
    "render_heatmap",
    "build_overlay",
    # Rebuild coordination
    "RebuildSequencer",
    "RebuildTicket",
    # Place resolution
    "GeocodeCache",
    "NominatimConfig",
    "NominatimLookup",
    "PlaceResolver",
    # Sessions
    "Session",
    "SessionManager",
]
