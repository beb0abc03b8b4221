"""
Time Series Extraction for GPX Heatmap Analysis

This module flattens a point sequence into a DataFrame and derives the
consecutive-pair quantities (distance, elapsed time, implied speed) that the
statistics engine, the segmentation engine, and the speed profile share.
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import Sequence
from . import geometry
from .models import TrackPoint


@dataclass(frozen=True)
class PairDeltas:
    """
    Quantities for each consecutive pair (i-1, i), i = 1..n-1.

    Attributes:
        distance_km: Great-circle distance of each pair.
        elapsed_s: Elapsed seconds; NaN when either timestamp is missing.
        speed_kmh: Implied speed; NaN unless elapsed_s is finite and positive.
    """
    distance_km: np.ndarray
    elapsed_s: np.ndarray
    speed_kmh: np.ndarray

    def __len__(self) -> int:
        return len(self.distance_km)


def build_track_frame(points: Sequence[TrackPoint]) -> pd.DataFrame:
    """
    Convert track points to a DataFrame.

    Args:
        points: Ordered track points.

    Returns:
        DataFrame with columns lat, lon (float) and timestamp (UTC, NaT where
        missing). Row order matches the input; nothing is re-sorted.
    """
    if not points:
        return pd.DataFrame({
            "lat": pd.Series(dtype=float),
            "lon": pd.Series(dtype=float),
            "timestamp": pd.Series(dtype="datetime64[ns, UTC]"),
        })

    return pd.DataFrame({
        "lat": [p.lat for p in points],
        "lon": [p.lon for p in points],
        "timestamp": pd.to_datetime([p.time for p in points], utc=True),
    })


def compute_pair_deltas(frame: pd.DataFrame) -> PairDeltas:
    """
    Compute distance, elapsed time, and speed for every consecutive pair.

    Args:
        frame: DataFrame from build_track_frame().

    Returns:
        PairDeltas with arrays of length len(frame) - 1 (empty for < 2 rows).
    """
    if len(frame) < 2:
        empty = np.array([], dtype=float)
        return PairDeltas(empty, empty, empty)

    lat = frame["lat"].to_numpy(dtype=float)
    lon = frame["lon"].to_numpy(dtype=float)
    distance_km = np.asarray(geometry.haversine_km(lat[:-1], lon[:-1], lat[1:], lon[1:]), dtype=float)

    elapsed_s = frame["timestamp"].diff().dt.total_seconds().to_numpy(dtype=float)[1:]

    speed_kmh = np.full(distance_km.shape, np.nan)
    moving = np.isfinite(elapsed_s) & (elapsed_s > 0)
    speed_kmh[moving] = distance_km[moving] / (elapsed_s[moving] / 3600.0)

    return PairDeltas(distance_km=distance_km, elapsed_s=elapsed_s, speed_kmh=speed_kmh)


def compute_speed_profile(points: Sequence[TrackPoint]) -> pd.DataFrame:
    """
    Build a speed-versus-time series for charting.

    Elapsed time is measured from the first timestamped point. Each point's
    speed is the implied speed from its predecessor; the first point, and any
    point whose elapsed time from its predecessor is missing or not positive,
    gets 0.

    Args:
        points: Ordered track points.

    Returns:
        DataFrame with columns elapsed_s (NaN for points without a timestamp)
        and speed_kmh.
    """
    frame = build_track_frame(points)
    if frame.empty:
        return pd.DataFrame({"elapsed_s": pd.Series(dtype=float), "speed_kmh": pd.Series(dtype=float)})

    timestamps = frame["timestamp"]
    valid = timestamps.dropna()
    if valid.empty:
        elapsed = np.full(len(frame), np.nan)
    else:
        elapsed = (timestamps - valid.iloc[0]).dt.total_seconds().to_numpy(dtype=float)

    deltas = compute_pair_deltas(frame)
    speeds = np.concatenate([[0.0], np.nan_to_num(deltas.speed_kmh, nan=0.0)])

    return pd.DataFrame({"elapsed_s": elapsed, "speed_kmh": speeds})
