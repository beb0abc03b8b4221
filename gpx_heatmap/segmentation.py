"""
Segmentation for GPX Heatmap Analysis

This module splits a track into contiguous activity bouts wherever a
sustained low-speed run lasts at least the configured inactivity gap, and
wraps each bout into a Segment with bounds, statistics, and a slot for its
rendered overlay.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence, Tuple
from . import constants
from . import geometry
from . import metrics
from . import time_series
from .models import RenderParams, TrackPoint

logger = logging.getLogger(__name__)


@dataclass
class Segment:
    """
    A contiguous slice of a track.

    Attributes:
        index: Position within the session's segment list.
        start_idx: First track index (inclusive).
        end_idx: Last track index (exclusive).
        points: The sliced points.
        bounds: Padded bounding box the overlay is anchored to.
        statistics: Statistics of this slice alone.
        label: Display label.
        overlay: Rendered heatmap, None while pending or when cleared.
        render_params: Parameters the current overlay was produced with.
    """
    index: int
    start_idx: int
    end_idx: int
    points: List[TrackPoint]
    bounds: geometry.BoundingBox
    statistics: metrics.TrackStatistics
    label: str
    overlay: Optional[object] = None
    render_params: Optional[RenderParams] = None

    @property
    def point_count(self) -> int:
        return len(self.points)

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "label": self.label,
            "start_idx": self.start_idx,
            "end_idx": self.end_idx,
            "point_count": self.point_count,
            "bounds": self.bounds.to_list(),
            "statistics": self.statistics.to_dict(),
            "overlay": self.overlay.data_uri if self.overlay is not None else None,
            "render_params": self.render_params.to_dict() if self.render_params else None,
        }


def split_on_inactivity(points: Sequence[TrackPoint], gap_minutes: float) -> List[Tuple[int, int]]:
    """
    Find the index ranges of activity bouts separated by long idle gaps.

    Walks consecutive pairs. A pair at or below LOW_SPEED_KMH extends the
    current low-speed run; once the run's accumulated time reaches the gap it
    is a qualified break. When speed rises again after a qualified break, the
    current bout is closed at the point where the break began and the next bout
    starts at the point where movement resumes. A break that begins the
    current bout (idle time right after switching on) closes nothing; the bout
    simply starts where movement resumes.

    Pairs with missing timestamps or zero elapsed time reset the low-speed run.
    A negative elapsed time additionally closes the current bout before the
    later point, guarding against out-of-order timestamps.

    At the end of the track a pending qualified break is dropped; otherwise the
    remaining tail closes the last bout.

    Args:
        points: Ordered track points.
        gap_minutes: Inactivity threshold in minutes; math.inf merges all.

    Returns:
        List of (start, end) index ranges with exclusive end. Non-empty
        whenever points is non-empty.
    """
    n = len(points)
    if n == 0:
        return []
    if math.isinf(gap_minutes) or n < 2:
        return [(0, n)]

    gap_s = gap_minutes * 60.0
    deltas = time_series.compute_pair_deltas(time_series.build_track_frame(points))

    ranges = []
    seg_start = 0
    low_start = None
    inactive_s = 0.0
    qualified = False

    def close(end: int) -> None:
        if end > seg_start:
            ranges.append((seg_start, end))

    def close_before_break() -> None:
        # A break that opens the current bout leaves nothing worth keeping
        if low_start > seg_start:
            close(low_start + 1)

    for i in range(1, n):
        elapsed = deltas.elapsed_s[i - 1]

        if not math.isfinite(elapsed) or elapsed <= 0:
            if math.isfinite(elapsed) and elapsed < 0:
                if qualified:
                    close_before_break()
                else:
                    close(i)
                seg_start = i
            low_start = None
            inactive_s = 0.0
            qualified = False
            continue

        if deltas.speed_kmh[i - 1] <= constants.LOW_SPEED_KMH:
            if low_start is None:
                low_start = i - 1
                inactive_s = 0.0
            inactive_s += elapsed
            if inactive_s >= gap_s:
                qualified = True
            continue

        if qualified:
            close_before_break()
            seg_start = i - 1
        low_start = None
        inactive_s = 0.0
        qualified = False

    if qualified:
        close_before_break()
    else:
        close(n)

    if not ranges:
        ranges.append((0, n))
    return ranges


def _clock(ts: Optional[datetime]) -> Optional[str]:
    return ts.strftime("%H:%M") if ts is not None else None


def segment_label(index: int, total: int, points: Sequence[TrackPoint]) -> str:
    """
    Display label for a segment.

    A lone segment is the full activity; otherwise segments are numbered from
    1 and carry their clock-time span when timestamps exist.
    """
    if total == 1:
        return constants.FULL_ACTIVITY_LABEL
    label = f"Segment {index + 1}"
    times = [p.time for p in points if p.time is not None]
    if times:
        label += f" ({_clock(min(times))}–{_clock(max(times))})"
    return label


def build_segments(points: Sequence[TrackPoint], gap_minutes: float,
                   padding_deg: float = constants.BOUNDS_PADDING_DEG) -> List[Segment]:
    """
    Split a track and enrich each bout into a Segment.

    Overlays start empty; rendering is scheduled by the session layer.

    Args:
        points: Ordered track points.
        gap_minutes: Inactivity threshold in minutes; math.inf merges all.
        padding_deg: Margin added around each segment's bounds.

    Returns:
        Ordered list of Segments (empty only for an empty track).
    """
    ranges = split_on_inactivity(points, gap_minutes)
    segments = []
    for index, (start, end) in enumerate(ranges):
        chunk = list(points[start:end])
        segments.append(Segment(
            index=index,
            start_idx=start,
            end_idx=end,
            points=chunk,
            bounds=geometry.bounds_of_points(chunk).padded(padding_deg),
            statistics=metrics.compute_track_statistics(chunk),
            label=segment_label(index, len(ranges), chunk),
        ))
    logger.debug(f"Split {len(points)} points into {len(segments)} segments (gap={gap_minutes} min)")
    return segments
