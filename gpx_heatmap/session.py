"""
Session Orchestration for GPX Heatmap Analysis

This module ties the pipeline together. Ingesting a file parses it, computes
statistics, classifies the activity, splits it into segments, and schedules
the active segment's overlay rebuild and the place lookup. Parameter,
inactivity-gap, selection, and merge changes re-enter through rebuild
scheduling.

All state changes happen on the event loop. Overlay rebuilds and place
lookups are awaited in background tasks; a rebuild result is committed only
if its RebuildTicket is still current, otherwise it is discarded.
"""

import asyncio
import itertools
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

import pandas as pd

from . import classifier
from . import constants
from . import data_loading
from . import geometry
from . import heatmap
from . import metrics
from . import segmentation
from . import time_series
from .geocode import PlaceResolver
from .models import ParsedTrack, RenderParams, TrackPoint
from .rebuild import RebuildSequencer, RebuildTicket

logger = logging.getLogger(__name__)

OverlayBuilder = Callable[[Sequence[TrackPoint], geometry.BoundingBox, RenderParams],
                          Awaitable[heatmap.RasterOverlay]]


@dataclass
class Session:
    """
    State for one ingested track file.

    Attributes:
        id: Unique session identifier.
        file_name: Name of the source file.
        start_time: First timestamp of the track, if any.
        place: Place label; pending until resolution completes.
        points: The parsed track.
        statistics: Whole-track statistics.
        classification: Activity label and advisory note.
        params: Current render parameters, shared by all segments.
        segments: Current segmentation of the track.
        active_segment_index: Segment whose overlay is displayed.
        inactivity_gap_minutes: Gap used for the current segmentation.
    """
    id: str
    file_name: str
    start_time: Optional[datetime]
    points: List[TrackPoint]
    statistics: metrics.TrackStatistics
    classification: classifier.Classification
    params: RenderParams
    segments: List[segmentation.Segment]
    inactivity_gap_minutes: float
    active_segment_index: int = 0
    place: str = constants.PENDING_PLACE_LABEL

    @property
    def active_segment(self) -> Optional[segmentation.Segment]:
        if 0 <= self.active_segment_index < len(self.segments):
            return self.segments[self.active_segment_index]
        return None

    @property
    def bounds(self) -> geometry.BoundingBox:
        return geometry.bounds_of_points(self.points).padded()

    @property
    def center(self):
        return geometry.center_of_points(self.points)

    def to_payload(self) -> Dict:
        """
        JSON-ready snapshot of the session for the display layer.

        Returns:
            Dictionary with identity, place, statistics (raw and formatted),
            classification, params, segments, and the active overlay.
        """
        active = self.active_segment
        return {
            "id": self.id,
            "file_name": self.file_name,
            "place": self.place,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "activity": self.classification.to_dict(),
            "statistics": self.statistics.to_dict(),
            "statistics_display": self.statistics.to_display(),
            "params": self.params.to_dict(),
            "inactivity_gap_minutes": (None if math.isinf(self.inactivity_gap_minutes)
                                       else self.inactivity_gap_minutes),
            "bounds": self.bounds.to_list(),
            "active_segment_index": self.active_segment_index,
            "segments": [segment.to_dict() for segment in self.segments],
            "overlay": active.overlay.data_uri if active and active.overlay else None,
            "overlay_bounds": active.bounds.to_list() if active else None,
        }


def clamp_gap_minutes(gap_minutes: float) -> float:
    """Clamp an inactivity gap into the UI range; infinity passes through as merge-all."""
    if math.isinf(gap_minutes) and gap_minutes > 0:
        return constants.MERGE_ALL_GAP
    if not math.isfinite(gap_minutes):
        raise ValueError(f"Invalid inactivity gap: {gap_minutes}")
    return min(max(float(gap_minutes), constants.MIN_INACTIVITY_GAP_MIN), constants.MAX_INACTIVITY_GAP_MIN)


class SessionManager:
    """
    Owns all sessions of the process and schedules their background work.

    Args:
        sequencer: Rebuild token source; a fresh one is created if omitted.
        resolver: Place resolver; defaults to Nominatim with a fresh cache.
        overlay_builder: Coroutine function rendering (points, bounds, params).
        default_gap_minutes: Inactivity gap for newly ingested tracks.
    """

    def __init__(self, sequencer: RebuildSequencer = None, resolver: PlaceResolver = None,
                 overlay_builder: OverlayBuilder = None,
                 default_gap_minutes: float = constants.DEFAULT_INACTIVITY_GAP_MIN) -> None:
        self.sequencer = sequencer if sequencer is not None else RebuildSequencer()
        self.resolver = resolver if resolver is not None else PlaceResolver()
        self.overlay_builder = overlay_builder if overlay_builder is not None else heatmap.build_overlay
        self.default_gap_minutes = clamp_gap_minutes(default_gap_minutes)
        self.sessions: Dict[str, Session] = {}
        self._ids = itertools.count(1)
        self._tasks = set()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def ingest(self, file_name: str, text: str,
               params: RenderParams = None) -> Optional[Session]:
        """
        Create a session from GPX text.

        Must be called with a running event loop; the overlay rebuild and the
        place lookup start as background tasks.

        Args:
            file_name: Name shown for the session.
            text: Raw GPX text.
            params: Initial render parameters; defaults apply if omitted.

        Returns:
            The new Session, or None when the text holds no valid points.
        """
        return self.ingest_parsed(file_name, data_loading.parse_gpx(text), params)

    async def ingest_file(self, file_path, params: RenderParams = None) -> Optional[Session]:
        """Read a GPX file from disk (off the loop) and ingest it."""
        parsed = await asyncio.to_thread(data_loading.load_gpx_file, file_path)
        return self.ingest_parsed(Path(file_path).name, parsed, params)

    def ingest_parsed(self, file_name: str, parsed: ParsedTrack,
                      params: RenderParams = None) -> Optional[Session]:
        """Create a session from an already parsed track; see ingest()."""
        if parsed.is_empty:
            logger.info(f"Skipping {file_name}: no valid track points")
            return None

        points = parsed.points
        statistics = metrics.compute_track_statistics(points)
        classification = classifier.classify_activity(statistics)
        segments = segmentation.build_segments(points, self.default_gap_minutes)

        session_id = f"{file_name}-{next(self._ids)}"
        session = Session(
            id=session_id,
            file_name=file_name,
            start_time=parsed.start_time,
            points=points,
            statistics=statistics,
            classification=classification,
            params=params.snapshot() if params is not None else RenderParams(),
            segments=segments,
            inactivity_gap_minutes=self.default_gap_minutes,
        )
        self.sessions[session_id] = session
        self.sequencer.reset_session(session_id)

        logger.info(
            f"Ingested {file_name}: {len(points)} points, {len(segments)} segments, "
            f"activity={classification.label.value}"
        )

        self.schedule_rebuild(session_id)
        self._spawn(self._resolve_place(session_id))
        return session

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def get(self, session_id: str) -> Session:
        """
        Look up a session.

        Raises:
            KeyError: If no session has this id.
        """
        return self.sessions[session_id]

    def update_params(self, session_id: str, **changes) -> RenderParams:
        """
        Change render parameters and rebuild the active overlay.

        Unspecified knobs keep their current values; all are clamped into
        their UI ranges.

        Returns:
            The session's updated RenderParams.
        """
        session = self.get(session_id)
        merged = {**session.params.to_dict(), **changes}
        updated = RenderParams.from_ui(**merged)
        session.params.gamma = updated.gamma
        session.params.sigma = updated.sigma
        session.params.threshold = updated.threshold
        session.params.resolution_px = updated.resolution_px
        self.schedule_rebuild(session_id)
        return session.params

    def set_inactivity_gap(self, session_id: str, gap_minutes: float) -> List[segmentation.Segment]:
        """
        Re-segment a session with a new inactivity gap.

        Every outstanding segment rebuild of the session is invalidated, the
        first segment becomes active, and its overlay is rebuilt.

        Returns:
            The new segment list.
        """
        session = self.get(session_id)
        gap = clamp_gap_minutes(gap_minutes)
        self.sequencer.bump_split(session_id)
        session.inactivity_gap_minutes = gap
        session.segments = segmentation.build_segments(session.points, gap)
        session.active_segment_index = 0
        logger.info(f"Re-segmented {session_id} into {len(session.segments)} segments (gap={gap} min)")
        self.schedule_rebuild(session_id)
        return session.segments

    def merge_segments(self, session_id: str) -> List[segmentation.Segment]:
        """Merge all segments back into one covering the whole track."""
        return self.set_inactivity_gap(session_id, constants.MERGE_ALL_GAP)

    def select_segment(self, session_id: str, index: int) -> segmentation.Segment:
        """
        Make another segment active and rebuild its overlay.

        Raises:
            IndexError: If index is out of range.
        """
        session = self.get(session_id)
        index = int(index)
        if not 0 <= index < len(session.segments):
            raise IndexError(f"Segment {index} out of range for {session_id}")
        session.active_segment_index = index
        self.schedule_rebuild(session_id)
        return session.segments[index]

    # ------------------------------------------------------------------
    # Background work
    # ------------------------------------------------------------------

    def schedule_rebuild(self, session_id: str) -> Optional[RebuildTicket]:
        """
        Issue a rebuild token for the active segment and start rendering.

        A segment without points has its overlay cleared and nothing is
        rendered.

        Returns:
            The ticket, or None when there was nothing to render.
        """
        session = self.get(session_id)
        segment = session.active_segment
        if segment is None:
            return None

        ticket = self.sequencer.issue(session_id, segment.index)
        if not segment.points:
            logger.warning(f"Segment {segment.label} of {session_id} has no points; clearing overlay")
            segment.overlay = None
            segment.render_params = None
            return None

        params = session.params.snapshot()
        self._spawn(self._rebuild(ticket, segment, params))
        return ticket

    async def _rebuild(self, ticket: RebuildTicket, segment: segmentation.Segment,
                       params: RenderParams) -> None:
        overlay = await self.overlay_builder(segment.points, segment.bounds, params)
        if not self.sequencer.is_current(ticket):
            logger.debug(f"Discarding stale rebuild {ticket.sequence} for {ticket.key}")
            return
        segment.overlay = overlay
        segment.render_params = params

    async def _resolve_place(self, session_id: str) -> None:
        session = self.get(session_id)
        lat, lon = session.center
        session.place = await self.resolver.resolve(lat, lon)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Background task failed", exc_info=task.exception())

    async def wait_idle(self) -> None:
        """Wait until every background rebuild and lookup has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    def speed_profile(self, session_id: str, segment_index: int = None) -> pd.DataFrame:
        """
        Speed-versus-time series for a session or one of its segments.

        Returns:
            DataFrame with columns elapsed_s and speed_kmh.
        """
        session = self.get(session_id)
        if segment_index is None:
            return time_series.compute_speed_profile(session.points)
        return time_series.compute_speed_profile(session.segments[segment_index].points)
