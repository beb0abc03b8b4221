"""
Data Loading and Parsing for GPX Heatmap Analysis

This module turns raw GPX text into an ordered list of track points. Parsing is
lenient: malformed points are dropped, unreadable timestamps become None, and a
document that cannot be read at all yields an empty track.
"""

import logging
import xml.etree.ElementTree as ET
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

import pandas as pd

from . import utils
from .models import ParsedTrack, TrackPoint

logger = logging.getLogger(__name__)

POINT_TAG = "trkpt"
TIME_TAG = "time"
METADATA_TAG = "metadata"


def _local_name(tag) -> str:
    """Strip any XML namespace from an element tag."""
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _child_text(element: ET.Element, name: str) -> Optional[str]:
    for child in element:
        if _local_name(child.tag) == name:
            text = (child.text or "").strip()
            return text or None
    return None


def parse_timestamps(raw_times: List[Optional[str]]) -> List[Optional[datetime]]:
    """
    Parse ISO-8601 timestamp strings into timezone-aware UTC datetimes.

    Args:
        raw_times: Timestamp strings; None entries are allowed.

    Returns:
        One datetime or None per input entry, in the same order.
    """
    if not raw_times:
        return []
    parsed = pd.to_datetime(pd.Series(raw_times, dtype=object), utc=True,
                            errors="coerce", format="ISO8601")
    return [None if pd.isna(ts) else ts.to_pydatetime() for ts in parsed]


def _document_time(root: ET.Element) -> Optional[str]:
    """
    Find a document-level timestamp.

    Looks in <metadata><time> (GPX 1.1) and then in a <time> element directly
    under the root (GPX 1.0).
    """
    for element in root.iter():
        if _local_name(element.tag) == METADATA_TAG:
            text = _child_text(element, TIME_TAG)
            if text:
                return text
    return _child_text(root, TIME_TAG)


def _valid_coordinate(lat: float, lon: float) -> bool:
    return (utils.is_finite(lat) and utils.is_finite(lon)
            and -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0)


def parse_gpx(text: str) -> ParsedTrack:
    """
    Parse GPX text into an ordered track.

    Each <trkpt> element contributes a point when both its lat and lon
    attributes parse to finite, in-range numbers. The nested <time> element is
    optional. Point order is preserved as found in the document.

    The start time is the first valid point-level timestamp, falling back to a
    document-level timestamp, else None.

    Args:
        text: Raw GPX document text.

    Returns:
        ParsedTrack, possibly with no points. Never raises on bad content.
    """
    if not text or not text.strip():
        return ParsedTrack()

    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        logger.warning(f"Could not parse track document: {exc}")
        return ParsedTrack()

    coords = []
    raw_times = []
    for element in root.iter():
        if _local_name(element.tag) != POINT_TAG:
            continue
        lat = utils.safe_float(element.get("lat"))
        lon = utils.safe_float(element.get("lon"))
        if not _valid_coordinate(lat, lon):
            continue
        coords.append((lat, lon))
        raw_times.append(_child_text(element, TIME_TAG))

    times = parse_timestamps(raw_times)
    points = [TrackPoint(lat=lat, lon=lon, time=ts) for (lat, lon), ts in zip(coords, times)]

    start_time = next((ts for ts in times if ts is not None), None)
    if start_time is None:
        doc_times = parse_timestamps([_document_time(root)])
        start_time = doc_times[0] if doc_times else None

    dropped = sum(1 for e in root.iter() if _local_name(e.tag) == POINT_TAG) - len(points)
    if dropped:
        logger.debug(f"Dropped {dropped} malformed track points")

    return ParsedTrack(points=points, start_time=start_time)


def load_gpx_file(file_path: Union[str, Path]) -> ParsedTrack:
    """
    Read and parse a GPX file from disk.

    Args:
        file_path: Path to the GPX file.

    Returns:
        ParsedTrack for the file contents.
    """
    text = Path(file_path).read_text(encoding="utf-8", errors="replace")
    return parse_gpx(text)
