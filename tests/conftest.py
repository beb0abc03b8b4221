"""
Shared fixtures for the gpx_heatmap test suite.

Builders for track points and GPX documents live here so each test module can
describe tracks compactly as (lat, lon, minutes-from-start) rows.
"""

from datetime import datetime, timedelta, timezone

import pytest

from gpx_heatmap.models import TrackPoint

T0 = datetime(2024, 5, 1, 9, 0, 0, tzinfo=timezone.utc)


def _at(offset):
    """Offset in minutes from T0; None means no timestamp."""
    if offset is None:
        return None
    return T0 + timedelta(minutes=offset)


@pytest.fixture
def start_time():
    return T0


@pytest.fixture
def make_points():
    """Factory: rows of (lat, lon, minutes or None) -> list of TrackPoint."""
    def _make(rows):
        return [TrackPoint(lat=lat, lon=lon, time=_at(minutes)) for lat, lon, minutes in rows]
    return _make


@pytest.fixture
def make_gpx():
    """Factory: rows of (lat, lon, minutes or None) -> GPX 1.1 document text."""
    def _make(rows, metadata_time=None):
        parts = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<gpx version="1.1" creator="tests" xmlns="http://www.topografix.com/GPX/1/1">',
        ]
        if metadata_time is not None:
            parts.append(f"<metadata><time>{metadata_time}</time></metadata>")
        parts.append("<trk><name>Test</name><trkseg>")
        for lat, lon, minutes in rows:
            ts = _at(minutes)
            time_xml = f"<time>{ts.strftime('%Y-%m-%dT%H:%M:%SZ')}</time>" if ts else ""
            parts.append(f'<trkpt lat="{lat}" lon="{lon}"><ele>12.0</ele>{time_xml}</trkpt>')
        parts.append("</trkseg></trk></gpx>")
        return "\n".join(parts)
    return _make


@pytest.fixture
def break_track_rows():
    """
    Twenty-minute track: one minute moving, eighteen minutes standing still,
    one minute moving again. Points are one minute apart.
    """
    rows = [(0.0, 0.0, 0), (0.0, 0.01, 1)]
    rows += [(0.0, 0.01, minute) for minute in range(2, 20)]
    rows += [(0.0, 0.02, 20)]
    return rows
