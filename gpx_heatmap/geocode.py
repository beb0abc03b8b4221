"""
Reverse Geocoding for GPX Heatmap Analysis

This module turns a track's center coordinate into a short place label. The
lookup itself is an injectable coroutine function; the default one calls the
OpenStreetMap Nominatim reverse API. PlaceResolver wraps any lookup with a
process-wide cache and a fixed fallback label, so callers never see a failure.

Note:
    Public Nominatim is rate-limited. Respect its usage policy: set a
    descriptive User-Agent and keep the request interval at one second or more.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import requests

from . import constants

logger = logging.getLogger(__name__)

PlaceLookup = Callable[[float, float], Awaitable[Optional[str]]]


def coord_key(lat: float, lon: float, precision: int = constants.GEOCODE_PRECISION) -> str:
    """
    Build a stable cache key by rounding coordinates.

    Precision 5 is roughly one meter of latitude.
    """
    return f"{round(lat, precision):.{precision}f},{round(lon, precision):.{precision}f}"


class GeocodeCache:
    """In-memory place-label cache keyed by rounded coordinate. Lives for the process."""

    def __init__(self, precision: int = constants.GEOCODE_PRECISION) -> None:
        self.precision = precision
        self._data: Dict[str, str] = {}

    def key(self, lat: float, lon: float) -> str:
        return coord_key(lat, lon, self.precision)

    def get(self, lat: float, lon: float) -> Optional[str]:
        return self._data.get(self.key(lat, lon))

    def set(self, lat: float, lon: float, place: str) -> None:
        self._data[self.key(lat, lon)] = place

    def __len__(self) -> int:
        return len(self._data)


@dataclass(frozen=True)
class NominatimConfig:
    """Configuration for the Nominatim reverse API."""

    base_url: str = "https://nominatim.openstreetmap.org/reverse"
    accept_language: str = "en"
    zoom: int = 16
    timeout_seconds: float = 10.0
    min_interval_seconds: float = 1.0
    user_agent: str = "gpx-heatmap/0.1.0 (reverse-geocode; please set your own UA)"


def extract_place_label(raw: Dict[str, Any]) -> Optional[str]:
    """
    Pick a short human label from a Nominatim response.

    Named venues and facilities are preferred over generic address parts;
    the first component of display_name is the last resort.

    Args:
        raw: Parsed JSON response.

    Returns:
        Label, or None if the response holds nothing usable.
    """
    name = str(raw.get("name") or "").strip()
    if name:
        return name

    address = raw.get("address") or {}
    for key in constants.VENUE_ADDRESS_KEYS + constants.AREA_ADDRESS_KEYS:
        value = str(address.get(key) or "").strip()
        if value:
            return value

    display_name = str(raw.get("display_name") or "").strip()
    if display_name:
        return display_name.split(",")[0].strip() or display_name
    return None


def nominatim_reverse_raw(lat: float, lon: float, cfg: NominatimConfig) -> Dict[str, Any]:
    """
    Call the Nominatim reverse API.

    Args:
        lat: Latitude.
        lon: Longitude.
        cfg: NominatimConfig.

    Returns:
        Parsed JSON dict.

    Raises:
        requests.RequestException: On network errors or non-2xx status.
        ValueError: If the body is not a JSON object.
    """
    params = {
        "format": "jsonv2",
        "lat": f"{lat:.8f}",
        "lon": f"{lon:.8f}",
        "zoom": str(cfg.zoom),
        "addressdetails": "1",
        "accept-language": cfg.accept_language,
    }
    response = requests.get(
        cfg.base_url,
        params=params,
        headers={"User-Agent": cfg.user_agent, "Accept": "application/json"},
        timeout=cfg.timeout_seconds,
    )
    response.raise_for_status()
    raw = response.json()
    if not isinstance(raw, dict):
        raise ValueError("Unexpected reverse geocoding response")
    if "error" in raw:
        raise ValueError(f"Reverse geocoding error: {raw['error']}")
    return raw


class NominatimLookup:
    """Async place lookup backed by Nominatim, spaced by min_interval_seconds."""

    def __init__(self, config: NominatimConfig = NominatimConfig()) -> None:
        self._cfg = config
        self._last_request_at = 0.0

    async def __call__(self, lat: float, lon: float) -> Optional[str]:
        wait = self._cfg.min_interval_seconds - (time.monotonic() - self._last_request_at)
        if wait > 0:
            await asyncio.sleep(wait)
        self._last_request_at = time.monotonic()
        raw = await asyncio.to_thread(nominatim_reverse_raw, lat, lon, self._cfg)
        return extract_place_label(raw)


class PlaceResolver:
    """
    Cached, failure-proof place resolution.

    Args:
        lookup: Coroutine function (lat, lon) -> label or None.
        cache: Shared GeocodeCache; a fresh one is created if omitted.
    """

    def __init__(self, lookup: PlaceLookup = None, cache: GeocodeCache = None) -> None:
        self._lookup = lookup if lookup is not None else NominatimLookup()
        self.cache = cache if cache is not None else GeocodeCache()

    async def resolve(self, lat: float, lon: float) -> str:
        """
        Resolve a coordinate to a place label.

        Returns:
            Cached or freshly looked-up label; UNKNOWN_PLACE_LABEL when the
            lookup fails or returns nothing. Failures are not cached.
        """
        cached = self.cache.get(lat, lon)
        if cached is not None:
            logger.debug(f"Place cache hit for {self.cache.key(lat, lon)}")
            return cached

        try:
            place = await self._lookup(lat, lon)
        except Exception as exc:
            logger.warning(f"Reverse geocoding failed for {lat:.5f},{lon:.5f}: {exc}")
            return constants.UNKNOWN_PLACE_LABEL

        if not place:
            return constants.UNKNOWN_PLACE_LABEL

        self.cache.set(lat, lon, place)
        return place
