"""
modules/tool_usage/geocoding_tool.py
------------------------------------
Resolves address-only spots to coordinates via the Google Geocoding API.

Lookups go through an explicitly constructed GeocodingCache (TTL + bounded
size, oldest-first eviction) owned by the host process and passed in. There
is no module-level cache. A failed lookup leaves the spot unresolved; the
route optimizer then appends it at the end flagged as unknown location.

Endpoint:
    GET https://maps.googleapis.com/maps/api/geocode/json?address=...&key=...
"""

from __future__ import annotations
import logging
import threading
import time as _time_mod
from dataclasses import dataclass

import requests

import config
from schemas.itinerary import Point

logger = logging.getLogger(__name__)


@dataclass
class _CacheEntry:
    coords: tuple[float, float]
    stored_at: float


class GeocodingCache:
    """Thread-safe TTL cache keyed by normalised address."""

    def __init__(self, ttl_seconds: int | None = None, max_entries: int | None = None) -> None:
        self.ttl_seconds = ttl_seconds or config.GEOCODE_CACHE_TTL
        self.max_entries = max_entries or config.GEOCODE_CACHE_MAX_ENTRIES
        self._lock = threading.Lock()
        self._entries: dict[str, _CacheEntry] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def _key(address: str) -> str:
        return " ".join(address.lower().split())

    def get(self, address: str) -> tuple[float, float] | None:
        key = self._key(address)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or _time_mod.monotonic() - entry.stored_at > self.ttl_seconds:
                self._entries.pop(key, None)
                self.misses += 1
                return None
            self.hits += 1
            return entry.coords

    def set(self, address: str, coords: tuple[float, float]) -> None:
        key = self._key(address)
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_entries:
                oldest = min(self._entries, key=lambda k: self._entries[k].stored_at)
                del self._entries[oldest]
            self._entries[key] = _CacheEntry(coords=coords, stored_at=_time_mod.monotonic())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def stats(self) -> dict:
        with self._lock:
            total = self.hits + self.misses
            return {
                "entries":  len(self._entries),
                "hits":     self.hits,
                "misses":   self.misses,
                "hit_rate": round(self.hits / total, 4) if total else 0.0,
            }


class GeocodingTool:
    """Fills in coordinates for spots that only carry a name/address."""

    def __init__(
        self,
        cache: GeocodingCache | None = None,
        api_key: str | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.cache = cache or GeocodingCache()
        self.api_key = api_key if api_key is not None else config.GOOGLE_MAPS_API_KEY
        self.session = session or requests.Session()

    def geocode(self, query: str) -> tuple[float, float] | None:
        cached = self.cache.get(query)
        if cached is not None:
            return cached
        if not self.api_key:
            return None
        try:
            resp = self.session.get(
                config.GOOGLE_GEOCODING_URL,
                params={"address": query, "key": self.api_key},
                timeout=config.DISTANCE_REQUEST_TIMEOUT,
            )
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Geocoding error for %r: %s", query, exc)
            return None

        results = data.get("results") or []
        if data.get("status") != "OK" or not results:
            logger.warning("Geocoding returned %s for %r", data.get("status"), query)
            return None
        loc = results[0]["geometry"]["location"]
        coords = (float(loc["lat"]), float(loc["lng"]))
        self.cache.set(query, coords)
        return coords

    def resolve(self, point: Point, city: str = "") -> Point:
        """Return ``point`` with coordinates when it lacked them and a lookup succeeds."""
        if point.has_coordinates:
            return point
        query = f"{point.query}, {city}" if city else point.query
        coords = self.geocode(query)
        if coords is None:
            return point
        return point.with_coordinates(*coords)

    def resolve_all(self, points: list[Point], city: str = "") -> list[Point]:
        resolved = [self.resolve(p, city) for p in points]
        missing = sum(1 for p in resolved if not p.has_coordinates)
        if missing:
            logger.info("Geocoded %d/%d spots; %d left unresolved",
                        len(points) - missing, len(points), missing)
        return resolved
