"""
modules/tool_usage/distance_tool.py
-------------------------------------
Travel-time providers.

  HaversineDistanceTool    straight-line distance / per-mode speed; no I/O.
                           Used directly for large spot counts (proxy matrix)
                           and to estimate legs a real provider could not route.
  GoogleRoutesDistanceTool one batched POST to the Routes API
                           computeRouteMatrix endpoint per optimisation.

Routes API request:
    POST https://routes.googleapis.com/distanceMatrix/v2:computeRouteMatrix
    Headers:
        X-Goog-Api-Key:   {GOOGLE_MAPS_API_KEY}
        X-Goog-FieldMask: originIndex,destinationIndex,duration,distanceMeters,status,condition
    Body:
        {"origins": [{"waypoint": {"location": {"latLng": {...}}}}, ...],
         "destinations": [...], "travelMode": "WALK" | "DRIVE" | "TRANSIT"}

Response: JSON array of elements; elements without ``condition ==
ROUTE_EXISTS`` (or with a non-empty ``status``) become ``None`` cells.

Retry/backoff lives here and nowhere else: transport errors, HTTP 429 and
5xx are retried with exponential backoff (config.DISTANCE_MAX_ATTEMPTS).

Config knobs (config.py):
  DISTANCE_PROVIDER, PROXY_SPEEDS_KMH, DISTANCE_REQUEST_TIMEOUT,
  DISTANCE_MAX_ATTEMPTS, DISTANCE_BACKOFF_MAX_SECONDS
"""

from __future__ import annotations
import logging
import math
from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import urlencode

import requests
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

import config
from modules.errors import DistanceUnavailable
from schemas.itinerary import DistanceEntry, DistanceMatrix, Point

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Pure maths
# ---------------------------------------------------------------------------

_EARTH_RADIUS_KM = 6371.0

_ROUTES_TRAVEL_MODES = {
    "walking": "WALK",
    "driving": "DRIVE",
    "transit": "TRANSIT",
}


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points (Haversine formula) in km."""
    r = _EARTH_RADIUS_KM
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lam = math.radians(lon2 - lon1)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lam / 2) ** 2
    )
    return 2 * r * math.asin(math.sqrt(a))


def _km_to_seconds(km: float, speed_kmh: float) -> float:
    """Straight-line km to seconds at a given speed."""
    return (km / speed_kmh) * 3600.0


def _parse_duration_s(value: str) -> float:
    """Routes API duration string ("123s" / "12.5s") to seconds."""
    return float(value.strip().rstrip("s") or 0)


def navigation_url(origin: Point, destination: Point, mode: str) -> str:
    """Google Maps directions link between two points."""
    def _loc(p: Point) -> str:
        return f"{p.lat},{p.lon}" if p.has_coordinates else p.query

    params = {
        "api": "1",
        "origin": _loc(origin),
        "destination": _loc(destination),
        "travelmode": mode if mode in _ROUTES_TRAVEL_MODES else "walking",
    }
    return f"{config.GOOGLE_MAPS_DIR_URL}?{urlencode(params)}"


# ---------------------------------------------------------------------------
# Provider interface
# ---------------------------------------------------------------------------


class DistanceProvider(ABC):
    """Returns a square travel matrix for points that all carry coordinates."""

    @abstractmethod
    def distance_matrix(self, points: list[Point], mode: str) -> DistanceMatrix:
        """Raise DistanceUnavailable when nothing usable can be returned."""


# ---------------------------------------------------------------------------
# HaversineDistanceTool
# ---------------------------------------------------------------------------


class HaversineDistanceTool(DistanceProvider):
    """
    Proxy travel times from the Haversine formula plus a per-mode speed
    (config.PROXY_SPEEDS_KMH). No external HTTP calls are made; the matrix
    is flagged ``approximate``.
    """

    def __init__(self, speeds_kmh: dict[str, float] | None = None) -> None:
        self.speeds_kmh: dict[str, float] = dict(speeds_kmh or config.PROXY_SPEEDS_KMH)

    def speed_for(self, mode: str) -> float:
        return self.speeds_kmh.get(mode, self.speeds_kmh["walking"])

    def estimate(self, a: Point, b: Point, mode: str) -> DistanceEntry:
        """Proxy entry between two points with coordinates."""
        if a.lat == b.lat and a.lon == b.lon:
            return DistanceEntry(0.0, 0.0)
        km = haversine_km(a.lat, a.lon, b.lat, b.lon)
        return DistanceEntry(
            duration_seconds=_km_to_seconds(km, self.speed_for(mode)),
            distance_meters=km * 1000.0,
        )

    def distance_matrix(self, points: list[Point], mode: str) -> DistanceMatrix:
        n = len(points)
        entries: list[list[Optional[DistanceEntry]]] = [
            [
                DistanceEntry(0.0, 0.0) if i == j
                else self.estimate(points[i], points[j], mode)
                for j in range(n)
            ]
            for i in range(n)
        ]
        return DistanceMatrix(entries=entries, mode=mode, approximate=True)


# ---------------------------------------------------------------------------
# GoogleRoutesDistanceTool
# ---------------------------------------------------------------------------


class _RetryableRoutesError(Exception):
    """Transient Routes API failure (429 / 5xx / transport)."""

    def __init__(self, message: str, status_code: int | None = None, api_status: str = "UNKNOWN") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.api_status = api_status


class GoogleRoutesDistanceTool(DistanceProvider):
    """
    Batched travel-time matrix from the Google Routes API. A single HTTP
    request covers all N x N pairs; per-pair failures become ``None`` cells.
    """

    _FIELD_MASK = "originIndex,destinationIndex,duration,distanceMeters,status,condition"

    def __init__(
        self,
        api_key: str | None = None,
        session: requests.Session | None = None,
        timeout: int | None = None,
        max_attempts: int | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else config.GOOGLE_MAPS_API_KEY
        self.session = session or requests.Session()
        self.timeout = timeout or config.DISTANCE_REQUEST_TIMEOUT
        self.max_attempts = max_attempts or config.DISTANCE_MAX_ATTEMPTS
        if not self.api_key:
            logger.warning("GOOGLE_MAPS_API_KEY not set; Routes API calls will fail")

    def distance_matrix(self, points: list[Point], mode: str) -> DistanceMatrix:
        n = len(points)
        if n == 0:
            return DistanceMatrix(entries=[], mode=mode)
        if not self.api_key:
            raise DistanceUnavailable("ERROR_NO_API_KEY: GOOGLE_MAPS_API_KEY is not configured",
                                      api_status="REQUEST_DENIED")

        body = {
            "origins":      [self._waypoint(p) for p in points],
            "destinations": [self._waypoint(p) for p in points],
            "travelMode":   _ROUTES_TRAVEL_MODES.get(mode, "WALK"),
        }
        try:
            elements = self._post_with_retry(body)
        except _RetryableRoutesError as exc:
            raise DistanceUnavailable(
                f"ERROR_ROUTES_UNAVAILABLE: {exc}",
                api_status=exc.api_status,
                status_code=exc.status_code,
            ) from exc

        entries: list[list[Optional[DistanceEntry]]] = [
            [DistanceEntry(0.0, 0.0) if i == j else None for j in range(n)]
            for i in range(n)
        ]
        for el in elements:
            i, j = el.get("originIndex", 0), el.get("destinationIndex", 0)
            if i == j or not (0 <= i < n and 0 <= j < n):
                continue
            if el.get("status") or el.get("condition") != "ROUTE_EXISTS":
                continue
            entries[i][j] = DistanceEntry(
                duration_seconds=_parse_duration_s(el.get("duration", "0s")),
                distance_meters=float(el.get("distanceMeters", 0)),
            )

        matrix = DistanceMatrix(entries=entries, mode=mode, approximate=False)
        logger.info(
            "Routes matrix %dx%d (%s): %d/%d pairs routed",
            n, n, mode, matrix.known_pairs(), n * (n - 1),
        )
        return matrix

    # -------------------------------------------------------------------------
    # Private
    # -------------------------------------------------------------------------

    @staticmethod
    def _waypoint(p: Point) -> dict:
        if p.has_coordinates:
            return {"waypoint": {"location": {"latLng": {"latitude": p.lat, "longitude": p.lon}}}}
        return {"waypoint": {"address": p.query}}

    def _post_with_retry(self, body: dict) -> list[dict]:
        caller = retry(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=0.5, max=config.DISTANCE_BACKOFF_MAX_SECONDS),
            retry=retry_if_exception_type(_RetryableRoutesError),
            reraise=True,
        )(self._post)
        return caller(body)

    def _post(self, body: dict) -> list[dict]:
        headers = {
            "Content-Type": "application/json",
            "X-Goog-Api-Key": self.api_key,
            "X-Goog-FieldMask": self._FIELD_MASK,
        }
        try:
            resp = self.session.post(
                config.GOOGLE_ROUTES_MATRIX_URL, json=body, headers=headers, timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Routes API transport error: %s", exc)
            raise _RetryableRoutesError(str(exc)) from exc

        if resp.status_code == 429 or resp.status_code >= 500:
            logger.warning("Routes API HTTP %d; retrying", resp.status_code)
            raise _RetryableRoutesError(
                f"HTTP {resp.status_code}",
                status_code=resp.status_code,
                api_status=self._api_status(resp),
            )
        if resp.status_code != 200:
            api_status = self._api_status(resp)
            logger.error("Routes API HTTP %d (%s)", resp.status_code, api_status)
            raise DistanceUnavailable(
                f"ERROR_ROUTES_HTTP_{resp.status_code}: {api_status}",
                api_status=api_status,
                status_code=resp.status_code,
            )

        payload = resp.json()
        if not isinstance(payload, list):
            raise DistanceUnavailable("ERROR_ROUTES_BAD_RESPONSE: expected a JSON array",
                                      api_status="INVALID_RESPONSE")
        return payload

    @staticmethod
    def _api_status(resp: requests.Response) -> str:
        try:
            return resp.json().get("error", {}).get("status", "UNKNOWN")
        except (ValueError, AttributeError):
            return "UNKNOWN"


def build_distance_provider(name: str | None = None) -> DistanceProvider:
    """Provider selected by config.DISTANCE_PROVIDER."""
    name = (name or config.DISTANCE_PROVIDER).lower()
    if name == "google":
        return GoogleRoutesDistanceTool()
    return HaversineDistanceTool()
