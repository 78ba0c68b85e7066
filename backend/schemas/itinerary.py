"""
schemas/itinerary.py
--------------------
Dataclass definitions for points, distance data, routes and the output
itinerary.

Units: durations in seconds on matrix/route level (what the distance
provider returns), minutes on schedule level (what the traveller sees).
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import time
from typing import Optional


@dataclass(frozen=True)
class Point:
    """
    A selected spot. Coordinates may be missing when only a textual
    address is known; category/description are carried through untouched.
    """
    name: str
    lat: Optional[float] = None
    lon: Optional[float] = None
    address: str = ""
    category: str = ""
    description: str = ""
    visit_duration_minutes: Optional[int] = None   # per-spot override
    spot_id: str = ""

    @property
    def has_coordinates(self) -> bool:
        if self.lat is None or self.lon is None:
            return False
        return -90.0 <= self.lat <= 90.0 and -180.0 <= self.lon <= 180.0

    @property
    def query(self) -> str:
        """Text used for geocoding and navigation links."""
        return self.address or self.name

    def with_coordinates(self, lat: float, lon: float) -> Point:
        return Point(
            name=self.name, lat=lat, lon=lon, address=self.address,
            category=self.category, description=self.description,
            visit_duration_minutes=self.visit_duration_minutes,
            spot_id=self.spot_id,
        )


@dataclass(frozen=True)
class DistanceEntry:
    duration_seconds: float = 0.0
    distance_meters: float = 0.0


@dataclass
class DistanceMatrix:
    """
    Square origin x destination matrix. ``None`` cells are unknown and
    treated as unreachable. ``approximate`` is True for proxy matrices.
    """
    entries: list[list[Optional[DistanceEntry]]]
    mode: str = "walking"
    approximate: bool = False

    @property
    def size(self) -> int:
        return len(self.entries)

    def get(self, i: int, j: int) -> Optional[DistanceEntry]:
        if i == j:
            return DistanceEntry(0.0, 0.0)
        return self.entries[i][j]

    def duration(self, i: int, j: int) -> float:
        """Travel seconds from i to j; ``inf`` when unknown."""
        entry = self.get(i, j)
        return float("inf") if entry is None else entry.duration_seconds

    def known_pairs(self) -> int:
        """Number of non-diagonal cells that carry data."""
        n = self.size
        return sum(
            1 for i in range(n) for j in range(n)
            if i != j and self.entries[i][j] is not None
        )


@dataclass
class RouteLeg:
    """Travel between two consecutive route points."""
    from_name: str
    to_name: str
    duration_seconds: float = 0.0
    distance_meters: float = 0.0
    mode: str = "walking"
    estimated: bool = False      # filled from a proxy estimate
    navigation_url: str = ""

    @property
    def duration_minutes(self) -> int:
        # Round up so the schedule never under-allocates travel
        return int(-(-self.duration_seconds // 60))


@dataclass
class Route:
    """
    Ordered visiting sequence (a path, not a cycle). ``legs[i]`` goes from
    ``points[i]`` to ``points[i + 1]``. Unresolved points sit at the end of
    ``points`` and are also listed in ``unresolved``.
    """
    points: list[Point] = field(default_factory=list)
    legs: list[RouteLeg] = field(default_factory=list)
    total_travel_seconds: float = 0.0
    total_distance_meters: float = 0.0
    mode: str = "walking"
    approximate: bool = False
    unresolved: list[Point] = field(default_factory=list)

    @property
    def ordered_names(self) -> list[str]:
        return [p.name for p in self.points]

    def leg_after(self, index: int) -> Optional[RouteLeg]:
        return self.legs[index] if index < len(self.legs) else None


@dataclass
class TravelInfo:
    mode: str
    duration_minutes: int
    navigation_url: str = ""
    estimated: bool = False


@dataclass
class ScheduleItem:
    """
    One scheduled entry. ``kind`` is "visit" for a spot and "break" for a
    meal pseudo-item. ``day_marker`` is set on the first item of each day.
    """
    spot: str
    arrival_time: Optional[time] = None
    departure_time: Optional[time] = None
    visit_duration_minutes: int = 0
    day: int = 1
    kind: str = "visit"
    travel_to_next: Optional[TravelInfo] = None
    notes: str = ""
    day_marker: str = ""
    unknown_location: bool = False
    category: str = ""


@dataclass
class DayPlan:
    """One day's scheduled items."""
    day_number: int = 1
    items: list[ScheduleItem] = field(default_factory=list)

    @property
    def visits(self) -> list[ScheduleItem]:
        return [i for i in self.items if i.kind == "visit"]


@dataclass
class Itinerary:
    """
    Final artefact returned to the user. A new request always builds a
    new Itinerary; it is never patched in place.
    """
    title: str = ""
    city: str = ""
    days: list[DayPlan] = field(default_factory=list)
    route: Optional[Route] = None
    total_duration_minutes: int = 0
    total_travel_minutes: int = 0
    fallback_used: bool = False
    narrative_text: str = ""
    generated_at: str = ""   # ISO-8601 timestamp

    @property
    def schedule(self) -> list[ScheduleItem]:
        """All items across days, in order."""
        return [item for day in self.days for item in day.items]


# ── Narrative provider results (tagged variant) ───────────────────────────────

@dataclass
class ParsedSchedule:
    """Narrative text that parsed completely into schedule entries."""
    items: list[ScheduleItem]
    title: str = ""
    kind: str = "parsed"


@dataclass
class RawNarrative:
    """Narrative text that could not be parsed; shown as-is."""
    text: str
    kind: str = "raw"


NarrativeResult = ParsedSchedule | RawNarrative
