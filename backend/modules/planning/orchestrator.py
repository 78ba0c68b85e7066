"""
modules/planning/orchestrator.py
--------------------------------
Composes geocoding -> RouteOptimizer -> ScheduleBuilder and owns the fallback
policy. The first strategy that succeeds wins:

  1. Optimised pipeline, inside a wall-clock budget
     (config.PIPELINE_TIMEOUT_SECONDS). DistanceUnavailable, a timeout or
     any unexpected pipeline error moves on to 2; partial work is dropped.
  2. Narrative provider with the unordered spot list.
       ParsedSchedule -> its items, grouped by day
       RawNarrative   -> sequential schedule (3) with the text attached
  3. Sequential itinerary in input order with fixed
     config.SEQUENTIAL_LEG_MIN travel legs.
  4. ServiceUnavailable ("try again later").

Every fallback result carries ``fallback_used=True``.

Structured events (StructuredLogger):
  pipeline_start, pipeline_complete, fallback_used, PERFORMANCE
"""

from __future__ import annotations
import logging
import re
import time as _time_mod
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import config
from modules.errors import (
    DistanceUnavailable,
    NarrativeUnavailable,
    PipelineTimeout,
    ServiceUnavailable,
    ValidationError,
)
from modules.observability.logger import StructuredLogger
from modules.observability.monitor import OptimizationMonitor
from modules.planning.route_optimizer import RouteOptimizer
from modules.planning.schedule_builder import ScheduleBuilder
from modules.tool_usage.distance_tool import navigation_url
from modules.tool_usage.geocoding_tool import GeocodingTool
from modules.tool_usage.narrative_tool import NarrativeProvider
from schemas.itinerary import (
    DayPlan,
    Itinerary,
    ParsedSchedule,
    Point,
    RawNarrative,
    Route,
    RouteLeg,
    ScheduleItem,
)
from schemas.options import OptimizationOptions

logger = logging.getLogger(__name__)

_TRANSPORT_LABELS = {
    "walking": "Walking",
    "driving": "Driving",
    "transit": "Public Transit",
}

_LATLON_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*,\s*(-?\d+(?:\.\d+)?)\s*$")


@dataclass
class OrchestrationResult:
    success: bool
    itinerary: Itinerary
    fallback_used: bool = False
    request_id: str = ""


def transport_label(mode: str) -> str:
    return _TRANSPORT_LABELS.get(mode, mode.title())


def build_title(city: str, mode: str, basic: bool = False) -> str:
    """ "Smart Paris Itinerary - Walking route" / "Paris Itinerary - ... (Basic)"."""
    if basic:
        return f"{city} Itinerary - {transport_label(mode)} route (Basic)"
    return f"Smart {city} Itinerary - {transport_label(mode)} route"


def summarise_days(days: list[DayPlan]) -> tuple[int, int]:
    """(total_duration_minutes, total_travel_minutes) over all items."""
    travel = sum(
        item.travel_to_next.duration_minutes
        for day in days for item in day.items if item.travel_to_next
    )
    visits = sum(item.visit_duration_minutes for day in days for item in day.items)
    return visits + travel, travel


class ItineraryOrchestrator:
    """
    Args:
        optimizer:       RouteOptimizer.
        builder:         ScheduleBuilder.
        narrative_tool:  Fallback NarrativeProvider.
        geocoder:        Optional GeocodingTool for address-only spots.
        monitor:         Optional OptimizationMonitor.
        struct_logger:   Optional StructuredLogger.
        timeout_seconds: Wall-clock budget for the optimised pipeline.
    """

    def __init__(
        self,
        optimizer: RouteOptimizer,
        builder: ScheduleBuilder,
        narrative_tool: NarrativeProvider,
        geocoder: Optional[GeocodingTool] = None,
        monitor: Optional[OptimizationMonitor] = None,
        struct_logger: Optional[StructuredLogger] = None,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        self.optimizer = optimizer
        self.builder = builder
        self.narrative_tool = narrative_tool
        self.geocoder = geocoder
        self.monitor = monitor
        self.struct_logger = struct_logger
        self.timeout_seconds = timeout_seconds or config.PIPELINE_TIMEOUT_SECONDS

    # ── public API ────────────────────────────────────────────────────────────

    def run(
        self,
        points: list[Point],
        city: str,
        options: Optional[OptimizationOptions] = None,
        session_id: str = "default",
    ) -> OrchestrationResult:
        options = options or OptimizationOptions()
        if not points:
            raise ValidationError([{"field": "selected_spots", "message": "At least one spot must be selected"}])
        if len(points) > config.MAX_SPOTS:
            raise ValidationError([{
                "field": "selected_spots",
                "message": f"At most {config.MAX_SPOTS} spots can be optimised (got {len(points)})",
            }])

        _t0 = _time_mod.perf_counter()
        request_id = self.monitor.start(len(points), options.travel_mode) if self.monitor else ""
        self._event(session_id, "pipeline_start", {
            "request_id": request_id,
            "city": city,
            "spots": len(points),
            "travel_mode": options.travel_mode,
        })

        try:
            itinerary = self._run_with_budget(points, city, options, request_id)
            fallback_used = False
        except Exception as exc:
            if not isinstance(exc, DistanceUnavailable):
                logger.exception("Optimisation pipeline failed unexpectedly")
            else:
                logger.warning("Optimisation pipeline unavailable: %s", exc)
            try:
                itinerary, strategy = self._fallback(points, city, options)
            except ServiceUnavailable as fatal:
                self._finish(session_id, request_id, _t0, success=False, error=str(fatal))
                raise
            fallback_used = True
            self._event(session_id, "fallback_used", {
                "request_id": request_id,
                "reason": type(exc).__name__,
                "detail": str(exc),
                "strategy": strategy,
            })

        result = OrchestrationResult(
            success=True,
            itinerary=itinerary,
            fallback_used=fallback_used,
            request_id=request_id,
        )
        self._finish(
            session_id, request_id, _t0,
            success=True,
            fallback_used=fallback_used,
            approximate=bool(itinerary.route and itinerary.route.approximate),
            stops=len(itinerary.schedule),
            days=len(itinerary.days),
        )
        return result

    # ── optimised pipeline ────────────────────────────────────────────────────

    def _run_with_budget(
        self,
        points: list[Point],
        city: str,
        options: OptimizationOptions,
        request_id: str,
    ) -> Itinerary:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="itinerary-pipeline")
        future = executor.submit(self._optimise_and_schedule, points, city, options, request_id)
        try:
            return future.result(timeout=self.timeout_seconds)
        except FuturesTimeout as exc:
            future.cancel()
            raise PipelineTimeout(self.timeout_seconds) from exc
        finally:
            # Never wait for an abandoned worker
            executor.shutdown(wait=False)

    def _optimise_and_schedule(
        self,
        points: list[Point],
        city: str,
        options: OptimizationOptions,
        request_id: str,
    ) -> Itinerary:
        t = _time_mod.perf_counter()
        if self.geocoder is not None:
            points = self.geocoder.resolve_all(points, city)
        hotel = self._hotel_point(options, city)
        self._phase(request_id, "geocoding", t)

        t = _time_mod.perf_counter()
        route = self.optimizer.optimize(points, options.travel_mode, start=hotel)
        self._phase(request_id, "optimization", t)

        t = _time_mod.perf_counter()
        days = self.builder.build(route, options)
        self._phase(request_id, "schedule_generation", t)

        return self._assemble(
            days, city, options, route=route, title=build_title(city, options.travel_mode),
        )

    def _hotel_point(self, options: OptimizationOptions, city: str) -> Optional[Point]:
        if not options.hotel_location:
            return None
        match = _LATLON_RE.match(options.hotel_location)
        if match:
            hotel = Point(name="Hotel", lat=float(match.group(1)), lon=float(match.group(2)))
        else:
            hotel = Point(name="Hotel", address=options.hotel_location)
            if self.geocoder is not None:
                hotel = self.geocoder.resolve(hotel, city)
        if not hotel.has_coordinates:
            logger.info("Hotel location %r could not be resolved; ignoring", options.hotel_location)
            return None
        return hotel

    # ── fallbacks ─────────────────────────────────────────────────────────────

    def _fallback(
        self,
        points: list[Point],
        city: str,
        options: OptimizationOptions,
    ) -> tuple[Itinerary, str]:
        title = build_title(city, options.travel_mode, basic=True)
        narrative_text = ""
        try:
            narrative = self.narrative_tool.generate_narrative_itinerary(points, city)
        except NarrativeUnavailable as exc:
            logger.warning("Narrative fallback unavailable: %s", exc)
            narrative = None

        if isinstance(narrative, ParsedSchedule):
            return self._from_parsed(narrative, city, options, title), "narrative"
        if isinstance(narrative, RawNarrative):
            narrative_text = narrative.text

        try:
            itinerary = self._sequential(points, city, options, title)
        except Exception as exc:
            logger.exception("Sequential fallback failed")
            raise ServiceUnavailable(
                "ERROR_SERVICE_UNAVAILABLE: itinerary could not be generated, try again later"
            ) from exc
        itinerary.narrative_text = narrative_text
        return itinerary, "narrative_text" if narrative_text else "sequential"

    def _from_parsed(
        self,
        parsed: ParsedSchedule,
        city: str,
        options: OptimizationOptions,
        title: str,
    ) -> Itinerary:
        by_day: dict[int, list[ScheduleItem]] = {}
        for item in parsed.items:
            by_day.setdefault(item.day, []).append(item)

        days: list[DayPlan] = []
        for number, day_key in enumerate(sorted(by_day), start=1):
            items = by_day[day_key]
            for item in items:
                item.day = number
            items[0].day_marker = f"Day {number}"
            days.append(DayPlan(day_number=number, items=items))
        return self._assemble(days, city, options, route=None, title=title, fallback_used=True)

    def _sequential(
        self,
        points: list[Point],
        city: str,
        options: OptimizationOptions,
        title: str,
    ) -> Itinerary:
        """Input order, fixed travel legs; no distance data needed."""
        leg_s = config.SEQUENTIAL_LEG_MIN * 60.0
        legs = [
            RouteLeg(
                from_name=a.name,
                to_name=b.name,
                duration_seconds=leg_s,
                mode=options.travel_mode,
                estimated=True,
                navigation_url=navigation_url(a, b, options.travel_mode),
            )
            for a, b in zip(points, points[1:])
        ]
        route = Route(
            points=list(points),
            legs=legs,
            total_travel_seconds=leg_s * len(legs),
            mode=options.travel_mode,
            approximate=True,
        )
        days = self.builder.build(route, options)
        return self._assemble(days, city, options, route=route, title=title, fallback_used=True)

    # ── helpers ───────────────────────────────────────────────────────────────

    @staticmethod
    def _assemble(
        days: list[DayPlan],
        city: str,
        options: OptimizationOptions,
        route: Optional[Route],
        title: str,
        fallback_used: bool = False,
    ) -> Itinerary:
        total_duration, total_travel = summarise_days(days)
        return Itinerary(
            title=title,
            city=city,
            days=days,
            route=route,
            total_duration_minutes=total_duration,
            total_travel_minutes=total_travel,
            fallback_used=fallback_used,
            generated_at=datetime.now(timezone.utc).isoformat(),
        )

    def _phase(self, request_id: str, phase: str, t0: float) -> None:
        if self.monitor and request_id:
            self.monitor.record_phase(request_id, phase, (_time_mod.perf_counter() - t0) * 1000)

    def _event(self, session_id: str, event_type: str, payload: dict) -> None:
        if self.struct_logger is not None:
            self.struct_logger.log(session_id, event_type, payload)

    def _finish(self, session_id: str, request_id: str, t0: float, success: bool, **payload) -> None:
        duration_ms = round((_time_mod.perf_counter() - t0) * 1000, 2)
        if self.monitor and request_id:
            self.monitor.complete(
                request_id,
                success=success,
                fallback_used=payload.get("fallback_used", False),
                approximate=payload.get("approximate", False),
                error=payload.get("error"),
            )
        self._event(session_id, "pipeline_complete", {"request_id": request_id, "success": success, **payload})
        self._event(session_id, "PERFORMANCE", {"request_id": request_id, "duration_ms": duration_ms})
