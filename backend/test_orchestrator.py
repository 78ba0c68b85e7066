"""
test_orchestrator.py
──────────────────────────────────────────────────────────────────────────────
End-to-end orchestration with in-process collaborators:

  - optimised path (provider + builder)
  - fallback chain: narrative JSON -> raw narrative -> sequential -> 503
  - wall-clock budget
  - monitor + structured events
──────────────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import json
import time as _time_mod
from datetime import time
from unittest.mock import MagicMock

import pytest

from conftest import FailingProvider, MatrixProvider, MockLLMClient, make_points
from llm import StubLLMClient
from modules.errors import ServiceUnavailable, ValidationError
from modules.observability.monitor import OptimizationMonitor
from modules.planning.orchestrator import ItineraryOrchestrator, build_title
from modules.planning.route_optimizer import RouteOptimizer
from modules.planning.schedule_builder import ScheduleBuilder
from modules.tool_usage.distance_tool import DistanceProvider, HaversineDistanceTool
from modules.tool_usage.narrative_tool import LLMNarrativeTool
from schemas.options import OptimizationOptions


def _orchestrator(provider, llm=None, **kwargs) -> ItineraryOrchestrator:
    return ItineraryOrchestrator(
        optimizer=RouteOptimizer(provider),
        builder=ScheduleBuilder(),
        narrative_tool=LLMNarrativeTool(llm or StubLLMClient()),
        **kwargs,
    )


class SlowProvider(DistanceProvider):
    def __init__(self, delay: float) -> None:
        self.delay = delay

    def distance_matrix(self, points, mode):
        _time_mod.sleep(self.delay)
        return HaversineDistanceTool().distance_matrix(points, mode)


# ── optimised path ────────────────────────────────────────────────────────────

def test_optimised_itinerary(paris_points, quiet_logger):
    monitor = OptimizationMonitor()
    orch = _orchestrator(HaversineDistanceTool(), monitor=monitor, struct_logger=quiet_logger)

    result = orch.run(paris_points, "Paris", OptimizationOptions(include_breaks=False), session_id="s1")

    assert result.success is True
    assert result.fallback_used is False
    it = result.itinerary
    assert it.title == "Smart Paris Itinerary - Walking route"
    assert [i.spot for i in it.schedule][0] == "Eiffel Tower"
    assert it.schedule[0].arrival_time == time(9, 0)
    assert it.total_travel_minutes > 0
    assert it.total_duration_minutes == 3 * 60 + it.total_travel_minutes

    stats = monitor.stats()
    assert stats["total_optimizations"] == 1
    assert stats["success_rate"] == 1.0
    assert stats["fallback_rate"] == 0.0

    events = [r["event_type"] for r in quiet_logger.recent()]
    assert events == ["pipeline_start", "pipeline_complete", "PERFORMANCE"]


def test_fourteen_transit_points_span_days():
    orch = _orchestrator(FailingProvider())
    options = OptimizationOptions(travel_mode="transit", visit_duration_minutes=60)

    result = orch.run(make_points(14), "Paris", options)

    assert result.fallback_used is False
    days = result.itinerary.days
    assert len(days) > 1
    assert all(d.items[0].arrival_time == time(9, 0) for d in days)
    assert all(i.departure_time <= time(20, 0) for d in days for i in d.items)
    assert result.itinerary.title.endswith("Public Transit route")


def test_twenty_five_points_use_proxy_route():
    provider = MatrixProvider([])
    result = _orchestrator(provider).run(make_points(25), "Rome", OptimizationOptions())

    assert provider.calls == 0
    route = result.itinerary.route
    assert route.approximate is True
    assert sorted(route.ordered_names) == sorted(p.name for p in make_points(25))
    assert sum(len(d.visits) for d in result.itinerary.days) == 25


def test_hotel_coordinates_pick_first_stop():
    points = make_points(4)
    options = OptimizationOptions(hotel_location=f"{points[3].lat}, {points[3].lon + 0.001}")
    result = _orchestrator(HaversineDistanceTool()).run(points, "Paris", options)
    assert result.itinerary.schedule[0].spot == "Spot 4"


def test_rejects_empty_input():
    with pytest.raises(ValidationError):
        _orchestrator(HaversineDistanceTool()).run([], "Paris")


# ── fallbacks ─────────────────────────────────────────────────────────────────

def test_all_pairs_error_falls_back(paris_points, quiet_logger):
    minutes = [[0, None, None], [None, 0, None], [None, None, 0]]
    orch = _orchestrator(MatrixProvider(minutes), struct_logger=quiet_logger)

    result = orch.run(paris_points, "Paris", OptimizationOptions())

    assert result.success is True
    assert result.fallback_used is True
    it = result.itinerary
    assert it.fallback_used is True
    assert it.title == "Paris Itinerary - Walking route (Basic)"
    assert [i.spot for i in it.schedule if i.kind == "visit"] == [p.name for p in paris_points]
    assert it.narrative_text == StubLLMClient.RESPONSE

    fallback = quiet_logger.recent("fallback_used")
    assert fallback[0]["payload"]["reason"] == "DistanceUnavailable"


def test_parsed_narrative_is_used(paris_points):
    reply = "Here you go:\n" + json.dumps({
        "title": "Paris highlights",
        "schedule": [
            {"time": "10:00", "spot": "Louvre Museum", "duration": "2 hours", "day": 1},
            {"time": "13:00", "spot": "Notre-Dame", "duration": "45 minutes", "day": 1},
            {"time": "09:30", "spot": "Eiffel Tower", "duration": "90 min", "day": 2},
        ],
    })
    result = _orchestrator(FailingProvider(), llm=MockLLMClient(reply)).run(paris_points, "Paris")

    it = result.itinerary
    assert result.fallback_used is True
    assert [d.day_number for d in it.days] == [1, 2]
    assert it.days[0].items[0].spot == "Louvre Museum"
    assert it.days[0].items[0].departure_time == time(12, 0)
    assert it.days[1].items[0].day_marker == "Day 2"
    assert it.route is None


def test_sequential_when_narrative_fails(paris_points):
    llm = MockLLMClient(error=RuntimeError("quota"))
    result = _orchestrator(FailingProvider(), llm=llm).run(
        paris_points, "Lyon", OptimizationOptions(include_breaks=False),
    )

    it = result.itinerary
    assert result.fallback_used is True
    assert it.narrative_text == ""
    first, second = it.schedule[0], it.schedule[1]
    assert first.travel_to_next.duration_minutes == 15
    assert second.arrival_time == time(10, 15)
    assert it.title == "Lyon Itinerary - Walking route (Basic)"


def test_timeout_triggers_fallback(paris_points, quiet_logger):
    orch = _orchestrator(SlowProvider(0.5), struct_logger=quiet_logger, timeout_seconds=0.05)

    result = orch.run(paris_points, "Paris")

    assert result.fallback_used is True
    assert quiet_logger.recent("fallback_used")[0]["payload"]["reason"] == "PipelineTimeout"


def test_service_unavailable_when_everything_fails(paris_points):
    builder = MagicMock()
    builder.build.side_effect = RuntimeError("broken builder")
    monitor = OptimizationMonitor()
    orch = ItineraryOrchestrator(
        optimizer=RouteOptimizer(HaversineDistanceTool()),
        builder=builder,
        narrative_tool=LLMNarrativeTool(MockLLMClient(error=RuntimeError("down"))),
        monitor=monitor,
    )

    with pytest.raises(ServiceUnavailable):
        orch.run(paris_points, "Paris")
    assert monitor.stats()["success_rate"] == 0.0


def test_build_title_labels():
    assert build_title("Tokyo", "driving") == "Smart Tokyo Itinerary - Driving route"
    assert build_title("Tokyo", "transit", basic=True) == "Tokyo Itinerary - Public Transit route (Basic)"
