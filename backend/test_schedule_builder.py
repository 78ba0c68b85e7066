"""
test_schedule_builder.py
──────────────────────────────────────────────────────────────────────────────
Day splitting, day reset, meal breaks and per-item timing invariants.
──────────────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from datetime import time

import pytest

from modules.planning.schedule_builder import ScheduleBuilder
from modules.tool_usage.time_tool import t2m
from schemas.itinerary import DayPlan, Point, Route, RouteLeg
from schemas.options import OptimizationOptions


def _route(points: list[Point], leg_minutes: int = 10, mode: str = "walking") -> Route:
    legs = [
        RouteLeg(from_name=a.name, to_name=b.name, duration_seconds=leg_minutes * 60, mode=mode)
        for a, b in zip(points, points[1:])
    ]
    return Route(points=points, legs=legs, total_travel_seconds=leg_minutes * 60 * len(legs), mode=mode)


def _spots(n: int, **kwargs) -> list[Point]:
    return [Point(name=f"Stop {i + 1}", lat=48.85, lon=2.30 + i * 0.01, **kwargs) for i in range(n)]


def _assert_invariants(days: list[DayPlan], options: OptimizationOptions) -> None:
    day_end = time.fromisoformat(options.daily_end_time)
    for day in days:
        visits = day.visits
        for item in day.items:
            assert t2m(item.departure_time) - t2m(item.arrival_time) == item.visit_duration_minutes
        for prev, nxt in zip(day.items, day.items[1:]):
            assert prev.departure_time <= nxt.arrival_time
        if len(visits) > 1:
            assert all(item.departure_time <= day_end for item in day.items)
        assert day.items[0].day_marker == f"Day {day.day_number}"


# ── single day ────────────────────────────────────────────────────────────────

def test_three_walking_stops_fit_one_day():
    options = OptimizationOptions(travel_mode="walking", start_time="09:00",
                                  visit_duration_minutes=60, include_breaks=False)
    days = ScheduleBuilder().build(_route(_spots(3)), options)

    assert len(days) == 1
    first, second, third = days[0].items
    assert (first.arrival_time, first.departure_time) == (time(9, 0), time(10, 0))
    assert second.arrival_time >= time(10, 0)
    assert second.arrival_time == time(10, 10)
    assert first.travel_to_next.duration_minutes == 10
    assert third.travel_to_next is None
    _assert_invariants(days, options)


def test_empty_route_gives_no_days():
    assert ScheduleBuilder().build(Route(), OptimizationOptions()) == []


# ── multi day ─────────────────────────────────────────────────────────────────

def test_fourteen_transit_stops_span_several_days():
    options = OptimizationOptions(travel_mode="transit", visit_duration_minutes=60)
    days = ScheduleBuilder().build(_route(_spots(14), leg_minutes=20, mode="transit"), options)

    assert len(days) > 1
    assert all(day.items[0].arrival_time == time(9, 0) for day in days)
    assert all(item.departure_time <= time(20, 0) for day in days for item in day.items)
    assert sum(len(day.visits) for day in days) == 14
    _assert_invariants(days, options)


def test_later_days_reset_to_daily_start():
    options = OptimizationOptions(start_time="17:00", daily_start_time="08:30",
                                  visit_duration_minutes=120, include_breaks=False)
    days = ScheduleBuilder().build(_route(_spots(4)), options)

    assert days[0].items[0].arrival_time == time(17, 0)
    for day in days[1:]:
        assert day.items[0].arrival_time == time(8, 30)
        assert day.items[0].day_marker == f"Day {day.day_number}"


def test_closed_day_drops_travel_to_next():
    options = OptimizationOptions(start_time="18:00", include_breaks=False)
    days = ScheduleBuilder().build(_route(_spots(3)), options)

    assert len(days) == 2
    assert days[0].items[-1].travel_to_next is None
    assert days[1].items[0].spot == "Stop 2"
    assert days[1].items[0].arrival_time == time(9, 0)


def test_overlong_stop_gets_its_own_day():
    options = OptimizationOptions(daily_start_time="09:00", start_time="09:00",
                                  daily_end_time="12:00", include_breaks=False)
    points = [Point(name="Long hike", lat=1.0, lon=1.0, visit_duration_minutes=300),
              Point(name="Museum", lat=1.0, lon=1.01, visit_duration_minutes=60)]
    days = ScheduleBuilder().build(_route(points), options)

    assert [len(d.items) for d in days] == [1, 1]
    assert days[0].items[0].departure_time == time(14, 0)
    assert "runs past" in days[0].items[0].notes
    assert days[1].items[0].arrival_time == time(9, 0)


def test_single_day_mode_marks_after_hours():
    options = OptimizationOptions(multi_day=False, start_time="18:00", include_breaks=False)
    days = ScheduleBuilder().build(_route(_spots(3)), options)

    assert len(days) == 1
    assert "after hours" in days[0].items[-1].notes
    assert days[0].items[0].notes == ""


def test_late_first_stop_opens_on_next_day():
    options = OptimizationOptions(start_time="19:30", include_breaks=False)
    days = ScheduleBuilder().build(_route(_spots(2)), options)

    assert [d.day_number for d in days] == [2]
    first, second = days[0].items
    assert first.day_marker == "Day 2"
    assert (first.arrival_time, first.departure_time) == (time(9, 0), time(10, 0))
    assert second.arrival_time == time(10, 10)
    assert all(item.notes == "" for item in days[0].items)


def test_single_day_mode_rolls_over_at_midnight():
    options = OptimizationOptions(multi_day=False, include_breaks=False, visit_duration_minutes=60)
    days = ScheduleBuilder().build(_route(_spots(16), leg_minutes=15), options)

    assert [len(d.items) for d in days] == [12, 4]
    last = days[0].items[-1]
    assert last.departure_time == time(23, 45)
    assert "after hours" in last.notes
    assert last.travel_to_next is None
    assert days[1].items[0].arrival_time == time(9, 0)
    assert days[1].items[0].day_marker == "Day 2"


# ── meal breaks ───────────────────────────────────────────────────────────────

def test_lunch_break_injected_once_without_reordering():
    options = OptimizationOptions(visit_duration_minutes=60)
    points = _spots(6)
    days = ScheduleBuilder().build(_route(points, leg_minutes=15), options)

    items = days[0].items
    breaks = [i for i in items if i.kind == "break"]
    assert [b.spot for b in breaks] == ["Lunch break"]
    lunch = breaks[0]
    assert lunch.arrival_time == time(12, 45)
    assert lunch.departure_time == time(13, 45)
    assert [i.spot for i in days[0].visits] == [p.name for p in points]
    _assert_invariants(days, options)


def test_no_break_when_a_stop_spans_the_window():
    options = OptimizationOptions(start_time="11:30")
    points = [Point(name="Long museum", lat=1.0, lon=1.0, visit_duration_minutes=120),
              Point(name="Park", lat=1.0, lon=1.01)]
    days = ScheduleBuilder().build(_route(points), options)

    assert all(i.kind == "visit" for i in days[0].items)


def test_break_never_pushes_next_stop_past_day_end():
    options = OptimizationOptions(start_time="11:00", daily_end_time="13:30")
    days = ScheduleBuilder().build(_route(_spots(2), leg_minutes=0), options)

    assert all(i.kind == "visit" for i in days[0].items)
    assert days[0].items[1].arrival_time == time(12, 0)


def test_no_breaks_when_disabled():
    options = OptimizationOptions(include_breaks=False)
    days = ScheduleBuilder().build(_route(_spots(12), leg_minutes=15), options)
    assert all(i.kind == "visit" for d in days for i in d.items)


def test_dinner_break_in_evening():
    options = OptimizationOptions(start_time="16:00", daily_end_time="22:00", visit_duration_minutes=60)
    days = ScheduleBuilder().build(_route(_spots(4), leg_minutes=15), options)
    spots = [i.spot for i in days[0].items]
    assert "Dinner break" in spots
    _assert_invariants(days, options)


# ── durations and flags ───────────────────────────────────────────────────────

def test_visit_duration_precedence():
    options = OptimizationOptions(visit_duration_minutes=45, include_breaks=False,
                                  category_durations={"museum": 120})
    points = [
        Point(name="Own override", lat=1.0, lon=1.0, category="museum", visit_duration_minutes=30),
        Point(name="By category", lat=1.0, lon=1.01, category="Museum"),
        Point(name="Default", lat=1.0, lon=1.02, category="park"),
    ]
    items = ScheduleBuilder().build(_route(points), options)[0].items
    assert [i.visit_duration_minutes for i in items] == [30, 120, 45]


def test_unknown_location_flagged():
    points = _spots(1) + [Point(name="Mystery bar", address="somewhere")]
    items = ScheduleBuilder().build(_route(points, leg_minutes=0), OptimizationOptions())[0].items
    assert items[-1].unknown_location is True
    assert items[0].unknown_location is False


# ── window invariants across option combinations ─────────────────────────────

_MIXED_DURATIONS = [30, 240, None, 90, 15, 480, None, 120, 45, 60, 200, None, 30, 90, 60, 150]


@pytest.mark.parametrize("start_time", ["09:00", "12:30", "17:45", "19:45"])
@pytest.mark.parametrize("multi_day", [True, False])
@pytest.mark.parametrize("include_breaks", [True, False])
def test_window_and_ordering_hold_across_options(start_time, multi_day, include_breaks):
    options = OptimizationOptions(start_time=start_time, multi_day=multi_day,
                                  include_breaks=include_breaks, visit_duration_minutes=75)
    points = [
        Point(name=f"Stop {i + 1}", lat=48.85, lon=2.30 + i * 0.01, visit_duration_minutes=d)
        for i, d in enumerate(_MIXED_DURATIONS)
    ]
    days = ScheduleBuilder().build(_route(points, leg_minutes=15), options)

    window = t2m(time.fromisoformat(options.daily_end_time)) - t2m(time.fromisoformat(options.daily_start_time))
    day_end = time.fromisoformat(options.daily_end_time)
    assert sum(len(d.visits) for d in days) == len(points)
    for day in days:
        for item in day.items:
            assert t2m(item.departure_time) - t2m(item.arrival_time) == item.visit_duration_minutes
            if multi_day and item.visit_duration_minutes <= window:
                assert item.departure_time <= day_end
        for prev, nxt in zip(day.items, day.items[1:]):
            assert prev.departure_time <= nxt.arrival_time
        assert day.items[0].day_marker == f"Day {day.day_number}"
