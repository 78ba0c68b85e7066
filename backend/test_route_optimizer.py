"""
test_route_optimizer.py
──────────────────────────────────────────────────────────────────────────────
Nearest-neighbour ordering, proxy path, unreachable/unresolved handling.
──────────────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import pytest

from conftest import FailingProvider, MatrixProvider, make_points
from modules.errors import DistanceUnavailable
from modules.planning.route_optimizer import RouteOptimizer
from modules.tool_usage.distance_tool import HaversineDistanceTool
from schemas.itinerary import Point


def _four_points() -> list[Point]:
    return [
        Point(name="A", lat=48.85, lon=2.30),
        Point(name="B", lat=48.86, lon=2.31),
        Point(name="C", lat=48.87, lon=2.32),
        Point(name="D", lat=48.88, lon=2.33),
    ]


# ── degenerate inputs ─────────────────────────────────────────────────────────

def test_single_point_has_zero_travel():
    provider = MatrixProvider([[0]])
    route = RouteOptimizer(provider).optimize([Point(name="Only", lat=1.0, lon=1.0)], "walking")

    assert route.ordered_names == ["Only"]
    assert route.legs == []
    assert route.total_travel_seconds == 0
    assert provider.calls == 0


def test_empty_input_gives_empty_route():
    route = RouteOptimizer(MatrixProvider([])).optimize([], "walking")
    assert route.points == []
    assert route.total_travel_seconds == 0


# ── nearest neighbour ─────────────────────────────────────────────────────────

def test_greedy_picks_nearest_unvisited():
    #            A     B     C     D
    minutes = [[0,    10,   5,    20],
               [10,   0,    3,    4],
               [5,    3,    0,    8],
               [20,   4,    8,    0]]
    provider = MatrixProvider(minutes)

    route = RouteOptimizer(provider).optimize(_four_points(), "walking")

    # A -> C (5) -> B (3) -> D (4)
    assert route.ordered_names == ["A", "C", "B", "D"]
    assert route.total_travel_seconds == pytest.approx((5 + 3 + 4) * 60)
    assert route.total_distance_meters == pytest.approx((5 + 3 + 4) * 1000)
    assert [leg.to_name for leg in route.legs] == ["C", "B", "D"]
    assert provider.calls == 1
    assert route.approximate is False


def test_ties_broken_by_input_order():
    minutes = [[0, 5, 5],
               [5, 0, 1],
               [5, 1, 0]]
    route = RouteOptimizer(MatrixProvider(minutes)).optimize(_four_points()[:3], "driving")
    assert route.ordered_names == ["A", "B", "C"]


def test_legs_carry_navigation_urls():
    minutes = [[0, 1], [1, 0]]
    route = RouteOptimizer(MatrixProvider(minutes)).optimize(_four_points()[:2], "transit")
    url = route.legs[0].navigation_url
    assert url.startswith("https://www.google.com/maps/dir/?api=1")
    assert "travelmode=transit" in url


def test_repeated_runs_are_identical():
    optimizer = RouteOptimizer(HaversineDistanceTool())
    points = make_points(6)[::-1] + make_points(2, lat=48.9)

    first = optimizer.optimize(points, "walking")
    second = optimizer.optimize(points, "walking")

    assert first.ordered_names == second.ordered_names
    assert first.total_travel_seconds == second.total_travel_seconds


# ── proxy path ────────────────────────────────────────────────────────────────

def test_large_input_uses_proxy_without_provider_call():
    provider = FailingProvider()
    points = make_points(25)

    route = RouteOptimizer(provider).optimize(points, "walking")

    assert provider.calls == 0
    assert route.approximate is True
    assert sorted(route.ordered_names) == sorted(p.name for p in points)
    assert len(route.legs) == 24
    assert route.total_travel_seconds > 0


def test_proxy_threshold_is_tunable():
    provider = MatrixProvider([[0, 1, 1], [1, 0, 1], [1, 1, 0]])
    route = RouteOptimizer(provider, proxy_threshold=2).optimize(make_points(3), "walking")
    assert provider.calls == 0
    assert route.approximate is True


def test_at_threshold_still_calls_provider():
    n = 8
    provider = MatrixProvider([[0 if i == j else 1 for j in range(n)] for i in range(n)])
    RouteOptimizer(provider).optimize(make_points(n), "walking")
    assert provider.calls == 1


# ── failures and gaps ─────────────────────────────────────────────────────────

def test_provider_error_propagates():
    with pytest.raises(DistanceUnavailable):
        RouteOptimizer(FailingProvider()).optimize(make_points(3), "walking")


def test_all_pairs_missing_raises():
    minutes = [[0, None, None], [None, 0, None], [None, None, 0]]
    with pytest.raises(DistanceUnavailable):
        RouteOptimizer(MatrixProvider(minutes)).optimize(make_points(3), "walking")


def test_unreachable_candidates_fall_back_to_input_order_with_estimate():
    # Nothing reachable from A; B <-> C known
    minutes = [[0,    None, None],
               [None, 0,    2],
               [None, 2,    0]]
    route = RouteOptimizer(MatrixProvider(minutes)).optimize(make_points(3), "walking")

    assert route.ordered_names == ["Spot 1", "Spot 2", "Spot 3"]
    first, second = route.legs
    assert first.estimated is True
    assert first.duration_seconds > 0
    assert second.estimated is False
    assert second.duration_seconds == pytest.approx(120)


def test_unresolved_points_are_appended_at_the_end():
    points = [
        Point(name="Somewhere vague", address="near the river"),
        *make_points(3),
    ]
    minutes = [[0, 1, 2], [1, 0, 1], [2, 1, 0]]
    route = RouteOptimizer(MatrixProvider(minutes)).optimize(points, "walking")

    assert route.ordered_names[-1] == "Somewhere vague"
    assert [p.name for p in route.unresolved] == ["Somewhere vague"]
    assert len(route.legs) == len(route.points) - 1
    assert route.legs[-1].duration_seconds == 0
    assert route.total_travel_seconds == pytest.approx(2 * 60)


def test_hotel_is_a_virtual_start_node():
    points = make_points(4)
    hotel = Point(name="Hotel", lat=points[2].lat, lon=points[2].lon + 0.001)

    route = RouteOptimizer(HaversineDistanceTool()).optimize(points, "walking", start=hotel)

    assert route.ordered_names[0] == "Spot 3"
    assert "Hotel" not in route.ordered_names
    assert len(route.legs) == 3
