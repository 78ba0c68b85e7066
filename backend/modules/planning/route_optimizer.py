"""
modules/planning/route_optimizer.py
-----------------------------------
Orders the selected spots into a visiting sequence (a path, not a cycle).

Algorithm: greedy nearest-neighbour.
  1. Current = first resolvable point (or the hotel, as a virtual start node
     that is not part of the returned route).
  2. Repeatedly move to the unvisited point with the smallest travel time
     from current; ties go to the earlier point in input order.
  3. Totals are the sum of the consecutive legs.

Complexity policy:
  N <= PROXY_THRESHOLD  one batched matrix call to the distance provider.
  N >  PROXY_THRESHOLD  no provider call; a Haversine proxy matrix is used
                        and the route is flagged approximate.

Unreachable pairs (None cells) are never chosen while a reachable candidate
remains. When every remaining candidate is unreachable the first remaining
point in input order is taken and its leg is estimated from the proxy.

Points without usable coordinates are left out of the optimisation and
appended at the end of the route (zero travel, flagged unresolved).

Failures: provider errors and all-missing matrices raise DistanceUnavailable.
There is no retry here; that belongs to the provider.
"""

from __future__ import annotations
import logging
import time as _time_mod
from typing import Optional

import config
from modules.errors import DistanceUnavailable
from modules.tool_usage.distance_tool import (
    DistanceProvider,
    HaversineDistanceTool,
    navigation_url,
)
from schemas.itinerary import DistanceMatrix, Point, Route, RouteLeg

logger = logging.getLogger(__name__)


class RouteOptimizer:
    """
    Nearest-neighbour route ordering over a distance matrix.

    Args:
        distance_provider: Real travel-time source for small inputs.
        proxy_tool:        Haversine estimator for large inputs and
                           unreachable legs.
        proxy_threshold:   Above this many resolvable points the provider
                           is skipped.
    """

    def __init__(
        self,
        distance_provider: DistanceProvider,
        proxy_tool: Optional[HaversineDistanceTool] = None,
        proxy_threshold: Optional[int] = None,
    ) -> None:
        self.distance_provider = distance_provider
        self.proxy_tool = proxy_tool or HaversineDistanceTool()
        self.proxy_threshold = (
            proxy_threshold if proxy_threshold is not None else config.PROXY_THRESHOLD
        )

    # ── public API ────────────────────────────────────────────────────────────

    def optimize(
        self,
        points: list[Point],
        mode: str = config.DEFAULT_TRAVEL_MODE,
        start: Optional[Point] = None,
    ) -> Route:
        """
        Return the visiting order for ``points``.

        ``start`` (e.g. the hotel) only influences which point comes first;
        it is not part of the route and its leg is not counted in totals.
        """
        _t0 = _time_mod.perf_counter()

        resolved = [p for p in points if p.has_coordinates]
        unresolved = [p for p in points if not p.has_coordinates]
        if unresolved:
            logger.info("%d spot(s) without coordinates appended at the end: %s",
                        len(unresolved), [p.name for p in unresolved])

        if len(resolved) <= 1:
            route = Route(
                points=resolved + unresolved,
                mode=mode,
                unresolved=unresolved,
            )
            route.legs = self._unresolved_legs(route.points, len(resolved), mode)
            return route

        use_start = start is not None and start.has_coordinates
        nodes = ([start] if use_start else []) + resolved
        matrix = self._build_matrix(nodes, mode, spot_count=len(resolved))

        order = self._nearest_neighbour(matrix, nodes, start_index=0)
        if use_start:
            order = order[1:]

        ordered = [nodes[i] for i in order]
        legs: list[RouteLeg] = []
        total_s = total_m = 0.0
        for a, b in zip(order, order[1:]):
            leg = self._leg(matrix, nodes, a, b, mode)
            legs.append(leg)
            total_s += leg.duration_seconds
            total_m += leg.distance_meters

        route = Route(
            points=ordered + unresolved,
            legs=legs,
            total_travel_seconds=total_s,
            total_distance_meters=total_m,
            mode=mode,
            approximate=matrix.approximate,
            unresolved=unresolved,
        )
        route.legs.extend(self._unresolved_legs(route.points, len(ordered), mode))

        logger.info(
            "Route optimised: %d stops, %.0f min travel, approximate=%s (%.1f ms)",
            len(route.points), total_s / 60.0, route.approximate,
            (_time_mod.perf_counter() - _t0) * 1000,
        )
        return route

    # ── matrix ────────────────────────────────────────────────────────────────

    def _build_matrix(self, nodes: list[Point], mode: str, spot_count: int) -> DistanceMatrix:
        if spot_count > self.proxy_threshold:
            logger.info("%d spots > threshold %d: using proxy distances",
                        spot_count, self.proxy_threshold)
            return self.proxy_tool.distance_matrix(nodes, mode)

        matrix = self.distance_provider.distance_matrix(nodes, mode)
        if matrix.size != len(nodes):
            raise DistanceUnavailable(
                f"ERROR_MATRIX_SHAPE: expected {len(nodes)}x{len(nodes)}, got {matrix.size}",
                api_status="INVALID_RESPONSE",
            )
        if matrix.known_pairs() == 0:
            raise DistanceUnavailable(
                "ERROR_NO_ROUTES: distance provider returned no usable pairs",
                api_status="ZERO_RESULTS",
            )
        return matrix

    # ── nearest neighbour ─────────────────────────────────────────────────────

    def _nearest_neighbour(
        self,
        matrix: DistanceMatrix,
        nodes: list[Point],
        start_index: int = 0,
    ) -> list[int]:
        n = matrix.size
        order = [start_index]
        remaining = [i for i in range(n) if i != start_index]
        current = start_index

        while remaining:
            best, best_s = remaining[0], matrix.duration(current, remaining[0])
            for j in remaining[1:]:
                d = matrix.duration(current, j)
                if d < best_s:          # strict: ties keep input order
                    best, best_s = j, d
            if best_s == float("inf"):
                logger.warning("No reachable candidate from %r; taking %r in input order",
                               nodes[current].name, nodes[remaining[0]].name)
                best = remaining[0]
            order.append(best)
            remaining.remove(best)
            current = best
        return order

    def _leg(self, matrix: DistanceMatrix, nodes: list[Point], a: int, b: int, mode: str) -> RouteLeg:
        entry = matrix.get(a, b)
        estimated = matrix.approximate
        if entry is None:
            entry = self.proxy_tool.estimate(nodes[a], nodes[b], mode)
            estimated = True
        return RouteLeg(
            from_name=nodes[a].name,
            to_name=nodes[b].name,
            duration_seconds=entry.duration_seconds,
            distance_meters=entry.distance_meters,
            mode=mode,
            estimated=estimated,
            navigation_url=navigation_url(nodes[a], nodes[b], mode),
        )

    @staticmethod
    def _unresolved_legs(points: list[Point], first_unresolved: int, mode: str) -> list[RouteLeg]:
        """Zero-travel legs leading into and between unresolved points."""
        return [
            RouteLeg(
                from_name=points[i - 1].name,
                to_name=points[i].name,
                mode=mode,
                estimated=True,
                navigation_url=navigation_url(points[i - 1], points[i], mode),
            )
            for i in range(max(first_unresolved, 1), len(points))
        ]
