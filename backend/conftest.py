"""
conftest.py
──────────────────────────────────────────────────────────────────────────────
Shared fixtures for the backend test-suite.

Collaborators are replaced with small in-process fakes; nothing leaves
the process:

  MatrixProvider     serves a fixed minutes matrix and counts calls
  FailingProvider    always raises DistanceUnavailable
  MockLLMClient      returns a scripted reply (or raises)
──────────────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import pytest

from modules.errors import DistanceUnavailable
from modules.observability.logger import StructuredLogger
from modules.tool_usage.distance_tool import DistanceProvider
from schemas.itinerary import DistanceEntry, DistanceMatrix, Point


class MatrixProvider(DistanceProvider):
    """``minutes[i][j]`` travel minutes (None = no route)."""

    def __init__(self, minutes: list[list[float | None]]) -> None:
        self.minutes = minutes
        self.calls = 0

    def distance_matrix(self, points, mode):
        self.calls += 1
        n = len(points)
        entries = [
            [
                None if self.minutes[i][j] is None
                else DistanceEntry(self.minutes[i][j] * 60.0, self.minutes[i][j] * 1000.0)
                for j in range(n)
            ]
            for i in range(n)
        ]
        return DistanceMatrix(entries=entries, mode=mode)


class FailingProvider(DistanceProvider):
    def __init__(self) -> None:
        self.calls = 0

    def distance_matrix(self, points, mode):
        self.calls += 1
        raise DistanceUnavailable("ERROR_ROUTES_UNAVAILABLE: HTTP 503", api_status="UNAVAILABLE", status_code=503)


class MockLLMClient:
    def __init__(self, reply: str = "", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.prompts: list[str] = []

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


def make_points(n: int, lat: float = 48.8566, lon: float = 2.3522, step: float = 0.01) -> list[Point]:
    """``n`` spots on a west-east line, ~0.7 km apart."""
    return [Point(name=f"Spot {i + 1}", lat=lat, lon=lon + i * step) for i in range(n)]


@pytest.fixture
def paris_points() -> list[Point]:
    return [
        Point(name="Eiffel Tower", lat=48.8584, lon=2.2945, category="landmark"),
        Point(name="Louvre Museum", lat=48.8606, lon=2.3376, category="museum"),
        Point(name="Notre-Dame", lat=48.8530, lon=2.3499, category="landmark"),
    ]


@pytest.fixture
def quiet_logger() -> StructuredLogger:
    """StructuredLogger that keeps records in memory only."""
    return StructuredLogger(logs_dir="")
