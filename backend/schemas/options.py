"""
schemas/options.py
------------------
OptimizationOptions: configuration consumed by the optimizer, the schedule
builder and the orchestrator. Every field has a default, so an empty dict
is a valid request.
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields
from typing import Any, Optional

import config


@dataclass(frozen=True)
class OptimizationOptions:
    travel_mode: str = config.DEFAULT_TRAVEL_MODE       # walking | driving | transit
    start_time: str = config.DEFAULT_START_TIME         # HH:MM, day 1 only
    visit_duration_minutes: int = config.DEFAULT_VISIT_DURATION
    include_breaks: bool = True
    multi_day: bool = True
    hotel_location: Optional[str] = None
    daily_start_time: str = config.DEFAULT_DAILY_START_TIME
    daily_end_time: str = config.DEFAULT_DAILY_END_TIME
    # category (lower-case) -> visit minutes, e.g. {"museum": 120}
    category_durations: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> OptimizationOptions:
        """
        Build options from a loosely-typed mapping; ``None`` values fall back
        to defaults and unknown keys are ignored. Call
        ``modules.validation.validate_options`` first for user input.
        """
        data = data or {}
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known and v is not None}
        # Without an explicit start, day 1 opens with the daily window
        if "start_time" not in kwargs and "daily_start_time" in kwargs:
            kwargs["start_time"] = kwargs["daily_start_time"]
        if "visit_duration_minutes" in kwargs:
            kwargs["visit_duration_minutes"] = int(kwargs["visit_duration_minutes"])
        if "category_durations" in kwargs:
            kwargs["category_durations"] = {
                str(k).lower(): int(v) for k, v in kwargs["category_durations"].items()
            }
        return cls(**kwargs)

    def duration_for(self, category: str, override: Optional[int] = None) -> int:
        """Visit minutes for a spot: own override > category > default."""
        if override is not None and override > 0:
            return int(override)
        return self.category_durations.get(category.lower(), self.visit_duration_minutes)

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
