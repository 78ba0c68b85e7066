"""
modules/tool_usage/narrative_tool.py
------------------------------------
Narrative (LLM) fallback provider.

Used only when the optimisation pipeline fails or runs out of time. The LLM
is asked for a JSON itinerary; the reply is parsed into a tagged variant:

    ParsedSchedule(items)   every schedule entry has a spot and an HH:MM time
    RawNarrative(text)      anything else, shown to the user verbatim

The parse is all-or-nothing: one malformed entry makes the whole reply raw.

Expected reply shape:
    {
      "title": "...",
      "totalDuration": "...",
      "schedule": [
        {"time": "09:00", "spot": "...", "duration": "1 hour",
         "transportation": "...", "notes": "...", "day": 1}
      ]
    }
"""

from __future__ import annotations
import json
import logging
import re
from abc import ABC, abstractmethod

import config
from modules.errors import NarrativeUnavailable
from modules.tool_usage.time_tool import is_hhmm, m2t, parse_hhmm
from schemas.itinerary import NarrativeResult, ParsedSchedule, Point, RawNarrative, ScheduleItem

logger = logging.getLogger(__name__)

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_DURATION_RE = re.compile(
    r"(\d+(?:\.\d+)?)\s*(hours|hour|hrs|hr|h|minutes|minute|mins|min|m)?(?![a-z])", re.I
)

_PROMPT_TEMPLATE = """\
Create a one-visit-per-spot itinerary for {city}.

Selected spots:
{spot_lines}

Return ONLY a JSON object with this structure:
{{
  "title": "Itinerary title",
  "totalDuration": "Total time",
  "schedule": [
    {{
      "time": "HH:MM (24-hour)",
      "spot": "Spot name exactly as listed",
      "duration": "Visit duration, e.g. 60 minutes",
      "transportation": "How to get to the next spot",
      "notes": "Short tip",
      "day": 1
    }}
  ]
}}
Start each day at {day_start}. Finish each day by {day_end}."""


class NarrativeProvider(ABC):
    """Free-text itinerary suggestions for a city and an unordered spot list."""

    @abstractmethod
    def generate_narrative_itinerary(self, points: list[Point], city: str) -> NarrativeResult:
        """Raise NarrativeUnavailable when no text at all can be produced."""


def _spot_line(p: Point) -> str:
    line = f"- {p.name}"
    if p.category:
        line += f" ({p.category})"
    if p.description:
        line += f": {p.description}"
    return line


def build_prompt(points: list[Point], city: str) -> str:
    return _PROMPT_TEMPLATE.format(
        city=city or "the city",
        spot_lines="\n".join(_spot_line(p) for p in points),
        day_start=config.DEFAULT_DAILY_START_TIME,
        day_end=config.DEFAULT_DAILY_END_TIME,
    )


def parse_duration_minutes(value) -> int | None:
    """ "1.5 hours" -> 90, "1h30m" -> 90, "45 min" -> 45, 30 -> 30. None when unparseable."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if value > 0 else None
    if not isinstance(value, str):
        return None
    minutes = 0.0
    for amount, unit in _DURATION_RE.findall(value):
        minutes += float(amount) * (60 if unit.lower().startswith("h") else 1)
    return int(round(minutes)) or None


def parse_narrative(text: str) -> NarrativeResult:
    """
    Turn an LLM reply into ParsedSchedule or RawNarrative.

    ParsedSchedule only when a JSON object with a non-empty ``schedule`` list
    is found and every entry carries a non-empty ``spot``, a 24-hour ``time``
    and (if present) a parseable ``duration``.
    """
    match = _JSON_OBJECT_RE.search(text or "")
    if not match:
        return RawNarrative(text=text)
    try:
        data = json.loads(match.group(0))
    except ValueError:
        return RawNarrative(text=text)

    entries = data.get("schedule") if isinstance(data, dict) else None
    if not isinstance(entries, list) or not entries:
        return RawNarrative(text=text)

    items: list[ScheduleItem] = []
    for entry in entries:
        if not isinstance(entry, dict):
            return RawNarrative(text=text)
        spot = str(entry.get("spot") or "").strip()
        start = entry.get("time")
        if not spot or not is_hhmm(start):
            return RawNarrative(text=text)

        if entry.get("duration") is None:
            duration = config.DEFAULT_VISIT_DURATION
        else:
            duration = parse_duration_minutes(entry["duration"])
            if duration is None:
                return RawNarrative(text=text)

        day = entry.get("day", 1)
        day = day if isinstance(day, int) and not isinstance(day, bool) and day > 0 else 1
        arrival = parse_hhmm(start)
        notes = " ".join(
            str(entry[k]).strip() for k in ("transportation", "notes") if entry.get(k)
        )
        items.append(ScheduleItem(
            spot=spot,
            arrival_time=m2t(arrival),
            departure_time=m2t(arrival + duration),
            visit_duration_minutes=duration,
            day=day,
            notes=notes,
        ))

    return ParsedSchedule(items=items, title=str(data.get("title") or ""))


class LLMNarrativeTool(NarrativeProvider):
    """Narrative provider backed by an LLM client exposing ``complete(prompt)``."""

    def __init__(self, llm_client) -> None:
        self.llm_client = llm_client

    def generate_narrative_itinerary(self, points: list[Point], city: str) -> NarrativeResult:
        prompt = build_prompt(points, city)
        try:
            text = self.llm_client.complete(prompt)
        except Exception as exc:
            logger.warning("Narrative provider failed: %s", exc)
            raise NarrativeUnavailable(f"ERROR_NARRATIVE_UNAVAILABLE: {exc}") from exc

        if not text or not text.strip():
            raise NarrativeUnavailable("ERROR_NARRATIVE_EMPTY: provider returned no text")

        result = parse_narrative(text)
        logger.info("Narrative reply for %s parsed as %s", city, result.kind)
        return result
