"""
modules/planning/schedule_builder.py
------------------------------------
Turns an ordered Route into timed, day-by-day ScheduleItems.

Rules (all arithmetic in minutes-from-midnight):
  1. Day 1 starts at options.start_time.
  2. For each route point in order: if the day already has a stop and
     clock + visit would pass daily_end_time, the day is closed and the
     next one starts at daily_start_time (no carry-over from the day before).
  3. arrival = clock, departure = clock + visit,
     clock = departure + travel to the next point.
  4. The last item of a closed day loses its travel leg.
  5. If the very first stop does not fit before daily_end_time but would
     fit in a full day, the schedule opens on day 2 instead.
  6. A stop longer than the whole day window still gets its own day
     (best effort, not an error).

Meal breaks (options.include_breaks):
  - At most one lunch and one dinner per day.
  - Injected before a stop when the clock is inside the meal window (or up
    to _MEAL_GRACE_MIN after it) and no stop today already spans the window.
  - Never before the first stop of a day, never reorders stops, and skipped
    when it would push the following stop past daily_end_time.

With multi_day=False stops stay on one day and late items get an
"after hours" note; a new day is only opened once a stop would run past
midnight.
"""

from __future__ import annotations
import logging
from typing import Optional

import config
from modules.tool_usage.time_tool import format_hhmm, m2t, parse_hhmm
from schemas.itinerary import DayPlan, Point, Route, RouteLeg, ScheduleItem, TravelInfo
from schemas.options import OptimizationOptions

logger = logging.getLogger(__name__)

# How long after a window closes a meal may still be served
_MEAL_GRACE_MIN: int = 60
_LAST_MINUTE: int = 23 * 60 + 59


class ScheduleBuilder:
    """
    Args:
        break_duration: Minutes per meal break.
        lunch_window:   ("HH:MM", "HH:MM") lunch window.
        dinner_window:  ("HH:MM", "HH:MM") dinner window.
    """

    def __init__(
        self,
        break_duration: Optional[int] = None,
        lunch_window: tuple[str, str] = config.LUNCH_WINDOW,
        dinner_window: tuple[str, str] = config.DINNER_WINDOW,
    ) -> None:
        self.break_duration = break_duration or config.BREAK_DURATION_MIN
        self._meals: list[tuple[str, int, int]] = [
            ("Lunch break", parse_hhmm(lunch_window[0]), parse_hhmm(lunch_window[1])),
            ("Dinner break", parse_hhmm(dinner_window[0]), parse_hhmm(dinner_window[1])),
        ]

    # ── public API ────────────────────────────────────────────────────────────

    def build(self, route: Route, options: OptimizationOptions) -> list[DayPlan]:
        if not route.points:
            return []

        day_start = parse_hhmm(options.daily_start_time)
        day_end = parse_hhmm(options.daily_end_time)

        days: list[DayPlan] = [DayPlan(day_number=1)]
        clock = parse_hhmm(options.start_time)
        meals_taken: set[str] = set()
        # (arrival, departure) of today's visits, for the "already spans" check
        spans: list[tuple[int, int]] = []

        for idx, point in enumerate(route.points):
            visit = options.duration_for(point.category, point.visit_duration_minutes)
            day = days[-1]
            # multi_day=False only rolls over at midnight; the clock never wraps
            last_minute = day_end if options.multi_day else _LAST_MINUTE

            if clock + visit > last_minute and day.visits:
                day.items[-1].travel_to_next = None
                day = DayPlan(day_number=day.day_number + 1)
                days.append(day)
                clock = day_start
                meals_taken = set()
                spans = []
            elif clock + visit > last_minute and day_start + visit <= last_minute:
                # Nothing fits before the end of day 1; open on the next day
                day.day_number += 1
                clock = day_start
            elif options.include_breaks and day.visits:
                clock = self._inject_breaks(day, clock, visit, day_end, meals_taken, spans)

            item = self._visit_item(point, clock, visit, day, not point.has_coordinates)
            if not day.items:
                item.day_marker = f"Day {day.day_number}"
            if clock + visit > day_end:
                item.notes = self._append_note(
                    item.notes,
                    f"after hours (past {format_hhmm(day_end)})" if not options.multi_day
                    else f"runs past {format_hhmm(day_end)}",
                )
            day.items.append(item)
            spans.append((clock, clock + visit))
            clock += visit

            leg = route.leg_after(idx)
            if leg is not None:
                item.travel_to_next = self._travel_info(leg)
                clock += leg.duration_minutes

        logger.info(
            "Schedule built: %d stop(s) over %d day(s)",
            len(route.points), len(days),
        )
        return days

    # ── internals ─────────────────────────────────────────────────────────────

    def _inject_breaks(
        self,
        day: DayPlan,
        clock: int,
        next_visit: int,
        day_end: int,
        meals_taken: set[str],
        spans: list[tuple[int, int]],
    ) -> int:
        for label, win_start, win_end in self._meals:
            if label in meals_taken:
                continue
            if not (win_start <= clock <= win_end + _MEAL_GRACE_MIN):
                continue
            if any(arr <= win_start and dep >= win_end for arr, dep in spans):
                meals_taken.add(label)
                continue
            if clock + self.break_duration + next_visit > day_end:
                continue
            day.items.append(ScheduleItem(
                spot=label,
                arrival_time=m2t(clock),
                departure_time=m2t(clock + self.break_duration),
                visit_duration_minutes=self.break_duration,
                day=day.day_number,
                kind="break",
            ))
            meals_taken.add(label)
            clock += self.break_duration
        return clock

    @staticmethod
    def _visit_item(point: Point, clock: int, visit: int, day: DayPlan, unknown: bool) -> ScheduleItem:
        return ScheduleItem(
            spot=point.name,
            arrival_time=m2t(clock),
            departure_time=m2t(clock + visit),
            visit_duration_minutes=visit,
            day=day.day_number,
            notes="Location could not be resolved; travel time unknown" if unknown else "",
            unknown_location=unknown,
            category=point.category,
        )

    @staticmethod
    def _travel_info(leg: RouteLeg) -> TravelInfo:
        return TravelInfo(
            mode=leg.mode,
            duration_minutes=leg.duration_minutes,
            navigation_url=leg.navigation_url,
            estimated=leg.estimated,
        )

    @staticmethod
    def _append_note(notes: str, extra: str) -> str:
        return f"{notes}; {extra}" if notes else extra
