"""
modules/tool_usage/time_tool.py
-------------------------------
Clock helpers shared by the schedule builder, validators and serialisers.
All arithmetic is done in integer minutes-from-midnight.
"""

from __future__ import annotations
import re
from datetime import time

_HHMM_RE = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")
_MINUTES_PER_DAY = 24 * 60


def is_hhmm(value: object) -> bool:
    """True for a 24-hour "H:MM" / "HH:MM" string."""
    return isinstance(value, str) and bool(_HHMM_RE.match(value.strip()))


def parse_hhmm(value: str) -> int:
    """ "13:45" -> 825. Raises ValueError on malformed input."""
    match = _HHMM_RE.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValueError(f"invalid HH:MM time: {value!r}")
    return int(match.group(1)) * 60 + int(match.group(2))


def t2m(t: time) -> int:
    """Convert a time object to integer minutes-from-midnight."""
    return t.hour * 60 + t.minute


def m2t(mins: int) -> time:
    """Minutes-from-midnight to a time object (wraps past midnight)."""
    mins = int(mins) % _MINUTES_PER_DAY
    return time(mins // 60, mins % 60)


def format_hhmm(t: time | int | None) -> str | None:
    if t is None:
        return None
    if isinstance(t, int):
        t = m2t(t)
    return t.strftime("%H:%M")


def format_duration(minutes: int) -> str:
    """90 -> "1h 30m", 45 -> "45m"."""
    hours, mins = divmod(max(int(minutes), 0), 60)
    if hours and mins:
        return f"{hours}h {mins}m"
    if hours:
        return f"{hours}h"
    return f"{mins}m"
