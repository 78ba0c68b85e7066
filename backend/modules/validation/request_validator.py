"""
modules/validation/request_validator.py
---------------------------------------
Input guards applied before any optimisation work starts.

  Session:
    ✓ Non-empty string, at most MAX_SESSION_ID_LENGTH characters

  Options:
    ✓ travel_mode in {walking, driving, transit}
    ✓ start_time / daily_start_time / daily_end_time are 24-hour HH:MM
    ✓ daily_end_time later than daily_start_time
    ✓ start_time inside [daily_start_time, daily_end_time)
    ✓ visit_duration_minutes integer in [15, 480]
    ✓ include_breaks / multi_day are booleans

  Spots:
    ✓ 1 .. MAX_SPOTS entries
    ✓ Non-empty name
    ✓ visit_duration_minutes integer in [15, 480] when present
    ✓ lat/lon numeric when present (out-of-range values make the spot
      unresolved rather than invalid)

Failures are collected per field; ``require_valid`` turns them into a
``ValidationError`` for the caller.

Usage:
    from modules.validation import validate_request, require_valid

    require_valid(validate_request(payload))
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import config
from modules.errors import ValidationError
from modules.tool_usage.time_tool import is_hhmm, parse_hhmm
from schemas.itinerary import Point


# ── Result dataclass ───────────────────────────────────────────────────────────

@dataclass
class ValidationResult:
    """
    Outcome of a single validation run.

    Attributes:
        valid:  True iff there are zero errors.
        errors: ``{"field": ..., "message": ...}`` dicts.
    """
    valid: bool
    errors: list[dict[str, str]] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.valid

    def merge(self, other: ValidationResult) -> ValidationResult:
        errors = self.errors + other.errors
        return ValidationResult(valid=not errors, errors=errors)


def _result(errors: list[dict[str, str]]) -> ValidationResult:
    return ValidationResult(valid=len(errors) == 0, errors=errors)


def _err(field_name: str, message: str) -> dict[str, str]:
    return {"field": field_name, "message": message}


def _is_visit_duration(value: Any) -> bool:
    """Whole minutes in [MIN_VISIT_DURATION, MAX_VISIT_DURATION]; bools rejected."""
    if isinstance(value, bool):
        return False
    try:
        minutes = int(value)
    except (TypeError, ValueError):
        return False
    if isinstance(value, float) and value != minutes:
        return False
    return config.MIN_VISIT_DURATION <= minutes <= config.MAX_VISIT_DURATION


_DURATION_MESSAGE = (
    f"Visit duration must be between {config.MIN_VISIT_DURATION} "
    f"and {config.MAX_VISIT_DURATION} minutes"
)


# ── Session ────────────────────────────────────────────────────────────────────

def validate_session_id(session_id: Any) -> ValidationResult:
    errors: list[dict[str, str]] = []
    if not isinstance(session_id, str) or not session_id:
        errors.append(_err("session_id", "Session ID is required"))
    elif not session_id.strip():
        errors.append(_err("session_id", "Session ID cannot be empty"))
    elif len(session_id) > config.MAX_SESSION_ID_LENGTH:
        errors.append(_err(
            "session_id",
            f"Session ID must be less than {config.MAX_SESSION_ID_LENGTH} characters",
        ))
    return _result(errors)


# ── Options ────────────────────────────────────────────────────────────────────

def validate_options(options: dict[str, Any]) -> ValidationResult:
    """
    Validate a raw options mapping. Missing or ``None`` fields are fine;
    they take their defaults later.
    """
    errors: list[dict[str, str]] = []

    mode = options.get("travel_mode")
    if mode is not None and mode not in config.TRAVEL_MODES:
        errors.append(_err("travel_mode", "Travel mode must be walking, driving, or transit"))

    for name in ("start_time", "daily_start_time", "daily_end_time"):
        value = options.get(name)
        if value is not None and not is_hhmm(value):
            errors.append(_err(name, f"{name} must be in HH:MM format (24-hour)"))

    day_start = options.get("daily_start_time") or config.DEFAULT_DAILY_START_TIME
    day_end = options.get("daily_end_time") or config.DEFAULT_DAILY_END_TIME
    if is_hhmm(day_start) and is_hhmm(day_end) and parse_hhmm(day_end) <= parse_hhmm(day_start):
        errors.append(_err("daily_end_time", "daily_end_time must be later than daily_start_time"))
    else:
        start = options.get("start_time") or day_start
        if (
            is_hhmm(start) and is_hhmm(day_start) and is_hhmm(day_end)
            and not (parse_hhmm(day_start) <= parse_hhmm(start) < parse_hhmm(day_end))
        ):
            errors.append(_err(
                "start_time",
                f"start_time must be between daily_start_time ({day_start}) "
                f"and daily_end_time ({day_end})",
            ))

    duration = options.get("visit_duration_minutes")
    if duration is not None and not _is_visit_duration(duration):
        errors.append(_err("visit_duration_minutes", _DURATION_MESSAGE))

    for name in ("include_breaks", "multi_day"):
        value = options.get(name)
        if value is not None and not isinstance(value, bool):
            errors.append(_err(name, f"{name} must be a boolean"))

    category_durations = options.get("category_durations")
    if category_durations is not None:
        if not isinstance(category_durations, dict):
            errors.append(_err("category_durations", "category_durations must be an object"))
        else:
            for category, minutes in category_durations.items():
                if not isinstance(minutes, int) or not (
                    config.MIN_VISIT_DURATION <= minutes <= config.MAX_VISIT_DURATION
                ):
                    errors.append(_err(
                        "category_durations",
                        f"duration for {category!r} must be an integer in "
                        f"[{config.MIN_VISIT_DURATION}, {config.MAX_VISIT_DURATION}]",
                    ))

    return _result(errors)


# ── Spots ──────────────────────────────────────────────────────────────────────

def validate_spots(spots: Any) -> ValidationResult:
    errors: list[dict[str, str]] = []

    if not isinstance(spots, list) or not spots:
        errors.append(_err("selected_spots", "At least one spot must be selected"))
        return _result(errors)

    if len(spots) > config.MAX_SPOTS:
        errors.append(_err(
            "selected_spots",
            f"At most {config.MAX_SPOTS} spots can be optimised (got {len(spots)})",
        ))

    for idx, spot in enumerate(spots):
        name = spot.get("name") if isinstance(spot, dict) else None
        if not name or not str(name).strip():
            errors.append(_err(f"selected_spots[{idx}].name", "name must not be empty"))
            continue
        for coord in ("lat", "lon", "lng"):
            value = spot.get(coord)
            if value is None:
                continue
            try:
                float(value)
            except (TypeError, ValueError):
                errors.append(_err(f"selected_spots[{idx}].{coord}", f"{coord}={value!r} must be numeric"))
        duration = spot.get("visit_duration_minutes")
        if duration is not None and not _is_visit_duration(duration):
            errors.append(_err(f"selected_spots[{idx}].visit_duration_minutes", _DURATION_MESSAGE))

    return _result(errors)


def validate_request(payload: dict[str, Any]) -> ValidationResult:
    """Session id + options + (optional) spots of an optimise request."""
    result = validate_session_id(payload.get("session_id")).merge(validate_options(payload))
    if payload.get("selected_spots") is not None:
        result = result.merge(validate_spots(payload["selected_spots"]))
    return result


def require_valid(result: ValidationResult) -> None:
    """Raise ValidationError when ``result`` carries errors."""
    if not result.valid:
        raise ValidationError(result.errors)


# ── Spot conversion ────────────────────────────────────────────────────────────

def point_from_dict(spot: dict[str, Any]) -> Point:
    """
    Convert a validated spot mapping to a Point. Coordinates that are out of
    range or both exactly 0.0 (null island, a missing-value default) are
    dropped so the spot is treated as unresolved.
    """
    lat = spot.get("lat")
    lon = spot.get("lon", spot.get("lng"))
    lat = float(lat) if lat is not None else None
    lon = float(lon) if lon is not None else None
    if lat is not None and lon is not None:
        if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0) or (lat == 0.0 and lon == 0.0):
            lat = lon = None

    duration = spot.get("visit_duration_minutes")
    return Point(
        name=str(spot["name"]).strip(),
        lat=lat,
        lon=lon,
        address=str(spot.get("address") or spot.get("location") or ""),
        category=str(spot.get("category") or ""),
        description=str(spot.get("description") or ""),
        visit_duration_minutes=int(duration) if duration is not None else None,
        spot_id=str(spot.get("id") or spot.get("spot_id") or ""),
    )
