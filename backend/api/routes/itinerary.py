"""
api/routes/itinerary.py
------------------------
POST /v1/itinerary/optimize
GET  /v1/itinerary/{session_id}

Optimise runs the orchestrator (route -> schedule, with fallbacks) and
stores spots, city, options and the serialised itinerary in the session
store. A new itinerary always replaces the previous one for that session.

Spots and city may be omitted when the session already holds them.

Status codes:
    400  request validation failed (per-field details)
    404  unknown session and no spots in the request
    503  every strategy failed; try again later
"""

from __future__ import annotations

from datetime import time as time_type
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from modules.errors import ServiceUnavailable
from modules.tool_usage.time_tool import format_duration
from modules.validation import (
    point_from_dict,
    require_valid,
    validate_options,
    validate_session_id,
    validate_spots,
)
from schemas.itinerary import Itinerary, Route, ScheduleItem
from schemas.options import OptimizationOptions

router = APIRouter()


# ── Request schema ─────────────────────────────────────────────────────────────

class OptimizeRequest(BaseModel):
    session_id: str = Field(..., description="Client session identifier")
    selected_spots: Optional[list[dict[str, Any]]] = Field(
        None, description="Spots with name and optional lat/lon/address/category",
    )
    city: Optional[str] = None
    travel_mode: Optional[str] = Field(None, description="walking | driving | transit")
    start_time: Optional[str] = Field(None, description="HH:MM, day 1 start")
    visit_duration: Optional[Any] = Field(None, description="Default visit minutes (15-480)")
    include_breaks: Optional[Any] = None
    multi_day: Optional[Any] = None
    hotel_location: Optional[str] = Field(None, description="Address or 'lat,lon'")
    daily_start_time: Optional[str] = None
    daily_end_time: Optional[str] = None
    category_durations: Optional[Any] = None

    def options_dict(self) -> dict[str, Any]:
        return {
            "travel_mode":            self.travel_mode,
            "start_time":             self.start_time,
            "visit_duration_minutes": self.visit_duration,
            "include_breaks":         self.include_breaks,
            "multi_day":              self.multi_day,
            "hotel_location":         self.hotel_location,
            "daily_start_time":       self.daily_start_time,
            "daily_end_time":         self.daily_end_time,
            "category_durations":     self.category_durations,
        }


# ── Serialisers ────────────────────────────────────────────────────────────────

def _ser_time(t: Optional[time_type]) -> Optional[str]:
    return t.strftime("%H:%M") if t else None


def _ser_item(item: ScheduleItem) -> dict:
    travel = item.travel_to_next
    return {
        "time":                   _ser_time(item.arrival_time),
        "spot":                   item.spot,
        "kind":                   item.kind,
        "day":                    item.day,
        "day_marker":             item.day_marker or None,
        "arrival_time":           _ser_time(item.arrival_time),
        "departure_time":         _ser_time(item.departure_time),
        "visit_duration_minutes": item.visit_duration_minutes,
        "duration":               format_duration(item.visit_duration_minutes),
        "category":               item.category or None,
        "notes":                  item.notes,
        "unknown_location":       item.unknown_location,
        "travel_to_next": {
            "mode":             travel.mode,
            "duration_minutes": travel.duration_minutes,
            "navigation_url":   travel.navigation_url,
            "estimated":        travel.estimated,
        } if travel else None,
    }


def _ser_route(route: Optional[Route]) -> Optional[dict]:
    if route is None:
        return None
    return {
        "ordered_spots":        route.ordered_names,
        "travel_mode":          route.mode,
        "total_travel_minutes": round(route.total_travel_seconds / 60.0, 1),
        "total_distance_km":    round(route.total_distance_meters / 1000.0, 2),
        "approximate":          route.approximate,
        "unresolved_spots":     [p.name for p in route.unresolved],
    }


def serialize_itinerary(it: Itinerary) -> dict:
    return {
        "title":                  it.title,
        "city":                   it.city,
        "total_duration_minutes": it.total_duration_minutes,
        "total_duration":         format_duration(it.total_duration_minutes),
        "total_travel_minutes":   it.total_travel_minutes,
        "fallback_used":          it.fallback_used,
        "narrative_text":         it.narrative_text or None,
        "generated_at":           it.generated_at,
        "route":                  _ser_route(it.route),
        "days": [
            {
                "day_number": d.day_number,
                "items":      [_ser_item(i) for i in d.items],
            }
            for d in it.days
        ],
        "schedule": [_ser_item(i) for i in it.schedule],
    }


# ── Endpoints ──────────────────────────────────────────────────────────────────

@router.post("/optimize", summary="Optimise the selected spots into an itinerary")
def optimize_itinerary(req: OptimizeRequest, request: Request) -> dict:
    """
    Validates the request, orders the spots, builds the day-by-day schedule
    and stores the result in the session.
    """
    options_raw = req.options_dict()
    result = validate_session_id(req.session_id).merge(validate_options(options_raw))
    if req.selected_spots is not None:
        result = result.merge(validate_spots(req.selected_spots))
    require_valid(result)

    store = request.app.state.session_store
    session = store.get(req.session_id)

    spots = req.selected_spots if req.selected_spots is not None else (session or {}).get("selected_spots")
    city = (req.city or (session or {}).get("city") or "").strip()
    if not spots:
        if session is None:
            raise HTTPException(
                status_code=404,
                detail=f"Session '{req.session_id}' not found and no spots were provided.",
            )
        require_valid(validate_spots(spots))

    points = [point_from_dict(s) for s in spots]
    options = OptimizationOptions.from_dict(options_raw)

    try:
        outcome = request.app.state.orchestrator.run(points, city, options, session_id=req.session_id)
    except ServiceUnavailable as exc:
        raise HTTPException(
            status_code=503,
            detail="Itinerary generation is temporarily unavailable. Please try again later.",
        ) from exc

    itinerary = serialize_itinerary(outcome.itinerary)
    store.set(req.session_id, {
        "selected_spots": spots,
        "city":           city,
        "options":        options.to_dict(),
        "itinerary":      itinerary,
    })

    return {
        "success":       True,
        "session_id":    req.session_id,
        "city":          city,
        "spots_count":   len(points),
        "fallback_used": outcome.fallback_used,
        "itinerary":     itinerary,
        "message": (
            "Itinerary generated with basic scheduling"
            if outcome.fallback_used else "Itinerary optimised successfully"
        ),
    }


@router.get("/{session_id}", summary="Last itinerary generated for a session")
def get_itinerary(session_id: str, request: Request) -> dict:
    require_valid(validate_session_id(session_id))
    session = request.app.state.session_store.get(session_id)
    if not session or not session.get("itinerary"):
        raise HTTPException(
            status_code=404,
            detail=f"No itinerary for session '{session_id}'. Call /v1/itinerary/optimize first.",
        )
    return {
        "success":    True,
        "session_id": session_id,
        "city":       session.get("city", ""),
        "itinerary":  session["itinerary"],
    }
