"""
api/routes/monitoring.py
------------------------
GET  /v1/monitoring/stats   optimisation metrics + geocoding cache + sessions
POST /v1/monitoring/reset   clear metrics and the geocoding cache
"""
from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/stats", summary="Optimisation performance statistics")
def stats(request: Request) -> dict:
    state = request.app.state
    return {
        "success":        True,
        "optimization":   state.monitor.stats(),
        "geocode_cache":  state.geocode_cache.stats(),
        "active_sessions": state.session_store.count(),
    }


@router.post("/reset", summary="Reset optimisation metrics")
def reset(request: Request) -> dict:
    request.app.state.monitor.reset()
    request.app.state.geocode_cache.clear()
    return {"success": True, "message": "Monitoring data reset"}
