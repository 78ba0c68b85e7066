"""
api/server.py
-------------
FastAPI application entry point.

Run dev server:
    cd backend
    uvicorn api.server:app --reload --port 8000

Endpoints:
    GET  /v1/health
    POST /v1/itinerary/optimize
    GET  /v1/itinerary/{session_id}
    GET  /v1/monitoring/stats
    POST /v1/monitoring/reset

Shared components (orchestrator, session store, monitor, geocoding cache)
are built once in create_app() and hung off ``app.state``; tests pass their
own instances.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import config
from api.routes import health, itinerary, monitoring
from db.session_store import SessionStore, build_session_store
from llm import build_llm_client
from modules.errors import ValidationError
from modules.observability.logger import StructuredLogger
from modules.observability.monitor import OptimizationMonitor
from modules.planning.orchestrator import ItineraryOrchestrator
from modules.planning.route_optimizer import RouteOptimizer
from modules.planning.schedule_builder import ScheduleBuilder
from modules.tool_usage.distance_tool import build_distance_provider
from modules.tool_usage.geocoding_tool import GeocodingCache, GeocodingTool
from modules.tool_usage.narrative_tool import LLMNarrativeTool

logger = logging.getLogger(__name__)


def build_orchestrator(
    monitor: OptimizationMonitor,
    geocoder: Optional[GeocodingTool] = None,
    struct_logger: Optional[StructuredLogger] = None,
) -> ItineraryOrchestrator:
    """Production wiring from config.py."""
    return ItineraryOrchestrator(
        optimizer=RouteOptimizer(build_distance_provider()),
        builder=ScheduleBuilder(),
        narrative_tool=LLMNarrativeTool(build_llm_client()),
        geocoder=geocoder,
        monitor=monitor,
        struct_logger=struct_logger,
    )


def create_app(
    orchestrator: Optional[ItineraryOrchestrator] = None,
    session_store: Optional[SessionStore] = None,
    monitor: Optional[OptimizationMonitor] = None,
    geocode_cache: Optional[GeocodingCache] = None,
) -> FastAPI:
    app = FastAPI(
        title="Smart Itinerary Optimizer API",
        version="1.0.0",
        description=(
            "Orders selected spots into a nearest-neighbour route and builds a "
            "multi-day schedule. Integrates Google Routes, Google Geocoding and Gemini."
        ),
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Allow the frontend (any origin during development)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    monitor = monitor or OptimizationMonitor()
    geocode_cache = geocode_cache or GeocodingCache()
    if orchestrator is None:
        orchestrator = build_orchestrator(
            monitor,
            geocoder=GeocodingTool(cache=geocode_cache),
            struct_logger=StructuredLogger(),
        )

    app.state.orchestrator = orchestrator
    app.state.session_store = session_store or build_session_store()
    app.state.monitor = monitor
    app.state.geocode_cache = geocode_cache

    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Invalid request", "details": exc.errors},
        )

    @app.exception_handler(RequestValidationError)
    async def _request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [
            {"field": ".".join(str(p) for p in err.get("loc", ())[1:]), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Invalid request", "details": details},
        )

    app.include_router(health.router,      prefix="/v1",            tags=["Health"])
    app.include_router(itinerary.router,   prefix="/v1/itinerary",  tags=["Itinerary"])
    app.include_router(monitoring.router,  prefix="/v1/monitoring", tags=["Monitoring"])

    logger.info(
        "App ready: distance=%s sessions=%s stub_llm=%s",
        config.DISTANCE_PROVIDER, config.SESSION_BACKEND, config.USE_STUB_LLM,
    )
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.server:app", host="0.0.0.0", port=8000, reload=True)
