"""
config.py
---------
Central configuration for the itinerary optimizer backend.
All secrets are loaded from environment variables, never hard-coded.

Time values are minutes unless the name says otherwise; clock times are
24-hour "HH:MM" strings.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the backend directory (if it exists). Won't override vars
# already set in the shell.
_env_path = Path(__file__).parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path)


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


# ── Google Maps Platform ──────────────────────────────────────────────────────
# Enable:  Routes API  +  Geocoding API
# Set env: GOOGLE_MAPS_API_KEY=AIza...
GOOGLE_MAPS_API_KEY: str = os.getenv("GOOGLE_MAPS_API_KEY", os.getenv("GOOGLE_PLACES_API_KEY", ""))
GOOGLE_ROUTES_MATRIX_URL: str = os.getenv(
    "GOOGLE_ROUTES_MATRIX_URL",
    "https://routes.googleapis.com/distanceMatrix/v2:computeRouteMatrix",
)
GOOGLE_GEOCODING_URL: str = os.getenv(
    "GOOGLE_GEOCODING_URL", "https://maps.googleapis.com/maps/api/geocode/json"
)
GOOGLE_MAPS_DIR_URL: str = "https://www.google.com/maps/dir/"

# ── Distance provider ─────────────────────────────────────────────────────────
# "google"    -> one batched Routes API matrix call per optimisation
# "haversine" -> straight-line proxy only, no external calls
DISTANCE_PROVIDER: str = os.getenv("DISTANCE_PROVIDER", "haversine")
DISTANCE_REQUEST_TIMEOUT: int = int(os.getenv("DISTANCE_REQUEST_TIMEOUT", "10"))  # seconds
DISTANCE_MAX_ATTEMPTS: int = int(os.getenv("DISTANCE_MAX_ATTEMPTS", "3"))
DISTANCE_BACKOFF_MAX_SECONDS: float = float(os.getenv("DISTANCE_BACKOFF_MAX_SECONDS", "4"))

# Above this many spots the optimizer skips the provider and uses proxy
# distances. Empirical, not derived from a cost model.
PROXY_THRESHOLD: int = int(os.getenv("PROXY_THRESHOLD", "8"))

# Straight-line speed assumptions for proxy travel times (km/h)
PROXY_SPEEDS_KMH: dict[str, float] = {
    "walking": float(os.getenv("PROXY_SPEED_WALKING_KMH", "5")),
    "driving": float(os.getenv("PROXY_SPEED_DRIVING_KMH", "30")),
    "transit": float(os.getenv("PROXY_SPEED_TRANSIT_KMH", "20")),
}

TRAVEL_MODES: tuple[str, ...] = ("walking", "driving", "transit")

# ── Request limits ────────────────────────────────────────────────────────────
MAX_SPOTS: int = int(os.getenv("MAX_SPOTS", "40"))
MIN_VISIT_DURATION: int = 15
MAX_VISIT_DURATION: int = 480
MAX_SESSION_ID_LENGTH: int = 100

# ── Scheduling defaults ───────────────────────────────────────────────────────
DEFAULT_TRAVEL_MODE: str = os.getenv("DEFAULT_TRAVEL_MODE", "walking")
DEFAULT_START_TIME: str = os.getenv("DEFAULT_START_TIME", "09:00")
DEFAULT_DAILY_START_TIME: str = os.getenv("DEFAULT_DAILY_START_TIME", "09:00")
DEFAULT_DAILY_END_TIME: str = os.getenv("DEFAULT_DAILY_END_TIME", "20:00")
DEFAULT_VISIT_DURATION: int = int(os.getenv("DEFAULT_VISIT_DURATION", "60"))

LUNCH_WINDOW: tuple[str, str] = ("12:00", "13:00")
DINNER_WINDOW: tuple[str, str] = ("18:00", "19:00")
BREAK_DURATION_MIN: int = int(os.getenv("BREAK_DURATION_MIN", "60"))

# Travel leg assumed by the sequential last-resort itinerary
SEQUENTIAL_LEG_MIN: int = 15

# ── Orchestration ─────────────────────────────────────────────────────────────
PIPELINE_TIMEOUT_SECONDS: float = float(os.getenv("PIPELINE_TIMEOUT_SECONDS", "5"))

# ── LLM (narrative fallback) ──────────────────────────────────────────────────
# Stub mode by default so the service runs without any API key.
USE_STUB_LLM: bool = _flag("USE_STUB_LLM", "true")
LLM_MODEL_NAME: str = os.getenv("LLM_MODEL_NAME", "gemini-1.5-flash")
GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
LLM_TIMEOUT_SECONDS: int = int(os.getenv("LLM_TIMEOUT_SECONDS", "30"))

# ── Sessions ──────────────────────────────────────────────────────────────────
SESSION_BACKEND: str = os.getenv("SESSION_BACKEND", "in_memory")    # "in_memory" | "redis"
SESSION_TTL: int = int(os.getenv("SESSION_TTL", "86400"))           # 24 hours

# ── Redis ─────────────────────────────────────────────────────────────────────
REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))
REDIS_PASSWORD: str = os.getenv("REDIS_PASSWORD", "")

# ── Caching / monitoring ──────────────────────────────────────────────────────
GEOCODE_CACHE_TTL: int = int(os.getenv("GEOCODE_CACHE_TTL", "86400"))       # seconds
GEOCODE_CACHE_MAX_ENTRIES: int = int(os.getenv("GEOCODE_CACHE_MAX_ENTRIES", "1000"))
MONITOR_MAX_METRICS: int = int(os.getenv("MONITOR_MAX_METRICS", "500"))
SLOW_OPTIMIZATION_MS: float = float(os.getenv("SLOW_OPTIMIZATION_MS", "5000"))

# JSONL structured logs; empty string disables file output
LOGS_DIR: str = os.getenv("LOGS_DIR", str(Path(__file__).parent / "logs"))
