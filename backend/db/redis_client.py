"""
db/redis_client.py
-------------------
redis-py client singleton used by the Redis session store.

Key schema:

  session:{session_id}
       Type  : Hash (one field per session attribute, JSON-encoded values)
       TTL   : SESSION_TTL (default 86,400 s = 24 hours; reset on each write)
       Fields: selected_spots, city, options, itinerary, updated_at

Environment variables (set in config.py):
    REDIS_HOST        default: localhost
    REDIS_PORT        default: 6379
    REDIS_DB          default: 0
    REDIS_PASSWORD    default: ""  (empty = no auth)
    SESSION_TTL       default: 86400
"""

from __future__ import annotations

from typing import Any

import redis

import config

# Module-level singleton; initialised lazily on first call to get_redis()
_client: redis.Redis | None = None


def get_redis() -> redis.Redis:
    """Return the singleton Redis client, creating it on first call."""
    global _client
    if _client is None:
        kwargs: dict[str, Any] = {
            "host":             config.REDIS_HOST,
            "port":             config.REDIS_PORT,
            "db":               config.REDIS_DB,
            "decode_responses": True,   # return str, not bytes
        }
        if config.REDIS_PASSWORD:
            kwargs["password"] = config.REDIS_PASSWORD
        _client = redis.Redis(**kwargs)
    return _client


def session_key(session_id: str) -> str:
    return f"session:{session_id}"
