"""
db/
----
Session storage for the itinerary optimizer.

  InMemorySessionStore   process-lifetime dict with TTL (default)
  RedisSessionStore      redis-py hash per session, TTL reset on each write

Public exports:
    from db import build_session_store, get_redis
"""

from db.redis_client import get_redis
from db.session_store import (
    InMemorySessionStore,
    RedisSessionStore,
    SessionStore,
    build_session_store,
)

__all__ = [
    "get_redis",
    "SessionStore",
    "InMemorySessionStore",
    "RedisSessionStore",
    "build_session_store",
]
