"""
db/session_store.py
-------------------
Volatile per-session state: selected spots, city, options and the last
generated itinerary (all plain JSON-serialisable values).

Semantics shared by every backend:
  get(session_id)          -> dict | None (None when missing or expired)
  set(session_id, partial) -> top-level fields replaced wholesale,
                              last writer wins, TTL reset on every write
  delete(session_id)
  count()                  -> live sessions

Backends (config.SESSION_BACKEND):
  "in_memory"  InMemorySessionStore, process lifetime, lazy expiry
  "redis"      RedisSessionStore, one hash per session (db/redis_client.py)
"""

from __future__ import annotations
import json
import logging
import threading
import time as _time_mod
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional

import config
from db.redis_client import get_redis, session_key

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    @abstractmethod
    def get(self, session_id: str) -> Optional[dict[str, Any]]:
        ...

    @abstractmethod
    def set(self, session_id: str, partial: dict[str, Any]) -> None:
        ...

    @abstractmethod
    def delete(self, session_id: str) -> None:
        ...

    @abstractmethod
    def count(self) -> int:
        ...


class InMemorySessionStore(SessionStore):
    """Thread-safe dict store with a per-session TTL."""

    def __init__(self, ttl_seconds: Optional[int] = None) -> None:
        self.ttl_seconds = ttl_seconds or config.SESSION_TTL
        self._lock = threading.Lock()
        # session_id -> (data, expires_at monotonic)
        self._data: dict[str, tuple[dict[str, Any], float]] = {}

    def get(self, session_id: str) -> Optional[dict[str, Any]]:
        with self._lock:
            entry = self._data.get(session_id)
            if entry is None:
                return None
            data, expires_at = entry
            if _time_mod.monotonic() >= expires_at:
                del self._data[session_id]
                return None
            return dict(data)

    def set(self, session_id: str, partial: dict[str, Any]) -> None:
        with self._lock:
            entry = self._data.get(session_id)
            data = dict(entry[0]) if entry and _time_mod.monotonic() < entry[1] else {}
            data.update(partial)
            data["updated_at"] = datetime.now(timezone.utc).isoformat()
            self._data[session_id] = (data, _time_mod.monotonic() + self.ttl_seconds)

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._data.pop(session_id, None)

    def count(self) -> int:
        self.cleanup_expired()
        with self._lock:
            return len(self._data)

    def cleanup_expired(self) -> int:
        """Drop expired sessions; returns how many were removed."""
        now = _time_mod.monotonic()
        with self._lock:
            expired = [sid for sid, (_, exp) in self._data.items() if now >= exp]
            for sid in expired:
                del self._data[sid]
        if expired:
            logger.debug("Removed %d expired session(s)", len(expired))
        return len(expired)


class RedisSessionStore(SessionStore):
    """
    Session hash per id; every field value JSON-encoded. ``expire`` is
    reapplied on every write so activity keeps the session alive.
    """

    def __init__(self, client=None, ttl_seconds: Optional[int] = None) -> None:
        self._r = client if client is not None else get_redis()
        self.ttl_seconds = ttl_seconds or config.SESSION_TTL

    def get(self, session_id: str) -> Optional[dict[str, Any]]:
        raw = self._r.hgetall(session_key(session_id))
        if not raw:
            return None
        return {k: json.loads(v) for k, v in raw.items()}

    def set(self, session_id: str, partial: dict[str, Any]) -> None:
        key = session_key(session_id)
        encoded = {k: json.dumps(v, default=str) for k, v in partial.items()}
        encoded["updated_at"] = json.dumps(datetime.now(timezone.utc).isoformat())
        pipe = self._r.pipeline()
        pipe.hset(key, mapping=encoded)
        pipe.expire(key, self.ttl_seconds)
        pipe.execute()

    def delete(self, session_id: str) -> None:
        self._r.delete(session_key(session_id))

    def count(self) -> int:
        return sum(1 for _ in self._r.scan_iter(session_key("*")))


def build_session_store(backend: Optional[str] = None) -> SessionStore:
    """Store selected by config.SESSION_BACKEND."""
    backend = (backend or config.SESSION_BACKEND).lower()
    if backend == "redis":
        logger.info("Using Redis session store at %s:%s", config.REDIS_HOST, config.REDIS_PORT)
        return RedisSessionStore()
    return InMemorySessionStore()
