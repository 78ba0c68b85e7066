"""
modules/observability/logger.py
-------------------------------
Pipeline event log. Each optimisation session gets its own JSON-lines file
under config.LOGS_DIR; every line is one event:

    {"timestamp": ..., "session_id": ..., "event_type": ..., "payload": {...}}

The orchestrator emits pipeline_start, fallback_used, pipeline_complete and
PERFORMANCE. The last _RECENT_MAX events are also kept in memory, which is
what the tests read (``StructuredLogger(logs_dir="")`` never touches disk).
"""

from __future__ import annotations

import json
import re
import threading
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Optional

import config

_RECENT_MAX = 200
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def _event(session_id: str, event_type: str, payload: dict) -> dict:
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "session_id": session_id,
        "event_type": event_type,
        "payload": payload,
    }


class StructuredLogger:
    """
    Args:
        logs_dir: Target directory; None means config.LOGS_DIR, "" keeps
                  events in memory only.
        enabled:  False also keeps events in memory only.
    """

    def __init__(self, logs_dir: Path | str | None = None, enabled: bool = True) -> None:
        target = config.LOGS_DIR if logs_dir is None else logs_dir
        self._dir: Optional[Path] = Path(target) if target and enabled else None
        self._lock = threading.Lock()
        self._files: dict[str, IO[str]] = {}
        self._recent: deque[dict] = deque(maxlen=_RECENT_MAX)

    def log(self, session_id: str, event_type: str, payload: dict) -> None:
        event = _event(session_id, event_type, payload)
        with self._lock:
            self._recent.append(event)
            if self._dir is None:
                return
            out = self._files.get(session_id) or self._file_for(session_id)
            out.write(json.dumps(event, default=str, ensure_ascii=False) + "\n")
            out.flush()

    def recent(self, event_type: str | None = None) -> list[dict]:
        """Buffered events, oldest first, optionally of one type."""
        with self._lock:
            return [e for e in self._recent if event_type in (None, e["event_type"])]

    def close(self, session_id: str | None = None) -> None:
        with self._lock:
            ids = [session_id] if session_id else list(self._files)
            for sid in ids:
                out = self._files.pop(sid, None)
                if out is not None:
                    out.close()

    def _file_for(self, session_id: str) -> IO[str]:
        self._dir.mkdir(parents=True, exist_ok=True)
        name = _UNSAFE_CHARS.sub("_", session_id) or "default"
        out = (self._dir / f"{name}.jsonl").open("a", encoding="utf-8")
        self._files[session_id] = out
        return out
