"""
modules/observability/monitor.py
--------------------------------
In-process performance metrics for optimisation runs.

One OptimizationMonitor is constructed by the host (api/server.py) and
injected into the orchestrator; there is no module-level instance.

    request_id = monitor.start(spots_count=5, travel_mode="walking")
    ...
    monitor.complete(request_id, success=True, fallback_used=False)
    monitor.stats()

History is bounded (config.MONITOR_MAX_METRICS, oldest dropped first).
Runs slower than config.SLOW_OPTIMIZATION_MS are logged as warnings.
"""

from __future__ import annotations
import logging
import threading
import time as _time_mod
import uuid
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Optional

import config

logger = logging.getLogger(__name__)

_RECENT_IN_STATS = 10


@dataclass
class OptimizationMetric:
    request_id: str
    spots_count: int
    travel_mode: str
    started_at: float                      # epoch seconds
    duration_ms: float = 0.0
    success: bool = False
    fallback_used: bool = False
    approximate: bool = False
    phases: dict[str, float] = field(default_factory=dict)   # phase -> ms
    error: Optional[str] = None


class OptimizationMonitor:
    """Thread-safe, bounded metric history with aggregate stats."""

    def __init__(self, max_metrics: Optional[int] = None, slow_threshold_ms: Optional[float] = None) -> None:
        self.max_metrics = max_metrics or config.MONITOR_MAX_METRICS
        self.slow_threshold_ms = slow_threshold_ms or config.SLOW_OPTIMIZATION_MS
        self._lock = threading.Lock()
        self._metrics: deque[OptimizationMetric] = deque(maxlen=self.max_metrics)
        self._pending: dict[str, tuple[OptimizationMetric, float]] = {}

    def start(self, spots_count: int, travel_mode: str) -> str:
        request_id = f"opt-{uuid.uuid4().hex[:12]}"
        metric = OptimizationMetric(
            request_id=request_id,
            spots_count=spots_count,
            travel_mode=travel_mode,
            started_at=_time_mod.time(),
        )
        with self._lock:
            self._pending[request_id] = (metric, _time_mod.perf_counter())
        logger.debug("[%s] optimisation started: %d spots, %s", request_id, spots_count, travel_mode)
        return request_id

    def record_phase(self, request_id: str, phase: str, duration_ms: float) -> None:
        with self._lock:
            pending = self._pending.get(request_id)
            if pending:
                pending[0].phases[phase] = round(duration_ms, 2)

    def complete(
        self,
        request_id: str,
        success: bool,
        fallback_used: bool = False,
        approximate: bool = False,
        error: Optional[str] = None,
    ) -> Optional[OptimizationMetric]:
        with self._lock:
            pending = self._pending.pop(request_id, None)
            if pending is None:
                logger.warning("complete() for unknown request %s", request_id)
                return None
            metric, t0 = pending
            metric.duration_ms = round((_time_mod.perf_counter() - t0) * 1000, 2)
            metric.success = success
            metric.fallback_used = fallback_used
            metric.approximate = approximate
            metric.error = error
            self._metrics.append(metric)

        if metric.duration_ms > self.slow_threshold_ms:
            logger.warning("Slow optimisation: %.0f ms for %d spots",
                           metric.duration_ms, metric.spots_count)
        return metric

    def stats(self) -> dict:
        with self._lock:
            metrics = list(self._metrics)
        total = len(metrics)
        if not total:
            return {
                "total_optimizations": 0,
                "average_duration_ms": 0.0,
                "success_rate": 0.0,
                "fallback_rate": 0.0,
                "approximate_rate": 0.0,
                "by_spot_count": {},
                "slow_optimizations": [],
                "recent_optimizations": [],
            }

        by_count: dict[int, list[float]] = {}
        for m in metrics:
            by_count.setdefault(m.spots_count, []).append(m.duration_ms)

        return {
            "total_optimizations": total,
            "average_duration_ms": round(sum(m.duration_ms for m in metrics) / total, 2),
            "success_rate": round(sum(m.success for m in metrics) / total, 4),
            "fallback_rate": round(sum(m.fallback_used for m in metrics) / total, 4),
            "approximate_rate": round(sum(m.approximate for m in metrics) / total, 4),
            "by_spot_count": {
                count: {"count": len(d), "average_duration_ms": round(sum(d) / len(d), 2)}
                for count, d in sorted(by_count.items())
            },
            "slow_optimizations": [
                asdict(m) for m in metrics if m.duration_ms > self.slow_threshold_ms
            ],
            "recent_optimizations": [asdict(m) for m in metrics[-_RECENT_IN_STATS:]],
        }

    def reset(self) -> None:
        with self._lock:
            self._metrics.clear()
            self._pending.clear()
