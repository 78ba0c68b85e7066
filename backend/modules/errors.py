"""
modules/errors.py
-----------------
Error taxonomy for the optimisation pipeline.

  ValidationError      malformed input; surfaced to the caller, never retried
  DistanceUnavailable  distance collaborator failed; orchestrator falls back
  PipelineTimeout      wall-clock budget exceeded; handled like the above
  NarrativeUnavailable narrative collaborator failed
  ServiceUnavailable   every strategy failed; caller should retry later

A stop too long to fit in a day is not an error (best-effort placement).
"""

from __future__ import annotations


class ItineraryError(Exception):
    """Base class for all pipeline errors."""


class ValidationError(ItineraryError):
    """
    Raised for malformed requests (spot count, time format, durations).

    ``errors`` is a list of ``{"field": ..., "message": ...}`` dicts.
    """

    def __init__(self, errors: list[dict[str, str]]) -> None:
        self.errors = errors
        summary = "; ".join(f"{e['field']}: {e['message']}" for e in errors)
        super().__init__(f"ERROR_VALIDATION: {summary}")


class DistanceUnavailable(ItineraryError):
    """Distance provider failed for the whole request (or every pair)."""

    def __init__(
        self,
        message: str,
        api_status: str = "UNKNOWN",
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.api_status = api_status
        self.status_code = status_code
        self.quota_exceeded = api_status in ("OVER_DAILY_LIMIT", "OVER_QUERY_LIMIT", "RESOURCE_EXHAUSTED")
        self.rate_limited = api_status in ("OVER_QUERY_LIMIT", "RESOURCE_EXHAUSTED") or status_code == 429


class PipelineTimeout(DistanceUnavailable):
    """Optimise-and-schedule exceeded its wall-clock budget."""

    def __init__(self, budget_seconds: float) -> None:
        super().__init__(
            f"ERROR_PIPELINE_TIMEOUT: optimisation exceeded {budget_seconds:.1f}s budget",
            api_status="TIMEOUT",
        )
        self.budget_seconds = budget_seconds


class NarrativeUnavailable(ItineraryError):
    """Narrative (LLM) provider could not produce any text."""


class ServiceUnavailable(ItineraryError):
    """Neither the optimisation pipeline nor any fallback produced an itinerary."""
