"""Server log enrichment with expanding-window retries."""

from vigil.enrichment.controller import (
    EnrichResult,
    Enricher,
    LogFetcher,
    TimeWindow,
    build_attempt_window,
    build_reenrich_window,
    enrich_stored_trace,
)

__all__ = [
    "EnrichResult",
    "Enricher",
    "LogFetcher",
    "TimeWindow",
    "build_attempt_window",
    "build_reenrich_window",
    "enrich_stored_trace",
]
