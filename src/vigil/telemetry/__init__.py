"""Server-side log retrieval, normalization, merging and isolation checks."""

from vigil.telemetry.client import TelemetryClient, build_trace_needles
from vigil.telemetry.isolation import IsolationReport, analyze_isolation
from vigil.telemetry.merge import dedupe_events, event_key, merge_service_logs
from vigil.telemetry.normalizer import RawTelemetryEvent, normalize_event

__all__ = [
    "IsolationReport",
    "RawTelemetryEvent",
    "TelemetryClient",
    "analyze_isolation",
    "build_trace_needles",
    "dedupe_events",
    "event_key",
    "merge_service_logs",
    "normalize_event",
]
