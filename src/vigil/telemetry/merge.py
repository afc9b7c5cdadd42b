"""Merge per-service log sets gathered across repeated fetches.

Existing events always precede newly fetched ones, and an event seen
twice (same content key) is kept once, so merging the same batch again
is a no-op.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from vigil.models.trace import LogEvent, ServiceLogs


def event_key(event: LogEvent) -> str:
    """Content key identifying a log event for deduplication."""
    return "|".join(
        [
            event.timestamp.isoformat(),
            event.service or "",
            event.phase or "",
            event.request_id or "",
            event.trace_id or "",
            event.run_id or "",
            event.tool or "",
            event.message or "",
            "" if event.status is None else str(event.status),
            event.status_text or "",
            "" if event.duration_ms is None else str(event.duration_ms),
        ]
    )


def dedupe_events(events: Iterable[LogEvent]) -> list[LogEvent]:
    """Drop repeated events, keeping the first occurrence in order."""
    seen: set[str] = set()
    deduped: list[LogEvent] = []
    for event in events:
        key = event_key(event)
        if key in seen:
            continue
        seen.add(key)
        deduped.append(event)
    return deduped


def merge_service_logs(
    current: Mapping[str, Sequence[LogEvent]] | None,
    incoming: Mapping[str, Sequence[LogEvent]] | None,
) -> ServiceLogs:
    """Combine two service -> events mappings without duplicate events.

    Services whose event list is empty are dropped from the result.
    """
    merged: ServiceLogs = {}

    for service, events in (current or {}).items():
        if events:
            merged[service] = dedupe_events(events)

    for service, events in (incoming or {}).items():
        if not events:
            continue
        merged[service] = dedupe_events([*merged.get(service, []), *events])

    return merged
