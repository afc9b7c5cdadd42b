"""Normalize raw telemetry API events into canonical LogEvents.

Raw events have three loosely-typed blocks: ``$metadata`` (platform
fields such as id, message, traceId), ``$workers`` (execution info such
as wall time and response status) and ``source`` (the producer's own
structured fields). Nothing here raises on malformed input: a field of
the wrong type is treated as absent.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from vigil.models.trace import LogEvent

# LogEvent field -> source key, copied through when the value is a string
_SOURCE_STRING_FIELDS: dict[str, str] = {
    "phase": "phase",
    "run_id": "run_id",
    "correlation_id": "correlation_id",
    "tool": "tool",
    "sport": "sport",
    "league_id": "league_id",
    "path": "path",
    "method": "method",
    "outcome": "outcome",
}


class RawTelemetryEvent(BaseModel):
    """Boundary shape of one event returned by the telemetry query API.

    Every block is optional; a block that is not a mapping becomes None.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    timestamp: Any = None
    metadata: dict[str, Any] | None = Field(default=None, alias="$metadata")
    workers: dict[str, Any] | None = Field(default=None, alias="$workers")
    source: dict[str, Any] | None = None

    @field_validator("metadata", "workers", "source", mode="before")
    @classmethod
    def _mapping_or_none(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else None

    @classmethod
    def from_payload(cls, payload: Any) -> RawTelemetryEvent:
        if not isinstance(payload, dict):
            return cls()
        return cls.model_validate(payload)

    @property
    def event_id(self) -> str | None:
        return _string(self.metadata, "id")

    @property
    def message(self) -> str | None:
        return _string(self.metadata, "message") or _string(self.source, "message")

    @property
    def request_id(self) -> str | None:
        return _string(self.metadata, "requestId") or _string(self.source, "request_id")


def _string(block: dict[str, Any] | None, key: str) -> str | None:
    if not block:
        return None
    value = block.get(key)
    return value if isinstance(value, str) else None


def _number(value: Any) -> float | None:
    # bool is an int subclass; never treat it as a number
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        finite = math.isfinite(value)
    except OverflowError:
        return None
    return value if finite else None


def _response_status(workers: dict[str, Any] | None) -> int | None:
    if not workers:
        return None
    event = workers.get("event")
    if not isinstance(event, dict):
        return None
    response = event.get("response")
    if not isinstance(response, dict):
        return None
    status = _number(response.get("status"))
    return int(status) if status is not None else None


def _parse_status(value: Any) -> tuple[int | None, str | None]:
    """Return (numeric status, raw status text) for a source status value."""
    number = _number(value)
    if number is not None:
        return int(number), None
    if isinstance(value, str):
        try:
            return int(float(value.strip())), None
        except (ValueError, OverflowError):
            return None, value
    return None, None


def _timestamp(value: Any, now: datetime | None) -> datetime:
    millis = _number(value)
    if millis is not None:
        try:
            return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            pass
    return now or datetime.now(timezone.utc)


def resolve_trace_id(raw: RawTelemetryEvent) -> str | None:
    """Structured trace id: metadata traceId first, then source trace_id."""
    return _string(raw.metadata, "traceId") or _string(raw.source, "trace_id")


def normalize_event(payload: Any, now: datetime | None = None) -> LogEvent:
    """Map one raw telemetry event onto a LogEvent.

    Args:
        payload: Raw event dict (or an already-parsed RawTelemetryEvent).
        now: Timestamp used when the event carries none. Defaults to now.

    Returns:
        The canonical LogEvent.
    """
    if isinstance(payload, RawTelemetryEvent):
        raw = payload
    else:
        raw = RawTelemetryEvent.from_payload(payload)
    source = raw.source

    status = _response_status(raw.workers)
    status_text: str | None = None
    if status is None and source:
        status, status_text = _parse_status(source.get("status"))
    explicit_text = _string(source, "status_text")
    if explicit_text is not None:
        status_text = explicit_text

    fields: dict[str, Any] = {
        name: _string(source, key) for name, key in _SOURCE_STRING_FIELDS.items()
    }
    duration = _number(source.get("duration_ms")) if source else None
    wall_time = _number((raw.workers or {}).get("wallTimeMs"))

    return LogEvent(
        timestamp=_timestamp(raw.timestamp, now),
        status=status,
        wall_time_ms=wall_time if wall_time is not None else 0,
        message=raw.message,
        service=_string(source, "service") or _string(raw.metadata, "service"),
        trace_id=resolve_trace_id(raw),
        request_id=raw.request_id,
        trigger=_string(raw.metadata, "trigger") or _string(source, "trigger"),
        status_text=status_text,
        duration_ms=duration,
        **fields,
    )
