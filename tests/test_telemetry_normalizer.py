"""Tests for vigil.telemetry.normalizer - raw event normalization."""

from __future__ import annotations

import json
from datetime import datetime, timezone

from vigil.telemetry.normalizer import RawTelemetryEvent, normalize_event, resolve_trace_id

FIXED_NOW = datetime(2026, 2, 7, 12, 0, 0, tzinfo=timezone.utc)


def _full_event() -> dict:
    return {
        "timestamp": 1770465600000,
        "$metadata": {
            "id": "evt-1",
            "message": "tool call trace_id=trace_a_000",
            "requestId": "req-1",
            "traceId": "trace_a_000",
            "service": "meta-service",
            "trigger": "POST /mcp",
        },
        "$workers": {
            "wallTimeMs": 42,
            "event": {"response": {"status": 200}},
        },
        "source": {
            "service": "fantasy-mcp",
            "phase": "tool_end",
            "run_id": "2026-02-07T12-00-00Z",
            "tool": "get_roster",
            "sport": "football",
            "league_id": "123",
            "path": "/mcp",
            "method": "POST",
            "outcome": "ok",
            "duration_ms": 12.5,
        },
    }


class TestNormalizeEvent:
    """Tests for normalize_event field mapping."""

    def test_full_event(self):
        event = normalize_event(_full_event(), now=FIXED_NOW)
        assert event.timestamp == datetime(2026, 2, 7, 12, 0, 0, tzinfo=timezone.utc)
        assert event.status == 200
        assert event.wall_time_ms == 42
        assert event.message == "tool call trace_id=trace_a_000"
        assert event.service == "fantasy-mcp"
        assert event.trace_id == "trace_a_000"
        assert event.request_id == "req-1"
        assert event.trigger == "POST /mcp"
        assert event.phase == "tool_end"
        assert event.run_id == "2026-02-07T12-00-00Z"
        assert event.tool == "get_roster"
        assert event.league_id == "123"
        assert event.duration_ms == 12.5

    def test_empty_payload_defaults(self):
        event = normalize_event({}, now=FIXED_NOW)
        assert event.timestamp == FIXED_NOW
        assert event.status is None
        assert event.wall_time_ms == 0
        assert event.message is None
        assert event.service is None

    def test_non_dict_payload(self):
        event = normalize_event("garbage", now=FIXED_NOW)
        assert event.timestamp == FIXED_NOW
        assert event.trace_id is None

    def test_non_mapping_blocks_ignored(self):
        event = normalize_event(
            {"$metadata": "oops", "$workers": [1], "source": 5}, now=FIXED_NOW
        )
        assert event.message is None
        assert event.wall_time_ms == 0

    def test_service_falls_back_to_metadata(self):
        event = normalize_event({"$metadata": {"service": "auth-worker"}}, now=FIXED_NOW)
        assert event.service == "auth-worker"

    def test_message_falls_back_to_source(self):
        event = normalize_event({"source": {"message": "hello"}}, now=FIXED_NOW)
        assert event.message == "hello"

    def test_wrong_typed_fields_are_absent(self):
        event = normalize_event(
            {"source": {"tool": 7, "duration_ms": "slow", "phase": None}}, now=FIXED_NOW
        )
        assert event.tool is None
        assert event.duration_ms is None
        assert event.phase is None

    def test_bool_is_not_a_number(self):
        event = normalize_event(
            {"timestamp": True, "$workers": {"wallTimeMs": True}}, now=FIXED_NOW
        )
        assert event.timestamp == FIXED_NOW
        assert event.wall_time_ms == 0


class TestStatusParsing:
    """Tests for status and status_text resolution."""

    def test_source_numeric_status(self):
        event = normalize_event({"source": {"status": 404}}, now=FIXED_NOW)
        assert event.status == 404
        assert event.status_text is None

    def test_source_numeric_string_status(self):
        event = normalize_event({"source": {"status": "503"}}, now=FIXED_NOW)
        assert event.status == 503

    def test_source_text_status(self):
        event = normalize_event({"source": {"status": "error"}}, now=FIXED_NOW)
        assert event.status is None
        assert event.status_text == "error"

    def test_response_status_wins_over_source(self):
        payload = {
            "$workers": {"event": {"response": {"status": 500}}},
            "source": {"status": 200},
        }
        assert normalize_event(payload, now=FIXED_NOW).status == 500

    def test_explicit_status_text_wins(self):
        payload = {"source": {"status": "error", "status_text": "Upstream timeout"}}
        event = normalize_event(payload, now=FIXED_NOW)
        assert event.status_text == "Upstream timeout"

    def test_infinite_string_status_kept_as_text(self):
        event = normalize_event({"source": {"status": "inf"}}, now=FIXED_NOW)
        assert event.status is None
        assert event.status_text == "inf"


HUGE = "9" * 400


class TestOversizedNumbers:
    """JSON integers too large for a float are dropped, not raised."""

    def test_huge_source_status(self):
        payload = json.loads('{"source": {"status": ' + HUGE + "}}")
        event = normalize_event(payload, now=FIXED_NOW)
        assert event.status is None
        assert event.status_text is None

    def test_huge_response_status(self):
        payload = json.loads('{"$workers": {"event": {"response": {"status": ' + HUGE + "}}}}")
        assert normalize_event(payload, now=FIXED_NOW).status is None

    def test_huge_duration(self):
        payload = json.loads('{"source": {"duration_ms": ' + HUGE + ', "tool": "get_roster"}}')
        event = normalize_event(payload, now=FIXED_NOW)
        assert event.duration_ms is None
        assert event.tool == "get_roster"

    def test_huge_wall_time(self):
        payload = json.loads('{"$workers": {"wallTimeMs": ' + HUGE + "}}")
        assert normalize_event(payload, now=FIXED_NOW).wall_time_ms == 0

    def test_huge_timestamp_falls_back_to_now(self):
        payload = json.loads('{"timestamp": ' + HUGE + ', "$metadata": {"message": "ok"}}')
        event = normalize_event(payload, now=FIXED_NOW)
        assert event.timestamp == FIXED_NOW
        assert event.message == "ok"


class TestTraceIdResolution:
    """Tests for resolve_trace_id and RawTelemetryEvent accessors."""

    def test_metadata_trace_id_first(self):
        raw = RawTelemetryEvent.from_payload(
            {"$metadata": {"traceId": "a"}, "source": {"trace_id": "b"}}
        )
        assert resolve_trace_id(raw) == "a"

    def test_source_trace_id_fallback(self):
        raw = RawTelemetryEvent.from_payload({"source": {"trace_id": "b"}})
        assert resolve_trace_id(raw) == "b"

    def test_request_id_from_source(self):
        raw = RawTelemetryEvent.from_payload({"source": {"request_id": "r-9"}})
        assert raw.request_id == "r-9"

    def test_accepts_parsed_event(self):
        raw = RawTelemetryEvent.from_payload(_full_event())
        assert normalize_event(raw, now=FIXED_NOW).trace_id == "trace_a_000"
