"""Tests for vigil.telemetry.client - telemetry query client."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

import httpx
import pytest

from vigil.errors import TelemetryConfigError, TelemetryQueryError
from vigil.models.config import TelemetryConfig
from vigil.models.trace import LogEvent
from vigil.telemetry.client import (
    QueryFilter,
    TelemetryClient,
    build_run_needle,
    build_trace_needles,
    dedupe_raw_events,
    matches_run_fallback,
    matches_trace_strict,
    to_epoch_ms,
)
from vigil.telemetry.normalizer import RawTelemetryEvent

RUN = "2026-02-07T12-00-00Z"
TRACE = "trace_roster_000_abcd1234"
START = datetime(2026, 2, 7, 12, 0, 0, tzinfo=timezone.utc)
END = datetime(2026, 2, 7, 12, 5, 0, tzinfo=timezone.utc)


def _settings(**overrides: Any) -> TelemetryConfig:
    values: dict[str, Any] = {"account_id": "acct", "api_token": "tok"}
    values.update(overrides)
    return TelemetryConfig(**values)


def _raw(
    event_id: str | None = None,
    service: str = "fantasy-mcp",
    trace_id: str | None = TRACE,
    run_id: str | None = RUN,
    message: str = "tool call",
    timestamp: int = 1770465600000,
) -> dict[str, Any]:
    metadata: dict[str, Any] = {"message": message, "service": service}
    if event_id:
        metadata["id"] = event_id
    if trace_id:
        metadata["traceId"] = trace_id
    source: dict[str, Any] = {"service": service}
    if run_id:
        source["run_id"] = run_id
    return {"timestamp": timestamp, "$metadata": metadata, "source": source}


def _ok(events: list[dict[str, Any]]) -> httpx.Response:
    return httpx.Response(200, json={"success": True, "result": {"events": {"events": events}}})


def _filters(request: httpx.Request) -> list[dict[str, Any]]:
    return json.loads(request.content)["parameters"]["filters"]


def _service_of(request: httpx.Request) -> str:
    return _filters(request)[0]["value"]


class _Recorder:
    """MockTransport handler that routes by service and records requests."""

    def __init__(self, by_service: dict[str, Any]) -> None:
        self.by_service = by_service
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.by_service.get(_service_of(request))
        if handler is None:
            return _ok([])
        if callable(handler):
            return handler(request)
        return _ok(handler)


def _client(handler, **overrides: Any) -> TelemetryClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TelemetryClient(_settings(**overrides), http_client=http)


class TestHelpers:
    """Tests for module-level helpers."""

    def test_to_epoch_ms(self):
        assert to_epoch_ms(START) == 1770465600000

    def test_naive_datetime_treated_as_utc(self):
        assert to_epoch_ms(START.replace(tzinfo=None)) == 1770465600000

    def test_trace_needles(self):
        assert build_trace_needles("t1") == ['"trace_id":"t1"', "trace_id=t1", "t1"]

    def test_run_needle(self):
        assert build_run_needle(RUN) == f"eval={RUN}"

    def test_dedupe_by_id(self):
        events = [RawTelemetryEvent.from_payload(_raw(event_id="a")) for _ in range(3)]
        assert len(dedupe_raw_events(events)) == 1

    def test_dedupe_fallback_key(self):
        a = RawTelemetryEvent.from_payload(_raw(message="one"))
        b = RawTelemetryEvent.from_payload(_raw(message="one"))
        c = RawTelemetryEvent.from_payload(_raw(message="two"))
        assert dedupe_raw_events([a, b, c]) == [a, c]


class TestMatching:
    """Tests for strict and run-fallback event filters."""

    def _event(self, **kwargs: Any) -> LogEvent:
        return LogEvent(timestamp=START, **kwargs)

    def test_strict_structured_match(self):
        assert matches_trace_strict(self._event(trace_id=TRACE, run_id=RUN), RUN, TRACE)

    def test_strict_message_match(self):
        event = self._event(message=f"trace_id={TRACE}")
        assert matches_trace_strict(event, RUN, TRACE)

    def test_strict_rejects_other_trace(self):
        assert not matches_trace_strict(self._event(trace_id="other"), RUN, TRACE)

    def test_strict_rejects_other_run(self):
        event = self._event(trace_id=TRACE, run_id="2026-01-01T00-00-00Z")
        assert not matches_trace_strict(event, RUN, TRACE)

    def test_strict_rejects_untagged(self):
        assert not matches_trace_strict(self._event(message="hello"), RUN, TRACE)

    def test_fallback_accepts_run_without_trace(self):
        assert matches_run_fallback(self._event(message=f"eval={RUN}"), RUN, TRACE)

    def test_fallback_rejects_other_trace(self):
        event = self._event(run_id=RUN, trace_id="other")
        assert not matches_run_fallback(event, RUN, TRACE)

    def test_fallback_requires_run(self):
        assert not matches_run_fallback(self._event(), RUN, TRACE)


class TestClientConstruction:
    """Tests for configuration checks."""

    def test_missing_credentials(self):
        with pytest.raises(TelemetryConfigError):
            TelemetryClient(TelemetryConfig())

    def test_missing_token(self):
        with pytest.raises(TelemetryConfigError):
            TelemetryClient(TelemetryConfig(account_id="acct"))

    def test_empty_token(self):
        with pytest.raises(TelemetryConfigError):
            TelemetryClient(_settings(api_token=""))

    def test_query_url(self):
        client = TelemetryClient(_settings(api_base="https://example.test/v4/"))
        assert client.query_url == (
            "https://example.test/v4/accounts/acct/workers/observability/telemetry/query"
        )

    def test_strict_flag(self):
        assert TelemetryClient(_settings()).strict_trace_isolation is True
        assert (
            TelemetryClient(_settings(allow_run_fallback=True)).strict_trace_isolation
            is False
        )


class TestQueryBody:
    """Tests for build_query_body."""

    def test_body_shape(self):
        client = TelemetryClient(_settings())
        body = client.build_query_body(
            "espn-client", START, END, [QueryFilter("$metadata.traceId", "eq", "string", TRACE)]
        )
        assert body["queryId"] == "vigil-espn-client"
        assert body["view"] == "events"
        assert body["limit"] == 200
        assert body["parameters"]["datasets"] == ["cloudflare-workers"]
        assert body["parameters"]["filters"] == [
            {"key": "$metadata.service", "operation": "eq", "type": "string", "value": "espn-client"},
            {"key": "$metadata.traceId", "operation": "eq", "type": "string", "value": TRACE},
        ]

    def test_timeframe_padded(self):
        client = TelemetryClient(_settings())
        body = client.build_query_body("fantasy-mcp", START, END)
        assert body["timeframe"] == {
            "from": to_epoch_ms(START) - 30_000,
            "to": to_epoch_ms(END) + 30_000,
        }


class TestQueryService:
    """Tests for single query error handling."""

    @pytest.mark.asyncio
    async def test_sends_bearer_token(self):
        recorder = _Recorder({})
        async with _client(recorder) as client:
            await client.query_service("fantasy-mcp", START, END)
        assert recorder.requests[0].headers["Authorization"] == "Bearer tok"

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        async with _client(lambda r: httpx.Response(500, text="boom")) as client:
            with pytest.raises(TelemetryQueryError) as info:
                await client.query_service("fantasy-mcp", START, END)
        assert info.value.status_code == 500
        assert info.value.service == "fantasy-mcp"

    @pytest.mark.asyncio
    async def test_unsuccessful_result(self):
        def handler(request):
            return httpx.Response(200, json={"success": False, "errors": [{"message": "bad"}]})

        async with _client(handler) as client:
            with pytest.raises(TelemetryQueryError, match="bad"):
                await client.query_service("fantasy-mcp", START, END)

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        async with _client(lambda r: httpx.Response(200, text="not json")) as client:
            with pytest.raises(TelemetryQueryError):
                await client.query_service("fantasy-mcp", START, END)

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(TelemetryQueryError):
                await client.query_service("fantasy-mcp", START, END)

    @pytest.mark.asyncio
    async def test_missing_events_block(self):
        async with _client(lambda r: httpx.Response(200, json={"success": True})) as client:
            assert await client.query_service("fantasy-mcp", START, END) == []


class TestFetchTraceLogs:
    """Tests for fan-out across services."""

    @pytest.mark.asyncio
    async def test_queries_every_service_with_needles(self):
        recorder = _Recorder({})
        async with _client(recorder) as client:
            await client.fetch_trace_logs(START, END, RUN, TRACE)

        # one structured query plus three needle queries per service
        assert len(recorder.requests) == 5 * 4
        ingress = [r for r in recorder.requests if _service_of(r) == "fantasy-mcp"]
        extra = sorted((f["key"], f["operation"], f["value"]) for r in ingress for f in _filters(r)[1:])
        assert extra == sorted(
            [
                ("$metadata.traceId", "eq", TRACE),
                ("$metadata.message", "includes", f'"trace_id":"{TRACE}"'),
                ("$metadata.message", "includes", f"trace_id={TRACE}"),
                ("$metadata.message", "includes", TRACE),
            ]
        )

    @pytest.mark.asyncio
    async def test_strict_filter_and_dedupe(self):
        recorder = _Recorder(
            {
                "fantasy-mcp": [
                    _raw(event_id="e1"),
                    _raw(event_id="e2", trace_id="trace_other_001"),
                    _raw(event_id="e3", run_id="2026-01-01T00-00-00Z"),
                ],
                "espn-client": [_raw(event_id="e4", service="espn-client")],
            }
        )
        async with _client(recorder) as client:
            logs = await client.fetch_trace_logs(START, END, RUN, TRACE)

        assert sorted(logs) == ["espn-client", "fantasy-mcp"]
        # e1 is returned by all four sub-queries but kept once
        assert len(logs["fantasy-mcp"]) == 1
        assert logs["fantasy-mcp"][0].trace_id == TRACE

    @pytest.mark.asyncio
    async def test_failing_service_does_not_sink_others(self):
        recorder = _Recorder(
            {
                "fantasy-mcp": [_raw(event_id="e1")],
                "auth-worker": lambda r: httpx.Response(503, text="down"),
            }
        )
        async with _client(recorder) as client:
            logs = await client.fetch_trace_logs(START, END, RUN, TRACE)
        assert list(logs) == ["fantasy-mcp"]

    @pytest.mark.asyncio
    async def test_partial_sub_query_failure_keeps_events(self):
        def ingress(request):
            if _filters(request)[1]["key"] == "$metadata.traceId":
                return httpx.Response(500, text="boom")
            return _ok([_raw(event_id="e1")])

        async with _client(_Recorder({"fantasy-mcp": ingress})) as client:
            logs = await client.fetch_trace_logs(START, END, RUN, TRACE)
        assert len(logs["fantasy-mcp"]) == 1

    @pytest.mark.asyncio
    async def test_run_fallback_disabled_by_default(self):
        untagged = _raw(event_id="r1", trace_id=None, message=f"eval={RUN} tool=x")
        recorder = _Recorder({"fantasy-mcp": [untagged]})
        async with _client(recorder) as client:
            logs = await client.fetch_trace_logs(START, END, RUN, TRACE)
        assert logs == {}
        assert all("eval=" not in str(_filters(r)) for r in recorder.requests)

    @pytest.mark.asyncio
    async def test_run_fallback_for_ingress(self):
        untagged = _raw(event_id="r1", trace_id=None, message=f"eval={RUN} tool=x")
        foreign = _raw(event_id="r2", trace_id="trace_other_001", message=f"eval={RUN}")

        def ingress(request):
            if _filters(request)[1]["value"] == f"eval={RUN}":
                return _ok([untagged, foreign])
            return _ok([_raw(event_id="e1")])

        recorder = _Recorder({"fantasy-mcp": ingress})
        async with _client(recorder, allow_run_fallback=True) as client:
            logs = await client.fetch_trace_logs(START, END, RUN, TRACE)

        messages = sorted(e.message for e in logs["fantasy-mcp"])
        assert messages == [f"eval={RUN} tool=x", "tool call"]
        fallback_requests = [
            r for r in recorder.requests if _filters(r)[1]["value"] == f"eval={RUN}"
        ]
        assert [_service_of(r) for r in fallback_requests] == ["fantasy-mcp"]
