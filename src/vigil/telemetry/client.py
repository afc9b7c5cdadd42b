"""Telemetry query client for worker observability logs.

Fetches server-side log events for one trace from the Workers
Observability telemetry query API:
POST /accounts/{account_id}/workers/observability/telemetry/query

Each service is queried with a structured trace-id filter plus one
message-substring query per trace "needle", because some producers only
had their unstructured message indexed at ingestion time. Results are
deduplicated, normalized and then strictly filtered to the owning trace
and run. Services are queried concurrently and a failing service only
costs its own events.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from vigil.coverage.inference import INGRESS_SERVICE, SERVICE_NAMES
from vigil.errors import TelemetryConfigError, TelemetryQueryError
from vigil.models.config import TelemetryConfig
from vigil.models.trace import LogEvent, ServiceLogs
from vigil.telemetry.isolation import (
    parse_trace_ids_from_message,
    run_id_candidates,
    trace_id_candidates,
)
from vigil.telemetry.merge import dedupe_events
from vigil.telemetry.normalizer import RawTelemetryEvent, normalize_event

logger = logging.getLogger(__name__)

DATASET = "cloudflare-workers"
TRACE_ID_FIELD = "$metadata.traceId"
MESSAGE_FIELD = "$metadata.message"
SERVICE_FIELD = "$metadata.service"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class QueryFilter:
    """One telemetry query filter clause."""

    key: str
    operation: str
    type: str
    value: str


def to_epoch_ms(moment: datetime) -> int:
    """Convert an aware datetime to integer epoch milliseconds."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - _EPOCH) // timedelta(milliseconds=1)


def build_trace_needles(trace_id: str) -> list[str]:
    """Substrings identifying a trace in JSON and key=value message forms."""
    return [
        f'"trace_id":"{trace_id}"',
        f"trace_id={trace_id}",
        trace_id,
    ]


def build_run_needle(run_id: str) -> str:
    return f"eval={run_id}"


def dedupe_raw_events(events: Sequence[RawTelemetryEvent]) -> list[RawTelemetryEvent]:
    """Drop repeated raw events by provider id, else timestamp/request/message."""
    seen: set[str] = set()
    deduped: list[RawTelemetryEvent] = []
    for event in events:
        if event.event_id:
            key = f"id:{event.event_id}"
        else:
            timestamp = "" if event.timestamp is None else str(event.timestamp)
            key = f"fallback:{timestamp}|{event.request_id or ''}|{event.message or ''}"
        if key in seen:
            continue
        seen.add(key)
        deduped.append(event)
    return deduped


def resolved_trace_id(event: LogEvent) -> str | None:
    """Structured trace id, else the first trace id found in the message."""
    if event.trace_id:
        return event.trace_id
    from_message = parse_trace_ids_from_message(event.message)
    return from_message[0] if from_message else None


def matches_trace_strict(event: LogEvent, run_id: str, trace_id: str) -> bool:
    """Trace id must equal the target; every run id seen must equal the run."""
    if resolved_trace_id(event) != trace_id:
        return False
    return all(candidate == run_id for candidate in run_id_candidates(event))


def matches_run_fallback(event: LogEvent, run_id: str, trace_id: str) -> bool:
    """Run-tagged event with no trace id, or one that names the target trace."""
    runs = run_id_candidates(event)
    if not runs or any(candidate != run_id for candidate in runs):
        return False
    traces = trace_id_candidates(event)
    return not traces or trace_id in traces


class TelemetryClient:
    """Async client for per-trace log queries against the telemetry API.

    Owns its httpx.AsyncClient unless one is injected. Use as an async
    context manager, or call aclose() when done.

    Raises:
        TelemetryConfigError: If account id or API token is missing.
    """

    def __init__(
        self,
        settings: TelemetryConfig,
        http_client: httpx.AsyncClient | None = None,
        services: Sequence[str] = SERVICE_NAMES,
    ) -> None:
        if not settings.is_configured or settings.api_token is None:
            raise TelemetryConfigError(
                "CLOUDFLARE_ACCOUNT_ID and CLOUDFLARE_API_TOKEN are required"
            )
        self._settings = settings
        self._api_token = settings.api_token.get_secret_value()
        self._services = tuple(services)
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=settings.request_timeout_s)

    async def __aenter__(self) -> TelemetryClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    @property
    def services(self) -> tuple[str, ...]:
        return self._services

    @property
    def strict_trace_isolation(self) -> bool:
        return not self._settings.allow_run_fallback

    @property
    def query_url(self) -> str:
        base = self._settings.api_base.rstrip("/")
        return (
            f"{base}/accounts/{self._settings.account_id}"
            "/workers/observability/telemetry/query"
        )

    def build_query_body(
        self,
        service: str,
        start: datetime,
        end: datetime,
        extra_filters: Sequence[QueryFilter] = (),
    ) -> dict[str, Any]:
        """Build the query payload, padding the window on both ends."""
        padding = self._settings.time_padding_ms
        filters = [QueryFilter(SERVICE_FIELD, "eq", "string", service), *extra_filters]
        return {
            "queryId": f"vigil-{service}",
            "view": "events",
            "limit": self._settings.query_limit,
            "parameters": {
                "datasets": [DATASET],
                "filters": [asdict(f) for f in filters],
                "calculations": [],
                "groupBys": [],
            },
            "timeframe": {
                "from": to_epoch_ms(start) - padding,
                "to": to_epoch_ms(end) + padding,
            },
        }

    async def query_service(
        self,
        service: str,
        start: datetime,
        end: datetime,
        extra_filters: Sequence[QueryFilter] = (),
    ) -> list[RawTelemetryEvent]:
        """Run one telemetry query and return its raw events.

        Raises:
            TelemetryQueryError: On transport errors, timeouts, non-2xx
                responses, or an unsuccessful API result.
        """
        body = self.build_query_body(service, start, end, extra_filters)
        headers = {
            "Authorization": f"Bearer {self._api_token}",
            "Content-Type": "application/json",
        }

        try:
            response = await self._http.post(
                self.query_url,
                json=body,
                headers=headers,
                timeout=self._settings.request_timeout_s,
            )
        except httpx.HTTPError as exc:
            raise TelemetryQueryError(
                f"Telemetry request failed for {service}: {exc!r}", service=service
            ) from exc

        if not response.is_success:
            raise TelemetryQueryError(
                f"Telemetry API {response.status_code}: {response.text or 'no body'}",
                service=service,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise TelemetryQueryError(
                f"Telemetry API returned invalid JSON for {service}", service=service
            ) from exc

        if not isinstance(data, dict) or not data.get("success"):
            errors = data.get("errors") if isinstance(data, dict) else None
            detail = ", ".join(
                str(err.get("message", err)) if isinstance(err, dict) else str(err)
                for err in (errors or [])
            )
            raise TelemetryQueryError(
                f"Telemetry query failed for {service}: {detail or 'unknown error'}",
                service=service,
                status_code=response.status_code,
            )

        result = data.get("result")
        events_block = result.get("events") if isinstance(result, dict) else None
        raw_events = events_block.get("events") if isinstance(events_block, dict) else None
        if not isinstance(raw_events, list):
            return []
        return [RawTelemetryEvent.from_payload(item) for item in raw_events]

    async def _gather_queries(
        self,
        service: str,
        start: datetime,
        end: datetime,
        filter_sets: Sequence[Sequence[QueryFilter]],
    ) -> list[RawTelemetryEvent]:
        """Run several queries for one service; fail only if all of them fail."""
        results = await asyncio.gather(
            *(self.query_service(service, start, end, filters) for filters in filter_sets),
            return_exceptions=True,
        )
        events: list[RawTelemetryEvent] = []
        failures: list[BaseException] = []
        for result in results:
            if isinstance(result, Exception):
                failures.append(result)
            elif isinstance(result, BaseException):
                raise result
            else:
                events.extend(result)

        if failures and len(failures) == len(results):
            raise failures[0]
        for failure in failures:
            logger.warning("Partial telemetry query failure for %s: %s", service, failure)
        return events

    async def query_service_for_trace(
        self,
        service: str,
        start: datetime,
        end: datetime,
        run_id: str,
        trace_id: str,
    ) -> list[LogEvent]:
        """Fetch, dedupe, normalize and isolate one service's events for a trace."""
        filter_sets: list[list[QueryFilter]] = [
            [QueryFilter(TRACE_ID_FIELD, "eq", "string", trace_id)],
        ]
        filter_sets.extend(
            [QueryFilter(MESSAGE_FIELD, "includes", "string", needle)]
            for needle in build_trace_needles(trace_id)
        )
        raw_events = dedupe_raw_events(
            await self._gather_queries(service, start, end, filter_sets)
        )
        strict = [
            event
            for event in (normalize_event(raw) for raw in raw_events)
            if matches_trace_strict(event, run_id, trace_id)
        ]

        if not self._settings.allow_run_fallback or service != INGRESS_SERVICE:
            return strict

        run_filters = [QueryFilter(MESSAGE_FIELD, "includes", "string", build_run_needle(run_id))]
        try:
            fallback_raw = dedupe_raw_events(
                await self._gather_queries(service, start, end, [run_filters])
            )
        except TelemetryQueryError as exc:
            logger.warning("Run-level fallback query failed for %s: %s", service, exc)
            return strict
        fallback = [
            event
            for event in (normalize_event(raw) for raw in fallback_raw)
            if matches_run_fallback(event, run_id, trace_id)
        ]
        return dedupe_events([*strict, *fallback])

    async def fetch_trace_logs(
        self,
        start: datetime,
        end: datetime,
        run_id: str,
        trace_id: str,
    ) -> ServiceLogs:
        """Fetch logs for a trace from every service concurrently.

        A service whose queries fail contributes nothing; only services
        with at least one matching event appear in the result.
        """
        results = await asyncio.gather(
            *(
                self.query_service_for_trace(service, start, end, run_id, trace_id)
                for service in self._services
            ),
            return_exceptions=True,
        )

        logs: ServiceLogs = {}
        for service, result in zip(self._services, results):
            if isinstance(result, Exception):
                logger.warning("Telemetry query failed for %s (%s): %s", service, trace_id, result)
                continue
            if isinstance(result, BaseException):
                raise result
            if result:
                logs[service] = result
        logger.debug(
            "Fetched logs for %s: %s",
            trace_id,
            {service: len(events) for service, events in logs.items()},
        )
        return logs
