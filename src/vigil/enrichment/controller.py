"""Re-enrichment: attach server-side logs to a trace until coverage is met.

Logs arrive in the telemetry backend asynchronously and sometimes late,
so each trace is queried repeatedly with a time window that widens on
every attempt. Results are merged across attempts, and the loop stops
as soon as every expected service has at least one event or the attempt
ceiling is reached. The trace is written back once, after the loop.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Literal, Protocol

from vigil.coverage.inference import (
    actual_services,
    infer_expected_services,
    missing_services,
)
from vigil.errors import TelemetryQueryError
from vigil.models.config import ReenrichConfig
from vigil.models.trace import EnrichmentMetadata, ServiceLogs, TraceArtifact
from vigil.storage.json_store import ArtifactStore
from vigil.telemetry.merge import merge_service_logs

logger = logging.getLogger(__name__)

REENRICH_LOOKBACK = timedelta(minutes=2)
REENRICH_LOOKAHEAD = timedelta(minutes=5)

EnrichmentMode = Literal["initial", "reenrich"]


class LogFetcher(Protocol):
    """Anything that can fetch per-service logs for one trace."""

    @property
    def strict_trace_isolation(self) -> bool: ...

    async def fetch_trace_logs(
        self,
        start: datetime,
        end: datetime,
        run_id: str,
        trace_id: str,
    ) -> ServiceLogs: ...


@dataclass
class TimeWindow:
    start: datetime
    end: datetime


@dataclass
class EnrichResult:
    """Coverage achieved by one enrichment pass."""

    attempts: int
    expected_workers: list[str] = field(default_factory=list)
    actual_workers: list[str] = field(default_factory=list)
    missing_workers: list[str] = field(default_factory=list)


def build_reenrich_window(timestamp: datetime, duration_ms: int) -> TimeWindow:
    """Base query window around a trace's recorded completion time.

    The trace timestamp marks the end of the model call, so the window
    reaches back over the call's duration plus a lookback margin and
    forward by a lookahead margin for late log delivery.
    """
    start = timestamp - timedelta(milliseconds=max(duration_ms, 0)) - REENRICH_LOOKBACK
    end = timestamp + REENRICH_LOOKAHEAD
    return TimeWindow(start=start, end=end)


def build_attempt_window(base: TimeWindow, attempt: int, expand_ms: int) -> TimeWindow:
    """Widen the base window by (attempt - 1) * expand_ms on both ends."""
    expand_by = timedelta(milliseconds=max(0, attempt - 1) * max(0, expand_ms))
    return TimeWindow(start=base.start - expand_by, end=base.end + expand_by)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Enricher:
    """Drives the expanding-window fetch loop for one trace at a time.

    Args:
        fetcher: Log source, normally a TelemetryClient.
        settings: Attempt ceiling, inter-attempt delay and window step.
        sleep: Awaitable sleep taking seconds (injectable for tests).
        clock: Returns the current UTC time (injectable for tests).
    """

    def __init__(
        self,
        fetcher: LogFetcher,
        settings: ReenrichConfig,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._fetcher = fetcher
        self._settings = settings
        self._sleep = sleep
        self._clock = clock

    async def enrich(
        self,
        artifact: TraceArtifact,
        mode: EnrichmentMode = "reenrich",
        max_attempts: int | None = None,
    ) -> EnrichResult:
        """Fetch logs for the artifact and record coverage on it in place.

        Query failures within an attempt count as "no new events". The
        caller is responsible for persisting the mutated artifact.
        """
        expected = infer_expected_services(artifact.llm_response.tool_calls)
        attempts_allowed = max_attempts or self._settings.attempts
        base_window = build_reenrich_window(artifact.timestamp_utc, artifact.duration_ms)

        selected: ServiceLogs = merge_service_logs(artifact.server_logs, None)
        actual = actual_services(selected)
        missing = missing_services(expected, actual)
        attempts_used = 0

        for attempt in range(1, attempts_allowed + 1):
            attempts_used = attempt
            window = build_attempt_window(base_window, attempt, self._settings.window_expand_ms)

            try:
                fetched = await self._fetcher.fetch_trace_logs(
                    window.start, window.end, artifact.run_id, artifact.trace_id
                )
            except TelemetryQueryError as exc:
                logger.warning(
                    "Attempt %d/%d for %s failed: %s",
                    attempt,
                    attempts_allowed,
                    artifact.trace_id,
                    exc,
                )
                fetched = {}

            selected = merge_service_logs(selected, fetched)
            actual = actual_services(selected)
            missing = missing_services(expected, actual)
            logger.debug(
                "Attempt %d/%d for %s: actual=%s missing=%s",
                attempt,
                attempts_allowed,
                artifact.trace_id,
                actual,
                missing,
            )

            if not missing:
                break
            if attempt < attempts_allowed:
                await self._sleep(self._settings.delay_ms / 1000)

        now = self._clock()
        stamp = now.isoformat()
        if selected:
            artifact.server_logs = selected
            artifact.notes.append(
                f"Enriched worker logs ({mode}) at {stamp}: "
                f"{len(selected)} workers, attempts={attempts_used}."
            )
        else:
            artifact.notes.append(
                f"Enrichment ({mode}) found no worker logs at {stamp} (attempts={attempts_used})."
            )
        artifact.notes.append(
            f"Coverage expected=[{','.join(expected)}] "
            f"actual=[{','.join(actual)}] missing=[{','.join(missing)}]"
        )

        artifact.enrichment = EnrichmentMetadata(
            mode=mode,
            attempts=attempts_used,
            strict_trace_isolation=self._fetcher.strict_trace_isolation,
            expected_workers=expected,
            actual_workers=actual,
            missing_workers=missing,
            generated_at=now,
        )

        return EnrichResult(
            attempts=attempts_used,
            expected_workers=expected,
            actual_workers=actual,
            missing_workers=missing,
        )


async def enrich_stored_trace(
    store: ArtifactStore,
    enricher: Enricher,
    run_id: str,
    trace_id: str,
) -> EnrichResult:
    """Load a persisted trace, re-enrich it, and write it back once.

    Raises:
        ArtifactNotFoundError: If the trace artifact does not exist.
    """
    artifact = store.get(run_id, trace_id)
    result = await enricher.enrich(artifact, mode="reenrich")
    store.put(run_id, artifact)
    return result
