"""Detect log events that belong to another trace or run.

Some producers only write raw substrings such as ``trace_id=...`` or
``eval=<run id>`` into the message instead of tagging the structured
fields, so identifiers are also recovered from message text. The run id
pattern relies on run ids ending in ``Z`` and is a heuristic.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from vigil.models.trace import LogEvent

_TRACE_ID_PATTERN = re.compile(r'trace_id(?:=|":")([A-Za-z0-9_.-]+)')
_RUN_ID_PATTERN = re.compile(r"eval=([A-Za-z0-9:T.-]+Z)")


def parse_trace_ids_from_message(message: str | None) -> list[str]:
    if not message:
        return []
    return _TRACE_ID_PATTERN.findall(message)


def parse_run_ids_from_message(message: str | None) -> list[str]:
    if not message:
        return []
    return _RUN_ID_PATTERN.findall(message)


def trace_id_candidates(event: LogEvent) -> set[str]:
    """Structured trace id plus any trace ids mentioned in the message."""
    candidates = set(parse_trace_ids_from_message(event.message))
    if event.trace_id:
        candidates.add(event.trace_id)
    return candidates


def run_id_candidates(event: LogEvent) -> set[str]:
    """Structured run id plus any ``eval=`` run ids in the message."""
    candidates = set(parse_run_ids_from_message(event.message))
    if event.run_id:
        candidates.add(event.run_id)
    return candidates


def is_mismatch(candidates: set[str], expected: str) -> bool:
    """True when there is at least one candidate and none equals expected."""
    return bool(candidates) and expected not in candidates


@dataclass
class IsolationReport:
    """Mismatch counts for one set of log events."""

    trace_mismatch_count: int = 0
    run_mismatch_count: int = 0

    @property
    def contaminated(self) -> bool:
        return self.trace_mismatch_count > 0 or self.run_mismatch_count > 0


def analyze_isolation(
    events: Iterable[LogEvent],
    expected_trace_id: str,
    expected_run_id: str,
) -> IsolationReport:
    """Count events whose trace or run identity disagrees with the owner."""
    report = IsolationReport()
    for event in events:
        if is_mismatch(trace_id_candidates(event), expected_trace_id):
            report.trace_mismatch_count += 1
        if is_mismatch(run_id_candidates(event), expected_run_id):
            report.run_mismatch_count += 1
    return report
