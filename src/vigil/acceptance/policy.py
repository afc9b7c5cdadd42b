"""Hybrid acceptance policy over a run's trace assessments.

Per trace, missing ingress or auth coverage and any isolation breach
are hard failures, while missing platform-client coverage is only a
warning. At run level, errored scenarios fail the run, and downstream
warnings escalate to a failure once they stop looking isolated: at
least ESCALATION_MIN_TRACES traces, or more than ESCALATION_RATIO of
all traces.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone

from vigil.coverage.inference import (
    AUTH_SERVICE,
    INGRESS_SERVICE,
    actual_services,
    infer_expected_services,
    missing_services,
)
from vigil.models.acceptance import (
    AcceptanceSummary,
    AcceptanceTotals,
    CompletionCounts,
    FinalStatus,
    PolicyReason,
    TraceAssessment,
)
from vigil.models.run import RunSummary
from vigil.models.trace import TraceArtifact
from vigil.storage.json_store import JsonArtifactStore
from vigil.telemetry.isolation import analyze_isolation

POLICY_VERSION = "2026-02-07.1"
ESCALATION_MIN_TRACES = 2
ESCALATION_RATIO = 0.2

RUN_HAS_ERRORS = "RUN_HAS_ERRORS"
TRACE_CONTAMINATION = "TRACE_CONTAMINATION"
RUN_ID_MISMATCH = "RUN_ID_MISMATCH"
DOWNSTREAM_COVERAGE_ESCALATION = "DOWNSTREAM_COVERAGE_ESCALATION"

_MISSING_PREFIX = "MISSING_"


def missing_code(service: str) -> str:
    """Reason code for a missing service, e.g. MISSING_ESPN_CLIENT."""
    return _MISSING_PREFIX + service.upper().replace("-", "_")


MISSING_INGRESS = missing_code(INGRESS_SERVICE)
MISSING_AUTH = missing_code(AUTH_SERVICE)


def assess_trace(trace: TraceArtifact) -> TraceAssessment:
    """Compute coverage, isolation and reason codes for one trace.

    The expected set recorded by the last enrichment pass wins over a
    fresh inference, so acceptance judges the same contract enrichment
    aimed for.
    """
    if trace.enrichment is not None:
        expected = sorted(set(trace.enrichment.expected_workers))
    else:
        expected = infer_expected_services(trace.llm_response.tool_calls)
    server_logs = trace.server_logs or {}
    actual = actual_services(server_logs)
    missing = missing_services(expected, actual)

    fail_reasons: set[str] = set()
    warn_reasons: set[str] = set()

    for service in missing:
        if service == INGRESS_SERVICE:
            fail_reasons.add(MISSING_INGRESS)
        elif service == AUTH_SERVICE:
            fail_reasons.add(MISSING_AUTH)
        else:
            warn_reasons.add(missing_code(service))

    total_events = 0
    trace_mismatches = 0
    run_mismatches = 0
    for events in server_logs.values():
        total_events += len(events)
        report = analyze_isolation(events, trace.trace_id, trace.run_id)
        trace_mismatches += report.trace_mismatch_count
        run_mismatches += report.run_mismatch_count

    if trace_mismatches > 0:
        fail_reasons.add(TRACE_CONTAMINATION)
    if run_mismatches > 0:
        fail_reasons.add(RUN_ID_MISMATCH)

    return TraceAssessment(
        trace_id=trace.trace_id,
        scenario_id=trace.scenario_id,
        retry_attempts=trace.enrichment.attempts if trace.enrichment else 0,
        expected_workers=expected,
        actual_workers=actual,
        missing_workers=missing,
        total_events=total_events,
        trace_mismatch_count=trace_mismatches,
        run_mismatch_count=run_mismatches,
        fail_reasons=sorted(fail_reasons),
        warn_reasons=sorted(warn_reasons),
    )


def has_downstream_warning(assessment: TraceAssessment) -> bool:
    return any(code.startswith(_MISSING_PREFIX) for code in assessment.warn_reasons)


def _add_reason(
    bucket: dict[str, PolicyReason],
    code: str,
    message: str,
    trace_id: str,
) -> None:
    """Add a trace to the reason for code, creating the reason if needed."""
    reason = bucket.get(code)
    if reason is None:
        bucket[code] = PolicyReason(code=code, message=message, trace_ids=[trace_id])
        return
    if trace_id not in reason.trace_ids:
        reason.trace_ids = sorted([*reason.trace_ids, trace_id])


def evaluate_run(
    run_id: str,
    summary: RunSummary,
    assessments: Sequence[TraceAssessment],
    *,
    min_traces: int = ESCALATION_MIN_TRACES,
    ratio: float = ESCALATION_RATIO,
    now: datetime | None = None,
) -> AcceptanceSummary:
    """Aggregate per-trace assessments into the run acceptance verdict.

    Args:
        run_id: Run being judged.
        summary: Completion counters from the run.
        assessments: One assessment per trace, in manifest order.
        min_traces: Downstream-warning trace count that escalates to fail.
        ratio: Downstream-warning trace share that escalates when exceeded.
        now: Generation timestamp. Defaults to the current UTC time.

    Returns:
        AcceptanceSummary with final_status fail iff any fail reason exists.
    """
    fail_bucket: dict[str, PolicyReason] = {}
    warn_bucket: dict[str, PolicyReason] = {}

    if summary.errored > 0:
        fail_bucket[RUN_HAS_ERRORS] = PolicyReason(
            code=RUN_HAS_ERRORS,
            message=f"Run has {summary.errored} errored scenarios.",
            trace_ids=sorted(s.trace_id for s in summary.scenarios if s.status == "error"),
        )

    downstream_trace_ids: list[str] = []
    for assessment in assessments:
        for code in assessment.fail_reasons:
            _add_reason(
                fail_bucket,
                code,
                f"Trace {assessment.trace_id} failed policy check: {code}.",
                assessment.trace_id,
            )
        for code in assessment.warn_reasons:
            _add_reason(
                warn_bucket,
                code,
                f"Trace {assessment.trace_id} warning: {code}.",
                assessment.trace_id,
            )
        if has_downstream_warning(assessment):
            downstream_trace_ids.append(assessment.trace_id)

    downstream_count = len(downstream_trace_ids)
    downstream_ratio = downstream_count / len(assessments) if assessments else 0.0
    if downstream_count >= min_traces or downstream_ratio > ratio:
        fail_bucket[DOWNSTREAM_COVERAGE_ESCALATION] = PolicyReason(
            code=DOWNSTREAM_COVERAGE_ESCALATION,
            message=(
                f"Downstream worker warnings escalated to failure: {downstream_count} trace(s), "
                f"{downstream_ratio:.1%} of run. "
                f"Threshold: >={min_traces} traces or >{ratio:.0%}."
            ),
            trace_ids=sorted(set(downstream_trace_ids)),
        )

    fail_reasons = sorted(fail_bucket.values(), key=lambda r: r.code)
    warn_reasons = sorted(warn_bucket.values(), key=lambda r: r.code)

    return AcceptanceSummary(
        policy_version=POLICY_VERSION,
        generated_at=now or datetime.now(timezone.utc),
        run_id=run_id,
        decisions_applied={
            "strict_trace_isolation_default": True,
            "curated_structured_fields_default": True,
            "acceptance_policy": "hybrid",
            "downstream_escalation": {"min_traces": min_traces, "ratio_gt": ratio},
        },
        completion=CompletionCounts(
            total_scenarios=summary.total_scenarios,
            completed=summary.completed,
            errored=summary.errored,
        ),
        totals=AcceptanceTotals(
            traces=len(assessments),
            events=sum(a.total_events for a in assessments),
            warnings=len(warn_reasons),
            failures=len(fail_reasons),
        ),
        traces=list(assessments),
        fail_reasons=fail_reasons,
        warn_reasons=warn_reasons,
        final_status=FinalStatus.FAIL if fail_reasons else FinalStatus.PASS,
    )


def accept_run(store: JsonArtifactStore, run_id: str) -> AcceptanceSummary:
    """Assess every trace of a stored run and persist the verdict.

    Raises:
        ArtifactNotFoundError: If the summary or any trace artifact is missing.
    """
    summary = store.load_summary(run_id)
    assessments = [
        assess_trace(store.get(run_id, trace_id))
        for trace_id in store.resolve_trace_ids(run_id)
    ]
    acceptance = evaluate_run(run_id, summary, assessments)
    store.save_acceptance(acceptance)
    return acceptance
