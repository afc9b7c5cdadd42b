"""Acceptance policy models.

These encode the acceptance-summary.json contract: per-trace
assessments, reasons deduplicated by code, and the final pass/fail
status for the run.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class FinalStatus(str, Enum):
    """Overall acceptance status for a run."""

    PASS = "pass"
    FAIL = "fail"


class TraceAssessment(BaseModel):
    """Verdict inputs computed for one trace at acceptance time."""

    trace_id: str
    scenario_id: str
    retry_attempts: int = 0
    expected_workers: list[str]
    actual_workers: list[str]
    missing_workers: list[str]
    total_events: int = 0
    trace_mismatch_count: int = 0
    run_mismatch_count: int = 0
    fail_reasons: list[str] = Field(default_factory=list)
    warn_reasons: list[str] = Field(default_factory=list)


class PolicyReason(BaseModel):
    """A fail or warn reason, with every trace that triggered it."""

    code: str
    message: str
    trace_ids: list[str] = Field(default_factory=list)


class CompletionCounts(BaseModel):
    total_scenarios: int
    completed: int
    errored: int


class AcceptanceTotals(BaseModel):
    traces: int
    events: int
    warnings: int
    failures: int


class AcceptanceSummary(BaseModel):
    """Run acceptance result, written once per `vigil accept` invocation."""

    schema_version: str = "1.0"
    policy_version: str
    generated_at: datetime
    run_id: str
    decisions_applied: dict[str, Any] = Field(default_factory=dict)
    completion: CompletionCounts
    totals: AcceptanceTotals
    traces: list[TraceAssessment]
    fail_reasons: list[PolicyReason]
    warn_reasons: list[PolicyReason]
    final_status: FinalStatus
