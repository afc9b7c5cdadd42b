"""Trace artifact models for per-question persistence.

Pydantic models because every trace is rewritten wholesale to
runs/<run_id>/<trace_id>/trace.json after each mutation and read back
by enrichment and acceptance.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class CapturedToolCall(BaseModel):
    """A remote tool invocation captured from the model response."""

    tool_name: str
    args: Any = Field(default_factory=dict)  # normally a mapping, not guaranteed
    result_preview: str = ""
    result_full: str = ""


class TokenUsage(BaseModel):
    """Token usage counters reported by the inference API."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


class LlmResponse(BaseModel):
    """Everything captured from one inference call."""

    response_id: str
    tool_calls: list[CapturedToolCall] = Field(default_factory=list)
    final_text: str = ""
    raw_output: list[Any] = Field(default_factory=list)
    usage: TokenUsage = Field(default_factory=TokenUsage)


class LogEvent(BaseModel):
    """One normalized backend log event.

    Immutable once created. Two events are the same event when they agree
    on the fields used by ``vigil.telemetry.merge.event_key``.
    """

    model_config = {"frozen": True}

    timestamp: datetime
    status: int | None = None
    wall_time_ms: float = 0
    message: str | None = None

    service: str | None = None
    phase: str | None = None
    run_id: str | None = None
    trace_id: str | None = None
    correlation_id: str | None = None
    tool: str | None = None
    sport: str | None = None
    league_id: str | None = None
    path: str | None = None
    method: str | None = None
    outcome: str | None = None
    request_id: str | None = None
    trigger: str | None = None
    status_text: str | None = None
    duration_ms: float | None = None


# Service name -> ordered log events
ServiceLogs = dict[str, list[LogEvent]]


class EnrichmentMetadata(BaseModel):
    """Outcome of the most recent enrichment pass over a trace."""

    mode: Literal["initial", "reenrich"]
    attempts: int
    strict_trace_isolation: bool
    expected_workers: list[str]
    actual_workers: list[str]
    missing_workers: list[str]
    generated_at: datetime


class TraceArtifact(BaseModel):
    """Complete record of one scenario execution within a run."""

    schema_version: Literal["1.0", "1.1"] = "1.1"
    run_id: str
    trace_id: str
    scenario_id: str
    timestamp_utc: datetime
    model: str
    prompt: str
    instructions_file: str | None = None
    expected_tools: list[str] = Field(default_factory=list)
    llm_response: LlmResponse
    duration_ms: int = 0
    server_logs: ServiceLogs | None = None
    enrichment: EnrichmentMetadata | None = None
    notes: list[str] = Field(default_factory=list)
