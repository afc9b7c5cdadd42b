"""Run-level records: manifest written before execution, summary after."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class TraceRef(BaseModel):
    """Scenario id paired with the trace id assigned to it."""

    scenario_id: str
    trace_id: str


class RunManifest(BaseModel):
    """Written to runs/<run_id>/manifest.json before any scenario executes."""

    run_id: str
    timestamp_utc: datetime | None = None
    model: str = ""
    mcp_url: str = ""
    scenario_count: int = 0
    scenarios: list[str] = Field(default_factory=list)
    traces: list[TraceRef] = Field(default_factory=list)
    instructions_files: list[str] = Field(default_factory=list)


class TokenTotals(BaseModel):
    input: int = 0
    output: int = 0
    total: int = 0


class ScenarioOutcome(BaseModel):
    """Per-scenario line of the run summary."""

    id: str
    trace_id: str
    status: Literal["ok", "error"]
    tool_calls: list[str] = Field(default_factory=list)
    expected_tools: list[str] = Field(default_factory=list)
    tools_match: bool = False
    expected_tools_hit: bool = False
    duration_ms: int = 0
    error: str | None = None


class RunSummary(BaseModel):
    """Completion counters for a run, written to runs/<run_id>/summary.json."""

    run_id: str
    model: str = ""
    total_scenarios: int
    completed: int
    errored: int
    total_duration_ms: int = 0
    total_tokens: TokenTotals = Field(default_factory=TokenTotals)
    scenarios: list[ScenarioOutcome] = Field(default_factory=list)
