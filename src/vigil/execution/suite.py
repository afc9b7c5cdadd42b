"""SuiteRunner: run a list of scenarios as one recorded run.

Writes the manifest before any scenario executes, runs scenarios
sequentially, optionally attaches server logs inline, persists each
trace once, and finishes with the run summary.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone

from vigil.enrichment.controller import Enricher
from vigil.execution.runner import ScenarioRunner
from vigil.models.config import HarnessConfig
from vigil.models.run import (
    RunManifest,
    RunSummary,
    ScenarioOutcome,
    TokenTotals,
    TraceRef,
)
from vigil.models.scenario import Scenario
from vigil.models.trace import TraceArtifact
from vigil.storage.json_store import JsonArtifactStore
from vigil.tracing.ids import create_run_id, create_trace_id

logger = logging.getLogger(__name__)

ScenarioCallback = Callable[[ScenarioOutcome, TraceArtifact | None], None]


@dataclass
class SuiteOutcome:
    """Everything a finished run produced."""

    manifest: RunManifest
    summary: RunSummary
    artifacts: list[TraceArtifact] = field(default_factory=list)

    @property
    def passed(self) -> int:
        return sum(1 for s in self.summary.scenarios if s.expected_tools_hit)


def score_tools(called: Sequence[str], expected: Sequence[str]) -> tuple[bool, bool]:
    """Return (exact sequence match, every expected tool was called)."""
    return list(called) == list(expected), all(tool in called for tool in expected)


class SuiteRunner:
    """Orchestrates one run over a list of scenarios."""

    def __init__(
        self,
        runner: ScenarioRunner,
        store: JsonArtifactStore,
        config: HarnessConfig,
        enricher: Enricher | None = None,
    ) -> None:
        self._runner = runner
        self._store = store
        self._config = config
        self._enricher = enricher

    def build_manifest(self, run_id: str, scenarios: Sequence[Scenario]) -> RunManifest:
        instructions = [s.instructions for s in scenarios if s.instructions]
        return RunManifest(
            run_id=run_id,
            timestamp_utc=datetime.now(timezone.utc),
            model=self._config.model,
            mcp_url=self._config.mcp_url,
            scenario_count=len(scenarios),
            scenarios=[s.id for s in scenarios],
            traces=[
                TraceRef(scenario_id=s.id, trace_id=create_trace_id(s.id, index, run_id))
                for index, s in enumerate(scenarios)
            ],
            instructions_files=list(dict.fromkeys(instructions)),
        )

    async def run(
        self,
        scenarios: Sequence[Scenario],
        run_id: str | None = None,
        on_scenario: ScenarioCallback | None = None,
    ) -> SuiteOutcome:
        """Execute every scenario and persist the run.

        A scenario that raises is recorded as an errored outcome and the
        run continues with the next one.
        """
        run_id = run_id or create_run_id()
        manifest = self.build_manifest(run_id, scenarios)
        self._store.save_manifest(manifest)
        logger.info("Starting run %s with %d scenarios", run_id, len(scenarios))

        outcomes: list[ScenarioOutcome] = []
        artifacts: list[TraceArtifact] = []
        totals = TokenTotals()

        for scenario, ref in zip(scenarios, manifest.traces):
            try:
                artifact = await self._runner.run(scenario, run_id, ref.trace_id)
            except Exception as exc:
                logger.warning("Scenario %s failed: %s", scenario.id, exc)
                outcome = ScenarioOutcome(
                    id=scenario.id,
                    trace_id=ref.trace_id,
                    status="error",
                    expected_tools=list(scenario.expected_tools),
                    error=str(exc),
                )
                outcomes.append(outcome)
                if on_scenario is not None:
                    on_scenario(outcome, None)
                continue

            if self._enricher is not None:
                await self._enricher.enrich(
                    artifact,
                    mode="initial",
                    max_attempts=self._config.reenrich.initial_attempts,
                )
            self._store.put(run_id, artifact)

            called = [call.tool_name for call in artifact.llm_response.tool_calls]
            tools_match, expected_hit = score_tools(called, scenario.expected_tools)
            outcome = ScenarioOutcome(
                id=scenario.id,
                trace_id=ref.trace_id,
                status="ok",
                tool_calls=called,
                expected_tools=list(scenario.expected_tools),
                tools_match=tools_match,
                expected_tools_hit=expected_hit,
                duration_ms=artifact.duration_ms,
            )
            outcomes.append(outcome)
            artifacts.append(artifact)

            usage = artifact.llm_response.usage
            totals.input += usage.input_tokens
            totals.output += usage.output_tokens
            totals.total += usage.total_tokens

            if on_scenario is not None:
                on_scenario(outcome, artifact)

        summary = RunSummary(
            run_id=run_id,
            model=self._config.model,
            total_scenarios=len(scenarios),
            completed=sum(1 for o in outcomes if o.status == "ok"),
            errored=sum(1 for o in outcomes if o.status == "error"),
            total_duration_ms=sum(a.duration_ms for a in artifacts),
            total_tokens=totals,
            scenarios=outcomes,
        )
        self._store.save_summary(summary)
        logger.info(
            "Run %s complete: %d ok, %d errored", run_id, summary.completed, summary.errored
        )
        return SuiteOutcome(manifest=manifest, summary=summary, artifacts=artifacts)
