"""Pre-submission readiness check over a judged run.

A run is ready when every scenario in the suite completed without
error, the acceptance verdict is pass, and each scenario category
(happy-path, negative, adversarial) completed in full.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from vigil.models.acceptance import AcceptanceSummary, FinalStatus
from vigil.models.run import RunSummary
from vigil.models.scenario import Scenario

READINESS_TAGS = ("happy-path", "negative", "adversarial")


@dataclass
class ReadinessCheck:
    label: str
    passed: bool
    detail: str


@dataclass
class ReadinessReport:
    run_id: str
    checks: list[ReadinessCheck] = field(default_factory=list)

    @property
    def ready(self) -> bool:
        return all(check.passed for check in self.checks)


def _tag_check(tag: str, scenarios: Sequence[Scenario], summary: RunSummary) -> ReadinessCheck:
    tagged = {s.id for s in scenarios if tag in s.tags}
    completed = sum(1 for s in summary.scenarios if s.status == "ok" and s.id in tagged)
    return ReadinessCheck(
        label=f"{tag.capitalize()} coverage",
        passed=completed == len(tagged),
        detail=f"{completed}/{len(tagged)}",
    )


def check_readiness(
    scenarios: Sequence[Scenario],
    summary: RunSummary,
    acceptance: AcceptanceSummary,
    tags: Sequence[str] = READINESS_TAGS,
) -> ReadinessReport:
    """Evaluate a run against the current scenario suite.

    Args:
        scenarios: The suite as it exists on disk now, not as it was run.
        summary: Completion counters of the run.
        acceptance: The run's stored acceptance verdict.
        tags: Scenario categories that must complete in full.

    Returns:
        ReadinessReport whose ``ready`` is True only if every check passed.
    """
    expected = len(scenarios)
    errored = f", {summary.errored} errored" if summary.errored else ""
    checks = [
        ReadinessCheck(
            label="Scenarios",
            passed=summary.completed == expected and summary.errored == 0,
            detail=f"{summary.completed}/{expected} completed{errored}",
        ),
        ReadinessCheck(
            label="Acceptance",
            passed=acceptance.final_status == FinalStatus.PASS,
            detail=(
                f"{acceptance.final_status.value} ({acceptance.totals.failures} failures, "
                f"{acceptance.totals.warnings} warnings)"
            ),
        ),
    ]
    checks.extend(_tag_check(tag, scenarios, summary) for tag in tags)
    return ReadinessReport(run_id=summary.run_id, checks=checks)
