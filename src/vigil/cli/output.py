"""Rich terminal output for runs, enrichment and acceptance results."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich import box
from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from vigil.acceptance.readiness import ReadinessReport
    from vigil.enrichment.controller import EnrichResult
    from vigil.execution.suite import SuiteOutcome
    from vigil.models.acceptance import AcceptanceSummary
    from vigil.models.run import ScenarioOutcome


# Final status styling: status value -> (symbol, Rich markup style)
_STATUS_STYLES: dict[str, tuple[str, str]] = {
    "pass": ("✓ PASS", "bold green"),
    "fail": ("✗ FAIL", "bold red"),
}


def _join(items: list[str]) -> str:
    return ", ".join(items) if items else "-"


def render_scenario_line(outcome: ScenarioOutcome, console: Console) -> None:
    """Print one line per finished scenario while a run progresses."""
    if outcome.status == "error":
        console.print(f"[bold red]✗[/bold red] {outcome.id} [dim]({outcome.trace_id})[/dim]")
        console.print(f"    [red]{outcome.error}[/red]")
        return

    mark = "[green]✓[/green]" if outcome.expected_tools_hit else "[red]✗[/red]"
    extra = " [yellow](extra tools called)[/yellow]" if (
        outcome.expected_tools_hit and not outcome.tools_match
    ) else ""
    console.print(
        f"{mark} {outcome.id} [dim]({outcome.trace_id}, {outcome.duration_ms}ms)[/dim]{extra}"
    )
    console.print(f"    tools: {' -> '.join(outcome.tool_calls) or '(none)'}")


def render_run_summary(outcome: SuiteOutcome, console: Console) -> None:
    """Render the key-value table closing a run."""
    summary = outcome.summary
    table = Table(box=box.SIMPLE, show_header=False, padding=(0, 2))
    table.add_column("Key", style="bold")
    table.add_column("Value")

    table.add_row("Run", summary.run_id)
    table.add_row("Model", summary.model)
    table.add_row("Passed", f"{outcome.passed}/{summary.total_scenarios}")
    table.add_row("Errored", str(summary.errored))
    tokens = summary.total_tokens
    table.add_row("Tokens", f"{tokens.total} ({tokens.input} in / {tokens.output} out)")
    table.add_row("Duration", f"{summary.total_duration_ms}ms")
    console.print(table)


def render_enrich_results(
    results: list[tuple[str, EnrichResult | None, str | None]],
    console: Console,
) -> None:
    """Render one row per trace: attempts and coverage, or the error."""
    table = Table(box=box.SIMPLE, padding=(0, 2))
    table.add_column("Trace", style="bold")
    table.add_column("Attempts", justify="right")
    table.add_column("Actual")
    table.add_column("Missing")

    for trace_id, result, error in results:
        if result is None:
            table.add_row(trace_id, "-", f"[red]{error}[/red]", "-")
            continue
        missing = (
            f"[yellow]{_join(result.missing_workers)}[/yellow]"
            if result.missing_workers
            else "[green]-[/green]"
        )
        table.add_row(trace_id, str(result.attempts), _join(result.actual_workers), missing)
    console.print(table)


def render_acceptance(summary: AcceptanceSummary, console: Console) -> None:
    """Render the acceptance verdict with its fail and warn reasons."""
    symbol, style = _STATUS_STYLES.get(summary.final_status.value, ("✗ UNKNOWN", "bold red"))

    table = Table(box=box.SIMPLE, show_header=False, padding=(0, 2))
    table.add_column("Key", style="bold")
    table.add_column("Value")
    table.add_row("Status", f"[{style}]{symbol}[/{style}]")
    table.add_row("Run", summary.run_id)
    table.add_row("Policy", summary.policy_version)
    table.add_row(
        "Completion",
        f"{summary.completion.completed}/{summary.completion.total_scenarios} completed, "
        f"{summary.completion.errored} errored",
    )
    table.add_row("Traces", f"{summary.totals.traces} ({summary.totals.events} events)")
    console.print(table)

    if not summary.fail_reasons and not summary.warn_reasons:
        return

    reasons = Table(box=box.SIMPLE, padding=(0, 2))
    reasons.add_column("Level")
    reasons.add_column("Code", style="bold")
    reasons.add_column("Traces")
    for reason in summary.fail_reasons:
        reasons.add_row("[red]fail[/red]", reason.code, _join(reason.trace_ids))
    for reason in summary.warn_reasons:
        reasons.add_row("[yellow]warn[/yellow]", reason.code, _join(reason.trace_ids))
    console.print(reasons)


def render_readiness(report: ReadinessReport, console: Console) -> None:
    """Render the readiness checklist and overall result."""
    console.print(f"Pre-submission check (run: {report.run_id})")
    table = Table(box=box.SIMPLE, show_header=False, padding=(0, 2))
    table.add_column("Mark")
    table.add_column("Check", style="bold")
    table.add_column("Detail")
    for check in report.checks:
        mark = "[green]✓[/green]" if check.passed else "[red]✗[/red]"
        table.add_row(mark, check.label, check.detail)
    console.print(table)

    symbol, style = _STATUS_STYLES["pass" if report.ready else "fail"]
    verdict = "ready for submission" if report.ready else "not ready for submission"
    console.print(f"[{style}]{symbol}[/{style}] {verdict}")
