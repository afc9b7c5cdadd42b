"""vigil run -- execute scenarios against the model and record a run.

Loads scenarios, resolves the adapter, runs every scenario through the
SuiteRunner (attaching server logs inline when telemetry credentials
are set), and prints a summary.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack
from typing import Optional

import typer
from rich.console import Console

from vigil.adapters.registry import get_adapter
from vigil.cli.output import render_run_summary, render_scenario_line
from vigil.enrichment.controller import Enricher
from vigil.errors import ScenarioLoadError
from vigil.execution.runner import ScenarioRunner
from vigil.execution.suite import ScenarioCallback, SuiteOutcome, SuiteRunner
from vigil.loader.scenarios import load_scenarios
from vigil.models.config import HarnessConfig, find_project_root, load_harness_config
from vigil.models.run import ScenarioOutcome
from vigil.models.scenario import Scenario
from vigil.models.trace import TraceArtifact
from vigil.storage.json_store import JsonArtifactStore
from vigil.telemetry.client import TelemetryClient

logger = logging.getLogger(__name__)

console = Console(stderr=True)


def run(
    scenario_ids: Optional[list[str]] = typer.Argument(
        None, help="Scenario ids to run (default: all)"
    ),
    no_enrich: bool = typer.Option(
        False, "--no-enrich", help="Skip inline server log enrichment"
    ),
) -> None:
    """Run scenarios and write trace artifacts under runs/."""
    project_root = find_project_root()
    config = load_harness_config(project_root)

    try:
        scenarios = load_scenarios(project_root / config.scenarios_dir, scenario_ids)
    except ScenarioLoadError as exc:
        console.print(f"[bold red]Scenario error:[/bold red] {exc}")
        raise typer.Exit(code=1)

    if not scenarios:
        console.print(f"No scenarios found. Check {config.scenarios_dir}/ directory.")
        raise typer.Exit(code=1)

    if config.eval_api_key is None or not config.eval_api_key.get_secret_value():
        console.print("[bold red]VIGIL_EVAL_API_KEY is required to call the tool server.[/bold red]")
        raise typer.Exit(code=1)

    try:
        adapter = get_adapter(config.adapter)
    except (ImportError, ValueError, TypeError) as exc:
        console.print(f"[bold red]Adapter error:[/bold red] {exc}")
        raise typer.Exit(code=1)

    output_console = Console()
    output_console.print(f"[bold]Model:[/bold] {config.model}")
    output_console.print(f"[bold]MCP:[/bold]   {config.mcp_url}")
    enrich_inline = config.telemetry.is_configured and not no_enrich
    output_console.print(
        f"[bold]Server logs:[/bold] {'enabled' if enrich_inline else 'disabled'}"
    )
    output_console.print(f"[bold]Scenarios:[/bold] {len(scenarios)}\n")

    runner = ScenarioRunner(
        adapter,
        config,
        access_token=config.eval_api_key.get_secret_value(),
        project_root=project_root,
    )
    store = JsonArtifactStore(project_root / config.runs_dir)

    def on_scenario(outcome: ScenarioOutcome, artifact: TraceArtifact | None) -> None:
        render_scenario_line(outcome, output_console)

    outcome = asyncio.run(
        _run_async(runner, store, config, scenarios, enrich_inline, on_scenario)
    )

    output_console.print()
    render_run_summary(outcome, output_console)
    output_console.print(f"[dim]Artifacts: {store.run_dir(outcome.summary.run_id)}[/dim]")


async def _run_async(
    runner: ScenarioRunner,
    store: JsonArtifactStore,
    config: HarnessConfig,
    scenarios: list[Scenario],
    enrich_inline: bool,
    on_scenario: ScenarioCallback,
) -> SuiteOutcome:
    async with AsyncExitStack() as stack:
        enricher = None
        if enrich_inline:
            client = await stack.enter_async_context(TelemetryClient(config.telemetry))
            enricher = Enricher(client, config.reenrich)
        suite = SuiteRunner(runner, store, config, enricher=enricher)
        return await suite.run(scenarios, on_scenario=on_scenario)
