"""vigil check -- pre-submission readiness of the latest judged run."""

from __future__ import annotations

from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console

from vigil.acceptance.readiness import check_readiness
from vigil.cli.output import render_readiness
from vigil.errors import ArtifactNotFoundError, ScenarioLoadError
from vigil.loader.scenarios import load_scenarios
from vigil.models.config import find_project_root, load_harness_config
from vigil.storage.json_store import JsonArtifactStore

console = Console(stderr=True)


def check(
    run_id: Optional[str] = typer.Argument(None, help="Run id to check (default: latest run)"),
) -> None:
    """Verify a run is complete, accepted, and covers every scenario category."""
    project_root = find_project_root()
    config = load_harness_config(project_root)
    store = JsonArtifactStore(project_root / config.runs_dir)

    run_id = run_id or store.latest_run_id()
    if run_id is None:
        console.print("[bold red]No runs found.[/bold red] Run `vigil run` first.")
        raise typer.Exit(code=1)
    if not store.run_exists(run_id):
        console.print(f"[bold red]Run not found:[/bold red] {store.run_dir(run_id)}")
        raise typer.Exit(code=1)

    try:
        scenarios = load_scenarios(project_root / config.scenarios_dir)
    except ScenarioLoadError as exc:
        console.print(f"[bold red]Invalid scenario:[/bold red] {exc}")
        raise typer.Exit(code=1)

    try:
        summary = store.load_summary(run_id)
        acceptance = store.load_acceptance(run_id)
    except ArtifactNotFoundError as exc:
        console.print(
            f"[bold red]Missing artifact:[/bold red] {exc.path}. Run `vigil run` first."
        )
        raise typer.Exit(code=1)
    except ValidationError as exc:
        console.print(f"[bold red]Unreadable run record for {run_id}:[/bold red] {exc}")
        raise typer.Exit(code=1)

    if acceptance is None:
        console.print(
            f"[bold red]acceptance-summary.json not found for {run_id}.[/bold red] "
            f"Run `vigil accept {run_id}` first."
        )
        raise typer.Exit(code=1)

    report = check_readiness(scenarios, summary, acceptance)
    render_readiness(report, Console())

    if not report.ready:
        raise typer.Exit(code=1)
