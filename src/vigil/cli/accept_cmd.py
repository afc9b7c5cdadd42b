"""vigil accept -- apply the acceptance policy to a stored run."""

from __future__ import annotations

import logging

import typer
from rich.console import Console

from vigil.acceptance.policy import accept_run
from vigil.cli.output import render_acceptance
from vigil.errors import ArtifactNotFoundError
from vigil.models.acceptance import FinalStatus
from vigil.models.config import find_project_root, load_harness_config
from vigil.storage.json_store import JsonArtifactStore

logger = logging.getLogger(__name__)

console = Console(stderr=True)


def accept(
    run_id: str = typer.Argument(..., help="Run id to judge"),
) -> None:
    """Assess every trace of a run and write acceptance-summary.json."""
    project_root = find_project_root()
    config = load_harness_config(project_root)
    store = JsonArtifactStore(project_root / config.runs_dir)

    if not store.run_exists(run_id):
        console.print(f"[bold red]Run not found:[/bold red] {store.run_dir(run_id)}")
        raise typer.Exit(code=1)

    try:
        summary = accept_run(store, run_id)
    except ArtifactNotFoundError as exc:
        console.print(f"[bold red]Missing artifact:[/bold red] {exc.path}")
        raise typer.Exit(code=1)

    output_console = Console()
    render_acceptance(summary, output_console)
    output_console.print(f"[dim]Wrote {store.run_dir(run_id) / 'acceptance-summary.json'}[/dim]")

    if summary.final_status == FinalStatus.FAIL:
        raise typer.Exit(code=1)
