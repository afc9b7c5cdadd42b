"""vigil enrich -- re-attach server logs to the traces of a stored run."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console

from vigil.cli.output import render_enrich_results
from vigil.enrichment.controller import EnrichResult, Enricher, enrich_stored_trace
from vigil.errors import ArtifactNotFoundError, TelemetryConfigError
from vigil.models.config import HarnessConfig, find_project_root, load_harness_config
from vigil.storage.json_store import JsonArtifactStore
from vigil.telemetry.client import TelemetryClient

logger = logging.getLogger(__name__)

console = Console(stderr=True)


def enrich(
    run_id: str = typer.Argument(..., help="Run id to enrich"),
    trace_id: Optional[str] = typer.Argument(None, help="Single trace id (default: all traces)"),
) -> None:
    """Query telemetry again for a run's traces and merge in new logs."""
    project_root = find_project_root()
    config = load_harness_config(project_root)

    if not config.telemetry.is_configured:
        console.print(
            "[bold red]Telemetry not configured:[/bold red] "
            "set CLOUDFLARE_ACCOUNT_ID and CLOUDFLARE_API_TOKEN"
        )
        raise typer.Exit(code=1)

    store = JsonArtifactStore(project_root / config.runs_dir)
    if not store.run_exists(run_id):
        console.print(f"[bold red]Run not found:[/bold red] {store.run_dir(run_id)}")
        raise typer.Exit(code=1)

    trace_ids = store.resolve_trace_ids(run_id, trace_id)
    if not trace_ids:
        console.print(f"[bold red]No traces found for run[/bold red] {run_id}")
        raise typer.Exit(code=1)

    results = asyncio.run(_enrich_async(store, config, run_id, trace_ids))

    output_console = Console()
    render_enrich_results(results, output_console)
    completed = sum(1 for _, result, _ in results if result is not None)
    output_console.print(f"Updated {completed}/{len(trace_ids)} traces.")

    if completed != len(trace_ids):
        raise typer.Exit(code=1)


async def _enrich_async(
    store: JsonArtifactStore,
    config: HarnessConfig,
    run_id: str,
    trace_ids: list[str],
) -> list[tuple[str, EnrichResult | None, str | None]]:
    """Enrich traces one after another, collecting per-trace errors."""
    results: list[tuple[str, EnrichResult | None, str | None]] = []
    try:
        client = TelemetryClient(config.telemetry)
    except TelemetryConfigError as exc:
        return [(trace_id, None, str(exc)) for trace_id in trace_ids]

    async with client:
        enricher = Enricher(client, config.reenrich)
        for trace_id in trace_ids:
            console.print(f"[dim]Enriching {trace_id}...[/dim]")
            try:
                result = await enrich_stored_trace(store, enricher, run_id, trace_id)
            except (ArtifactNotFoundError, ValidationError, OSError) as exc:
                logger.error("Cannot enrich %s: %s", trace_id, exc)
                results.append((trace_id, None, str(exc)))
                continue
            results.append((trace_id, result, None))
    return results
