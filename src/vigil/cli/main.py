"""Vigil CLI entry point."""

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from vigil import __version__
from vigil.cli.accept_cmd import accept
from vigil.cli.check_cmd import check
from vigil.cli.enrich_cmd import enrich
from vigil.cli.run_cmd import run

app = typer.Typer(
    name="vigil",
    help="Evaluation harness for MCP tool servers",
    no_args_is_help=True,
)

# Register subcommands
app.command()(run)
app.command()(enrich)
app.command()(accept)
app.command()(check)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"vigil {__version__}")
        raise typer.Exit()


def configure_logging(level: str) -> None:
    """Route library logging to stderr through Rich."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        help="Logging level (DEBUG, INFO, WARNING, ERROR).",
        envvar="VIGIL_LOG_LEVEL",
    ),
) -> None:
    """Evaluation harness for MCP tool servers."""
    configure_logging(log_level)
