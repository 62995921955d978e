"""Command line front end."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from .errors import ErrorReport
from .run import DEFAULT_STAGE, run

console = Console()
_err_console = Console(stderr=True)

app = typer.Typer(
    name="converge",
    help="Reconcile a stack of cloud components with what is deployed",
    add_completion=False,
)


def _configure_logging(verbose: bool, debug: bool) -> None:
    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=_err_console, show_path=debug)],
    )


def _parse_credentials(value: str | None) -> dict | None:
    if not value:
        return None
    try:
        credentials = json.loads(value)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"not valid JSON: {exc}") from exc
    if not isinstance(credentials, dict):
        raise typer.BadParameter("expected a JSON object keyed by provider")
    return credentials


@app.command()
def main(
    root: Annotated[Path | None, typer.Option("--root", help="Directory holding the stack file")] = None,
    stage: Annotated[str, typer.Option("--stage", "-s", help="Deployment stage")] = DEFAULT_STAGE,
    instance: Annotated[
        str | None, typer.Option("--instance", "-i", help="Instance of a declarative stack to target")
    ] = None,
    method: Annotated[str | None, typer.Option("--method", "-m", help="Command to invoke")] = None,
    credentials: Annotated[
        str | None, typer.Option("--credentials", help='Credentials as JSON, e.g. {"aws": {...}}')
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Verbose output")] = False,
    debug: Annotated[bool, typer.Option("--debug", help="Debug output")] = False,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Report what would change without calling the provider")
    ] = False,
) -> None:
    """Deploy, remove or inspect the stack in ROOT."""
    _configure_logging(verbose, debug)
    outcome = asyncio.run(
        run(
            root=root,
            stage=stage,
            instance=instance,
            method=method,
            credentials=_parse_credentials(credentials),
            verbose=verbose,
            debug=debug,
            dry_run=dry_run,
        )
    )

    if isinstance(outcome, ErrorReport):
        _err_console.print(f"[red]Error:[/red] {outcome.component}: {outcome.message}")
        raise typer.Exit(1)

    if outcome:
        console.print_json(json.dumps(outcome, default=str))
