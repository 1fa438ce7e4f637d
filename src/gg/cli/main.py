"""Typer app: root callback, status, and command registration."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from gg import __version__
from gg.cli._shared import FORMAT_OPTION, fail, get_sync, set_repo_path
from gg.core.errors import SyncError
from gg.utils.output import configure_logging, console, info, output

app = typer.Typer(
    name="gg",
    help="gg: git sync with automatic conflict handling.",
    no_args_is_help=True,
)


def _version(value: bool) -> None:
    if value:
        console.print(f"gg {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    path: Optional[Path] = typer.Option(
        None, "--path", "-C", help="Repository to operate on (default: the current directory)"
    ),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="Log progress (-vv for debug)"),
    version: Optional[bool] = typer.Option(
        None, "--version", callback=_version, is_eager=True, help="Show the version and exit"
    ),
) -> None:
    configure_logging(verbose)
    set_repo_path(path)


@app.command()
def status(fmt: Optional[str] = FORMAT_OPTION) -> None:
    """Show branch, remote tracking and conflict state (no network)."""
    try:
        result = get_sync().status()
    except SyncError as e:
        fail(e, fmt)

    if fmt == "json":
        output(result, fmt="json")
        return

    branch = result.branch or "(detached)"
    head = result.head[:10] if result.head else "(no commits)"
    console.print(f"[bold]{branch}[/bold] at {head}")
    if result.remote_url:
        console.print(f"  Remote: {result.remote} ({result.remote_url})")
    else:
        console.print(f"  Remote: {result.remote} (not configured)")
    if result.tracking:
        console.print(f"  Tracking: {result.tracking}, {result.ahead} ahead, {result.behind} behind")
    console.print(f"  Working tree: {'dirty' if result.dirty else 'clean'}")
    if result.conflicts:
        console.print(f"  [red]Conflicted:[/red] {', '.join(result.conflicts)}")
        info("Resolve with: gg resolve")
    if result.artifacts:
        console.print(f"  Artifacts: {', '.join(result.artifacts)}")
        info("Remove with: gg clean")


# Register commands
from gg.cli.sync_cmd import register_sync_commands
from gg.cli.branch_cmd import register_branch_commands
from gg.cli.config_cmd import config_app

register_sync_commands(app)
register_branch_commands(app)
app.add_typer(config_app, name="config", help="Manage global configuration")
