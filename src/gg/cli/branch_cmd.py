"""Feature branch commands: feature, done."""

from __future__ import annotations

from typing import Optional

import typer

from gg.cli._shared import FORMAT_OPTION, fail, get_sync
from gg.cli.sync_cmd import print_sync
from gg.core.errors import SyncError
from gg.utils.output import info, output, success


def register_branch_commands(app: typer.Typer) -> None:
    """Register feature/done as top-level commands."""

    @app.command("feature")
    def feature_command(
        name: str = typer.Argument(..., help="Branch name"),
        fmt: Optional[str] = FORMAT_OPTION,
    ) -> None:
        """Sync, then switch to (creating if needed) a feature branch and publish it."""
        try:
            result = get_sync().start_feature(name)
        except SyncError as e:
            fail(e, fmt)
        if fmt == "json":
            output(result, fmt="json")
            return

        print_sync(result.sync)
        if result.created:
            success(f"Created and switched to {result.branch}")
        else:
            success(f"Switched to {result.branch}")
        if result.push is not None and result.push.status == "pushed":
            info(f"Published {result.branch} to {result.push.remote}")

    @app.command("done")
    def done_command(
        no_clean: bool = typer.Option(False, "--no-clean", help="Keep the feature branch"),
        fmt: Optional[str] = FORMAT_OPTION,
    ) -> None:
        """Return to the trunk, sync it, and delete the feature branch."""
        try:
            result = get_sync().finish_feature(cleanup=not no_clean)
        except SyncError as e:
            fail(e, fmt)
        if fmt == "json":
            output(result, fmt="json")
            return

        if result.status == "already_on_trunk":
            info(f"Already on {result.trunk}")
            return
        success(f"Switched to {result.trunk}")
        if result.sync is not None:
            print_sync(result.sync)
        if result.deleted:
            info(f"Deleted branch {result.branch}")
