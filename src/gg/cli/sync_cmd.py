"""Sync commands: sync, save, push, link, resolve, clean."""

from __future__ import annotations

from typing import Optional

import typer

from gg.cli._shared import FORMAT_OPTION, fail, get_sync
from gg.core.errors import PreconditionError, SyncError
from gg.core.schema import ConflictReport, SavePreview, SyncAction, SyncResult
from gg.utils.output import console, info, output, success, warning


def _print_conflicts(report: ConflictReport) -> None:
    if not report.conflicts:
        return
    warning(f"{len(report.conflicts)} conflict(s) kept the local version")
    for entry in report.conflicts:
        if entry.artifact:
            info(f"  {entry.path} (remote version in {entry.artifact})")
        elif not entry.resolved:
            info(f"  {entry.path} (deleted locally, left unresolved)")
        else:
            info(f"  {entry.path}")
    for path in report.artifact_errors:
        warning(f"Could not write {path}")


def print_sync(result: SyncResult) -> None:
    where = f"{result.remote}/{result.branch}"
    if result.action == SyncAction.no_remote:
        info(f"No remote '{result.remote}' configured; nothing to sync")
    elif result.action == SyncAction.remote_empty:
        info(f"{where} does not exist yet")
    elif result.action == SyncAction.up_to_date:
        info("Already up to date")
    elif result.action == SyncAction.fast_forward:
        success(f"Fast-forwarded to {where} ({result.head[:10]}, {result.checkout.changed} file(s) changed)")
    elif result.action == SyncAction.merged:
        success(f"Merged {where} ({result.head[:10]})")
        _print_conflicts(result.merge.report)
    else:
        replayed = len(result.reconcile.replayed) if result.reconcile else 0
        success(f"Replayed {replayed} commit(s) onto {where}")


def print_preview(preview: SavePreview) -> None:
    if preview.empty and not preview.amend:
        info("Nothing to commit")
        return
    verb = "amend the last commit" if preview.amend else "commit"
    info(f"Dry run: would {verb} with message:")
    console.print(f">> {(preview.message or '').strip()}", markup=False)
    for label, paths in (
        ("added", preview.added),
        ("modified", preview.modified),
        ("deleted", preview.deleted),
        ("untracked", preview.untracked),
    ):
        for path in paths:
            console.print(f"  {label}: {path}", markup=False)
    info("Run without --dry-run to commit")


def register_sync_commands(app: typer.Typer) -> None:
    """Register the sync commands as top-level commands."""

    @app.command("sync")
    def sync_command(fmt: Optional[str] = FORMAT_OPTION) -> None:
        """Fetch the remote branch and fast-forward, merge or replay onto it."""
        try:
            result = get_sync().sync()
        except SyncError as e:
            fail(e, fmt)
        if fmt == "json":
            output(result, fmt="json")
        else:
            print_sync(result)

    @app.command("save")
    def save_command(
        message: Optional[str] = typer.Option(None, "--message", "-m", help="Commit message"),
        amend: bool = typer.Option(False, "--amend", help="Rewrite the last commit (force-pushes)"),
        no_push: bool = typer.Option(False, "--no-push", help="Commit and sync without pushing"),
        dry_run: bool = typer.Option(
            False, "--dry-run", "-d", help="Show what would be committed without committing"
        ),
        fmt: Optional[str] = FORMAT_OPTION,
    ) -> None:
        """Commit everything, sync with the remote, and push."""
        if dry_run:
            try:
                preview = get_sync().preview_save(message, amend=amend)
            except SyncError as e:
                fail(e, fmt)
            if fmt == "json":
                output(preview, fmt="json")
            else:
                print_preview(preview)
            return

        try:
            result = get_sync().save(message, amend=amend, push=not no_push)
        except SyncError as e:
            fail(e, fmt)
        if fmt == "json":
            output(result, fmt="json")
            return

        if result.commit.status == "nothing_to_commit":
            info("Nothing to commit")
        else:
            success(f"{result.commit.status.capitalize()} {result.commit.commit[:10]}")
        if result.sync is not None:
            print_sync(result.sync)
        if result.push is not None and result.push.status == "pushed":
            success(f"Pushed {result.push.branch} to {result.push.remote}")

    @app.command("push")
    def push_command(
        force: bool = typer.Option(False, "--force", "-f", help="Overwrite the remote branch"),
        fmt: Optional[str] = FORMAT_OPTION,
    ) -> None:
        """Push the current branch."""
        try:
            result = get_sync().push(force=force)
        except SyncError as e:
            fail(e, fmt)
        if fmt == "json":
            output(result, fmt="json")
        elif result.status == "no_remote":
            info(f"No remote '{result.remote}' configured; nothing pushed")
        else:
            success(f"Pushed {result.branch} to {result.remote}")

    @app.command("link")
    def link_command(
        url: str = typer.Argument(..., help="Remote URL"),
        remote: Optional[str] = typer.Option(None, "--remote", "-r", help="Remote name"),
        fmt: Optional[str] = FORMAT_OPTION,
    ) -> None:
        """Point a remote at URL and bring local history on top of it."""
        try:
            result = get_sync(remote).link_remote(url)
        except SyncError as e:
            fail(e, fmt)
        if fmt == "json":
            output(result, fmt="json")
            return

        verb = "Added" if result.created else "Updated"
        success(f"{verb} remote {result.remote} -> {result.url}")
        if result.error:
            warning(f"Could not reconcile with {result.remote}: {result.error['error']}")
            raise typer.Exit(1)
        if result.reconcile is not None:
            info(f"{result.reconcile.remote_ref}: {result.reconcile.action}")

    @app.command("resolve")
    def resolve_command(fmt: Optional[str] = FORMAT_OPTION) -> None:
        """Resolve conflicted paths in the index, keeping the local version."""
        try:
            report = get_sync().resolve()
        except PreconditionError as e:
            if e.reason != "no_conflicts":
                fail(e, fmt)
            if fmt == "json":
                output(ConflictReport(), fmt="json")
            else:
                info("No conflicts to resolve")
            return
        except SyncError as e:
            fail(e, fmt)
        if fmt == "json":
            output(report, fmt="json")
        else:
            _print_conflicts(report)
            success(f"Resolved {len(report.resolved)} path(s)")

    @app.command("clean")
    def clean_command(fmt: Optional[str] = FORMAT_OPTION) -> None:
        """Delete .theirs conflict artifacts."""
        try:
            removed = get_sync().clean()
        except SyncError as e:
            fail(e, fmt)
        if fmt == "json":
            output({"removed": removed}, fmt="json")
        elif removed:
            for path in removed:
                info(f"  {path}")
            success(f"Removed {len(removed)} artifact(s)")
        else:
            info("No artifacts to remove")
