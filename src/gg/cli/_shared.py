"""Shared CLI utilities to avoid circular imports."""

from __future__ import annotations

from pathlib import Path
from typing import NoReturn, Optional

import typer

from gg.core.errors import SyncError
from gg.sync.credentials import CredentialNegotiator, configured_helper
from gg.sync.git_sync import GitSync
from gg.sync.transport import Transport
from gg.utils.config import configured_ssh_dir, default_remote, load_global_config
from gg.utils.output import error, output
from gg.utils.paths import find_repo_root

FORMAT_OPTION = typer.Option(None, "--format", "-F", help="Output format: json or text")

# Set by the root callback for every invocation
_repo_path: Optional[Path] = None


def set_repo_path(path: Optional[Path]) -> None:
    global _repo_path
    _repo_path = path


def get_sync(remote: Optional[str] = None) -> GitSync:
    """Resolve the repository root and return a GitSync wired to the global config.

    The search starts at the --path given to the root command, or the current
    directory.
    """
    root = find_repo_root(_repo_path)
    if root is None:
        error(f"Not a git repository: {_repo_path}" if _repo_path else "Not inside a git repository")
        raise typer.Exit(1)

    config = load_global_config()
    gs = GitSync(root, remote=remote or default_remote(config))
    gs.transport = Transport(
        gs.repo,
        negotiator=CredentialNegotiator(
            key_dir=configured_ssh_dir(config),
            helper_lookup=lambda _url: configured_helper(gs.repo),
        ),
    )
    return gs


def fail(e: SyncError, fmt: Optional[str] = None) -> NoReturn:
    """Report a sync error and exit with status 1."""
    if fmt == "json":
        output(e.to_dict(), fmt="json")
    else:
        error(str(e))
    raise typer.Exit(1)
