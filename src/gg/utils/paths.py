"""Path utilities: repository discovery, conflict artifacts, SSH key lookup."""

from __future__ import annotations

from pathlib import Path

META_DIR = ".git"
THEIRS_SUFFIX = ".theirs"

# Tried in order when the agent did not authenticate.
DEFAULT_KEY_NAMES = ("id_ed25519", "id_rsa", "id_ecdsa")


def find_repo_root(start: Path | None = None) -> Path | None:
    """Walk up from start to find a directory containing .git/."""
    current = (start or Path.cwd()).resolve()
    for parent in [current, *current.parents]:
        if (parent / META_DIR).exists():
            return parent
    return None


def artifact_path(path: str) -> str:
    """Return the sibling artifact name that holds the remote side of path."""
    return path + THEIRS_SUFFIX


def is_artifact(path: str | Path) -> bool:
    return str(path).endswith(THEIRS_SUFFIX)


def ssh_dir() -> Path:
    return Path.home() / ".ssh"
