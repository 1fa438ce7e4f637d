"""Forced checkout as an explicit tree-to-filesystem sync, and fast-forward."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

import git

from gg.core.schema import CheckoutReport
from gg.utils.paths import META_DIR

logger = logging.getLogger(__name__)

SYMLINK_MODE = 0o120000
EXECUTABLE_MODE = 0o100755


def find_head(repo: git.Repo, name: str) -> git.Head | None:
    """Return the local branch called name, or None if it does not exist."""
    head = git.Head(repo, f"refs/heads/{name}")
    return head if head.is_valid() else None


def current_commit(repo: git.Repo) -> git.Commit | None:
    """HEAD's commit, or None on an unborn branch."""
    if not repo.head.is_valid():
        return None
    return repo.head.commit


def tree_blobs(tree: git.Tree) -> dict[str, git.Blob]:
    """Map every file path in tree to its blob (submodules are skipped)."""
    return {item.path: item for item in tree.traverse() if item.type == "blob"}


def tracked_paths(repo: git.Repo, previous: git.Commit | None) -> set[str]:
    """Paths recorded by the previous commit or currently staged in the index."""
    paths = {path for path, _stage in repo.index.entries}
    if previous is not None:
        paths.update(tree_blobs(previous.tree))
    return paths


def _matches(dest: Path, blob: git.Blob, data: bytes) -> bool:
    if blob.mode == SYMLINK_MODE:
        return dest.is_symlink() and os.readlink(dest) == data.decode()
    if dest.is_symlink() or not dest.is_file():
        return False
    executable = bool(dest.stat().st_mode & 0o111)
    return executable == (blob.mode == EXECUTABLE_MODE) and dest.read_bytes() == data


def write_blob(dest: Path, blob: git.Blob, data: bytes) -> None:
    if dest.is_symlink() or dest.is_file():
        dest.unlink()
    elif dest.is_dir():
        shutil.rmtree(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)

    if blob.mode == SYMLINK_MODE:
        os.symlink(data.decode(), dest)
        return
    dest.write_bytes(data)
    mode = dest.stat().st_mode
    if blob.mode == EXECUTABLE_MODE:
        dest.chmod(mode | 0o111)
    else:
        dest.chmod(mode & ~0o111)


def _prune_empty_dirs(root: Path, start: Path) -> None:
    current = start
    while current != root and current.name != META_DIR:
        try:
            current.rmdir()
        except OSError:
            return
        current = current.parent


def checkout_tree(
    repo: git.Repo,
    target: git.Commit,
    previous: git.Commit | None = None,
) -> CheckoutReport:
    """Replace the working tree and index with the contents of target.

    Files recorded in target are written (overwriting local edits), tracked
    files that target does not contain are deleted, and untracked files are
    left alone. The index is then reset to target's tree.
    """
    root = Path(repo.working_tree_dir)
    wanted = tree_blobs(target.tree)
    report = CheckoutReport()

    for path in sorted(tracked_paths(repo, previous) - set(wanted)):
        dest = root / path
        if dest.is_symlink() or dest.is_file():
            dest.unlink()
            report.removed.append(path)
            _prune_empty_dirs(root, dest.parent)

    for path, blob in sorted(wanted.items()):
        dest = root / path
        data = blob.data_stream.read()
        existed = os.path.lexists(dest)
        if existed and _matches(dest, blob, data):
            continue
        write_blob(dest, blob, data)
        (report.modified if existed else report.added).append(path)

    # --reset drops leftover conflict stages; stat data survives for unchanged paths
    repo.git.read_tree("--reset", target.hexsha)
    repo.git.update_index("-q", "--refresh", with_exceptions=False)

    logger.debug(
        "checkout %s: %d added, %d modified, %d removed",
        target.hexsha[:10], len(report.added), len(report.modified), len(report.removed),
    )
    return report


def fast_forward(repo: git.Repo, branch: str | None, target: git.Commit) -> CheckoutReport:
    """Move branch to target with no merge, then force the working tree to match.

    Without a local branch (unborn or detached), HEAD is detached onto target.
    """
    previous = current_commit(repo)
    head = find_head(repo, branch) if branch else None
    if head is not None:
        head.set_commit(target, logmsg=f"fast-forward: setting {head.path} to {target.hexsha}")
        repo.head.set_reference(head)
    else:
        repo.head.set_reference(target, logmsg=f"fast-forward: detaching HEAD at {target.hexsha}")

    logger.info("Fast-forwarded %s to %s", branch or "HEAD", target.hexsha[:10])
    return checkout_tree(repo, target, previous)
