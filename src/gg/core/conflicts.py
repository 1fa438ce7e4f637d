"""Conflict auto-resolution and .theirs artifact handling.

Policy, per conflicted path: the local ("ours") version is written to the
working tree and staged, and the remote ("theirs") version is preserved next
to it as ``<path>.theirs`` so nothing the remote contributed is lost. A path
deleted locally but changed remotely is reported rather than resolved.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import git
from git.index import IndexFile

from gg.core.checkout import write_blob
from gg.core.errors import ArtifactIOError, PreconditionError
from gg.core.mergetree import has_conflicts
from gg.core.schema import ConflictEntry, ConflictReport
from gg.utils.paths import META_DIR, artifact_path, is_artifact

logger = logging.getLogger(__name__)


def _write_artifact(dest: Path, data: bytes) -> None:
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_bytes(data)


def resolve_index(repo: git.Repo, index: IndexFile) -> ConflictReport:
    """Resolve every conflicted path in index in favour of the local side.

    The index is modified in memory; writing it out is up to the caller.
    """
    root = Path(repo.working_tree_dir)
    report = ConflictReport()
    staged: list[git.Blob] = []

    for path, stages in sorted(index.unmerged_blobs().items()):
        path = str(path)
        sides = dict(stages)
        ours = sides.get(2)
        theirs = sides.get(3)
        entry = ConflictEntry(path=path, has_ours=ours is not None, has_theirs=theirs is not None)

        if ours is not None:
            try:
                write_blob(root / path, ours, ours.data_stream.read())
            except OSError as e:
                raise ArtifactIOError(f"Could not write {path}: {e}", path) from e
            staged.append(ours)
            entry.resolved = True
        else:
            logger.warning("Left %s unresolved: deleted locally but changed remotely", path)

        if theirs is not None and (ours is None or theirs.binsha != ours.binsha):
            artifact = artifact_path(path)
            try:
                _write_artifact(root / artifact, theirs.data_stream.read())
                entry.artifact = artifact
            except OSError as e:
                logger.warning("Could not write %s: %s", artifact, e)
                report.artifact_errors.append(artifact)

        report.conflicts.append(entry)

    if staged:
        index.resolve_blobs(staged)
    logger.info(
        "Resolved %d conflict(s), %d left unresolved",
        len(report.resolved), len(report.unresolved),
    )
    return report


def resolve(repo: git.Repo) -> ConflictReport:
    """Resolve a pre-existing conflicted index in place, without committing."""
    index = repo.index
    if not has_conflicts(index):
        raise PreconditionError("no_conflicts", "No conflicted paths in the index")
    report = resolve_index(repo, index)
    # the cached tree extension is stale once stages change
    index.write(ignore_extension_data=True)
    return report


def find_artifacts(root: Path) -> list[Path]:
    """Every .theirs file under root, skipping the .git directory."""
    found = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [d for d in dirnames if d != META_DIR]
        found.extend(Path(dirpath) / name for name in filenames if is_artifact(name))
    return sorted(found)


def clean_artifacts(root: Path) -> list[str]:
    """Delete every .theirs file under root; returns their root-relative paths."""
    root = root.resolve()
    removed = []
    for path in find_artifacts(root):
        try:
            path.unlink()
        except FileNotFoundError:
            continue
        removed.append(path.relative_to(root).as_posix())
    logger.info("Removed %d conflict artifact(s)", len(removed))
    return removed
