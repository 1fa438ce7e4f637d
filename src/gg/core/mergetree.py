"""Three-way merge of trees into an in-memory index.

``merge_trees`` is the building block for both the merge commit path and the
rebase replay: it never touches HEAD, refs, the repository index or the
working tree. Paths that still disagree after a content merge are left as
stage 1/2/3 entries for the caller to deal with.
"""

from __future__ import annotations

import logging
import tempfile
from io import BytesIO
from pathlib import Path
from typing import Union

import git
from git.index import IndexFile
from gitdb.base import IStream

logger = logging.getLogger(__name__)

EMPTY_TREE_SHA = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"

REGULAR_MODES = (0o100644, 0o100755)

Treeish = Union[git.Tree, git.Commit, str]


def has_conflicts(index: IndexFile) -> bool:
    return any(stage != 0 for _path, stage in index.entries)


def conflicted_paths(index: IndexFile) -> list[str]:
    return sorted({str(path) for path, stage in index.entries if stage != 0})


def _merge_mode(base: git.Blob | None, ours: git.Blob, theirs: git.Blob) -> int:
    if base is not None and ours.mode == base.mode:
        return theirs.mode
    return ours.mode


def merge_blob_content(
    repo: git.Repo,
    path: str,
    base: git.Blob | None,
    ours: git.Blob,
    theirs: git.Blob,
) -> git.Blob | None:
    """Line-merge two versions of a regular file.

    Returns the stored merged blob, or None when the edits overlap, either
    side is not a regular file, or the content is binary.
    """
    blobs = [b for b in (base, ours, theirs) if b is not None]
    if any(b.mode not in REGULAR_MODES for b in blobs):
        return None

    with tempfile.TemporaryDirectory(prefix="gg-merge-") as tmp:
        ours_file = Path(tmp) / "ours"
        base_file = Path(tmp) / "base"
        theirs_file = Path(tmp) / "theirs"
        ours_file.write_bytes(ours.data_stream.read())
        base_file.write_bytes(base.data_stream.read() if base is not None else b"")
        theirs_file.write_bytes(theirs.data_stream.read())

        # merge-file rewrites the first file in place; exit status is the conflict count
        status, _stdout, _stderr = repo.git.merge_file(
            "-q",
            str(ours_file),
            str(base_file),
            str(theirs_file),
            with_extended_output=True,
            with_exceptions=False,
        )
        if status != 0:
            return None
        data = ours_file.read_bytes()

    istream = repo.odb.store(IStream(git.Blob.type, len(data), BytesIO(data)))
    return git.Blob(repo, istream.binsha, _merge_mode(base, ours, theirs), path)


def merge_trees(
    repo: git.Repo,
    base: Treeish | None,
    ours: Treeish,
    theirs: Treeish,
) -> IndexFile:
    """Merge ours and theirs against base into a new, detached index.

    A missing base (unrelated histories, root commits) is treated as the
    empty tree. Trivial cases are settled by an aggressive read-tree; paths
    changed on both sides get a line-level merge and are staged when it is
    clean.
    """
    index = IndexFile.from_tree(repo, base if base is not None else EMPTY_TREE_SHA, ours, theirs)

    merged = []
    for path, stages in index.unmerged_blobs().items():
        sides = dict(stages)
        if 2 not in sides or 3 not in sides:
            continue
        blob = merge_blob_content(repo, str(path), sides.get(1), sides[2], sides[3])
        if blob is not None:
            merged.append(blob)
    if merged:
        index.resolve_blobs(merged)
        logger.debug("Content-merged %d path(s) cleanly", len(merged))

    return index
