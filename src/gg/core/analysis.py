"""Merge analysis: classify a local tip against a fetched remote tip."""

from __future__ import annotations

import git

from gg.core.schema import MergeAnalysis


def merge_base(repo: git.Repo, a: git.Commit, b: git.Commit) -> git.Commit | None:
    """Return the nearest common ancestor of a and b, or None for unrelated histories."""
    bases = repo.merge_base(a, b)
    return bases[0] if bases else None


def analyze(
    repo: git.Repo,
    local_tip: git.Commit | None,
    remote_tip: git.Commit,
) -> MergeAnalysis:
    """Classify how local_tip relates to remote_tip.

    Only reads the object database; refs, index and working tree are never
    touched, so the caller can branch on the result before doing anything.

    - up_to_date: the remote tip is already in local history
    - fast_forward: the remote tip descends from the local tip (or there is
      no local history yet)
    - normal: the histories diverged, or share no ancestor at all
    """
    if local_tip is None:
        return MergeAnalysis.fast_forward
    if local_tip.binsha == remote_tip.binsha:
        return MergeAnalysis.up_to_date

    base = merge_base(repo, local_tip, remote_tip)
    if base is None:
        return MergeAnalysis.normal
    if base.binsha == remote_tip.binsha:
        return MergeAnalysis.up_to_date
    if base.binsha == local_tip.binsha:
        return MergeAnalysis.fast_forward
    return MergeAnalysis.normal
