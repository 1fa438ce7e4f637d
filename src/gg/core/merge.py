"""Three-way merge of a fetched remote branch into the local branch."""

from __future__ import annotations

import logging

import git
from git.index import IndexFile

from gg.core.analysis import merge_base
from gg.core.checkout import checkout_tree, find_head
from gg.core.conflicts import resolve_index
from gg.core.errors import PreconditionError
from gg.core.mergetree import has_conflicts, merge_trees
from gg.core.schema import ConflictReport, MergeOutcome

logger = logging.getLogger(__name__)


def merge_message(remote: str, branch: str) -> str:
    return f"Merge remote-tracking branch '{remote}/{branch}' into {branch}"


def _keep_local_deletion(index: IndexFile, path: str) -> None:
    for stage in (1, 2, 3):
        index.entries.pop((path, stage), None)


def merge_commits(
    repo: git.Repo,
    remote: str,
    branch: str,
    local_tip: git.Commit,
    remote_tip: git.Commit,
    committer: git.Actor | None = None,
) -> MergeOutcome:
    """Merge remote_tip into branch and commit with both tips as parents.

    Conflicts never stop the merge: the local side wins in the committed tree
    and the remote side is left in .theirs files. A path deleted locally but
    changed remotely stays deleted.
    """
    head = find_head(repo, branch)
    if head is None:
        raise PreconditionError("no_branch", f"Branch '{branch}' does not exist", ref=branch)

    base = merge_base(repo, local_tip, remote_tip)
    if base is None:
        raise PreconditionError(
            "no_merge_base",
            f"'{branch}' and '{remote}/{branch}' have no common ancestor",
            ref=f"{remote}/{branch}",
        )

    index = merge_trees(repo, base.tree, local_tip.tree, remote_tip.tree)
    report = ConflictReport()
    if has_conflicts(index):
        report = resolve_index(repo, index)
        for path in report.unresolved:
            _keep_local_deletion(index, path)

    tree = index.write_tree()
    message = merge_message(remote, branch)
    commit = git.Commit.create_from_tree(
        repo,
        tree,
        message,
        parent_commits=[local_tip, remote_tip],
        head=False,
        author=committer,
        committer=committer,
    )
    head.set_commit(commit, logmsg=f"merge {remote}/{branch}: {message}")
    repo.head.set_reference(head)
    checkout = checkout_tree(repo, commit, local_tip)

    logger.info(
        "Merged %s/%s into %s as %s (%d conflict(s) kept ours)",
        remote, branch, branch, commit.hexsha[:10], len(report.resolved),
    )
    return MergeOutcome(
        commit=commit.hexsha,
        parents=[local_tip.hexsha, remote_tip.hexsha],
        base=base.hexsha,
        message=message,
        report=report,
        checkout=checkout,
    )
