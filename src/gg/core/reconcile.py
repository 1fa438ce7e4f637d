"""Reconcile local history with a remote whose history may be unrelated.

Used when first linking an existing local repository to a remote that
already has commits. Local commits are replayed onto the remote tip one at a
time. The replay happens entirely in temporary indexes, so the first
conflict abandons it with refs, index and working tree exactly as they were.
There is deliberately no auto-resolution here.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import git

from gg.core.checkout import checkout_tree, current_commit, find_head
from gg.core.errors import ConflictError, PreconditionError
from gg.core.mergetree import conflicted_paths, has_conflicts, merge_trees
from gg.core.schema import ReconcileOutcome

if TYPE_CHECKING:
    from gg.sync.transport import Transport

logger = logging.getLogger(__name__)

FALLBACK_BRANCHES = ("main", "master")


def remote_ref(repo: git.Repo, remote: str, branch: str) -> git.RemoteReference:
    return git.RemoteReference(repo, f"refs/remotes/{remote}/{branch}")


def local_branch_name(repo: git.Repo, remote: str) -> str:
    """The branch HEAD names; an unborn HEAD adopts main/master if only the remote has it."""
    if repo.head.is_detached:
        raise PreconditionError("detached_head", "HEAD is detached; check out a branch first", ref="HEAD")
    name = repo.head.reference.name
    if repo.head.is_valid():
        return name
    for candidate in (name, *FALLBACK_BRANCHES):
        if remote_ref(repo, remote, candidate).is_valid():
            return candidate
    return name


def replay(
    repo: git.Repo,
    local_tip: git.Commit,
    onto: git.Commit,
    committer: git.Actor | None = None,
) -> tuple[git.Commit, list[str], list[str]]:
    """Recreate every commit in onto..local_tip on top of onto, oldest first.

    Returns (new tip, replayed commit shas, skipped original shas). Commits
    whose changes are already in onto are skipped. Raises ConflictError on
    the first commit that does not apply cleanly.
    """
    if committer is None:
        committer = git.Actor.committer(repo.config_reader())

    commits = list(repo.iter_commits(f"{onto.hexsha}..{local_tip.hexsha}", reverse=True, no_merges=True))
    replayed: list[str] = []
    skipped: list[str] = []
    for commit in commits:
        parent_tree = commit.parents[0].tree if commit.parents else None
        index = merge_trees(repo, parent_tree, onto.tree, commit.tree)
        if has_conflicts(index):
            paths = conflicted_paths(index)
            logger.warning("Replaying %s conflicts in %s; aborting", commit.hexsha[:10], ", ".join(paths))
            raise ConflictError(paths, commit=commit.hexsha)

        tree = index.write_tree()
        if tree.binsha == onto.tree.binsha:
            logger.debug("Skipping %s: already upstream", commit.hexsha[:10])
            skipped.append(commit.hexsha)
            continue

        onto = git.Commit.create_from_tree(
            repo,
            tree,
            commit.message,
            parent_commits=[onto],
            head=False,
            author=commit.author,
            committer=committer,
            author_date=commit.authored_datetime,
        )
        replayed.append(onto.hexsha)

    return onto, replayed, skipped


def reconcile(
    repo: git.Repo,
    transport: Transport,
    remote: str,
    committer: git.Actor | None = None,
) -> ReconcileOutcome:
    """Fetch every remote branch and bring the local branch on top of its remote twin."""
    transport.fetch(remote, [f"+refs/heads/*:refs/remotes/{remote}/*"])

    branch = local_branch_name(repo, remote)
    tracked = remote_ref(repo, remote, branch)
    outcome = ReconcileOutcome(action="remote_empty", branch=branch, remote_ref=f"{remote}/{branch}")
    if not tracked.is_valid():
        logger.info("Remote %s has no branch %s yet", remote, branch)
        return outcome

    remote_tip = tracked.commit
    local_tip = current_commit(repo)

    if local_tip is None:
        head = repo.create_head(branch, remote_tip)
        repo.head.set_reference(head)
        outcome.checkout = checkout_tree(repo, remote_tip, None)
        outcome.action = "initialized"
    elif local_tip.binsha == remote_tip.binsha or repo.is_ancestor(remote_tip, local_tip):
        outcome.action = "up_to_date"
    else:
        new_tip, outcome.replayed, outcome.skipped = replay(repo, local_tip, remote_tip, committer)
        head = find_head(repo, branch)
        head.set_commit(new_tip, logmsg=f"rebase (finish): {head.path} onto {remote_tip.hexsha}")
        outcome.checkout = checkout_tree(repo, new_tip, local_tip)
        outcome.action = "rebased"
        logger.info(
            "Rebased %s onto %s/%s: %d replayed, %d skipped",
            branch, remote, branch, len(outcome.replayed), len(outcome.skipped),
        )

    head = find_head(repo, branch)
    head.set_tracking_branch(tracked)
    outcome.tracking = f"{remote}/{branch}"
    outcome.head = head.commit.hexsha
    return outcome
