"""Git-backed sync: save, sync, push, feature branches, remote linking."""

from __future__ import annotations

import logging
from pathlib import Path

import git

from gg.core.analysis import analyze, merge_base
from gg.core.checkout import checkout_tree, current_commit, fast_forward, find_head
from gg.core.conflicts import clean_artifacts, find_artifacts, resolve
from gg.core.errors import PreconditionError, SyncError
from gg.core.merge import merge_commits
from gg.core.mergetree import conflicted_paths, has_conflicts
from gg.core.reconcile import local_branch_name, reconcile, remote_ref
from gg.core.schema import (
    CommitResult,
    ConflictReport,
    FeatureResult,
    FinishResult,
    LinkResult,
    MergeAnalysis,
    PushResult,
    SavePreview,
    SaveResult,
    StatusResult,
    SyncAction,
    SyncResult,
)
from gg.sync.transport import Transport
from gg.utils.config import DEFAULT_REMOTE
from gg.utils.paths import THEIRS_SUFFIX, is_artifact

logger = logging.getLogger(__name__)

TRUNK_BRANCHES = ("main", "master")


class GitSync:
    """High-level operations on one repository and one named remote.

    Nothing here prints or prompts; every operation returns a result model or
    raises a SyncError subclass.
    """

    def __init__(
        self,
        path: Path,
        remote: str = DEFAULT_REMOTE,
        transport: Transport | None = None,
    ) -> None:
        self.root = Path(path).resolve()
        try:
            self.repo = git.Repo(self.root)
        except (git.InvalidGitRepositoryError, git.NoSuchPathError):
            raise PreconditionError("not_a_repository", f"Not a git repository: {self.root}", path=self.root)
        self.remote = remote
        self.transport = transport or Transport(self.repo)

    # -- state --

    @property
    def has_remote(self) -> bool:
        return any(r.name == self.remote for r in self.repo.remotes)

    def untracked(self) -> list[str]:
        return [f for f in self.repo.untracked_files if not is_artifact(f)]

    def is_dirty(self) -> bool:
        """Tracked changes (staged or not) or untracked files, ignoring .theirs artifacts."""
        if self.repo.is_dirty(index=True, working_tree=True, untracked_files=False):
            return True
        return bool(self.untracked())

    def _require_clean(self) -> None:
        if has_conflicts(self.repo.index):
            raise PreconditionError("unmerged", "The index has unresolved conflicts; run `gg resolve` first")
        if self.is_dirty():
            raise PreconditionError("dirty", "Working tree has uncommitted changes; save or stash them first")

    def current_branch(self) -> str:
        if self.repo.head.is_detached:
            raise PreconditionError("detached_head", "HEAD is detached; check out a branch first", ref="HEAD")
        return self.repo.head.reference.name

    def _remote_tip(self, branch: str) -> git.Commit | None:
        ref = remote_ref(self.repo, self.remote, branch)
        return ref.commit if ref.is_valid() else None

    def _set_tracking(self, branch: str) -> str | None:
        head = find_head(self.repo, branch)
        ref = remote_ref(self.repo, self.remote, branch)
        if head is None or not ref.is_valid():
            return None
        head.set_tracking_branch(ref)
        return f"{self.remote}/{branch}"

    def _switch(self, branch: str) -> None:
        head = find_head(self.repo, branch)
        if head is None:
            raise PreconditionError("no_branch", f"Branch '{branch}' does not exist", ref=branch)
        previous = current_commit(self.repo)
        self.repo.head.set_reference(head)
        checkout_tree(self.repo, head.commit, previous)
        logger.info("Switched to %s", branch)

    # -- sync --

    def sync(self, branch: str | None = None) -> SyncResult:
        """Fetch the remote twin of the current branch and integrate it.

        Fast-forwards when possible, merges (auto-resolving conflicts) when
        the histories diverged, and replays local commits onto the remote
        when they share no history at all.
        """
        self._require_clean()
        current = self.current_branch()
        if branch is not None and branch != current:
            raise PreconditionError(
                "not_current_branch", f"Can only sync the checked-out branch ({current})", ref=branch
            )

        if not self.has_remote:
            return SyncResult(action=SyncAction.no_remote, remote=self.remote, branch=current)

        self.transport.fetch(self.remote, [f"+refs/heads/*:refs/remotes/{self.remote}/*"])

        local_tip = current_commit(self.repo)
        if local_tip is None:
            current = local_branch_name(self.repo, self.remote)
        result = SyncResult(action=SyncAction.remote_empty, remote=self.remote, branch=current)

        remote_tip = self._remote_tip(current)
        if remote_tip is None:
            logger.info("Remote %s has no branch %s", self.remote, current)
            return result

        result.analysis = analyze(self.repo, local_tip, remote_tip)

        if result.analysis == MergeAnalysis.up_to_date:
            result.action = SyncAction.up_to_date
        elif result.analysis == MergeAnalysis.fast_forward:
            if local_tip is None:
                self.repo.create_head(current, remote_tip)
            result.checkout = fast_forward(self.repo, current, remote_tip)
            result.action = SyncAction.fast_forward
        elif merge_base(self.repo, local_tip, remote_tip) is None:
            result.reconcile = reconcile(self.repo, self.transport, self.remote)
            result.action = SyncAction.rebased
            result.checkout = result.reconcile.checkout
        else:
            result.merge = merge_commits(self.repo, self.remote, current, local_tip, remote_tip)
            result.action = SyncAction.merged
            result.checkout = result.merge.checkout

        self._set_tracking(current)
        result.head = self.repo.head.commit.hexsha
        logger.info("sync %s: %s", current, result.action.value)
        return result

    # -- commit and push --

    def _check_commit(self, message: str | None, amend: bool) -> git.Commit | None:
        if has_conflicts(self.repo.index):
            raise PreconditionError("unmerged", "The index has unresolved conflicts; run `gg resolve` first")

        previous = current_commit(self.repo)
        if amend and previous is None:
            raise PreconditionError("no_commits", "Nothing to amend: the branch has no commits yet", ref="HEAD")
        if not amend and not message:
            raise PreconditionError("no_message", "A commit message is required")
        return previous

    def preview_save(self, message: str | None = None, amend: bool = False) -> SavePreview:
        """Report what save would commit. Nothing is staged, committed, fetched or pushed."""
        previous = self._check_commit(message, amend)
        result = SavePreview(message=message or (previous.message if amend else None), amend=amend)

        if previous is None:
            result.added = sorted({path for path, _stage in self.repo.index.entries})
        else:
            # HEAD against the working tree, so staged and unstaged edits both count
            for diff in previous.diff(None):
                path = diff.b_path or diff.a_path
                if diff.change_type == "A":
                    result.added.append(path)
                elif diff.change_type == "D":
                    result.deleted.append(diff.a_path)
                else:
                    result.modified.append(path)
        result.untracked = sorted(self.untracked())
        return result

    def commit_all(self, message: str | None = None, amend: bool = False) -> CommitResult:
        """Stage every change except .theirs artifacts and commit it."""
        previous = self._check_commit(message, amend)

        self.repo.git.add("-A", "--", ".", f":(exclude)*{THEIRS_SUFFIX}")
        index = self.repo.index
        tree = index.write_tree()

        if not amend:
            unchanged = (
                tree.binsha == previous.tree.binsha
                if previous is not None
                else not index.entries
            )
            if unchanged:
                return CommitResult(status="nothing_to_commit", message=message)
            commit = git.Commit.create_from_tree(self.repo, tree, message, head=True)
            logger.info("Committed %s", commit.hexsha[:10])
            return CommitResult(status="committed", message=message, commit=commit.hexsha)

        message = message or previous.message
        commit = git.Commit.create_from_tree(
            self.repo,
            tree,
            message,
            parent_commits=list(previous.parents),
            head=True,
            author=previous.author,
            author_date=previous.authored_datetime,
        )
        logger.info("Amended %s as %s", previous.hexsha[:10], commit.hexsha[:10])
        return CommitResult(status="amended", message=message, commit=commit.hexsha)

    def push(self, branch: str | None = None, force: bool = False) -> PushResult:
        branch = branch or self.current_branch()
        if not self.has_remote:
            return PushResult(status="no_remote", remote=self.remote, branch=branch)
        if find_head(self.repo, branch) is None:
            raise PreconditionError("no_branch", f"Branch '{branch}' has no commits to push", ref=branch)

        refspec = f"refs/heads/{branch}:refs/heads/{branch}"
        if force:
            refspec = "+" + refspec
        self.transport.push(self.remote, [refspec])
        logger.info("Pushed %s to %s", branch, self.remote)
        return PushResult(status="pushed", remote=self.remote, branch=branch, refspec=refspec)

    def save(self, message: str | None = None, amend: bool = False, push: bool = True) -> SaveResult:
        """Commit everything, sync with the remote, then push.

        An amended commit rewrites published history, so it skips the sync and
        is force-pushed.
        """
        result = SaveResult(commit=self.commit_all(message, amend=amend))
        if not amend:
            result.sync = self.sync()
        if push:
            result.push = self.push(force=amend)
        return result

    # -- feature branches --

    def start_feature(self, name: str) -> FeatureResult:
        """Sync the current branch, then switch to (creating if needed) name and publish it."""
        self._require_clean()
        synced = self.sync()

        created = False
        if find_head(self.repo, name) is None:
            tip = current_commit(self.repo)
            if tip is None:
                raise PreconditionError("no_commits", "Cannot branch from an empty history", ref="HEAD")
            self.repo.create_head(name, tip)
            created = True
            logger.info("Created branch %s at %s", name, tip.hexsha[:10])
        self._switch(name)

        result = FeatureResult(branch=name, created=created, sync=synced)
        if self.has_remote:
            result.push = self.push(name)
            self._set_tracking(name)
        return result

    def trunk(self) -> str:
        for name in TRUNK_BRANCHES:
            if find_head(self.repo, name) is not None:
                return name
        raise PreconditionError("no_trunk", "Neither 'main' nor 'master' exists")

    def finish_feature(self, cleanup: bool = True) -> FinishResult:
        """Return to the trunk, sync it, and delete the feature branch."""
        self._require_clean()
        branch = self.current_branch()
        trunk = self.trunk()
        if branch == trunk:
            return FinishResult(status="already_on_trunk", branch=branch, trunk=trunk)

        self._switch(trunk)
        result = FinishResult(status="finished", branch=branch, trunk=trunk, sync=self.sync())
        if cleanup:
            self.repo.delete_head(branch, force=True)
            result.deleted = True
            logger.info("Deleted branch %s", branch)
        return result

    # -- remotes --

    def link_remote(self, url: str) -> LinkResult:
        """Point the remote at url, then reconcile local history with it.

        The remote configuration is kept even if the reconcile fails; the
        failure is reported in the result.
        """
        self._require_clean()
        try:
            existing = self.repo.remote(self.remote)
        except ValueError:
            existing = None

        if existing is None:
            self.repo.create_remote(self.remote, url)
        else:
            existing.set_url(url)
        result = LinkResult(remote=self.remote, url=url, created=existing is None)
        logger.info("Remote %s -> %s", self.remote, url)

        try:
            result.reconcile = reconcile(self.repo, self.transport, self.remote)
            result.synced = True
        except SyncError as e:
            logger.warning("Linked %s but could not reconcile: %s", self.remote, e)
            result.error = e.to_dict()
        return result

    # -- conflicts --

    def resolve(self) -> ConflictReport:
        return resolve(self.repo)

    def clean(self) -> list[str]:
        return clean_artifacts(self.root)

    def status(self) -> StatusResult:
        """Local view only; no fetch."""
        result = StatusResult(remote=self.remote, dirty=self.is_dirty())
        if not self.repo.head.is_detached:
            result.branch = self.repo.head.reference.name
        tip = current_commit(self.repo)
        if tip is not None:
            result.head = tip.hexsha
        if self.has_remote:
            result.remote_url = self.repo.remote(self.remote).url

        if result.branch and tip is not None:
            remote_tip = self._remote_tip(result.branch)
            if remote_tip is not None:
                result.tracking = f"{self.remote}/{result.branch}"
                result.ahead = sum(1 for _ in self.repo.iter_commits(f"{remote_tip.hexsha}..{tip.hexsha}"))
                result.behind = sum(1 for _ in self.repo.iter_commits(f"{tip.hexsha}..{remote_tip.hexsha}"))

        result.conflicts = conflicted_paths(self.repo.index)
        result.artifacts = [p.relative_to(self.root).as_posix() for p in find_artifacts(self.root)]
        return result
