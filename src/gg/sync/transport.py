"""Fetch and push against a named remote, negotiating credentials on demand."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, TypeVar

import git
from git import GitCommandError

from gg.core.errors import PreconditionError, TransportError
from gg.sync.credentials import (
    NO_PROMPT_ENVIRONMENT,
    CredentialNegotiator,
    CredentialType,
    configured_helper,
    parse_remote_url,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

AUTH_FAILURE_MARKERS = (
    "permission denied",
    "authentication failed",
    "could not read username",
    "could not read password",
    "invalid username or password",
    "terminal prompts disabled",
)


def is_auth_failure(error: GitCommandError) -> bool:
    text = str(error).lower()
    return any(marker in text for marker in AUTH_FAILURE_MARKERS)


@dataclass(frozen=True)
class TransferProgress:
    stage: str
    current: int
    total: int | None
    message: str = ""


ProgressCallback = Callable[[TransferProgress], None]

_PUSH_FAILED = (
    git.PushInfo.ERROR
    | git.PushInfo.REJECTED
    | git.PushInfo.REMOTE_REJECTED
    | git.PushInfo.REMOTE_FAILURE
)


class _ProgressRelay(git.RemoteProgress):
    """Forwards git's progress lines to a plain callback, synchronously."""

    _STAGES = {
        git.RemoteProgress.COUNTING: "counting",
        git.RemoteProgress.COMPRESSING: "compressing",
        git.RemoteProgress.WRITING: "writing",
        git.RemoteProgress.RECEIVING: "receiving",
        git.RemoteProgress.RESOLVING: "resolving",
        git.RemoteProgress.FINDING_SOURCES: "finding_sources",
        git.RemoteProgress.CHECKING_OUT: "checking_out",
    }

    def __init__(self, callback: ProgressCallback) -> None:
        super().__init__()
        self._callback = callback

    def update(self, op_code, cur_count, max_count=None, message=""):
        stage = self._STAGES.get(op_code & self.OP_MASK, "other")
        total = int(float(max_count)) if max_count else None
        self._callback(TransferProgress(stage, int(float(cur_count)), total, message or ""))


class Transport:
    """Runs network operations for a repository.

    Every operation gets a fresh attempt state; when the remote rejects a
    credential the negotiator is asked again with that same state, and its
    AuthError is what eventually ends the loop.
    """

    def __init__(
        self,
        repo: git.Repo,
        negotiator: CredentialNegotiator | None = None,
        progress: ProgressCallback | None = None,
    ) -> None:
        self.repo = repo
        self.negotiator = negotiator or CredentialNegotiator(
            helper_lookup=lambda _url: configured_helper(repo)
        )
        self.progress = progress

    def _remote(self, name: str) -> git.Remote:
        try:
            return self.repo.remote(name)
        except ValueError:
            raise PreconditionError("no_remote", f"Remote '{name}' is not configured", ref=name)

    def _relay(self) -> _ProgressRelay | None:
        return _ProgressRelay(self.progress) if self.progress else None

    def _run(self, env: dict[str, str], action: Callable[[], T]) -> T:
        if not env:
            return action()
        with self.repo.git.custom_environment(**env):
            return action()

    def _authenticated(self, remote: git.Remote, operation: str, action: Callable[[], T]) -> T:
        url = remote.url
        allowed, username = parse_remote_url(url)

        if allowed == CredentialType.NONE:
            try:
                return self._run({}, action)
            except GitCommandError as e:
                raise TransportError(f"{operation} {remote.name} failed: {e}", remote.name, operation) from e

        state = self.negotiator.new_state()
        # SSH always authenticates, so the ladder starts with the agent. A
        # user/password remote may be public or carry a token in its URL; it
        # only gets credentials after refusing the anonymous attempt.
        credential = None
        if allowed & CredentialType.SSH_KEY:
            credential = self.negotiator.credentials(url, username, allowed, state)
        while True:
            env = credential.environment() if credential is not None else dict(NO_PROMPT_ENVIRONMENT)
            try:
                return self._run(env, action)
            except GitCommandError as e:
                if not is_auth_failure(e):
                    raise TransportError(
                        f"{operation} {remote.name} failed: {e}", remote.name, operation
                    ) from e
                method = credential.method if credential is not None else "anonymous"
                logger.info("%s rejected %s access (attempt %d)", url, method, state.count)
            credential = self.negotiator.credentials(url, username, allowed, state)

    def fetch(self, remote: str, refspecs: list[str]) -> list[git.FetchInfo]:
        origin = self._remote(remote)
        logger.debug("fetch %s %s", remote, " ".join(refspecs))
        infos = self._authenticated(
            origin, "fetch", lambda: origin.fetch(refspecs, progress=self._relay())
        )
        return list(infos)

    def push(self, remote: str, refspecs: list[str]) -> list[git.PushInfo]:
        origin = self._remote(remote)
        logger.debug("push %s %s", remote, " ".join(refspecs))

        def _push() -> git.remote.PushInfoList:
            infos = origin.push(refspecs, progress=self._relay())
            infos.raise_if_error()
            return infos

        infos = self._authenticated(origin, "push", _push)
        rejected = [info for info in infos if info.flags & _PUSH_FAILED]
        if rejected:
            summary = "; ".join(f"{info.remote_ref_string}: {info.summary.strip()}" for info in rejected)
            raise TransportError(f"push {remote} rejected: {summary}", remote, "push")
        return list(infos)
