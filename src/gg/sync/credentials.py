"""Credential negotiation for authenticated fetch and push.

The transport asks for credentials each time the remote rejects the previous
attempt. The negotiator answers from a small ladder, keyed by how many times
it has been asked during the current operation:

- attempt 0, SSH remote: whatever the SSH agent holds for the URL's user
- later attempts, SSH remote: the first default key file found on disk
- HTTPS remote: the git credential helper configured for the repository
  (only once the anonymous first attempt was refused)
- past the attempt ceiling: give up for good

Host keys are accepted without verification (``StrictHostKeyChecking=no``).
This is a known gap; there is no known_hosts pinning yet.
"""

from __future__ import annotations

import enum
import logging
import os
import re
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Union
from urllib.parse import urlsplit

import git

from gg.core.errors import AuthError
from gg.utils.paths import DEFAULT_KEY_NAMES, ssh_dir

logger = logging.getLogger(__name__)

DEFAULT_USER = "git"

# Attempt indices 0..MAX_ATTEMPT_INDEX are served; the next request fails.
MAX_ATTEMPT_INDEX = 2

EXHAUSTED_MESSAGE = "Authentication failed: tried agent and default SSH keys."

_SCP_LIKE = re.compile(r"^(?:(?P<user>[^@/]+)@)?(?P<host>[^:/]+):(?!//)")

# Used for the first, credential-free attempt against user/password remotes
NO_PROMPT_ENVIRONMENT = {"GIT_TERMINAL_PROMPT": "0", "GCM_INTERACTIVE": "never"}


class CredentialType(enum.Flag):
    NONE = 0
    SSH_KEY = enum.auto()
    USERPASS_PLAINTEXT = enum.auto()


def parse_remote_url(url: str) -> tuple[CredentialType, str | None]:
    """Return the credential types a remote URL can use, and the user it names."""
    if "://" in url:
        parts = urlsplit(url)
        scheme = parts.scheme.lower()
        if scheme in ("ssh", "git+ssh", "ssh+git"):
            return CredentialType.SSH_KEY, parts.username
        if scheme in ("http", "https"):
            return CredentialType.USERPASS_PLAINTEXT, parts.username
        # file://, git:// and friends authenticate on their own or not at all
        return CredentialType.NONE, None
    if os.path.exists(url):
        return CredentialType.NONE, None
    match = _SCP_LIKE.match(url)
    if match:
        return CredentialType.SSH_KEY, match.group("user")
    return CredentialType.NONE, None


def _ssh_command(username: str, *options: str) -> str:
    parts = [
        "ssh",
        "-o", "BatchMode=yes",
        "-o", "StrictHostKeyChecking=no",
        "-l", username,
        *options,
    ]
    return " ".join(shlex.quote(p) for p in parts)


@dataclass(frozen=True)
class AgentKeyCredential:
    username: str
    method = "agent"

    def environment(self) -> dict[str, str]:
        return {
            "GIT_SSH_COMMAND": _ssh_command(self.username, "-o", "PasswordAuthentication=no"),
            "GIT_TERMINAL_PROMPT": "0",
        }


@dataclass(frozen=True)
class KeyFileCredential:
    username: str
    key_path: Path
    method = "key_file"

    def environment(self) -> dict[str, str]:
        return {
            "GIT_SSH_COMMAND": _ssh_command(
                self.username, "-i", str(self.key_path), "-o", "IdentitiesOnly=yes"
            ),
            "GIT_TERMINAL_PROMPT": "0",
        }


@dataclass(frozen=True)
class HelperCredential:
    """Defer to git's own credential helper machinery for user/password remotes."""
    username: str | None
    helper: str
    method = "credential_helper"

    def environment(self) -> dict[str, str]:
        return dict(NO_PROMPT_ENVIRONMENT)


Credential = Union[AgentKeyCredential, KeyFileCredential, HelperCredential]


@dataclass
class AttemptState:
    """How many times credentials were requested during one transport operation."""
    count: int = 0
    ceiling: int = MAX_ATTEMPT_INDEX


def configured_helper(repo: git.Repo) -> str | None:
    """The credential.helper visible to repo (system, global or local), if any."""
    reader = repo.config_reader()
    value = reader.get_value("credential", "helper", default="")
    return str(value) or None


class CredentialNegotiator:
    """Supplies the next credential to try for a remote URL."""

    def __init__(
        self,
        key_dir: Path | None = None,
        key_names: tuple[str, ...] = DEFAULT_KEY_NAMES,
        helper_lookup: Callable[[str], str | None] | None = None,
    ) -> None:
        self.key_dir = key_dir
        self.key_names = key_names
        self.helper_lookup = helper_lookup

    def new_state(self) -> AttemptState:
        return AttemptState()

    def default_key(self) -> Path | None:
        """First existing key file among the default names, in order."""
        directory = self.key_dir or ssh_dir()
        for name in self.key_names:
            candidate = directory / name
            if candidate.exists():
                return candidate
        return None

    def credentials(
        self,
        url: str,
        username_from_url: str | None,
        allowed: CredentialType,
        state: AttemptState,
    ) -> Credential:
        count = state.count
        state.count += 1

        if count > state.ceiling:
            raise AuthError(EXHAUSTED_MESSAGE, url, attempts=state.count, exhausted=True)

        user = username_from_url or DEFAULT_USER

        if allowed & CredentialType.SSH_KEY:
            if count == 0:
                logger.debug("Offering SSH agent identities for %s@%s", user, url)
                return AgentKeyCredential(user)
            key = self.default_key()
            if key is not None:
                logger.debug("Offering key file %s for %s", key, url)
                return KeyFileCredential(user, key)

        if allowed & CredentialType.USERPASS_PLAINTEXT and self.helper_lookup is not None:
            helper = self.helper_lookup(url)
            if helper:
                logger.debug("Deferring to credential helper %r for %s", helper, url)
                return HelperCredential(username_from_url, helper)

        raise AuthError("No valid authentication methods found", url, attempts=state.count)
