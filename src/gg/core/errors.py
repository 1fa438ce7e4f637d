"""Error taxonomy shared by every sync operation.

Each error carries structured context instead of a bare message, and a
``kind`` tag so callers can branch without inspecting text:

- ``precondition``: the repository is not in a state the operation accepts
- ``auth``: the credential negotiator ran out of methods or attempts
- ``conflict``: a replayed commit conflicted (the replay was rolled back)
- ``transport``: fetch or push failed for a non-authentication reason
- ``io``: a working-tree write failed
"""

from __future__ import annotations

from pathlib import Path


class SyncError(Exception):
    kind = "error"

    def to_dict(self) -> dict:
        return {"kind": self.kind, "error": str(self)}


class PreconditionError(SyncError):
    kind = "precondition"

    def __init__(
        self,
        reason: str,
        message: str,
        ref: str | None = None,
        path: str | Path | None = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.ref = ref
        self.path = str(path) if path is not None else None

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({"reason": self.reason, "ref": self.ref, "path": self.path})
        return data


class AuthError(SyncError):
    kind = "auth"

    def __init__(self, message: str, url: str, attempts: int, exhausted: bool = False) -> None:
        super().__init__(message)
        self.url = url
        self.attempts = attempts
        self.exhausted = exhausted

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({"url": self.url, "attempts": self.attempts, "exhausted": self.exhausted})
        return data


class ConflictError(SyncError):
    kind = "conflict"

    def __init__(self, paths: list[str], commit: str | None = None) -> None:
        where = f" while replaying {commit[:10]}" if commit else ""
        super().__init__(
            f"Conflict{where} in {', '.join(paths)}. Rebase aborted; resolve manually."
        )
        self.paths = paths
        self.commit = commit

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({"paths": self.paths, "commit": self.commit})
        return data


class TransportError(SyncError):
    kind = "transport"

    def __init__(self, message: str, remote: str, operation: str) -> None:
        super().__init__(message)
        self.remote = remote
        self.operation = operation

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({"remote": self.remote, "operation": self.operation})
        return data


class ArtifactIOError(SyncError):
    kind = "io"

    def __init__(self, message: str, path: str | Path) -> None:
        super().__init__(message)
        self.path = str(path)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["path"] = self.path
        return data
