"""Pydantic v2 models for operation results."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class MergeAnalysis(str, Enum):
    up_to_date = "up_to_date"
    fast_forward = "fast_forward"
    normal = "normal"


class SyncAction(str, Enum):
    no_remote = "no_remote"
    remote_empty = "remote_empty"
    up_to_date = "up_to_date"
    fast_forward = "fast_forward"
    merged = "merged"
    rebased = "rebased"


# -- Working tree --


class CheckoutReport(BaseModel):
    added: list[str] = Field(default_factory=list)
    modified: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)

    @property
    def changed(self) -> int:
        return len(self.added) + len(self.modified) + len(self.removed)


# -- Conflicts --


class ConflictEntry(BaseModel):
    """A single conflicted path and what the resolver did with it."""
    path: str
    has_ours: bool
    has_theirs: bool
    resolved: bool = False
    artifact: str | None = None


class ConflictReport(BaseModel):
    conflicts: list[ConflictEntry] = Field(default_factory=list)
    artifact_errors: list[str] = Field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return any(not c.resolved for c in self.conflicts)

    @property
    def resolved(self) -> list[str]:
        return [c.path for c in self.conflicts if c.resolved]

    @property
    def unresolved(self) -> list[str]:
        return [c.path for c in self.conflicts if not c.resolved]

    @property
    def artifacts(self) -> list[str]:
        return [c.artifact for c in self.conflicts if c.artifact]

    def summary(self) -> dict[str, Any]:
        return {
            "total": len(self.conflicts),
            "resolved": self.resolved,
            "unresolved": self.unresolved,
            "artifacts": self.artifacts,
            "artifact_errors": self.artifact_errors,
        }


# -- Core operations --


class MergeOutcome(BaseModel):
    commit: str
    parents: list[str]
    base: str
    message: str
    report: ConflictReport = Field(default_factory=ConflictReport)
    checkout: CheckoutReport = Field(default_factory=CheckoutReport)


class ReconcileOutcome(BaseModel):
    action: str  # "remote_empty", "initialized", "up_to_date", "rebased"
    branch: str
    remote_ref: str
    head: str | None = None
    replayed: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    tracking: str | None = None
    checkout: CheckoutReport | None = None


class SyncResult(BaseModel):
    action: SyncAction
    remote: str
    branch: str | None = None
    analysis: MergeAnalysis | None = None
    head: str | None = None
    checkout: CheckoutReport | None = None
    merge: MergeOutcome | None = None
    reconcile: ReconcileOutcome | None = None


# -- Facade operations --


class CommitResult(BaseModel):
    status: str  # "committed", "amended", "nothing_to_commit"
    message: str
    commit: str | None = None


class PushResult(BaseModel):
    status: str  # "pushed", "no_remote"
    remote: str
    branch: str
    refspec: str | None = None


class SaveResult(BaseModel):
    commit: CommitResult
    sync: SyncResult | None = None
    push: PushResult | None = None


class SavePreview(BaseModel):
    """What `save` would commit, computed without touching the index."""
    message: str | None = None
    amend: bool = False
    added: list[str] = Field(default_factory=list)
    modified: list[str] = Field(default_factory=list)
    deleted: list[str] = Field(default_factory=list)
    untracked: list[str] = Field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not (self.added or self.modified or self.deleted or self.untracked)


class FeatureResult(BaseModel):
    branch: str
    created: bool
    sync: SyncResult
    push: PushResult | None = None


class FinishResult(BaseModel):
    status: str  # "finished", "already_on_trunk"
    branch: str
    trunk: str
    deleted: bool = False
    sync: SyncResult | None = None


class LinkResult(BaseModel):
    remote: str
    url: str
    created: bool
    synced: bool = False
    reconcile: ReconcileOutcome | None = None
    error: dict[str, Any] | None = None


class StatusResult(BaseModel):
    branch: str | None = None
    head: str | None = None
    remote: str
    remote_url: str | None = None
    tracking: str | None = None
    ahead: int = 0
    behind: int = 0
    dirty: bool = False
    conflicts: list[str] = Field(default_factory=list)
    artifacts: list[str] = Field(default_factory=list)
