"""Tests for the error taxonomy and result models."""

from __future__ import annotations

from gg.core.errors import (
    ArtifactIOError,
    AuthError,
    ConflictError,
    PreconditionError,
    SyncError,
    TransportError,
)
from gg.core.schema import ConflictEntry, ConflictReport


class TestErrors:
    def test_kinds(self):
        errors = [
            PreconditionError("dirty", "dirty tree"),
            AuthError("nope", "git@host:r.git", attempts=1),
            ConflictError(["a.txt"]),
            TransportError("boom", "origin", "fetch"),
            ArtifactIOError("disk full", "a.txt"),
        ]
        assert [e.kind for e in errors] == ["precondition", "auth", "conflict", "transport", "io"]
        assert all(isinstance(e, SyncError) for e in errors)

    def test_precondition_to_dict(self):
        d = PreconditionError("detached_head", "HEAD is detached", ref="HEAD").to_dict()
        assert d == {
            "kind": "precondition",
            "error": "HEAD is detached",
            "reason": "detached_head",
            "ref": "HEAD",
            "path": None,
        }

    def test_conflict_message_names_commit_and_paths(self):
        e = ConflictError(["a.txt", "b.txt"], commit="0123456789abcdef")
        assert "0123456789" in str(e)
        assert "a.txt, b.txt" in str(e)
        assert e.to_dict()["paths"] == ["a.txt", "b.txt"]

    def test_auth_to_dict(self):
        d = AuthError("tried", "ssh://h/r", attempts=4, exhausted=True).to_dict()
        assert d["exhausted"] is True
        assert d["attempts"] == 4


class TestConflictReport:
    def test_empty_report(self):
        report = ConflictReport()
        assert not report.has_conflicts
        assert report.summary()["total"] == 0

    def test_mixed(self):
        report = ConflictReport(conflicts=[
            ConflictEntry(path="a.txt", has_ours=True, has_theirs=True, resolved=True, artifact="a.txt.theirs"),
            ConflictEntry(path="b.txt", has_ours=False, has_theirs=True, artifact="b.txt.theirs"),
        ])
        assert report.has_conflicts
        assert report.resolved == ["a.txt"]
        assert report.unresolved == ["b.txt"]
        assert report.artifacts == ["a.txt.theirs", "b.txt.theirs"]

    def test_json_round_trip(self):
        report = ConflictReport(conflicts=[ConflictEntry(path="a.txt", has_ours=True, has_theirs=True)])
        assert ConflictReport.model_validate_json(report.model_dump_json()) == report
