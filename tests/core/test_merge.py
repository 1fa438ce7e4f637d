"""Tests for tree merging, the merge orchestrator and conflict resolution."""

from pathlib import Path

import git
import pytest

from gg.core.checkout import checkout_tree
from gg.core.conflicts import clean_artifacts, find_artifacts, resolve
from gg.core.errors import PreconditionError
from gg.core.merge import merge_commits, merge_message
from gg.core.mergetree import conflicted_paths, has_conflicts, merge_trees


@pytest.fixture
def diverge(tmp_git_repo, commit):
    """Build base -> theirs and base -> ours (on main, checked out)."""

    def _diverge(base_files, ours_files, theirs_files):
        repo = git.Repo(tmp_git_repo)
        base = commit(tmp_git_repo, base_files, "base")
        theirs = commit(tmp_git_repo, theirs_files, "theirs")
        repo.heads.main.set_commit(base)
        checkout_tree(repo, base, theirs)
        ours = commit(tmp_git_repo, ours_files, "ours")
        return repo, base, ours, theirs

    return _diverge


class TestMergeTrees:
    def test_disjoint_changes_merge_cleanly(self, diverge):
        repo, base, ours, theirs = diverge({"a.txt": "a\n"}, {"a.txt": "A\n"}, {"b.txt": "b\n"})
        index = merge_trees(repo, base.tree, ours.tree, theirs.tree)
        assert not has_conflicts(index)
        paths = {path for path, _stage in index.entries}
        assert {"a.txt", "b.txt", "README.md"} <= paths

    def test_non_overlapping_edits_to_one_file(self, diverge):
        lines = "".join(f"{i}\n" for i in range(1, 10))
        repo, base, ours, theirs = diverge(
            {"n.txt": lines},
            {"n.txt": lines.replace("1\n", "one\n", 1)},
            {"n.txt": lines.replace("9\n", "nine\n")},
        )
        index = merge_trees(repo, base.tree, ours.tree, theirs.tree)
        assert not has_conflicts(index)
        tree = index.write_tree()
        merged = tree["n.txt"].data_stream.read().decode()
        assert merged.startswith("one\n")
        assert merged.endswith("nine\n")

    def test_overlapping_edits_conflict(self, diverge):
        repo, base, ours, theirs = diverge({"f.txt": "base\n"}, {"f.txt": "ours\n"}, {"f.txt": "theirs\n"})
        index = merge_trees(repo, base.tree, ours.tree, theirs.tree)
        assert conflicted_paths(index) == ["f.txt"]

    def test_does_not_touch_repository(self, diverge):
        repo, base, ours, theirs = diverge({"f.txt": "base\n"}, {"f.txt": "ours\n"}, {"f.txt": "theirs\n"})
        merge_trees(repo, base.tree, ours.tree, theirs.tree)
        assert repo.head.commit == ours
        assert not has_conflicts(repo.index)
        assert not repo.is_dirty(untracked_files=True)

    def test_missing_base_is_empty_tree(self, diverge):
        repo, base, ours, theirs = diverge({"a.txt": "a\n"}, {"x.txt": "x\n"}, {"y.txt": "y\n"})
        index = merge_trees(repo, None, ours.tree, theirs.tree)
        paths = {path for path, _stage in index.entries}
        assert {"x.txt", "y.txt"} <= paths

    def test_removes_temporary_index(self, diverge):
        repo, base, ours, theirs = diverge({"a.txt": "a\n"}, {"a.txt": "A\n"}, {"b.txt": "b\n"})
        index = merge_trees(repo, base.tree, ours.tree, theirs.tree)
        assert not Path(index.path).exists()


class TestMergeCommits:
    def test_disjoint_files(self, diverge):
        repo, base, ours, theirs = diverge({"a.txt": "a\n"}, {"l1.txt": "local\n"}, {"r1.txt": "remote\n"})
        outcome = merge_commits(repo, "origin", "main", ours, theirs)

        commit = repo.head.commit
        assert outcome.commit == commit.hexsha
        assert list(commit.parents) == [ours, theirs]
        assert outcome.base == base.hexsha
        assert commit.message == merge_message("origin", "main")
        assert {"l1.txt", "r1.txt"} <= {b.path for b in commit.tree.traverse()}
        assert not outcome.report.conflicts
        assert find_artifacts(Path(repo.working_tree_dir)) == []
        assert not repo.is_dirty(untracked_files=True)

    def test_conflict_keeps_ours_and_writes_theirs(self, diverge):
        repo, base, ours, theirs = diverge({"f.txt": "base\n"}, {"f.txt": "ours\n"}, {"f.txt": "theirs\n"})
        outcome = merge_commits(repo, "origin", "main", ours, theirs)

        root = Path(repo.working_tree_dir)
        assert (root / "f.txt").read_text() == "ours\n"
        assert (root / "f.txt.theirs").read_text() == "theirs\n"
        assert outcome.report.resolved == ["f.txt"]
        assert outcome.report.artifacts == ["f.txt.theirs"]
        assert len(repo.head.commit.parents) == 2
        assert repo.head.commit.tree["f.txt"].data_stream.read() == b"ours\n"
        assert not has_conflicts(repo.index)
        assert not repo.is_dirty(untracked_files=False)

    def test_n_conflicts_give_n_artifacts(self, diverge):
        names = ["one.txt", "dir/two.txt", "three.txt"]
        repo, base, ours, theirs = diverge(
            {n: "base\n" for n in names},
            {n: f"ours {n}\n" for n in names},
            {n: f"theirs {n}\n" for n in names},
        )
        outcome = merge_commits(repo, "origin", "main", ours, theirs)

        root = Path(repo.working_tree_dir)
        artifacts = find_artifacts(root)
        assert len(artifacts) == len(names)
        for n in names:
            assert (root / n).read_text() == f"ours {n}\n"
            assert (root / f"{n}.theirs").read_text() == f"theirs {n}\n"
        assert not outcome.report.has_conflicts

    def test_local_deletion_wins(self, diverge):
        repo, base, ours, theirs = diverge({"d.txt": "base\n"}, {"d.txt": None}, {"d.txt": "changed\n"})
        outcome = merge_commits(repo, "origin", "main", ours, theirs)

        root = Path(repo.working_tree_dir)
        assert not (root / "d.txt").exists()
        assert (root / "d.txt.theirs").read_text() == "changed\n"
        assert outcome.report.unresolved == ["d.txt"]
        assert "d.txt" not in {b.path for b in repo.head.commit.tree.traverse()}

    def test_remote_deletion_keeps_local_edit(self, diverge):
        repo, base, ours, theirs = diverge({"d.txt": "base\n"}, {"d.txt": "edited\n"}, {"d.txt": None})
        outcome = merge_commits(repo, "origin", "main", ours, theirs)

        root = Path(repo.working_tree_dir)
        assert (root / "d.txt").read_text() == "edited\n"
        assert not (root / "d.txt.theirs").exists()
        assert outcome.report.resolved == ["d.txt"]

    def test_unrelated_histories_rejected(self, diverge):
        repo, base, ours, theirs = diverge({"a.txt": "a\n"}, {"b.txt": "b\n"}, {"c.txt": "c\n"})
        orphan = git.Commit.create_from_tree(repo, theirs.tree, "orphan", parent_commits=[], head=False)
        with pytest.raises(PreconditionError) as exc:
            merge_commits(repo, "origin", "main", ours, orphan)
        assert exc.value.reason == "no_merge_base"
        assert repo.head.commit == ours

    def test_missing_branch_rejected(self, diverge):
        repo, base, ours, theirs = diverge({"a.txt": "a\n"}, {"b.txt": "b\n"}, {"c.txt": "c\n"})
        with pytest.raises(PreconditionError) as exc:
            merge_commits(repo, "origin", "nope", ours, theirs)
        assert exc.value.reason == "no_branch"


class TestResolveIndex:
    def test_resolves_conflicted_index(self, diverge):
        repo, base, ours, theirs = diverge({"f.txt": "base\n"}, {"f.txt": "ours\n"}, {"f.txt": "theirs\n"})
        repo.git.merge(theirs.hexsha, with_exceptions=False)
        assert has_conflicts(repo.index)

        report = resolve(repo)

        root = Path(repo.working_tree_dir)
        assert not has_conflicts(repo.index)
        assert (root / "f.txt").read_text() == "ours\n"
        assert (root / "f.txt.theirs").read_text() == "theirs\n"
        assert report.resolved == ["f.txt"]

    def test_nothing_to_resolve(self, tmp_git_repo):
        with pytest.raises(PreconditionError) as exc:
            resolve(git.Repo(tmp_git_repo))
        assert exc.value.reason == "no_conflicts"


class TestCleanArtifacts:
    def test_removes_only_artifacts(self, tmp_git_repo):
        (tmp_git_repo / "a.txt.theirs").write_text("x")
        (tmp_git_repo / "sub").mkdir()
        (tmp_git_repo / "sub" / "b.txt.theirs").write_text("y")
        (tmp_git_repo / "sub" / "b.txt").write_text("keep")
        (tmp_git_repo / "theirs.txt").write_text("keep")

        removed = clean_artifacts(tmp_git_repo)

        assert removed == ["a.txt.theirs", "sub/b.txt.theirs"]
        assert find_artifacts(tmp_git_repo) == []
        assert (tmp_git_repo / "sub" / "b.txt").read_text() == "keep"
        assert (tmp_git_repo / "theirs.txt").read_text() == "keep"
        assert (tmp_git_repo / "README.md").exists()

    def test_skips_git_dir(self, tmp_git_repo):
        stray = tmp_git_repo / ".git" / "x.theirs"
        stray.write_text("meta")
        assert clean_artifacts(tmp_git_repo) == []
        assert stray.exists()
