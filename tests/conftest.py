"""Shared fixtures: isolated git identity, temp repos, upstream + clones."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

import git
import pytest


@pytest.fixture(autouse=True)
def git_env(monkeypatch, tmp_path_factory):
    """Fixed identity and an empty HOME so user/system git config never leaks in."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test Author")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "author@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test Committer")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "committer@example.com")
    return home


def _commit(root: Path, files: dict[str, Optional[str]], message: str) -> git.Commit:
    """Write (or, for None, delete) files under root and commit them."""
    repo = git.Repo(root)
    for name, content in files.items():
        if content is None:
            repo.index.remove([name], working_tree=True)
            continue
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        repo.index.add([name])
    return repo.index.commit(message)


@pytest.fixture
def commit() -> Callable[..., git.Commit]:
    return _commit


@pytest.fixture
def tmp_git_repo(tmp_path: Path) -> Path:
    """Create a temporary git repository on main with one commit."""
    repo = git.Repo.init(tmp_path / "work", initial_branch="main")
    root = Path(repo.working_tree_dir)
    _commit(root, {"README.md": "# Test\n"}, "initial")
    return root


@pytest.fixture
def two_repos(tmp_path: Path):
    """Create a bare upstream repo and two clones of it.

    Returns (upstream_path, clone_a_path, clone_b_path). Both clones start
    at the same single commit on main.
    """
    # Clone bare from a seeded repo; an empty bare repo has no branch
    seed = tmp_path / "seed"
    git.Repo.init(seed, initial_branch="main")
    _commit(seed, {"README.md": "# Test\n"}, "initial")
    upstream = tmp_path / "upstream.git"
    git.Repo.clone_from(str(seed), str(upstream), bare=True)

    clone_a = tmp_path / "clone_a"
    clone_b = tmp_path / "clone_b"
    git.Repo.clone_from(str(upstream), str(clone_a))
    git.Repo.clone_from(str(upstream), str(clone_b))
    return upstream, clone_a, clone_b
