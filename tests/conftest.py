"""Shared fixtures: a local source repository with a tag, a branch and a pull request ref."""

from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path
from types import SimpleNamespace

import pytest

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")

_GIT_IDENTITY = {
    "GIT_AUTHOR_NAME": "Ada Author",
    "GIT_AUTHOR_EMAIL": "ada@example.com",
    "GIT_COMMITTER_NAME": "Carl Committer",
    "GIT_COMMITTER_EMAIL": "carl@example.com",
}


def git(cwd: Path, *args: str) -> str:
    env = {**os.environ, **_GIT_IDENTITY}
    result = subprocess.run(
        ["git", "-c", "commit.gpgsign=false", "-c", "tag.gpgsign=false", *args],
        cwd=str(cwd),
        env=env,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip()


@pytest.fixture
def source_repo(tmp_path):
    repo = tmp_path / "source"
    repo.mkdir()
    git(repo, "init", "-q")
    git(repo, "symbolic-ref", "HEAD", "refs/heads/main")

    (repo / "README.md").write_text("first\n", encoding="utf-8")
    git(repo, "add", "README.md")
    git(repo, "commit", "-q", "-m", "Initial commit")
    git(repo, "tag", "v1.0")
    initial = git(repo, "rev-parse", "HEAD")

    git(repo, "checkout", "-q", "-b", "feature", "v1.0")
    (repo / "feature.txt").write_text("feature\n", encoding="utf-8")
    git(repo, "add", "feature.txt")
    git(repo, "commit", "-q", "-m", "Add feature")
    feature = git(repo, "rev-parse", "HEAD")
    git(repo, "update-ref", "refs/pull/7/merge", feature)

    git(repo, "checkout", "-q", "main")
    (repo / "README.md").write_text("second\n", encoding="utf-8")
    git(repo, "commit", "-q", "-am", "Second commit", "-m", "Body line")
    main = git(repo, "rev-parse", "HEAD")

    return SimpleNamespace(
        path=repo,
        url=repo.as_uri(),
        initial=initial,
        feature=feature,
        main=main,
    )
