from __future__ import annotations

import os
import shutil
from collections.abc import Callable
from pathlib import Path

import pytest

from git_helpers import RepoBuilder, build_diamond_history


@pytest.fixture(autouse=True)
def isolated_git_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", os.devnull)
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Ada Lovelace")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "ada@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Charles Babbage")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "charles@example.com")
    for name in (
        "SSH_AUTH_SOCK",
        "GIT_SSH_COMMAND",
        "GIT_DIR",
        "COMMIT_EXTRACTOR_USERNAME",
        "COMMIT_EXTRACTOR_PASSWORD",
        "COMMIT_EXTRACTOR_WORKDIR",
        "COMMIT_EXTRACTOR_PROGRESS_INTERVAL",
        "COMMIT_EXTRACTOR_DETECT_RENAMES",
        "COMMIT_EXTRACTOR_GIT",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_repo(tmp_path: Path) -> Callable[[str], RepoBuilder]:
    if shutil.which("git") is None:
        pytest.skip("git is not installed")

    def _make(name: str = "remote") -> RepoBuilder:
        return RepoBuilder(tmp_path / name)

    return _make


@pytest.fixture
def diamond_repo(make_repo: Callable[[str], RepoBuilder]) -> tuple[RepoBuilder, dict[str, str]]:
    builder = make_repo("diamond")
    return builder, build_diamond_history(builder)


@pytest.fixture
def bare_clone(tmp_path: Path) -> Callable[[RepoBuilder], Path]:
    """Clone a working repository the way the acquirer does."""

    def _clone(builder: RepoBuilder) -> Path:
        target = tmp_path / f"{builder.path.name}.git"
        builder.git("clone", "--quiet", "--bare", builder.url, str(target))
        return target

    return _clone
