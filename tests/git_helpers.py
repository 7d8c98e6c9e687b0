"""Helpers for building git repositories and fakes in tests."""

import os
import subprocess
from collections.abc import Callable, Iterable, Iterator, Mapping
from pathlib import Path

from commit_extractor.acquisition.domain.value_objects import CredentialOptions, RemoteLocation
from commit_extractor.acquisition.repositories.interfaces import CredentialProvider
from commit_extractor.errors import DiffComputationError, GitCommandError, ObjectGraphError
from commit_extractor.git.domain.value_objects import (
    CommitMetadata,
    FilePatch,
    GraphEntry,
    Signature,
)
from commit_extractor.git.repositories.interfaces import GitRepository

BASE_TIMESTAMP = 1_700_000_000


def commit_id(char: str) -> str:
    return char * 40


class RepoBuilder:
    """Creates commits with fixed identities and dates in a working repository."""

    def __init__(self, path: Path, branch: str = "main") -> None:
        path.mkdir(parents=True, exist_ok=True)
        self.path = path
        self._clock = BASE_TIMESTAMP
        self.git("init", "--quiet", "-b", branch)

    @property
    def url(self) -> str:
        return self.path.as_uri()

    def git(self, *args: str, timestamp: int | None = None) -> str:
        env = dict(os.environ)
        if timestamp is not None:
            env["GIT_AUTHOR_DATE"] = f"@{timestamp} +0000"
            env["GIT_COMMITTER_DATE"] = f"@{timestamp} +0000"
        result = subprocess.run(
            ["git", *args],
            cwd=self.path,
            env=env,
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout.strip()

    def write(self, relative_path: str, content: str | bytes) -> None:
        file_path = self.path / relative_path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            file_path.write_bytes(content)
        else:
            file_path.write_text(content)

    def _next_timestamp(self, timestamp: int | None) -> int:
        if timestamp is None:
            self._clock += 60
            return self._clock
        self._clock = max(self._clock, timestamp)
        return timestamp

    def commit(self, message: str, timestamp: int | None = None) -> str:
        self.git("add", "-A")
        self.git(
            "commit",
            "--quiet",
            "--allow-empty",
            "-m",
            message,
            timestamp=self._next_timestamp(timestamp),
        )
        return self.git("rev-parse", "HEAD")

    def merge(self, branch: str, message: str, timestamp: int | None = None) -> str:
        self.git(
            "merge",
            "--quiet",
            "--no-ff",
            "-m",
            message,
            branch,
            timestamp=self._next_timestamp(timestamp),
        )
        return self.git("rev-parse", "HEAD")

    def checkout(self, branch: str, create: bool = False) -> None:
        if create:
            self.git("checkout", "--quiet", "-b", branch)
        else:
            self.git("checkout", "--quiet", branch)


def build_diamond_history(builder: RepoBuilder) -> dict[str, str]:
    """
    Build a history with a merge and an unmerged branch.

    main:    A --- B --- M
               \\       /  \\
    feature:    C -----     E (topic)

    Returns:
        Mapping of commit letters to hashes
    """
    commits: dict[str, str] = {}

    builder.write("README.md", "hello\nworld\n")
    builder.write("src/app.py", "import sys\n\nprint(sys.argv)\n")
    commits["A"] = builder.commit("Initial commit", timestamp=BASE_TIMESTAMP + 1000)

    builder.checkout("feature", create=True)
    builder.write("feature.txt", "first\nsecond\n")
    commits["C"] = builder.commit("Add feature", timestamp=BASE_TIMESTAMP + 2000)

    builder.checkout("main")
    builder.write("README.md", "hello\nworld\nagain\n")
    commits["B"] = builder.commit("Update readme", timestamp=BASE_TIMESTAMP + 3000)

    commits["M"] = builder.merge(
        "feature", "Merge branch 'feature'", timestamp=BASE_TIMESTAMP + 4000
    )

    builder.checkout("topic", create=True)
    builder.write("notes.txt", "note\n")
    commits["E"] = builder.commit("Add notes", timestamp=BASE_TIMESTAMP + 5000)
    builder.checkout("main")

    return commits


def make_metadata(
    commit_hash: str,
    parents: tuple[str, ...] = (),
    timestamp: int = BASE_TIMESTAMP,
    message: str = "message\n",
) -> CommitMetadata:
    signature = Signature(name="Ada Lovelace", email="ada@example.com", timestamp=timestamp)
    return CommitMetadata(
        id=commit_hash,
        parents=parents,
        author=signature,
        committer=signature,
        message=message,
    )


class InMemoryGitRepository(GitRepository):
    """GitRepository backed by dictionaries."""

    def __init__(
        self,
        commits: Iterable[CommitMetadata] = (),
        heads: Iterable[str] = (),
        patches: Mapping[tuple[str | None, str], tuple[FilePatch, ...]] | None = None,
        clone_failures: Iterable[str] = (),
        clone_progress: Iterable[str] = (),
    ) -> None:
        self.commits = {commit.id: commit for commit in commits}
        self.heads = tuple(heads)
        self.patches = dict(patches or {})
        self.clone_failures = list(clone_failures)
        self.clone_progress = tuple(clone_progress)
        self.clone_calls: list[tuple[str, Path, tuple[str, ...], dict[str, str]]] = []
        self.diff_calls: list[tuple[str | None, str]] = []

    def clone_bare(
        self,
        url: str,
        target: Path,
        config: tuple[str, ...] = (),
        env: Mapping[str, str] | None = None,
        progress: Callable[[str], None] | None = None,
    ) -> None:
        self.clone_calls.append((url, target, config, dict(env or {})))
        if progress is not None:
            for line in self.clone_progress:
                progress(line)
        if self.clone_failures:
            raise GitCommandError("clone", 128, self.clone_failures.pop(0))
        target.mkdir(parents=True)

    def count_objects(self, repo_path: Path) -> dict[str, str]:
        return {"in-pack": str(len(self.commits)), "size-pack": "4"}

    def list_head_refs(self, repo_path: Path) -> tuple[str, ...]:
        return self.heads

    def list_commit_graph(self, repo_path: Path, tips: Iterable[str]) -> Iterator[GraphEntry]:
        pending = list(tips)
        seen: set[str] = set()
        while pending:
            commit_hash = pending.pop()
            if commit_hash in seen:
                continue
            seen.add(commit_hash)
            commit = self.commits.get(commit_hash)
            if commit is None:
                # Truncated history: the walker sees a dangling parent link
                continue
            yield GraphEntry(
                id=commit.id,
                parents=commit.parents,
                timestamp=commit.committer.timestamp,
            )
            pending.extend(commit.parents)

    def resolve_commit(self, repo_path: Path, commit_hash: str) -> CommitMetadata:
        try:
            return self.commits[commit_hash]
        except KeyError as e:
            raise ObjectGraphError(f"Failed to read commit {commit_hash}") from e

    def diff_trees(
        self,
        repo_path: Path,
        old_commit: str | None,
        new_commit: str,
        detect_renames: bool = True,
    ) -> tuple[FilePatch, ...]:
        self.diff_calls.append((old_commit, new_commit))
        try:
            return self.patches[(old_commit, new_commit)]
        except KeyError as e:
            raise DiffComputationError(f"Failed to diff {new_commit}") from e


class StubCredentialProvider(CredentialProvider):
    """Provider with a fixed answer to supports()."""

    def __init__(self, name: str, supported: bool = True) -> None:
        self.name = name
        self._supported = supported

    def supports(self, location: RemoteLocation) -> bool:
        return self._supported

    def credential_options(self, location: RemoteLocation) -> CredentialOptions:
        return CredentialOptions(config=(f"user.name={self.name}",), env={"PROVIDER": self.name})
