"""Repository interfaces for Git operations."""

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Iterator, Mapping
from pathlib import Path

from commit_extractor.git.domain.value_objects import CommitMetadata, FilePatch, GraphEntry


class GitRepository(ABC):
    """Interface for Git object access."""

    @abstractmethod
    def clone_bare(
        self,
        url: str,
        target: Path,
        config: tuple[str, ...] = (),
        env: Mapping[str, str] | None = None,
        progress: Callable[[str], None] | None = None,
    ) -> None:
        """
        Clone a remote repository's object graph into a bare repository.

        Args:
            url: Remote repository URL
            target: Directory to clone into (must not exist or be empty)
            config: Extra "key=value" git configuration for this invocation
            env: Extra environment variables for this invocation
            progress: Called with each progress line git reports while cloning

        Raises:
            GitCommandError: If git exits with a non-zero status
        """
        ...

    @abstractmethod
    def count_objects(self, repo_path: Path) -> dict[str, str]:
        """
        Report object storage statistics for a repository.

        Args:
            repo_path: Path to the git repository

        Returns:
            Mapping of statistic names to their values
        """
        ...

    @abstractmethod
    def list_head_refs(self, repo_path: Path) -> tuple[str, ...]:
        """
        List the commits at the tip of every branch and HEAD.

        Args:
            repo_path: Path to the git repository

        Returns:
            Tuple of distinct commit hashes, in reference name order
        """
        ...

    @abstractmethod
    def list_commit_graph(self, repo_path: Path, tips: Iterable[str]) -> Iterator[GraphEntry]:
        """
        Enumerate every commit reachable from the given tips.

        Args:
            repo_path: Path to the git repository
            tips: Commit hashes to start from

        Returns:
            Iterator of graph entries, in no guaranteed order
        """
        ...

    @abstractmethod
    def resolve_commit(self, repo_path: Path, commit_hash: str) -> CommitMetadata:
        """
        Read a commit object.

        Args:
            repo_path: Path to the git repository
            commit_hash: Hash of the commit

        Returns:
            CommitMetadata parsed from the raw commit object
        """
        ...

    @abstractmethod
    def diff_trees(
        self,
        repo_path: Path,
        old_commit: str | None,
        new_commit: str,
        detect_renames: bool = True,
    ) -> tuple[FilePatch, ...]:
        """
        Diff the trees of two commits.

        Args:
            repo_path: Path to the git repository
            old_commit: Hash of the base commit, or None for the empty tree
            new_commit: Hash of the commit to compare
            detect_renames: Whether to pair deletions and additions as renames

        Returns:
            Tuple of file patches ordered by path
        """
        ...
