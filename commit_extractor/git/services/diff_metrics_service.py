"""Per-commit change metrics computed against the first parent."""

from pathlib import Path

from commit_extractor.git.domain.entities import CommitRecord
from commit_extractor.git.domain.value_objects import CommitMetadata
from commit_extractor.git.repositories.interfaces import GitRepository


class DiffMetricsService:
    """
    Service building a CommitRecord from a commit and its diff.

    Root commits are diffed against the empty tree. Ordinary commits are
    diffed against their parent. Merge commits are diffed against their
    first parent only, i.e. what the merge brought into the mainline; the
    changes of the other parents are not combined. The record's diff_base
    names the parent that was used.
    """

    def __init__(self, git_repository: GitRepository, detect_renames: bool = True) -> None:
        """
        Initialize DiffMetricsService.

        Args:
            git_repository: Repository implementation for Git operations
            detect_renames: Whether renamed files count as one change
        """
        self._git_repository = git_repository
        self._detect_renames = detect_renames

    def compute(self, repo_path: Path, commit_hash: str) -> CommitRecord:
        """
        Compute the change metrics of a commit.

        Args:
            repo_path: Path to the git repository
            commit_hash: Hash of the commit

        Returns:
            CommitRecord with metadata and file changes

        Raises:
            ObjectGraphError: If the commit object cannot be read
            DiffComputationError: If the commit's trees cannot be diffed
        """
        metadata = self._git_repository.resolve_commit(repo_path, commit_hash)
        return self.compute_from_metadata(repo_path, metadata)

    def compute_from_metadata(self, repo_path: Path, metadata: CommitMetadata) -> CommitRecord:
        """
        Compute the change metrics of an already resolved commit.

        Args:
            repo_path: Path to the git repository
            metadata: Commit metadata from resolve_commit

        Returns:
            CommitRecord with metadata and file changes
        """
        diff_base = metadata.parents[0] if metadata.parents else None
        file_changes = self._git_repository.diff_trees(
            repo_path,
            diff_base,
            metadata.id,
            detect_renames=self._detect_renames,
        )

        return CommitRecord(
            id=metadata.id,
            parents=metadata.parents,
            author=metadata.author.name,
            author_email=metadata.author.email,
            committer=metadata.committer.name,
            committer_email=metadata.committer.email,
            timestamp=metadata.committer.utc_datetime,
            authored_at=metadata.author.utc_datetime,
            committer_utc_offset=metadata.committer.offset_minutes,
            author_utc_offset=metadata.author.offset_minutes,
            message=metadata.message,
            commit_type=metadata.commit_type,
            diff_base=diff_base,
            file_changes=file_changes,
        )
