"""Git domain entities."""

from dataclasses import dataclass, field
from datetime import datetime

from commit_extractor.git.domain.value_objects import CommitType, FilePatch


@dataclass(frozen=True)
class CommitRecord:
    """
    Commit entity with its change metrics.

    Metrics are derived from file_changes, which hold the diff against
    diff_base (the first parent, or None for a root commit).
    """

    id: str
    parents: tuple[str, ...]
    author: str
    author_email: str
    committer: str
    committer_email: str
    timestamp: datetime
    authored_at: datetime
    committer_utc_offset: int  # Minutes east of UTC
    author_utc_offset: int
    message: str
    commit_type: CommitType
    diff_base: str | None
    file_changes: tuple[FilePatch, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        """Validate the relationship between parents and the diff base."""
        if self.parents and self.diff_base != self.parents[0]:
            raise ValueError(
                f"Commit {self.id} must be diffed against its first parent "
                f"{self.parents[0]}, got {self.diff_base}"
            )
        if not self.parents and self.diff_base is not None:
            raise ValueError(f"Root commit {self.id} cannot have a diff base")

    @property
    def changed_paths(self) -> tuple[str, ...]:
        return tuple(change.path for change in self.file_changes)

    @property
    def lines_added(self) -> int:
        return sum(change.lines_added for change in self.file_changes)

    @property
    def lines_removed(self) -> int:
        return sum(change.lines_removed for change in self.file_changes)

    @property
    def files_changed(self) -> int:
        return len(self.file_changes)
