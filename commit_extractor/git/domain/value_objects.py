"""Value objects for Git domain."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum


class FileChangeType(str, Enum):
    """Type of file change in a commit."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"
    COPIED = "copied"
    TYPE_CHANGED = "type_changed"


class CommitType(str, Enum):
    """Shape of a commit with respect to its parents."""

    ROOT = "root"
    NORMAL = "normal"
    MERGE = "merge"


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
# Range representable by datetime; git itself accepts dates outside it
_MIN_TIMESTAMP = (datetime.min.replace(tzinfo=timezone.utc) - _EPOCH) // timedelta(seconds=1)
_MAX_TIMESTAMP = (
    datetime.max.replace(microsecond=0, tzinfo=timezone.utc) - _EPOCH
) // timedelta(seconds=1)


@dataclass(frozen=True)
class Signature:
    """Author or committer identity with the time it was recorded."""

    name: str
    email: str
    timestamp: int
    offset_minutes: int = 0

    @property
    def utc_datetime(self) -> datetime:
        """
        The recorded time in UTC.

        Times beyond what datetime can hold (git accepts dates after year
        9999) are clamped to the nearest representable second.
        """
        seconds = min(max(self.timestamp, _MIN_TIMESTAMP), _MAX_TIMESTAMP)
        return _EPOCH + timedelta(seconds=seconds)


@dataclass(frozen=True)
class CommitMetadata:
    """Raw commit object fields as stored in the repository."""

    id: str
    parents: tuple[str, ...]
    author: Signature
    committer: Signature
    message: str

    @property
    def commit_type(self) -> CommitType:
        if not self.parents:
            return CommitType.ROOT
        if len(self.parents) > 1:
            return CommitType.MERGE
        return CommitType.NORMAL


@dataclass(frozen=True)
class GraphEntry:
    """One node of the commit graph: id, parent links and committer time."""

    id: str
    parents: tuple[str, ...]
    timestamp: int


@dataclass(frozen=True)
class HunkCounts:
    """
    Hunks of a zero-context diff of one file, grouped by shape.

    A hunk that only inserts lines is "added", one that only deletes lines
    is "removed", and one that replaces lines is "modified". lines_modified
    counts the lines replaced in place, min(old, new) of each modified hunk.
    """

    added: int = 0
    removed: int = 0
    modified: int = 0
    lines_modified: int = 0

    def add_hunk(self, old_lines: int, new_lines: int) -> "HunkCounts":
        if old_lines == 0:
            return HunkCounts(self.added + 1, self.removed, self.modified, self.lines_modified)
        if new_lines == 0:
            return HunkCounts(self.added, self.removed + 1, self.modified, self.lines_modified)
        return HunkCounts(
            self.added,
            self.removed,
            self.modified + 1,
            self.lines_modified + min(old_lines, new_lines),
        )


@dataclass(frozen=True)
class FilePatch:
    """Line-change summary for one file between two trees."""

    path: str
    change_type: FileChangeType
    lines_added: int = 0
    lines_removed: int = 0
    is_binary: bool = False
    old_path: str | None = None  # For renamed/copied files
    hunks: HunkCounts = HunkCounts()

    def __post_init__(self) -> None:
        """Validate the line and hunk counts."""
        if self.lines_added < 0 or self.lines_removed < 0:
            raise ValueError(
                f"Line counts cannot be negative for {self.path}: "
                f"+{self.lines_added} -{self.lines_removed}"
            )
        if self.is_binary and (self.lines_added or self.lines_removed):
            raise ValueError(f"Binary file {self.path} cannot carry line counts")
        if self.is_binary and self.hunks != HunkCounts():
            raise ValueError(f"Binary file {self.path} cannot carry hunks")
