"""Record emitter writing commit records as newline-delimited JSON."""

import json
from datetime import datetime, timezone
from typing import Any, TextIO

from commit_extractor.errors import OutputWriteError
from commit_extractor.git.domain.entities import CommitRecord
from commit_extractor.git.domain.value_objects import FilePatch


def format_timestamp(value: datetime) -> str:
    """Format a datetime as an ISO-8601 UTC string with a Z suffix."""
    utc = value.astimezone(timezone.utc).replace(tzinfo=None)
    return utc.isoformat(timespec="seconds") + "Z"


def format_utc_offset(minutes: int) -> str:
    """Format an offset in minutes as +HH:MM."""
    sign = "-" if minutes < 0 else "+"
    hours, remainder = divmod(abs(minutes), 60)
    return f"{sign}{hours:02d}:{remainder:02d}"


def _file_change_to_dict(change: FilePatch) -> dict[str, Any]:
    return {
        "path": change.path,
        "old_path": change.old_path,
        "change_type": change.change_type.value,
        "lines_added": change.lines_added,
        "lines_removed": change.lines_removed,
        "lines_modified": change.hunks.lines_modified,
        "hunks_added": change.hunks.added,
        "hunks_removed": change.hunks.removed,
        "hunks_modified": change.hunks.modified,
        "binary": change.is_binary,
    }


def record_to_dict(record: CommitRecord, repo_url: str | None = None) -> dict[str, Any]:
    """
    Convert a commit record to its JSON object, with a fixed field order.

    Args:
        record: Commit record to convert
        repo_url: Remote URL to attach to the record, if any

    Returns:
        Dictionary ready for json serialization
    """
    return {
        "id": record.id,
        "parents": list(record.parents),
        "author": record.author,
        "author_email": record.author_email,
        "committer": record.committer,
        "committer_email": record.committer_email,
        "timestamp": format_timestamp(record.timestamp),
        "authored_at": format_timestamp(record.authored_at),
        "committer_utc_offset": format_utc_offset(record.committer_utc_offset),
        "author_utc_offset": format_utc_offset(record.author_utc_offset),
        "message": record.message,
        "type": record.commit_type.value,
        "diff_base": record.diff_base,
        "files": list(record.changed_paths),
        "changes": [_file_change_to_dict(change) for change in record.file_changes],
        "lines_added": record.lines_added,
        "lines_removed": record.lines_removed,
        "files_changed": record.files_changed,
        "repo_url": repo_url,
    }


class NdjsonRecordEmitter:
    """
    Writes one JSON object per line, in the order records are received.

    Each line is a complete document, so output cut short by a failure is
    still parseable up to the last full line. Nothing is retained after a
    record has been written.
    """

    def __init__(self, stream: TextIO, repo_url: str | None = None) -> None:
        """
        Initialize NdjsonRecordEmitter.

        Args:
            stream: Text stream for the JSON output
            repo_url: Remote URL attached to every record
        """
        self._stream = stream
        self._repo_url = repo_url
        self._count = 0

    @property
    def count(self) -> int:
        return self._count

    def emit(self, record: CommitRecord) -> None:
        """
        Write a record as one line of JSON.

        Args:
            record: Commit record to write

        Raises:
            OutputWriteError: If the stream cannot be written
        """
        line = json.dumps(record_to_dict(record, self._repo_url), ensure_ascii=True)
        try:
            self._stream.write(line + "\n")
        except OSError as e:
            raise OutputWriteError(f"Failed to write record {record.id}: {e}") from e
        self._count += 1

    def close(self) -> None:
        """
        Flush the stream.

        Raises:
            OutputWriteError: If the stream cannot be flushed
        """
        try:
            self._stream.flush()
        except OSError as e:
            raise OutputWriteError(f"Failed to flush output: {e}") from e
