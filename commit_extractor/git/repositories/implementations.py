"""Concrete implementation of Git repository operations."""

import io
import os
import re
import subprocess
import tempfile
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import replace
from pathlib import Path

from commit_extractor.errors import (
    DiffComputationError,
    ExtractionError,
    GitCommandError,
    ObjectGraphError,
)
from commit_extractor.git.domain.value_objects import (
    CommitMetadata,
    FileChangeType,
    FilePatch,
    GraphEntry,
    HunkCounts,
    Signature,
)
from commit_extractor.git.repositories.interfaces import GitRepository

_HEX_ID = re.compile(r"^[0-9a-f]{40}([0-9a-f]{24})?$")
_SIGNATURE = re.compile(
    rb"^(?P<name>.*?)\s*<(?P<email>[^>]*)>\s+(?P<timestamp>-?\d+)(?:\s+(?P<offset>[+-]\d{4}))?\s*$"
)

_HUNK_HEADER = re.compile(rb"^@@ -\d+(?:,(?P<old>\d+))? \+\d+(?:,(?P<new>\d+))? @@")

# Escapes git uses when it quotes a path in patch headers
_C_ESCAPES = {
    ord("a"): 0x07,
    ord("b"): 0x08,
    ord("t"): 0x09,
    ord("n"): 0x0A,
    ord("v"): 0x0B,
    ord("f"): 0x0C,
    ord("r"): 0x0D,
    ord('"'): 0x22,
    ord("\\"): 0x5C,
}

# Variables that would point git at a repository other than repo_path
_INHERITED_GIT_VARIABLES = (
    "GIT_DIR",
    "GIT_WORK_TREE",
    "GIT_INDEX_FILE",
    "GIT_OBJECT_DIRECTORY",
    "GIT_ALTERNATE_OBJECT_DIRECTORIES",
    "GIT_NAMESPACE",
)


def _decode(value: bytes) -> str:
    return value.decode("utf-8", errors="replace")


def _last_segment(line: bytes) -> str:
    segments = [segment for segment in line.split(b"\r") if segment.strip()]
    return _decode(segments[-1]).strip() if segments else ""


def _unquote_path(value: bytes) -> bytes:
    """Undo git's C-style quoting of a path (\"dir/na\\303\\257ve\")."""
    if not (value.startswith(b'"') and value.endswith(b'"') and len(value) >= 2):
        return value

    body = value[1:-1]
    result = bytearray()
    index = 0
    while index < len(body):
        byte = body[index]
        if byte != 0x5C:
            result.append(byte)
            index += 1
        elif body[index + 1] in _C_ESCAPES:
            result.append(_C_ESCAPES[body[index + 1]])
            index += 2
        else:
            result.append(int(body[index + 1 : index + 4], 8))
            index += 4
    return bytes(result)


def _patch_path(value: bytes, prefix: bytes) -> str | None:
    """Path named by a "--- " or "+++ " line, None for /dev/null."""
    # git appends a tab to names containing a space
    value = value.removesuffix(b"\t")
    if value == b"/dev/null":
        return None
    path = _unquote_path(value)
    if not path.startswith(prefix):
        raise ValueError(f"Unexpected path in patch header: {_decode(value)!r}")
    return _decode(path[len(prefix) :])


def _stderr_text(e: subprocess.CalledProcessError) -> str:
    if isinstance(e.stderr, bytes):
        return _decode(e.stderr).strip()
    return (e.stderr or str(e)).strip()


class GitRepositoryImpl(GitRepository):
    """Concrete implementation of Git object access using git commands."""

    def __init__(self, git_executable: str = "git") -> None:
        """
        Initialize GitRepositoryImpl.

        Args:
            git_executable: Name or path of the git binary
        """
        self._git_executable = git_executable
        self._empty_trees: dict[Path, str] = {}

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
            progress: Called with each line git reports on stderr while
                      cloning; for "\\r"-updated lines only the final state

        Raises:
            GitCommandError: If git exits with a non-zero status
        """
        config_args: list[str] = []
        for entry in config:
            config_args.extend(["-c", entry])

        try:
            process = subprocess.Popen(
                [
                    self._git_executable,
                    *config_args,
                    "clone",
                    "--bare",
                    "--progress",
                    "--",
                    url,
                    str(target),
                ],
                env=self._environment(env),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise ExtractionError(f"Git executable not found: {self._git_executable}") from e

        lines: list[str] = []
        with process:
            assert process.stderr is not None
            for line in self._read_progress_lines(process.stderr):
                lines.append(line)
                if progress is not None:
                    progress(line)
            returncode = process.wait()

        if returncode != 0:
            raise GitCommandError("clone", returncode, "\n".join(lines))

    @staticmethod
    def _read_progress_lines(stream: io.BufferedReader) -> Iterator[str]:
        """Yield the lines of a stream, keeping the last "\\r" segment of each."""
        buffer = b""
        for chunk in iter(lambda: stream.read1(8192), b""):
            buffer += chunk
            while b"\n" in buffer:
                line, _, buffer = buffer.partition(b"\n")
                text = _last_segment(line)
                if text:
                    yield text
        text = _last_segment(buffer)
        if text:
            yield text

    def count_objects(self, repo_path: Path) -> dict[str, str]:
        """
        Report object storage statistics for a repository.

        Args:
            repo_path: Path to the git repository

        Returns:
            Mapping of statistic names (count, size-pack, ...) to their values

        Raises:
            ObjectGraphError: If the statistics cannot be read
        """
        try:
            output = _decode(self._run(repo_path, ["count-objects", "-v"]))
        except subprocess.CalledProcessError as e:
            raise ObjectGraphError(f"Failed to count objects: {_stderr_text(e)}") from e

        stats: dict[str, str] = {}
        for line in output.splitlines():
            key, sep, value = line.partition(":")
            if sep:
                stats[key.strip()] = value.strip()
        return stats

    def list_head_refs(self, repo_path: Path) -> tuple[str, ...]:
        """
        List the commits at the tip of every branch and HEAD.

        Args:
            repo_path: Path to the git repository

        Returns:
            Tuple of distinct commit hashes, HEAD first then branches by name

        Raises:
            ObjectGraphError: If the references cannot be read
        """
        tips: list[str] = []

        # HEAD is unborn in an empty repository, which is not an error
        head = self._probe(repo_path, ["rev-parse", "--verify", "--quiet", "HEAD^{commit}"])
        if head.returncode == 0:
            tips.append(_decode(head.stdout).strip())

        try:
            output = _decode(
                self._run(
                    repo_path,
                    [
                        "for-each-ref",
                        "--sort=refname",
                        "--format=%(objectname) %(objecttype) %(refname)",
                        "refs/heads",
                    ],
                )
            )
        except subprocess.CalledProcessError as e:
            raise ObjectGraphError(f"Failed to list branches: {_stderr_text(e)}") from e

        for line in output.splitlines():
            if not line:
                continue
            parts = line.split(" ", 2)
            if len(parts) != 3:
                raise ObjectGraphError(f"Invalid reference line: {line}")
            object_name, object_type, _ref_name = parts
            if object_type != "commit":
                continue
            if object_name not in tips:
                tips.append(object_name)

        return tuple(tips)

    def list_commit_graph(self, repo_path: Path, tips: Iterable[str]) -> Iterator[GraphEntry]:
        """
        Enumerate every commit reachable from the given tips.

        Args:
            repo_path: Path to the git repository
            tips: Commit hashes to start from

        Returns:
            Iterator of graph entries, streamed from git rev-list

        Raises:
            ObjectGraphError: If rev-list fails or prints malformed lines
        """
        tip_list = list(tips)
        if not tip_list:
            return

        # stderr goes to a file; only stdout is read while rev-list runs
        with tempfile.TemporaryFile() as stderr_file:
            try:
                process = subprocess.Popen(
                    [self._git_executable, "rev-list", "--parents", "--timestamp", "--stdin"],
                    cwd=repo_path,
                    env=self._environment(),
                    stdin=subprocess.PIPE,
                    stdout=subprocess.PIPE,
                    stderr=stderr_file,
                )
            except FileNotFoundError as e:
                raise ExtractionError(
                    f"Git executable not found: {self._git_executable}"
                ) from e

            with process:
                assert process.stdin is not None and process.stdout is not None
                try:
                    process.stdin.write("".join(f"{tip}\n" for tip in tip_list).encode("ascii"))
                    process.stdin.close()
                except BrokenPipeError:
                    # rev-list exited early; its exit status is reported below
                    pass

                for raw_line in process.stdout:
                    yield self._parse_graph_line(_decode(raw_line).strip())

                returncode = process.wait()

            stderr_file.seek(0)
            stderr = stderr_file.read()

        if returncode != 0:
            raise ObjectGraphError(
                f"Failed to walk commit graph (exit code {returncode}): {_decode(stderr).strip()}"
            )

    def resolve_commit(self, repo_path: Path, commit_hash: str) -> CommitMetadata:
        """
        Read a commit object.

        Args:
            repo_path: Path to the git repository
            commit_hash: Hash of the commit

        Returns:
            CommitMetadata parsed from the raw commit object

        Raises:
            ObjectGraphError: If the object is missing or malformed
        """
        try:
            raw = self._run(repo_path, ["cat-file", "commit", commit_hash])
        except subprocess.CalledProcessError as e:
            raise ObjectGraphError(
                f"Failed to read commit {commit_hash}: {_stderr_text(e)}"
            ) from e

        return self._parse_commit_object(commit_hash, raw)

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
            Tuple of file patches ordered by path, with line and hunk counts

        Raises:
            DiffComputationError: If either tree cannot be resolved or diffed
        """
        base = old_commit if old_commit is not None else self._empty_tree(repo_path)
        rename_flag = "-M" if detect_renames else "--no-renames"
        try:
            summary = self._run(
                repo_path,
                [
                    "diff-tree",
                    "-r",
                    "-z",
                    "--raw",
                    "--numstat",
                    "--no-commit-id",
                    "--no-ext-diff",
                    "--no-textconv",
                    rename_flag,
                    base,
                    new_commit,
                ],
            )
            patch = self._run(
                repo_path,
                [
                    "diff-tree",
                    "-r",
                    "-p",
                    "-U0",
                    "--no-color",
                    "--no-commit-id",
                    "--no-ext-diff",
                    "--no-textconv",
                    "--src-prefix=a/",
                    "--dst-prefix=b/",
                    rename_flag,
                    base,
                    new_commit,
                ],
            )
        except subprocess.CalledProcessError as e:
            raise DiffComputationError(
                f"Failed to diff {new_commit} against {base}: {_stderr_text(e)}"
            ) from e

        try:
            patches = self._parse_diff_output(summary)
            hunks = self._parse_patch_hunks(patch)
            unknown = set(hunks) - {file_patch.path for file_patch in patches}
            if unknown:
                raise ValueError(f"Hunks for unchanged paths: {sorted(unknown)}")
        except (IndexError, ValueError) as e:
            raise DiffComputationError(
                f"Invalid diff output for {new_commit} against {base}: {e}"
            ) from e

        return tuple(
            replace(file_patch, hunks=hunks[file_patch.path])
            if file_patch.path in hunks
            else file_patch
            for file_patch in patches
        )

    def _empty_tree(self, repo_path: Path) -> str:
        """Hash of the empty tree in the repository's object format."""
        if repo_path not in self._empty_trees:
            try:
                output = self._run(
                    repo_path, ["hash-object", "-t", "tree", "--stdin"], input=b""
                )
            except subprocess.CalledProcessError as e:
                raise DiffComputationError(
                    f"Failed to compute the empty tree: {_stderr_text(e)}"
                ) from e
            self._empty_trees[repo_path] = _decode(output).strip()
        return self._empty_trees[repo_path]

    def _environment(self, extra: Mapping[str, str] | None = None) -> dict[str, str]:
        env = {
            key: value for key, value in os.environ.items() if key not in _INHERITED_GIT_VARIABLES
        }
        env["GIT_TERMINAL_PROMPT"] = "0"
        env["LC_ALL"] = "C"
        if extra:
            env.update(extra)
        return env

    def _run(
        self,
        repo_path: Path | None,
        args: list[str],
        *,
        input: bytes | None = None,
        env: Mapping[str, str] | None = None,
    ) -> bytes:
        """Run git and return its stdout, raising CalledProcessError on failure."""
        return self._probe(repo_path, args, input=input, env=env, check=True).stdout

    def _probe(
        self,
        repo_path: Path | None,
        args: list[str],
        *,
        input: bytes | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = False,
    ) -> subprocess.CompletedProcess[bytes]:
        try:
            return subprocess.run(
                [self._git_executable, *args],
                cwd=repo_path,
                env=self._environment(env),
                input=input,
                capture_output=True,
                check=check,
            )
        except FileNotFoundError as e:
            raise ExtractionError(
                f"Git executable not found: {self._git_executable}"
            ) from e

    @staticmethod
    def _parse_graph_line(line: str) -> GraphEntry:
        parts = line.split()
        if len(parts) < 2:
            raise ObjectGraphError(f"Invalid rev-list line: {line!r}")

        timestamp_str, commit_hash, *parents = parts
        try:
            timestamp = int(timestamp_str)
        except ValueError as e:
            raise ObjectGraphError(f"Invalid commit timestamp in rev-list line: {line!r}") from e

        for object_id in (commit_hash, *parents):
            if not _HEX_ID.match(object_id):
                raise ObjectGraphError(f"Invalid object id in rev-list line: {line!r}")

        return GraphEntry(id=commit_hash, parents=tuple(parents), timestamp=timestamp)

    @staticmethod
    def _parse_signature(commit_hash: str, value: bytes) -> Signature:
        match = _SIGNATURE.match(value)
        if match is None:
            raise ObjectGraphError(
                f"Malformed signature in commit {commit_hash}: {_decode(value)!r}"
            )

        offset_minutes = 0
        offset = match.group("offset")
        if offset:
            sign = -1 if offset.startswith(b"-") else 1
            offset_minutes = sign * (int(offset[1:3]) * 60 + int(offset[3:5]))

        return Signature(
            name=_decode(match.group("name")),
            email=_decode(match.group("email")),
            timestamp=int(match.group("timestamp")),
            offset_minutes=offset_minutes,
        )

    @classmethod
    def _parse_commit_object(cls, commit_hash: str, raw: bytes) -> CommitMetadata:
        """Parse the headers and message of a raw commit object."""
        header_block, _sep, message_bytes = raw.partition(b"\n\n")

        headers: list[tuple[bytes, bytes]] = []
        for line in header_block.split(b"\n"):
            if not line:
                continue
            # Continuation lines (e.g. gpgsig) start with a single space
            if line.startswith(b" ") and headers:
                key, value = headers[-1]
                headers[-1] = (key, value + b"\n" + line[1:])
                continue
            key, _, value = line.partition(b" ")
            headers.append((key, value))

        has_tree = False
        parents: list[str] = []
        author: Signature | None = None
        committer: Signature | None = None
        encoding = "utf-8"

        for key, value in headers:
            match key:
                case b"tree":
                    has_tree = True
                case b"parent":
                    parents.append(_decode(value))
                case b"author":
                    author = cls._parse_signature(commit_hash, value)
                case b"committer":
                    committer = cls._parse_signature(commit_hash, value)
                case b"encoding":
                    encoding = _decode(value).strip()
                case _:
                    pass

        if not has_tree or author is None or committer is None:
            raise ObjectGraphError(f"Commit {commit_hash} is missing required headers")

        try:
            message = message_bytes.decode(encoding, errors="replace")
        except LookupError:
            message = _decode(message_bytes)

        return CommitMetadata(
            id=commit_hash,
            parents=tuple(parents),
            author=author,
            committer=committer,
            message=message,
        )

    @classmethod
    def _parse_diff_output(cls, output: bytes) -> tuple[FilePatch, ...]:
        """
        Pair the raw and numstat sections of a NUL-terminated diff-tree run.

        Raw entries look like ":100644 100644 <old> <new> M" followed by one
        path, or two paths for renames and copies. Numstat entries look like
        "<added>\\t<removed>\\t<path>", or "<added>\\t<removed>\\t" followed by
        the old and new paths for renames.
        """
        tokens = output.split(b"\0")
        if tokens and tokens[-1] == b"":
            tokens.pop()

        raw_entries: list[tuple[FileChangeType, str, str | None]] = []
        numstat_entries: list[tuple[str, str, str]] = []

        index = 0
        while index < len(tokens):
            token = tokens[index]
            if token.startswith(b":"):
                status = _decode(token[1:].split(b" ")[-1])
                change_type = cls._parse_status_to_change_type(status)
                if change_type in (FileChangeType.RENAMED, FileChangeType.COPIED):
                    old_path = _decode(tokens[index + 1])
                    new_path = _decode(tokens[index + 2])
                    raw_entries.append((change_type, new_path, old_path))
                    index += 3
                else:
                    raw_entries.append((change_type, _decode(tokens[index + 1]), None))
                    index += 2
            else:
                added, removed, path = _decode(token).split("\t", 2)
                if path == "":
                    path = _decode(tokens[index + 2])
                    index += 3
                else:
                    index += 1
                numstat_entries.append((added, removed, path))

        if len(raw_entries) != len(numstat_entries):
            raise ValueError(
                f"{len(raw_entries)} changed files but {len(numstat_entries)} numstat entries"
            )

        patches: list[FilePatch] = []
        for (change_type, path, old_path), (added, removed, stat_path) in zip(
            raw_entries, numstat_entries
        ):
            if stat_path != path:
                raise ValueError(f"Numstat entry {stat_path!r} does not match {path!r}")

            # Binary files report "-" instead of line counts
            is_binary = added == "-" or removed == "-"
            patches.append(
                FilePatch(
                    path=path,
                    change_type=change_type,
                    lines_added=0 if is_binary else int(added),
                    lines_removed=0 if is_binary else int(removed),
                    is_binary=is_binary,
                    old_path=old_path,
                )
            )

        return tuple(patches)

    @staticmethod
    def _parse_patch_hunks(output: bytes) -> dict[str, HunkCounts]:
        """
        Count the hunks of a zero-context patch per file.

        Files are keyed by the "+++ " path, or the "--- " path for deletions.
        A type change appears as a deletion and an addition of the same path,
        whose hunks are added together.
        """
        counts: dict[str, HunkCounts] = {}
        old_path: str | None = None
        current: str | None = None
        old_remaining = 0
        new_remaining = 0

        for line in output.split(b"\n"):
            if old_remaining or new_remaining:
                if line.startswith(b"-") and old_remaining:
                    old_remaining -= 1
                elif line.startswith(b"+") and new_remaining:
                    new_remaining -= 1
                elif not line.startswith(b"\\"):
                    raise ValueError(f"Unexpected line in hunk of {current}: {_decode(line)!r}")
                continue

            if line.startswith(b"diff --git "):
                old_path = None
                current = None
            elif line.startswith(b"--- "):
                old_path = _patch_path(line[4:], b"a/")
            elif line.startswith(b"+++ "):
                current = _patch_path(line[4:], b"b/") or old_path
            elif line.startswith(b"@@ "):
                match = _HUNK_HEADER.match(line)
                if match is None or current is None:
                    raise ValueError(f"Unexpected hunk header: {_decode(line)!r}")
                old_lines = int(match.group("old") or 1)
                new_lines = int(match.group("new") or 1)
                counts[current] = counts.get(current, HunkCounts()).add_hunk(old_lines, new_lines)
                old_remaining, new_remaining = old_lines, new_lines

        if old_remaining or new_remaining:
            raise ValueError(f"Truncated hunk in {current}")
        return counts

    @staticmethod
    def _parse_status_to_change_type(status: str) -> FileChangeType:
        """Parse git status code to FileChangeType."""
        status_code = status[0] if status else ""
        match status_code:
            case "A":
                return FileChangeType.ADDED
            case "M":
                return FileChangeType.MODIFIED
            case "D":
                return FileChangeType.DELETED
            case "R":
                return FileChangeType.RENAMED
            case "C":
                return FileChangeType.COPIED
            case "T":
                return FileChangeType.TYPE_CHANGED
            case _:
                return FileChangeType.MODIFIED  # Default fallback
