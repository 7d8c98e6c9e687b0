"""Remote acquirer fetching a bare copy of a remote repository."""

import re
from collections.abc import Sequence
from pathlib import Path

from commit_extractor.acquisition.domain.value_objects import RemoteLocation, RepositoryHandle
from commit_extractor.acquisition.repositories.interfaces import CredentialProvider
from commit_extractor.diagnostics import DiagnosticSink
from commit_extractor.errors import (
    AuthenticationError,
    ExtractionError,
    GitCommandError,
    InvalidRepositoryError,
    NetworkError,
)
from commit_extractor.git.repositories.interfaces import GitRepository

# Checked in order; the first matching group decides the error class
_FAILURE_MARKERS: tuple[tuple[type[ExtractionError], tuple[str, ...]], ...] = (
    (
        AuthenticationError,
        (
            "authentication failed",
            "permission denied",
            "could not read username",
            "could not read password",
            "terminal prompts disabled",
            "invalid username or password",
            "access denied",
            "you don't have permission",
            "returned error: 401",
            "returned error: 403",
            "host key verification failed",
        ),
    ),
    (
        InvalidRepositoryError,
        (
            "repository not found",
            "could not be found",
            "does not appear to be a git repository",
            "not a git repository",
            "returned error: 404",
            "does not exist",
            "not found",
        ),
    ),
    (
        NetworkError,
        (
            "could not resolve",
            "connection refused",
            "connection timed out",
            "timed out",
            "network is unreachable",
            "no route to host",
            "connection reset",
            "failed to connect",
            "unable to access",
            "ssl",
            "early eof",
            "hung up unexpectedly",
        ),
    ),
)


# Completed transfer phases, e.g. "Receiving objects: 100% (12/12), 3.1 KiB | 3.1 MiB/s, done."
_TRANSFER_PROGRESS = re.compile(r"^(?:remote: )?[A-Z][a-z]+(?: [a-z]+)*: +\d+% ")


def classify_clone_failure(stderr: str) -> type[ExtractionError]:
    """
    Map git clone's error output to an error class.

    Args:
        stderr: Standard error of the failed clone

    Returns:
        AuthenticationError, InvalidRepositoryError or NetworkError. Output
        that matches no known marker is treated as a network failure.
    """
    text = stderr.lower()
    for error_class, markers in _FAILURE_MARKERS:
        if any(marker in text for marker in markers):
            return error_class
    return NetworkError


def _format_kibibytes(kib: int) -> str:
    size = float(kib)
    for unit in ("KiB", "MiB", "GiB"):
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TiB"


class RemoteAcquirer:
    """Service fetching a remote repository into transient local storage."""

    def __init__(
        self,
        git_repository: GitRepository,
        credential_providers: Sequence[CredentialProvider],
        diagnostics: DiagnosticSink,
        workdir: Path | None = None,
    ) -> None:
        """
        Initialize RemoteAcquirer.

        Args:
            git_repository: Repository implementation for Git operations
            credential_providers: Providers tried in order until one succeeds
            diagnostics: Sink for progress messages
            workdir: Parent directory for the temporary clone. Defaults to
                     the system temporary directory
        """
        self._git_repository = git_repository
        self._credential_providers = tuple(credential_providers)
        self._diagnostics = diagnostics
        self._workdir = workdir

    def acquire(self, url: str) -> RepositoryHandle:
        """
        Fetch a remote repository.

        Args:
            url: Remote repository URL

        Returns:
            RepositoryHandle owning the local bare clone. The caller must close it

        Raises:
            InvalidRepositoryError: If the URL is not a valid remote repository
            AuthenticationError: If no credential provider succeeds
            NetworkError: If the remote cannot be reached
        """
        location = RemoteLocation(url)
        handle = RepositoryHandle.allocate(location, self._workdir)
        try:
            self._clone(handle)
            self._report(handle)
        except BaseException:
            handle.close()
            raise
        return handle

    def _clone(self, handle: RepositoryHandle) -> None:
        location = handle.location
        attempted: list[str] = []

        for provider in self._credential_providers:
            if not provider.supports(location):
                continue

            attempted.append(provider.name)
            self._diagnostics.info(f"Fetching {location.redacted} using {provider.name}")
            options = provider.credential_options(location)
            try:
                self._git_repository.clone_bare(
                    location.url,
                    handle.repo_path,
                    config=options.config,
                    env=options.env,
                    progress=self._report_transfer,
                )
                self._diagnostics.success(
                    f"Fetched {location.redacted} using {provider.name}"
                )
                return
            except GitCommandError as e:
                error_class = classify_clone_failure(e.stderr)
                if error_class is not AuthenticationError:
                    raise error_class(
                        f"Failed to fetch {location.redacted}: {e.stderr.strip() or e}"
                    ) from e

                self._diagnostics.warning(
                    f"Authentication with {provider.name} failed: {e.stderr.strip()}"
                )
                handle.reset()

        tried = ", ".join(attempted) if attempted else "none applicable"
        raise AuthenticationError(
            f"No credential provider could authenticate to {location.redacted} "
            f"(tried: {tried})"
        )

    def _report(self, handle: RepositoryHandle) -> None:
        stats = self._git_repository.count_objects(handle.repo_path)
        self._diagnostics.info(f"Using temporary clone => {handle.repo_path}")
        size_pack = stats.get("size-pack")
        if size_pack is not None and size_pack.isdigit():
            self._diagnostics.info(
                f"Received {stats.get('in-pack', '0')} objects, "
                f"{_format_kibibytes(int(size_pack))} packed"
            )

    def _report_transfer(self, line: str) -> None:
        if _TRANSFER_PROGRESS.match(line):
            self._diagnostics.info(f"Progress => {line}")
