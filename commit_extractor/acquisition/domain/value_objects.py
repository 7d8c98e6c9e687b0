"""Value objects for the acquisition domain."""

import re
import shutil
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from urllib.parse import urlsplit

from commit_extractor.errors import InvalidRepositoryError

# [user@]host:path, the scp-like syntax git treats as ssh. A single letter
# before the colon is a drive prefix, not a host
_SCP_LIKE_URL = re.compile(r"^(?:[^@/\s]+@[^/:\s]+|[^@/:\s]{2,}):(?!//).+$")


class Transport(str, Enum):
    """Protocol git will use to talk to the remote."""

    SSH = "ssh"
    HTTP = "http"
    GIT = "git"
    FILE = "file"


_SCHEME_TRANSPORTS: dict[str, Transport] = {
    "ssh": Transport.SSH,
    "git+ssh": Transport.SSH,
    "ssh+git": Transport.SSH,
    "http": Transport.HTTP,
    "https": Transport.HTTP,
    "git": Transport.GIT,
    "file": Transport.FILE,
}


def _parse_transport(url: str) -> Transport:
    if _SCP_LIKE_URL.match(url):
        return Transport.SSH

    scheme = urlsplit(url).scheme.lower()
    if not scheme:
        raise InvalidRepositoryError(
            f"'{url}' is not a remote URL. Local repositories are not supported; "
            "use an ssh://, https://, git:// or file:// URL"
        )

    transport = _SCHEME_TRANSPORTS.get(scheme)
    if transport is None:
        raise InvalidRepositoryError(f"Unsupported URL scheme '{scheme}' in '{url}'")
    return transport


@dataclass(frozen=True)
class RemoteLocation:
    """Value object representing a remote repository URL.

    Attributes:
        url: The URL exactly as given to git
    """

    url: str

    def __post_init__(self) -> None:
        """Validate the URL."""
        if not self.url or not self.url.strip():
            raise InvalidRepositoryError("Repository URL cannot be empty")

        if self.url != self.url.strip():
            raise InvalidRepositoryError(
                f"Repository URL cannot have surrounding whitespace: {self.url!r}"
            )

        # Raises for plain filesystem paths and unknown schemes
        _parse_transport(self.url)

    @property
    def transport(self) -> Transport:
        return _parse_transport(self.url)

    @property
    def redacted(self) -> str:
        """URL with any embedded password removed, safe for diagnostics."""
        if _SCP_LIKE_URL.match(self.url):
            return self.url
        parts = urlsplit(self.url)
        if parts.password is None:
            return self.url
        netloc = parts.netloc.rsplit("@", 1)[1]
        if parts.username:
            netloc = f"{parts.username}:***@{netloc}"
        return parts._replace(netloc=netloc).geturl()


@dataclass(frozen=True)
class CredentialOptions:
    """Git configuration and environment contributed by a credential provider."""

    config: tuple[str, ...] = ()
    env: dict[str, str] = field(default_factory=dict)


class RepositoryHandle:
    """
    Local bare copy of a remote repository's object graph.

    Owns the temporary directory the clone lives in; close() removes it.
    Usable as a context manager.
    """

    def __init__(self, location: RemoteLocation, storage: Path, repo_path: Path) -> None:
        """
        Initialize RepositoryHandle.

        Args:
            location: Remote the repository was fetched from
            storage: Temporary directory owned by this handle
            repo_path: Path to the bare repository inside storage
        """
        self.location = location
        self._storage = storage
        self._repo_path = repo_path
        self._closed = False

    @classmethod
    def allocate(cls, location: RemoteLocation, workdir: Path | None = None) -> "RepositoryHandle":
        """Create the transient storage for a clone of location."""
        storage = Path(tempfile.mkdtemp(prefix="commit-extractor-", dir=workdir))
        return cls(location, storage, storage / "repository.git")

    @property
    def repo_path(self) -> Path:
        if self._closed:
            raise RuntimeError(f"Repository handle for {self.location.redacted} is closed")
        return self._repo_path

    @property
    def closed(self) -> bool:
        return self._closed

    def reset(self) -> None:
        """Remove a partial clone so another attempt can reuse the location."""
        shutil.rmtree(self._repo_path, ignore_errors=True)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            shutil.rmtree(self._storage, ignore_errors=True)

    def __enter__(self) -> "RepositoryHandle":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
