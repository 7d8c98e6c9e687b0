"""Error taxonomy for commit extraction.

Every error here is fatal at the point it is raised. The command line entry
point maps each class to its own exit code.
"""


class ExtractionError(RuntimeError):
    """Base class for unrecoverable extraction failures."""

    exit_code: int = 1


class NetworkError(ExtractionError):
    """Connectivity, DNS or remote host failure while fetching."""

    exit_code = 3


class AuthenticationError(ExtractionError):
    """No credential provider was able to authenticate."""

    exit_code = 4


class InvalidRepositoryError(ExtractionError):
    """The URL does not reference a valid remote repository."""

    exit_code = 5


class ObjectGraphError(ExtractionError):
    """History data is corrupt, truncated or unreadable."""

    exit_code = 6


class DiffComputationError(ExtractionError):
    """A specific commit's trees could not be diffed."""

    exit_code = 7


class OutputWriteError(ExtractionError):
    """The JSON stream could not be written."""

    exit_code = 8


class GitCommandError(RuntimeError):
    """A git invocation exited with a non-zero status.

    Raised by the clone step so the caller can classify the failure from
    git's stderr before turning it into one of the errors above.
    """

    def __init__(self, command: str, returncode: int, stderr: str) -> None:
        super().__init__(f"git {command} failed with exit code {returncode}: {stderr.strip()}")
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
