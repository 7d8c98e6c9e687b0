"""Settings for the commit extractor, read from the environment and .env."""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

DEFAULT_PROGRESS_INTERVAL = 100

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


@dataclass(frozen=True)
class ExtractorSettings:
    """Runtime configuration for one extraction run."""

    username: str | None = None
    password: str | None = None
    workdir: Path | None = None
    progress_interval: int = DEFAULT_PROGRESS_INTERVAL
    detect_renames: bool = True
    git_executable: str = "git"

    def __post_init__(self) -> None:
        """Validate the settings."""
        if self.progress_interval <= 0:
            raise ValueError(
                f"Progress interval must be a positive integer, got {self.progress_interval}"
            )

        if not self.git_executable:
            raise ValueError("Git executable cannot be empty")


def _load_env_file(env_file: Path | None = None) -> None:
    """Load environment variables from .env file."""
    if env_file is not None:
        load_dotenv(env_file)
        return

    # Try to find .env file in project root (parent of commit_extractor package)
    project_root = Path(__file__).parent.parent
    env_file = project_root / ".env"
    if env_file.exists():
        load_dotenv(env_file)
    else:
        # Fallback: try current directory
        load_dotenv(find_dotenv(usecwd=True))


def _parse_bool(name: str, value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean for {name}: {value!r}")


def _parse_int(name: str, value: str) -> int:
    try:
        return int(value.strip())
    except ValueError as e:
        raise ValueError(f"Invalid integer for {name}: {value!r}") from e


def settings_from_mapping(environ: Mapping[str, str]) -> ExtractorSettings:
    """
    Build settings from an environment-like mapping.

    Args:
        environ: Mapping of variable names to values

    Returns:
        ExtractorSettings built from the COMMIT_EXTRACTOR_* variables

    Raises:
        ValueError: If a variable holds an invalid value
    """
    workdir = environ.get("COMMIT_EXTRACTOR_WORKDIR")
    progress_interval = environ.get("COMMIT_EXTRACTOR_PROGRESS_INTERVAL")
    detect_renames = environ.get("COMMIT_EXTRACTOR_DETECT_RENAMES")

    return ExtractorSettings(
        username=environ.get("COMMIT_EXTRACTOR_USERNAME") or None,
        password=environ.get("COMMIT_EXTRACTOR_PASSWORD") or None,
        workdir=Path(workdir) if workdir else None,
        progress_interval=(
            _parse_int("COMMIT_EXTRACTOR_PROGRESS_INTERVAL", progress_interval)
            if progress_interval
            else DEFAULT_PROGRESS_INTERVAL
        ),
        detect_renames=(
            _parse_bool("COMMIT_EXTRACTOR_DETECT_RENAMES", detect_renames)
            if detect_renames
            else True
        ),
        git_executable=environ.get("COMMIT_EXTRACTOR_GIT") or "git",
    )


def load_settings(env_file: Path | None = None) -> ExtractorSettings:
    """
    Load settings from the process environment after reading any .env file.

    Args:
        env_file: Explicit .env file to read instead of the default lookup

    Returns:
        ExtractorSettings for this run

    Raises:
        ValueError: If a variable holds an invalid value
    """
    _load_env_file(env_file)
    return settings_from_mapping(os.environ)
