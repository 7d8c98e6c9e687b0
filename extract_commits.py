#!/usr/bin/env python3
"""
Script to extract the commit history of a remote git repository:
- Repository URL (ssh://, https://, git://, file:// or user@host:path)

Writes one JSON object per commit to stdout (newline-delimited JSON) and
progress to stderr. Credentials are probed in order: ssh-agent, then the
COMMIT_EXTRACTOR_USERNAME / COMMIT_EXTRACTOR_PASSWORD pair, then anonymous.
"""

import argparse
import os
import sys
from typing import TextIO

from commit_extractor.acquisition.domain.value_objects import RemoteLocation
from commit_extractor.acquisition.repositories.factory import create_credential_providers
from commit_extractor.acquisition.services.remote_acquirer import RemoteAcquirer
from commit_extractor.config import ExtractorSettings, load_settings
from commit_extractor.diagnostics import DiagnosticSink
from commit_extractor.emission.services.record_emitter import NdjsonRecordEmitter
from commit_extractor.errors import ExtractionError, OutputWriteError
from commit_extractor.extraction.services.extraction_service import ExtractionService
from commit_extractor.git.repositories.implementations import GitRepositoryImpl
from commit_extractor.git.services.diff_metrics_service import DiffMetricsService
from commit_extractor.git.services.history_walker import HistoryWalker

EXIT_CONFIGURATION_ERROR = 2


def build_extraction_service(
    settings: ExtractorSettings, diagnostics: DiagnosticSink
) -> ExtractionService:
    """Wire the pipeline services for one run."""
    git_repo = GitRepositoryImpl(git_executable=settings.git_executable)
    acquirer = RemoteAcquirer(
        git_repo,
        create_credential_providers(settings),
        diagnostics,
        workdir=settings.workdir,
    )
    return ExtractionService(
        acquirer,
        HistoryWalker(git_repo),
        DiffMetricsService(git_repo, detect_renames=settings.detect_renames),
        diagnostics,
        progress_interval=settings.progress_interval,
    )


def _silence_stdout() -> None:
    """Point stdout at /dev/null so the interpreter's final flush cannot fail again."""
    try:
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
    except (OSError, ValueError):
        pass


def run(
    repo_url: str,
    stdout: TextIO,
    stderr: TextIO,
    settings: ExtractorSettings | None = None,
) -> int:
    """
    Extract every commit of a remote repository.

    Args:
        repo_url: Remote repository URL
        stdout: Stream receiving the JSON records
        stderr: Stream receiving diagnostics
        settings: Settings for this run. Defaults to load_settings()

    Returns:
        Process exit code
    """
    diagnostics = DiagnosticSink(stderr)

    try:
        if settings is None:
            settings = load_settings()
    except ValueError as e:
        diagnostics.error(f"Configuration error: {e}")
        return EXIT_CONFIGURATION_ERROR

    service = build_extraction_service(settings, diagnostics)

    try:
        location = RemoteLocation(repo_url)
        emitter = NdjsonRecordEmitter(stdout, repo_url=location.redacted)
        summary = service.extract(repo_url, emitter)
    except ExtractionError as e:
        diagnostics.error(f"{type(e).__name__}: {e}")
        return e.exit_code
    except Exception as e:
        diagnostics.error(f"Unexpected error during extraction: {e}")
        return 1

    diagnostics.success(
        f"Extracted {summary.commits} commits "
        f"({summary.merges} merges, {summary.roots} root commits)"
    )
    return 0


def main() -> None:
    """Main function to parse arguments and run the extraction."""
    parser = argparse.ArgumentParser(
        description=(
            "Fetch a remote git repository and write a JSON summary of every "
            "commit to stdout, one object per line"
        )
    )
    parser.add_argument(
        "repo_url",
        type=str,
        help="URL of the remote git repository",
    )

    args = parser.parse_args()

    exit_code = run(args.repo_url, sys.stdout, sys.stderr)
    if exit_code == OutputWriteError.exit_code:
        _silence_stdout()
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
