"""Extraction service running the fetch, walk, diff and emit pipeline."""

from dataclasses import dataclass

from commit_extractor.acquisition.services.remote_acquirer import RemoteAcquirer
from commit_extractor.config import DEFAULT_PROGRESS_INTERVAL
from commit_extractor.diagnostics import DiagnosticSink
from commit_extractor.emission.services.record_emitter import NdjsonRecordEmitter
from commit_extractor.git.domain.value_objects import CommitType
from commit_extractor.git.services.diff_metrics_service import DiffMetricsService
from commit_extractor.git.services.history_walker import HistoryWalker


@dataclass(frozen=True)
class ExtractionSummary:
    """Counts reported at the end of a run."""

    commits: int
    merges: int
    roots: int


class ExtractionService:
    """Service extracting every commit of a remote repository."""

    def __init__(
        self,
        acquirer: RemoteAcquirer,
        walker: HistoryWalker,
        diff_metrics_service: DiffMetricsService,
        diagnostics: DiagnosticSink,
        progress_interval: int = DEFAULT_PROGRESS_INTERVAL,
    ) -> None:
        """
        Initialize ExtractionService.

        Args:
            acquirer: Service fetching the remote repository
            walker: Service ordering the reachable commits
            diff_metrics_service: Service computing per-commit metrics
            diagnostics: Sink for progress messages
            progress_interval: Report progress every this many commits
        """
        self._acquirer = acquirer
        self._walker = walker
        self._diff_metrics_service = diff_metrics_service
        self._diagnostics = diagnostics
        self._progress_interval = progress_interval

    def extract(self, url: str, emitter: NdjsonRecordEmitter) -> ExtractionSummary:
        """
        Fetch a remote repository and emit a record for each reachable commit.

        Args:
            url: Remote repository URL
            emitter: Emitter receiving records in walk order

        Returns:
            ExtractionSummary with the number of commits emitted

        Raises:
            ExtractionError: If any step fails; records already emitted stay emitted
        """
        merges = 0
        roots = 0

        with self._acquirer.acquire(url) as handle:
            repo_path = handle.repo_path
            cursor = self._walker.start(repo_path)
            self._diagnostics.info(f"Walking {cursor.total} commits")

            for commit_hash in cursor:
                record = self._diff_metrics_service.compute(repo_path, commit_hash)
                emitter.emit(record)

                if record.commit_type == CommitType.MERGE:
                    merges += 1
                elif record.commit_type == CommitType.ROOT:
                    roots += 1

                if cursor.visited_count % self._progress_interval == 0:
                    self._diagnostics.progress(cursor.visited_count, cursor.total)

            emitter.close()

        if emitter.count % self._progress_interval != 0:
            self._diagnostics.progress(emitter.count, emitter.count)

        if merges:
            self._diagnostics.info(
                f"{merges} merge commit(s) measured against their first parent only"
            )

        return ExtractionSummary(commits=emitter.count, merges=merges, roots=roots)
