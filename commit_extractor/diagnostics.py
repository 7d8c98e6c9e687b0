"""Human-readable progress reporting kept off the JSON stream."""

import sys
from typing import TextIO


class DiagnosticSink:
    """Writes progress and status lines to a diagnostic stream."""

    def __init__(self, stream: TextIO | None = None) -> None:
        """
        Initialize DiagnosticSink.

        Args:
            stream: Text stream for diagnostics. Defaults to sys.stderr
        """
        self._stream = stream if stream is not None else sys.stderr

    def info(self, message: str) -> None:
        print(f"  {message}", file=self._stream, flush=True)

    def success(self, message: str) -> None:
        print(f"✓ {message}", file=self._stream, flush=True)

    def warning(self, message: str) -> None:
        print(f"⚠ {message}", file=self._stream, flush=True)

    def error(self, message: str) -> None:
        print(f"✗ {message}", file=self._stream, flush=True)

    def progress(self, processed: int, total: int) -> None:
        """Report how many commits have been processed so far."""
        print(
            f"  Processed commit {processed} of ~{total}",
            file=self._stream,
            flush=True,
        )
