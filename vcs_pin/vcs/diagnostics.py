"""DiagnosticSink implementations for command failure reports.

This module provides concrete sinks for the DiagnosticSink protocol:
- LoggerDiagnosticSink sends diagnostics through a logger and can mirror
  them into a log file
- StreamDiagnosticSink writes them verbatim to a stream (stderr by default)
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import BinaryIO, Optional, TextIO

logger = logging.getLogger(__name__)

DIAGNOSTICS_LOGGER = "vcs_pin.diagnostics"


class LoggerDiagnosticSink:
    """DiagnosticSink that writes to a logger and, optionally, a log file.

    Messages are emitted at ERROR level so that, without any logging setup,
    the last-resort handler still prints them to stderr.

    Captured output is not logged verbatim: it is decoded as UTF-8 with
    replacement and blank lines are dropped. The optional log file does get
    the raw bytes. Use StreamDiagnosticSink when the exact output must reach
    stderr.
    """

    def __init__(
        self,
        diag_logger: Optional[logging.Logger] = None,
        log_file_path: Optional[Path] = None,
    ) -> None:
        """Initialize sink with logger and optional file destination.

        Args:
            diag_logger: Logger receiving diagnostics (default: vcs_pin.diagnostics)
            log_file_path: Optional file that also receives everything written
        """
        self.diag_logger = diag_logger or logging.getLogger(DIAGNOSTICS_LOGGER)
        self.log_file_path = log_file_path
        self._file_handle: Optional[BinaryIO] = None

        if log_file_path is not None:
            try:
                log_file_path.parent.mkdir(parents=True, exist_ok=True)
                self._file_handle = open(log_file_path, "ab")
            except OSError as exc:
                logger.warning(
                    "Failed to open log file %s: %s. Continuing with logger-only diagnostics.",
                    log_file_path,
                    exc,
                )
                self._file_handle = None

    def write_line(self, text: str) -> None:
        """Write a one-line diagnostic."""
        self.diag_logger.error(text.rstrip("\n"))
        self._persist(text.rstrip("\n").encode("utf-8") + b"\n")

    def write_output(self, data: bytes) -> None:
        """Write raw captured command output.

        Args:
            data: Combined stdout/stderr bytes of the failed command
        """
        if not data:
            return

        text = data.decode("utf-8", errors="replace")
        for line in text.splitlines():
            if line.strip():
                self.diag_logger.error(line)

        self._persist(data)

    def _persist(self, data: bytes) -> None:
        if self._file_handle:
            try:
                self._file_handle.write(data)
                self._file_handle.flush()
            except OSError as exc:
                logger.warning(
                    "Error writing diagnostics to log file %s: %s", self.log_file_path, exc
                )

    def close(self) -> None:
        """Close log file handle."""
        if self._file_handle:
            try:
                self._file_handle.close()
            except OSError:
                pass  # Ignore errors on close
            finally:
                self._file_handle = None

    def __enter__(self) -> "LoggerDiagnosticSink":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class StreamDiagnosticSink:
    """DiagnosticSink writing plain text and raw bytes to a text stream."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        # sys.stderr is looked up per write
        return self._stream if self._stream is not None else sys.stderr

    def write_line(self, text: str) -> None:
        self.stream.write(text.rstrip("\n") + "\n")
        self.stream.flush()

    def write_output(self, data: bytes) -> None:
        if not data:
            return
        buffer = getattr(self.stream, "buffer", None)
        if buffer is not None:
            self.stream.flush()
            buffer.write(data)
            buffer.flush()
        else:
            self.stream.write(data.decode("utf-8", errors="replace"))
            self.stream.flush()
