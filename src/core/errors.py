"""tsingest exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each subsystem raises a specific error type for debuggability.
"""

from __future__ import annotations


class TsIngestError(Exception):
    """Base exception for all tsingest failures."""


class IngestConfigError(TsIngestError):
    """Raised for invalid runtime configuration."""


class ConfigurationError(TsIngestError):
    """Raised for malformed reader configurations or unknown formats."""


class MalformedLineError(TsIngestError):
    """Raised when one input line cannot be decoded into a point."""

    def __init__(self, message: str, line_number: int | None = None) -> None:
        super().__init__(message)
        self.line_number = line_number


class StreamIOError(TsIngestError):
    """Raised when a source file or object cannot be read."""


class SinkWriteError(TsIngestError):
    """Raised when the destination sink rejects a batch."""


class CancellationSignal(TsIngestError):
    """Raised inside a task when its session cancellation flag is observed."""


class NoPointsToImportError(TsIngestError):
    """Raised when a source stream yields no data point at all."""


class SerializerStateError(TsIngestError):
    """Raised when a format serializer is used outside its contract."""


class IngestStoreError(TsIngestError):
    """Raised for session and item persistence failures."""


class SessionSpecError(TsIngestError):
    """Raised for invalid or unsupported session spec files."""


class IngestDependencyError(TsIngestError):
    """Raised when an optional runtime dependency is missing."""
