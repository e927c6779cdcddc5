"""Destination sink protocol consumed by import tasks."""

from __future__ import annotations

from typing import Protocol

from core.types import SerializedChunk, SinkWriteResult
from ingest.session_model import ImportItem


class Sink(Protocol):
    """Accepts serialized chunks for one item at a time.

    ``write`` returns a result for accepted batches, including partial
    failures with per-point errors, and raises ``SinkWriteError`` when
    the whole batch is rejected. Implementations must be safe to call
    from several worker threads at once.
    """

    def write(self, chunk: SerializedChunk, item: ImportItem, chunk_number: int) -> SinkWriteResult:
        ...

    def close(self) -> None:
        ...
