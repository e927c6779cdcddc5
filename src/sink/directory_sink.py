"""Dry-run sink writing chunk payloads to local files."""

from __future__ import annotations

from pathlib import Path

from core.constants import CHUNK_FILE_PREFIX
from core.errors import SinkWriteError
from core.types import SerializedChunk, SinkWriteResult
from ingest.session_model import ImportItem

_EXTENSIONS = {"json": "json", "line": "txt"}


class DirectorySink:
    """Store each chunk as ``<root>/<session>/<item>/chunk-00001.<ext>``."""

    def __init__(self, root: Path) -> None:
        self.root = root.expanduser().resolve()

    def write(self, chunk: SerializedChunk, item: ImportItem, chunk_number: int) -> SinkWriteResult:
        item_dir = self.root / item.session_id / item.item_id
        chunk_path = item_dir / f"{CHUNK_FILE_PREFIX}-{chunk_number:05d}.{_EXTENSIONS[chunk.wire_format]}"
        try:
            item_dir.mkdir(parents=True, exist_ok=True)
            chunk_path.write_text(chunk.payload, encoding="utf-8")
        except OSError as error:
            raise SinkWriteError(f"Failed to write chunk file {chunk_path}: {error}.") from error
        return SinkWriteResult(success_count=chunk.point_count)

    def close(self) -> None:
        return None
