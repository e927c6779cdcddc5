"""Import task creation and execution.

A task imports one item end to end: it opens the item source, drives a
fresh serializer clone over it, writes every chunk to the sink, and
ends the item in a terminal status. Tasks never raise; every failure is
converted to a terminal status recorded on the item.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from core.constants import LINE_ERROR_POLICIES
from core.errors import (
    CancellationSignal,
    ConfigurationError,
    NoPointsToImportError,
    SerializerStateError,
    SinkWriteError,
    TsIngestError,
)
from core.logging_config import get_logger
from core.types import LineErrorPolicy, SerializedChunk, SinkWriteResult
from ingest.cancellation import CancellationToken
from ingest.formats import FormatDefinition, FormatRegistry
from ingest.serializers import FormatSerializer
from ingest.session_model import ImportItem, ImportSession, ImportStatus
from ingest.source_streams import SourceStreams
from sink.base import Sink

_LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class TaskContext:
    """Session-wide settings shared by the tasks of one submission."""

    session: ImportSession
    token: CancellationToken
    sink: Sink
    chunk_size: int
    line_error_policy: LineErrorPolicy | None = None


class ImportTask:
    """Runnable importing one item."""

    def __init__(
        self,
        item: ImportItem,
        context: TaskContext,
        serializer: FormatSerializer,
        streams: SourceStreams,
    ) -> None:
        self.item = item
        self.context = context
        self.serializer = serializer
        self.streams = streams
        self.session_status: ImportStatus | None = None
        self._chunk_number = 0

    def __call__(self) -> ImportStatus:
        """Run the import and return the item terminal status."""
        session = self.context.session
        if self.context.token.cancelled:
            return self._finish("CANCELLED", "Import cancelled before start.")
        session.transition_item(self.item, "RUNNING")
        _LOGGER.info(
            "item_import_started",
            session_id=session.session_id,
            item_id=self.item.item_id,
            source=self.item.source_ref,
        )
        try:
            self._stream_chunks()
        except (CancellationSignal, NoPointsToImportError) as error:
            return self._finish("CANCELLED", str(error))
        except SinkWriteError as error:
            return self._finish("ERROR", f"[chunk #{self._chunk_number}] {error}")
        except TsIngestError as error:
            return self._finish("ERROR", str(error))
        except Exception as error:
            _LOGGER.exception("item_import_crashed", item_id=self.item.item_id)
            return self._finish("ERROR", f"Unexpected {type(error).__name__}: {error}")
        return self._finish("IMPORTED")

    def _stream_chunks(self) -> None:
        serializer = self.serializer
        stream = self.streams.open(self.item.source_ref)
        try:
            serializer.init(stream, self.item.source_ref, self.item.metric, self.item.tags)
        except SerializerStateError:
            stream.close()
            raise
        with serializer:
            try:
                while serializer.has_next():
                    self.context.token.raise_if_cancelled(f"item {self.item.item_id}")
                    chunk = serializer.next(self.context.chunk_size)
                    self._chunk_number += 1
                    self.item.points_read = serializer.total_points_read
                    self._record_write(chunk, self.context.sink.write(chunk, self.item, self._chunk_number))
            finally:
                self.item.points_read = serializer.total_points_read
                self.item.warnings.extend(serializer.warnings)
            self.item.record_dates(*serializer.get_dates())
            if serializer.total_points_read == 0:
                raise NoPointsToImportError(f"No points to import from {self.item.source_ref}.")

    def _record_write(self, chunk: SerializedChunk, result: SinkWriteResult) -> None:
        item = self.item
        item.point_count += result.success_count
        item.points_failed += result.failed_count
        item.errors.extend(f"[chunk #{self._chunk_number}] {message}" for message in result.errors)
        if item.min_date is None or chunk.min_timestamp < item.min_date:
            item.min_date = chunk.min_timestamp
        if item.max_date is None or chunk.max_timestamp > item.max_date:
            item.max_date = chunk.max_timestamp
        _LOGGER.debug(
            "chunk_written",
            item_id=item.item_id,
            chunk_number=self._chunk_number,
            point_count=chunk.point_count,
            failed_count=result.failed_count,
        )

    def _finish(self, status: ImportStatus, error_message: str | None = None) -> ImportStatus:
        session = self.context.session
        self.session_status = session.transition_item(self.item, status, error_message)
        log = _LOGGER.info if status == "IMPORTED" else _LOGGER.warning
        log(
            "item_import_finished",
            session_id=session.session_id,
            item_id=self.item.item_id,
            status=status,
            points_read=self.item.points_read,
            point_count=self.item.point_count,
            error=error_message,
        )
        if self.session_status is not None:
            _LOGGER.info(
                "session_finalized",
                session_id=session.session_id,
                status=self.session_status,
            )
        return status


class ImportItemTaskFactory(Protocol):
    """Builds runnable tasks for the items of one format."""

    def validate(self) -> None:
        ...

    def create_task(self, item: ImportItem, context: TaskContext) -> ImportTask:
        ...


class StreamingImportTaskFactory:
    """Task factory cloning one serializer prototype per task."""

    def __init__(self, definition: FormatDefinition, streams: SourceStreams) -> None:
        self.definition = definition
        self.streams = streams
        self._prototypes = {
            policy: definition.new_serializer(policy) for policy in LINE_ERROR_POLICIES
        }

    def validate(self) -> None:
        self.definition.validate()

    def create_task(self, item: ImportItem, context: TaskContext) -> ImportTask:
        """Create the task for one item and mark the item ``ANALYSED``."""
        policy = context.line_error_policy or self.definition.line_error_policy
        serializer = self._prototypes[policy].clone()
        context.session.transition_item(item, "ANALYSED")
        return ImportTask(item, context, serializer, self.streams)


class TaskFactoryRegistry:
    """Format-keyed registry of task factories."""

    def __init__(self) -> None:
        self._factories: dict[str, ImportItemTaskFactory] = {}

    @classmethod
    def from_formats(cls, formats: FormatRegistry, streams: SourceStreams) -> "TaskFactoryRegistry":
        registry = cls()
        for definition in formats.definitions():
            registry.register(definition.name, StreamingImportTaskFactory(definition, streams))
        return registry

    def register(self, format_name: str, factory: ImportItemTaskFactory) -> None:
        self._factories[format_name] = factory

    def get(self, format_name: str) -> ImportItemTaskFactory:
        """Return the factory of one format.

        Raises:
            ConfigurationError: If no factory is registered for the format.
        """
        try:
            return self._factories[format_name]
        except KeyError as error:
            known = ", ".join(sorted(self._factories)) or "none"
            raise ConfigurationError(
                f"No task factory registered for format {format_name!r}. Registered: {known}."
            ) from error
