"""Import orchestration.

This module coordinates session analysis, persistence, scheduling and
the caller deadline for one import request.
"""

from __future__ import annotations

from core.config import IngestConfig
from core.logging_config import get_logger
from core.types import SessionRequest
from ingest.analyser import analyse_session
from ingest.formats import FormatRegistry, default_format_registry
from ingest.scheduler import IngestionScheduler, SessionSaver
from ingest.session_model import ImportSession, summarize_session
from ingest.source_streams import SourceStreams
from ingest.task_factory import TaskFactoryRegistry
from sink.base import Sink

_LOGGER = get_logger(__name__)


class ImportPipelineRunner:
    """Runner importing analysed sessions through one scheduler."""

    def __init__(
        self,
        config: IngestConfig,
        sink: Sink,
        store: SessionSaver | None = None,
        formats: FormatRegistry | None = None,
        streams: SourceStreams | None = None,
    ) -> None:
        self._config = config
        self._sink = sink
        self._store = store
        self._streams = streams or SourceStreams(config)
        self._formats = formats or default_format_registry()

    def analyse(self, request: SessionRequest) -> ImportSession:
        """Enumerate request sources into an ``ANALYSED`` session."""
        self._formats.get(request.format_name)
        session = analyse_session(request, self._config, self._streams)
        if self._store is not None:
            self._store.save(session)
        return session

    def run(self, session: ImportSession, wait_timeout: float | None = None) -> ImportSession:
        """Schedule every item of a session and wait for the final status."""
        task_factories = TaskFactoryRegistry.from_formats(self._formats, self._streams)
        with IngestionScheduler(self._config, task_factories, self._sink, self._store) as scheduler:
            handle = scheduler.submit(session)
            handle.wait(wait_timeout)
        stats = summarize_session(session)
        _LOGGER.info(
            "import_completed",
            session_id=session.session_id,
            status=session.status,
            items_total=stats.items_total,
            points_written=stats.points_written,
            points_failed=stats.points_failed,
        )
        return session


def import_session(
    request: SessionRequest,
    config: IngestConfig,
    sink: Sink,
    store: SessionSaver | None = None,
    wait_timeout: float | None = None,
) -> ImportSession:
    """Analyse and import one session request.

    Args:
        request: Session request.
        config: Runtime configuration.
        sink: Destination sink for serialized chunks.
        store: Optional persistence collaborator.
        wait_timeout: Optional deadline after which the session is cancelled.

    Returns:
        Session in a terminal status.

    Raises:
        ConfigurationError: If the request or its format is invalid.
    """
    runner = ImportPipelineRunner(config, sink, store)
    session = runner.analyse(request)
    return runner.run(session, wait_timeout)
