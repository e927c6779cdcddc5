"""Python SDK for import sessions.

This module exposes high-level APIs to import, inspect and retry
sessions backed by the filesystem session store.
"""

from __future__ import annotations

from core.config import IngestConfig
from core.session_spec import load_session_request
from core.types import SessionRequest, SessionStats
from ingest.formats import FormatDefinition, FormatRegistry, default_format_registry
from ingest.pipeline import ImportPipelineRunner
from ingest.session_model import ImportItem, ImportSession, new_session_id, summarize_session, utc_now
from sink.base import Sink
from sink.opentsdb_sink import OpenTsdbSink
from store.session_store import SessionStore

RETRYABLE_STATUSES = ("ERROR", "CANCELLED")


class IngestClient:
    """Primary SDK entry point for import workflows."""

    def __init__(
        self,
        config: IngestConfig | None = None,
        sink: Sink | None = None,
        formats: FormatRegistry | None = None,
    ) -> None:
        """Create SDK client.

        Args:
            config: Optional runtime configuration.
            sink: Optional destination sink, defaults to the OpenTSDB sink.
            formats: Optional format registry, defaults to built-in formats.
        """
        self._config = config or IngestConfig.from_env()
        self._store = SessionStore(self._config.data_root)
        self._formats = formats or default_format_registry()
        self._owns_sink = sink is None
        self._sink = sink

    def __enter__(self) -> "IngestClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def start_session(self, request: SessionRequest, wait_timeout: float | None = None) -> ImportSession:
        """Analyse and import one session, waiting for its final status.

        Raises:
            ConfigurationError: If the request or its format is invalid.
        """
        runner = self._runner()
        session = runner.analyse(request)
        return runner.run(session, wait_timeout)

    def start_session_from_file(self, spec_path: str, wait_timeout: float | None = None) -> ImportSession:
        return self.start_session(load_session_request(spec_path), wait_timeout)

    def get_session(self, session_id: str) -> ImportSession:
        return self._store.load_session(session_id)

    def list_sessions(self) -> list[str]:
        return self._store.list_sessions()

    def stats(self, session_id: str) -> SessionStats:
        return summarize_session(self._store.load_session(session_id))

    def item_errors(self, session_id: str) -> list[ImportItem]:
        """Return items of a session carrying error detail."""
        return [item for item in self._store.load_items(session_id) if item.errors]

    def retry_failed(self, session_id: str, wait_timeout: float | None = None) -> ImportSession:
        """Import fresh copies of the failed and cancelled items of a session.

        Returns:
            The new session; it holds no item when nothing failed.
        """
        previous = self._store.load_session(session_id)
        retry_id = new_session_id()
        session = ImportSession(session_id=retry_id, request=previous.request)
        session.analysis_started_at = utc_now()
        session.items = [
            item.fresh_copy(retry_id) for item in previous.items if item.status in RETRYABLE_STATUSES
        ]
        session.analysis_ended_at = utc_now()
        session.transition("ANALYSED")
        self._store.save(session)
        return self._runner().run(session, wait_timeout)

    def formats(self) -> list[FormatDefinition]:
        return self._formats.definitions()

    def close(self) -> None:
        if self._owns_sink and self._sink is not None:
            self._sink.close()
            self._sink = None

    def _runner(self) -> ImportPipelineRunner:
        if self._sink is None:
            self._sink = OpenTsdbSink.from_config(self._config)
        return ImportPipelineRunner(self._config, self._sink, self._store, self._formats)
