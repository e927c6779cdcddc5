"""Bounded-concurrency ingestion scheduler.

The scheduler owns one thread pool whose size is the concurrency
ceiling. Submitting a session creates one task per item through the
format task factory and queues every task on the pool; tasks beyond the
ceiling wait in the pool FIFO queue. Sessions are never deleted here,
only their statuses are updated and persisted.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Protocol

from core.config import IngestConfig
from core.constants import LINE_ERROR_POLICIES
from core.errors import ConfigurationError, IngestStoreError
from core.logging_config import get_logger
from ingest.cancellation import CancellationToken
from ingest.session_model import ImportItem, ImportSession, ImportStatus, utc_now
from ingest.task_factory import ImportTask, TaskContext, TaskFactoryRegistry
from sink.base import Sink

_LOGGER = get_logger(__name__)


class SessionSaver(Protocol):
    """Persistence collaborator used by the scheduler."""

    def save(self, record: ImportItem | ImportSession) -> str:
        ...


class SessionHandle:
    """Caller-side view of one submitted session."""

    def __init__(self, session: ImportSession, token: CancellationToken, futures: list[Future[Any]]) -> None:
        self.session = session
        self.token = token
        self._futures = futures

    @property
    def done(self) -> bool:
        return all(future.done() for future in self._futures)

    def cancel(self) -> None:
        """Request cooperative cancellation of every unfinished item."""
        if not self.token.cancelled:
            _LOGGER.info("session_cancel_requested", session_id=self.session.session_id)
        self.token.cancel()

    def wait(self, timeout: float | None = None) -> ImportStatus:
        """Wait for every item to reach a terminal status.

        Args:
            timeout: Optional wall-clock deadline in seconds. When it
                elapses the session is cancelled, and the call keeps
                waiting until running tasks observe the flag.

        Returns:
            Final session status.
        """
        _, not_done = wait(self._futures, timeout=timeout)
        if not_done:
            _LOGGER.warning(
                "session_deadline_exceeded",
                session_id=self.session.session_id,
                timeout_s=timeout,
                pending_tasks=len(not_done),
            )
            self.cancel()
            wait(self._futures)
        return self.session.status


class IngestionScheduler:
    """Runs import tasks on a fixed-size worker pool."""

    def __init__(
        self,
        config: IngestConfig,
        task_factories: TaskFactoryRegistry,
        sink: Sink,
        store: SessionSaver | None = None,
    ) -> None:
        self._config = config
        self._task_factories = task_factories
        self._sink = sink
        self._store = store
        self._executor = ThreadPoolExecutor(
            max_workers=config.max_workers,
            thread_name_prefix="tsingest-import",
        )

    def __enter__(self) -> "IngestionScheduler":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    def submit(self, session: ImportSession) -> SessionHandle:
        """Create and queue one task per session item.

        Configuration is validated before any task is created, so an
        invalid session fails without touching its items.

        Raises:
            ConfigurationError: For unknown formats, invalid reader
                configurations, line policies or chunk sizes.
        """
        request = session.request
        factory = self._task_factories.get(request.format_name)
        factory.validate()
        if request.line_error_policy is not None and request.line_error_policy not in LINE_ERROR_POLICIES:
            raise ConfigurationError(
                f"Unsupported line error policy {request.line_error_policy!r}. "
                f"Use one of: {', '.join(LINE_ERROR_POLICIES)}."
            )
        chunk_size = request.chunk_size or self._config.chunk_size
        if chunk_size < 1:
            raise ConfigurationError(f"Chunk size must be >= 1, got {chunk_size}.")
        token = CancellationToken()
        context = TaskContext(
            session=session,
            token=token,
            sink=self._sink,
            chunk_size=chunk_size,
            line_error_policy=request.line_error_policy,
        )
        session.ingestion_started_at = utc_now()
        session.transition("RUNNING")
        tasks = [factory.create_task(item, context) for item in session.items]
        _LOGGER.info(
            "session_submitted",
            session_id=session.session_id,
            format=request.format_name,
            item_count=len(tasks),
            chunk_size=chunk_size,
            max_workers=self._config.max_workers,
        )
        if not tasks:
            final_status = session.evaluate()
            _LOGGER.info("session_finalized", session_id=session.session_id, status=final_status)
        self._save(session)
        futures = [self._executor.submit(self._run_task, task) for task in tasks]
        return SessionHandle(session, token, futures)

    def shutdown(self, wait_for_tasks: bool = True) -> None:
        self._executor.shutdown(wait=wait_for_tasks)

    def _run_task(self, task: ImportTask) -> ImportStatus:
        status = task()
        self._save(task.item)
        if task.session_status is not None:
            self._save(task.context.session)
        return status

    def _save(self, record: ImportItem | ImportSession) -> None:
        if self._store is None:
            return
        try:
            self._store.save(record)
        except IngestStoreError as error:
            _LOGGER.error("record_save_failed", error=str(error))
