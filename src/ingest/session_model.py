"""Import session and item lifecycle model.

Items move through ``PENDING -> ANALYSED -> RUNNING`` and end in one of
the terminal statuses ``IMPORTED``, ``ERROR`` or ``CANCELLED``. The
session status is a pure function of its item statuses, evaluated every
time an item reaches a terminal status. Item transitions and aggregate
evaluation share one lock per session, so a session is never observed
``COMPLETED`` while one of its items is still running.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
import threading
from typing import Iterable, Literal
from uuid import uuid4

from core.errors import TsIngestError
from core.types import SessionRequest, SessionStats

ImportStatus = Literal[
    "PENDING",
    "ANALYSED",
    "RUNNING",
    "IMPORTED",
    "ERROR",
    "CANCELLED",
    "COMPLETED",
]
TERMINAL_ITEM_STATUSES: tuple[ImportStatus, ...] = ("IMPORTED", "ERROR", "CANCELLED")
TERMINAL_SESSION_STATUSES: tuple[ImportStatus, ...] = ("COMPLETED", "ERROR", "CANCELLED")
ALLOWED_ITEM_TRANSITIONS: dict[ImportStatus, tuple[ImportStatus, ...]] = {
    "PENDING": ("ANALYSED", "ERROR", "CANCELLED"),
    "ANALYSED": ("RUNNING", "ERROR", "CANCELLED"),
    "RUNNING": ("IMPORTED", "ERROR", "CANCELLED"),
    "IMPORTED": (),
    "ERROR": (),
    "CANCELLED": (),
}
ALLOWED_SESSION_TRANSITIONS: dict[ImportStatus, tuple[ImportStatus, ...]] = {
    "PENDING": ("ANALYSED", "ERROR"),
    "ANALYSED": ("RUNNING", "ERROR", "CANCELLED"),
    "RUNNING": ("COMPLETED", "ERROR", "CANCELLED"),
    "COMPLETED": (),
    "ERROR": (),
    "CANCELLED": (),
}


class InvalidTransitionError(TsIngestError):
    """Raised when a status change is not an edge of the lifecycle."""


@dataclass
class ImportItem:
    """One source file of an import session.

    Counters are written only by the task processing the item.
    """

    item_id: str
    session_id: str
    source_ref: str
    metric: str
    func_id: str
    tags: dict[str, str] = field(default_factory=dict)
    status: ImportStatus = "PENDING"
    created_at: datetime = field(default_factory=lambda: utc_now())
    import_started_at: datetime | None = None
    import_ended_at: datetime | None = None
    points_read: int = 0
    point_count: int = 0
    points_failed: int = 0
    min_date: int | None = None
    max_date: int | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_ITEM_STATUSES

    @property
    def error_message(self) -> str | None:
        if not self.errors:
            return None
        return "\n".join(self.errors)

    @property
    def duration_s(self) -> float | None:
        if self.import_started_at is None or self.import_ended_at is None:
            return None
        return (self.import_ended_at - self.import_started_at).total_seconds()

    def record_dates(self, min_date: int | None, max_date: int | None) -> None:
        self.min_date = min_date
        self.max_date = max_date

    def fresh_copy(self, session_id: str) -> "ImportItem":
        """Return a new ``PENDING`` item importing the same source."""
        return ImportItem(
            item_id=new_item_id(),
            session_id=session_id,
            source_ref=self.source_ref,
            metric=self.metric,
            func_id=self.func_id,
            tags=dict(self.tags),
        )


@dataclass
class ImportSession:
    """A named batch of import items sharing one data-source request."""

    session_id: str
    request: SessionRequest
    items: list[ImportItem] = field(default_factory=list)
    status: ImportStatus = "PENDING"
    created_at: datetime = field(default_factory=lambda: utc_now())
    analysis_started_at: datetime | None = None
    analysis_ended_at: datetime | None = None
    ingestion_started_at: datetime | None = None
    ingestion_ended_at: datetime | None = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def name(self) -> str:
        return self.request.name

    @property
    def is_finished(self) -> bool:
        return self.status in TERMINAL_SESSION_STATUSES

    def item(self, item_id: str) -> ImportItem:
        for item in self.items:
            if item.item_id == item_id:
                return item
        raise KeyError(item_id)

    def transition(self, next_status: ImportStatus) -> None:
        """Move the session itself along its lifecycle."""
        with self._lock:
            self._transition_session(next_status)

    def transition_item(
        self,
        item: ImportItem,
        next_status: ImportStatus,
        error_message: str | None = None,
    ) -> ImportStatus | None:
        """Transition one item and re-evaluate the session aggregate.

        Args:
            item: Item owned by this session.
            next_status: Target item status.
            error_message: Optional error detail appended to the item.

        Returns:
            The final session status when this transition finalized the
            session, otherwise None.

        Raises:
            InvalidTransitionError: If the edge is not allowed.
        """
        with self._lock:
            validate_item_transition(item.status, next_status)
            now = utc_now()
            item.status = next_status
            if next_status == "RUNNING":
                item.import_started_at = now
            if error_message:
                item.errors.append(error_message)
            if next_status not in TERMINAL_ITEM_STATUSES:
                return None
            item.import_ended_at = now
            return self._evaluate_locked()

    def evaluate(self) -> ImportStatus | None:
        """Re-evaluate the aggregate, finalizing the session when possible."""
        with self._lock:
            return self._evaluate_locked()

    def snapshot_statuses(self) -> list[ImportStatus]:
        with self._lock:
            return [item.status for item in self.items]

    def _evaluate_locked(self) -> ImportStatus | None:
        if self.status != "RUNNING":
            return None
        aggregate = aggregate_session_status(item.status for item in self.items)
        if aggregate is None:
            return None
        self._transition_session(aggregate)
        self.ingestion_ended_at = utc_now()
        return aggregate

    def _transition_session(self, next_status: ImportStatus) -> None:
        allowed = ALLOWED_SESSION_TRANSITIONS[self.status]
        if next_status not in allowed:
            raise InvalidTransitionError(
                f"Invalid session transition {self.status!r} -> {next_status!r} "
                f"for {self.session_id}. Allowed: {', '.join(allowed) or 'none'}."
            )
        self.status = next_status


def validate_item_transition(current: ImportStatus, next_status: ImportStatus) -> None:
    """Validate one item transition against the lifecycle edges."""
    allowed = ALLOWED_ITEM_TRANSITIONS.get(current, ())
    if next_status not in allowed:
        raise InvalidTransitionError(
            f"Invalid item transition {current!r} -> {next_status!r}. "
            f"Allowed: {', '.join(allowed) or 'none'}."
        )


def aggregate_session_status(statuses: Iterable[ImportStatus]) -> ImportStatus | None:
    """Fold item statuses into the session status.

    Returns None while any item is non-terminal. Otherwise ``COMPLETED``
    when every item is ``IMPORTED`` (including the empty session), then
    ``CANCELLED`` when any item was cancelled, else ``ERROR``.
    """
    collected = list(statuses)
    if any(status not in TERMINAL_ITEM_STATUSES for status in collected):
        return None
    if all(status == "IMPORTED" for status in collected):
        return "COMPLETED"
    if "CANCELLED" in collected:
        return "CANCELLED"
    return "ERROR"


def summarize_session(session: ImportSession, now: datetime | None = None) -> SessionStats:
    """Compute aggregated statistics for one session."""
    items = list(session.items)
    counts = Counter(item.status for item in items)
    measured = [_import_speed(item) for item in items if item.status == "IMPORTED"]
    speeds = [speed for speed in measured if speed is not None]
    duration_s = None
    if session.ingestion_started_at is not None:
        ended_at = session.ingestion_ended_at or now or utc_now()
        duration_s = (ended_at - session.ingestion_started_at).total_seconds()
    return SessionStats(
        session_id=session.session_id,
        status=session.status,
        items_total=len(items),
        items_by_status=dict(sorted(counts.items())),
        rate_of_imported_items=counts["IMPORTED"] / len(items) if items else 0.0,
        points_read=sum(item.points_read for item in items),
        points_written=sum(item.point_count for item in items),
        points_failed=sum(item.points_failed for item in items),
        analysis_started_at=session.analysis_started_at,
        analysis_ended_at=session.analysis_ended_at,
        ingestion_started_at=session.ingestion_started_at,
        ingestion_ended_at=session.ingestion_ended_at,
        ingestion_duration_s=duration_s,
        import_speed_mean=sum(speeds) / len(speeds) if speeds else 0.0,
        import_speed_min=min(speeds, default=0.0),
        import_speed_max=max(speeds, default=0.0),
    )


def _import_speed(item: ImportItem) -> float | None:
    duration_s = item.duration_s
    if not duration_s:
        return None
    return item.point_count / duration_s


def new_session_id() -> str:
    timestamp = utc_now().strftime("%Y%m%dT%H%M%S%fZ")
    return f"session-{timestamp}-{uuid4().hex[:8]}"


def new_item_id() -> str:
    return f"item-{uuid4().hex[:12]}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
