"""Shared typed models.

This module defines immutable data models used by ingest, sink, store,
and SDK layers to keep interfaces explicit and stable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Mapping

from core.constants import DEFAULT_FUNC_ID_PATTERN

LineErrorPolicy = Literal["skip", "abort"]
WireFormat = Literal["json", "line"]


@dataclass(frozen=True)
class DecodedPoint:
    """One data point decoded from a source line.

    Attributes:
        timestamp_millis: Epoch milliseconds resolved by the date decoder.
        value: Numeric value, or None when the value column is empty.
        tag_overrides: Tags read from tag columns of the line.
    """

    timestamp_millis: int
    value: float | None
    tag_overrides: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SerializedChunk:
    """One bounded batch rendered in the destination wire format.

    Attributes:
        payload: Serialized body sent to the sink.
        wire_format: ``json`` for JSON arrays, ``line`` for put lines.
        point_count: Number of points contained in the payload.
        min_timestamp: Lowest point timestamp in the chunk.
        max_timestamp: Highest point timestamp in the chunk.
    """

    payload: str
    wire_format: WireFormat
    point_count: int
    min_timestamp: int
    max_timestamp: int


@dataclass(frozen=True)
class SinkWriteResult:
    """Outcome of one accepted sink write.

    Attributes:
        success_count: Points stored by the destination.
        failed_count: Points rejected individually by the destination.
        errors: Per-point error messages reported by the destination.
    """

    success_count: int
    failed_count: int = 0
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class SessionRequest:
    """Import session request.

    Attributes:
        name: Logical session name, usually the target dataset.
        root_path: Local directory or ``s3://bucket/prefix`` holding sources.
        path_pattern: Regex matched against each relative source path.
        format_name: Registered format used to decode and serialize sources.
        func_id_pattern: Template building functional identifiers.
        description: Optional free text.
        tags: Tags shared by every item of the session.
        line_error_policy: Optional override of the format line policy.
        chunk_size: Optional override of the configured chunk size.
    """

    name: str
    root_path: str
    path_pattern: str
    format_name: str
    func_id_pattern: str = DEFAULT_FUNC_ID_PATTERN
    description: str | None = None
    tags: Mapping[str, str] = field(default_factory=dict)
    line_error_policy: LineErrorPolicy | None = None
    chunk_size: int | None = None


@dataclass(frozen=True)
class SessionStats:
    """Aggregated statistics for one import session.

    Attributes:
        session_id: Session identifier.
        status: Current session status.
        items_total: Number of items enumerated by analysis.
        items_by_status: Item count per status value.
        rate_of_imported_items: Imported items over total items in [0, 1].
        points_read: Points decoded from sources.
        points_written: Points delivered to the sink.
        points_failed: Points rejected individually by the sink.
        analysis_started_at: Analysis start time.
        analysis_ended_at: Analysis end time.
        ingestion_started_at: Scheduling start time.
        ingestion_ended_at: Session finalization time.
        ingestion_duration_s: Seconds between ingestion start and end or now.
        import_speed_mean: Mean points per second over finished items.
        import_speed_min: Lowest points per second over finished items.
        import_speed_max: Highest points per second over finished items.
    """

    session_id: str
    status: str
    items_total: int
    items_by_status: Mapping[str, int]
    rate_of_imported_items: float
    points_read: int
    points_written: int
    points_failed: int
    analysis_started_at: datetime | None
    analysis_ended_at: datetime | None
    ingestion_started_at: datetime | None
    ingestion_ended_at: datetime | None
    ingestion_duration_s: float | None
    import_speed_mean: float
    import_speed_min: float
    import_speed_max: float
