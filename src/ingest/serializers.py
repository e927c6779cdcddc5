"""Streaming format serializers.

A serializer wraps a line reader, pulls decoded points from one bound
stream in bounded chunks, and renders each chunk in the destination
wire format. Instances carry per-stream state (point count, min/max
timestamps, warnings), so every stream gets its own instance obtained
through :meth:`FormatSerializer.clone`.

Line error policies:

``skip``
    A malformed line is recorded in ``warnings`` and logged, decoding
    continues with the next line.
``abort``
    The first malformed line ends the stream: points decoded before it
    are still emitted, then the following ``next`` call raises
    ``MalformedLineError``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import json
import math
from typing import Any, Iterator, Mapping, TextIO

from core.errors import MalformedLineError, SerializerStateError, StreamIOError, TsIngestError
from core.logging_config import get_logger
from core.types import DecodedPoint, LineErrorPolicy, SerializedChunk, WireFormat
from ingest.line_reader import DecodedLine, LineReader

_LOGGER = get_logger(__name__)


class FormatSerializer(ABC):
    """Base class of stream-bound serializers."""

    wire_format: WireFormat = "json"

    def __init__(self, line_reader: LineReader, line_error_policy: LineErrorPolicy = "skip") -> None:
        self.line_reader = line_reader
        self.line_error_policy = line_error_policy
        self.warnings: list[str] = []
        self.total_points_read = 0
        self._stream: TextIO | None = None
        self._decoded: Iterator[DecodedLine] | None = None
        self._file_name: str | None = None
        self._metric = ""
        self._tags: dict[str, str] = {}
        self._pending_point: DecodedPoint | None = None
        self._pending_error: TsIngestError | None = None
        self._min_date: int | None = None
        self._max_date: int | None = None
        self._exhausted = False
        self._closed = False

    def __enter__(self) -> "FormatSerializer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def init(
        self,
        stream: TextIO,
        file_name: str,
        metric: str,
        tags: Mapping[str, str],
    ) -> None:
        """Bind this instance to one input stream.

        Raises:
            SerializerStateError: If the instance was already initialized.
        """
        if self._decoded is not None:
            raise SerializerStateError(
                f"Serializer already bound to {self._file_name}; use clone() for {file_name}."
            )
        self._stream = stream
        self._file_name = file_name
        self._metric = metric
        self._tags = dict(tags)
        self._decoded = self.line_reader.decode_lines(stream)

    def clone(self) -> "FormatSerializer":
        """Return a fresh, uninitialized serializer of the same format."""
        return self.__class__(self.line_reader, self.line_error_policy)

    def has_next(self) -> bool:
        """Return whether another chunk is available, without consuming it."""
        self._require_initialized()
        if self._closed:
            return False
        if self._pending_point is None and self._pending_error is None and not self._exhausted:
            self._advance()
        return self._pending_point is not None or self._pending_error is not None

    def next(self, max_points: int) -> SerializedChunk:
        """Serialize up to ``max_points`` points into one chunk.

        Raises:
            MalformedLineError: Under the ``abort`` policy, on the first bad line.
            StreamIOError: If the underlying stream cannot be read.
            SerializerStateError: If called uninitialized or after exhaustion.
        """
        self._require_initialized()
        if max_points < 1:
            raise SerializerStateError(f"Chunk size must be >= 1, got {max_points}.")
        points: list[DecodedPoint] = []
        while len(points) < max_points and self.has_next():
            if self._pending_error is not None:
                if points:
                    break
                error = self._pending_error
                self._pending_error = None
                self._exhausted = True
                raise error
            assert self._pending_point is not None
            points.append(self._pending_point)
            self._pending_point = None
        if not points:
            raise SerializerStateError(f"No more points to serialize for {self._file_name}.")
        return self._build_chunk(points)

    def close(self) -> None:
        """Release the bound stream; safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._decoded is not None and hasattr(self._decoded, "close"):
            self._decoded.close()
        if self._stream is not None:
            self._stream.close()

    def get_dates(self) -> tuple[int | None, int | None]:
        """Return ``(min_date, max_date)`` seen over the whole stream.

        Returns:
            Lowest and highest timestamps, ``(None, None)`` for an empty stream.

        Raises:
            SerializerStateError: If the stream is not exhausted yet.
        """
        if not self._exhausted:
            raise SerializerStateError(
                "Dates are only known once the stream is exhausted; "
                "drain the serializer with has_next()/next() first."
            )
        return self._min_date, self._max_date

    @abstractmethod
    def render(self, points: list[DecodedPoint], metric: str, tags: Mapping[str, str]) -> str:
        """Render decoded points in the destination wire format."""

    def _advance(self) -> None:
        assert self._decoded is not None
        while True:
            try:
                outcome = next(self._decoded)
            except StopIteration:
                self._exhausted = True
                return
            except (OSError, UnicodeDecodeError) as error:
                self._pending_error = StreamIOError(
                    f"Failed to read {self._file_name}: {error}. Check the source is readable."
                )
                return
            if outcome.point is not None:
                self._pending_point = outcome.point
                return
            self._handle_line_error(outcome.error)
            if self._pending_error is not None:
                return

    def _handle_line_error(self, error: MalformedLineError | None) -> None:
        assert error is not None
        if self.line_error_policy == "abort":
            self._pending_error = MalformedLineError(f"{self._file_name}: {error}", error.line_number)
            return
        self.warnings.append(str(error))
        _LOGGER.warning(
            "line_skipped",
            file_name=self._file_name,
            line_number=error.line_number,
            reason=str(error),
        )

    def _build_chunk(self, points: list[DecodedPoint]) -> SerializedChunk:
        timestamps = [point.timestamp_millis for point in points]
        chunk_min = min(timestamps)
        chunk_max = max(timestamps)
        if self._min_date is None or chunk_min < self._min_date:
            self._min_date = chunk_min
        if self._max_date is None or chunk_max > self._max_date:
            self._max_date = chunk_max
        self.total_points_read += len(points)
        return SerializedChunk(
            payload=self.render(points, self._metric, self._tags),
            wire_format=self.wire_format,
            point_count=len(points),
            min_timestamp=chunk_min,
            max_timestamp=chunk_max,
        )

    def _require_initialized(self) -> None:
        if self._decoded is None:
            raise SerializerStateError("Serializer is not initialized; call init() first.")


class OpenTsdbJsonSerializer(FormatSerializer):
    """JSON array of ``{metric, timestamp, value, tags}`` objects."""

    wire_format: WireFormat = "json"

    def render(self, points: list[DecodedPoint], metric: str, tags: Mapping[str, str]) -> str:
        records = [
            {
                "metric": metric,
                "timestamp": point.timestamp_millis,
                "value": point.value,
                "tags": point_tags(metric, tags, point),
            }
            for point in points
        ]
        return json.dumps(records)


class DatapointsJsonSerializer(FormatSerializer):
    """JSON array of ``{metric, tags, datapoints}`` objects, one per tag set."""

    wire_format: WireFormat = "json"

    def render(self, points: list[DecodedPoint], metric: str, tags: Mapping[str, str]) -> str:
        series: dict[tuple[tuple[str, str], ...], dict[str, Any]] = {}
        for point in points:
            effective_tags = point_tags(metric, tags, point)
            key = tuple(sorted(effective_tags.items()))
            if key not in series:
                series[key] = {"metric": metric, "tags": effective_tags, "datapoints": []}
            series[key]["datapoints"].append([point.timestamp_millis, point.value])
        return json.dumps(list(series.values()))


class LineProtocolSerializer(FormatSerializer):
    """Newline-delimited ``put <metric> <timestamp> <value> <tags>`` lines."""

    wire_format: WireFormat = "line"

    def render(self, points: list[DecodedPoint], metric: str, tags: Mapping[str, str]) -> str:
        lines = []
        for point in points:
            rendered_tags = " ".join(
                f"{key}={value}" for key, value in point_tags(metric, tags, point).items()
            )
            lines.append(
                f"put {metric} {point.timestamp_millis} {_format_value(point.value)} {rendered_tags}"
            )
        return "\n".join(lines)


def point_tags(metric: str, tags: Mapping[str, str], point: DecodedPoint) -> dict[str, str]:
    """Overlay point tag overrides on item tags; never return an empty set."""
    effective_tags = {**tags, **point.tag_overrides}
    if not effective_tags:
        return {"metric": metric}
    return effective_tags


def _format_value(value: float | None) -> str:
    if value is None or math.isnan(value):
        return "NaN"
    if value.is_integer():
        return str(int(value))
    return repr(value)
