"""Line decoding for delimited time-series sources.

This module turns raw text lines into decoded points according to a
reader configuration. A reader holds no per-stream state, so one
instance is shared by every task using the same format.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator

from core.errors import MalformedLineError
from core.types import DecodedPoint
from ingest.reader_config import ColumnConfiguration, ReaderConfiguration


@dataclass(frozen=True)
class DecodedLine:
    """Outcome of decoding one non-blank data line.

    Exactly one of ``point`` and ``error`` is set.
    """

    line_number: int
    point: DecodedPoint | None = None
    error: MalformedLineError | None = None


class LineReader:
    """Decode lines into points using one reader configuration."""

    def __init__(self, configuration: ReaderConfiguration) -> None:
        configuration.validate()
        self.configuration = configuration

    def read(self, line: str, line_number: int | None = None) -> DecodedPoint:
        """Decode one line into a point.

        Args:
            line: Raw line, trailing newline allowed.
            line_number: Optional one-based line number for error context.

        Returns:
            Decoded point with timestamp resolved through the date decoder.

        Raises:
            MalformedLineError: If column count, mandatory cells or coercion fail.
        """
        cells = self._split(line)
        expected = self.configuration.number_of_columns
        if len(cells) != expected:
            raise MalformedLineError(
                f"{_location(line_number)}expected {expected} columns separated by "
                f"{self.configuration.delimiter!r}, got {len(cells)}.",
                line_number,
            )
        timestamp_millis: int | None = None
        value: float | None = None
        tags: dict[str, str] = {}
        for column, raw_cell in zip(self.configuration.columns, cells):
            cell = raw_cell.strip()
            if column.role == "ignored":
                continue
            if not cell:
                if column.mandatory:
                    raise MalformedLineError(
                        f"{_location(line_number)}mandatory {column.role} column is empty.",
                        line_number,
                    )
                continue
            if column.role == "timestamp":
                timestamp_millis = _decode_timestamp(column, cell, line_number)
            elif column.role == "value":
                value = _decode_value(column, cell, line_number)
            elif column.tag_name is not None:
                tags[column.tag_name] = cell
        if timestamp_millis is None:
            raise MalformedLineError(f"{_location(line_number)}timestamp is missing.", line_number)
        return DecodedPoint(timestamp_millis=timestamp_millis, value=value, tag_overrides=tags)

    def test(self, line: str) -> bool:
        """Return whether a line structurally looks like a data line."""
        if not line.strip():
            return False
        return len(self._split(line)) == self.configuration.number_of_columns

    def decode_lines(self, lines: Iterable[str]) -> Iterator[DecodedLine]:
        """Lazily decode a stream, one outcome per non-blank data line.

        Configured header lines are dropped, then leading lines failing
        :meth:`test` are dropped as extra headers. Once the first data
        line is seen, any undecodable line is yielded as an error so the
        caller applies its own policy and the iteration can continue.
        """
        seen_data = False
        for line_number, line in enumerate(lines, 1):
            if line_number <= self.configuration.header_lines or not line.strip():
                continue
            if not seen_data and not self.test(line):
                continue
            seen_data = True
            try:
                point = self.read(line, line_number)
            except MalformedLineError as error:
                yield DecodedLine(line_number=line_number, error=error)
                continue
            yield DecodedLine(line_number=line_number, point=point)

    def _split(self, line: str) -> list[str]:
        return line.rstrip("\r\n").split(self.configuration.delimiter)


def _decode_timestamp(column: ColumnConfiguration, cell: str, line_number: int | None) -> int:
    if column.date_decoder is None:
        raise MalformedLineError(f"{_location(line_number)}no date decoder configured.", line_number)
    try:
        return column.date_decoder.parse(cell)
    except ValueError as error:
        raise MalformedLineError(
            f"{_location(line_number)}cannot decode timestamp {cell!r}: {error}.", line_number
        ) from error


def _decode_value(column: ColumnConfiguration, cell: str, line_number: int | None) -> float:
    try:
        if column.value_type_hint == "int":
            return float(int(cell))
        return float(cell)
    except ValueError as error:
        raise MalformedLineError(
            f"{_location(line_number)}cannot decode value {cell!r} as "
            f"{column.value_type_hint or 'float'}.",
            line_number,
        ) from error


def _location(line_number: int | None) -> str:
    return f"line {line_number}: " if line_number is not None else ""
