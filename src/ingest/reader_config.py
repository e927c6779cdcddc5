"""Declarative description of source line layouts.

A reader configuration lists the columns of one input line in order,
the role of each column, and the delimiter separating them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from core.constants import DEFAULT_FIELD_DELIMITER
from core.errors import ConfigurationError
from ingest.date_decoders import DateDecoder

ColumnRole = Literal["timestamp", "value", "tag", "ignored"]
SUPPORTED_VALUE_TYPE_HINTS = ("float", "int")


@dataclass(frozen=True)
class ColumnConfiguration:
    """One column of a source line.

    Attributes:
        role: How the column contributes to the decoded point.
        tag_name: Tag key for ``tag`` columns.
        value_type_hint: ``float`` or ``int`` coercion for value columns.
        date_decoder: Decoder for the timestamp column.
        mandatory: Whether an empty cell is a decode error.
        is_date: Whether the column holds the point timestamp.
    """

    role: ColumnRole
    tag_name: str | None = None
    value_type_hint: str | None = None
    date_decoder: DateDecoder | None = None
    mandatory: bool = True
    is_date: bool = False


class ReaderConfiguration:
    """Ordered column layout plus delimiter for one source format."""

    def __init__(self, delimiter: str = DEFAULT_FIELD_DELIMITER, header_lines: int = 0) -> None:
        self.delimiter = delimiter
        self.header_lines = header_lines
        self._columns: list[ColumnConfiguration] = []

    @property
    def columns(self) -> tuple[ColumnConfiguration, ...]:
        return tuple(self._columns)

    @property
    def number_of_columns(self) -> int:
        return len(self._columns)

    def add_column_configuration(
        self,
        tag_name: str | None = None,
        value_type_hint: str | None = None,
        date_decoder: DateDecoder | None = None,
        mandatory: bool = True,
        is_date: bool = False,
    ) -> "ReaderConfiguration":
        """Append the next column of the line layout.

        The role is derived from the arguments: ``is_date`` marks the
        timestamp column, a ``tag_name`` marks a tag column, anything
        else is the value column.

        Returns:
            The configuration itself, for chained declarations.
        """
        if is_date:
            role: ColumnRole = "timestamp"
        elif tag_name is not None:
            role = "tag"
        else:
            role = "value"
        self._columns.append(
            ColumnConfiguration(
                role=role,
                tag_name=tag_name,
                value_type_hint=value_type_hint,
                date_decoder=date_decoder,
                mandatory=mandatory,
                is_date=is_date,
            )
        )
        return self

    def add_ignored_column(self) -> "ReaderConfiguration":
        """Append a column that is present in the line but never read."""
        self._columns.append(ColumnConfiguration(role="ignored", mandatory=False))
        return self

    def validate(self) -> None:
        """Check the layout is decodable.

        Raises:
            ConfigurationError: If roles, decoders or delimiter are inconsistent.
        """
        if not self.delimiter:
            raise ConfigurationError("Reader configuration delimiter must be a non-empty string.")
        if self.header_lines < 0:
            raise ConfigurationError(
                f"Reader configuration header_lines must be >= 0, got {self.header_lines}."
            )
        timestamp_columns = [column for column in self._columns if column.role == "timestamp"]
        value_columns = [column for column in self._columns if column.role == "value"]
        if len(timestamp_columns) != 1:
            raise ConfigurationError(
                "Reader configuration requires exactly one timestamp column, "
                f"got {len(timestamp_columns)}."
            )
        if timestamp_columns[0].date_decoder is None:
            raise ConfigurationError("Reader configuration timestamp column has no date decoder.")
        if len(value_columns) != 1:
            raise ConfigurationError(
                f"Reader configuration requires exactly one value column, got {len(value_columns)}."
            )
        hint = value_columns[0].value_type_hint
        if hint is not None and hint not in SUPPORTED_VALUE_TYPE_HINTS:
            raise ConfigurationError(
                f"Unsupported value type hint {hint!r}. "
                f"Use one of: {', '.join(SUPPORTED_VALUE_TYPE_HINTS)}."
            )
        _validate_tag_columns(self._columns)


def _validate_tag_columns(columns: list[ColumnConfiguration]) -> None:
    seen_names: set[str] = set()
    for column in columns:
        if column.role != "tag":
            continue
        if not column.tag_name:
            raise ConfigurationError("Reader configuration tag column requires a tag name.")
        if column.tag_name in seen_names:
            raise ConfigurationError(
                f"Reader configuration declares tag column {column.tag_name!r} twice."
            )
        seen_names.add(column.tag_name)
