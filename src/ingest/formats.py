"""Input format definitions and registry.

A format couples a reader configuration with a serializer class and a
default line error policy. Registries are plain values built at startup
and passed explicitly to the scheduler; there is no process-wide format
table.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from core.constants import LINE_ERROR_POLICIES
from core.errors import ConfigurationError
from core.types import LineErrorPolicy
from ingest.date_decoders import IsoDateDecoder, MonthNameDateDecoder, NumericEpochDecoder
from ingest.line_reader import LineReader
from ingest.reader_config import ReaderConfiguration
from ingest.serializers import (
    DatapointsJsonSerializer,
    FormatSerializer,
    LineProtocolSerializer,
    OpenTsdbJsonSerializer,
)


@dataclass(frozen=True)
class FormatDefinition:
    """One registered input format.

    Attributes:
        name: Format key referenced by session requests.
        reader_configuration: Column layout of source lines.
        serializer_class: Serializer rendering the destination wire format.
        line_error_policy: Default handling of malformed lines.
        description: Short human-readable summary.
    """

    name: str
    reader_configuration: ReaderConfiguration
    serializer_class: Callable[[LineReader, LineErrorPolicy], FormatSerializer]
    line_error_policy: LineErrorPolicy = "skip"
    description: str = ""

    def validate(self) -> None:
        """Check the definition can produce serializers.

        Raises:
            ConfigurationError: If the reader layout or policy is invalid.
        """
        if self.line_error_policy not in LINE_ERROR_POLICIES:
            raise ConfigurationError(
                f"Format {self.name!r} has unsupported line error policy "
                f"{self.line_error_policy!r}. Use one of: {', '.join(LINE_ERROR_POLICIES)}."
            )
        self.reader_configuration.validate()

    def new_serializer(self, line_error_policy: LineErrorPolicy | None = None) -> FormatSerializer:
        """Build an uninitialized serializer for this format."""
        policy = line_error_policy or self.line_error_policy
        if policy not in LINE_ERROR_POLICIES:
            raise ConfigurationError(
                f"Unsupported line error policy {policy!r}. "
                f"Use one of: {', '.join(LINE_ERROR_POLICIES)}."
            )
        return self.serializer_class(LineReader(self.reader_configuration), policy)


class FormatRegistry:
    """Name-keyed collection of format definitions."""

    def __init__(self) -> None:
        self._definitions: dict[str, FormatDefinition] = {}

    def register(self, definition: FormatDefinition, replace: bool = False) -> None:
        """Register one format, validating it first.

        Raises:
            ConfigurationError: If invalid or already registered without ``replace``.
        """
        if definition.name in self._definitions and not replace:
            raise ConfigurationError(
                f"Format {definition.name!r} is already registered. Pass replace=True to override."
            )
        definition.validate()
        self._definitions[definition.name] = definition

    def get(self, name: str) -> FormatDefinition:
        """Return one format definition by name.

        Raises:
            ConfigurationError: If no format has this name.
        """
        try:
            return self._definitions[name]
        except KeyError as error:
            known = ", ".join(sorted(self._definitions)) or "none"
            raise ConfigurationError(
                f"Unknown format {name!r}. Registered formats: {known}."
            ) from error

    def names(self) -> list[str]:
        return sorted(self._definitions)

    def definitions(self) -> list[FormatDefinition]:
        return [self._definitions[name] for name in self.names()]


def default_format_registry() -> FormatRegistry:
    """Build a registry holding the built-in formats."""
    registry = FormatRegistry()
    for definition in _builtin_formats():
        registry.register(definition)
    return registry


def _builtin_formats() -> list[FormatDefinition]:
    return [
        FormatDefinition(
            name="iso-csv",
            reader_configuration=ReaderConfiguration(header_lines=1)
            .add_column_configuration(date_decoder=IsoDateDecoder(), is_date=True)
            .add_column_configuration(value_type_hint="float"),
            serializer_class=OpenTsdbJsonSerializer,
            line_error_policy="skip",
            description="timestamp;value with ISO-8601 UTC dates, OpenTSDB JSON output",
        ),
        FormatDefinition(
            name="epoch-csv",
            reader_configuration=ReaderConfiguration(header_lines=1)
            .add_column_configuration(date_decoder=NumericEpochDecoder(), is_date=True)
            .add_column_configuration(value_type_hint="float"),
            serializer_class=OpenTsdbJsonSerializer,
            line_error_policy="abort",
            description="timestamp;value with numeric epochs divided by 1000, OpenTSDB JSON output",
        ),
        FormatDefinition(
            name="edf",
            reader_configuration=ReaderConfiguration(header_lines=1)
            .add_column_configuration(date_decoder=MonthNameDateDecoder(), is_date=True)
            .add_column_configuration(value_type_hint="float")
            .add_ignored_column()
            .add_column_configuration(tag_name="quality", mandatory=False),
            serializer_class=DatapointsJsonSerializer,
            line_error_policy="skip",
            description="date;value;-;quality with dd-MON-yy dates, datapoints JSON output",
        ),
        FormatDefinition(
            name="line-protocol",
            reader_configuration=ReaderConfiguration()
            .add_column_configuration(date_decoder=NumericEpochDecoder(), is_date=True)
            .add_column_configuration(value_type_hint="float"),
            serializer_class=LineProtocolSerializer,
            line_error_policy="skip",
            description="timestamp;value with numeric epochs, put line output",
        ),
    ]
