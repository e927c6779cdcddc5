"""Public SDK surface for tsingest.

This module provides a stable import path for SDK users.
It re-exports the primary client, typed models and plug-in points.
"""

from __future__ import annotations

from core.config import IngestConfig
from core.session_spec import load_session_request
from core.types import DecodedPoint, SerializedChunk, SessionRequest, SessionStats, SinkWriteResult
from ingest.date_decoders import IsoDateDecoder, MonthNameDateDecoder, NumericEpochDecoder
from ingest.formats import FormatDefinition, FormatRegistry, default_format_registry
from ingest.line_reader import LineReader
from ingest.reader_config import ReaderConfiguration
from ingest.serializers import (
    DatapointsJsonSerializer,
    FormatSerializer,
    LineProtocolSerializer,
    OpenTsdbJsonSerializer,
)
from ingest.session_model import ImportItem, ImportSession, ImportStatus
from sink.directory_sink import DirectorySink
from sink.opentsdb_sink import OpenTsdbSink
from store.session_sdk import IngestClient

__all__ = [
    "DatapointsJsonSerializer",
    "DecodedPoint",
    "DirectorySink",
    "FormatDefinition",
    "FormatRegistry",
    "FormatSerializer",
    "ImportItem",
    "ImportSession",
    "ImportStatus",
    "IngestClient",
    "IngestConfig",
    "IsoDateDecoder",
    "LineProtocolSerializer",
    "LineReader",
    "MonthNameDateDecoder",
    "NumericEpochDecoder",
    "OpenTsdbJsonSerializer",
    "OpenTsdbSink",
    "ReaderConfiguration",
    "SerializedChunk",
    "SessionRequest",
    "SessionStats",
    "SinkWriteResult",
    "default_format_registry",
    "load_session_request",
]
