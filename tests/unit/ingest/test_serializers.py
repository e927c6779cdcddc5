"""Unit tests for streaming format serializers."""

from __future__ import annotations

import io
import json

import pytest

from core.errors import MalformedLineError, SerializerStateError
from ingest.date_decoders import IsoDateDecoder, NumericEpochDecoder
from ingest.line_reader import LineReader
from ingest.reader_config import ReaderConfiguration
from ingest.serializers import (
    DatapointsJsonSerializer,
    LineProtocolSerializer,
    OpenTsdbJsonSerializer,
)


def _iso_reader() -> LineReader:
    return LineReader(
        ReaderConfiguration(header_lines=1)
        .add_column_configuration(date_decoder=IsoDateDecoder(), is_date=True)
        .add_column_configuration(value_type_hint="float")
    )


def _iso_stream(values: list[str]) -> io.StringIO:
    lines = ["timestamp;value"]
    lines.extend(f"2017-02-03T10:00:{index:02d}Z;{value}" for index, value in enumerate(values))
    return io.StringIO("\n".join(lines) + "\n")


def _drain(serializer, max_points: int) -> list[int]:
    sizes = []
    while serializer.has_next():
        sizes.append(serializer.next(max_points).point_count)
    return sizes


def test_next_emits_bounded_chunks_in_file_order() -> None:
    """Five points with chunk size two produce chunks of 2, 2 and 1."""
    serializer = OpenTsdbJsonSerializer(_iso_reader())
    serializer.init(_iso_stream(["1", "2", "3", "4", "5"]), "a.csv", "temperature", {"site": "a"})

    sizes = _drain(serializer, 2)

    assert sizes == [2, 2, 1] and serializer.total_points_read == 5 and serializer.get_dates() == (
        1486116000000,
        1486116004000,
    )


def test_opentsdb_json_payload_records() -> None:
    """JSON payload lists metric, timestamp, value and tags per point."""
    serializer = OpenTsdbJsonSerializer(_iso_reader())
    serializer.init(_iso_stream(["1.5"]), "a.csv", "temperature", {"site": "a"})

    payload = json.loads(serializer.next(10).payload)

    assert payload == [
        {"metric": "temperature", "timestamp": 1486116000000, "value": 1.5, "tags": {"site": "a"}}
    ]


def test_empty_tags_fall_back_to_metric_tag() -> None:
    """Points without any tag carry a metric tag."""
    serializer = OpenTsdbJsonSerializer(_iso_reader())
    serializer.init(_iso_stream(["1"]), "a.csv", "temperature", {})

    payload = json.loads(serializer.next(10).payload)

    assert payload[0]["tags"] == {"metric": "temperature"}


def test_datapoints_json_groups_by_tag_set() -> None:
    """Datapoints payload groups points per distinct tag set in first-seen order."""
    reader = LineReader(
        ReaderConfiguration()
        .add_column_configuration(date_decoder=NumericEpochDecoder(), is_date=True)
        .add_column_configuration()
        .add_column_configuration(tag_name="quality")
    )
    serializer = DatapointsJsonSerializer(reader)
    stream = io.StringIO("1000000;1;GOOD\n2000000;2;BAD\n3000000;3;GOOD\n")
    serializer.init(stream, "flow.csv", "flow", {"site": "a"})

    payload = json.loads(serializer.next(10).payload)

    assert payload == [
        {"metric": "flow", "tags": {"site": "a", "quality": "GOOD"}, "datapoints": [[1000, 1.0], [3000, 3.0]]},
        {"metric": "flow", "tags": {"site": "a", "quality": "BAD"}, "datapoints": [[2000, 2.0]]},
    ]


def test_line_protocol_payload() -> None:
    """Line protocol emits one put line per point."""
    reader = LineReader(
        ReaderConfiguration()
        .add_column_configuration(date_decoder=NumericEpochDecoder(), is_date=True)
        .add_column_configuration()
    )
    serializer = LineProtocolSerializer(reader)
    serializer.init(io.StringIO("1000000;1.5\n2000000;2\n"), "p.txt", "pressure", {"site": "a"})

    chunk = serializer.next(10)

    assert chunk.wire_format == "line" and chunk.payload == (
        "put pressure 1000 1.5 site=a\nput pressure 2000 2 site=a"
    )


def test_skip_policy_records_warning_and_continues() -> None:
    """A malformed line under skip policy is dropped with one warning."""
    serializer = OpenTsdbJsonSerializer(_iso_reader(), "skip")
    serializer.init(_iso_stream(["1", "bad", "3"]), "a.csv", "temperature", {})

    sizes = _drain(serializer, 10)

    assert sizes == [2] and len(serializer.warnings) == 1 and "line 3" in serializer.warnings[0]


def test_abort_policy_emits_prior_points_then_raises() -> None:
    """Abort policy flushes points read before the bad line, then fails."""
    serializer = OpenTsdbJsonSerializer(_iso_reader(), "abort")
    serializer.init(_iso_stream(["1", "2", "bad", "4"]), "a.csv", "temperature", {})

    first_chunk = serializer.next(10)
    with pytest.raises(MalformedLineError, match="a.csv"):
        serializer.next(10)

    assert first_chunk.point_count == 2 and not serializer.has_next()


def test_get_dates_before_exhaustion_raises() -> None:
    """Dates are only available once the stream is exhausted."""
    serializer = OpenTsdbJsonSerializer(_iso_reader())
    serializer.init(_iso_stream(["1", "2", "3"]), "a.csv", "temperature", {})
    serializer.next(1)

    with pytest.raises(SerializerStateError):
        serializer.get_dates()


def test_get_dates_of_empty_stream() -> None:
    """An exhausted empty stream reports unset dates."""
    serializer = OpenTsdbJsonSerializer(_iso_reader())
    serializer.init(_iso_stream([]), "a.csv", "temperature", {})

    has_next = serializer.has_next()

    assert not has_next and serializer.get_dates() == (None, None)


def test_init_twice_raises() -> None:
    """A serializer instance binds to exactly one stream."""
    serializer = OpenTsdbJsonSerializer(_iso_reader())
    serializer.init(_iso_stream(["1"]), "a.csv", "temperature", {})

    with pytest.raises(SerializerStateError):
        serializer.init(_iso_stream(["2"]), "b.csv", "temperature", {})


def test_next_before_init_raises() -> None:
    """Using an unbound serializer is a contract violation."""
    with pytest.raises(SerializerStateError):
        OpenTsdbJsonSerializer(_iso_reader()).next(1)


def test_clone_returns_fresh_state() -> None:
    """A clone of a used serializer starts with no points and no dates."""
    serializer = OpenTsdbJsonSerializer(_iso_reader(), "abort")
    serializer.init(_iso_stream(["1", "2"]), "a.csv", "temperature", {})
    _drain(serializer, 1)

    clone = serializer.clone()
    clone.init(_iso_stream([]), "b.csv", "temperature", {})
    clone.has_next()

    assert (
        type(clone) is OpenTsdbJsonSerializer
        and clone.line_error_policy == "abort"
        and clone.total_points_read == 0
        and clone.get_dates() == (None, None)
    )


def test_context_manager_closes_stream_on_error() -> None:
    """Leaving the with block closes the stream even when next() fails."""
    stream = _iso_stream(["bad"])
    serializer = OpenTsdbJsonSerializer(_iso_reader(), "abort")
    serializer.init(stream, "a.csv", "temperature", {})

    with pytest.raises(MalformedLineError):
        with serializer:
            serializer.next(1)

    assert stream.closed


def test_skip_policy_drops_unrepresentable_epoch() -> None:
    """An epoch too large to decode is one skipped line, not a failed stream."""
    reader = LineReader(
        ReaderConfiguration()
        .add_column_configuration(date_decoder=NumericEpochDecoder(), is_date=True)
        .add_column_configuration()
    )
    serializer = LineProtocolSerializer(reader, "skip")
    stream = io.StringIO("1500000000000000;1\n1e999999999;2\n1500000001000000;3\n")
    serializer.init(stream, "p.txt", "pressure", {"site": "a"})

    sizes = _drain(serializer, 10)

    assert sizes == [2] and len(serializer.warnings) == 1 and "line 2" in serializer.warnings[0]
