"""Unit tests for the OpenTSDB HTTP sink."""

from __future__ import annotations

import httpx
import pytest

from core.errors import SinkWriteError
from core.types import SerializedChunk
from ingest.session_model import ImportItem
from sink.opentsdb_sink import OpenTsdbSink

_ITEM = ImportItem(item_id="item-1", session_id="s1", source_ref="/a.csv", metric="m", func_id="m")


def _chunk(wire_format: str = "json") -> SerializedChunk:
    return SerializedChunk(
        payload='[{"metric": "m"}]' if wire_format == "json" else "put m 1 1 site=a",
        wire_format=wire_format,  # type: ignore[arg-type]
        point_count=3,
        min_timestamp=1,
        max_timestamp=3,
    )


def _sink(handler) -> OpenTsdbSink:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return OpenTsdbSink("http://tsdb:4242/", client=client)


def test_write_posts_json_with_details_flags() -> None:
    """JSON chunks go to /api/put with summary and details requested."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(204)

    result = _sink(handler).write(_chunk(), _ITEM, 1)

    request = seen[0]
    assert (
        result.success_count == 3
        and request.url.path == "/api/put"
        and "details" in request.url.params
        and request.headers["content-type"] == "application/json"
    )


def test_write_posts_line_protocol_as_text() -> None:
    """Line protocol chunks are sent as plain text."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200)

    _sink(handler).write(_chunk("line"), _ITEM, 1)

    assert seen[0].headers["content-type"] == "text/plain" and seen[0].content == b"put m 1 1 site=a"


def test_write_reports_partial_failure() -> None:
    """A 400 with details is a partial failure with per-point errors."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400,
            json={"success": 2, "failed": 1, "errors": [{"datapoint": {}, "error": "Unable to parse value"}]},
        )

    result = _sink(handler).write(_chunk(), _ITEM, 1)

    assert (result.success_count, result.failed_count, result.errors) == (
        2,
        1,
        ("Unable to parse value",),
    )


def test_write_raises_on_server_error() -> None:
    """Non-detail error responses reject the whole batch."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="internal error")

    with pytest.raises(SinkWriteError, match="HTTP 500"):
        _sink(handler).write(_chunk(), _ITEM, 2)


def test_write_raises_on_transport_error() -> None:
    """Connection failures become SinkWriteError."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(SinkWriteError, match="reachable"):
        _sink(handler).write(_chunk(), _ITEM, 1)
