"""OpenTSDB HTTP sink.

JSON chunks are posted to ``/api/put?summary&details`` so a partially
rejected batch comes back as a 400 with per-point errors instead of an
opaque failure. Line protocol chunks are posted as ``text/plain``.
"""

from __future__ import annotations

from typing import Any

import httpx

from core.config import IngestConfig
from core.constants import OPENTSDB_PUT_PATH
from core.errors import SinkWriteError
from core.logging_config import get_logger
from core.types import SerializedChunk, SinkWriteResult
from ingest.session_model import ImportItem

_LOGGER = get_logger(__name__)
_CONTENT_TYPES = {"json": "application/json", "line": "text/plain"}


class OpenTsdbSink:
    """Thread-safe sink writing chunks to an OpenTSDB-compatible endpoint."""

    def __init__(
        self,
        base_url: str,
        timeout_s: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout_s)

    @classmethod
    def from_config(cls, config: IngestConfig) -> "OpenTsdbSink":
        return cls(config.sink_url, timeout_s=config.sink_timeout_s)

    def __enter__(self) -> "OpenTsdbSink":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def write(self, chunk: SerializedChunk, item: ImportItem, chunk_number: int) -> SinkWriteResult:
        """Post one chunk.

        Returns:
            Success count and per-point errors for accepted batches.

        Raises:
            SinkWriteError: On transport errors or rejected batches.
        """
        params = {"summary": "", "details": ""} if chunk.wire_format == "json" else None
        try:
            response = self._client.post(
                f"{self._base_url}{OPENTSDB_PUT_PATH}",
                params=params,
                content=chunk.payload.encode("utf-8"),
                headers={"Content-Type": _CONTENT_TYPES[chunk.wire_format]},
            )
        except httpx.HTTPError as error:
            raise SinkWriteError(
                f"Sink request for {item.item_id} chunk #{chunk_number} failed: {error}. "
                f"Check {self._base_url} is reachable."
            ) from error
        if response.status_code in (200, 204):
            return SinkWriteResult(success_count=chunk.point_count)
        if response.status_code == 400:
            details = _parse_details(response)
            if details is not None:
                return _partial_result(details, chunk.point_count)
        _LOGGER.error(
            "sink_write_rejected",
            item_id=item.item_id,
            chunk_number=chunk_number,
            status_code=response.status_code,
        )
        raise SinkWriteError(
            f"Sink rejected {item.item_id} chunk #{chunk_number} with HTTP "
            f"{response.status_code}: {response.text[:200]}"
        )

    def close(self) -> None:
        self._client.close()


def _parse_details(response: httpx.Response) -> dict[str, Any] | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    if not isinstance(payload, dict) or "failed" not in payload:
        return None
    return payload


def _partial_result(details: dict[str, Any], point_count: int) -> SinkWriteResult:
    failed_count = int(details.get("failed", 0))
    success_count = int(details.get("success", point_count - failed_count))
    errors = tuple(
        str(entry.get("error", entry)) if isinstance(entry, dict) else str(entry)
        for entry in details.get("errors", [])
    )
    return SinkWriteResult(success_count=success_count, failed_count=failed_count, errors=errors)
