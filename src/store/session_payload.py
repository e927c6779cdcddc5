"""JSON serialization for import sessions and items.

This module centralizes payload conversion and JSON file IO used by the
session store and SDK.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, cast

from core.constants import LINE_ERROR_POLICIES
from core.errors import IngestStoreError
from core.types import LineErrorPolicy, SessionRequest
from ingest.session_model import ALLOWED_ITEM_TRANSITIONS, ALLOWED_SESSION_TRANSITIONS
from ingest.session_model import ImportItem, ImportSession, ImportStatus


def item_to_payload(item: ImportItem) -> dict[str, object]:
    """Serialize an import item into a JSON-safe payload."""
    return {
        "item_id": item.item_id,
        "session_id": item.session_id,
        "source_ref": item.source_ref,
        "metric": item.metric,
        "func_id": item.func_id,
        "tags": dict(item.tags),
        "status": item.status,
        "created_at": _format_datetime(item.created_at),
        "import_started_at": _format_datetime(item.import_started_at),
        "import_ended_at": _format_datetime(item.import_ended_at),
        "points_read": item.points_read,
        "point_count": item.point_count,
        "points_failed": item.points_failed,
        "min_date": item.min_date,
        "max_date": item.max_date,
        "errors": list(item.errors),
        "warnings": list(item.warnings),
    }


def item_from_payload(payload: dict[str, Any], payload_path: Path) -> ImportItem:
    """Deserialize an item payload from JSON."""
    try:
        return ImportItem(
            item_id=str(payload["item_id"]),
            session_id=str(payload["session_id"]),
            source_ref=str(payload["source_ref"]),
            metric=str(payload["metric"]),
            func_id=str(payload["func_id"]),
            tags={str(key): str(value) for key, value in dict(payload.get("tags", {})).items()},
            status=_parse_status(payload.get("status"), ALLOWED_ITEM_TRANSITIONS, payload_path),
            created_at=_required_datetime(payload.get("created_at"), payload_path),
            import_started_at=_parse_datetime(payload.get("import_started_at")),
            import_ended_at=_parse_datetime(payload.get("import_ended_at")),
            points_read=int(payload.get("points_read", 0)),
            point_count=int(payload.get("point_count", 0)),
            points_failed=int(payload.get("points_failed", 0)),
            min_date=_optional_int(payload.get("min_date")),
            max_date=_optional_int(payload.get("max_date")),
            errors=[str(message) for message in payload.get("errors", [])],
            warnings=[str(message) for message in payload.get("warnings", [])],
        )
    except KeyError as error:
        raise IngestStoreError(
            f"Invalid item at {payload_path}: missing required field {error.args[0]!r}."
        ) from error


def session_to_payload(session: ImportSession) -> dict[str, object]:
    """Serialize session metadata; items are stored separately."""
    request = session.request
    return {
        "session_id": session.session_id,
        "status": session.status,
        "created_at": _format_datetime(session.created_at),
        "analysis_started_at": _format_datetime(session.analysis_started_at),
        "analysis_ended_at": _format_datetime(session.analysis_ended_at),
        "ingestion_started_at": _format_datetime(session.ingestion_started_at),
        "ingestion_ended_at": _format_datetime(session.ingestion_ended_at),
        "item_ids": [item.item_id for item in session.items],
        "request": {
            "name": request.name,
            "root_path": request.root_path,
            "path_pattern": request.path_pattern,
            "format_name": request.format_name,
            "func_id_pattern": request.func_id_pattern,
            "description": request.description,
            "tags": dict(request.tags),
            "line_error_policy": request.line_error_policy,
            "chunk_size": request.chunk_size,
        },
    }


def session_from_payload(
    payload: dict[str, Any],
    items: list[ImportItem],
    payload_path: Path,
) -> ImportSession:
    """Deserialize session metadata and attach its loaded items."""
    raw_request = payload.get("request")
    if not isinstance(raw_request, dict):
        raise IngestStoreError(f"Invalid session at {payload_path}: request must be an object.")
    try:
        request = SessionRequest(
            name=str(raw_request["name"]),
            root_path=str(raw_request["root_path"]),
            path_pattern=str(raw_request["path_pattern"]),
            format_name=str(raw_request["format_name"]),
            func_id_pattern=str(raw_request["func_id_pattern"]),
            description=_optional_str(raw_request.get("description")),
            tags={str(key): str(value) for key, value in dict(raw_request.get("tags", {})).items()},
            line_error_policy=_parse_policy(raw_request.get("line_error_policy"), payload_path),
            chunk_size=_optional_int(raw_request.get("chunk_size")),
        )
        return ImportSession(
            session_id=str(payload["session_id"]),
            request=request,
            items=items,
            status=_parse_status(payload.get("status"), ALLOWED_SESSION_TRANSITIONS, payload_path),
            created_at=_required_datetime(payload.get("created_at"), payload_path),
            analysis_started_at=_parse_datetime(payload.get("analysis_started_at")),
            analysis_ended_at=_parse_datetime(payload.get("analysis_ended_at")),
            ingestion_started_at=_parse_datetime(payload.get("ingestion_started_at")),
            ingestion_ended_at=_parse_datetime(payload.get("ingestion_ended_at")),
        )
    except KeyError as error:
        raise IngestStoreError(
            f"Invalid session at {payload_path}: missing required field {error.args[0]!r}."
        ) from error


def read_json_file(payload_path: Path) -> dict[str, Any]:
    """Read one JSON object from disk with traceable errors."""
    try:
        payload = json.loads(payload_path.read_text(encoding="utf-8"))
    except FileNotFoundError as error:
        raise IngestStoreError(f"Missing metadata file at {payload_path}.") from error
    except json.JSONDecodeError as error:
        raise IngestStoreError(f"Failed to parse JSON at {payload_path}: {error.msg}.") from error
    except OSError as error:
        raise IngestStoreError(f"Failed to read metadata file {payload_path}: {error}.") from error
    if not isinstance(payload, dict):
        raise IngestStoreError(f"Invalid metadata at {payload_path}: expected a JSON object.")
    return payload


def write_json_file(payload_path: Path, payload: object) -> None:
    """Write one JSON payload atomically with traceable errors."""
    temporary_path = payload_path.with_name(payload_path.name + ".tmp")
    try:
        payload_path.parent.mkdir(parents=True, exist_ok=True)
        temporary_path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
        temporary_path.replace(payload_path)
    except OSError as error:
        raise IngestStoreError(f"Failed to write metadata file {payload_path}: {error}.") from error


def _parse_status(
    raw_status: object,
    allowed: dict[ImportStatus, tuple[ImportStatus, ...]],
    payload_path: Path,
) -> ImportStatus:
    if isinstance(raw_status, str) and raw_status in allowed:
        return cast(ImportStatus, raw_status)
    raise IngestStoreError(
        f"Invalid status {raw_status!r} at {payload_path}: expected one of {', '.join(allowed)}."
    )


def _parse_policy(raw_policy: object, payload_path: Path) -> LineErrorPolicy | None:
    if raw_policy is None:
        return None
    if raw_policy in LINE_ERROR_POLICIES:
        return cast(LineErrorPolicy, raw_policy)
    raise IngestStoreError(f"Invalid line error policy {raw_policy!r} at {payload_path}.")


def _format_datetime(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_datetime(raw_value: object) -> datetime | None:
    if raw_value is None:
        return None
    return datetime.fromisoformat(str(raw_value))


def _required_datetime(raw_value: object, payload_path: Path) -> datetime:
    parsed = _parse_datetime(raw_value)
    if parsed is None:
        raise IngestStoreError(f"Invalid metadata at {payload_path}: created_at is required.")
    return parsed


def _optional_int(raw_value: object) -> int | None:
    if raw_value is None:
        return None
    return int(cast(int, raw_value))


def _optional_str(raw_value: object) -> str | None:
    if raw_value is None:
        return None
    return str(raw_value)
