"""Typed session-spec parsing for declarative imports.

This module loads and validates YAML session-spec files used by the CLI
and SDK. One strict schema describes which sources to import, how to
name their metrics and which format decodes them.

Example::

    name: turbine-fleet
    root_path: data/turbines
    path_pattern: "(?P<site>[^/]+)/(?P<metric>[^/.]+)\\.csv"
    format: iso-csv
    func_id_pattern: "${site}_${metric}"
    tags:
      campaign: "2017"
    line_error_policy: skip
    chunk_size: 500
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, cast

from core.constants import DEFAULT_FUNC_ID_PATTERN, LINE_ERROR_POLICIES
from core.errors import IngestDependencyError, SessionSpecError
from core.types import LineErrorPolicy, SessionRequest

_REQUIRED_KEYS = ("name", "root_path", "path_pattern", "format")
_OPTIONAL_KEYS = ("func_id_pattern", "description", "tags", "line_error_policy", "chunk_size")


def load_session_request(spec_path: str) -> SessionRequest:
    """Load and validate a YAML session spec from disk.

    Args:
        spec_path: File path to YAML session spec.

    Returns:
        Validated session request.

    Raises:
        IngestDependencyError: If PyYAML is unavailable.
        SessionSpecError: If file is invalid or schema checks fail.
    """
    payload = _load_yaml_payload(spec_path)
    return parse_session_request(_expect_mapping(payload, "session spec root"))


def parse_session_request(root_mapping: Mapping[str, object]) -> SessionRequest:
    """Validate an already-decoded session spec mapping."""
    _validate_root_keys(root_mapping)
    func_id_pattern = _optional_string(root_mapping, "func_id_pattern")
    return SessionRequest(
        name=_required_string(root_mapping, "name"),
        root_path=_required_string(root_mapping, "root_path"),
        path_pattern=_required_string(root_mapping, "path_pattern"),
        format_name=_required_string(root_mapping, "format"),
        func_id_pattern=func_id_pattern or DEFAULT_FUNC_ID_PATTERN,
        description=_optional_string(root_mapping, "description"),
        tags=_parse_tags(root_mapping.get("tags")),
        line_error_policy=_parse_line_error_policy(root_mapping.get("line_error_policy")),
        chunk_size=_parse_chunk_size(root_mapping.get("chunk_size")),
    )


def _load_yaml_payload(spec_path: str) -> object:
    try:
        import yaml  # type: ignore[import-untyped]
    except ImportError as error:  # pragma: no cover - dependency failure
        raise IngestDependencyError(
            "YAML session-spec support requires PyYAML. Install with 'pip install pyyaml'."
        ) from error
    spec_file = Path(spec_path).expanduser().resolve()
    if not spec_file.exists():
        raise SessionSpecError(
            f"Session spec file does not exist at {spec_file}. Provide a valid YAML file path."
        )
    try:
        payload = cast(object, yaml.safe_load(spec_file.read_text(encoding="utf-8")))
    except OSError as error:
        raise SessionSpecError(
            f"Failed to read session spec at {spec_file}: {error}. Check file permissions and retry."
        ) from error
    except yaml.YAMLError as error:
        raise SessionSpecError(
            f"Failed to parse YAML session spec at {spec_file}: {error}. Fix YAML syntax and retry."
        ) from error
    if payload is None:
        raise SessionSpecError(
            f"Session spec at {spec_file} is empty. Define {', '.join(_REQUIRED_KEYS)}."
        )
    return payload


def _expect_mapping(value: object, context: str) -> Mapping[str, object]:
    if isinstance(value, Mapping):
        normalized_mapping = {}
        for key, payload in value.items():
            if not isinstance(key, str):
                raise SessionSpecError(
                    f"Invalid {context}: expected string keys, got {type(key).__name__}."
                )
            normalized_mapping[key] = payload
        return normalized_mapping
    raise SessionSpecError(f"Invalid {context}: expected object mapping, got {type(value).__name__}.")


def _validate_root_keys(root_mapping: Mapping[str, object]) -> None:
    allowed_keys = set(_REQUIRED_KEYS) | set(_OPTIONAL_KEYS)
    unknown_keys = sorted(set(root_mapping) - allowed_keys)
    if unknown_keys:
        raise SessionSpecError(
            f"Unsupported session spec keys: {', '.join(unknown_keys)}. "
            f"Allowed keys: {', '.join(sorted(allowed_keys))}."
        )


def _required_string(root_mapping: Mapping[str, object], field_name: str) -> str:
    value = _optional_string(root_mapping, field_name)
    if value is None:
        raise SessionSpecError(f"Session spec is missing required field '{field_name}'.")
    return value


def _optional_string(root_mapping: Mapping[str, object], field_name: str) -> str | None:
    value = root_mapping.get(field_name)
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped if stripped else None
    raise SessionSpecError(f"Session spec field '{field_name}' must be a string when provided.")


def _parse_tags(raw_tags: object) -> dict[str, str]:
    if raw_tags is None:
        return {}
    tags_mapping = _expect_mapping(raw_tags, "session spec tags")
    tags: dict[str, str] = {}
    for key, value in tags_mapping.items():
        if isinstance(value, (dict, list)) or value is None:
            raise SessionSpecError(f"Session spec tag '{key}' must be a scalar value.")
        tags[key] = str(value)
    return tags


def _parse_line_error_policy(raw_policy: object) -> LineErrorPolicy | None:
    if raw_policy is None:
        return None
    if raw_policy not in LINE_ERROR_POLICIES:
        raise SessionSpecError(
            f"Session spec field 'line_error_policy' must be one of: {', '.join(LINE_ERROR_POLICIES)}."
        )
    return cast(LineErrorPolicy, raw_policy)


def _parse_chunk_size(raw_chunk_size: object) -> int | None:
    if raw_chunk_size is None:
        return None
    if isinstance(raw_chunk_size, bool) or not isinstance(raw_chunk_size, int):
        raise SessionSpecError("Session spec field 'chunk_size' must be an integer.")
    if raw_chunk_size < 1:
        raise SessionSpecError(f"Session spec field 'chunk_size' must be >= 1, got {raw_chunk_size}.")
    return raw_chunk_size
