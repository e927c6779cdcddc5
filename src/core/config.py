"""Runtime configuration model for tsingest.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from core.constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_DATA_ROOT,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MAX_WORKERS,
    DEFAULT_METRIC_GROUP_NAME,
    DEFAULT_SINK_TIMEOUT_S,
    DEFAULT_SINK_URL,
)
from core.errors import IngestConfigError


@dataclass(frozen=True)
class IngestConfig:
    """Validated runtime configuration.

    Attributes:
        data_root: Local root directory for session and item metadata.
        import_root: Base directory for relative session root paths.
        max_workers: Maximum number of import tasks running concurrently.
        chunk_size: Maximum number of points serialized per sink write.
        sink_url: Base URL of the destination time-series database.
        sink_timeout_s: Timeout applied to each sink request.
        metric_group_name: Path-pattern group name holding the metric.
        s3_region: Optional default AWS region for S3 sources.
        s3_profile: Optional AWS profile for boto3 session initialization.
        log_level: Minimum structured log level.
    """

    data_root: Path
    import_root: Path
    max_workers: int
    chunk_size: int
    sink_url: str
    sink_timeout_s: float
    metric_group_name: str
    s3_region: str | None
    s3_profile: str | None
    log_level: str

    @classmethod
    def from_env(cls) -> "IngestConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            IngestConfigError: If environment values are invalid.
        """
        data_root_value = os.getenv("TSINGEST_DATA_ROOT", str(DEFAULT_DATA_ROOT))
        import_root_value = os.getenv("TSINGEST_IMPORT_ROOT", ".")
        max_workers = _parse_positive_int(
            "TSINGEST_MAX_WORKERS", os.getenv("TSINGEST_MAX_WORKERS", str(DEFAULT_MAX_WORKERS))
        )
        chunk_size = _parse_positive_int(
            "TSINGEST_CHUNK_SIZE", os.getenv("TSINGEST_CHUNK_SIZE", str(DEFAULT_CHUNK_SIZE))
        )
        sink_timeout_s = _parse_positive_float(
            "TSINGEST_SINK_TIMEOUT",
            os.getenv("TSINGEST_SINK_TIMEOUT", str(DEFAULT_SINK_TIMEOUT_S)),
        )
        return cls(
            data_root=Path(data_root_value).expanduser().resolve(),
            import_root=Path(import_root_value).expanduser().resolve(),
            max_workers=max_workers,
            chunk_size=chunk_size,
            sink_url=os.getenv("TSINGEST_SINK_URL", DEFAULT_SINK_URL).rstrip("/"),
            sink_timeout_s=sink_timeout_s,
            metric_group_name=os.getenv("TSINGEST_METRIC_GROUP", DEFAULT_METRIC_GROUP_NAME),
            s3_region=os.getenv("TSINGEST_S3_REGION"),
            s3_profile=os.getenv("TSINGEST_S3_PROFILE"),
            log_level=os.getenv("TSINGEST_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
        )


def _parse_positive_int(variable_name: str, raw_value: str) -> int:
    """Parse a strictly positive integer environment value.

    Args:
        variable_name: Environment variable name for error context.
        raw_value: Raw string from environment.

    Returns:
        Parsed integer.

    Raises:
        IngestConfigError: If value is not an integer greater than zero.
    """
    try:
        parsed_value = int(raw_value)
    except ValueError as error:
        raise IngestConfigError(
            f"Invalid {variable_name} value: expected integer, got '{raw_value}'. "
            f"Set {variable_name} to a numeric value."
        ) from error
    if parsed_value < 1:
        raise IngestConfigError(
            f"Invalid {variable_name} value: expected integer >= 1, got {parsed_value}."
        )
    return parsed_value


def _parse_positive_float(variable_name: str, raw_value: str) -> float:
    """Parse a strictly positive float environment value."""
    try:
        parsed_value = float(raw_value)
    except ValueError as error:
        raise IngestConfigError(
            f"Invalid {variable_name} value: expected number, got '{raw_value}'. "
            f"Set {variable_name} to a numeric value."
        ) from error
    if parsed_value <= 0:
        raise IngestConfigError(
            f"Invalid {variable_name} value: expected number > 0, got {parsed_value}."
        )
    return parsed_value
