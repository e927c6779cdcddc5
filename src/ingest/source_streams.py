"""Source enumeration and stream opening.

This module lists candidate source files under a session root and opens
one text stream per item, from the local file system or from S3.
"""

from __future__ import annotations

import codecs
from dataclasses import dataclass
from pathlib import Path
import threading
from typing import Any, TextIO

from core.config import IngestConfig
from core.errors import ConfigurationError, IngestDependencyError, StreamIOError
from core.s3_uri import S3Location, is_s3_uri, parse_s3_uri


@dataclass(frozen=True)
class SourceFile:
    """One candidate source under a session root.

    Attributes:
        relative_path: Path relative to the root with ``/`` separators.
        source_ref: Absolute local path or ``s3://`` URI used to open it.
    """

    relative_path: str
    source_ref: str


class SourceStreams:
    """Lists and opens sources for one runtime configuration."""

    def __init__(self, config: IngestConfig, s3_client: Any | None = None) -> None:
        self._config = config
        self._s3_client = s3_client
        self._client_lock = threading.Lock()

    def resolve_root(self, root_path: str) -> str:
        """Resolve a session root against the configured import root."""
        if is_s3_uri(root_path):
            return root_path
        candidate = Path(root_path).expanduser()
        if not candidate.is_absolute():
            candidate = self._config.import_root / candidate
        return str(candidate.resolve())

    def list_sources(self, root_path: str) -> list[SourceFile]:
        """List every file under a root, sorted by relative path.

        Raises:
            ConfigurationError: If a local root does not exist.
        """
        resolved_root = self.resolve_root(root_path)
        if is_s3_uri(resolved_root):
            return self._list_s3_sources(parse_s3_uri(resolved_root))
        return _list_local_sources(Path(resolved_root))

    def open(self, source_ref: str) -> TextIO:
        """Open one source as a UTF-8 text stream.

        Raises:
            StreamIOError: If the source cannot be opened.
        """
        if is_s3_uri(source_ref):
            return self._open_s3_source(parse_s3_uri(source_ref))
        try:
            return open(source_ref, encoding="utf-8")
        except OSError as error:
            raise StreamIOError(
                f"Failed to open source {source_ref}: {error}. Check the file exists and is readable."
            ) from error

    def _list_s3_sources(self, location: S3Location) -> list[SourceFile]:
        s3_client = self._client()
        paginator = s3_client.get_paginator("list_objects_v2")
        pages = paginator.paginate(Bucket=location.bucket, Prefix=location.prefix)
        base = location.prefix.rstrip("/")
        sources: list[SourceFile] = []
        for page in pages:
            for obj in page.get("Contents", []):
                key = obj["Key"]
                if key.endswith("/"):
                    continue
                relative_path = key[len(base) :].lstrip("/") if base else key
                sources.append(
                    SourceFile(relative_path=relative_path, source_ref=f"s3://{location.bucket}/{key}")
                )
        return sorted(sources, key=lambda source: source.relative_path)

    def _open_s3_source(self, location: S3Location) -> TextIO:
        s3_client = self._client()
        try:
            response = s3_client.get_object(Bucket=location.bucket, Key=location.prefix)
        except Exception as error:
            raise StreamIOError(
                f"Failed to open source {location.uri}: {error}. Check the object exists and "
                "credentials allow s3:GetObject."
            ) from error
        return codecs.getreader("utf-8")(response["Body"])

    def _client(self) -> Any:
        with self._client_lock:
            if self._s3_client is None:
                self._s3_client = _create_s3_client(self._config)
            return self._s3_client


def _list_local_sources(root: Path) -> list[SourceFile]:
    if not root.exists():
        raise ConfigurationError(
            f"Session root {root} does not exist. Provide an existing directory or s3:// URI."
        )
    if root.is_file():
        return [SourceFile(relative_path=root.name, source_ref=str(root))]
    return [
        SourceFile(relative_path=file_path.relative_to(root).as_posix(), source_ref=str(file_path))
        for file_path in sorted(root.rglob("*"))
        if file_path.is_file()
    ]


def _create_s3_client(config: IngestConfig) -> Any:
    """Create a boto3 S3 client.

    Raises:
        IngestDependencyError: If boto3 is missing.
    """
    try:
        import boto3
    except ImportError as error:
        raise IngestDependencyError(
            "S3 support requires boto3, but it is not installed. "
            "Install boto3 to import from s3:// roots."
        ) from error
    session_kwargs = _build_boto3_session_kwargs(config)
    session = boto3.session.Session(**session_kwargs)
    return session.client("s3")


def _build_boto3_session_kwargs(config: IngestConfig) -> dict[str, str]:
    kwargs: dict[str, str] = {}
    if config.s3_profile:
        kwargs["profile_name"] = config.s3_profile
    if config.s3_region:
        kwargs["region_name"] = config.s3_region
    return kwargs
