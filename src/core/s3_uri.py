"""S3 URI parsing helpers.

This module centralizes S3 URI parsing for session roots and item sources.
"""

from __future__ import annotations

from dataclasses import dataclass

from core.errors import ConfigurationError


@dataclass(frozen=True)
class S3Location:
    """Parsed S3 location model."""

    bucket: str
    prefix: str

    @property
    def uri(self) -> str:
        return f"s3://{self.bucket}/{self.prefix}"


def is_s3_uri(value: str) -> bool:
    return value.startswith("s3://")


def parse_s3_uri(uri: str) -> S3Location:
    """Parse and validate an S3 URI.

    Args:
        uri: URI in format ``s3://bucket`` or ``s3://bucket/prefix``.

    Returns:
        Parsed bucket and prefix pair, the prefix may be empty.

    Raises:
        ConfigurationError: If the bucket is missing.
    """
    stripped_uri = uri.removeprefix("s3://")
    bucket, _, prefix = stripped_uri.partition("/")
    if not bucket:
        raise ConfigurationError(
            f"Invalid S3 URI '{uri}': expected s3://bucket/prefix. Provide a bucket name."
        )
    return S3Location(bucket=bucket, prefix=prefix)
