"""Core constants used across tsingest modules.

This module centralizes non-domain-specific constants.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_DATA_ROOT = Path(".tsingest")
SESSIONS_DIR_NAME = "sessions"
ITEMS_DIR_NAME = "items"
SESSION_FILE_NAME = "session.json"
DEFAULT_MAX_WORKERS = 4
DEFAULT_CHUNK_SIZE = 1000
DEFAULT_SINK_URL = "http://localhost:4242"
DEFAULT_SINK_TIMEOUT_S = 10.0
DEFAULT_METRIC_GROUP_NAME = "metric"
DEFAULT_FUNC_ID_PATTERN = "${metric}"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_FIELD_DELIMITER = ";"
IMPORT_DATE_TAG_NAME = "import_date"
IMPORT_DATE_FORMAT = "%Y.%m.%d.%H.%M.%S"
OPENTSDB_PUT_PATH = "/api/put"
LINE_ERROR_POLICIES = ("skip", "abort")
CHUNK_FILE_PREFIX = "chunk"
