"""Session analysis: enumerate sources into import items.

Each file under the session root whose relative path fully matches the
request path pattern becomes one ``PENDING`` item. Named groups of the
pattern become item tags; the metric group names the item metric.
"""

from __future__ import annotations

import re
from string import Template

from core.config import IngestConfig
from core.constants import IMPORT_DATE_FORMAT, IMPORT_DATE_TAG_NAME
from core.errors import ConfigurationError
from core.logging_config import get_logger
from core.types import SessionRequest
from ingest.session_model import ImportItem, ImportSession, new_item_id, new_session_id, utc_now
from ingest.source_streams import SourceStreams

_LOGGER = get_logger(__name__)


def analyse_session(
    request: SessionRequest,
    config: IngestConfig,
    streams: SourceStreams,
    session_id: str | None = None,
) -> ImportSession:
    """Build an analysed session from a request.

    Args:
        request: Session request to enumerate.
        config: Runtime configuration (metric group name, import root).
        streams: Source lister for local and S3 roots.
        session_id: Optional explicit session identifier.

    Returns:
        Session in ``ANALYSED`` status holding one item per matching source.

    Raises:
        ConfigurationError: If the pattern, root or func id template is invalid.
    """
    pattern = compile_path_pattern(request.path_pattern, config.metric_group_name)
    session = ImportSession(session_id=session_id or new_session_id(), request=request)
    session.analysis_started_at = utc_now()
    import_date = session.analysis_started_at.strftime(IMPORT_DATE_FORMAT)
    for source in streams.list_sources(request.root_path):
        match = pattern.fullmatch(source.relative_path)
        if match is None:
            continue
        extracted = {name: value for name, value in match.groupdict().items() if value}
        metric = extracted.pop(config.metric_group_name, "")
        if not metric:
            _LOGGER.warning(
                "source_skipped",
                session_id=session.session_id,
                source=source.relative_path,
                reason="empty metric group",
            )
            continue
        tags = {**request.tags, **extracted, IMPORT_DATE_TAG_NAME: import_date}
        session.items.append(
            ImportItem(
                item_id=new_item_id(),
                session_id=session.session_id,
                source_ref=source.source_ref,
                metric=metric,
                func_id=build_func_id(request.func_id_pattern, metric, tags),
                tags=tags,
            )
        )
    session.analysis_ended_at = utc_now()
    session.transition("ANALYSED")
    _LOGGER.info(
        "session_analysed",
        session_id=session.session_id,
        name=request.name,
        item_count=len(session.items),
    )
    return session


def compile_path_pattern(path_pattern: str, metric_group_name: str) -> re.Pattern[str]:
    """Compile a path pattern and require its metric group.

    Raises:
        ConfigurationError: If the regex is invalid or lacks the metric group.
    """
    try:
        pattern = re.compile(path_pattern)
    except re.error as error:
        raise ConfigurationError(f"Invalid path pattern {path_pattern!r}: {error}.") from error
    if metric_group_name not in pattern.groupindex:
        raise ConfigurationError(
            f"Path pattern {path_pattern!r} has no named group {metric_group_name!r}. "
            f"Add (?P<{metric_group_name}>...) to capture the metric."
        )
    return pattern


def build_func_id(func_id_pattern: str, metric: str, tags: dict[str, str]) -> str:
    """Substitute ``${metric}`` and tag names into a func id template.

    Raises:
        ConfigurationError: If the template references an unknown name.
    """
    try:
        return Template(func_id_pattern).substitute({**tags, "metric": metric})
    except KeyError as error:
        raise ConfigurationError(
            f"Func id pattern {func_id_pattern!r} references unknown name {error.args[0]!r}. "
            "Use ${metric} or a tag captured by the path pattern."
        ) from error
    except ValueError as error:
        raise ConfigurationError(f"Invalid func id pattern {func_id_pattern!r}: {error}.") from error
