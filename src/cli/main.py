"""tsingest CLI entry points.
This module exposes commands to import, inspect and retry sessions.
It maps argparse commands onto SDK calls.
"""

from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path
from typing import Any, Sequence

from core.config import IngestConfig
from core.logging_config import configure_logging
from sink.directory_sink import DirectorySink
from store.session_sdk import IngestClient


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(prog="tsingest", description="Time-series batch import CLI")
    parser.add_argument("--data-root", help="Override TSINGEST_DATA_ROOT for this command")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_import_command(subparsers)
    _add_sessions_command(subparsers)
    _add_status_command(subparsers)
    _add_errors_command(subparsers)
    _add_formats_command(subparsers)
    _add_retry_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the tsingest CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    config = _build_config(args)
    configure_logging(config.log_level)
    with _build_client(config, args) as client:
        if args.command == "import":
            return _run_import_command(client, args)
        if args.command == "sessions":
            return _run_sessions_command(client)
        if args.command == "status":
            return _run_status_command(client, args)
        if args.command == "errors":
            return _run_errors_command(client, args)
        if args.command == "formats":
            return _run_formats_command(client)
        if args.command == "retry":
            return _run_retry_command(client, args)
    parser.error(f"Unsupported command: {args.command}")
    return 2


def _build_config(args: argparse.Namespace) -> IngestConfig:
    """Build runtime config with CLI overrides applied."""
    config = IngestConfig.from_env()
    if args.data_root:
        config = replace(config, data_root=Path(args.data_root).expanduser().resolve())
    if getattr(args, "max_workers", None) is not None:
        config = replace(config, max_workers=args.max_workers)
    if getattr(args, "chunk_size", None) is not None:
        config = replace(config, chunk_size=args.chunk_size)
    return config


def _build_client(config: IngestConfig, args: argparse.Namespace) -> IngestClient:
    dry_run_dir = getattr(args, "dry_run", None)
    if dry_run_dir:
        return IngestClient(config, sink=DirectorySink(Path(dry_run_dir)))
    return IngestClient(config)


def _run_import_command(client: IngestClient, args: argparse.Namespace) -> int:
    """Handle import command.

    Returns:
        Zero when the session completed, one otherwise.
    """
    session = client.start_session_from_file(args.spec, wait_timeout=args.wait_timeout)
    print(f"{session.session_id}\t{session.status}")
    return 0 if session.status == "COMPLETED" else 1


def _run_sessions_command(client: IngestClient) -> int:
    for session_id in client.list_sessions():
        session = client.get_session(session_id)
        print(f"{session.session_id}\t{session.status}\t{session.name}\t{len(session.items)}")
    return 0


def _run_status_command(client: IngestClient, args: argparse.Namespace) -> int:
    stats = client.stats(args.session_id)
    print(f"session_id={stats.session_id}")
    print(f"status={stats.status}")
    print(f"items_total={stats.items_total}")
    for status, count in stats.items_by_status.items():
        print(f"items_{status.lower()}={count}")
    print(f"rate_of_imported_items={stats.rate_of_imported_items:.3f}")
    print(f"points_read={stats.points_read}")
    print(f"points_written={stats.points_written}")
    print(f"points_failed={stats.points_failed}")
    if stats.ingestion_duration_s is not None:
        print(f"ingestion_duration_s={stats.ingestion_duration_s:.3f}")
    print(f"import_speed_mean={stats.import_speed_mean:.1f}")
    print(f"import_speed_min={stats.import_speed_min:.1f}")
    print(f"import_speed_max={stats.import_speed_max:.1f}")
    return 0


def _run_errors_command(client: IngestClient, args: argparse.Namespace) -> int:
    for item in client.item_errors(args.session_id):
        print(f"{item.item_id}\t{item.status}\t{item.source_ref}")
        for message in item.errors:
            print(f"  {message}")
    return 0


def _run_formats_command(client: IngestClient) -> int:
    for definition in client.formats():
        print(f"{definition.name}\t{definition.line_error_policy}\t{definition.description}")
    return 0


def _run_retry_command(client: IngestClient, args: argparse.Namespace) -> int:
    session = client.retry_failed(args.session_id, wait_timeout=args.wait_timeout)
    print(f"{session.session_id}\t{session.status}\t{len(session.items)}")
    return 0 if session.status == "COMPLETED" else 1


def _add_import_command(subparsers: Any) -> None:
    """Register import subcommand."""
    parser = subparsers.add_parser("import", help="Import the sources described by a session spec")
    parser.add_argument("spec", help="YAML session spec file")
    parser.add_argument("--wait-timeout", type=float, help="Cancel the session after this many seconds")
    parser.add_argument("--dry-run", help="Write chunks to this directory instead of the sink")
    parser.add_argument("--max-workers", type=_positive_int, help="Override TSINGEST_MAX_WORKERS")
    parser.add_argument("--chunk-size", type=_positive_int, help="Override TSINGEST_CHUNK_SIZE")


def _add_sessions_command(subparsers: Any) -> None:
    subparsers.add_parser("sessions", help="List known sessions")


def _add_status_command(subparsers: Any) -> None:
    parser = subparsers.add_parser("status", help="Show session statistics")
    parser.add_argument("session_id", help="Session id")


def _add_errors_command(subparsers: Any) -> None:
    parser = subparsers.add_parser("errors", help="Show per-item error detail")
    parser.add_argument("session_id", help="Session id")


def _add_formats_command(subparsers: Any) -> None:
    subparsers.add_parser("formats", help="List registered input formats")


def _add_retry_command(subparsers: Any) -> None:
    """Register retry subcommand."""
    parser = subparsers.add_parser("retry", help="Re-import failed and cancelled items of a session")
    parser.add_argument("session_id", help="Session id")
    parser.add_argument("--wait-timeout", type=float, help="Cancel the retry after this many seconds")


def _positive_int(raw_value: str) -> int:
    """Parse an argparse integer option that must be at least one."""
    try:
        value = int(raw_value)
    except ValueError as error:
        raise argparse.ArgumentTypeError(f"expected an integer, got {raw_value!r}") from error
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {value}")
    return value
