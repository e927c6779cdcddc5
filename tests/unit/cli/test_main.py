"""Unit tests for CLI command handling."""

from __future__ import annotations

from pathlib import Path

import pytest

from cli.main import main
from tests.import_helpers import write_iso_source, write_lines


def _write_spec(tmp_path: Path, format_name: str = "iso-csv") -> Path:
    return write_lines(
        tmp_path,
        "session.yaml",
        [
            "name: fleet",
            f"root_path: {tmp_path / 'sources'}",
            "path_pattern: '(?P<metric>[^/.]+)\\.csv'",
            f"format: {format_name}",
            "chunk_size: 2",
        ],
    )


def _dry_run_import(tmp_path: Path, capsys) -> str:
    write_iso_source(tmp_path / "sources", "temperature.csv", [1, 2, 3])
    spec_path = _write_spec(tmp_path)
    exit_code = main(
        ["--data-root", str(tmp_path / "data"), "import", str(spec_path), "--dry-run", str(tmp_path / "out")]
    )
    output = capsys.readouterr().out.strip()
    assert exit_code == 0
    return output.split("\t")[0]


def test_cli_import_dry_run_writes_chunks(tmp_path, capsys) -> None:
    """CLI import should print the completed session and write chunk files."""
    session_id = _dry_run_import(tmp_path, capsys)

    chunk_files = sorted((tmp_path / "out" / session_id).rglob("chunk-*.json"))

    assert session_id.startswith("session-") and len(chunk_files) == 2


def test_cli_status_prints_stats(tmp_path, capsys) -> None:
    """Status command prints session statistics."""
    session_id = _dry_run_import(tmp_path, capsys)

    exit_code = main(["--data-root", str(tmp_path / "data"), "status", session_id])
    output = capsys.readouterr().out

    assert exit_code == 0 and "status=COMPLETED" in output and "points_written=3" in output


def test_cli_sessions_lists_imports(tmp_path, capsys) -> None:
    """Sessions command lists persisted sessions."""
    session_id = _dry_run_import(tmp_path, capsys)

    exit_code = main(["--data-root", str(tmp_path / "data"), "sessions"])
    output = capsys.readouterr().out

    assert exit_code == 0 and output.startswith(f"{session_id}\tCOMPLETED\tfleet\t1")


def test_cli_formats_lists_builtins(tmp_path, capsys) -> None:
    """Formats command prints one line per registered format."""
    exit_code = main(["--data-root", str(tmp_path), "formats"])
    output = capsys.readouterr().out.splitlines()

    assert exit_code == 0 and [line.split("\t")[0] for line in output] == [
        "edf",
        "epoch-csv",
        "iso-csv",
        "line-protocol",
    ]


def test_cli_import_returns_one_for_failed_session(tmp_path, capsys) -> None:
    """Non-completed sessions exit with status one and errors are listed."""
    write_lines(tmp_path / "sources", "temperature.csv", ["timestamp;value", "2017-02-03T10:00:00Z;x"])
    spec_path = _write_spec(tmp_path, format_name="epoch-csv")
    args = ["--data-root", str(tmp_path / "data"), "import", str(spec_path), "--dry-run", str(tmp_path / "out")]

    exit_code = main(args)
    session_id = capsys.readouterr().out.split("\t")[0]
    main(["--data-root", str(tmp_path / "data"), "errors", session_id])
    errors_output = capsys.readouterr().out

    assert exit_code == 1 and "temperature.csv" in errors_output


def test_cli_requires_command() -> None:
    """Missing subcommand is an argparse usage error."""
    with pytest.raises(SystemExit):
        main([])


def test_cli_import_keeps_logs_off_stdout(tmp_path, capsys) -> None:
    """Structured log events go to stderr so stdout holds only the result line."""
    write_iso_source(tmp_path / "sources", "temperature.csv", [1, 2, 3])
    spec_path = _write_spec(tmp_path)

    main(["--data-root", str(tmp_path / "data"), "import", str(spec_path), "--dry-run", str(tmp_path / "out")])
    captured = capsys.readouterr()

    assert captured.out.count("\n") == 1 and captured.out.endswith("\tCOMPLETED\n") and (
        '"event": "session_submitted"' in captured.err
    )


@pytest.mark.parametrize("option", ["--max-workers", "--chunk-size"])
@pytest.mark.parametrize("value", ["0", "-2", "many"])
def test_cli_import_rejects_non_positive_overrides(tmp_path, capsys, option: str, value: str) -> None:
    """Pool and chunk overrides below one are argparse usage errors."""
    spec_path = _write_spec(tmp_path)

    with pytest.raises(SystemExit) as exit_info:
        main(["--data-root", str(tmp_path / "data"), "import", str(spec_path), option, value])

    assert exit_info.value.code == 2 and option in capsys.readouterr().err
