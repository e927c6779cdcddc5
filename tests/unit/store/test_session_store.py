"""Unit tests for session persistence."""

from __future__ import annotations

import pytest

from core.errors import IngestStoreError
from core.types import SessionRequest
from ingest.session_model import ImportItem, ImportSession
from store.session_store import SessionStore


def _session() -> ImportSession:
    request = SessionRequest(
        name="fleet",
        root_path="data",
        path_pattern="(?P<metric>.+)",
        format_name="edf",
        tags={"campaign": "2017"},
        line_error_policy="abort",
        chunk_size=10,
    )
    session = ImportSession(session_id="session-1", request=request)
    session.items = [
        ImportItem(
            item_id=f"item-{name}",
            session_id="session-1",
            source_ref=f"/data/{name}.csv",
            metric=name,
            func_id=name,
            tags={"site": "a"},
        )
        for name in ("zeta", "alpha")
    ]
    session.transition("ANALYSED")
    return session


def test_save_and_load_session_roundtrip(tmp_path) -> None:
    """Sessions reload with request, status and item order."""
    store = SessionStore(tmp_path)
    session = _session()

    store.save(session)
    loaded = store.load_session("session-1")

    assert (
        loaded.status == "ANALYSED"
        and loaded.request == session.request
        and [item.item_id for item in loaded.items] == ["item-zeta", "item-alpha"]
        and loaded.created_at == session.created_at
    )


def test_save_item_updates_progress(tmp_path) -> None:
    """Saving an item overwrites its persisted counters and errors."""
    store = SessionStore(tmp_path)
    session = _session()
    store.save(session)
    item = session.items[0]
    item.point_count = 42
    item.min_date = 1000
    item.errors.append("[chunk #1] Unable to parse value")

    saved_id = store.save(item)
    loaded = store.load_item(saved_id)

    assert (loaded.point_count, loaded.min_date, loaded.errors) == (
        42,
        1000,
        ["[chunk #1] Unable to parse value"],
    )


def test_list_sessions_and_delete_items(tmp_path) -> None:
    """Sessions are listed by id and their items can be deleted."""
    store = SessionStore(tmp_path)
    store.save(_session())

    store.delete_items("session-1")

    assert store.list_sessions() == ["session-1"] and store.load_items("session-1") == []


def test_load_unknown_session_raises(tmp_path) -> None:
    """Unknown sessions raise a store error with guidance."""
    with pytest.raises(IngestStoreError, match="sessions"):
        SessionStore(tmp_path).load_session("missing")


def test_load_corrupt_session_raises(tmp_path) -> None:
    """Invalid JSON metadata raises a store error."""
    store = SessionStore(tmp_path)
    store.save(_session())
    (tmp_path / "sessions" / "session-1" / "session.json").write_text("{", encoding="utf-8")

    with pytest.raises(IngestStoreError, match="parse"):
        store.load_session("session-1")
