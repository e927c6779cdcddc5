"""Filesystem persistence for import sessions and items.

Layout under the data root::

    sessions/<session_id>/session.json
    sessions/<session_id>/items/<item_id>.json

Writes are serialized by one lock, so tasks of several sessions may
persist their items concurrently. The store never retries.
"""

from __future__ import annotations

import shutil
import threading
from pathlib import Path

from core.constants import ITEMS_DIR_NAME, SESSION_FILE_NAME, SESSIONS_DIR_NAME
from core.errors import IngestStoreError
from ingest.session_model import ImportItem, ImportSession
from store.session_payload import (
    item_from_payload,
    item_to_payload,
    read_json_file,
    session_from_payload,
    session_to_payload,
    write_json_file,
)


class SessionStore:
    """JSON file store keyed by session and item ids."""

    def __init__(self, data_root: Path) -> None:
        self._sessions_root = data_root.expanduser().resolve() / SESSIONS_DIR_NAME
        self._lock = threading.Lock()

    def save(self, record: ImportItem | ImportSession) -> str:
        """Persist one item, or one session with all of its items.

        Returns:
            The saved record id.
        """
        with self._lock:
            if isinstance(record, ImportSession):
                for item in record.items:
                    self._write_item(item)
                write_json_file(self._session_file(record.session_id), session_to_payload(record))
                return record.session_id
            self._write_item(record)
            return record.item_id

    def load_session(self, session_id: str) -> ImportSession:
        """Load one session with its items in enumeration order.

        Raises:
            IngestStoreError: If the session does not exist or is invalid.
        """
        session_file = self._session_file(session_id)
        if not session_file.exists():
            raise IngestStoreError(
                f"Session {session_id!r} not found under {self._sessions_root}. "
                "Run 'sessions' to list known sessions."
            )
        payload = read_json_file(session_file)
        items_by_id = {item.item_id: item for item in self.load_items(session_id)}
        ordered_ids = [str(item_id) for item_id in payload.get("item_ids", [])]
        items = [items_by_id[item_id] for item_id in ordered_ids if item_id in items_by_id]
        return session_from_payload(payload, items, session_file)

    def list_sessions(self) -> list[str]:
        if not self._sessions_root.exists():
            return []
        return sorted(
            session_dir.name
            for session_dir in self._sessions_root.iterdir()
            if (session_dir / SESSION_FILE_NAME).exists()
        )

    def load_items(self, session_id: str) -> list[ImportItem]:
        items_dir = self._items_dir(session_id)
        if not items_dir.exists():
            return []
        return [
            item_from_payload(read_json_file(item_path), item_path)
            for item_path in sorted(items_dir.glob("*.json"))
        ]

    def load_item(self, item_id: str) -> ImportItem:
        """Load one item by id, searching every session.

        Raises:
            IngestStoreError: If no session holds the item.
        """
        for session_id in self.list_sessions():
            item_path = self._items_dir(session_id) / f"{item_id}.json"
            if item_path.exists():
                return item_from_payload(read_json_file(item_path), item_path)
        raise IngestStoreError(f"Item {item_id!r} not found under {self._sessions_root}.")

    def delete_items(self, session_id: str) -> None:
        with self._lock:
            items_dir = self._items_dir(session_id)
            if not items_dir.exists():
                return
            try:
                shutil.rmtree(items_dir)
            except OSError as error:
                raise IngestStoreError(f"Failed to delete items at {items_dir}: {error}.") from error

    def _write_item(self, item: ImportItem) -> None:
        write_json_file(self._items_dir(item.session_id) / f"{item.item_id}.json", item_to_payload(item))

    def _session_file(self, session_id: str) -> Path:
        return self._sessions_root / session_id / SESSION_FILE_NAME

    def _items_dir(self, session_id: str) -> Path:
        return self._sessions_root / session_id / ITEMS_DIR_NAME
