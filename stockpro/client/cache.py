"""Durable client-side copy of the entry list.

The cache lives in a storage directory as JSON documents keyed like browser
local storage. ``stockpro_entries`` holds the entry array (server entries plus
offline-created ones flagged ``isPending``); ``stockpro_sync`` holds the
bookkeeping needed to replay offline work: the local to server id map and the
queues of offline updates and deletes.

Offline-created entries get ids in the ``local-<uuid4>`` namespace, so they can
never be mistaken for the integer ids assigned by the server.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import uuid
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping

from stockpro.domain.entries import (
    ENTRY_COLUMNS,
    summarize_by_product_destination,
    summarize_by_supplier,
)


logger = logging.getLogger(__name__)

ENTRIES_KEY = "stockpro_entries"
SYNC_KEY = "stockpro_sync"
LOCAL_ID_PREFIX = "local-"
REQUEST_TOKEN_FIELD = "requestToken"


def new_local_id() -> str:
    return f"{LOCAL_ID_PREFIX}{uuid.uuid4()}"


def is_local_id(entry_id: Any) -> bool:
    return isinstance(entry_id, str) and entry_id.startswith(LOCAL_ID_PREFIX)


def is_server_id(entry_id: Any) -> bool:
    return isinstance(entry_id, int) and not isinstance(entry_id, bool)


class JsonFileStorage:
    """Key/value store with one JSON file per key, replaced atomically."""

    def __init__(self, directory: str | os.PathLike) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str, default: Any = None) -> Any:
        path = self._path(key)
        if not path.exists():
            return default
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("client_storage_unreadable", extra={"key": key, "details": str(exc)})
            return default

    def set(self, key: str, value: Any) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        handle, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(handle, "w", encoding="utf-8") as stream:
                json.dump(value, stream, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self._path(key))
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


def _empty_sync_state() -> Dict[str, Any]:
    return {"id_map": {}, "queued_updates": [], "queued_deletes": []}


class ClientCache:
    def __init__(self, storage: JsonFileStorage) -> None:
        self.storage = storage

    @classmethod
    def in_directory(cls, directory: str | os.PathLike) -> "ClientCache":
        return cls(JsonFileStorage(directory))

    # Entries

    def entries(self) -> List[Dict[str, Any]]:
        data = self.storage.get(ENTRIES_KEY, [])
        return [dict(entry) for entry in data if isinstance(entry, dict)]

    def _write_entries(self, entries: Iterable[Mapping[str, Any]]) -> None:
        self.storage.set(ENTRIES_KEY, [dict(entry) for entry in entries])

    def pending_entries(self) -> List[Dict[str, Any]]:
        return [entry for entry in self.entries() if entry.get("isPending")]

    def get(self, entry_id: Any) -> Dict[str, Any] | None:
        target = self.resolve_id(entry_id)
        for entry in self.entries():
            if entry.get("id") == target:
                return entry
        return None

    def replace_with_server(self, server_entries: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        pending = self.pending_entries()
        fresh = [dict(entry, isPending=False) for entry in server_entries]
        merged = pending + fresh
        self._write_entries(merged)
        return merged

    def replace_all(self, entries: Iterable[Mapping[str, Any]]) -> None:
        self._write_entries(entries)
        self.storage.set(SYNC_KEY, _empty_sync_state())

    def add_pending(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        entry: Dict[str, Any] = {field: fields[field] for field in ENTRY_COLUMNS if field in fields}
        entry["id"] = new_local_id()
        entry["isPending"] = True
        entry[REQUEST_TOKEN_FIELD] = str(uuid.uuid4())
        self._write_entries([entry] + self.entries())
        return entry

    def apply_local_update(self, entry_id: Any, updates: Mapping[str, Any]) -> Dict[str, Any] | None:
        target = self.resolve_id(entry_id)
        entries = self.entries()
        updated = None
        for entry in entries:
            if entry.get("id") == target:
                entry.update({field: value for field, value in updates.items() if field in ENTRY_COLUMNS})
                updated = entry
                break
        if updated is not None:
            self._write_entries(entries)
        return updated

    def remove(self, entry_id: Any) -> bool:
        target = self.resolve_id(entry_id)
        entries = self.entries()
        kept = [entry for entry in entries if entry.get("id") != target]
        if len(kept) == len(entries):
            return False
        self._write_entries(kept)
        return True

    # Sync bookkeeping

    def _sync_state(self) -> Dict[str, Any]:
        state = self.storage.get(SYNC_KEY) or {}
        merged = _empty_sync_state()
        merged.update({key: value for key, value in state.items() if key in merged})
        return merged

    def _write_sync_state(self, state: Mapping[str, Any]) -> None:
        self.storage.set(SYNC_KEY, dict(state))

    def resolve_id(self, entry_id: Any) -> Any:
        if not is_local_id(entry_id):
            return entry_id
        return self._sync_state()["id_map"].get(entry_id, entry_id)

    def mark_synced(self, local_id: str, server_id: int) -> Dict[str, Any] | None:
        state = self._sync_state()
        state["id_map"][local_id] = int(server_id)
        self._write_sync_state(state)

        entries = self.entries()
        synced = None
        for entry in entries:
            if entry.get("id") == local_id:
                entry["id"] = int(server_id)
                entry["isPending"] = False
                entry.pop(REQUEST_TOKEN_FIELD, None)
                synced = entry
                break
        if synced is not None:
            self._write_entries(entries)
        return synced

    def queue_update(self, entry_id: Any, updates: Mapping[str, Any]) -> Dict[str, Any]:
        state = self._sync_state()
        item = {"token": str(uuid.uuid4()), "id": entry_id, "updates": dict(updates)}
        state["queued_updates"].append(item)
        self._write_sync_state(state)
        return item

    def queued_updates(self) -> List[Dict[str, Any]]:
        return [dict(item) for item in self._sync_state()["queued_updates"]]

    def queue_delete(self, entry_id: int) -> None:
        state = self._sync_state()
        if entry_id not in state["queued_deletes"]:
            state["queued_deletes"].append(entry_id)
        self._write_sync_state(state)

    def queued_deletes(self) -> List[Any]:
        return list(self._sync_state()["queued_deletes"])

    def complete_update(self, token: str) -> None:
        state = self._sync_state()
        state["queued_updates"] = [item for item in state["queued_updates"] if item.get("token") != token]
        self._write_sync_state(state)

    def complete_delete(self, entry_id: Any) -> None:
        state = self._sync_state()
        state["queued_deletes"] = [item for item in state["queued_deletes"] if item != entry_id]
        self._write_sync_state(state)

    def has_pending_work(self) -> bool:
        state = self._sync_state()
        return bool(self.pending_entries() or state["queued_updates"] or state["queued_deletes"])

    # Offline views

    def stock_by_supplier(self) -> List[Dict[str, Any]]:
        return summarize_by_supplier(self.entries())

    def stock_by_product_destination(self) -> List[Dict[str, Any]]:
        return summarize_by_product_destination(self.entries())
