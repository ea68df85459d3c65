from __future__ import annotations

import csv
import io
import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping

from stockpro.client.cache import REQUEST_TOKEN_FIELD, ClientCache, is_local_id, is_server_id, new_local_id
from stockpro.domain.entries import ENTRY_COLUMNS


BACKUP_TYPE = "stockpro_backup"
BACKUP_VERSION = 1
CSV_COLUMNS = ("id",) + ENTRY_COLUMNS + ("created_at",)


class BackupError(ValueError):
    pass


def _backup_fields(entry: Mapping[str, Any]) -> Dict[str, Any]:
    fields = {key: entry[key] for key in CSV_COLUMNS if key in entry}
    if entry.get(REQUEST_TOKEN_FIELD):
        fields[REQUEST_TOKEN_FIELD] = entry[REQUEST_TOKEN_FIELD]
    return fields


def export_backup(cache: ClientCache) -> Dict[str, Any]:
    """Snapshot of the cached entries; client flags are recomputed on import."""
    return {
        "type": BACKUP_TYPE,
        "version": BACKUP_VERSION,
        "created": datetime.now().isoformat(timespec="seconds"),
        "entries": [_backup_fields(entry) for entry in cache.entries()],
    }


def import_backup(cache: ClientCache, document: Mapping[str, Any]) -> List[Dict[str, Any]]:
    if not isinstance(document, Mapping) or document.get("type") != BACKUP_TYPE:
        raise BackupError("Arquivo nao e um backup valido do StockPro.")
    version = document.get("version")
    if not isinstance(version, int) or version > BACKUP_VERSION:
        raise BackupError(f"Versao de backup nao suportada: {version}")
    raw_entries = document.get("entries")
    if not isinstance(raw_entries, list):
        raise BackupError("Backup sem lista de entradas.")

    entries: List[Dict[str, Any]] = []
    for raw in raw_entries:
        if not isinstance(raw, Mapping):
            raise BackupError("Entrada invalida no backup.")
        entry = _backup_fields(raw)
        if is_server_id(entry.get("id")):
            entry.pop(REQUEST_TOKEN_FIELD, None)
            entry["isPending"] = False
        else:
            if not is_local_id(entry.get("id")):
                entry["id"] = new_local_id()
            entry["isPending"] = True
            entry[REQUEST_TOKEN_FIELD] = str(entry.get(REQUEST_TOKEN_FIELD) or uuid.uuid4())
        entries.append(entry)

    cache.replace_all(entries)
    return entries


def export_entries_csv(entries: Iterable[Mapping[str, Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for entry in entries:
        writer.writerow(["" if entry.get(column) is None else entry.get(column) for column in CSV_COLUMNS])
    return buffer.getvalue()
