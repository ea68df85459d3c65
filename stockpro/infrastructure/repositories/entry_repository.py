from __future__ import annotations

import sqlite3
from typing import Any, Dict

from stockpro.domain.entries import ENTRY_COLUMNS
from stockpro.infrastructure.repositories.base import BaseRepository

try:
    import psycopg2
except ImportError:  # pragma: no cover - optional dependency for postgres
    psycopg2 = None


_INTEGRITY_ERRORS: tuple[type[BaseException], ...] = (sqlite3.IntegrityError,)
if psycopg2 is not None:
    _INTEGRITY_ERRORS = (sqlite3.IntegrityError, psycopg2.IntegrityError)


def _checked_columns(fields: Dict[str, Any]) -> list[str]:
    # Column names are interpolated into SQL; only catalogued names pass.
    unknown = [key for key in fields if key not in ENTRY_COLUMNS]
    if unknown:
        raise ValueError(f"Colunas desconhecidas para entries: {', '.join(sorted(unknown))}")
    return [column for column in ENTRY_COLUMNS if column in fields]


class EntryRepository(BaseRepository):
    def list_all(self, db) -> list[dict]:
        with self.storage_errors("list_entries"):
            rows = db.execute(
                """
                SELECT *
                FROM entries
                ORDER BY created_at DESC, id DESC
                """
            ).fetchall()
            return self.rows_to_dicts(rows)

    def find_entry_id_by_token(self, db, token: str) -> int | None:
        with self.storage_errors("find_request_token"):
            row = db.execute(
                "SELECT entry_id FROM entry_request_tokens WHERE token = ?",
                (token,),
            ).fetchone()
            if not row:
                return None
            return int(row["entry_id"])

    def create(self, db, fields: Dict[str, Any], *, request_token: str | None = None) -> int:
        columns = _checked_columns(fields)
        with self.storage_errors("create_entry"):
            if columns:
                placeholders = ", ".join("?" for _ in columns)
                cursor = db.execute(
                    f"""
                    INSERT INTO entries ({", ".join(columns)})
                    VALUES ({placeholders})
                    RETURNING id
                    """,
                    tuple(fields[column] for column in columns),
                )
            else:
                cursor = db.execute("INSERT INTO entries DEFAULT VALUES RETURNING id")
            row = cursor.fetchone()
            entry_id = int(row["id"])
            if request_token:
                try:
                    db.execute(
                        "INSERT INTO entry_request_tokens (token, entry_id) VALUES (?, ?)",
                        (request_token, entry_id),
                    )
                except _INTEGRITY_ERRORS:
                    # Under postgres autocommit the entry row is already
                    # committed; a rollback alone would leave it behind.
                    db.execute("DELETE FROM entries WHERE id = ?", (entry_id,))
                    raise
            return entry_id

    def update(self, db, entry_id: int, fields: Dict[str, Any]) -> int:
        columns = _checked_columns(fields)
        if not columns:
            return 0
        set_clause = ", ".join(f"{column} = ?" for column in columns)
        with self.storage_errors("update_entry"):
            cursor = db.execute(
                f"UPDATE entries SET {set_clause} WHERE id = ?",
                (*[fields[column] for column in columns], entry_id),
            )
            return int(cursor.rowcount or 0)

    def delete(self, db, entry_id: int) -> int:
        with self.storage_errors("delete_entry"):
            cursor = db.execute("DELETE FROM entries WHERE id = ?", (entry_id,))
            return int(cursor.rowcount or 0)

    @staticmethod
    def is_duplicate_token_error(exc: BaseException) -> bool:
        cause = exc.__cause__ or exc
        return isinstance(cause, _INTEGRITY_ERRORS)
