from __future__ import annotations

import contextlib
import logging
import sqlite3
from datetime import date, datetime
from typing import Any, Iterable, Iterator

from stockpro.errors import StorageError

try:
    import psycopg2
except ImportError:  # pragma: no cover - optional dependency for postgres
    psycopg2 = None


logger = logging.getLogger(__name__)

_DRIVER_ERRORS: tuple[type[BaseException], ...] = (sqlite3.Error,)
if psycopg2 is not None:
    _DRIVER_ERRORS = (sqlite3.Error, psycopg2.Error)


class BaseRepository:
    """Shared helpers for the raw-SQL repositories over ``stockpro.db``."""

    @contextlib.contextmanager
    def storage_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except _DRIVER_ERRORS as exc:
            logger.error(
                "storage_failure",
                extra={"operation": operation, "repository": type(self).__name__, "details": str(exc)},
            )
            raise StorageError(details=str(exc) or type(exc).__name__) from exc

    @staticmethod
    def row_to_dict(row: Any) -> dict:
        if row is None:
            return {}
        if isinstance(row, dict):
            data = dict(row)
        else:
            data = {key: row[key] for key in row.keys()}
        for key, value in data.items():
            if isinstance(value, (datetime, date)):
                data[key] = value.isoformat()
        return data

    @classmethod
    def rows_to_dicts(cls, rows: Iterable[Any]) -> list[dict]:
        return [cls.row_to_dict(row) for row in rows]
