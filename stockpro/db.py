import sqlite3
from typing import Iterable

try:
    import psycopg2
    import psycopg2.extras
except ImportError:  # pragma: no cover - optional dependency for postgres
    psycopg2 = None

from flask import current_app, g

from stockpro.domain.entries import ENTRY_COLUMNS, NUMERIC_FIELDS
from stockpro.errors import StorageError

# Columns added after the first deployments; older stock.db files get them
# through _ensure_column on startup.
_LATE_ENTRY_COLUMNS = ("numero_vagao", "data_emissao_cte_transp")


class Database:
    def __init__(self, backend: str, connection):
        self.backend = backend
        self._conn = connection

    def execute(self, sql: str, params: Iterable | None = None):
        if self.backend == "postgres":
            cursor = self._conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            if params:
                sql = _convert_qmark_to_pg(sql)
                cursor.execute(sql, list(params))
            else:
                cursor.execute(sql)
            return cursor
        return self._conn.execute(sql, params or ())

    def commit(self):
        self._conn.commit()

    def rollback(self):
        self._conn.rollback()

    def close(self):
        self._conn.close()


def _convert_qmark_to_pg(sql: str) -> str:
    return sql.replace("?", "%s")


def _connect_database(db_path: str) -> Database:
    if db_path.lower().startswith("postgres"):
        if psycopg2 is None:
            raise RuntimeError("psycopg2 nao instalado.")
        conn = psycopg2.connect(db_path)
        conn.autocommit = True
        return Database("postgres", conn)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return Database("sqlite", conn)


def get_db():
    if "db" not in g:
        db_path = current_app.config["DB_PATH"]
        current_app.logger.debug("database_connect", extra={"db_path": db_path})
        g.db = _connect_database(db_path)
    return g.db


def ping_db() -> None:
    """Open the request connection and run a trivial query, or raise StorageError."""
    try:
        get_db().execute("SELECT 1").fetchone()
    except (driver_errors() + (OSError, RuntimeError)) as exc:
        g.pop("db", None)
        raise StorageError(details=str(exc) or type(exc).__name__) from exc


def driver_errors() -> tuple:
    if psycopg2 is None:
        return (sqlite3.Error,)
    return (sqlite3.Error, psycopg2.Error)


def close_db(_error=None):
    db = g.pop("db", None)
    if db is not None:
        db.close()


def init_db():
    db = get_db()
    if db.backend == "postgres":
        _init_db_postgres(db)
    else:
        _init_db_sqlite(db)
    for column in _LATE_ENTRY_COLUMNS:
        _ensure_column(db, "entries", column, "TEXT")
    db.commit()


def _entry_columns_sql(real_type: str) -> str:
    lines = [
        f"{column} {real_type if column in NUMERIC_FIELDS else 'TEXT'}"
        for column in ENTRY_COLUMNS
    ]
    return ",\n            ".join(lines)


def _init_db_sqlite(db: Database):
    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS entries (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            {_entry_columns_sql("REAL")},
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS entry_request_tokens (
            token TEXT PRIMARY KEY,
            entry_id INTEGER NOT NULL,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_entries_created_at
        ON entries (created_at)
        """
    )


def _init_db_postgres(db: Database) -> None:
    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS entries (
            id BIGSERIAL PRIMARY KEY,
            {_entry_columns_sql("DOUBLE PRECISION")},
            created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS entry_request_tokens (
            token TEXT PRIMARY KEY,
            entry_id BIGINT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_entries_created_at
        ON entries (created_at)
        """
    )


def _ensure_column(db: Database, table: str, column: str, definition: str) -> None:
    if db.backend == "postgres":
        db.execute(f"ALTER TABLE {table} ADD COLUMN IF NOT EXISTS {column} {definition}")
        return
    if _column_exists(db, table, column):
        return
    db.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")


def _table_exists(db: Database, table: str) -> bool:
    if db.backend == "postgres":
        row = db.execute(
            """
            SELECT 1
            FROM information_schema.tables
            WHERE table_schema = 'public' AND table_name = ?
            """,
            (table,),
        ).fetchone()
        return row is not None

    row = db.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name = ?",
        (table,),
    ).fetchone()
    return row is not None


def _column_exists(db: Database, table: str, column: str) -> bool:
    if not _table_exists(db, table):
        return False
    if db.backend == "postgres":
        row = db.execute(
            """
            SELECT 1
            FROM information_schema.columns
            WHERE table_schema = 'public' AND table_name = ? AND column_name = ?
            """,
            (table, column),
        ).fetchone()
        return row is not None
    rows = db.execute(f"PRAGMA table_info({table})").fetchall()
    return any(row["name"] == column for row in rows)

