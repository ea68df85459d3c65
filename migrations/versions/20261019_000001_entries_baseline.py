"""Entries baseline from stockpro.db

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19 00:00:01
"""

from __future__ import annotations

from typing import Iterable, Sequence, Union

from alembic import op
from sqlalchemy.engine import Connection

from stockpro.db import _convert_qmark_to_pg, _ensure_column, _init_db_postgres, _init_db_sqlite
from stockpro.domain.entries import ENTRY_COLUMNS, NUMERIC_FIELDS


# revision identifiers, used by Alembic.
revision: str = "20261019_000001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


class _ResultAdapter:
    def __init__(self, result):
        self._result = result

    @staticmethod
    def _map_row(row):
        if row is None:
            return None
        mapping = getattr(row, "_mapping", None)
        if mapping is not None:
            return dict(mapping)
        return row

    def fetchone(self):
        return self._map_row(self._result.fetchone())

    def fetchall(self):
        return [self._map_row(row) for row in self._result.fetchall()]


class _AlembicDbAdapter:
    def __init__(self, connection: Connection, backend: str):
        self._connection = connection
        self.backend = backend

    def execute(self, sql: str, params: Iterable | None = None):
        if params is None:
            return _ResultAdapter(self._connection.exec_driver_sql(sql))
        statement = _convert_qmark_to_pg(sql) if self.backend == "postgres" else sql
        return _ResultAdapter(self._connection.exec_driver_sql(statement, tuple(params)))

    def commit(self):
        # Alembic controla transacoes no contexto da migration.
        return None


def _resolve_backend(connection: Connection) -> str:
    dialect = (connection.dialect.name or "").lower()
    if dialect.startswith("postgres"):
        return "postgres"
    return "sqlite"


def upgrade() -> None:
    connection = op.get_bind()
    adapter = _AlembicDbAdapter(connection, _resolve_backend(connection))

    if adapter.backend == "postgres":
        _init_db_postgres(adapter)
        real_type = "DOUBLE PRECISION"
    else:
        _init_db_sqlite(adapter)
        real_type = "REAL"

    # Tables created by older releases lack some columns.
    for column in ENTRY_COLUMNS:
        _ensure_column(adapter, "entries", column, real_type if column in NUMERIC_FIELDS else "TEXT")


def downgrade() -> None:
    for table in ("entry_request_tokens", "entries"):
        op.execute(f"DROP TABLE IF EXISTS {table}")
