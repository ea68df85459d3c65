"""Alembic wiring for the entries store.

The only revision is the baseline that creates ``entries`` and
``entry_request_tokens`` through the same DDL as ``stockpro.db.init_db``, so a
stock.db created by a boot with ``DB_AUTO_INIT`` upgrades cleanly. Columns
added after the first deployments are reported by ``flask db check``.
"""

from __future__ import annotations

from pathlib import Path

import click
from alembic import command
from alembic.config import Config as AlembicConfig
from flask import Flask

from stockpro.domain.entries import ENTRY_COLUMNS


def _project_root() -> Path:
    return Path(__file__).resolve().parents[1]


def _normalize_postgres_url(url: str) -> str:
    if url.startswith("postgres://"):
        return "postgresql://" + url[len("postgres://") :]
    return url


def to_sqlalchemy_url(raw_db_path: str) -> str:
    """Turn ``DB_PATH`` (a sqlite file path or a postgres DSN) into a SQLAlchemy URL."""
    raw = (raw_db_path or "").strip()
    if not raw:
        raise RuntimeError("DB_PATH indefinido para migrations.")

    normalized = _normalize_postgres_url(raw)
    if normalized.startswith(("postgresql://", "postgresql+")):
        return normalized
    if normalized.startswith(("sqlite://", "sqlite+pysqlite://")):
        return normalized

    sqlite_path = Path(normalized).expanduser().resolve()
    return f"sqlite:///{sqlite_path.as_posix()}"


def build_alembic_config(app: Flask) -> AlembicConfig:
    root = _project_root()
    alembic_ini = root / "alembic.ini"
    if not alembic_ini.exists():
        raise RuntimeError("alembic.ini nao encontrado na raiz do projeto.")

    alembic_cfg = AlembicConfig(str(alembic_ini))
    alembic_cfg.set_main_option("script_location", str((root / "migrations").as_posix()))
    alembic_cfg.set_main_option("sqlalchemy.url", to_sqlalchemy_url(app.config["DB_PATH"]))
    return alembic_cfg


def missing_entry_columns(db) -> list[str]:
    from stockpro.db import _column_exists, _table_exists

    if not _table_exists(db, "entries"):
        return list(ENTRY_COLUMNS)
    return [column for column in ENTRY_COLUMNS if not _column_exists(db, "entries", column)]


def register_db_cli(app: Flask) -> None:
    @app.cli.group("db")
    def db_group() -> None:
        """Migrations da tabela de entradas (Alembic)."""

    @db_group.command("upgrade")
    @click.argument("revision", required=False, default="head")
    def db_upgrade(revision: str) -> None:
        command.upgrade(build_alembic_config(app), revision)
        click.echo(f"Migration aplicada ate {revision}.")

    @db_group.command("downgrade")
    @click.argument("revision", required=False, default="-1")
    def db_downgrade(revision: str) -> None:
        command.downgrade(build_alembic_config(app), revision)
        click.echo(f"Rollback aplicado ate {revision}.")

    @db_group.command("current")
    def db_current() -> None:
        command.current(build_alembic_config(app), verbose=True)

    @db_group.command("init")
    def db_init() -> None:
        """Cria o schema sem Alembic (CREATE TABLE IF NOT EXISTS)."""
        from stockpro.db import init_db

        init_db()
        click.echo(f"Schema pronto em {app.config['DB_PATH']}.")

    @db_group.command("check")
    def db_check() -> None:
        """Lista colunas de entries ausentes no banco configurado."""
        from stockpro.db import get_db

        missing = missing_entry_columns(get_db())
        if missing:
            click.echo(f"Colunas ausentes em entries: {', '.join(missing)}")
            raise click.exceptions.Exit(1)
        click.echo("Tabela entries completa.")
