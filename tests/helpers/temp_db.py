from __future__ import annotations

import shutil
import sqlite3
import tempfile
import time
import uuid
from dataclasses import dataclass
from pathlib import Path


_REPO_ROOT = Path(__file__).resolve().parents[2]
_TEMP_ROOT = Path(tempfile.gettempdir()).resolve()


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
        return True
    except ValueError:
        return False


def assert_safe_temp_db_path(db_path: str) -> None:
    resolved = Path(db_path).resolve()
    if not _is_within(resolved, _TEMP_ROOT):
        raise ValueError(f"Temporary DB must live under TEMP: {resolved}")
    if _is_within(resolved, _REPO_ROOT):
        raise ValueError(f"Temporary DB cannot live inside repository: {resolved}")


def open_sqlite_temp_connection(db_path: str) -> sqlite3.Connection:
    assert_safe_temp_db_path(db_path)
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path, timeout=30.0, isolation_level=None)
    conn.row_factory = sqlite3.Row
    return conn


def remove_tree_with_retry(path: str, attempts: int = 8, base_delay: float = 0.05) -> None:
    root = Path(path)
    for attempt in range(attempts):
        if not root.exists():
            return
        try:
            shutil.rmtree(root)
            return
        except FileNotFoundError:
            return
        except OSError:
            time.sleep(base_delay * (2**attempt))
    shutil.rmtree(root, ignore_errors=True)


@dataclass
class TempDbSandbox:
    prefix: str = "stockpro_tests"
    db_name: str = "stockpro_test.db"

    def __post_init__(self) -> None:
        folder = _TEMP_ROOT / f"{self.prefix}_{uuid.uuid4().hex}"
        folder.mkdir(parents=True, exist_ok=False)
        self.temp_dir = str(folder)
        self.db_path = str(folder / self.db_name)
        self.static_dir = str(folder / "dist")
        self.client_dir = str(folder / "client")
        assert_safe_temp_db_path(self.db_path)

    def make_config(self, base_config, **overrides):
        attrs = {
            "DATABASE_DIR": self.temp_dir,
            "DB_PATH": self.db_path,
            "LOG_DIR": self.temp_dir,
            "LOG_FILE_ENABLED": False,
            "STATIC_DIR": self.static_dir,
            "GEMINI_API_KEY": "test-key",
            "TESTING": True,
            "PROPAGATE_EXCEPTIONS": False,
        }
        attrs.update(overrides)
        return type("TempConfig", (base_config,), attrs)

    def cleanup(self) -> None:
        remove_tree_with_retry(self.temp_dir)
