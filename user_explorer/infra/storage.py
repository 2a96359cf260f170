"""SQLite connection ownership for the persistent cache."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from threading import Lock

CACHE_SCHEMA = """
CREATE TABLE IF NOT EXISTS cache_entries (
    key TEXT PRIMARY KEY,
    payload TEXT NOT NULL
)
"""


class SQLiteManager:
    """Lazily open one cache database and close it when the session ends.

    ``connect`` after ``close`` opens a fresh connection, so a manager can
    outlive several CLI sessions in the same process.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._conn: sqlite3.Connection | None = None
        self._lock = Lock()

    def connect(self) -> sqlite3.Connection:
        with self._lock:
            if self._conn is None:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(self.path, check_same_thread=False)
                conn.row_factory = sqlite3.Row
                conn.execute(CACHE_SCHEMA)
                conn.commit()
                self._conn = conn
            return self._conn

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None


__all__ = ["CACHE_SCHEMA", "SQLiteManager"]
