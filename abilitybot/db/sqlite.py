"""SQLite-backed DBContext.

Collections live in memory (see MemoryDBContext) and are written to a
single ``collections`` table on every commit(). The file is loaded
back when the store is opened.
"""

import sqlite3
from pathlib import Path
from typing import Optional

import structlog

from .memory import MemoryDBContext

logger = structlog.get_logger("abilitybot.db")

SCHEMA_VERSION = 1


class SqliteDBContext(MemoryDBContext):
    """Persistent store in a SQLite file.

    Args:
        db_path: Database file; parent directories are created.
    """

    def __init__(self, db_path: Path):
        super().__init__(name=db_path.stem)
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None
        self._open()

    def _open(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA busy_timeout=5000")
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS collections (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                version INTEGER NOT NULL,
                data TEXT NOT NULL
            )
        """)
        self._conn.commit()

        row = self._conn.execute("SELECT version, data FROM collections WHERE id = 1").fetchone()
        if row is not None:
            version, data = row
            if version != SCHEMA_VERSION:
                logger.warning("db_schema_version_mismatch", found=version, expected=SCHEMA_VERSION)
            if not super().recover(data):
                logger.error("db_load_failed", path=str(self.db_path))
        logger.info("db_opened", path=str(self.db_path), collections=self.summary())

    def commit(self) -> None:
        if self._conn is None:
            raise RuntimeError("Database is closed")
        data = self.backup()
        with self._lock:
            self._conn.execute(
                "INSERT INTO collections (id, version, data) VALUES (1, ?, ?) "
                "ON CONFLICT(id) DO UPDATE SET version = excluded.version, data = excluded.data",
                (SCHEMA_VERSION, data),
            )
            self._conn.commit()

    def close(self) -> None:
        if self._conn is None:
            return
        self.commit()
        self._conn.close()
        self._conn = None
        logger.info("db_closed", path=str(self.db_path))
