"""SQLite collection store — whole-collection reads and write-through updates."""

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

from mailprompt.storage.models import ALL_TABLES

logger = logging.getLogger(__name__)

_DEFAULT_DB_PATH = Path("data/mailprompt.db")


class AppDatabase:
    """Wraps SQLite as a key → JSON document store.

    Each key holds one whole collection (history, tags, variables, prompts);
    callers read the full value and write the full value back.  There are no
    partial updates.  Designed for single-threaded use from the CLI or an
    event loop — calls block, but are fast for a personal mailbox.

    Usage::

        db = AppDatabase()
        db.set_collection("tags", [...])
        tags = db.get_collection("tags", default=[])
    """

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._path = Path(db_path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._path))
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._create_tables()

    def close(self) -> None:
        """Close the underlying database connection."""
        self._conn.close()

    def get_collection(self, key: str, default: Any = None) -> Any:
        """Return the decoded value stored under ``key``, or ``default``.

        A value that no longer decodes is logged and treated as missing.
        """
        row = self._conn.execute(
            "SELECT value FROM collections WHERE key = ?", (key,)
        ).fetchone()
        if row is None:
            return default
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError as exc:
            logger.error("Stored collection %r is corrupt (%s); ignoring it", key, exc)
            return default

    def set_collection(self, key: str, value: Any) -> None:
        """Replace the whole value stored under ``key``."""
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO collections (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value      = excluded.value,
                    updated_at = datetime('now')
                """,
                (key, json.dumps(value)),
            )

    def delete_collection(self, key: str) -> None:
        with self._conn:
            self._conn.execute("DELETE FROM collections WHERE key = ?", (key,))

    def has_collection(self, key: str) -> bool:
        return self._conn.execute(
            "SELECT 1 FROM collections WHERE key = ?", (key,)
        ).fetchone() is not None

    # ── Private ─────────────────────────────────────────────────────────────────

    def _create_tables(self) -> None:
        with self._conn:
            for ddl in ALL_TABLES:
                self._conn.execute(ddl)
