"""
SQLite key-value storage for TimeSnap.

The capsule collection lives in one named slot of a small SQLite table.
A slot is just a key and a blob; the repository decides what goes in it.

Tables:
    - schema_version: Version of this table layout
    - slots: key -> blob, with the time of the last write

Why SQLite?
    - Zero configuration (no server needed)
    - Each write is atomic, so a crash never leaves half a blob behind
    - Portable single-file format
"""

import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from timesnap.errors import StorageConnectionError, StorageReadError, StorageWriteError

# Schema version for migrations
SCHEMA_VERSION = 1

# SQL for creating tables
CREATE_TABLES_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL
);

-- Slots table: one blob per key
CREATE TABLE IF NOT EXISTS slots (
    key TEXT PRIMARY KEY,
    value BLOB NOT NULL,
    updated_at TEXT NOT NULL
);
"""


def now_iso() -> str:
    """Get current UTC time in ISO format."""
    return datetime.now(UTC).isoformat()


class SlotStore:
    """
    SQLite-backed key-value store.

    Usage:
        store = SlotStore("timesnap.db")
        store.put("timeCapsules", blob)
        blob = store.get("timeCapsules")
        store.close()

    Or use as context manager:
        with SlotStore("timesnap.db") as store:
            ...
    """

    def __init__(self, db_path: str | Path) -> None:
        """
        Open (and create if needed) the database.

        Args:
            db_path: Path to the SQLite database file, or ":memory:"
        """
        self.db_path = Path(db_path) if str(db_path) != ":memory:" else db_path
        self._conn: sqlite3.Connection | None = None
        self._connect()
        self._init_schema()

    def _connect(self) -> None:
        """Establish database connection."""
        try:
            if isinstance(self.db_path, Path):
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
            )
            self._conn.row_factory = sqlite3.Row
        except (sqlite3.Error, OSError) as e:
            raise StorageConnectionError(
                db_path=str(self.db_path),
                operation="connect",
                message=f"Failed to connect to database: {e}",
            ) from e

    def _init_schema(self) -> None:
        """Initialize database schema if needed."""
        try:
            cursor = self._conn.executescript(CREATE_TABLES_SQL)
            cursor.close()

            cursor = self._conn.execute(
                "SELECT version FROM schema_version ORDER BY version DESC LIMIT 1"
            )
            row = cursor.fetchone()
            if row is None:
                self._conn.execute(
                    "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                    (SCHEMA_VERSION, now_iso()),
                )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StorageWriteError(
                operation="init_schema",
                underlying_error=str(e),
            ) from e

    @property
    def schema_version(self) -> int:
        """Version of the table layout in this database."""
        try:
            row = self._conn.execute(
                "SELECT version FROM schema_version ORDER BY version DESC LIMIT 1"
            ).fetchone()
            return row["version"] if row else 0
        except sqlite3.Error as e:
            raise StorageReadError(
                operation="schema_version",
                underlying_error=str(e),
            ) from e

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "SlotStore":
        """Enter context manager."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context manager."""
        self.close()

    # =========================================================================
    # Slot Operations
    # =========================================================================

    def get(self, key: str) -> bytes | None:
        """
        Read a slot.

        Args:
            key: Slot name

        Returns:
            The stored blob, or None if the slot is empty
        """
        try:
            cursor = self._conn.execute(
                "SELECT value FROM slots WHERE key = ?",
                (key,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return bytes(row["value"])
        except sqlite3.Error as e:
            raise StorageReadError(
                operation="get",
                underlying_error=str(e),
            ) from e

    def put(self, key: str, value: bytes) -> None:
        """
        Write a slot, replacing any previous value.

        Args:
            key: Slot name
            value: Blob to store
        """
        try:
            self._conn.execute(
                """
                INSERT INTO slots (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, sqlite3.Binary(value), now_iso()),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            self._conn.rollback()
            raise StorageWriteError(
                operation="put",
                underlying_error=str(e),
            ) from e

    def delete(self, key: str) -> bool:
        """
        Remove a slot.

        Returns:
            True if the slot existed
        """
        try:
            cursor = self._conn.execute("DELETE FROM slots WHERE key = ?", (key,))
            self._conn.commit()
            return cursor.rowcount > 0
        except sqlite3.Error as e:
            raise StorageWriteError(
                operation="delete",
                underlying_error=str(e),
            ) from e

    def keys(self, prefix: str = "") -> list[str]:
        """
        List slot names, optionally only those starting with prefix.
        """
        try:
            cursor = self._conn.execute("SELECT key FROM slots ORDER BY key")
            return [row["key"] for row in cursor if row["key"].startswith(prefix)]
        except sqlite3.Error as e:
            raise StorageReadError(
                operation="keys",
                underlying_error=str(e),
            ) from e

    def updated_at(self, key: str) -> datetime | None:
        """When a slot was last written, or None if it doesn't exist."""
        try:
            row = self._conn.execute(
                "SELECT updated_at FROM slots WHERE key = ?",
                (key,),
            ).fetchone()
            if row is None:
                return None
            return datetime.fromisoformat(row["updated_at"])
        except sqlite3.Error as e:
            raise StorageReadError(
                operation="updated_at",
                underlying_error=str(e),
            ) from e
