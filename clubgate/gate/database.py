"""Key/value persistence for the gate device."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Protocol

from .errors import StorageError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

MEMBER_DATA_KEY = "member_data"
TODAYS_CHECKINS_KEY = "todays_checkins"
TODAYS_ALERTS_KEY = "todays_alerts"
LAST_DOWNLOAD_DATE_KEY = "last_download_date"


def dict_factory(cursor: sqlite3.Cursor, row: sqlite3.Row) -> dict:
    """Return rows as dictionaries rather than tuples."""

    return {description[0]: row[idx] for idx, description in enumerate(cursor.description)}


def get_connection(path: str | Path) -> sqlite3.Connection:
    """Return a SQLite connection with sensible defaults."""

    conn = sqlite3.connect(path)
    conn.row_factory = dict_factory
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA busy_timeout = 5000")
    return conn


def initialize_database(conn: sqlite3.Connection) -> None:
    """Create the key/value tables if they do not yet exist."""

    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS metadata (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS kv_store (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT DEFAULT CURRENT_TIMESTAMP
        );
        """
    )

    stored = get_metadata(conn, "schema_version")
    if stored is not None and int(stored) > SCHEMA_VERSION:
        raise StorageError(
            f"Database schema version {stored} is newer than supported version {SCHEMA_VERSION}"
        )
    if stored is None or int(stored) != SCHEMA_VERSION:
        set_metadata(conn, "schema_version", SCHEMA_VERSION)


def set_metadata(conn: sqlite3.Connection, key: str, value: int | str) -> None:
    conn.execute(
        "INSERT INTO metadata(key, value) VALUES (?, ?)\n         ON CONFLICT(key) DO UPDATE SET value = excluded.value",
        (key, str(value)),
    )
    conn.commit()


def get_metadata(conn: sqlite3.Connection, key: str, default: str | None = None) -> str | None:
    row = conn.execute("SELECT value FROM metadata WHERE key = ?", (key,)).fetchone()
    return row["value"] if row else default


class StorageAdapter(Protocol):
    """Minimal key/value contract the gate logic persists through."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def clear(self, key: str) -> None: ...

    def close(self) -> None: ...


class SqliteStorage:
    """Key/value adapter backed by a single SQLite table."""

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        self.conn = get_connection(db_path)
        try:
            initialize_database(self.conn)
        except StorageError:
            self.conn.close()
            raise

    def get(self, key: str) -> str | None:
        try:
            row = self.conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as exc:
            logger.error("Error reading %s: %s", key, exc)
            raise StorageError(f"Failed to read {key}") from exc
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        try:
            self.conn.execute(
                """
                INSERT INTO kv_store(key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (key, value),
            )
            self.conn.commit()
        except sqlite3.Error as exc:
            logger.error("Error writing %s: %s", key, exc)
            raise StorageError(f"Failed to write {key}") from exc

    def clear(self, key: str) -> None:
        try:
            self.conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            self.conn.commit()
        except sqlite3.Error as exc:
            logger.error("Error clearing %s: %s", key, exc)
            raise StorageError(f"Failed to clear {key}") from exc

    def close(self) -> None:
        self.conn.close()


class MemoryStorage:
    """In-process adapter, used by the test-suite."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.values[key] = value

    def clear(self, key: str) -> None:
        self.values.pop(key, None)

    def close(self) -> None:
        self.values.clear()
