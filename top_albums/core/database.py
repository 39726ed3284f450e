"""
Thread-safe SQLite key-value store for top-albums.

The application keeps all of its state under a handful of well-known keys,
the same way a browser app keeps it in local storage. Values are opaque
text: the store never parses them, so a corrupt value can sit in the table
and every reader must tolerate it.

Schema:
    schema_version:     Single row with the schema version
    storage:            key TEXT PRIMARY KEY, value TEXT, updated_at TEXT

Keys:
    RANKED_LIST_KEY         Ranked album list (JSON array of albums)
    MANUAL_ORDER_KEY        Manual-order snapshot (JSON array of albums)
    BACKUPS_KEY             Backup history (JSON array, at most 10 entries)
    SETTINGS_KEY            Sort mode and direction (JSON object)
    USER_TOKEN_KEY          Spotify user access token (plain text)
    USER_PROFILE_KEY        Spotify user profile (JSON object)

Usage:
    db = Database(storage_dir / "top50.db")
    db.set_item(RANKED_LIST_KEY, json.dumps(albums))
    raw = db.get_item(RANKED_LIST_KEY)
"""

import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

from top_albums.core.exceptions import StorageError


DATABASE_VERSION = 1

RANKED_LIST_KEY = "music-top50-albums"
MANUAL_ORDER_KEY = "music-top50-manual-order"
BACKUPS_KEY = "music-top50-backups"
SETTINGS_KEY = "music-top50-settings"
USER_TOKEN_KEY = "spotify_user_token"
USER_PROFILE_KEY = "spotify_user_profile"


_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS storage (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT
);
"""


class Database:
    """
    Thread-safe SQLite key-value store.

    Uses a single persistent connection with thread locking for safety.
    All public methods acquire self._lock before executing.

    Pass ":memory:" as db_path for a throwaway in-memory store.
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = db_path
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None

        if isinstance(db_path, Path) and not db_path.parent.exists():
            raise StorageError(
                f"Parent directory does not exist: {db_path.parent}",
                details={"path": str(db_path.parent)}
            )

        try:
            self._init_database()
        except sqlite3.Error as e:
            raise StorageError(
                f"Failed to initialize database: {e}",
                details={"path": str(db_path)}
            ) from e

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Get the persistent database connection as a context manager.

        The connection is created once and reused for all operations.
        """
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.db_path),
                timeout=30.0,
                check_same_thread=False  # We handle thread safety with _lock
            )
        yield self._conn

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def _init_database(self) -> None:
        with self._get_connection() as conn:
            conn.executescript(_SCHEMA_SQL)

            cursor = conn.execute("SELECT version FROM schema_version LIMIT 1")
            row = cursor.fetchone()

            if row is None:
                conn.execute("INSERT INTO schema_version (version) VALUES (?)", (DATABASE_VERSION,))
            elif row[0] != DATABASE_VERSION:
                raise StorageError(
                    f"Database version mismatch: expected {DATABASE_VERSION}, got {row[0]}",
                    details={"expected": DATABASE_VERSION, "actual": row[0]}
                )
            conn.commit()

    def _now_iso(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    # =========================================================================
    # Key-Value Operations
    # =========================================================================

    def get_item(self, key: str) -> str | None:
        """Return the raw stored text for key, or None if absent."""
        with self._lock:
            with self._get_connection() as conn:
                try:
                    cursor = conn.execute("SELECT value FROM storage WHERE key = ?", (key,))
                    row = cursor.fetchone()
                except sqlite3.Error as e:
                    raise StorageError(
                        f"Failed to read key '{key}': {e}",
                        details={"key": key}
                    ) from e
                return row[0] if row else None

    def set_item(self, key: str, value: str) -> None:
        """Create or overwrite key with value."""
        with self._lock:
            with self._get_connection() as conn:
                try:
                    conn.execute("""
                        INSERT INTO storage (key, value, updated_at)
                        VALUES (?, ?, ?)
                        ON CONFLICT(key) DO UPDATE SET
                            value = excluded.value,
                            updated_at = excluded.updated_at
                    """, (key, value, self._now_iso()))
                    conn.commit()
                except sqlite3.Error as e:
                    raise StorageError(
                        f"Failed to write key '{key}': {e}",
                        details={"key": key}
                    ) from e

    def remove_item(self, key: str) -> None:
        """Delete key. Removing an absent key is not an error."""
        with self._lock:
            with self._get_connection() as conn:
                try:
                    conn.execute("DELETE FROM storage WHERE key = ?", (key,))
                    conn.commit()
                except sqlite3.Error as e:
                    raise StorageError(
                        f"Failed to remove key '{key}': {e}",
                        details={"key": key}
                    ) from e
