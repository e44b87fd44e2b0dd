"""
Database module for the store service.

Uses SQLite for persistent storage of the key-value entries that workers use
to rendezvous.
"""

import sqlite3
from typing import Optional, List
from datetime import datetime, UTC
import threading


# Disable deprecated datetime adapters
sqlite3.register_adapter(datetime, lambda val: val.isoformat())
sqlite3.register_converter("TIMESTAMP", lambda val: datetime.fromisoformat(val.decode()))


class Database:
    """
    Thread-safe SQLite key-value table.

    Read-modify-write operations (add, compare_set) run under a process-wide
    lock, so they are atomic for every request handled by this service.
    """

    def __init__(self, db_path: str = "rendezvous.db"):
        """
        Initialize database connection.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self._local = threading.local()
        self._lock = threading.Lock()
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if not hasattr(self._local, 'conn'):
            self._local.conn = sqlite3.connect(
                self.db_path,
                check_same_thread=False,
                detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES
            )
            self._local.conn.row_factory = sqlite3.Row
        return self._local.conn

    def _init_db(self):
        """Initialize database schema."""
        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS kv (
                key TEXT PRIMARY KEY,
                value BLOB NOT NULL,
                updated_at TIMESTAMP NOT NULL
            )
        """)

        conn.commit()

    def _read(self, cursor: sqlite3.Cursor, key: str) -> Optional[bytes]:
        cursor.execute("SELECT value FROM kv WHERE key = ?", (key,))
        row = cursor.fetchone()
        if row is None:
            return None
        return bytes(row['value'])

    def _write(self, cursor: sqlite3.Cursor, key: str, value: bytes):
        cursor.execute("""
            INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
        """, (key, value, datetime.now(UTC)))

    def set_value(self, key: str, value: bytes):
        """
        Store a value, replacing any existing one.

        Args:
            key: Entry key
            value: Raw value
        """
        conn = self._get_connection()
        cursor = conn.cursor()

        with self._lock:
            self._write(cursor, key, value)
            conn.commit()

    def get_value(self, key: str) -> Optional[bytes]:
        """
        Get a value.

        Args:
            key: Entry key

        Returns:
            Raw value or None if not found
        """
        conn = self._get_connection()
        return self._read(conn.cursor(), key)

    def add_value(self, key: str, delta: int) -> int:
        """
        Atomically add to an integer value.

        Args:
            key: Entry key (absent counts as 0)
            delta: Amount to add

        Returns:
            New total

        Raises:
            ValueError: If the existing value is not an integer
        """
        conn = self._get_connection()
        cursor = conn.cursor()

        with self._lock:
            current = self._read(cursor, key)
            total = (int(current) if current is not None else 0) + delta
            self._write(cursor, key, str(total).encode('ascii'))
            conn.commit()

        return total

    def compare_set(self, key: str, expected: bytes, desired: bytes) -> bytes:
        """
        Atomically replace ``expected`` with ``desired``.

        An absent key matches an empty ``expected``.

        Args:
            key: Entry key
            expected: Value the entry must currently hold
            desired: Replacement value

        Returns:
            Value held after the attempt (``expected`` if the key is absent
            and ``expected`` is not empty)
        """
        conn = self._get_connection()
        cursor = conn.cursor()

        with self._lock:
            current = self._read(cursor, key)

            if current is None:
                if expected:
                    return expected
                self._write(cursor, key, desired)
                conn.commit()
                return desired

            if current == expected:
                self._write(cursor, key, desired)
                conn.commit()
                return desired

            return current

    def keys_exist(self, keys: List[str]) -> bool:
        """
        Check whether every key exists.

        Args:
            keys: Entry keys

        Returns:
            True if all keys are present
        """
        if not keys:
            return True

        conn = self._get_connection()
        cursor = conn.cursor()

        unique_keys = list(set(keys))
        placeholders = ", ".join("?" for _ in unique_keys)
        cursor.execute(
            f"SELECT COUNT(*) AS n FROM kv WHERE key IN ({placeholders})",
            unique_keys
        )
        return cursor.fetchone()['n'] == len(unique_keys)

    def count_keys(self) -> int:
        """Number of stored entries."""
        conn = self._get_connection()
        cursor = conn.cursor()
        cursor.execute("SELECT COUNT(*) AS n FROM kv")
        return cursor.fetchone()['n']

    def close(self):
        """Close database connection."""
        if hasattr(self._local, 'conn'):
            self._local.conn.close()
            del self._local.conn
