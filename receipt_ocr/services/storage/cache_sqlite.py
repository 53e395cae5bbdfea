"""
SQLite-based receipt cache for single-instance deployments.

Persists extracted receipts across restarts, keyed by image identity.
"""

import sqlite3
import json
from datetime import datetime, UTC
from typing import Optional
from .cache_store_base import CacheEntry, CacheStoreBase


class SQLiteCacheStore(CacheStoreBase):
    """
    SQLite-backed cache store.

    Values are stored as JSON text and expiry as ISO-8601 UTC timestamps,
    which sort lexically in time order.
    """

    def __init__(self, db_path: str = "receipt_cache.db"):
        """
        Initialize store with database path.

        Args:
            db_path: Path to SQLite database file (default: receipt_cache.db)
        """
        self.db_path = db_path
        self._init_database()

    def _init_database(self):
        """Create cache table if it doesn't exist"""
        conn = sqlite3.connect(self.db_path)
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS receipt_cache (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                expires_at TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_expires_at
            ON receipt_cache(expires_at)
        """)

        conn.commit()
        conn.close()

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection with row factory"""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def get(self, key: str) -> Optional[CacheEntry]:
        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute("""
            SELECT key, value, expires_at
            FROM receipt_cache
            WHERE key = ?
        """, (key,))

        row = cursor.fetchone()
        conn.close()

        if row is None:
            return None

        return CacheEntry(
            key=row["key"],
            value=json.loads(row["value"]),
            expires_at=datetime.fromisoformat(row["expires_at"]),
        )

    def upsert(self, key: str, value: dict, expires_at: datetime) -> None:
        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute("""
            INSERT INTO receipt_cache (key, value, expires_at, created_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                expires_at = excluded.expires_at,
                created_at = excluded.created_at
        """, (key, json.dumps(value), expires_at.astimezone(UTC).isoformat(), datetime.now(UTC).isoformat()))

        conn.commit()
        conn.close()

    def delete(self, key: str) -> bool:
        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute("DELETE FROM receipt_cache WHERE key = ?", (key,))

        rows_affected = cursor.rowcount
        conn.commit()
        conn.close()

        return rows_affected > 0

    def purge_expired(self, now: datetime) -> int:
        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute(
            "DELETE FROM receipt_cache WHERE expires_at <= ?",
            (now.astimezone(UTC).isoformat(),),
        )

        rows_affected = cursor.rowcount
        conn.commit()
        conn.close()

        return rows_affected
