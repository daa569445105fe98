"""TTL-based transient storage and the cached mods list.

``TransientCache`` is a SQLite key/value store where every entry carries
its own expiry. It holds the mods list payload (5 minutes) and short-lived
"rescan archive" flags (60 seconds). Thread-safe via WAL mode.

``ListCache`` memoizes the full derived mods list on top of it. The
check-then-build sequence is not locked: two concurrent misses both build
and the last write wins.
"""

import json
import sqlite3
import time
from collections.abc import Callable
from pathlib import Path

from loguru import logger

from rustmods_api.catalog import DerivedRecord

# Purge expired entries every N writes
_PURGE_INTERVAL = 50

MODS_CACHE_KEY = "rustmods_mods_cache"


class TransientCache:
    """SQLite-backed key/value store with per-entry TTL."""

    def __init__(self, db_path: Path):
        self._db_path = db_path
        self._op_count = 0

        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode = WAL")
        self._conn.execute("PRAGMA synchronous = NORMAL")
        self._conn.execute("PRAGMA busy_timeout = 5000")

        self._create_tables()
        logger.debug(f"TransientCache initialized at {db_path}")

    def _create_tables(self) -> None:
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS transients (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                created_at REAL NOT NULL,
                expires_at REAL NOT NULL,
                hit_count INTEGER NOT NULL DEFAULT 0
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_transients_expires
            ON transients(expires_at)
        """)
        self._conn.commit()

    def get(self, key: str):
        """Get a stored value if it exists and has not expired."""
        now = time.time()
        row = self._conn.execute(
            "SELECT value FROM transients WHERE key = ? AND expires_at > ?",
            (key, now),
        ).fetchone()

        if row:
            self._conn.execute(
                "UPDATE transients SET hit_count = hit_count + 1 WHERE key = ?",
                (key,),
            )
            self._conn.commit()
            logger.debug(f"Cache HIT: {key}")
            return json.loads(row["value"])

        logger.debug(f"Cache MISS: {key}")
        return None

    def set(self, key: str, value, ttl: int) -> None:
        """Store a JSON-serializable value for ``ttl`` seconds."""
        now = time.time()
        self._conn.execute(
            """INSERT OR REPLACE INTO transients
               (key, value, created_at, expires_at, hit_count)
               VALUES (?, ?, ?, ?, 0)""",
            (key, json.dumps(value, ensure_ascii=False), now, now + ttl),
        )
        self._conn.commit()
        logger.debug(f"Cache SET: {key} TTL={ttl}s")

        # Periodic purge
        self._op_count += 1
        if self._op_count >= _PURGE_INTERVAL:
            self._purge_expired()
            self._op_count = 0

    def delete(self, key: str) -> bool:
        """Delete an entry. Returns True if one existed."""
        cursor = self._conn.execute("DELETE FROM transients WHERE key = ?", (key,))
        self._conn.commit()
        return cursor.rowcount > 0

    def _purge_expired(self) -> None:
        """Remove expired entries."""
        cursor = self._conn.execute(
            "DELETE FROM transients WHERE expires_at <= ?",
            (time.time(),),
        )
        if cursor.rowcount > 0:
            self._conn.commit()
            logger.debug(f"Purged {cursor.rowcount} expired transients")

    def clear(self, prefix: str | None = None) -> int:
        """Clear entries. If prefix specified, only keys starting with it."""
        if prefix:
            cursor = self._conn.execute(
                "DELETE FROM transients WHERE key LIKE ? ESCAPE '\\'",
                (prefix.replace("%", "\\%").replace("_", "\\_") + "%",),
            )
        else:
            cursor = self._conn.execute("DELETE FROM transients")
        self._conn.commit()
        return cursor.rowcount

    def stats(self) -> dict:
        """Get cache statistics."""
        row = self._conn.execute(
            """
            SELECT COUNT(*) AS total,
                   SUM(CASE WHEN expires_at > ? THEN 1 ELSE 0 END) AS active,
                   SUM(hit_count) AS total_hits
            FROM transients
        """,
            (time.time(),),
        ).fetchone()
        return {
            "total": row["total"],
            "active": row["active"] or 0,
            "hits": row["total_hits"] or 0,
        }

    def close(self) -> None:
        """Close database connection."""
        try:
            self._conn.close()
        except Exception:
            pass


class ListCache:
    """Read-through cache of the full derived mods list."""

    def __init__(
        self,
        transients: TransientCache,
        builder: Callable[[], list[DerivedRecord]],
        ttl: int = 300,
        key: str = MODS_CACHE_KEY,
    ):
        self._transients = transients
        self._builder = builder
        self._ttl = ttl
        self._key = key

    def get_or_build(self) -> list[DerivedRecord]:
        """Return the cached list, building and storing it on a miss."""
        cached = self._transients.get(self._key)
        if isinstance(cached, list):
            return [DerivedRecord.from_dict(entry) for entry in cached]
        return self.rebuild()

    def rebuild(self) -> list[DerivedRecord]:
        """Build the list now and store it with a fresh TTL."""
        records = self._builder()
        self._transients.set(
            self._key, [record.to_dict() for record in records], self._ttl
        )
        logger.info(f"Mods list rebuilt ({len(records)} items)")
        return records

    def invalidate(self) -> None:
        """Delete the cached list unconditionally."""
        if self._transients.delete(self._key):
            logger.debug("Mods list cache invalidated")
