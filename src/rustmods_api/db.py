"""SQLite-backed catalog of mods.

Stores catalog items, their downloadable files and per-item metadata
(admin overrides, archive inspection cache). Every write that changes an
item reports it to ``CatalogEvents`` so derived caches stay coherent.

Metadata writes do not notify: the archive inspector writes its own cache
entries while the mods list is being built.
"""

import sqlite3
import time
from pathlib import Path

from loguru import logger

from rustmods_api.catalog import CatalogItem, Download
from rustmods_api.events import CatalogEvents


def _now_ts() -> float:
    """Current timestamp as float."""
    return time.time()


class StoredProduct:
    """Commerce view of a stored item."""

    def __init__(self, item: CatalogItem, product_name: str | None):
        self._item = item
        self._product_name = product_name

    def get_name(self) -> str:
        return self._product_name or self._item.title

    def get_downloads(self) -> list[Download]:
        return list(self._item.downloads)


class CatalogDB:
    """SQLite catalog store implementing ``CatalogStore`` and ``MetaStore``."""

    def __init__(
        self,
        db_path: Path,
        events: CatalogEvents | None = None,
        commerce: bool = True,
    ):
        self._db_path = db_path
        self._events = events or CatalogEvents()
        self._commerce = commerce

        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode = WAL")
        self._conn.execute("PRAGMA synchronous = NORMAL")
        self._conn.execute("PRAGMA busy_timeout = 5000")
        self._conn.execute("PRAGMA foreign_keys = ON")

        self._create_tables()
        logger.debug(f"CatalogDB initialized at {db_path} (commerce={commerce})")

    @property
    def events(self) -> CatalogEvents:
        return self._events

    def _create_tables(self) -> None:
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL DEFAULT '',
                status TEXT NOT NULL DEFAULT 'draft',
                permalink TEXT NOT NULL DEFAULT '',
                product_name TEXT,
                menu_order INTEGER NOT NULL DEFAULT 0,
                created_at REAL NOT NULL,
                updated_at REAL NOT NULL
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_items_status
            ON items(status)
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS downloads (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                item_id INTEGER NOT NULL,
                name TEXT NOT NULL DEFAULT '',
                file_url TEXT NOT NULL,
                position INTEGER NOT NULL DEFAULT 0,
                FOREIGN KEY (item_id) REFERENCES items(id) ON DELETE CASCADE
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_downloads_item
            ON downloads(item_id)
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS item_meta (
                item_id INTEGER NOT NULL,
                meta_key TEXT NOT NULL,
                meta_value TEXT NOT NULL,
                PRIMARY KEY (item_id, meta_key),
                FOREIGN KEY (item_id) REFERENCES items(id) ON DELETE CASCADE
            )
        """)
        self._conn.commit()

    # --- Reads ---

    def _downloads_for(self, item_id: int) -> tuple[Download, ...]:
        rows = self._conn.execute(
            "SELECT name, file_url FROM downloads WHERE item_id = ? "
            "ORDER BY position, id",
            (item_id,),
        ).fetchall()
        return tuple(Download(name=r["name"], file_url=r["file_url"]) for r in rows)

    def _row_to_item(self, row: sqlite3.Row) -> CatalogItem:
        return CatalogItem(
            id=row["id"],
            title=row["title"],
            status=row["status"],
            permalink=row["permalink"],
            downloads=self._downloads_for(row["id"]),
        )

    def get_item(self, item_id: int) -> CatalogItem | None:
        row = self._conn.execute(
            "SELECT * FROM items WHERE id = ?", (item_id,)
        ).fetchone()
        if not row:
            return None
        return self._row_to_item(row)

    def list_published(self) -> list[CatalogItem]:
        """Published items in listing order (menu order, newest first)."""
        rows = self._conn.execute(
            "SELECT * FROM items WHERE status = 'publish' "
            "ORDER BY menu_order ASC, created_at DESC, id DESC"
        ).fetchall()
        return [self._row_to_item(row) for row in rows]

    def get_product(self, item: CatalogItem) -> StoredProduct | None:
        """Commerce view of an item, None when the extension is disabled."""
        if not self._commerce:
            return None
        row = self._conn.execute(
            "SELECT product_name FROM items WHERE id = ?", (item.id,)
        ).fetchone()
        if not row:
            return None
        return StoredProduct(item, row["product_name"])

    # --- Writes ---

    def create_item(
        self,
        title: str,
        status: str = "publish",
        permalink: str = "",
        product_name: str | None = None,
        menu_order: int = 0,
        downloads: list[Download] | None = None,
    ) -> int:
        """Create an item and return its id."""
        now = _now_ts()
        with self._events.transaction():
            cursor = self._conn.execute(
                """INSERT INTO items
                   (title, status, permalink, product_name, menu_order,
                    created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (title, status, permalink, product_name, menu_order, now, now),
            )
            item_id = cursor.lastrowid
            self._conn.commit()
            self._events.item_mutated(item_id)
            if downloads:
                self.set_downloads(item_id, downloads)
        logger.debug(f"Created item {item_id}: {title!r}")
        return item_id

    def update_item(self, item_id: int, autosave: bool = False, **fields) -> bool:
        """Update item columns (title, status, permalink, product_name, menu_order)."""
        allowed = {"title", "status", "permalink", "product_name", "menu_order"}
        unknown = set(fields) - allowed
        if unknown:
            raise ValueError(f"Unknown item fields: {sorted(unknown)}")
        if not fields:
            return False

        assignments = ", ".join(f"{name} = ?" for name in fields)
        params = [*fields.values(), _now_ts(), item_id]
        cursor = self._conn.execute(
            f"UPDATE items SET {assignments}, updated_at = ? WHERE id = ?", params
        )
        self._conn.commit()
        if cursor.rowcount == 0:
            return False
        self._events.item_mutated(item_id, autosave=autosave)
        return True

    def set_downloads(self, item_id: int, downloads: list[Download]) -> None:
        """Replace the downloadable files of an item.

        Always reported as a download change, even for unchanged URLs.
        """
        self._conn.execute("DELETE FROM downloads WHERE item_id = ?", (item_id,))
        self._conn.executemany(
            "INSERT INTO downloads (item_id, name, file_url, position) "
            "VALUES (?, ?, ?, ?)",
            [
                (item_id, d.name, d.file_url, position)
                for position, d in enumerate(downloads)
            ],
        )
        self._conn.commit()
        self._events.item_mutated(item_id, downloads_changed=True)

    # --- Metadata ---

    def get_meta(self, item_id: int, key: str) -> str | None:
        row = self._conn.execute(
            "SELECT meta_value FROM item_meta WHERE item_id = ? AND meta_key = ?",
            (item_id, key),
        ).fetchone()
        return row["meta_value"] if row else None

    def set_meta(self, item_id: int, key: str, value: str) -> None:
        self._conn.execute(
            """INSERT OR REPLACE INTO item_meta (item_id, meta_key, meta_value)
               VALUES (?, ?, ?)""",
            (item_id, key, value),
        )
        self._conn.commit()

    def delete_meta(self, item_id: int, key: str) -> None:
        self._conn.execute(
            "DELETE FROM item_meta WHERE item_id = ? AND meta_key = ?",
            (item_id, key),
        )
        self._conn.commit()

    def stats(self) -> dict:
        """Item counts per status."""
        rows = self._conn.execute(
            "SELECT status, COUNT(*) AS total FROM items GROUP BY status"
        ).fetchall()
        return {row["status"]: row["total"] for row in rows}

    def close(self) -> None:
        """Close database connection."""
        try:
            self._conn.close()
        except Exception:
            pass
