# price_tracker/storage/tracked_item_repository.py

"""SQLite-backed store for tracked items."""

import logging
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

from price_tracker.config.settings import Settings
from price_tracker.models.tracked_item import TrackedItem
from price_tracker.storage.database import open_connection

logger = logging.getLogger("price_tracker.storage.items")

_COLUMNS = (
    "id, url, title, current_price, desired_max_price, in_stock, "
    "is_uhd_4k, image_url, source, notify_on_price_drop, "
    "notify_on_stock, title_locked, created_at, last_checked"
)


class DuplicateItemError(ValueError):
    """Raised when adding a URL that is already tracked."""


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _row_to_item(row: tuple[Any, ...]) -> TrackedItem:
    return TrackedItem(
        id=row[0],
        url=row[1],
        title=row[2],
        current_price=row[3],
        desired_max_price=row[4],
        in_stock=bool(row[5]),
        is_uhd_4k=bool(row[6]),
        image_url=row[7],
        source=row[8],
        notify_on_price_drop=bool(row[9]),
        notify_on_stock=bool(row[10]),
        title_locked=bool(row[11]),
        created_at=_parse_ts(row[12]),
        last_checked=_parse_ts(row[13]),
    )


class TrackedItemRepository:
    """Read/write access to tracked items. URLs are unique."""

    def __init__(self, db_path: Path | None = None) -> None:
        self._conn = open_connection(db_path or Settings.DB_PATH)
        self._lock = threading.Lock()

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # ── Reading ──────────────────────────────────────────

    def load_all(self) -> list[TrackedItem]:
        """Return every tracked item in insertion order."""
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_COLUMNS} FROM tracked_items ORDER BY id",
            ).fetchall()
        return [_row_to_item(r) for r in rows]

    def get(self, item_id: int) -> TrackedItem | None:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_COLUMNS} FROM tracked_items WHERE id = ?",
                (item_id,),
            ).fetchone()
        return _row_to_item(row) if row else None

    def get_by_url(self, url: str) -> TrackedItem | None:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_COLUMNS} FROM tracked_items WHERE url = ?",
                (url,),
            ).fetchone()
        return _row_to_item(row) if row else None

    # ── Writing ──────────────────────────────────────────

    def add(self, item: TrackedItem) -> TrackedItem:
        """Insert ``item`` and return it with its new id.

        Raises:
            DuplicateItemError: the URL is already tracked.
        """
        created = item.created_at or datetime.now()
        try:
            with self._lock:
                cur = self._conn.execute(
                    "INSERT INTO tracked_items (url, title, current_price, "
                    "desired_max_price, in_stock, is_uhd_4k, image_url, "
                    "source, notify_on_price_drop, notify_on_stock, "
                    "title_locked, created_at, last_checked) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        item.url,
                        item.title,
                        item.current_price,
                        item.desired_max_price,
                        int(item.in_stock),
                        int(item.is_uhd_4k),
                        item.image_url,
                        item.source,
                        int(item.notify_on_price_drop),
                        int(item.notify_on_stock),
                        int(item.title_locked),
                        created.isoformat(),
                        (
                            item.last_checked.isoformat()
                            if item.last_checked
                            else None
                        ),
                    ),
                )
                self._conn.commit()
        except sqlite3.IntegrityError as exc:
            msg = f"URL already tracked: {item.url}"
            raise DuplicateItemError(msg) from exc
        new_id = int(cur.lastrowid or 0)
        logger.info("Tracking new item %d: %s", new_id, item.url)
        item.id = new_id
        item.created_at = created
        return item

    def save(self, item: TrackedItem) -> bool:
        """Persist ``item``'s mutable fields. Returns False on failure."""
        try:
            with self._lock:
                cur = self._conn.execute(
                    "UPDATE tracked_items SET title = ?, "
                    "current_price = ?, desired_max_price = ?, "
                    "in_stock = ?, is_uhd_4k = ?, image_url = ?, "
                    "source = ?, notify_on_price_drop = ?, "
                    "notify_on_stock = ?, title_locked = ?, "
                    "last_checked = ? WHERE id = ?",
                    (
                        item.title,
                        item.current_price,
                        item.desired_max_price,
                        int(item.in_stock),
                        int(item.is_uhd_4k),
                        item.image_url,
                        item.source,
                        int(item.notify_on_price_drop),
                        int(item.notify_on_stock),
                        int(item.title_locked),
                        (
                            item.last_checked.isoformat()
                            if item.last_checked
                            else None
                        ),
                        item.id,
                    ),
                )
                self._conn.commit()
        except sqlite3.Error as exc:
            logger.error(
                "Failed to save item %d (%s): %s",
                item.id,
                item.url,
                exc,
                exc_info=True,
            )
            return False
        return cur.rowcount == 1

    def delete(self, item_id: int) -> bool:
        """Stop tracking an item (its history is removed with it)."""
        with self._lock:
            cur = self._conn.execute(
                "DELETE FROM tracked_items WHERE id = ?", (item_id,),
            )
            self._conn.commit()
        return cur.rowcount == 1
