# price_tracker/storage/price_history_db.py

"""Append-only SQLite ledger of price/stock observations."""

import logging
import threading
from datetime import datetime, timedelta
from pathlib import Path

from price_tracker.config.settings import Settings
from price_tracker.models.history_entry import HistoryEntry
from price_tracker.storage.database import open_connection

logger = logging.getLogger("price_tracker.storage.history")


class PriceHistoryDB:
    """History ledger: one entry per successful scrape of an item."""

    def __init__(
        self, db_path: Path | None = None,
    ) -> None:
        self._conn = open_connection(db_path or Settings.DB_PATH)
        self._lock = threading.Lock()

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def append(
        self,
        item_id: int,
        price: float,
        in_stock: bool,
        recorded_at: datetime | None = None,
    ) -> None:
        """Record one observation. Raises ``sqlite3.Error`` on failure."""
        ts = (recorded_at or datetime.now()).isoformat()
        with self._lock:
            self._conn.execute(
                "INSERT INTO price_history "
                "(item_id, price, in_stock, recorded_at) "
                "VALUES (?, ?, ?, ?)",
                (item_id, price, int(in_stock), ts),
            )
            self._conn.commit()

    def get_history(
        self, item_id: int, days: int = Settings.HISTORY_DAYS,
    ) -> list[HistoryEntry]:
        """Return the item's entries from the last ``days``, oldest first."""
        cutoff = (datetime.now() - timedelta(days=days)).isoformat()
        with self._lock:
            rows = self._conn.execute(
                "SELECT id, item_id, price, in_stock, recorded_at "
                "FROM price_history "
                "WHERE item_id = ? AND recorded_at >= ? "
                "ORDER BY recorded_at ASC, id ASC",
                (item_id, cutoff),
            ).fetchall()
        return [
            HistoryEntry(
                id=r[0],
                item_id=r[1],
                price=r[2],
                in_stock=bool(r[3]),
                recorded_at=datetime.fromisoformat(r[4]),
            )
            for r in rows
        ]

    def prune_history(
        self, days_to_keep: int = Settings.HISTORY_RETENTION_DAYS,
    ) -> int:
        """Delete entries older than ``days_to_keep``; return the count."""
        cutoff = (datetime.now() - timedelta(days=days_to_keep)).isoformat()
        with self._lock:
            cur = self._conn.execute(
                "DELETE FROM price_history WHERE recorded_at < ?",
                (cutoff,),
            )
            self._conn.commit()
        removed = cur.rowcount
        if removed:
            logger.info(
                "Pruned %d history entries older than %d days",
                removed,
                days_to_keep,
            )
        return removed
