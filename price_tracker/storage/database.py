# price_tracker/storage/database.py

"""Shared SQLite connection setup for the tracker database."""

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger("price_tracker.storage")

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS tracked_items (
    id                   INTEGER PRIMARY KEY AUTOINCREMENT,
    url                  TEXT    NOT NULL UNIQUE,
    title                TEXT    NOT NULL DEFAULT '',
    current_price        REAL    NOT NULL DEFAULT 0,
    desired_max_price    REAL    NOT NULL DEFAULT 0,
    in_stock             INTEGER NOT NULL DEFAULT 0,
    is_uhd_4k            INTEGER NOT NULL DEFAULT 0,
    image_url            TEXT    NOT NULL DEFAULT '',
    source               TEXT    NOT NULL DEFAULT '',
    notify_on_price_drop INTEGER NOT NULL DEFAULT 1,
    notify_on_stock      INTEGER NOT NULL DEFAULT 1,
    title_locked         INTEGER NOT NULL DEFAULT 0,
    created_at           TEXT    NOT NULL,
    last_checked         TEXT
);

CREATE TABLE IF NOT EXISTS price_history (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    item_id     INTEGER NOT NULL
                REFERENCES tracked_items(id) ON DELETE CASCADE,
    price       REAL    NOT NULL,
    in_stock    INTEGER NOT NULL,
    recorded_at TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_history_item_date
    ON price_history(item_id, recorded_at);
"""


def open_connection(path: Path) -> sqlite3.Connection:
    """Open (and initialise) the tracker database at ``path``.

    The connection may be shared across worker threads; callers are
    responsible for serialising access to it.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.executescript(_SCHEMA)
    logger.debug("Tracker database opened at %s", path)
    return conn
