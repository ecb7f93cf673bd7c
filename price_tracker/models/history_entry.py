# price_tracker/models/history_entry.py

"""Append-only price/stock observation."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class HistoryEntry:
    """A single price/stock observation for a tracked item."""

    item_id: int
    price: float
    in_stock: bool
    recorded_at: datetime
    id: int = 0
