# price_tracker/models/tracked_item.py

"""Tracked item data model persisted by the item repository."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class TrackedItem:
    """A user-monitored product URL with price/stock state and preferences."""

    url: str
    id: int = 0
    title: str = ""
    current_price: float = 0.0
    desired_max_price: float = 0.0
    in_stock: bool = False
    is_uhd_4k: bool = False
    image_url: str = ""
    source: str = ""
    notify_on_price_drop: bool = True
    notify_on_stock: bool = True
    title_locked: bool = False
    created_at: datetime | None = None
    last_checked: datetime | None = None
