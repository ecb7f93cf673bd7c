# price_tracker/models/scraped_snapshot.py

"""Point-in-time fetch result produced by a source adapter."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class ScrapedSnapshot:
    """One fetch attempt's result; merged into a TrackedItem then dropped."""

    url: str
    title: str = ""
    price: float = 0.0
    in_stock: bool = False
    is_uhd_4k: bool = False
    image_url: str = ""
    source: str = ""
    fetched_at: datetime = field(default_factory=datetime.now)
