# price_tracker/models/change_event.py

"""Classified outcome of comparing an item's old and new state."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from price_tracker.models.tracked_item import TrackedItem


class ChangeKind(Enum):
    """Kinds of change the classifier can report."""

    PRICE_DROPPED_BELOW_THRESHOLD = "price_dropped_below_threshold"
    BACK_IN_STOCK = "back_in_stock"
    PRICE_CHANGED = "price_changed"
    OUT_OF_STOCK = "out_of_stock"

    @property
    def is_alert(self) -> bool:
        """Whether this kind is dispatched to notification sinks."""
        return self in (
            ChangeKind.PRICE_DROPPED_BELOW_THRESHOLD,
            ChangeKind.BACK_IN_STOCK,
        )


@dataclass(frozen=True)
class ChangeEvent:
    """A single detected change for one tracked item."""

    kind: ChangeKind
    item: TrackedItem
    detected_at: datetime
    old_price: float | None = None
    new_price: float | None = None
    old_stock: bool | None = None
    new_stock: bool | None = None

    def describe(self) -> str:
        """Return a human-readable one-line description."""
        title = self.item.title
        if self.kind is ChangeKind.PRICE_DROPPED_BELOW_THRESHOLD:
            return (
                f"Price dropped below threshold for '{title}': "
                f"€{self.old_price or 0.0:.2f} → "
                f"€{self.new_price or 0.0:.2f} "
                f"(threshold: €{self.item.desired_max_price:.2f})"
            )
        if self.kind is ChangeKind.BACK_IN_STOCK:
            return (
                f"'{title}' is back in stock! "
                f"Current price: €{self.item.current_price:.2f}"
            )
        if self.kind is ChangeKind.PRICE_CHANGED:
            return (
                f"Price changed for '{title}': "
                f"€{self.old_price or 0.0:.2f} → "
                f"€{self.new_price or 0.0:.2f}"
            )
        return f"'{title}' is now out of stock"
