# price_tracker/domain/change_classifier.py

"""Classify an item's before/after transition into at most one event."""

import logging
from datetime import datetime

from price_tracker.config.settings import Settings
from price_tracker.models.change_event import ChangeEvent, ChangeKind
from price_tracker.models.tracked_item import TrackedItem
from price_tracker.notifiers.registry import SinkRegistry

logger = logging.getLogger("price_tracker.classifier")


def classify_change(
    old: TrackedItem,
    new: TrackedItem,
    epsilon: float = Settings.PRICE_CHANGE_EPSILON,
) -> ChangeEvent | None:
    """Return the single highest-precedence change, or ``None``.

    Precedence (first match wins):
    1. price dropped to/below the desired max while in stock, having
       been above it before (needs ``notify_on_price_drop``);
    2. back in stock (needs ``notify_on_stock``);
    3. price moved by more than ``epsilon``;
    4. went out of stock.

    A compound transition therefore reports only its first match.
    ``detected_at`` is taken from ``new.last_checked`` when set so that
    identical inputs always produce equal events.
    """
    detected_at = new.last_checked or datetime.now()

    if (
        new.notify_on_price_drop
        and new.in_stock
        and new.current_price <= new.desired_max_price
        and old.current_price > new.desired_max_price
    ):
        return ChangeEvent(
            kind=ChangeKind.PRICE_DROPPED_BELOW_THRESHOLD,
            item=new,
            detected_at=detected_at,
            old_price=old.current_price,
            new_price=new.current_price,
        )
    if new.notify_on_stock and not old.in_stock and new.in_stock:
        return ChangeEvent(
            kind=ChangeKind.BACK_IN_STOCK,
            item=new,
            detected_at=detected_at,
            old_stock=old.in_stock,
            new_stock=new.in_stock,
        )
    if abs(old.current_price - new.current_price) > epsilon:
        return ChangeEvent(
            kind=ChangeKind.PRICE_CHANGED,
            item=new,
            detected_at=detected_at,
            old_price=old.current_price,
            new_price=new.current_price,
        )
    if old.in_stock and not new.in_stock:
        return ChangeEvent(
            kind=ChangeKind.OUT_OF_STOCK,
            item=new,
            detected_at=detected_at,
            old_stock=old.in_stock,
            new_stock=new.in_stock,
        )
    return None


class ItemStateComparator:
    """Classifies item transitions and alerts sinks for alert kinds."""

    def __init__(
        self,
        sinks: SinkRegistry | None = None,
        epsilon: float = Settings.PRICE_CHANGE_EPSILON,
    ) -> None:
        self.sinks = sinks if sinks is not None else SinkRegistry()
        self._epsilon = epsilon

    def classify(
        self, old: TrackedItem, new: TrackedItem,
    ) -> ChangeEvent | None:
        """Classify ``old`` → ``new``; fan out price-drop/restock alerts."""
        event, _delivered = self.classify_and_alert(old, new)
        return event

    def classify_and_alert(
        self, old: TrackedItem, new: TrackedItem,
    ) -> tuple[ChangeEvent | None, int]:
        """Like :meth:`classify`, also returning the successful deliveries."""
        event = classify_change(old, new, self._epsilon)
        if event is None:
            return None, 0
        logger.info("Detected change: %s", event.describe())
        if not event.kind.is_alert or not len(self.sinks):
            return event, 0
        delivered = self.sinks.fan_out(event)
        logger.debug(
            "Alert for '%s' delivered to %d/%d sinks",
            new.title,
            delivered,
            len(self.sinks),
        )
        return event, delivered
