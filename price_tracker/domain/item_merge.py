# price_tracker/domain/item_merge.py

"""Merge a fetched snapshot into a tracked item's persisted state.

The merge never mutates its inputs.  It returns the updated item
together with the names of the fields whose value actually changed,
so persistence and change classification can work from an explicit
diff instead of re-deriving it.
"""

from dataclasses import dataclass, field, fields, replace

from price_tracker.models.scraped_snapshot import ScrapedSnapshot
from price_tracker.models.tracked_item import TrackedItem

# Prices at or below this are treated as "no price extracted"
MIN_MEANINGFUL_PRICE = 0.01

_BOOKKEEPING_FIELDS = frozenset({"last_checked"})


@dataclass(frozen=True)
class MergeResult:
    """Outcome of merging one snapshot into one item."""

    item: TrackedItem
    changed_fields: tuple[str, ...] = field(default_factory=tuple)
    suspect_zero_price: bool = False

    @property
    def has_changes(self) -> bool:
        """True when any user-visible field changed."""
        return bool(self.changed_fields)


def merge_snapshot(
    old: TrackedItem, snapshot: ScrapedSnapshot,
) -> MergeResult:
    """Return ``old`` updated with the data in ``snapshot``.

    Rules:
    - title only when not locked and the snapshot has one;
    - price only when the snapshot price is meaningfully positive;
      an in-stock zero price is flagged as a probable extraction error
      and the previous price is kept;
    - stock, format flag and image reference always follow the
      snapshot, so a missing image clears the stale one.
    """
    updates: dict[str, object] = {
        "in_stock": snapshot.in_stock,
        "is_uhd_4k": snapshot.is_uhd_4k,
        "image_url": snapshot.image_url,
        "last_checked": snapshot.fetched_at,
    }
    if snapshot.source:
        updates["source"] = snapshot.source
    if not old.title_locked and snapshot.title.strip():
        updates["title"] = snapshot.title.strip()

    suspect_zero_price = False
    if snapshot.price > MIN_MEANINGFUL_PRICE:
        updates["current_price"] = snapshot.price
    elif snapshot.in_stock:
        suspect_zero_price = True

    merged = replace(old, **updates)
    changed = tuple(
        f.name
        for f in fields(TrackedItem)
        if f.name not in _BOOKKEEPING_FIELDS
        and getattr(old, f.name) != getattr(merged, f.name)
    )
    return MergeResult(
        item=merged,
        changed_fields=changed,
        suspect_zero_price=suspect_zero_price,
    )
