# tests/helpers.py

"""In-memory fakes shared by the orchestrator and classifier tests."""

import threading
from datetime import datetime

from price_tracker.models.change_event import ChangeEvent
from price_tracker.models.scraped_snapshot import ScrapedSnapshot
from price_tracker.models.tracked_item import TrackedItem
from price_tracker.notifiers.base import NotificationSink

FIXED_TIME = datetime(2026, 10, 19, 12, 0, 0)


def make_item(item_id: int = 1, **overrides: object) -> TrackedItem:
    """Build a tracked item with sensible defaults."""
    fields: dict[str, object] = {
        "id": item_id,
        "url": f"https://shop.test/p/{item_id}",
        "title": f"Item {item_id}",
        "current_price": 40.0,
        "desired_max_price": 35.0,
        "in_stock": True,
    }
    fields.update(overrides)
    return TrackedItem(**fields)  # type: ignore[arg-type]


def make_snapshot(url: str, **overrides: object) -> ScrapedSnapshot:
    """Build a snapshot for ``url`` with sensible defaults."""
    fields: dict[str, object] = {
        "url": url,
        "title": "Scraped title",
        "price": 40.0,
        "in_stock": True,
        "source": "fake",
        "fetched_at": FIXED_TIME,
    }
    fields.update(overrides)
    return ScrapedSnapshot(**fields)  # type: ignore[arg-type]


class RecordingSink(NotificationSink):
    """Sink that remembers every event it was given."""

    def __init__(self, name: str = "recording", configured: bool = True):
        self.name = name
        self.configured = configured
        self.events: list[ChangeEvent] = []

    def is_configured(self) -> bool:
        return self.configured

    def notify(self, event: ChangeEvent) -> None:
        self.events.append(event)


class FailingSink(RecordingSink):
    """Sink whose transport always fails."""

    def notify(self, event: ChangeEvent) -> None:
        super().notify(event)
        msg = "webhook unreachable"
        raise ConnectionError(msg)


class FakeRepository:
    """Thread-safe in-memory item repository."""

    def __init__(
        self,
        items: list[TrackedItem] | None = None,
        fail_save_for: set[int] | None = None,
    ) -> None:
        self.items = {i.id: i for i in items or []}
        self.saved: list[TrackedItem] = []
        self.fail_save_for = fail_save_for or set()
        self.closed = False
        self._lock = threading.Lock()

    def load_all(self) -> list[TrackedItem]:
        return list(self.items.values())

    def save(self, item: TrackedItem) -> bool:
        if item.id in self.fail_save_for:
            return False
        with self._lock:
            self.items[item.id] = item
            self.saved.append(item)
        return True

    def close(self) -> None:
        self.closed = True


class FakeHistory:
    """Thread-safe in-memory history ledger."""

    def __init__(self, fail: bool = False) -> None:
        self.entries: list[tuple[int, float, bool]] = []
        self.fail = fail
        self.closed = False
        self._lock = threading.Lock()

    def append(self, item_id: int, price: float, in_stock: bool) -> None:
        if self.fail:
            msg = "database is locked"
            raise RuntimeError(msg)
        with self._lock:
            self.entries.append((item_id, price, in_stock))

    def close(self) -> None:
        self.closed = True


class FakeAdapter:
    """Adapter serving canned snapshots; tracks concurrent fetches."""

    def __init__(
        self,
        snapshots: dict[str, ScrapedSnapshot | Exception] | None = None,
        domain: str = "shop.test",
        hold: float = 0.0,
        gate: threading.Event | None = None,
    ) -> None:
        self.snapshots = snapshots or {}
        self.domain = domain
        self.hold = hold
        self.gate = gate
        self.active = 0
        self.max_active = 0
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def can_handle(self, url: str) -> bool:
        return self.domain in url

    def fetch(self, url: str) -> ScrapedSnapshot | None:
        with self._lock:
            self.calls.append(url)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                self.gate.wait(5)
            elif self.hold:
                # time.sleep is patched in tests; Event.wait is not
                threading.Event().wait(self.hold)
            snapshot = self.snapshots.get(url)
            if isinstance(snapshot, Exception):
                raise snapshot
            return snapshot
        finally:
            with self._lock:
                self.active -= 1
