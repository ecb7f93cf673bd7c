# price_tracker/services/scrape_orchestrator.py

"""Drives one scrape run over every tracked item.

Each item is fetched, merged, classified and persisted by its own task.
At most ``concurrency`` tasks are in flight: a semaphore slot is taken
before a task is launched and given back when it finishes.  Launches
are additionally spaced by a throttle derived from the configured
delay, which limits the rate of new outbound fetches independently of
how fast tasks complete.

Per-item failures are logged and counted; they never escape
``run_once``.  Loading the item list is the only run-fatal step.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol

from price_tracker.config.settings import Settings
from price_tracker.domain.change_classifier import ItemStateComparator
from price_tracker.domain.item_merge import merge_snapshot
from price_tracker.models.change_event import ChangeEvent
from price_tracker.models.run_progress import RunProgress, RunSummary
from price_tracker.models.tracked_item import TrackedItem
from price_tracker.notifiers.base import NotificationSink
from price_tracker.notifiers.registry import SinkRegistry
from price_tracker.scrapers.registry import AdapterRegistry

logger = logging.getLogger("price_tracker.orchestrator")


class ItemRepository(Protocol):
    """Tracked-item storage used by a run."""

    def load_all(self) -> list[TrackedItem]: ...

    def save(self, item: TrackedItem) -> bool: ...

    def close(self) -> None: ...


class HistoryLedger(Protocol):
    """Append-only price/stock history used by a run."""

    def append(self, item_id: int, price: float, in_stock: bool) -> None: ...

    def close(self) -> None: ...


class ItemFailure(Enum):
    """Why a single item's task did not succeed."""

    NO_ADAPTER = "no_adapter"
    FETCH_FAILED = "fetch_failed"
    PERSIST_FAILED = "persist_failed"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class ItemOutcome:
    """Result of one item's task."""

    item: TrackedItem
    failure: ItemFailure | None = None
    event: ChangeEvent | None = None
    history_written: bool = False
    alerts_delivered: int = 0

    @property
    def succeeded(self) -> bool:
        return self.failure is None


def compute_launch_interval(
    delay_seconds: float,
    concurrency: int,
    floor_ms: int = Settings.MIN_LAUNCH_INTERVAL_MS,
) -> float:
    """Seconds to wait between task launches (0 disables throttling).

    ``max(floor_ms, delay_seconds * 1000 / concurrency)`` milliseconds,
    so an 8s delay over 4 slots spaces launches 2s apart.
    """
    if delay_seconds <= 0:
        return 0.0
    interval_ms = max(
        float(floor_ms), delay_seconds * 1000 / max(concurrency, 1),
    )
    return interval_ms / 1000


class ScrapeOrchestrator:
    """Owns the lifecycle, exclusivity and live progress of scrape runs."""

    def __init__(
        self,
        repository: ItemRepository,
        history: HistoryLedger,
        adapters: AdapterRegistry,
        sinks: SinkRegistry | None = None,
        delay_seconds: float = Settings.SCRAPE_DELAY_SECONDS,
        concurrency: int = Settings.MAX_CONCURRENT_SCRAPES,
    ) -> None:
        if concurrency < 1:
            msg = f"concurrency must be >= 1, got {concurrency}"
            raise ValueError(msg)
        self._repository = repository
        self._history = history
        self._adapters = adapters
        self.comparator = ItemStateComparator(sinks)
        self.delay_seconds = delay_seconds
        self.concurrency = concurrency

        self._run_guard = threading.Lock()
        self._state_lock = threading.Lock()
        self._active = False
        self._total = 0
        self._processed = 0
        self._succeeded = 0
        self._failed = 0
        self._in_flight = 0
        self._peak_in_flight = 0
        self._last_summary: RunSummary | None = None

        logger.info(
            "Orchestrator initialised (delay: %ss, concurrency: %d)",
            delay_seconds,
            concurrency,
        )

    @classmethod
    def from_settings(cls) -> "ScrapeOrchestrator":
        """Build an orchestrator wired to the default SQLite stores."""
        from price_tracker.storage.price_history_db import PriceHistoryDB
        from price_tracker.storage.tracked_item_repository import (
            TrackedItemRepository,
        )

        return cls(
            repository=TrackedItemRepository(),
            history=PriceHistoryDB(),
            adapters=AdapterRegistry.from_settings(),
        )

    # ── Public surface ───────────────────────────────────

    @property
    def is_running(self) -> bool:
        return self._run_guard.locked()

    @property
    def last_summary(self) -> RunSummary | None:
        """Summary of the most recently completed run."""
        return self._last_summary

    @property
    def peak_in_flight(self) -> int:
        """Highest number of simultaneously running tasks in the last run."""
        return self._peak_in_flight

    def register_sink(self, sink: NotificationSink) -> bool:
        """Add a configured sink to the alert fan-out.

        Sinks can only be changed between runs.
        """
        if self.is_running:
            logger.warning(
                "Cannot register sink %s while a run is active", sink.name,
            )
            return False
        return self.comparator.sinks.register(sink)

    def close(self) -> None:
        """Close the item store and history ledger."""
        self._repository.close()
        self._history.close()

    def get_progress(self) -> RunProgress:
        """Return a consistent snapshot of the live counters."""
        with self._state_lock:
            return RunProgress(
                processed=self._processed,
                total=self._total,
                active=self._active,
                succeeded=self._succeeded,
                failed=self._failed,
                in_flight=self._in_flight,
            )

    async def run_once(self) -> int:
        """Scrape every tracked item once; return the processed count.

        Returns 0 immediately if another run is already active.
        """
        if not self._run_guard.acquire(blocking=False):
            logger.warning("Scrape already in progress")
            return 0
        try:
            with self._state_lock:
                self._active = True
            return await self._run()
        finally:
            with self._state_lock:
                self._active = False
            self._run_guard.release()

    # ── Run internals ────────────────────────────────────

    async def _run(self) -> int:
        items = await asyncio.to_thread(self._repository.load_all)
        with self._state_lock:
            self._total = len(items)
            self._processed = 0
            self._succeeded = 0
            self._failed = 0
            self._in_flight = 0
            self._peak_in_flight = 0
        if not items:
            logger.info("No tracked items to scrape")
            return 0

        logger.info("Starting scrape run over %d items", len(items))
        summary = RunSummary(total=len(items), started_at=datetime.now())

        slots = asyncio.Semaphore(self.concurrency)
        interval = compute_launch_interval(
            self.delay_seconds, self.concurrency,
        )
        tasks: list[asyncio.Task[None]] = []
        for index, item in enumerate(items):
            await slots.acquire()
            tasks.append(
                asyncio.create_task(self._run_item(item, slots, summary))
            )
            if interval and index < len(items) - 1:
                logger.debug(
                    "Throttling next launch for %.0fms", interval * 1000,
                )
                await asyncio.sleep(interval)

        # Every task must finish before the run guard is released.
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                logger.error(
                    "Scrape task crashed: %s", result, exc_info=result,
                )

        summary.finished_at = datetime.now()
        self._last_summary = summary
        logger.info(
            "Scrape run completed: %d processed, %d succeeded, "
            "%d failed, %d history errors",
            summary.processed,
            summary.succeeded,
            summary.failed,
            summary.history_errors,
        )
        return summary.processed

    async def _run_item(
        self,
        item: TrackedItem,
        slots: asyncio.Semaphore,
        summary: RunSummary,
    ) -> None:
        with self._state_lock:
            self._in_flight += 1
            self._peak_in_flight = max(
                self._peak_in_flight, self._in_flight,
            )
        try:
            outcome = await asyncio.to_thread(self._process_item, item)
        finally:
            with self._state_lock:
                self._in_flight -= 1
            slots.release()
        self._record(outcome, summary)

    def _record(self, outcome: ItemOutcome, summary: RunSummary) -> None:
        with self._state_lock:
            self._processed += 1
            summary.processed += 1
            if outcome.failure is None:
                self._succeeded += 1
                summary.succeeded += 1
                if not outcome.history_written:
                    summary.history_errors += 1
            else:
                self._failed += 1
                summary.failed += 1
                key = outcome.failure.value
                summary.failures[key] = summary.failures.get(key, 0) + 1
            summary.alerts_sent += outcome.alerts_delivered

    def _process_item(self, item: TrackedItem) -> ItemOutcome:
        """Fetch, merge, classify, persist and record one item.

        Runs in a worker thread. Every failure is converted into an
        :class:`ItemOutcome` so nothing propagates to the run.
        """
        try:
            return self._pipeline(item)
        except Exception as exc:
            logger.error(
                "Unexpected error processing %s: %s",
                item.url,
                exc,
                exc_info=True,
            )
            return ItemOutcome(item=item, failure=ItemFailure.UNEXPECTED)

    def _pipeline(self, item: TrackedItem) -> ItemOutcome:
        logger.debug("Scraping: %s", item.url)

        try:
            adapter = self._adapters.resolve(item.url)
        except Exception as exc:
            logger.error(
                "Adapter lookup failed for %s: %s",
                item.url,
                exc,
                exc_info=True,
            )
            adapter = None
        if adapter is None:
            logger.warning("No scraper available for URL: %s", item.url)
            return ItemOutcome(item=item, failure=ItemFailure.NO_ADAPTER)

        try:
            snapshot = adapter.fetch(item.url)
        except Exception as exc:
            logger.warning(
                "Failed to scrape %s: %s", item.url, exc, exc_info=True,
            )
            return ItemOutcome(item=item, failure=ItemFailure.FETCH_FAILED)
        if snapshot is None:
            logger.warning(
                "Failed to scrape %s: scraping returned no data", item.url,
            )
            return ItemOutcome(item=item, failure=ItemFailure.FETCH_FAILED)

        merged = merge_snapshot(item, snapshot)
        if merged.suspect_zero_price:
            logger.warning(
                "Scraped 0 price for in-stock item: %s", snapshot.title,
            )
        updated = merged.item

        event, delivered = self.comparator.classify_and_alert(item, updated)

        try:
            saved = self._repository.save(updated)
        except Exception as exc:
            logger.error(
                "Error saving tracked item %s: %s",
                updated.url,
                exc,
                exc_info=True,
            )
            saved = False
        if not saved:
            logger.error("Failed to update tracked item: %s", updated.url)
            return ItemOutcome(
                item=updated,
                failure=ItemFailure.PERSIST_FAILED,
                event=event,
                alerts_delivered=delivered,
            )

        history_written = True
        try:
            self._history.append(
                updated.id, updated.current_price, updated.in_stock,
            )
        except Exception as exc:
            # The item update stays committed; only the ledger misses it.
            logger.error(
                "Failed to record price history for item %d: %s",
                updated.id,
                exc,
                exc_info=True,
            )
            history_written = False

        if merged.changed_fields:
            logger.debug(
                "Updated %s: %s",
                updated.url,
                ", ".join(merged.changed_fields),
            )
        return ItemOutcome(
            item=updated,
            event=event,
            history_written=history_written,
            alerts_delivered=delivered,
        )
