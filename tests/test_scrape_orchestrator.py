# tests/test_scrape_orchestrator.py

"""Tests for ScrapeOrchestrator run lifecycle, bounds and failures."""

import asyncio
import threading
import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from helpers import (
    FailingSink,
    FakeAdapter,
    FakeHistory,
    FakeRepository,
    RecordingSink,
    make_item,
    make_snapshot,
)

from price_tracker.models.change_event import ChangeKind
from price_tracker.scrapers.registry import AdapterRegistry
from price_tracker.services.scrape_orchestrator import (
    ScrapeOrchestrator,
    compute_launch_interval,
)


def _items(count: int) -> list:
    return [make_item(i) for i in range(1, count + 1)]


def _adapter_for(items: list, **kwargs: object) -> FakeAdapter:
    snapshots = {i.url: make_snapshot(i.url) for i in items}
    return FakeAdapter(snapshots, **kwargs)  # type: ignore[arg-type]


def _orchestrator(
    repo: FakeRepository,
    adapter: FakeAdapter,
    history: FakeHistory | None = None,
    concurrency: int = 4,
    delay: float = 0,
) -> ScrapeOrchestrator:
    return ScrapeOrchestrator(
        repository=repo,
        history=history or FakeHistory(),
        adapters=AdapterRegistry([lambda: adapter]),
        delay_seconds=delay,
        concurrency=concurrency,
    )


async def _wait_until(predicate: object, timeout: float = 5.0) -> None:
    """Poll ``predicate`` on the event loop until it is true."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():  # type: ignore[operator]
        if loop.time() > deadline:
            msg = "condition not reached"
            raise AssertionError(msg)
        await asyncio.sleep(0.01)


class TestComputeLaunchInterval(unittest.TestCase):
    """Launch throttle arithmetic."""

    def test_delay_split_across_slots(self) -> None:
        """8s over 4 slots spaces launches 2s apart."""
        self.assertEqual(compute_launch_interval(8, 4), 2.0)

    def test_floor_of_one_second(self) -> None:
        """Short delays are clamped to 1000ms."""
        self.assertEqual(compute_launch_interval(2, 4), 1.0)
        self.assertEqual(compute_launch_interval(1, 8), 1.0)

    def test_zero_delay_disables_throttle(self) -> None:
        self.assertEqual(compute_launch_interval(0, 4), 0.0)


class TestRunOnce(unittest.IsolatedAsyncioTestCase):
    """End-to-end behaviour of a single run with in-memory fakes."""

    async def test_all_items_processed(self) -> None:
        """processed == N and succeeded + failed == N."""
        items = _items(7)
        repo = FakeRepository(items)
        orch = _orchestrator(repo, _adapter_for(items))

        processed = await orch.run_once()

        self.assertEqual(processed, 7)
        progress = orch.get_progress()
        self.assertEqual(progress.processed, 7)
        self.assertEqual(progress.total, 7)
        self.assertEqual(progress.succeeded + progress.failed, 7)
        self.assertFalse(progress.active)
        self.assertEqual(progress.in_flight, 0)

    async def test_empty_repository_returns_zero(self) -> None:
        orch = _orchestrator(FakeRepository([]), FakeAdapter())
        self.assertEqual(await orch.run_once(), 0)
        self.assertFalse(orch.is_running)
        self.assertIsNone(orch.last_summary)

    async def test_in_flight_never_exceeds_limit(self) -> None:
        """At most K fetches run at the same time."""
        items = _items(10)
        adapter = _adapter_for(items, hold=0.05)
        orch = _orchestrator(FakeRepository(items), adapter, concurrency=3)

        processed = await orch.run_once()

        self.assertEqual(processed, 10)
        self.assertLessEqual(adapter.max_active, 3)
        self.assertLessEqual(orch.peak_in_flight, 3)
        self.assertGreater(adapter.max_active, 1)

    async def test_history_entry_per_persisted_item(self) -> None:
        """Each saved item gets one entry with its post-merge values."""
        items = [make_item(1, current_price=40.0, in_stock=False)]
        adapter = FakeAdapter({
            items[0].url: make_snapshot(
                items[0].url, price=25.0, in_stock=True,
            ),
        })
        history = FakeHistory()
        orch = _orchestrator(FakeRepository(items), adapter, history)

        await orch.run_once()

        self.assertEqual(history.entries, [(1, 25.0, True)])

    async def test_history_written_even_without_changes(self) -> None:
        item = make_item(1, title="Scraped title", source="fake")
        history = FakeHistory()
        orch = _orchestrator(
            FakeRepository([item]), _adapter_for([item]), history,
        )
        await orch.run_once()
        self.assertEqual(len(history.entries), 1)

    async def test_url_without_adapter_is_a_failure(self) -> None:
        """No adapter: counted failure, no mutation, no history."""
        item = make_item(1, url="https://unknown.example/p/1")
        repo = FakeRepository([item])
        history = FakeHistory()
        orch = _orchestrator(repo, FakeAdapter(), history)

        processed = await orch.run_once()

        self.assertEqual(processed, 1)
        self.assertEqual(orch.get_progress().failed, 1)
        self.assertEqual(repo.saved, [])
        self.assertEqual(history.entries, [])
        summary = orch.last_summary
        assert summary is not None
        self.assertEqual(summary.failures, {"no_adapter": 1})

    async def test_fetch_exception_is_a_failure(self) -> None:
        items = _items(2)
        adapter = _adapter_for(items)
        adapter.snapshots[items[0].url] = ConnectionError("timed out")
        repo = FakeRepository(items)
        orch = _orchestrator(repo, adapter)

        processed = await orch.run_once()

        self.assertEqual(processed, 2)
        progress = orch.get_progress()
        self.assertEqual(progress.succeeded, 1)
        self.assertEqual(progress.failed, 1)
        self.assertEqual([i.id for i in repo.saved], [2])

    async def test_fetch_returning_nothing_is_a_failure(self) -> None:
        item = make_item(1)
        orch = _orchestrator(FakeRepository([item]), FakeAdapter({}))
        await orch.run_once()
        summary = orch.last_summary
        assert summary is not None
        self.assertEqual(summary.failures, {"fetch_failed": 1})

    async def test_persist_failure_skips_history(self) -> None:
        items = _items(2)
        repo = FakeRepository(items, fail_save_for={1})
        history = FakeHistory()
        orch = _orchestrator(repo, _adapter_for(items), history)

        await orch.run_once()

        self.assertEqual(orch.get_progress().failed, 1)
        self.assertEqual([e[0] for e in history.entries], [2])
        summary = orch.last_summary
        assert summary is not None
        self.assertEqual(summary.failures, {"persist_failed": 1})

    async def test_history_failure_keeps_item_update(self) -> None:
        """Ledger errors are logged and counted, not item failures."""
        item = make_item(1, current_price=40.0)
        adapter = FakeAdapter({item.url: make_snapshot(item.url, price=33.0)})
        repo = FakeRepository([item])
        orch = _orchestrator(repo, adapter, FakeHistory(fail=True))

        with self.assertLogs("price_tracker.orchestrator", "ERROR"):
            await orch.run_once()

        self.assertEqual(orch.get_progress().succeeded, 1)
        self.assertEqual(repo.items[1].current_price, 33.0)
        summary = orch.last_summary
        assert summary is not None
        self.assertEqual(summary.history_errors, 1)

    async def test_load_failure_propagates_and_releases_guard(self) -> None:
        repo = MagicMock()
        repo.load_all.side_effect = RuntimeError("disk I/O error")
        orch = _orchestrator(repo, FakeAdapter())

        with self.assertRaises(RuntimeError):
            await orch.run_once()

        self.assertFalse(orch.is_running)
        self.assertFalse(orch.get_progress().active)

    async def test_price_drop_alert_reaches_sinks(self) -> None:
        """A €40 → €30 drop under a €35 max alerts every sink once."""
        item = make_item(1, current_price=40.0, desired_max_price=35.0)
        adapter = FakeAdapter({item.url: make_snapshot(item.url, price=30.0)})
        orch = _orchestrator(FakeRepository([item]), adapter)
        sink = RecordingSink()
        self.assertTrue(orch.register_sink(sink))

        await orch.run_once()

        self.assertEqual(len(sink.events), 1)
        event = sink.events[0]
        self.assertEqual(
            event.kind, ChangeKind.PRICE_DROPPED_BELOW_THRESHOLD,
        )
        self.assertEqual((event.old_price, event.new_price), (40.0, 30.0))
        summary = orch.last_summary
        assert summary is not None
        self.assertEqual(summary.alerts_sent, 1)

    async def test_price_change_does_not_alert(self) -> None:
        item = make_item(1, current_price=19.99, desired_max_price=10.0)
        adapter = FakeAdapter({item.url: make_snapshot(item.url, price=21.5)})
        orch = _orchestrator(FakeRepository([item]), adapter)
        sink = RecordingSink()
        orch.register_sink(sink)

        await orch.run_once()

        self.assertEqual(sink.events, [])

    async def test_zero_price_in_stock_logged(self) -> None:
        item = make_item(1, current_price=40.0)
        adapter = FakeAdapter({
            item.url: make_snapshot(item.url, price=0.0, in_stock=True),
        })
        repo = FakeRepository([item])
        orch = _orchestrator(repo, adapter)

        with self.assertLogs("price_tracker.orchestrator", "WARNING") as cm:
            await orch.run_once()

        self.assertTrue(
            any("0 price" in line for line in cm.output)
        )
        self.assertEqual(repo.items[1].current_price, 40.0)

    async def test_malformed_snapshot_fails_only_its_item(self) -> None:
        """An unexpected error in merge is contained to that item."""
        items = _items(3)
        adapter = _adapter_for(items)
        adapter.snapshots[items[0].url] = make_snapshot(
            items[0].url, title=None,
        )
        repo = FakeRepository(items)
        orch = _orchestrator(repo, adapter)

        with self.assertLogs("price_tracker.orchestrator", "ERROR") as cm:
            processed = await orch.run_once()

        self.assertEqual(processed, 3)
        progress = orch.get_progress()
        self.assertEqual((progress.total, progress.processed), (3, 3))
        self.assertEqual((progress.succeeded, progress.failed), (2, 1))
        self.assertFalse(orch.is_running)
        summary = orch.last_summary
        assert summary is not None
        self.assertEqual(summary.failures, {"unexpected": 1})
        self.assertTrue(
            any("Unexpected error" in line for line in cm.output)
        )
        self.assertEqual(len(repo.saved), 2)

    async def test_alert_without_sinks_counts_no_delivery(self) -> None:
        item = make_item(1, current_price=40.0, desired_max_price=35.0)
        adapter = FakeAdapter({item.url: make_snapshot(item.url, price=30.0)})
        orch = _orchestrator(FakeRepository([item]), adapter)

        await orch.run_once()

        summary = orch.last_summary
        assert summary is not None
        self.assertEqual(summary.alerts_sent, 0)

    async def test_only_successful_deliveries_counted(self) -> None:
        """A failing sink does not count; a healthy one does."""
        item = make_item(1, current_price=40.0, desired_max_price=35.0)
        adapter = FakeAdapter({item.url: make_snapshot(item.url, price=30.0)})
        orch = _orchestrator(FakeRepository([item]), adapter)
        broken = FailingSink("broken")
        healthy = RecordingSink("healthy")
        orch.register_sink(broken)
        orch.register_sink(healthy)

        await orch.run_once()

        self.assertEqual(len(broken.events), 1)
        self.assertEqual(len(healthy.events), 1)
        summary = orch.last_summary
        assert summary is not None
        self.assertEqual(summary.alerts_sent, 1)

    async def test_all_sinks_failing_counts_nothing(self) -> None:
        item = make_item(1, current_price=40.0, desired_max_price=35.0)
        adapter = FakeAdapter({item.url: make_snapshot(item.url, price=30.0)})
        orch = _orchestrator(FakeRepository([item]), adapter)
        orch.register_sink(FailingSink())

        await orch.run_once()

        summary = orch.last_summary
        assert summary is not None
        self.assertEqual(summary.alerts_sent, 0)
        self.assertEqual(summary.succeeded, 1)

    async def test_empty_run_resets_progress(self) -> None:
        """Progress after an empty run does not show the previous run."""
        items = _items(2)
        repo = FakeRepository(items)
        orch = _orchestrator(repo, _adapter_for(items))
        await orch.run_once()
        self.assertEqual(orch.get_progress().processed, 2)

        repo.items.clear()
        self.assertEqual(await orch.run_once(), 0)

        progress = orch.get_progress()
        self.assertEqual((progress.total, progress.processed), (0, 0))
        self.assertEqual((progress.succeeded, progress.failed), (0, 0))

    def test_close_closes_stores(self) -> None:
        repo = FakeRepository([])
        history = FakeHistory()
        orch = _orchestrator(repo, FakeAdapter(), history=history)

        orch.close()

        self.assertTrue(repo.closed)
        self.assertTrue(history.closed)

    def test_unconfigured_sink_not_registered(self) -> None:
        orch = _orchestrator(FakeRepository([]), FakeAdapter())
        self.assertFalse(
            orch.register_sink(RecordingSink(configured=False)),
        )

    def test_invalid_concurrency_rejected(self) -> None:
        with self.assertRaises(ValueError):
            _orchestrator(FakeRepository([]), FakeAdapter(), concurrency=0)


class TestRunExclusivity(unittest.IsolatedAsyncioTestCase):
    """Only one run at a time; pollers see live counters."""

    async def test_second_run_returns_zero_while_active(self) -> None:
        items = _items(3)
        gate = threading.Event()
        adapter = _adapter_for(items, gate=gate)
        orch = _orchestrator(FakeRepository(items), adapter, concurrency=2)

        first = asyncio.create_task(orch.run_once())
        try:
            await _wait_until(lambda: orch.get_progress().in_flight == 2)

            before = orch.get_progress()
            self.assertTrue(before.active)
            self.assertEqual(before.total, 3)
            self.assertEqual(before.processed, 0)

            self.assertEqual(await orch.run_once(), 0)
            self.assertEqual(orch.get_progress(), before)
            self.assertFalse(orch.register_sink(RecordingSink()))
        finally:
            gate.set()
        self.assertEqual(await first, 3)
        self.assertFalse(orch.get_progress().active)

    async def test_progress_readable_from_other_threads(self) -> None:
        items = _items(4)
        gate = threading.Event()
        orch = _orchestrator(
            FakeRepository(items), _adapter_for(items, gate=gate),
            concurrency=4,
        )
        first = asyncio.create_task(orch.run_once())
        try:
            await _wait_until(lambda: orch.get_progress().in_flight == 4)
            seen = await asyncio.to_thread(orch.get_progress)
            self.assertTrue(seen.active)
            self.assertEqual(seen.total, 4)
        finally:
            gate.set()
        await first

    async def test_runs_can_repeat_after_completion(self) -> None:
        items = _items(2)
        orch = _orchestrator(FakeRepository(items), _adapter_for(items))
        self.assertEqual(await orch.run_once(), 2)
        self.assertEqual(await orch.run_once(), 2)


class TestLaunchThrottle(unittest.IsolatedAsyncioTestCase):
    """Spacing between task launches."""

    @patch("asyncio.sleep", new_callable=AsyncMock)
    async def test_ten_items_two_second_spacing(
        self, mock_sleep: AsyncMock,
    ) -> None:
        """10 items, K=4, 8s delay: 2000ms between launches."""
        items = _items(10)
        orch = _orchestrator(
            FakeRepository(items), _adapter_for(items),
            concurrency=4, delay=8,
        )

        processed = await orch.run_once()

        self.assertEqual(processed, 10)
        self.assertEqual(mock_sleep.await_count, 9)
        for call in mock_sleep.await_args_list:
            self.assertEqual(call.args, (2.0,))

    @patch("asyncio.sleep", new_callable=AsyncMock)
    async def test_zero_delay_never_sleeps(
        self, mock_sleep: AsyncMock,
    ) -> None:
        items = _items(5)
        orch = _orchestrator(FakeRepository(items), _adapter_for(items))
        await orch.run_once()
        mock_sleep.assert_not_awaited()


if __name__ == "__main__":
    unittest.main()
