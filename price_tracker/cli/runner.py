# price_tracker/cli/runner.py

"""Headless CLI commands built on the scrape orchestrator."""

import asyncio
import logging

from rich.console import Console
from rich.table import Table

from price_tracker.config.settings import Settings
from price_tracker.models.tracked_item import TrackedItem
from price_tracker.notifiers.discord_notifier import DiscordNotifier
from price_tracker.notifiers.email_notifier import EmailNotifier
from price_tracker.services.scrape_orchestrator import ScrapeOrchestrator
from price_tracker.storage.chart_exporter import (
    export_comparison_chart,
    export_price_chart,
)
from price_tracker.storage.price_history_db import PriceHistoryDB
from price_tracker.storage.tracked_item_repository import (
    DuplicateItemError,
    TrackedItemRepository,
)

logger = logging.getLogger("price_tracker.cli")

# Stderr console for status messages so stdout stays clean for tables
_err = Console(stderr=True)


def build_orchestrator() -> ScrapeOrchestrator:
    """Create the default orchestrator and register configured sinks."""
    orchestrator = ScrapeOrchestrator.from_settings()
    for sink in (DiscordNotifier(), EmailNotifier()):
        orchestrator.register_sink(sink)
    return orchestrator


def _print_summary(orchestrator: ScrapeOrchestrator) -> None:
    summary = orchestrator.last_summary
    if summary is None:
        return
    _err.print(
        f"[bold]Run finished:[/bold] {summary.processed}/{summary.total} "
        f"processed, [green]{summary.succeeded} ok[/green], "
        f"[red]{summary.failed} failed[/red], "
        f"{summary.alerts_sent} alerts delivered"
    )
    if summary.history_errors:
        _err.print(
            f"[yellow]{summary.history_errors} history entries "
            "could not be written[/yellow]"
        )


async def run_scrape() -> int:
    """Run a single scrape pass. Exit code 1 if any item failed."""
    orchestrator = build_orchestrator()
    try:
        processed = await orchestrator.run_once()
    finally:
        orchestrator.close()
    _print_summary(orchestrator)
    if processed == 0:
        _err.print("[dim]Nothing to scrape.[/dim]")
        return 0
    summary = orchestrator.last_summary
    return 1 if summary and summary.failed else 0


async def run_watch(interval_minutes: int | None = None) -> int:
    """Scrape repeatedly, sleeping ``interval_minutes`` between runs."""
    minutes = interval_minutes or Settings.SCRAPE_INTERVAL_MINUTES
    orchestrator = build_orchestrator()
    _err.print(f"[cyan]Watching every {minutes} min (Ctrl+C to stop)[/cyan]")
    try:
        while True:
            try:
                await orchestrator.run_once()
                _print_summary(orchestrator)
            except Exception:
                logger.exception("Scrape run aborted")
            await asyncio.sleep(minutes * 60)
    finally:
        orchestrator.close()


def add_item(
    url: str,
    max_price: float,
    title: str | None = None,
    notify_drop: bool = True,
    notify_stock: bool = True,
) -> int:
    """Start tracking ``url``. Exit code 1 if it is already tracked."""
    repo = TrackedItemRepository()
    try:
        item = repo.add(TrackedItem(
            url=url.strip(),
            title=title or "",
            title_locked=bool(title),
            desired_max_price=max_price,
            notify_on_price_drop=notify_drop,
            notify_on_stock=notify_stock,
        ))
    except DuplicateItemError as exc:
        _err.print(f"[red]{exc}[/red]")
        return 1
    finally:
        repo.close()
    _err.print(f"[green]Tracking item {item.id}:[/green] {item.url}")
    return 0


def remove_item(item_id: int) -> int:
    """Stop tracking an item and drop its history."""
    repo = TrackedItemRepository()
    try:
        removed = repo.delete(item_id)
    finally:
        repo.close()
    if not removed:
        _err.print(f"[red]No tracked item with id {item_id}[/red]")
        return 1
    _err.print(f"[green]Removed item {item_id}[/green]")
    return 0


def list_items() -> int:
    """Render all tracked items as a Rich table."""
    repo = TrackedItemRepository()
    try:
        items = repo.load_all()
    finally:
        repo.close()

    table = Table(
        title="Tracked Items",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("ID", style="dim", width=5)
    table.add_column("Title", max_width=50)
    table.add_column("Price", justify="right", style="green")
    table.add_column("Max", justify="right")
    table.add_column("Stock", justify="center")
    table.add_column("Source", style="magenta")
    table.add_column("Last checked", style="dim")

    for item in items:
        table.add_row(
            str(item.id),
            (item.title or item.url)[:50],
            f"€{item.current_price:,.2f}" if item.current_price > 0 else "N/A",
            f"€{item.desired_max_price:,.2f}",
            "✔" if item.in_stock else "✘",
            item.source or "-",
            (
                item.last_checked.strftime("%Y-%m-%d %H:%M")
                if item.last_checked
                else "never"
            ),
        )

    Console().print(table)
    return 0


def show_history(item_id: int, days: int = Settings.HISTORY_DAYS) -> int:
    """Print the recorded price/stock history for one item."""
    history_db = PriceHistoryDB()
    try:
        entries = history_db.get_history(item_id, days)
    finally:
        history_db.close()
    if not entries:
        _err.print(f"[dim]No history for item {item_id}[/dim]")
        return 0

    table = Table(title=f"History for item {item_id}", title_style="bold")
    table.add_column("Recorded", style="dim")
    table.add_column("Price", justify="right", style="green")
    table.add_column("Stock", justify="center")
    for entry in entries:
        table.add_row(
            entry.recorded_at.strftime("%Y-%m-%d %H:%M"),
            f"€{entry.price:,.2f}",
            "✔" if entry.in_stock else "✘",
        )
    Console().print(table)
    return 0


def prune_history(days_to_keep: int = Settings.HISTORY_RETENTION_DAYS) -> int:
    """Delete history older than the retention window."""
    history_db = PriceHistoryDB()
    try:
        removed = history_db.prune_history(days_to_keep)
    finally:
        history_db.close()
    _err.print(f"[dim]Pruned {removed} history entries[/dim]")
    return 0


def export_chart(item_id: int | None = None, open_browser: bool = True) -> int:
    """Write an HTML price chart for one item, or all items overlaid."""
    repo = TrackedItemRepository()
    history_db = PriceHistoryDB()
    try:
        if item_id:
            item = repo.get(item_id)
            if item is None:
                _err.print(f"[red]No tracked item with id {item_id}[/red]")
                return 1
            path = export_price_chart(
                item, history_db, open_browser=open_browser,
            )
        else:
            path = export_comparison_chart(
                repo.load_all(), history_db, open_browser=open_browser,
            )
    finally:
        history_db.close()
        repo.close()

    if path is None:
        _err.print("[yellow]Not enough history to draw a chart yet.[/yellow]")
        return 1
    _err.print(f"[green]Chart saved:[/green] {path}")
    return 0
