# price_tracker/storage/chart_exporter.py

"""Generate interactive Plotly HTML charts from price history."""

import importlib
import logging
import re
import webbrowser
from datetime import datetime
from pathlib import Path
from types import ModuleType
from typing import Any

from price_tracker.config.settings import Settings
from price_tracker.models.history_entry import HistoryEntry
from price_tracker.models.tracked_item import TrackedItem
from price_tracker.storage.price_history_db import PriceHistoryDB

logger = logging.getLogger("price_tracker.chart")

_CHARTS_DIR: Path = Settings.DATA_DIR / "charts"


def _get_plotly_go() -> ModuleType:
    """Import plotly.graph_objects lazily."""
    return importlib.import_module("plotly.graph_objects")


def _ensure_charts_dir() -> Path:
    """Create charts directory if it doesn't exist."""
    _CHARTS_DIR.mkdir(parents=True, exist_ok=True)
    return _CHARTS_DIR


def _label(item: TrackedItem) -> str:
    return (item.title or item.url)[:50]


def build_item_chart(
    item: TrackedItem, entries: list[HistoryEntry],
) -> Any:
    """Build a Plotly line chart for one tracked item.

    Out-of-stock observations are drawn as hollow markers and the
    item's desired max price, when set, as a dashed threshold line.
    """
    go = _get_plotly_go()
    dates = [e.recorded_at for e in entries]
    prices = [e.price for e in entries]

    fig: Any = go.Figure()
    fig.add_trace(go.Scatter(
        x=dates,
        y=prices,
        mode="lines+markers",
        name=_label(item),
        marker={
            "symbol": [
                "circle" if e.in_stock else "circle-open" for e in entries
            ],
            "size": 8,
        },
        customdata=[
            "In stock" if e.in_stock else "Out of stock" for e in entries
        ],
        hovertemplate=(
            "%{x|%Y-%m-%d %H:%M}<br>"
            "Price: €%{y:.2f}<br>%{customdata}"
            "<extra></extra>"
        ),
    ))

    if item.desired_max_price > 0:
        fig.add_hline(
            y=item.desired_max_price,
            line_dash="dash",
            annotation_text=f"Max: €{item.desired_max_price:.2f}",
        )

    min_price = min(prices)
    min_idx = prices.index(min_price)
    fig.add_annotation(
        x=dates[min_idx], y=min_price,
        text=f"Low: €{min_price:.2f}",
        showarrow=True, arrowhead=2,
    )

    fig.update_layout(
        title=f"Price History: {_label(item)}",
        xaxis_title="Date",
        yaxis_title="Price (€)",
        hovermode="x unified",
        template="plotly_white",
    )
    return fig


def _write(fig: Any, stem: str, open_browser: bool) -> Path:
    charts_dir = _ensure_charts_dir()
    slug = re.sub(r"[^\w-]+", "_", stem)[:30].strip("_") or "chart"
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filepath = charts_dir / f"{slug}_{stamp}.html"
    fig.write_html(str(filepath))
    logger.info("Chart saved to %s", filepath)

    if open_browser:
        webbrowser.open(filepath.as_uri())
    return filepath


def export_price_chart(
    item: TrackedItem,
    db: PriceHistoryDB,
    days: int = Settings.HISTORY_DAYS,
    open_browser: bool = True,
) -> Path | None:
    """Export one item's price chart as HTML; None if too little data."""
    entries = db.get_history(item.id, days)
    if len(entries) < 2:
        logger.warning(
            "Not enough data points for chart: item %d", item.id,
        )
        return None

    fig = build_item_chart(item, entries)
    return _write(fig, item.title or f"item_{item.id}", open_browser)


def export_comparison_chart(
    items: list[TrackedItem],
    db: PriceHistoryDB,
    days: int = Settings.HISTORY_DAYS,
    open_browser: bool = True,
) -> Path | None:
    """Export an overlay chart comparing several tracked items."""
    go = _get_plotly_go()
    fig: Any = go.Figure()
    for item in items:
        entries = db.get_history(item.id, days)
        if len(entries) < 2:
            continue
        fig.add_trace(go.Scatter(
            x=[e.recorded_at for e in entries],
            y=[e.price for e in entries],
            mode="lines+markers",
            name=f"{_label(item)[:40]} ({item.source or '?'})",
            hovertemplate=(
                "%{x|%Y-%m-%d %H:%M}<br>"
                "Price: €%{y:.2f}"
                "<extra></extra>"
            ),
        ))

    if not fig.data:
        logger.warning("No trend data for comparison chart")
        return None

    fig.update_layout(
        title="Price Comparison",
        xaxis_title="Date",
        yaxis_title="Price (€)",
        hovermode="x unified",
        template="plotly_white",
        legend={"orientation": "h", "y": -0.15},
    )
    return _write(fig, "comparison", open_browser)
