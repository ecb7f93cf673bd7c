# main.py

"""Entry point for the price tracker CLI."""

import argparse
import asyncio
import logging
import sys

from price_tracker.config.logging_config import setup_logging
from price_tracker.config.settings import Settings

logger = logging.getLogger("price_tracker.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    valid_ids = ", ".join(s["label"] for s in Settings.AVAILABLE_SOURCES)

    parser = argparse.ArgumentParser(
        prog="price_tracker",
        description="Track product prices and stock, alert on changes.",
        epilog=f"Supported sources: {valid_ids}",
    )
    actions = parser.add_mutually_exclusive_group(required=True)
    actions.add_argument(
        "--run",
        action="store_true",
        help="Scrape every tracked item once.",
    )
    actions.add_argument(
        "--watch",
        nargs="?",
        type=int,
        const=Settings.SCRAPE_INTERVAL_MINUTES,
        default=None,
        metavar="MINUTES",
        help="Scrape repeatedly (default interval: "
        f"{Settings.SCRAPE_INTERVAL_MINUTES} min).",
    )
    actions.add_argument(
        "--add",
        metavar="URL",
        default=None,
        help="Start tracking a product URL.",
    )
    actions.add_argument(
        "--list",
        action="store_true",
        help="List tracked items.",
    )
    actions.add_argument(
        "--history",
        type=int,
        metavar="ID",
        default=None,
        help="Show price history for a tracked item.",
    )
    actions.add_argument(
        "--remove",
        type=int,
        metavar="ID",
        default=None,
        help="Stop tracking an item.",
    )
    actions.add_argument(
        "--chart",
        nargs="?",
        type=int,
        const=0,
        default=None,
        metavar="ID",
        help="Export an HTML price chart (all items when no ID is given).",
    )
    actions.add_argument(
        "--prune",
        action="store_true",
        help="Delete history older than HISTORY_RETENTION_DAYS.",
    )
    parser.add_argument(
        "--max-price",
        type=float,
        default=0.0,
        dest="max_price",
        help="Desired max price for --add (alert when at or below).",
    )
    parser.add_argument(
        "--title",
        default=None,
        help="Fixed title for --add (locks it against scraped titles).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show INFO logs on the console.",
    )
    return parser


def main() -> None:
    """Route the parsed arguments to a CLI command."""
    from price_tracker.cli import runner

    parser = _build_parser()
    args = parser.parse_args()

    log_file = setup_logging(verbose=args.verbose)
    logger.info("price_tracker starting, log file: %s", log_file)

    try:
        if args.run:
            exit_code = asyncio.run(runner.run_scrape())
        elif args.watch is not None:
            exit_code = asyncio.run(runner.run_watch(args.watch))
        elif args.add is not None:
            exit_code = runner.add_item(
                args.add, args.max_price, title=args.title,
            )
        elif args.list:
            exit_code = runner.list_items()
        elif args.history is not None:
            exit_code = runner.show_history(args.history)
        elif args.remove is not None:
            exit_code = runner.remove_item(args.remove)
        elif args.chart is not None:
            exit_code = runner.export_chart(args.chart)
        else:
            exit_code = runner.prune_history()
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        exit_code = 130
    except Exception:
        logger.critical("Fatal error", exc_info=True)
        raise
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
