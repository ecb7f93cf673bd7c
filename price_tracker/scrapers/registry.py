# price_tracker/scrapers/registry.py

"""Ordered registry resolving a URL to the first adapter that claims it."""

import importlib
import logging
from collections.abc import Callable, Iterable
from typing import Any, Protocol

from price_tracker.config.settings import Settings
from price_tracker.models.scraped_snapshot import ScrapedSnapshot

logger = logging.getLogger("price_tracker.scrapers.registry")


class SourceAdapter(Protocol):
    """Capability every source adapter provides."""

    def can_handle(self, url: str) -> bool: ...

    def fetch(self, url: str) -> ScrapedSnapshot | None: ...


AdapterFactory = Callable[[], SourceAdapter]


def _load_scraper_class(dotted_path: str) -> type[Any]:
    """Dynamically import a scraper class from its dotted module path."""
    module_path, class_name = dotted_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    cls: type[Any] = getattr(module, class_name)
    return cls


class AdapterRegistry:
    """Creates a fresh adapter per lookup so tasks never share sessions."""

    def __init__(self, factories: Iterable[AdapterFactory]) -> None:
        self._factories: list[AdapterFactory] = list(factories)

    @classmethod
    def from_settings(
        cls, sources: list[dict[str, str]] | None = None,
    ) -> "AdapterRegistry":
        """Build the registry from ``Settings.AVAILABLE_SOURCES``."""
        factories: list[AdapterFactory] = [
            _load_scraper_class(src["scraper"])
            for src in (sources or Settings.AVAILABLE_SOURCES)
        ]
        return cls(factories)

    def resolve(self, url: str) -> SourceAdapter | None:
        """Return the first adapter whose ``can_handle`` accepts ``url``."""
        for factory in self._factories:
            adapter = factory()
            if adapter.can_handle(url):
                return adapter
        logger.debug("No adapter registered for %s", url)
        return None
