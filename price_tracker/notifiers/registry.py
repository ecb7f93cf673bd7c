# price_tracker/notifiers/registry.py

"""Ordered registry of notification sinks with fault-isolated fan-out."""

import logging

from price_tracker.models.change_event import ChangeEvent
from price_tracker.notifiers.base import NotificationSink

logger = logging.getLogger("price_tracker.notifiers")


class SinkRegistry:
    """Holds configured sinks and invokes each of them once per event.

    The sink list is only mutated between runs; during a run it is read
    concurrently by every scrape task.
    """

    def __init__(self) -> None:
        self._sinks: list[NotificationSink] = []

    def __len__(self) -> int:
        return len(self._sinks)

    @property
    def sinks(self) -> tuple[NotificationSink, ...]:
        """Registered sinks in registration order."""
        return tuple(self._sinks)

    def register(self, sink: NotificationSink) -> bool:
        """Add ``sink`` if it is configured. Returns whether it was added."""
        if not sink.is_configured():
            logger.info(
                "Skipping unconfigured notification sink: %s", sink.name,
            )
            return False
        self._sinks.append(sink)
        logger.info("Notification sink registered: %s", sink.name)
        return True

    def fan_out(self, event: ChangeEvent) -> int:
        """Invoke every sink in order; return how many succeeded.

        A failing sink is logged and skipped so later sinks still run
        and the calling scrape task is not aborted.
        """
        delivered = 0
        for sink in tuple(self._sinks):
            try:
                sink.notify(event)
                delivered += 1
            except Exception as exc:
                logger.error(
                    "Sink %s failed for '%s': %s",
                    sink.name,
                    event.item.title,
                    exc,
                    exc_info=True,
                )
        return delivered
