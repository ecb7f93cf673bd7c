# price_tracker/notifiers/base.py

"""Abstract base class for notification sinks."""

from abc import ABC, abstractmethod

from price_tracker.models.change_event import ChangeEvent


class NotificationSink(ABC):
    """A configured delivery channel for alert-worthy change events."""

    name: str = "sink"

    @abstractmethod
    def is_configured(self) -> bool:
        """Return True when the sink has a destination to deliver to."""
        ...

    @abstractmethod
    def notify(self, event: ChangeEvent) -> None:
        """Deliver ``event``. May raise on transport failure."""
        ...
